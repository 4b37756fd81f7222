"""Niche history - which company domains a workspace has been shown per niche."""
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from zerpha.models.base import Base


class NicheHistory(Base):
    __tablename__ = "niche_history"

    workspace_id = Column(Integer, ForeignKey("workspaces.id"), primary_key=True)
    niche_key = Column(String(100), primary_key=True)
    company_domain = Column(String(255), primary_key=True)

    first_seen_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_seen_at = Column(DateTime, default=datetime.utcnow, nullable=False)
