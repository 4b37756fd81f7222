"""Workspace and company models - the saved-entity store."""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, ForeignKey, Boolean, Float
from sqlalchemy.orm import relationship
from datetime import datetime

from zerpha.models.base import Base


class Workspace(Base):
    """Tenant boundary for searches, saved companies and niche history."""
    __tablename__ = "workspaces"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    companies = relationship("Company", back_populates="workspace", cascade="all, delete-orphan")


class Company(Base):
    """A company surfaced by a niche search, optionally saved by the workspace."""
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    search_query = Column(Text, nullable=True)

    # Identity
    name = Column(String(255), nullable=False)
    website = Column(String(500), nullable=True)
    domain = Column(String(255), nullable=True, index=True)

    # Extraction output
    raw_json = Column(JSON, default=dict)  # full extraction plus discovery reason
    summary = Column(Text, nullable=True)
    acquisition_fit_score = Column(Float, nullable=True)
    acquisition_fit_reason = Column(Text, nullable=True)
    primary_industry = Column(String(64), nullable=True)
    secondary_industry = Column(String(64), nullable=True)
    product_offering = Column(Text, nullable=True)
    customer_segment = Column(Text, nullable=True)
    estimated_headcount = Column(String(100), nullable=True)
    hq_location = Column(String(255), nullable=True)
    pricing_model = Column(Text, nullable=True)
    tech_stack = Column(JSON, nullable=True)
    strengths = Column(JSON, nullable=True)
    risks = Column(JSON, nullable=True)
    opportunities = Column(JSON, nullable=True)
    top_competitors = Column(JSON, nullable=True)

    # success | failed
    status = Column(String(20), default="success")

    # Saved state (drives the saved-domain set)
    is_saved = Column(Boolean, default=False, nullable=False, index=True)
    saved_category = Column(String(120), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    workspace = relationship("Workspace", back_populates="companies")
