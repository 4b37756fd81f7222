from zerpha.models.base import Base
from zerpha.models.workspace import Workspace, Company
from zerpha.models.history import NicheHistory
from zerpha.models.schemas import ALLOWED_INDUSTRIES, Candidate, ExtractedCompany, Industry

__all__ = [
    "Base",
    "Workspace", "Company",
    "NicheHistory",
    "ALLOWED_INDUSTRIES", "Candidate", "ExtractedCompany", "Industry",
]
