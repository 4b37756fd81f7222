"""Pydantic contracts for provider output: discovery candidates and extractions."""
from __future__ import annotations

import enum
from typing import Any, List, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_LIST_ITEMS = 12

_PLACEHOLDER_VALUES = {"n/a", "na", "none", "unknown", "-", "null"}


class Industry(str, enum.Enum):
    ai = "AI"
    logistics = "Logistics"
    healthcare = "Healthcare"
    fintech = "Fintech"
    retail = "Retail"
    real_estate = "Real Estate"
    transportation = "Transportation"
    hr_tech = "HR Tech"
    cybersecurity = "Cybersecurity"
    edtech = "EdTech"
    marketing = "Marketing"
    sales = "Sales"
    productivity = "Productivity"
    communication = "Communication"
    customer_support = "Customer Support"
    devtools = "DevTools"
    vertical_saas = "Vertical SaaS"
    marketplace = "Marketplace"
    e_commerce = "E Commerce"
    hardware_enabled_saas = "Hardware Enabled SaaS"


ALLOWED_INDUSTRIES: List[str] = [industry.value for industry in Industry]

_INDUSTRY_LOOKUP = {industry.value.lower(): industry for industry in Industry}


def is_absolute_http_url(value: str) -> bool:
    try:
        parsed = urlsplit(value)
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc) and " " not in parsed.netloc


def _require_url(value: Any) -> str:
    text = str(value or "").strip()
    if not is_absolute_http_url(text):
        raise ValueError(f"website must be an absolute http(s) URL, got {text!r}")
    return text


def _require_text(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
    return value


def coerce_string_list(value: Any) -> List[str]:
    """Accept a string or a list of strings; trim, drop empties and placeholders."""
    if value is None:
        return []
    if isinstance(value, str):
        raw_items = value.splitlines()
    elif isinstance(value, (list, tuple)):
        raw_items = list(value)
    else:
        raise ValueError("expected a string or a list of strings")
    items: List[str] = []
    for raw in raw_items:
        if raw is None:
            continue
        if not isinstance(raw, (str, int, float)):
            raise ValueError("list entries must be strings")
        text = str(raw).strip().lstrip("-•*").strip()
        if not text or text.lower() in _PLACEHOLDER_VALUES:
            continue
        items.append(text)
    return items[:MAX_LIST_ITEMS]


def coerce_industry(value: Any) -> Any:
    if isinstance(value, Industry) or value is None:
        return value
    text = str(value).strip()
    if not text:
        return None
    return _INDUSTRY_LOOKUP.get(text.lower(), text)


class Candidate(BaseModel):
    """A company proposed by the provider for a niche query."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1)
    website: str
    reason: str = Field(min_length=1)

    @field_validator("name", "reason", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return _require_text(value)

    @field_validator("website", mode="before")
    @classmethod
    def check_website(cls, value: Any) -> str:
        return _require_url(value)


class ExtractedCompany(BaseModel):
    """Structured analysis of one company's scraped website content."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    website: str
    summary: str = ""
    product_offering: str = "N/A"
    customer_segment: str = "N/A"
    estimated_headcount: str = "N/A"
    hq_location: str = "N/A"
    pricing_model: str = "N/A"
    tech_stack: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    opportunities: List[str] = Field(default_factory=list)
    top_competitors: List[str] = Field(default_factory=list)
    acquisition_fit_score: float = Field(default=0, ge=0, le=10)
    acquisition_fit_reason: str = "Not specified"
    primary_industry: Industry
    secondary_industry: Optional[Industry] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        return _require_text(value)

    @field_validator("website", mode="before")
    @classmethod
    def check_website(cls, value: Any) -> str:
        return _require_url(value)

    @field_validator(
        "summary",
        "product_offering",
        "customer_segment",
        "estimated_headcount",
        "hq_location",
        "pricing_model",
        "acquisition_fit_reason",
        mode="before",
    )
    @classmethod
    def free_text_defaults(cls, value: Any, info) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("tech_stack", "strengths", "risks", "opportunities", "top_competitors", mode="before")
    @classmethod
    def string_lists(cls, value: Any) -> List[str]:
        return coerce_string_list(value)

    @field_validator("acquisition_fit_score", mode="before")
    @classmethod
    def numeric_score(cls, value: Any) -> Any:
        if isinstance(value, (str, bool)):
            raise ValueError("acquisition_fit_score must be a JSON number")
        return value

    @field_validator("primary_industry", "secondary_industry", mode="before")
    @classmethod
    def known_industry(cls, value: Any) -> Any:
        return coerce_industry(value)
