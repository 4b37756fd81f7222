"""Persistence of search results and the workspace save/unsave actions."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from zerpha.models.schemas import Candidate, ExtractedCompany
from zerpha.models.workspace import Company
from zerpha.services.domains import normalize_domain
from zerpha.services.errors import CompanyNotFoundError

logger = logging.getLogger(__name__)


def normalize_string(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def normalize_string_list(values: Optional[List[str]]) -> Optional[List[str]]:
    if not isinstance(values, list) or not values:
        return None
    cleaned = [value.strip() for value in values if isinstance(value, str) and value.strip()]
    return cleaned or None


def derive_fit_band(score: Optional[float]) -> Optional[str]:
    if score is None or isinstance(score, bool):
        return None
    try:
        value = float(score)
    except (TypeError, ValueError):
        return None
    if value >= 8:
        return "high"
    if value >= 5:
        return "medium"
    return "low"


async def save_extracted_company(
    session: AsyncSession,
    workspace_id: int,
    search_query: str,
    extracted: ExtractedCompany,
    reason: Optional[str] = None,
) -> Company:
    raw_json = extracted.model_dump(mode="json")
    if reason:
        raw_json["reason"] = reason
    company = Company(
        workspace_id=workspace_id,
        search_query=search_query,
        name=extracted.name,
        website=extracted.website,
        domain=normalize_domain(extracted.website) or None,
        raw_json=raw_json,
        summary=normalize_string(extracted.summary),
        acquisition_fit_score=extracted.acquisition_fit_score,
        acquisition_fit_reason=normalize_string(extracted.acquisition_fit_reason),
        primary_industry=extracted.primary_industry.value,
        secondary_industry=extracted.secondary_industry.value if extracted.secondary_industry else None,
        product_offering=normalize_string(extracted.product_offering),
        customer_segment=normalize_string(extracted.customer_segment),
        estimated_headcount=normalize_string(extracted.estimated_headcount),
        hq_location=normalize_string(extracted.hq_location),
        pricing_model=normalize_string(extracted.pricing_model),
        tech_stack=normalize_string_list(extracted.tech_stack),
        strengths=normalize_string_list(extracted.strengths),
        risks=normalize_string_list(extracted.risks),
        opportunities=normalize_string_list(extracted.opportunities),
        top_competitors=normalize_string_list(extracted.top_competitors),
        status="success",
    )
    session.add(company)
    await session.commit()
    await session.refresh(company)
    logger.info("Inserted extracted company id=%s name=%s workspace=%s", company.id, company.name, workspace_id)
    return company


async def record_failed_company(
    session: AsyncSession,
    workspace_id: int,
    search_query: str,
    candidate: Candidate,
) -> Company:
    company = Company(
        workspace_id=workspace_id,
        search_query=search_query,
        name=candidate.name,
        website=candidate.website,
        domain=normalize_domain(candidate.website) or None,
        raw_json={"name": candidate.name, "website": candidate.website, "reason": candidate.reason, "status": "failed"},
        status="failed",
    )
    session.add(company)
    await session.commit()
    await session.refresh(company)
    return company


async def set_company_saved(
    session: AsyncSession,
    workspace_id: int,
    company_id: int,
    saved: bool,
    category: Optional[str] = None,
) -> Company:
    result = await session.execute(
        select(Company).where(Company.id == company_id, Company.workspace_id == workspace_id)
    )
    company = result.scalar_one_or_none()
    if company is None:
        raise CompanyNotFoundError(f"Company {company_id} not found in workspace {workspace_id}")
    company.is_saved = bool(saved)
    company.saved_category = normalize_string(category) if saved else None
    company.updated_at = datetime.utcnow()
    await session.commit()
    await session.refresh(company)
    logger.info("Company %s saved=%s workspace=%s", company_id, company.is_saved, workspace_id)
    return company
