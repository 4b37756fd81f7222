"""Per-workspace history of shown and saved company domains.

Seen-history is an optimization for result diversity, not a correctness
requirement, so every store failure here degrades to an empty set (reads) or
a logged no-op (writes) instead of propagating to the search path.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from zerpha.models.history import NicheHistory
from zerpha.models.workspace import Company
from zerpha.services.domains import normalize_domain

logger = logging.getLogger(__name__)


@dataclass
class HistoryLookup:
    domains: Set[str] = field(default_factory=set)
    ok: bool = True
    error: Optional[str] = None

    @classmethod
    def failed(cls, exc: Exception) -> "HistoryLookup":
        return cls(domains=set(), ok=False, error=f"{exc.__class__.__name__}: {exc}")


def _website_of(company: Any) -> str:
    if isinstance(company, dict):
        return str(company.get("website") or "")
    return str(getattr(company, "website", "") or "")


def _upsert_statement(dialect_name: str, rows: List[Dict[str, Any]]):
    if dialect_name == "postgresql":
        stmt = postgresql.insert(NicheHistory).values(rows)
    elif dialect_name == "sqlite":
        stmt = sqlite.insert(NicheHistory).values(rows)
    else:
        raise NotImplementedError(f"niche history upsert unsupported for dialect {dialect_name}")
    return stmt.on_conflict_do_update(
        index_elements=[NicheHistory.workspace_id, NicheHistory.niche_key, NicheHistory.company_domain],
        set_={"last_seen_at": stmt.excluded.last_seen_at},
    )


class HistoryTracker:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def lookup_seen_domains(self, workspace_id: int, niche_key: str) -> HistoryLookup:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(NicheHistory.company_domain).where(
                        NicheHistory.workspace_id == workspace_id,
                        NicheHistory.niche_key == niche_key,
                    )
                )
                domains = {str(row) for row in result.scalars().all() if row}
        except Exception as exc:
            logger.warning(
                "Failed to fetch seen domains workspace=%s niche=%s: %s", workspace_id, niche_key, exc
            )
            return HistoryLookup.failed(exc)
        logger.debug("Fetched %d seen domains workspace=%s niche=%s", len(domains), workspace_id, niche_key)
        return HistoryLookup(domains=domains)

    async def lookup_saved_company_domains(self, workspace_id: int) -> HistoryLookup:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Company.website).where(
                        Company.workspace_id == workspace_id,
                        Company.is_saved.is_(True),
                    )
                )
                websites = result.scalars().all()
        except Exception as exc:
            logger.warning("Failed to fetch saved company domains workspace=%s: %s", workspace_id, exc)
            return HistoryLookup.failed(exc)
        domains = {normalize_domain(site) for site in websites if site}
        domains.discard("")
        return HistoryLookup(domains=domains)

    async def get_seen_domains(self, workspace_id: int, niche_key: str) -> Set[str]:
        return (await self.lookup_seen_domains(workspace_id, niche_key)).domains

    async def get_saved_company_domains(self, workspace_id: int) -> Set[str]:
        return (await self.lookup_saved_company_domains(workspace_id)).domains

    async def record_seen_companies(
        self,
        workspace_id: int,
        niche_key: str,
        companies: Iterable[Any],
    ) -> int:
        """Upsert one row per distinct domain; returns rows written (0 on failure)."""
        now = datetime.utcnow()
        rows: Dict[str, Dict[str, Any]] = {}
        for company in companies:
            domain = normalize_domain(_website_of(company))
            if not domain or domain in rows:
                continue
            rows[domain] = {
                "workspace_id": workspace_id,
                "niche_key": niche_key,
                "company_domain": domain,
                "first_seen_at": now,
                "last_seen_at": now,
            }
        if not rows:
            return 0

        try:
            async with self._session_factory() as session:
                dialect_name = session.bind.dialect.name
                await session.execute(_upsert_statement(dialect_name, list(rows.values())))
                await session.commit()
        except Exception as exc:
            logger.warning(
                "Failed to record seen companies workspace=%s niche=%s: %s", workspace_id, niche_key, exc
            )
            return 0
        logger.debug("Recorded %d seen companies workspace=%s niche=%s", len(rows), workspace_id, niche_key)
        return len(rows)
