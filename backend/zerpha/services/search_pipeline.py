"""Niche search: discover, diversify, record, then extract with memoization."""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from zerpha.config import get_settings
from zerpha.models.schemas import Candidate, ExtractedCompany
from zerpha.services.company_save import derive_fit_band, record_failed_company, save_extracted_company
from zerpha.services.discovery import CandidateGenerator
from zerpha.services.diversity import SelectionStats, select_diverse_companies
from zerpha.services.domains import derive_niche_key
from zerpha.services.extraction import StructuredExtractionPipeline
from zerpha.services.extraction_cache import AnyExtractionCache, extraction_cache
from zerpha.services.history import HistoryTracker
from zerpha.services.retrieval.page_fetcher import ScrapeResult, scrape_company_site

logger = logging.getLogger(__name__)

Scraper = Callable[[str], Awaitable[ScrapeResult]]


@dataclass
class CompanyResult:
    candidate: Candidate
    status: str  # success | failed
    extracted: Optional[ExtractedCompany] = None
    from_cache: bool = False
    error: Optional[str] = None
    company_id: Optional[int] = None

    @property
    def fit_band(self) -> Optional[str]:
        return derive_fit_band(self.extracted.acquisition_fit_score) if self.extracted else None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.candidate.name,
            "website": self.candidate.website,
            "reason": self.candidate.reason,
            "status": self.status,
            "from_cache": self.from_cache,
            "error": self.error,
            "company_id": self.company_id,
            "fit_band": self.fit_band,
            "extracted": self.extracted.model_dump(mode="json") if self.extracted else None,
        }


@dataclass
class NicheSearchOutcome:
    query: str
    niche_key: str
    selected: List[Candidate]
    stats: SelectionStats
    results: List[CompanyResult] = field(default_factory=list)
    seen_history_available: bool = True
    saved_history_available: bool = True

    def as_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "niche_key": self.niche_key,
            "stats": self.stats.as_dict(),
            "seen_history_available": self.seen_history_available,
            "saved_history_available": self.saved_history_available,
            "companies": [result.as_dict() for result in self.results],
        }


class NicheSearchPipeline:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        generator: Optional[CandidateGenerator] = None,
        extractor: Optional[StructuredExtractionPipeline] = None,
        cache: Optional[AnyExtractionCache] = None,
        scraper: Optional[Scraper] = None,
        history: Optional[HistoryTracker] = None,
        persist_results: bool = True,
        random_source: Callable[[], float] = random.random,
    ) -> None:
        self._settings = get_settings()
        self._session_factory = session_factory
        self.generator = generator or CandidateGenerator()
        self.extractor = extractor or StructuredExtractionPipeline()
        self.cache = cache if cache is not None else extraction_cache
        self.scraper = scraper or scrape_company_site
        self.history = history or HistoryTracker(session_factory)
        self.persist_results = persist_results
        self._random_source = random_source

    async def run(
        self,
        workspace_id: int,
        query: str,
        target_count: Optional[int] = None,
        add_randomness: bool = True,
    ) -> NicheSearchOutcome:
        target = int(target_count if target_count is not None else self._settings.discovery_target_count)
        niche_key = derive_niche_key(query)

        candidates = await self.generator.generate_candidates(query)

        seen_lookup, saved_lookup = await asyncio.gather(
            self.history.lookup_seen_domains(workspace_id, niche_key),
            self.history.lookup_saved_company_domains(workspace_id),
        )
        selection = select_diverse_companies(
            candidates,
            seen_lookup.domains,
            target,
            add_randomness=add_randomness,
            saved_domains=saved_lookup.domains,
            random_source=self._random_source,
        )
        await self.history.record_seen_companies(workspace_id, niche_key, selection.selected)

        semaphore = asyncio.Semaphore(max(1, int(self._settings.extraction_concurrency)))
        results = await asyncio.gather(
            *(self._process_candidate(candidate, semaphore) for candidate in selection.selected)
        )
        results = list(results)

        if self.persist_results and results:
            await self._persist(workspace_id, query, results)

        logger.info(
            "Niche search workspace=%s niche=%s selected=%d succeeded=%d cached=%d",
            workspace_id,
            niche_key,
            len(selection.selected),
            len([r for r in results if r.status == "success"]),
            len([r for r in results if r.from_cache]),
        )
        return NicheSearchOutcome(
            query=query,
            niche_key=niche_key,
            selected=selection.selected,
            stats=selection.stats,
            results=results,
            seen_history_available=seen_lookup.ok,
            saved_history_available=saved_lookup.ok,
        )

    async def _process_candidate(self, candidate: Candidate, semaphore: asyncio.Semaphore) -> CompanyResult:
        cached = await self.cache.aget(candidate.website)
        if cached is not None:
            return CompanyResult(candidate=candidate, status="success", extracted=cached, from_cache=True)

        async with semaphore:
            try:
                scrape = await self.scraper(candidate.website)
                if not scrape.pages:
                    reason = "; ".join(scrape.errors) or "No content could be scraped from the site"
                    return CompanyResult(candidate=candidate, status="failed", error=reason)
                combined_text = scrape.combined_text(int(self._settings.extraction_max_input_chars))
                extracted = await self.extractor.extract_company_insights(
                    candidate.name,
                    candidate.website,
                    combined_text,
                )
            except Exception as exc:
                logger.exception("Failed to process company %s (%s)", candidate.name, candidate.website)
                return CompanyResult(candidate=candidate, status="failed", error=f"{exc.__class__.__name__}: {exc}")

        await self.cache.aset(candidate.website, extracted)
        return CompanyResult(candidate=candidate, status="success", extracted=extracted)

    async def _persist(self, workspace_id: int, query: str, results: List[CompanyResult]) -> None:
        """Store each result in its own commit; a failed row is rolled back and skipped."""
        try:
            async with self._session_factory() as session:
                for result in results:
                    try:
                        if result.extracted is not None:
                            row = await save_extracted_company(
                                session, workspace_id, query, result.extracted, reason=result.candidate.reason
                            )
                        else:
                            row = await record_failed_company(session, workspace_id, query, result.candidate)
                    except Exception:
                        logger.exception(
                            "Failed to persist company %s workspace=%s", result.candidate.website, workspace_id
                        )
                        await session.rollback()
                        continue
                    result.company_id = row.id
        except Exception:
            logger.exception("Failed to persist companies workspace=%s query=%r", workspace_id, query)
