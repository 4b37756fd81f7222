"""Candidate discovery: one bounded provider request per niche query."""
from __future__ import annotations

import json
import logging
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from zerpha.config import get_settings
from zerpha.models.schemas import Candidate
from zerpha.services.errors import CandidateParseError, EmptyProviderResponseError
from zerpha.services.json_payload import describe_json_error, parse_json_payload
from zerpha.services.llm.orchestrator import LLMOrchestrator, get_orchestrator
from zerpha.services.llm.types import LLMRequest, LLMStage

logger = logging.getLogger(__name__)

MAX_COMPANIES = 5
DISCOVERY_MAX_TOKENS = 1024

SYSTEM_PROMPT = f"""You are Zerpha, an AI assistant that researches SaaS companies.
Task: Given a market or niche query, return up to {MAX_COMPANIES} relevant SaaS companies, preferring vertical SaaS.
If the niche lacks clear vertical SaaS options, include the best horizontal/general SaaS companies for that niche instead.

Rules:
- Respond with a compact JSON array only. No prose.
- Each object must contain: name, website, reason.
- reason should briefly explain why the company fits the niche or why it was selected.
- Order the array from most to least relevant.
- Prefer companies with readily discoverable websites that can be scraped.
- Avoid duplicates."""

_candidate_list = TypeAdapter(List[Candidate])


def build_discovery_prompt(query: str) -> str:
    return (
        f"Return ONLY a JSON array (no prose, no markdown) of 1-{MAX_COMPANIES} SaaS companies "
        f'that match this market query: "{query}". '
        'Each object must contain "name", "website", and "reason".'
    )


def parse_candidates(raw_text: str) -> List[Candidate]:
    """Validate provider text into at most ``MAX_COMPANIES`` candidates, in order."""
    try:
        payload = parse_json_payload(raw_text)
    except json.JSONDecodeError as exc:
        raise CandidateParseError(
            f"Failed to parse discovery response: {describe_json_error(exc)}",
            raw_text=raw_text,
        ) from exc
    if not isinstance(payload, list):
        raise CandidateParseError(
            f"Discovery response must be a JSON array, got {type(payload).__name__}",
            raw_text=raw_text,
        )
    try:
        return _candidate_list.validate_python(payload[:MAX_COMPANIES])
    except ValidationError as exc:
        raise CandidateParseError(
            f"Discovery response failed validation: {exc.error_count()} error(s): {exc}",
            raw_text=raw_text,
        ) from exc


class CandidateGenerator:
    def __init__(self, orchestrator: Optional[LLMOrchestrator] = None) -> None:
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> LLMOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = get_orchestrator()
        return self._orchestrator

    async def generate_candidates(self, query: str) -> List[Candidate]:
        logger.info("Initiating company discovery query=%r", query)
        response = await self.orchestrator.arun_stage(
            LLMRequest(
                stage=LLMStage.candidate_discovery,
                prompt=build_discovery_prompt(query),
                system_prompt=SYSTEM_PROMPT,
                temperature=0.0,
                max_tokens=DISCOVERY_MAX_TOKENS,
                timeout_seconds=get_settings().llm_timeout_seconds,
                label=query,
            )
        )
        raw_text = str(response.text or "").strip()
        if not raw_text:
            logger.error("Provider returned an empty discovery response query=%r", query)
            raise EmptyProviderResponseError("Provider returned an empty response for discovery")

        logger.debug("Raw discovery payload query=%r payload=%s", query, raw_text[:2000])
        try:
            candidates = parse_candidates(raw_text)
        except CandidateParseError:
            logger.error("Failed to parse discovery response query=%r raw=%s", query, raw_text[:500])
            raise

        logger.info(
            "Parsed %d candidates query=%r names=%s",
            len(candidates),
            query,
            [candidate.name for candidate in candidates],
        )
        return candidates


async def generate_candidates(query: str) -> List[Candidate]:
    return await CandidateGenerator().generate_candidates(query)
