"""Structured company extraction from scraped website text."""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from zerpha.config import get_settings
from zerpha.models.schemas import ALLOWED_INDUSTRIES, ExtractedCompany
from zerpha.services.errors import (
    EmptyProviderResponseError,
    ExtractionRetryError,
    ExtractionValidationError,
)
from zerpha.services.json_payload import describe_json_error, parse_json_payload
from zerpha.services.llm.orchestrator import LLMOrchestrator, get_orchestrator
from zerpha.services.llm.types import LLMRequest, LLMStage

logger = logging.getLogger(__name__)

EXTRACTION_MAX_TOKENS = 4096
EXTRACTION_TEMPERATURE = 0.1

SYSTEM_PROMPT = """You are Zerpha, an AI analyst specialized in SaaS company intelligence.
Given scraped website content, produce a JSON object describing the company using the required schema.

Rules:
- Respond with JSON only, no prose.
- Provide thoughtful, evidence-based insights.
- The "summary" field must be a concise 2-4 sentence executive summary written for M&A analysts.
- If data is missing, infer cautiously or use "Unknown".
- acquisition_fit_score must be a number between 0 and 10."""

CORRECTION_SYSTEM_PROMPT = "You fix JSON outputs. Respond with corrected JSON only."

SCORING_GUIDANCE = """Scoring bands for acquisition_fit_score:
- 8-10: clear product-market fit, defensible niche, strong evidence of traction.
- 5-7: credible product with moderate differentiation or incomplete evidence.
- 0-4: weak fit, commoditized offering, or too little evidence to judge."""


def build_extraction_prompt(company_name: str, website: str, content: str) -> str:
    industries = ", ".join(f'"{industry}"' for industry in ALLOWED_INDUSTRIES)
    return f"""Company: {company_name}
Website: {website}

Scraped content:
\"\"\"{content}\"\"\"

{SCORING_GUIDANCE}

primary_industry must be exactly one of: {industries}.
secondary_industry must be one of the same values, or null.

Output JSON matching exactly this schema:
{{
  "name": "string",
  "website": "https://example.com",
  "summary": "2-4 sentence executive summary for M&A analysts describing what the company does and why it matters",
  "product_offering": "string",
  "customer_segment": "string",
  "tech_stack": ["string"],
  "estimated_headcount": "string",
  "hq_location": "string",
  "pricing_model": "string",
  "strengths": ["string"],
  "risks": ["string"],
  "opportunities": ["string"],
  "acquisition_fit_score": 0-10 number,
  "acquisition_fit_reason": "string",
  "top_competitors": ["string"],
  "primary_industry": "one allowed industry",
  "secondary_industry": "one allowed industry or null"
}}"""


def build_correction_prompt(invalid_json: str, error_message: str) -> str:
    return f"""The previous JSON output could not be parsed.
Parsing error: {error_message}

Original JSON:
\"\"\"{invalid_json}\"\"\"

Please respond with corrected JSON only, no comments or explanations."""


def validate_extraction(payload: Any) -> ExtractedCompany:
    if not isinstance(payload, dict):
        raise ExtractionValidationError(
            f"Extraction response must be a JSON object, got {type(payload).__name__}",
            payload=payload,
        )
    try:
        return ExtractedCompany.model_validate(payload)
    except ValidationError as exc:
        raise ExtractionValidationError(
            f"Extraction response failed validation: {exc}",
            payload=payload,
        ) from exc


class StructuredExtractionPipeline:
    def __init__(self, orchestrator: Optional[LLMOrchestrator] = None) -> None:
        self._orchestrator = orchestrator
        self._settings = get_settings()

    @property
    def orchestrator(self) -> LLMOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = get_orchestrator()
        return self._orchestrator

    async def _complete(
        self,
        stage: LLMStage,
        prompt: str,
        system_prompt: str,
        temperature: float,
        label: str = "",
    ) -> str:
        response = await self.orchestrator.arun_stage(
            LLMRequest(
                stage=stage,
                prompt=prompt,
                system_prompt=system_prompt,
                temperature=temperature,
                max_tokens=EXTRACTION_MAX_TOKENS,
                timeout_seconds=self._settings.llm_timeout_seconds,
                label=label,
            )
        )
        return str(response.text or "").strip()

    async def _parse_with_correction(self, raw_text: str, label: str = "") -> Any:
        try:
            return parse_json_payload(raw_text)
        except json.JSONDecodeError as exc:
            first_error = describe_json_error(exc)

        logger.warning("Extraction JSON invalid (%s); requesting one correction", first_error)
        corrected = await self._complete(
            LLMStage.json_correction,
            build_correction_prompt(raw_text, first_error),
            CORRECTION_SYSTEM_PROMPT,
            0.0,
            label,
        )
        if not corrected:
            raise ExtractionRetryError(first_error, "empty correction response")
        try:
            return parse_json_payload(corrected)
        except json.JSONDecodeError as exc:
            raise ExtractionRetryError(first_error, describe_json_error(exc)) from exc

    async def extract_company_insights(
        self,
        company_name: str,
        website: str,
        combined_text: str,
    ) -> ExtractedCompany:
        content = str(combined_text or "")[: max(0, int(self._settings.extraction_max_input_chars))]
        raw_text = await self._complete(
            LLMStage.structured_extraction,
            build_extraction_prompt(company_name, website, content),
            SYSTEM_PROMPT,
            EXTRACTION_TEMPERATURE,
            company_name,
        )
        if not raw_text:
            raise EmptyProviderResponseError("Provider returned an empty extraction response")

        payload = await self._parse_with_correction(raw_text, company_name)
        extracted = validate_extraction(payload)
        logger.info(
            "Extracted company name=%s score=%.1f industry=%s",
            extracted.name,
            extracted.acquisition_fit_score,
            extracted.primary_industry.value,
        )
        return extracted


async def extract_company_insights(company_name: str, website: str, combined_text: str) -> ExtractedCompany:
    return await StructuredExtractionPipeline().extract_company_insights(company_name, website, combined_text)
