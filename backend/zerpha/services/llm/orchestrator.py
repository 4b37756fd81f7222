from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, List, Optional, Tuple

from zerpha.config import get_settings
from zerpha.services.llm.providers.anthropic_provider import AnthropicProvider
from zerpha.services.llm.providers.gemini_provider import GeminiProvider
from zerpha.services.llm.providers.openai_provider import OpenAIProvider
from zerpha.services.llm.types import (
    LLMOrchestrationError,
    LLMProviderError,
    LLMRequest,
    LLMResponse,
    ModelAttemptTrace,
    classify_retryable_error,
    now_iso,
)

logger = logging.getLogger(__name__)

DEFAULT_ROUTE = ("anthropic", "claude-sonnet-4-5")

PROVIDER_CLASSES = {
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
    "openai": OpenAIProvider,
}


class LLMOrchestrator:
    """Runs one request per stage across ordered provider:model routes.

    Each route gets up to ``stage_retry_max_attempts`` tries with linear
    backoff for retryable failures; a terminal failure moves on to the next
    route immediately.
    """

    def __init__(self) -> None:
        self._settings = get_settings()
        self._providers: Dict[str, object] = {}

    def _provider(self, name: str):
        key = str(name or "").strip().lower()
        if key not in self._providers:
            provider_cls = PROVIDER_CLASSES.get(key)
            if provider_cls is None:
                raise LLMProviderError(f"Unsupported LLM provider: {name}", retryable=False)
            self._providers[key] = provider_cls()
        return self._providers[key]

    def _routes_for_stage(self, stage_name: str) -> List[Tuple[str, str]]:
        return self._settings.stage_model_routes(stage_name) or [DEFAULT_ROUTE]

    def _call(self, provider_name: str, model: str, request: LLMRequest) -> str:
        provider = self._provider(provider_name)
        return provider.generate(
            model=model,
            prompt=request.prompt,
            timeout_seconds=max(1, int(request.timeout_seconds)),
            system_prompt=request.system_prompt,
            temperature=float(request.temperature),
            max_tokens=max(1, int(request.max_tokens)),
        )

    def run_stage(self, request: LLMRequest) -> LLMResponse:
        stage = request.stage.value
        attempts: List[ModelAttemptTrace] = []
        max_attempts = max(1, int(self._settings.stage_retry_max_attempts))
        backoff = max(0.0, float(self._settings.stage_retry_backoff_seconds))

        for provider_name, model in self._routes_for_stage(stage):
            for retry_count in range(max_attempts):
                started = now_iso()
                t0 = time.perf_counter()
                try:
                    text = self._call(provider_name, model, request)
                except Exception as exc:
                    retryable = bool(getattr(exc, "retryable", False)) or classify_retryable_error(exc)
                    attempts.append(
                        ModelAttemptTrace(
                            stage=stage,
                            provider=provider_name,
                            model=model,
                            latency_ms=int((time.perf_counter() - t0) * 1000),
                            status="retryable_error" if retryable else "terminal_error",
                            retry_count=retry_count,
                            error_class=exc.__class__.__name__,
                            error_message=str(exc)[:500],
                            started_at=started,
                            ended_at=now_iso(),
                        )
                    )
                    logger.warning(
                        "LLM call failed stage=%s label=%r route=%s:%s retry=%d retryable=%s: %s",
                        stage,
                        request.label,
                        provider_name,
                        model,
                        retry_count,
                        retryable,
                        str(exc)[:200],
                    )
                    if not retryable or retry_count == max_attempts - 1:
                        break
                    if backoff > 0:
                        time.sleep(backoff * (retry_count + 1))
                    continue

                attempts.append(
                    ModelAttemptTrace(
                        stage=stage,
                        provider=provider_name,
                        model=model,
                        latency_ms=int((time.perf_counter() - t0) * 1000),
                        status="success",
                        retry_count=retry_count,
                        started_at=started,
                        ended_at=now_iso(),
                    )
                )
                response = LLMResponse(text=text, provider=provider_name, model=model, attempts=attempts)
                logger.info(
                    "LLM call ok stage=%s label=%r route=%s:%s latency_ms=%d failed_attempts=%d",
                    stage,
                    request.label,
                    provider_name,
                    model,
                    response.total_latency_ms,
                    response.failed_attempts,
                )
                return response

        raise LLMOrchestrationError(f"All model routes failed for stage={stage}", attempts=attempts)

    async def arun_stage(self, request: LLMRequest) -> LLMResponse:
        # Provider SDK clients are synchronous; keep them off the event loop.
        return await asyncio.to_thread(self.run_stage, request)


_default_orchestrator: Optional[LLMOrchestrator] = None


def get_orchestrator() -> LLMOrchestrator:
    global _default_orchestrator
    if _default_orchestrator is None:
        _default_orchestrator = LLMOrchestrator()
    return _default_orchestrator
