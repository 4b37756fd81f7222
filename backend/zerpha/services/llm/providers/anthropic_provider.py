from __future__ import annotations

from typing import Optional

from anthropic import Anthropic

from zerpha.config import get_settings
from zerpha.services.llm.types import LLMProviderError, classify_retryable_error


class AnthropicProvider:
    name = "anthropic"

    def __init__(self) -> None:
        settings = get_settings()
        if not settings.anthropic_api_key:
            raise LLMProviderError("ANTHROPIC_API_KEY not configured", retryable=False)
        self._client = Anthropic(api_key=settings.anthropic_api_key)

    def generate(
        self,
        *,
        model: str,
        prompt: str,
        timeout_seconds: int,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: int = 1024,
    ) -> str:
        kwargs = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
            "timeout": timeout_seconds,
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        try:
            response = self._client.messages.create(**kwargs)
        except Exception as exc:
            raise LLMProviderError(str(exc), retryable=classify_retryable_error(exc)) from exc
        text_parts = []
        for block in getattr(response, "content", []) or []:
            value = getattr(block, "text", None)
            if value:
                text_parts.append(str(value))
        return "\n".join(text_parts).strip()
