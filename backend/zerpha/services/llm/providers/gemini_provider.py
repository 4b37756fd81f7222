from __future__ import annotations

from typing import Optional

from google import genai
from google.genai import types

from zerpha.config import get_settings
from zerpha.services.llm.types import LLMProviderError, classify_retryable_error


class GeminiProvider:
    name = "gemini"

    def __init__(self) -> None:
        settings = get_settings()
        if not settings.gemini_api_key:
            raise LLMProviderError("GEMINI_API_KEY not configured", retryable=False)
        self._client = genai.Client(api_key=settings.gemini_api_key)

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
        cfg = types.GenerateContentConfig(
            system_instruction=system_prompt or None,
            temperature=temperature,
            max_output_tokens=max_tokens,
            http_options=types.HttpOptions(timeout=max(1, int(timeout_seconds)) * 1000),
        )
        try:
            response = self._client.models.generate_content(
                model=model,
                contents=prompt,
                config=cfg,
            )
        except Exception as exc:
            raise LLMProviderError(str(exc), retryable=classify_retryable_error(exc)) from exc
        return str(response.text or "").strip()
