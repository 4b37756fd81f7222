from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class LLMStage(str, Enum):
    candidate_discovery = "candidate_discovery"
    structured_extraction = "structured_extraction"
    json_correction = "json_correction"


@dataclass
class LLMRequest:
    stage: LLMStage
    prompt: str
    system_prompt: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 1024
    timeout_seconds: int = 60
    label: str = ""  # query or company name, for logs only


@dataclass
class ModelAttemptTrace:
    stage: str
    provider: str
    model: str
    latency_ms: int
    status: str  # success | retryable_error | terminal_error
    retry_count: int
    error_class: Optional[str] = None
    error_message: Optional[str] = None
    started_at: Optional[str] = None
    ended_at: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LLMResponse:
    text: str
    provider: str
    model: str
    attempts: List[ModelAttemptTrace] = field(default_factory=list)

    @property
    def total_latency_ms(self) -> int:
        return sum(attempt.latency_ms for attempt in self.attempts)

    @property
    def failed_attempts(self) -> int:
        return len([attempt for attempt in self.attempts if attempt.status != "success"])


class LLMOrchestrationError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        attempts: Optional[List[ModelAttemptTrace]] = None,
    ) -> None:
        super().__init__(message)
        self.attempts = attempts or []

    @property
    def last_error(self) -> Optional[str]:
        for attempt in reversed(self.attempts):
            if attempt.error_message:
                return attempt.error_message
        return None


class LLMProviderError(RuntimeError):
    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


# Matched against "<ExceptionClass> <message>", lowercased. SDK error classes
# such as RateLimitError, APITimeoutError and APIConnectionError hit by name.
RETRYABLE_MARKERS = (
    "rate limit",
    "ratelimit",
    "429",
    "overloaded",
    "529",
    "timeout",
    "timed out",
    "connection reset",
    "connection aborted",
    "connectionerror",
    "internalserver",
    "500",
    "502",
    "503",
    "504",
)


def classify_retryable_error(exc: Exception) -> bool:
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return True
    text = f"{exc.__class__.__name__} {exc}".lower()
    return any(marker in text for marker in RETRYABLE_MARKERS)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
