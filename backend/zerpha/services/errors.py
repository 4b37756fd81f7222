"""Error types raised by the discovery and extraction services."""
from __future__ import annotations

from typing import Optional


class ZerphaError(RuntimeError):
    pass


class EmptyProviderResponseError(ZerphaError):
    """The provider call returned no usable text. Never retried."""


class CandidateParseError(ZerphaError):
    def __init__(self, message: str, *, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


class ExtractionRetryError(ZerphaError):
    def __init__(self, first_error: str, second_error: str) -> None:
        super().__init__(
            "Extraction failed after retry: "
            f"initial parse error: {first_error}; correction parse error: {second_error}"
        )
        self.first_error = first_error
        self.second_error = second_error


class ExtractionValidationError(ZerphaError):
    def __init__(self, message: str, *, payload: Optional[object] = None) -> None:
        super().__init__(message)
        self.payload = payload


class PageFetchError(ZerphaError):
    def __init__(self, message: str, *, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class PageFetchTimeoutError(PageFetchError):
    pass


class CompanyNotFoundError(ZerphaError):
    pass
