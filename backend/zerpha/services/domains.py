"""Identity keys: normalized domains, company names and niche keys."""
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

NICHE_KEY_MAX_LENGTH = 100

LEGAL_SUFFIXES = frozenset({"inc", "llc", "ltd", "corp", "corporation", "company", "co"})

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_PUNCT_RE = re.compile(r"[^\w\s]")
_WS_RE = re.compile(r"\s+")


def _fallback_domain(raw: str) -> str:
    text = raw.lower()
    text = re.sub(r"^https?://", "", text)
    text = re.sub(r"^www\.", "", text)
    return text.split("/")[0]


def normalize_domain(url: Optional[str]) -> str:
    """Lowercase hostname with a leading ``www.`` removed.

    Bare domains are parsed as https URLs. Inputs that do not yield a
    hostname fall back to a best-effort prefix strip. Never raises.
    """
    raw = str(url or "").strip()
    if not raw:
        return ""
    candidate = raw if _SCHEME_RE.match(raw) else f"https://{raw}"
    try:
        host = urlsplit(candidate).hostname or ""
    except ValueError:
        host = ""
    if host.startswith("www."):
        host = host[4:]
    if host:
        return host
    return _fallback_domain(raw) or raw.lower()


def normalize_company_name(name: Optional[str]) -> str:
    """Lowercase, punctuation removed, trailing legal suffixes dropped.

    Suffixes are only stripped from the end of the name, so "Acme Co Ltd"
    becomes ``acme`` while "Inc Software" keeps both words. A name made of a
    single suffix word is kept as is.
    """
    text = _PUNCT_RE.sub("", str(name or "").lower())
    tokens = text.split()
    while len(tokens) > 1 and tokens[-1] in LEGAL_SUFFIXES:
        tokens.pop()
    return " ".join(tokens)


def derive_niche_key(query: Optional[str]) -> str:
    """Stable key for a market query; case, punctuation and spacing collapse."""
    text = str(query or "").lower().strip()
    text = _PUNCT_RE.sub("", text)
    text = _WS_RE.sub("_", text)
    return text[:NICHE_KEY_MAX_LENGTH]
