"""Deduplication and diversity-aware selection of discovery candidates.

Candidates arrive in provider relevance order. Selection keeps that order as
a quality signal while steering repeated searches for the same niche toward
companies the workspace has not been shown and has not already saved:

    tier 1  unseen, unsaved   genuinely fresh
    tier 2  seen, unsaved     shown before, still worth resurfacing
    tier 3  unseen, saved     already owned by the workspace
    tier 4  seen, saved       fallback only

Within a tier the order is perturbed by a weighted shuffle: the item at
tier-local index ``i`` of ``n`` scores ``i + (r - 0.5) * n * 0.3`` and the tier
is re-sorted by score, so higher-ranked items tend to stay near the front.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, List, Optional, Protocol, Sequence, Set, Tuple, TypeVar

from zerpha.services.domains import normalize_company_name, normalize_domain

logger = logging.getLogger(__name__)

JITTER_SPREAD = 0.3

TIER_FRESH = 1
TIER_SEEN = 2
TIER_SAVED = 3
TIER_SEEN_SAVED = 4
TIERS = (TIER_FRESH, TIER_SEEN, TIER_SAVED, TIER_SEEN_SAVED)


class CandidateLike(Protocol):
    name: str
    website: str


C = TypeVar("C", bound=CandidateLike)


@dataclass
class SelectionStats:
    total_candidates: int = 0
    unique_candidates: int = 0
    unseen_count: int = 0
    seen_count: int = 0
    unsaved_count: int = 0
    saved_count: int = 0
    selected_unseen: int = 0
    selected_seen: int = 0
    tier_counts: Dict[int, int] = field(default_factory=lambda: {tier: 0 for tier in TIERS})
    selected_tier_counts: Dict[int, int] = field(default_factory=lambda: {tier: 0 for tier in TIERS})

    def as_dict(self) -> Dict[str, object]:
        return {
            "total_candidates": self.total_candidates,
            "unique_candidates": self.unique_candidates,
            "unseen_count": self.unseen_count,
            "seen_count": self.seen_count,
            "unsaved_count": self.unsaved_count,
            "saved_count": self.saved_count,
            "selected_unseen": self.selected_unseen,
            "selected_seen": self.selected_seen,
            "tier_counts": dict(self.tier_counts),
            "selected_tier_counts": dict(self.selected_tier_counts),
        }


@dataclass
class DiversityResult(Generic[C]):
    selected: List[C]
    stats: SelectionStats


def identity_key(candidate: CandidateLike) -> Tuple[str, str]:
    return normalize_domain(candidate.website), normalize_company_name(candidate.name)


def dedupe_candidates(candidates: Sequence[C]) -> List[C]:
    """First occurrence wins; a repeat of either the domain or the name drops a candidate."""
    accepted_domains: Set[str] = set()
    accepted_names: Set[str] = set()
    unique: List[C] = []
    for candidate in candidates:
        domain, name = identity_key(candidate)
        if domain and domain in accepted_domains:
            continue
        if name and name in accepted_names:
            continue
        if domain:
            accepted_domains.add(domain)
        if name:
            accepted_names.add(name)
        unique.append(candidate)
    return unique


def classify_tier(domain: str, seen_domains: Set[str], saved_domains: Set[str]) -> int:
    is_seen = bool(domain) and domain in seen_domains
    is_saved = bool(domain) and domain in saved_domains
    if not is_seen and not is_saved:
        return TIER_FRESH
    if is_seen and not is_saved:
        return TIER_SEEN
    if not is_seen:
        return TIER_SAVED
    return TIER_SEEN_SAVED


def weighted_shuffle(items: Sequence[C], random_source: Callable[[], float] = random.random) -> List[C]:
    n = len(items)
    if n <= 1:
        return list(items)
    scored = [(index + (random_source() - 0.5) * n * JITTER_SPREAD, index) for index in range(n)]
    # Ties keep input order.
    scored.sort()
    return [items[index] for _, index in scored]


def select_diverse_companies(
    candidates: Sequence[C],
    seen_domains: Optional[Set[str]],
    target_count: int,
    add_randomness: bool = True,
    saved_domains: Optional[Set[str]] = None,
    random_source: Callable[[], float] = random.random,
) -> DiversityResult[C]:
    """Pick up to ``target_count`` candidates, fresh tiers first. Never raises."""
    seen = set(seen_domains or ())
    saved = set(saved_domains or ())
    stats = SelectionStats(total_candidates=len(candidates))

    unique = dedupe_candidates(candidates)
    stats.unique_candidates = len(unique)

    tiers: Dict[int, List[C]] = {tier: [] for tier in TIERS}
    tier_of: Dict[int, int] = {}
    for candidate in unique:
        tier = classify_tier(normalize_domain(candidate.website), seen, saved)
        tiers[tier].append(candidate)
        tier_of[id(candidate)] = tier

    for tier in TIERS:
        stats.tier_counts[tier] = len(tiers[tier])
    stats.unseen_count = len(tiers[TIER_FRESH]) + len(tiers[TIER_SAVED])
    stats.seen_count = len(tiers[TIER_SEEN]) + len(tiers[TIER_SEEN_SAVED])
    stats.unsaved_count = len(tiers[TIER_FRESH]) + len(tiers[TIER_SEEN])
    stats.saved_count = len(tiers[TIER_SAVED]) + len(tiers[TIER_SEEN_SAVED])

    ordered: List[C] = []
    for tier in TIERS:
        bucket = tiers[tier]
        ordered.extend(weighted_shuffle(bucket, random_source) if add_randomness else bucket)

    selected = ordered[: max(0, int(target_count))]

    for candidate in selected:
        tier = tier_of[id(candidate)]
        stats.selected_tier_counts[tier] += 1
    stats.selected_unseen = stats.selected_tier_counts[TIER_FRESH] + stats.selected_tier_counts[TIER_SAVED]
    stats.selected_seen = stats.selected_tier_counts[TIER_SEEN] + stats.selected_tier_counts[TIER_SEEN_SAVED]

    logger.info(
        "Selected %d of %d unique candidates (target=%d) tiers=%s selected=%s",
        len(selected),
        stats.unique_candidates,
        target_count,
        stats.tier_counts,
        [candidate.name for candidate in selected],
    )
    return DiversityResult(selected=selected, stats=stats)
