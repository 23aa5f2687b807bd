"""Resolve a free-text service description against the catalog."""

import logging
import math
from dataclasses import dataclass

from hsa_claims_engine.catalog import SERVICE_CATALOG, CatalogEntry

logger = logging.getLogger(__name__)

EXACT_MATCH_CONFIDENCE = 100
NO_MATCH_CONFIDENCE = 30


@dataclass(frozen=True)
class MatchResult:
    entry: CatalogEntry | None
    confidence: int
    exact_match: bool


def match_service(query: str, catalog: tuple[CatalogEntry, ...] = SERVICE_CATALOG) -> MatchResult:
    """Find the best catalog entry for a query and score the match (0-100).

    Scoring:
    - Exact name match (case/whitespace-insensitive): 100
    - Containment either way, qualified entry: 70-95 scaled by length ratio
    - Containment either way, non-qualified entry: 50-70 scaled by length ratio
    - Nothing contained: 30 with no entry

    The shortest contained name wins; ties keep catalog order.
    """
    normalized = query.strip().lower()

    for entry in catalog:
        if entry.name.lower() == normalized:
            return MatchResult(entry=entry, confidence=EXACT_MATCH_CONFIDENCE, exact_match=True)

    candidates = [
        entry for entry in catalog if entry.name.lower() in normalized or normalized in entry.name.lower()
    ]
    if not candidates:
        logger.info("No catalog match for %r", query)
        return MatchResult(entry=None, confidence=NO_MATCH_CONFIDENCE, exact_match=False)

    # min() returns the first of equal keys, so catalog order breaks ties
    best = min(candidates, key=lambda entry: len(entry.name))
    length_ratio = min(len(best.name), len(normalized)) / max(len(best.name), len(normalized))

    if best.irs_qualified:
        confidence = _round_half_up(70 + 25 * length_ratio)
    else:
        confidence = _round_half_up(50 + 20 * length_ratio)

    logger.info("Catalog match for %r: %s (%d%% confidence)", query, best.name, confidence)
    return MatchResult(entry=best, confidence=confidence, exact_match=False)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
