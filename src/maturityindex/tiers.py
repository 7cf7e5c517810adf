"""Map an overall 0-100 score to a maturity tier."""

from __future__ import annotations

import math
from enum import Enum


class Tier(str, Enum):
    """Overall maturity tier, ordered low to high."""

    PRE_CRAWL = "Pre-crawl"
    CRAWL = "Crawl"
    WALK = "Walk"
    RUN = "Run"
    FLY = "Fly"

    @property
    def emoji(self) -> str:
        return TIER_EMOJI[self]


TIER_EMOJI: dict[Tier, str] = {
    Tier.PRE_CRAWL: "\U0001f476",
    Tier.CRAWL: "\U0001f422",
    Tier.WALK: "\U0001f6b6",
    Tier.RUN: "\U0001f3c3",
    Tier.FLY: "\U0001f9b8",
}

# Exclusive upper bounds; anything at or above the last one is Fly.
TIER_THRESHOLDS: tuple[tuple[float, Tier], ...] = (
    (10.0, Tier.PRE_CRAWL),
    (30.0, Tier.CRAWL),
    (55.0, Tier.WALK),
    (80.0, Tier.RUN),
)


def classify(score100: float) -> Tier:
    """Return the tier for a score; total over all floats, NaN included."""
    if math.isnan(score100):
        return Tier.PRE_CRAWL
    for upper, tier in TIER_THRESHOLDS:
        if score100 < upper:
            return tier
    return Tier.FLY
