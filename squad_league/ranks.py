"""Rank tiers shown next to a player's rating."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Rank:
    icon: str
    name: str


# Highest floor first; a rating belongs to the first tier whose floor it reaches.
RANK_LADDER: Tuple[Tuple[int, Rank], ...] = (
    (2200, Rank("👑", "Apex")),
    (2000, Rank("⚡", "Legend")),
    (1800, Rank("🏆", "Master")),
    (1600, Rank("💎", "Diamond")),
    (1400, Rank("🌟", "Platinum")),
    (1200, Rank("⚔️", "Elite")),
    (800, Rank("🛡️", "Competitor")),
)

RECRUIT = Rank("👶", "Recruit")


def classify(rating: float) -> Rank:
    """Map a rating to its tier."""

    for floor, rank in RANK_LADDER:
        if rating >= floor:
            return rank
    return RECRUIT


__all__ = ["RANK_LADDER", "RECRUIT", "Rank", "classify"]
