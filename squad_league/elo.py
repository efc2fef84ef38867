"""
Elo adjustments for squad games.

The base movement comes from TrueSkill: both squads are rated with the
``trueskill`` library and each player's change in mu, scaled by
``MU_TO_ELO``, is the raw Elo change. It is then scaled by:
- Score influence: 1 + 0.05 * sqrt(margin / total)
- Underdog influence: 1 + (1 - E) * 0.15, with E = 1 / (1 + 10^((R_opp - R_self) / 400))
  (multiplied for winners, divided for losers)
- The game's weight and a penalty for lopsided squad sizes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple
import uuid

import trueskill

from .models import PlayerRating

SCORE_SCALING_FACTOR = 0.05
UNDERDOG_SCALING_FACTOR = 0.15
MU_TO_ELO = 100

GAME_WEIGHTS = {
    "heavy": 1.25,
    "light": 0.75,
}

MAX_TEAM_SIZE_DIFFERENCE = 3
SIZE_SCALING_FACTOR = 0.35
MIN_COUNTERACTION = 0.55

# Library defaults (beta, tau, draw probability); player mu/sigma are stored.
TRUESKILL_ENV = trueskill.TrueSkill()


@dataclass
class PlayerEloChange:
    """New skill estimate and Elo change of one player."""
    player_id: uuid.UUID
    mu: float
    sigma: float
    delta: int


@dataclass
class SquadEloChange:
    """Rating changes for one squad after a game."""
    average_elo: int
    expected: float
    won: bool
    players: List[PlayerEloChange] = field(default_factory=list)


def game_weight(label: str) -> float:
    """Multiplier for a game's weight label; unknown labels count as normal."""
    return GAME_WEIGHTS.get(label, 1.0)


def team_size_counteraction_factor(size_a: int, size_b: int) -> float:
    """
    Damp rating swings when squads are uneven.

    Equal squads, or squads so uneven the game is not meaningful, keep the
    full change.
    """
    difference = abs(size_a - size_b)
    if difference == 0 or difference > MAX_TEAM_SIZE_DIFFERENCE:
        return 1.0
    return max(MIN_COUNTERACTION, 1.0 - difference * SIZE_SCALING_FACTOR)


def average_elo(ratings: Iterable[int]) -> int:
    """Rounded mean rating of a squad, 0 for an empty squad."""
    ratings = list(ratings)
    if not ratings:
        return 0
    return round(sum(ratings) / len(ratings))


def expected_score(rating: float, opponent: float) -> float:
    """Expected score between 0 and 1 for ``rating`` against ``opponent``."""
    return 1.0 / (1.0 + 10 ** ((opponent - rating) / 400.0))


def score_influence(score_a: int, score_b: int) -> float:
    """Bonus multiplier that grows with the relative score margin."""
    total = score_a + score_b
    if total <= 0:
        return 1.0
    ratio = abs(score_a - score_b) / total
    return 1.0 + SCORE_SCALING_FACTOR * math.sqrt(ratio)


def rate_squads(
    squad_a: Sequence[PlayerRating],
    squad_b: Sequence[PlayerRating],
    a_won: bool,
) -> Tuple[List[trueskill.Rating], List[trueskill.Rating]]:
    """New TrueSkill ratings for both squads, in the order given."""
    group_a = [TRUESKILL_ENV.create_rating(p.mu, p.sigma) for p in squad_a]
    group_b = [TRUESKILL_ENV.create_rating(p.mu, p.sigma) for p in squad_b]
    ranks = [0, 1] if a_won else [1, 0]
    new_a, new_b = TRUESKILL_ENV.rate([group_a, group_b], ranks=ranks)
    return list(new_a), list(new_b)


def player_elo_change(
    base_change: float,
    won: bool,
    expected: float,
    *,
    score_multiplier: float = 1.0,
    weight: float = 1.0,
    counteraction: float = 1.0,
) -> int:
    """
    Elo change of one player.

    Args:
        base_change: Raw change, the player's mu movement times ``MU_TO_ELO``
        won: Whether the player's squad won
        expected: Expected score of the player's squad
        score_multiplier: Result of ``score_influence``
        weight: Result of ``game_weight``
        counteraction: Result of ``team_size_counteraction_factor``

    Returns:
        Signed integer change
    """
    # The less a squad was expected to win, the more a win pays and the
    # less a loss costs.
    underdog = 1.0 + (1.0 - expected) * UNDERDOG_SCALING_FACTOR
    if won:
        change = base_change * score_multiplier * underdog
    else:
        change = base_change * score_multiplier / underdog

    return round(change * weight * counteraction)


def compute_game_changes(
    squad_a: Sequence[PlayerRating],
    squad_b: Sequence[PlayerRating],
    score_a: int,
    score_b: int,
    weight_label: str = "normal",
) -> Tuple[SquadEloChange, SquadEloChange]:
    """Rating changes for both squads of a decided game."""
    avg_a = average_elo(p.elo for p in squad_a)
    avg_b = average_elo(p.elo for p in squad_b)
    a_won = score_a > score_b

    new_a, new_b = rate_squads(squad_a, squad_b, a_won)
    shared = dict(
        score_multiplier=score_influence(score_a, score_b),
        weight=game_weight(weight_label),
        counteraction=team_size_counteraction_factor(len(squad_a), len(squad_b)),
    )

    changes = []
    for players, new_ratings, average, opponent, won in (
        (squad_a, new_a, avg_a, avg_b, a_won),
        (squad_b, new_b, avg_b, avg_a, not a_won),
    ):
        expected = expected_score(average, opponent)
        change = SquadEloChange(average_elo=average, expected=expected, won=won)
        for player, rating in zip(players, new_ratings):
            change.players.append(PlayerEloChange(
                player_id=player.id,
                mu=rating.mu,
                sigma=rating.sigma,
                delta=player_elo_change(
                    (rating.mu - player.mu) * MU_TO_ELO,
                    won,
                    expected,
                    **shared,
                ),
            ))
        changes.append(change)

    return changes[0], changes[1]


__all__ = [
    "GAME_WEIGHTS",
    "MU_TO_ELO",
    "PlayerEloChange",
    "SquadEloChange",
    "average_elo",
    "compute_game_changes",
    "expected_score",
    "game_weight",
    "player_elo_change",
    "rate_squads",
    "score_influence",
    "team_size_counteraction_factor",
]
