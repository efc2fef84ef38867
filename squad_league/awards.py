"""End-of-season awards computed from the archived standings."""

from __future__ import annotations

from operator import attrgetter
from typing import Callable, List, Sequence

from .models import AwardType, PlayerAward, SeasonStats


def _award_all(
    stats: Sequence[SeasonStats],
    award_type: AwardType,
    value: int,
    key: Callable[[SeasonStats], int],
) -> List[PlayerAward]:
    return [
        PlayerAward(
            season_id=entry.season_id,
            team_id=entry.team_id,
            player_id=entry.player_id,
            award_type=award_type,
            award_value=value,
        )
        for entry in stats
        if key(entry) == value
    ]


def elo_podium(stats: Sequence[SeasonStats]) -> List[PlayerAward]:
    """Top-three final Elo awards; tied players share a place.

    A tie for first skips second place: the next distinct rating is awarded
    third.
    """

    distinct = sorted({entry.final_elo for entry in stats}, reverse=True)
    if not distinct:
        return []

    final_elo = attrgetter("final_elo")
    first = _award_all(stats, AwardType.HIGHEST_ELO_1ST, distinct[0], final_elo)
    awards = list(first)
    if len(first) == 1 and len(distinct) > 1:
        awards.extend(_award_all(stats, AwardType.HIGHEST_ELO_2ND, distinct[1], final_elo))
        if len(distinct) > 2:
            awards.extend(_award_all(stats, AwardType.HIGHEST_ELO_3RD, distinct[2], final_elo))
    elif len(distinct) > 1:
        awards.extend(_award_all(stats, AwardType.HIGHEST_ELO_3RD, distinct[1], final_elo))
    return awards


def season_awards(stats: Sequence[SeasonStats]) -> List[PlayerAward]:
    """All awards for a finished season: Elo podium, most wins, longest win streak."""

    awards = elo_podium(stats)

    most_wins = max((entry.wins for entry in stats), default=0)
    if most_wins > 0:
        awards.extend(_award_all(stats, AwardType.MOST_WINS, most_wins, attrgetter("wins")))

    longest = max((entry.longest_win_streak for entry in stats), default=0)
    if longest > 0:
        awards.extend(
            _award_all(stats, AwardType.LONGEST_WIN_STREAK, longest, attrgetter("longest_win_streak"))
        )
    return awards


__all__ = ["elo_podium", "season_awards"]
