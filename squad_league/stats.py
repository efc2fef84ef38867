"""Win/loss streak bookkeeping for a player after a game."""

from __future__ import annotations

from dataclasses import dataclass, replace

from .models import PlayerRating, StatsSnapshot


@dataclass(frozen=True)
class StatsUpdate:
    """The record before and after one result was applied."""

    before: PlayerRating
    after: PlayerRating

    @property
    def snapshot(self) -> StatsSnapshot:
        return StatsSnapshot.of(self.before)


def win_percent(wins: int, losses: int) -> float:
    """Percentage of games won, rounded to two decimals (0.0 with no games)."""

    played = wins + losses
    if played == 0:
        return 0.0
    return round(wins / played * 100, 2)


def apply_result(current: PlayerRating, is_winner: bool) -> PlayerRating:
    """Return ``current`` with one more win or loss folded into its stats."""

    if is_winner:
        wins = current.wins + 1
        losses = current.losses
        win_streak = current.win_streak + 1
        loss_streak = 0
    else:
        wins = current.wins
        losses = current.losses + 1
        win_streak = 0
        loss_streak = current.loss_streak + 1

    return replace(
        current,
        wins=wins,
        losses=losses,
        win_streak=win_streak,
        loss_streak=loss_streak,
        longest_win_streak=max(current.longest_win_streak, win_streak),
        win_percent=win_percent(wins, losses),
    )


def record_result(current: PlayerRating, is_winner: bool) -> StatsUpdate:
    return StatsUpdate(before=current, after=apply_result(current, is_winner))


def revert_result(current: PlayerRating, before: StatsSnapshot) -> PlayerRating:
    """Restore the stat fields stored in ``before`` onto ``current``.

    Used when a recorded game is deleted: the game keeps the snapshot taken
    before it was applied. Identity and ``version`` come from ``current``.
    """

    return replace(
        current,
        wins=before.wins,
        losses=before.losses,
        win_streak=before.win_streak,
        loss_streak=before.loss_streak,
        longest_win_streak=before.longest_win_streak,
        win_percent=before.win_percent,
        mu=before.mu,
        sigma=before.sigma,
        elo=before.elo,
        highest_elo=before.highest_elo,
        elo_change=before.elo_change,
    )


__all__ = ["StatsUpdate", "apply_result", "record_result", "revert_result", "win_percent"]
