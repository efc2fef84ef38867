"""
Tests for streak and win-percent bookkeeping.
"""

import uuid

import pytest

from squad_league.models import PlayerRating, StatsSnapshot
from squad_league.stats import apply_result, record_result, revert_result, win_percent


def make_player(**overrides):
    fields = dict(id=uuid.uuid4(), team_id=uuid.uuid4(), name="Sam")
    fields.update(overrides)
    return PlayerRating(**fields)


class TestWinPercent:

    def test_no_games(self):
        assert win_percent(0, 0) == 0.0

    def test_rounded_to_two_decimals(self):
        assert win_percent(1, 2) == 33.33
        assert win_percent(2, 1) == 66.67


class TestApplyResult:
    """Tests for folding a single result into a record."""

    def test_first_win(self):
        updated = apply_result(make_player(), True)

        assert updated.wins == 1
        assert updated.losses == 0
        assert updated.win_streak == 1
        assert updated.loss_streak == 0
        assert updated.longest_win_streak == 1
        assert updated.win_percent == 100.0

    def test_first_loss(self):
        updated = apply_result(make_player(), False)

        assert updated.losses == 1
        assert updated.loss_streak == 1
        assert updated.win_streak == 0
        assert updated.win_percent == 0.0

    def test_win_resets_loss_streak(self):
        player = make_player(wins=1, losses=3, loss_streak=3, longest_win_streak=1)
        updated = apply_result(player, True)

        assert updated.loss_streak == 0
        assert updated.win_streak == 1
        assert updated.longest_win_streak == 1
        assert updated.win_percent == 40.0

    def test_loss_resets_win_streak_but_keeps_longest(self):
        player = make_player(wins=4, win_streak=4, longest_win_streak=4)
        updated = apply_result(player, False)

        assert updated.win_streak == 0
        assert updated.loss_streak == 1
        assert updated.longest_win_streak == 4
        assert updated.win_percent == 80.0

    def test_longest_streak_grows(self):
        player = make_player(wins=3, win_streak=3, longest_win_streak=3)
        assert apply_result(player, True).longest_win_streak == 4

    def test_input_is_not_mutated(self):
        player = make_player()
        apply_result(player, True)
        assert player.wins == 0

    def test_identity_and_rating_untouched(self):
        player = make_player(elo=1620, version=7)
        updated = apply_result(player, False)

        assert updated.id == player.id
        assert updated.elo == 1620
        assert updated.version == 7


class TestRevertResult:
    """Restoring a stored snapshot undoes an applied result."""

    @pytest.mark.parametrize("is_winner", [True, False])
    def test_apply_then_revert_restores(self, is_winner):
        player = make_player(wins=5, losses=2, win_streak=2, longest_win_streak=3, win_percent=71.43)
        update = record_result(player, is_winner)

        assert update.after != player
        assert revert_result(update.after, update.snapshot) == player

    def test_revert_keeps_current_version(self):
        player = make_player(wins=1, version=2)
        current = make_player(id=player.id, team_id=player.team_id, wins=2, version=9)

        reverted = revert_result(current, StatsSnapshot.of(player))
        assert reverted.wins == 1
        assert reverted.version == 9
