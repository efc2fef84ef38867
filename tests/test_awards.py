"""
Unit tests for end-of-season awards.
"""

import uuid

from squad_league.awards import elo_podium, season_awards
from squad_league.models import AwardType, SeasonStats

SEASON = uuid.uuid4()
TEAM = uuid.uuid4()


def _stats(final_elo, wins=0, losses=0, streak=0):
    return SeasonStats(
        season_id=SEASON,
        team_id=TEAM,
        player_id=uuid.uuid4(),
        final_elo=final_elo,
        final_mu=15.0,
        final_sigma=4.0,
        highest_elo=final_elo,
        longest_win_streak=streak,
        wins=wins,
        losses=losses,
    )


def _podium(stats):
    return {(award.player_id, award.award_type, award.award_value) for award in elo_podium(stats)}


class TestEloPodium:

    def test_three_distinct_places(self):
        first, second, third, fourth = (_stats(elo) for elo in (1700, 1600, 1550, 1500))

        assert _podium([fourth, second, first, third]) == {
            (first.player_id, AwardType.HIGHEST_ELO_1ST, 1700),
            (second.player_id, AwardType.HIGHEST_ELO_2ND, 1600),
            (third.player_id, AwardType.HIGHEST_ELO_3RD, 1550),
        }

    def test_tie_for_first_skips_second(self):
        """Two players sharing first place push the next rating to third."""
        a, b, c, d = (_stats(elo) for elo in (1650, 1650, 1600, 1550))

        assert _podium([a, b, c, d]) == {
            (a.player_id, AwardType.HIGHEST_ELO_1ST, 1650),
            (b.player_id, AwardType.HIGHEST_ELO_1ST, 1650),
            (c.player_id, AwardType.HIGHEST_ELO_3RD, 1600),
        }

    def test_tie_for_second_is_shared(self):
        a, b, c, d = (_stats(elo) for elo in (1700, 1600, 1600, 1500))

        assert _podium([a, b, c, d]) == {
            (a.player_id, AwardType.HIGHEST_ELO_1ST, 1700),
            (b.player_id, AwardType.HIGHEST_ELO_2ND, 1600),
            (c.player_id, AwardType.HIGHEST_ELO_2ND, 1600),
            (d.player_id, AwardType.HIGHEST_ELO_3RD, 1500),
        }

    def test_everyone_tied(self):
        stats = [_stats(1500), _stats(1500)]
        assert {award.award_type for award in elo_podium(stats)} == {AwardType.HIGHEST_ELO_1ST}
        assert len(elo_podium(stats)) == 2

    def test_no_players(self):
        assert elo_podium([]) == []
        assert season_awards([]) == []


class TestSeasonAwards:

    def test_most_wins_and_streak_ties(self):
        a = _stats(1600, wins=4, losses=1, streak=3)
        b = _stats(1550, wins=4, losses=2, streak=2)
        c = _stats(1500, wins=1, losses=4, streak=3)

        awards = season_awards([a, b, c])

        most_wins = {award.player_id for award in awards if award.award_type is AwardType.MOST_WINS}
        streaks = {award.player_id for award in awards if award.award_type is AwardType.LONGEST_WIN_STREAK}
        assert most_wins == {a.player_id, b.player_id}
        assert streaks == {a.player_id, c.player_id}
        assert all(award.season_id == SEASON for award in awards)

    def test_no_wins_no_win_awards(self):
        awards = season_awards([_stats(1500, losses=2), _stats(1480, losses=3)])
        assert {award.award_type for award in awards} == {
            AwardType.HIGHEST_ELO_1ST,
            AwardType.HIGHEST_ELO_2ND,
        }
