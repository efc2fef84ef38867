"""
Tests for the league service and the player stats updater.
"""

import sqlite3
import threading
import uuid

import pytest

from squad_league.exceptions import (
    ConflictError,
    NotFoundError,
    RemoteFetchError,
    RemoteWriteError,
    ValidationError,
)
from squad_league.models import AwardType, GameStatus
from squad_league.repository import LeagueRepository
from squad_league.service import LOCK_STRIPES, LeagueService, PlayerStatsUpdater, SquadResult


class FlakyRepository:
    """Wraps a real repository and fails reads or writes on demand."""

    def __init__(self, inner, *, fail_reads=False, fail_writes=False, always_conflict=False):
        self.inner = inner
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.always_conflict = always_conflict

    def get_player_rating(self, player_id):
        if self.fail_reads:
            raise sqlite3.OperationalError("disk I/O error")
        return self.inner.get_player_rating(player_id)

    def update_player_rating(self, player, expected_version):
        if self.fail_writes:
            raise sqlite3.OperationalError("database is locked")
        if self.always_conflict:
            return None
        return self.inner.update_player_rating(player, expected_version)


class StaleRepository(LeagueRepository):
    """A real repository whose game writes always find a newer player version."""

    def add_game(self, game, participants, ratings=()):
        return None

    def delete_game(self, game_id, ratings=()):
        return None


class TestPlayerStatsUpdater:
    """Read-modify-write of a player's stats."""

    def test_apply_win(self, service, team):
        player = service.add_player(team.id, "Robin")

        outcome = service.updater.apply_result(player.id, True)

        assert outcome.ok
        assert outcome.error is None
        assert outcome.before.wins == 0
        assert outcome.record.wins == 1
        assert outcome.record.version == 1
        assert service.get_player(player.id).win_percent == 100.0

    def test_missing_player_is_reported(self, service):
        outcome = service.updater.apply_result(uuid.uuid4(), True)

        assert not outcome.ok
        assert isinstance(outcome.error, NotFoundError)

    def test_read_failure_is_reported(self, repository, service, team):
        player = service.add_player(team.id, "Robin")
        updater = PlayerStatsUpdater(FlakyRepository(repository, fail_reads=True))

        outcome = updater.apply_result(player.id, True)

        assert not outcome.ok
        assert isinstance(outcome.error, RemoteFetchError)
        assert repository.get_player_rating(player.id).wins == 0

    def test_write_failure_is_reported(self, repository, service, team):
        player = service.add_player(team.id, "Robin")
        updater = PlayerStatsUpdater(FlakyRepository(repository, fail_writes=True))

        outcome = updater.apply_result(player.id, False)

        assert not outcome.ok
        assert isinstance(outcome.error, RemoteWriteError)

    def test_gives_up_after_repeated_conflicts(self, repository, service, team):
        player = service.add_player(team.id, "Robin")
        updater = PlayerStatsUpdater(FlakyRepository(repository, always_conflict=True), max_attempts=3)

        outcome = updater.apply_result(player.id, True)

        assert not outcome.ok
        assert outcome.attempts == 3
        assert isinstance(outcome.error, RemoteWriteError)

    def test_concurrent_wins_are_not_lost(self, service, team):
        """Two concurrent wins through one updater add exactly two wins."""
        player = service.add_player(team.id, "Robin")
        barrier = threading.Barrier(2)
        outcomes = []

        def submit():
            barrier.wait()
            outcomes.append(service.updater.apply_result(player.id, True))

        threads = [threading.Thread(target=submit) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert all(outcome.ok for outcome in outcomes)
        stored = service.get_player(player.id)
        assert stored.wins == 2
        assert stored.win_streak == 2

    def test_independent_updaters_are_not_lost(self, repository, service, team):
        """Separate updaters (as in separate processes) are reconciled by the version check."""
        player = service.add_player(team.id, "Robin")
        updaters = [PlayerStatsUpdater(repository, max_attempts=10) for _ in range(2)]
        barrier = threading.Barrier(2)
        outcomes = []

        def submit(updater):
            barrier.wait()
            for _ in range(5):
                outcomes.append(updater.apply_result(player.id, True))

        threads = [threading.Thread(target=submit, args=(u,)) for u in updaters]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert all(outcome.ok for outcome in outcomes)
        stored = repository.get_player_rating(player.id)
        assert stored.wins == 10
        assert stored.version == 10

    def test_players_sharing_a_lock_stripe(self, repository):
        """Locking players that map to the same stripe neither deadlocks nor leaks the lock."""
        updater = PlayerStatsUpdater(repository)
        first, second = uuid.UUID(int=1), uuid.UUID(int=1 + LOCK_STRIPES)

        with updater.locked([first, second, first]):
            pass

        outcome = updater.apply_result(second, True)
        assert isinstance(outcome.error, NotFoundError)


class TestRecordGame:

    def _squads(self, service, team, size_a=2, size_b=2):
        squad_a = [service.add_player(team.id, f"A{i}").id for i in range(size_a)]
        squad_b = [service.add_player(team.id, f"B{i}").id for i in range(size_b)]
        return squad_a, squad_b

    def test_updates_ratings_and_stats(self, service, team):
        squad_a, squad_b = self._squads(service, team)

        result = service.record_game(team.id, SquadResult(squad_a, 10), SquadResult(squad_b, 5))

        assert result.ok
        assert len(result.outcomes) == 4
        winners = [service.get_player(player_id) for player_id in squad_a]
        losers = [service.get_player(player_id) for player_id in squad_b]
        for player in winners:
            assert player.elo > 1500
            assert (player.elo_change, player.highest_elo) == (player.elo - 1500, player.elo)
            assert player.mu > 15.0
            assert player.wins == 1
        for player in losers:
            assert player.elo < 1500
            assert (player.elo_change, player.highest_elo) == (player.elo - 1500, 1500)
            assert player.mu < 15.0
            assert player.loss_streak == 1
        assert len({player.elo for player in winners}) == 1

    def test_snapshots_stored(self, repository, service, team):
        squad_a, squad_b = self._squads(service, team, 1, 1)

        result = service.record_game(team.id, SquadResult(squad_a, 1), SquadResult(squad_b, 3))

        participants = repository.list_game_participants(result.game.id)
        assert {p.squad for p in participants} == {"a", "b"}
        for participant in participants:
            assert participant.before.elo == 1500
            assert participant.is_winner == (participant.squad == "b")

    @pytest.mark.parametrize(
        "score_a, score_b",
        [(3, 3), (-1, 2)],
    )
    def test_invalid_scores(self, service, team, score_a, score_b):
        squad_a, squad_b = self._squads(service, team, 1, 1)
        with pytest.raises(ValidationError):
            service.record_game(team.id, SquadResult(squad_a, score_a), SquadResult(squad_b, score_b))

    def test_player_on_both_squads(self, service, team):
        squad_a, squad_b = self._squads(service, team, 1, 1)
        with pytest.raises(ValidationError):
            service.record_game(team.id, SquadResult(squad_a, 2), SquadResult(squad_a + squad_b, 1))

    def test_player_twice_in_one_squad(self, repository, service, team):
        """A repeated player is rejected before anything is written."""
        squad_a, squad_b = self._squads(service, team, 1, 1)

        with pytest.raises(ValidationError):
            service.record_game(team.id, SquadResult(squad_a * 2, 5), SquadResult(squad_b, 3))

        player = service.get_player(squad_a[0])
        assert (player.wins, player.elo, player.version) == (0, 1500, 0)
        assert repository.latest_game_id(player.id) is None

    def test_conflicting_write_leaves_nothing_behind(self, repository, service, team):
        squad_a, squad_b = self._squads(service, team, 1, 1)
        stale = LeagueService(StaleRepository(repository.path), PlayerStatsUpdater(repository, max_attempts=2))

        with pytest.raises(ConflictError):
            stale.record_game(team.id, SquadResult(squad_a, 5), SquadResult(squad_b, 3))

        for player_id in squad_a + squad_b:
            player = service.get_player(player_id)
            assert (player.wins, player.losses, player.elo, player.mu) == (0, 0, 1500, 15.0)
            assert repository.latest_game_id(player_id) is None

    def test_empty_squad(self, service, team):
        squad_a, _ = self._squads(service, team, 1, 0)
        with pytest.raises(ValidationError):
            service.record_game(team.id, SquadResult(squad_a, 2), SquadResult([], 1))

    def test_player_from_other_team(self, service, team):
        squad_a, _ = self._squads(service, team, 1, 0)
        other = service.create_team("Other")
        stranger = service.add_player(other.id, "Stranger")
        with pytest.raises(NotFoundError):
            service.record_game(team.id, SquadResult(squad_a, 2), SquadResult([stranger.id], 1))

    def test_delete_latest_game_reverts(self, service, team):
        squad_a, squad_b = self._squads(service, team, 1, 1)
        result = service.record_game(team.id, SquadResult(squad_a, 2), SquadResult(squad_b, 1))

        outcomes = service.delete_game(result.game.id)

        assert all(outcome.ok for outcome in outcomes)
        for player_id in squad_a + squad_b:
            player = service.get_player(player_id)
            assert (player.elo, player.wins, player.losses, player.win_percent) == (1500, 0, 0, 0.0)
            assert (player.mu, player.sigma) == (15.0, 4.0)
        with pytest.raises(NotFoundError):
            service.delete_game(result.game.id)

    def test_delete_older_game_refused(self, service, team):
        squad_a, squad_b = self._squads(service, team, 1, 1)
        first = service.record_game(team.id, SquadResult(squad_a, 2), SquadResult(squad_b, 1))
        service.record_game(team.id, SquadResult(squad_a, 0), SquadResult(squad_b, 1))

        with pytest.raises(ConflictError):
            service.delete_game(first.game.id)

    def test_failed_revert_keeps_game(self, repository, service, team):
        """When the restored ratings cannot be written the game and its snapshots stay."""
        squad_a, squad_b = self._squads(service, team, 1, 1)
        result = service.record_game(team.id, SquadResult(squad_a, 2), SquadResult(squad_b, 1))
        stale = LeagueService(StaleRepository(repository.path), PlayerStatsUpdater(repository, max_attempts=2))

        with pytest.raises(ConflictError):
            stale.delete_game(result.game.id)

        assert repository.get_game(result.game.id) is not None
        assert len(repository.list_game_participants(result.game.id)) == 2
        assert service.get_player(squad_a[0]).wins == 1

        outcomes = service.delete_game(result.game.id)
        assert all(outcome.ok for outcome in outcomes)
        assert service.get_player(squad_a[0]).wins == 0


class TestSeasons:

    def test_start_season_resets_ratings(self, service, team):
        player = service.add_player(team.id, "Robin")
        service.updater.apply_result(player.id, True)

        season = service.start_season(team.id)

        assert season.season_no == 1
        assert season.active
        reset = service.get_player(player.id)
        assert (reset.wins, reset.elo, reset.win_percent) == (0, 1500, 0.0)

    def test_cannot_start_twice(self, service, team):
        service.start_season(team.id)
        with pytest.raises(ConflictError):
            service.start_season(team.id)

    def test_end_and_start_next(self, service, team):
        service.start_season(team.id)

        ended, started = service.end_season(team.id, start_next=True)

        assert not ended.active
        assert ended.end_date is not None
        assert started.season_no == 2
        assert service.active_season(team.id).id == started.id
        assert [s.season_no for s in service.list_seasons(team.id)] == [1, 2]

    def test_end_without_active(self, service, team):
        with pytest.raises(NotFoundError):
            service.end_season(team.id)

    def test_end_season_archives_standings_and_awards(self, service, team):
        service.start_season(team.id)
        alice = service.add_player(team.id, "Alice")
        bob = service.add_player(team.id, "Bob")
        bench = service.add_player(team.id, "Bench")
        service.record_game(team.id, SquadResult([alice.id], 3), SquadResult([bob.id], 1))
        service.record_game(team.id, SquadResult([alice.id], 3), SquadResult([bob.id], 2))

        ended, _ = service.end_season(team.id)
        season, standings, awards = service.season_standings(ended.id)

        assert season.id == ended.id
        assert [entry.player_id for entry in standings] == [alice.id, bob.id]
        top = standings[0]
        assert (top.wins, top.losses, top.longest_win_streak, top.win_percent) == (2, 0, 2, 100.0)
        assert top.final_elo == service.get_player(alice.id).elo
        assert standings[1].games_played == 2
        assert {(award.award_type, award.player_id) for award in awards} == {
            (AwardType.HIGHEST_ELO_1ST, alice.id),
            (AwardType.HIGHEST_ELO_2ND, bob.id),
            (AwardType.MOST_WINS, alice.id),
            (AwardType.LONGEST_WIN_STREAK, alice.id),
        }
        assert bench.id not in {entry.player_id for entry in standings}

    def test_history_survives_the_reset(self, service, team):
        service.start_season(team.id)
        player = service.add_player(team.id, "Robin")
        rival = service.add_player(team.id, "Rival")
        service.record_game(team.id, SquadResult([player.id], 5), SquadResult([rival.id], 0))

        ended, started = service.end_season(team.id, start_next=True)

        assert service.get_player(player.id).wins == 0
        history = service.player_season_history(player.id)
        assert [(season.season_no, stats.wins) for season, stats in history] == [(1, 1)]
        assert history[0][0].id == ended.id
        assert {award.award_type for award in service.player_awards(player.id)} == {
            AwardType.HIGHEST_ELO_1ST,
            AwardType.MOST_WINS,
            AwardType.LONGEST_WIN_STREAK,
        }
        assert service.season_standings(started.id)[1] == []

    def test_season_without_games_has_no_awards(self, service, team):
        service.add_player(team.id, "Robin")
        service.start_season(team.id)

        ended, _ = service.end_season(team.id)

        assert service.season_standings(ended.id)[1:] == ([], [])

    def test_unknown_season_or_player(self, service):
        with pytest.raises(NotFoundError):
            service.season_standings(uuid.uuid4())
        with pytest.raises(NotFoundError):
            service.player_season_history(uuid.uuid4())

    def test_unknown_team(self, service):
        with pytest.raises(NotFoundError):
            service.start_season(uuid.uuid4())


class TestSessions:

    def test_create_session_schedules_round_robin(self, service, team):
        session, games = service.create_session(team.id, "Week 1", [["red", "blue", "green", "gold"]])

        assert session.active
        assert len(games) == 6
        assert [g.game_number for g in games] == [1, 2, 3, 4, 5, 6]
        assert {g.round_no for g in games} == {1}

        loaded_session, loaded_games = service.session_schedule(session.id)
        assert loaded_session.title == "Week 1"
        assert [g.id for g in loaded_games] == [g.id for g in games]

    def test_one_active_session_per_team(self, service, team):
        service.create_session(team.id, "Week 1", [["red", "blue"]])
        with pytest.raises(ConflictError):
            service.create_session(team.id, "Week 2", [["red", "blue"]])

    @pytest.mark.parametrize("title, rounds", [("", [["a", "b"]]), ("Week 1", []), ("Week 1", [[]])])
    def test_invalid_session(self, service, team, title, rounds):
        with pytest.raises(ValidationError):
            service.create_session(team.id, title, rounds)

    def test_record_score_and_complete(self, service, team):
        session, games = service.create_session(team.id, "Week 1", [["red", "blue"]])

        updated = service.record_scheduled_score(games[0].id, 4, 2)
        assert updated.status is GameStatus.COMPLETED
        assert (updated.squad_a_score, updated.squad_b_score) == (4, 2)

        closed = service.complete_session(session.id)
        assert not closed.active
        with pytest.raises(ConflictError):
            service.record_scheduled_score(games[0].id, 5, 2)
        with pytest.raises(ConflictError):
            service.complete_session(session.id)

        # A new session may start once the previous one is complete.
        service.create_session(team.id, "Week 2", [["red", "blue"]])

    def test_unknown_scheduled_game(self, service):
        with pytest.raises(NotFoundError):
            service.record_scheduled_score(uuid.uuid4(), 1, 0)


def test_league_service_defaults(repository):
    service = LeagueService(repository)
    assert isinstance(service.updater, PlayerStatsUpdater)
    assert service.default_sigma > 0
