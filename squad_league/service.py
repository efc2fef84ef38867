"""League operations built on top of the repository.

Single-player stats updates never raise: they return an ``UpdateOutcome``
that says whether the write landed. Everything else raises a ``LeagueError``
subclass, which the API turns into an HTTP status.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, TypeVar
import uuid

from .awards import season_awards
from .config import Config
from .elo import PlayerEloChange, compute_game_changes
from .exceptions import (
    ConflictError,
    LeagueError,
    NotFoundError,
    RemoteFetchError,
    RemoteWriteError,
    ValidationError,
)
from .models import (
    GameParticipant,
    GameRecord,
    PlayerAward,
    PlaySession,
    PlayerRating,
    ScheduledGame,
    Season,
    SeasonStats,
    StatsSnapshot,
    Team,
    utcnow,
)
from .ranks import Rank, classify
from .repository import LeagueRepository
from .scheduling import number_games
from .stats import apply_result, revert_result

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOCK_STRIPES = 64


@dataclass(frozen=True)
class UpdateOutcome:
    """Result of one read-modify-write of a player's rating."""

    player_id: uuid.UUID
    ok: bool
    record: Optional[PlayerRating] = None
    before: Optional[PlayerRating] = None
    error: Optional[LeagueError] = None
    attempts: int = 0

    @classmethod
    def success(cls, before: PlayerRating, record: PlayerRating, attempts: int) -> "UpdateOutcome":
        return cls(player_id=record.id, ok=True, record=record, before=before, attempts=attempts)

    @classmethod
    def failure(cls, player_id: uuid.UUID, error: LeagueError, attempts: int) -> "UpdateOutcome":
        return cls(player_id=player_id, ok=False, error=error, attempts=attempts)


class PlayerStatsUpdater:
    """Applies game results to stored player ratings without losing updates.

    Updates for the same player are serialized through a lock (one of a fixed
    set of ``LOCK_STRIPES``, picked by player id), and every write is
    conditional on the version that was read, so writers in other processes
    are caught as well. A conflicting write is retried from a fresh read up
    to ``max_attempts`` times.
    """

    def __init__(self, repository: LeagueRepository, *, max_attempts: Optional[int] = None) -> None:
        self._repository = repository
        self._max_attempts = max_attempts or Config.UPDATE_ATTEMPTS
        self._locks = tuple(threading.Lock() for _ in range(LOCK_STRIPES))

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def _stripe(self, player_id: uuid.UUID) -> int:
        return player_id.int % len(self._locks)

    @contextmanager
    def locked(self, player_ids: Iterable[uuid.UUID]) -> Iterator[None]:
        """Hold the locks of every given player, taken in stripe order."""

        stripes = sorted({self._stripe(player_id) for player_id in player_ids})
        with ExitStack() as stack:
            for stripe in stripes:
                stack.enter_context(self._locks[stripe])
            yield

    def update(
        self,
        player_id: uuid.UUID,
        mutate: Callable[[PlayerRating], PlayerRating],
        *,
        operation: str = "update_player",
    ) -> UpdateOutcome:
        with self.locked([player_id]):
            for attempt in range(1, self._max_attempts + 1):
                try:
                    current = self._repository.get_player_rating(player_id)
                except sqlite3.Error as exc:
                    error = RemoteFetchError(operation, exc)
                    logger.error("Could not read player %s: %s", player_id, exc)
                    return UpdateOutcome.failure(player_id, error, attempt)

                if current is None:
                    logger.warning("Player %s not found during %s", player_id, operation)
                    return UpdateOutcome.failure(player_id, NotFoundError("Player", player_id), attempt)

                try:
                    stored = self._repository.update_player_rating(mutate(current), current.version)
                except sqlite3.Error as exc:
                    error = RemoteWriteError(operation, exc)
                    logger.error("Could not write player %s: %s", player_id, exc)
                    return UpdateOutcome.failure(player_id, error, attempt)

                if stored is not None:
                    return UpdateOutcome.success(current, stored, attempt)

                logger.warning(
                    "Version conflict on player %s (attempt %d/%d)",
                    player_id,
                    attempt,
                    self._max_attempts,
                )

        error = RemoteWriteError(operation, f"version conflict after {self._max_attempts} attempts")
        logger.error("Giving up on player %s: %s", player_id, error)
        return UpdateOutcome.failure(player_id, error, self._max_attempts)

    def apply_result(self, player_id: uuid.UUID, is_winner: bool) -> UpdateOutcome:
        return self.update(
            player_id,
            lambda current: apply_result(current, is_winner),
            operation="apply_result",
        )


@dataclass(frozen=True)
class SquadResult:
    player_ids: Sequence[uuid.UUID]
    score: int


@dataclass(frozen=True)
class GameOutcome:
    game: GameRecord
    outcomes: List[UpdateOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)


@dataclass(frozen=True)
class LeaderboardEntry:
    position: int
    player: PlayerRating
    rank: Rank


class LeagueService:
    """Team, season, session and game workflows."""

    def __init__(
        self,
        repository: LeagueRepository,
        updater: Optional[PlayerStatsUpdater] = None,
        *,
        default_elo: Optional[int] = None,
        default_mu: Optional[float] = None,
        default_sigma: Optional[float] = None,
    ) -> None:
        self.repository = repository
        self.updater = updater or PlayerStatsUpdater(repository)
        self.default_elo = default_elo or Config.DEFAULT_ELO
        self.default_mu = default_mu or Config.DEFAULT_MU
        self.default_sigma = default_sigma or Config.DEFAULT_SIGMA

    # Storage access ----------------------------------------------------
    def _fetch(self, operation: str, func: Callable[..., T], *args, **kwargs) -> T:
        try:
            return func(*args, **kwargs)
        except sqlite3.Error as exc:
            logger.error("Storage read failed during %s: %s", operation, exc)
            raise RemoteFetchError(operation, exc) from exc

    def _write(self, operation: str, func: Callable[..., T], *args, **kwargs) -> T:
        try:
            return func(*args, **kwargs)
        except sqlite3.Error as exc:
            logger.error("Storage write failed during %s: %s", operation, exc)
            raise RemoteWriteError(operation, exc) from exc

    def _require_team(self, team_id: uuid.UUID) -> Team:
        team = self._fetch("get_team", self.repository.get_team, team_id)
        if team is None:
            raise NotFoundError("Team", team_id)
        return team

    def _team_ratings(
        self,
        operation: str,
        team_id: uuid.UUID,
        player_ids: Sequence[uuid.UUID],
    ) -> Dict[uuid.UUID, PlayerRating]:
        ratings = {
            player.id: player
            for player in self._fetch(operation, self.repository.get_player_ratings, player_ids)
        }
        for player_id in player_ids:
            player = ratings.get(player_id)
            if player is None or player.team_id != team_id:
                raise NotFoundError("Player", player_id)
        return ratings

    # Teams and players -------------------------------------------------
    def create_team(self, name: str) -> Team:
        if not name or not name.strip():
            raise ValidationError("Team name is required")
        team = self._write("create_team", self.repository.create_team, name.strip())
        logger.info("Created team %s (%s)", team.name, team.id)
        return team

    def add_player(self, team_id: uuid.UUID, name: str) -> PlayerRating:
        if not name or not name.strip():
            raise ValidationError("Player name is required")
        self._require_team(team_id)
        return self._write(
            "create_player",
            self.repository.create_player,
            team_id,
            name.strip(),
            elo=self.default_elo,
            mu=self.default_mu,
            sigma=self.default_sigma,
        )

    def get_player(self, player_id: uuid.UUID) -> PlayerRating:
        player = self._fetch("get_player", self.repository.get_player_rating, player_id)
        if player is None:
            raise NotFoundError("Player", player_id)
        return player

    def search_players(
        self,
        text: str,
        *,
        team_id: Optional[uuid.UUID] = None,
        limit: int = 10,
    ) -> List[PlayerRating]:
        if not text.strip():
            return []
        return self._fetch(
            "search_players",
            self.repository.search_players,
            text.strip(),
            team_id=team_id,
            limit=limit,
        )

    def leaderboard(self, team_id: uuid.UUID, *, played_only: bool = False) -> List[LeaderboardEntry]:
        self._require_team(team_id)
        players = self._fetch(
            "leaderboard",
            self.repository.list_player_ratings,
            team_id,
            played_only=played_only,
        )
        return [
            LeaderboardEntry(position=index + 1, player=player, rank=classify(player.elo))
            for index, player in enumerate(players)
        ]

    # Games -------------------------------------------------------------
    def record_game(
        self,
        team_id: uuid.UUID,
        squad_a: SquadResult,
        squad_b: SquadResult,
        *,
        weight: str = "normal",
    ) -> GameOutcome:
        """Store a played game and move every participant's rating and stats.

        The game, its participants and every new rating are written in one
        transaction: either all of them land or none do.
        """

        ids_a = list(squad_a.player_ids)
        ids_b = list(squad_b.player_ids)
        if not ids_a or not ids_b:
            raise ValidationError("Both squads need at least one player")
        if len(set(ids_a)) != len(ids_a) or len(set(ids_b)) != len(ids_b):
            raise ValidationError("A player cannot be listed twice in a squad")
        if set(ids_a) & set(ids_b):
            raise ValidationError("A player cannot be on both squads")
        if squad_a.score < 0 or squad_b.score < 0:
            raise ValidationError("Scores cannot be negative")
        if squad_a.score == squad_b.score:
            raise ValidationError("Games cannot end in a draw")

        self._require_team(team_id)
        game = GameRecord(
            id=uuid.uuid4(),
            team_id=team_id,
            squad_a_score=squad_a.score,
            squad_b_score=squad_b.score,
            weight=weight,
        )

        with self.updater.locked(ids_a + ids_b):
            for attempt in range(1, self.updater.max_attempts + 1):
                ratings = self._team_ratings("record_game", team_id, ids_a + ids_b)
                change_a, change_b = compute_game_changes(
                    [ratings[player_id] for player_id in ids_a],
                    [ratings[player_id] for player_id in ids_b],
                    squad_a.score,
                    squad_b.score,
                    weight_label=weight,
                )

                writes = []
                participants = []
                for squad_label, change in (("a", change_a), ("b", change_b)):
                    for player_change in change.players:
                        current = ratings[player_change.player_id]
                        updated = _apply_game(current, change.won, player_change)
                        writes.append((updated, current.version))
                        participants.append(GameParticipant(
                            game_id=game.id,
                            player_id=current.id,
                            squad=squad_label,
                            is_winner=change.won,
                            elo_after=updated.elo,
                            before=StatsSnapshot.of(current),
                        ))

                stored = self._write("record_game", self.repository.add_game, game, participants, writes)
                if stored is not None:
                    logger.info(
                        "Game %s recorded (%d-%d) for %d players",
                        game.id,
                        squad_a.score,
                        squad_b.score,
                        len(stored),
                    )
                    outcomes = [UpdateOutcome.success(ratings[record.id], record, attempt) for record in stored]
                    return GameOutcome(game=game, outcomes=outcomes)

                logger.warning(
                    "Version conflict recording game %s (attempt %d/%d)",
                    game.id,
                    attempt,
                    self.updater.max_attempts,
                )

        logger.error("Giving up on game %s after %d attempts", game.id, self.updater.max_attempts)
        raise ConflictError(
            f"Game {game.id} not recorded: players changed concurrently",
            "Players were updated while the game was saved, please try again",
        )

    def delete_game(self, game_id: uuid.UUID) -> List[UpdateOutcome]:
        """Remove a game and restore its players' stats from the stored snapshots.

        Only allowed while the game is still the latest one for each of its
        players; older games would need a full recalculation. The restored
        ratings and the deletion are written together, so a failed revert
        keeps the game and its snapshots.
        """

        game = self._fetch("delete_game", self.repository.get_game, game_id)
        if game is None:
            raise NotFoundError("Game", game_id)

        participants = self._fetch("delete_game", self.repository.list_game_participants, game_id)
        player_ids = [participant.player_id for participant in participants]

        with self.updater.locked(player_ids):
            for attempt in range(1, self.updater.max_attempts + 1):
                self._require_latest(game_id, participants)
                ratings = self._team_ratings("delete_game", game.team_id, player_ids)
                writes = [
                    (
                        revert_result(ratings[participant.player_id], participant.before),
                        ratings[participant.player_id].version,
                    )
                    for participant in participants
                ]

                stored = self._write("delete_game", self.repository.delete_game, game_id, writes)
                if stored is not None:
                    logger.info("Deleted game %s and reverted %d players", game_id, len(stored))
                    return [UpdateOutcome.success(ratings[record.id], record, attempt) for record in stored]

                if self._fetch("delete_game", self.repository.get_game, game_id) is None:
                    raise NotFoundError("Game", game_id)
                logger.warning(
                    "Version conflict deleting game %s (attempt %d/%d)",
                    game_id,
                    attempt,
                    self.updater.max_attempts,
                )

        logger.error("Giving up on deleting game %s after %d attempts", game_id, self.updater.max_attempts)
        raise ConflictError(
            f"Game {game_id} not deleted: players changed concurrently",
            "Players were updated while the game was deleted, please try again",
        )

    def _require_latest(self, game_id: uuid.UUID, participants: Sequence[GameParticipant]) -> None:
        for participant in participants:
            latest = self._fetch("delete_game", self.repository.latest_game_id, participant.player_id)
            if latest != game_id:
                raise ConflictError(
                    f"Game {game_id} is not the latest game of player {participant.player_id}",
                    "Only a player's most recent game can be deleted",
                )

    # Seasons -----------------------------------------------------------
    def active_season(self, team_id: uuid.UUID) -> Optional[Season]:
        self._require_team(team_id)
        return self._fetch("active_season", self.repository.get_active_season, team_id)

    def list_seasons(self, team_id: uuid.UUID) -> List[Season]:
        self._require_team(team_id)
        return self._fetch("list_seasons", self.repository.list_seasons, team_id)

    def start_season(self, team_id: uuid.UUID) -> Season:
        """Open the next numbered season and reset the team's ratings."""

        if self.active_season(team_id) is not None:
            raise ConflictError(
                f"Team {team_id} already has an active season",
                "Cannot start a new season while another is active.",
            )

        last_no = self._fetch("start_season", self.repository.last_season_no, team_id)
        season = Season(id=uuid.uuid4(), team_id=team_id, season_no=last_no + 1)
        self._write("start_season", self.repository.add_season, season)

        reset = self._write(
            "start_season",
            self.repository.reset_team_ratings,
            team_id,
            elo=self.default_elo,
            mu=self.default_mu,
            sigma=self.default_sigma,
        )
        logger.info("Started season %d for team %s; reset %d players", season.season_no, team_id, reset)
        return season

    def end_season(self, team_id: uuid.UUID, *, start_next: bool = False) -> Tuple[Season, Optional[Season]]:
        """Close the active season, archiving every player who played in it.

        The archive holds each player's final rating and season record, and
        the season's awards are computed from it. Ratings are reset when the
        next season starts.
        """

        active = self.active_season(team_id)
        if active is None:
            raise NotFoundError("Active season", team_id)

        players = self._fetch(
            "end_season",
            self.repository.list_player_ratings,
            team_id,
            played_only=True,
        )
        stats = [SeasonStats.archive(active.id, player) for player in players]
        awards = season_awards(stats)

        ended_at = utcnow()
        if not self._write("end_season", self.repository.close_season, active.id, ended_at, stats, awards):
            raise ConflictError(f"Season {active.id} was closed concurrently", "Season already ended")
        ended = replace(active, active=False, end_date=ended_at)
        logger.info(
            "Ended season %d for team %s; archived %d players and %d awards",
            ended.season_no,
            team_id,
            len(stats),
            len(awards),
        )

        next_season = self.start_season(team_id) if start_next else None
        return ended, next_season

    def season_standings(self, season_id: uuid.UUID) -> Tuple[Season, List[SeasonStats], List[PlayerAward]]:
        """Archived standings and awards of a season (empty while it is active)."""

        season = self._fetch("season_standings", self.repository.get_season, season_id)
        if season is None:
            raise NotFoundError("Season", season_id)
        stats = self._fetch("season_standings", self.repository.list_season_stats, season_id)
        awards = self._fetch("season_standings", self.repository.list_season_awards, season_id)
        return season, stats, awards

    def player_season_history(self, player_id: uuid.UUID) -> List[Tuple[Season, SeasonStats]]:
        self.get_player(player_id)
        return self._fetch("player_season_history", self.repository.player_season_history, player_id)

    def player_awards(self, player_id: uuid.UUID) -> List[PlayerAward]:
        self.get_player(player_id)
        return self._fetch("player_awards", self.repository.list_player_awards, player_id)

    # Sessions ----------------------------------------------------------
    def create_session(
        self,
        team_id: uuid.UUID,
        title: str,
        rounds: Sequence[Sequence[str]],
    ) -> Tuple[PlaySession, List[ScheduledGame]]:
        """Open a session and store the round-robin schedule of its squads."""

        if not title or not title.strip():
            raise ValidationError("Session title is required")
        if not any(rounds):
            raise ValidationError("Cannot create a session with no squads")

        self._require_team(team_id)
        if self._fetch("create_session", self.repository.get_active_session, team_id) is not None:
            raise ConflictError(
                f"Team {team_id} already has an active session",
                "An active session already exists for this team. "
                "Please complete it before starting a new one.",
            )

        session = PlaySession(id=uuid.uuid4(), team_id=team_id, title=title.strip())
        games = [
            ScheduledGame(
                id=uuid.uuid4(),
                session_id=session.id,
                game_number=slot.game_number,
                round_no=slot.round_no,
                squad_a_id=slot.pairing.squad_a_id,
                squad_b_id=slot.pairing.squad_b_id,
            )
            for slot in number_games(rounds)
        ]
        self._write("create_session", self.repository.add_session, session, games)
        logger.info("Created session %s with %d scheduled games", session.id, len(games))
        return session, games

    def session_schedule(self, session_id: uuid.UUID) -> Tuple[PlaySession, List[ScheduledGame]]:
        session = self._fetch("session_schedule", self.repository.get_session, session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        games = self._fetch("session_schedule", self.repository.list_scheduled_games, session_id)
        return session, games

    def record_scheduled_score(self, game_id: uuid.UUID, squad_a_score: int, squad_b_score: int) -> ScheduledGame:
        if squad_a_score < 0 or squad_b_score < 0:
            raise ValidationError("Scores cannot be negative")

        game = self._fetch("record_scheduled_score", self.repository.get_scheduled_game, game_id)
        if game is None:
            raise NotFoundError("Scheduled game", game_id)
        session = self._fetch("record_scheduled_score", self.repository.get_session, game.session_id)
        if session is None or not session.active:
            raise ConflictError(f"Session {game.session_id} is not active", "This session has ended")

        self._write(
            "record_scheduled_score",
            self.repository.complete_scheduled_game,
            game_id,
            squad_a_score,
            squad_b_score,
        )
        return self._fetch("record_scheduled_score", self.repository.get_scheduled_game, game_id)

    def complete_session(self, session_id: uuid.UUID) -> PlaySession:
        session = self._fetch("complete_session", self.repository.get_session, session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        if not self._write("complete_session", self.repository.close_session, session_id):
            raise ConflictError(f"Session {session_id} is not active", "This session has already ended")
        return replace(session, active=False)


def _apply_game(current: PlayerRating, won: bool, change: PlayerEloChange) -> PlayerRating:
    updated = apply_result(current, won)
    new_elo = current.elo + change.delta
    return replace(
        updated,
        mu=change.mu,
        sigma=change.sigma,
        elo=new_elo,
        elo_change=change.delta,
        highest_elo=max(current.highest_elo, new_elo),
    )


__all__ = [
    "GameOutcome",
    "LeaderboardEntry",
    "LeagueService",
    "PlayerStatsUpdater",
    "SquadResult",
    "UpdateOutcome",
]
