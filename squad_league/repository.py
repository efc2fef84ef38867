"""SQLite repository for the squad_league domain models."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple
import uuid

from .models import (
    DEFAULT_ELO,
    DEFAULT_MU,
    DEFAULT_SIGMA,
    AwardType,
    GameParticipant,
    GameRecord,
    GameStatus,
    PlayerAward,
    PlaySession,
    PlayerRating,
    ScheduledGame,
    Season,
    SeasonStats,
    StatsSnapshot,
    Team,
)

# A player record to write and the version it must still have in storage.
RatingWrite = Tuple[PlayerRating, int]

_STAT_COLUMNS = (
    "mu",
    "sigma",
    "elo",
    "highest_elo",
    "elo_change",
    "wins",
    "losses",
    "win_streak",
    "loss_streak",
    "longest_win_streak",
    "win_percent",
)
_BEFORE_COLUMNS = ", ".join(column + "_before" for column in _STAT_COLUMNS)
_BEFORE_PLACEHOLDERS = ", ".join("?" for _ in _STAT_COLUMNS)


def _iso_datetime(value: datetime) -> str:
    return value.replace(microsecond=0).isoformat(timespec="seconds")


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _as_uuid(value: str) -> uuid.UUID:
    return uuid.UUID(value)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _rating_from_row(row: sqlite3.Row) -> PlayerRating:
    return PlayerRating(
        id=_as_uuid(row["id"]),
        team_id=_as_uuid(row["team_id"]),
        name=row["name"],
        mu=row["mu"],
        sigma=row["sigma"],
        elo=row["elo"],
        highest_elo=row["highest_elo"],
        elo_change=row["elo_change"],
        wins=row["wins"],
        losses=row["losses"],
        win_streak=row["win_streak"],
        loss_streak=row["loss_streak"],
        longest_win_streak=row["longest_win_streak"],
        win_percent=row["win_percent"],
        version=row["version"],
        created_at=_parse_datetime(row["created_at"]),
    )


def _season_from_row(row: sqlite3.Row) -> Season:
    return Season(
        id=_as_uuid(row["id"]),
        team_id=_as_uuid(row["team_id"]),
        season_no=row["season_no"],
        start_date=_parse_datetime(row["start_date"]),
        end_date=_parse_datetime(row["end_date"]) if row["end_date"] else None,
        active=bool(row["active"]),
    )


def _season_stats_from_row(row: sqlite3.Row) -> SeasonStats:
    return SeasonStats(
        season_id=_as_uuid(row["season_id"]),
        team_id=_as_uuid(row["team_id"]),
        player_id=_as_uuid(row["player_id"]),
        final_elo=row["final_elo"],
        final_mu=row["final_mu"],
        final_sigma=row["final_sigma"],
        highest_elo=row["highest_elo"],
        longest_win_streak=row["longest_win_streak"],
        wins=row["wins"],
        losses=row["losses"],
    )


def _award_from_row(row: sqlite3.Row) -> PlayerAward:
    return PlayerAward(
        season_id=_as_uuid(row["season_id"]),
        team_id=_as_uuid(row["team_id"]),
        player_id=_as_uuid(row["player_id"]),
        award_type=AwardType(row["award_type"]),
        award_value=row["award_value"],
    )


def _write_rating(conn: sqlite3.Connection, player: PlayerRating, expected_version: int) -> bool:
    cursor = conn.execute(
        """
        UPDATE player_ratings
        SET mu = ?, sigma = ?, elo = ?, highest_elo = ?, elo_change = ?,
            wins = ?, losses = ?, win_streak = ?, loss_streak = ?,
            longest_win_streak = ?, win_percent = ?, version = ?
        WHERE id = ? AND version = ?
        """,
        (
            player.mu,
            player.sigma,
            player.elo,
            player.highest_elo,
            player.elo_change,
            player.wins,
            player.losses,
            player.win_streak,
            player.loss_streak,
            player.longest_win_streak,
            player.win_percent,
            expected_version + 1,
            str(player.id),
            expected_version,
        ),
    )
    return cursor.rowcount > 0


def _write_ratings(conn: sqlite3.Connection, writes: Sequence[RatingWrite]) -> Optional[List[PlayerRating]]:
    """Apply every conditional write or roll the transaction back."""

    stored = []
    for player, expected_version in writes:
        if not _write_rating(conn, player, expected_version):
            conn.rollback()
            return None
        stored.append(replace(player, version=expected_version + 1))
    return stored


def _session_from_row(row: sqlite3.Row) -> PlaySession:
    return PlaySession(
        id=_as_uuid(row["id"]),
        team_id=_as_uuid(row["team_id"]),
        title=row["title"],
        session_date=_parse_datetime(row["session_date"]),
        active=bool(row["active"]),
    )


def _scheduled_game_from_row(row: sqlite3.Row) -> ScheduledGame:
    return ScheduledGame(
        id=_as_uuid(row["id"]),
        session_id=_as_uuid(row["session_id"]),
        game_number=row["game_number"],
        round_no=row["round_no"],
        squad_a_id=row["squad_a_id"],
        squad_b_id=row["squad_b_id"],
        status=GameStatus(row["status"]),
        squad_a_score=row["squad_a_score"],
        squad_b_score=row["squad_b_score"],
    )


class LeagueRepository:
    """Persistence layer backed by SQLite."""

    def __init__(self, path: str, *, timeout: float = 30.0) -> None:
        self._path = path
        self._timeout = timeout

    @property
    def path(self) -> str:
        return self._path

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path, timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize_schema(self) -> None:
        """Create tables if they do not already exist."""

        with self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS teams (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS player_ratings (
                    id TEXT PRIMARY KEY,
                    team_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    mu REAL NOT NULL,
                    sigma REAL NOT NULL,
                    elo INTEGER NOT NULL,
                    highest_elo INTEGER NOT NULL,
                    elo_change INTEGER NOT NULL DEFAULT 0,
                    wins INTEGER NOT NULL DEFAULT 0,
                    losses INTEGER NOT NULL DEFAULT 0,
                    win_streak INTEGER NOT NULL DEFAULT 0,
                    loss_streak INTEGER NOT NULL DEFAULT 0,
                    longest_win_streak INTEGER NOT NULL DEFAULT 0,
                    win_percent REAL NOT NULL DEFAULT 0,
                    version INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (team_id) REFERENCES teams (id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS seasons (
                    id TEXT PRIMARY KEY,
                    team_id TEXT NOT NULL,
                    season_no INTEGER NOT NULL,
                    start_date TEXT NOT NULL,
                    end_date TEXT,
                    active INTEGER NOT NULL DEFAULT 1,
                    UNIQUE (team_id, season_no),
                    FOREIGN KEY (team_id) REFERENCES teams (id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS season_stats (
                    season_id TEXT NOT NULL,
                    player_id TEXT NOT NULL,
                    team_id TEXT NOT NULL,
                    final_elo INTEGER NOT NULL,
                    final_mu REAL NOT NULL,
                    final_sigma REAL NOT NULL,
                    highest_elo INTEGER NOT NULL,
                    longest_win_streak INTEGER NOT NULL,
                    wins INTEGER NOT NULL,
                    losses INTEGER NOT NULL,
                    PRIMARY KEY (season_id, player_id),
                    FOREIGN KEY (season_id) REFERENCES seasons (id) ON DELETE CASCADE,
                    FOREIGN KEY (player_id) REFERENCES player_ratings (id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS player_awards (
                    season_id TEXT NOT NULL,
                    player_id TEXT NOT NULL,
                    team_id TEXT NOT NULL,
                    award_type TEXT NOT NULL,
                    award_value INTEGER NOT NULL,
                    PRIMARY KEY (season_id, player_id, award_type),
                    FOREIGN KEY (season_id) REFERENCES seasons (id) ON DELETE CASCADE,
                    FOREIGN KEY (player_id) REFERENCES player_ratings (id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    team_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    session_date TEXT NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1,
                    FOREIGN KEY (team_id) REFERENCES teams (id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS scheduled_games (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    game_number INTEGER NOT NULL,
                    round_no INTEGER NOT NULL,
                    squad_a_id TEXT NOT NULL,
                    squad_b_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    squad_a_score INTEGER NOT NULL DEFAULT 0,
                    squad_b_score INTEGER NOT NULL DEFAULT 0,
                    UNIQUE (session_id, game_number),
                    FOREIGN KEY (session_id) REFERENCES sessions (id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS games (
                    id TEXT PRIMARY KEY,
                    team_id TEXT NOT NULL,
                    squad_a_score INTEGER NOT NULL,
                    squad_b_score INTEGER NOT NULL,
                    weight TEXT NOT NULL,
                    match_date TEXT NOT NULL,
                    FOREIGN KEY (team_id) REFERENCES teams (id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS game_players (
                    game_id TEXT NOT NULL,
                    player_id TEXT NOT NULL,
                    squad TEXT NOT NULL,
                    is_winner INTEGER NOT NULL,
                    elo_after INTEGER NOT NULL,
                    mu_before REAL NOT NULL,
                    sigma_before REAL NOT NULL,
                    elo_before INTEGER NOT NULL,
                    highest_elo_before INTEGER NOT NULL,
                    elo_change_before INTEGER NOT NULL,
                    wins_before INTEGER NOT NULL,
                    losses_before INTEGER NOT NULL,
                    win_streak_before INTEGER NOT NULL,
                    loss_streak_before INTEGER NOT NULL,
                    longest_win_streak_before INTEGER NOT NULL,
                    win_percent_before REAL NOT NULL,
                    PRIMARY KEY (game_id, player_id),
                    FOREIGN KEY (game_id) REFERENCES games (id) ON DELETE CASCADE,
                    FOREIGN KEY (player_id) REFERENCES player_ratings (id) ON DELETE CASCADE
                );
                """
            )

    # Team operations ---------------------------------------------------
    def create_team(self, name: str) -> Team:
        team = Team(id=uuid.uuid4(), name=name)
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO teams (id, name, created_at) VALUES (?, ?, ?)",
                (str(team.id), team.name, _iso_datetime(team.created_at)),
            )
        return team

    def get_team(self, team_id: uuid.UUID) -> Optional[Team]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM teams WHERE id = ?", (str(team_id),)).fetchone()
        if row is None:
            return None
        return Team(
            id=_as_uuid(row["id"]),
            name=row["name"],
            created_at=_parse_datetime(row["created_at"]),
        )

    def list_teams(self) -> List[Team]:
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM teams ORDER BY name").fetchall()
        return [
            Team(
                id=_as_uuid(row["id"]),
                name=row["name"],
                created_at=_parse_datetime(row["created_at"]),
            )
            for row in rows
        ]

    # Player rating operations ------------------------------------------
    def create_player(
        self,
        team_id: uuid.UUID,
        name: str,
        *,
        elo: int = DEFAULT_ELO,
        mu: float = DEFAULT_MU,
        sigma: float = DEFAULT_SIGMA,
    ) -> PlayerRating:
        player = PlayerRating(
            id=uuid.uuid4(),
            team_id=team_id,
            name=name,
            mu=mu,
            sigma=sigma,
            elo=elo,
            highest_elo=elo,
        )
        self.add_player_rating(player)
        return player

    def add_player_rating(self, player: PlayerRating) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO player_ratings (
                    id, team_id, name, mu, sigma, elo, highest_elo, elo_change,
                    wins, losses, win_streak, loss_streak, longest_win_streak,
                    win_percent, version, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(player.id),
                    str(player.team_id),
                    player.name,
                    player.mu,
                    player.sigma,
                    player.elo,
                    player.highest_elo,
                    player.elo_change,
                    player.wins,
                    player.losses,
                    player.win_streak,
                    player.loss_streak,
                    player.longest_win_streak,
                    player.win_percent,
                    player.version,
                    _iso_datetime(player.created_at),
                ),
            )

    def get_player_rating(self, player_id: uuid.UUID) -> Optional[PlayerRating]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM player_ratings WHERE id = ?", (str(player_id),)
            ).fetchone()
        if row is None:
            return None
        return _rating_from_row(row)

    def get_player_ratings(self, player_ids: Iterable[uuid.UUID]) -> List[PlayerRating]:
        ids = [str(player_id) for player_id in player_ids]
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        query = f"SELECT * FROM player_ratings WHERE id IN ({placeholders})"
        with self._connection() as conn:
            rows = conn.execute(query, ids).fetchall()
        return [_rating_from_row(row) for row in rows]

    def list_player_ratings(self, team_id: uuid.UUID, *, played_only: bool = False) -> List[PlayerRating]:
        """Team players ordered for a leaderboard (highest Elo first)."""

        query = "SELECT * FROM player_ratings WHERE team_id = ?"
        if played_only:
            query += " AND (wins > 0 OR losses > 0)"
        query += " ORDER BY elo DESC, name"
        with self._connection() as conn:
            rows = conn.execute(query, (str(team_id),)).fetchall()
        return [_rating_from_row(row) for row in rows]

    def search_players(
        self,
        text: str,
        *,
        team_id: Optional[uuid.UUID] = None,
        limit: int = 10,
    ) -> List[PlayerRating]:
        query = "SELECT * FROM player_ratings WHERE name LIKE ? ESCAPE '\\'"
        params: list = [f"%{_escape_like(text)}%"]
        if team_id is not None:
            query += " AND team_id = ?"
            params.append(str(team_id))
        query += " ORDER BY name LIMIT ?"
        params.append(limit)
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_rating_from_row(row) for row in rows]

    def update_player_rating(self, player: PlayerRating, expected_version: int) -> Optional[PlayerRating]:
        """Write ``player`` only if the stored row is still at ``expected_version``.

        Returns the stored record with its bumped version, or ``None`` when
        another writer got there first or the row is gone.
        """

        with self._connection() as conn:
            written = _write_rating(conn, player, expected_version)

        if not written:
            return None
        return replace(player, version=expected_version + 1)

    def reset_team_ratings(
        self,
        team_id: uuid.UUID,
        *,
        elo: int = DEFAULT_ELO,
        mu: float = DEFAULT_MU,
        sigma: float = DEFAULT_SIGMA,
    ) -> int:
        """Put every player of a team back to a fresh rating."""

        with self._connection() as conn:
            cursor = conn.execute(
                """
                UPDATE player_ratings
                SET mu = ?, sigma = ?, elo = ?, highest_elo = ?, elo_change = 0,
                    wins = 0, losses = 0, win_streak = 0, loss_streak = 0,
                    longest_win_streak = 0, win_percent = 0, version = version + 1
                WHERE team_id = ?
                """,
                (mu, sigma, elo, elo, str(team_id)),
            )
        return cursor.rowcount

    # Season operations -------------------------------------------------
    def add_season(self, season: Season) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO seasons (id, team_id, season_no, start_date, end_date, active)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    str(season.id),
                    str(season.team_id),
                    season.season_no,
                    _iso_datetime(season.start_date),
                    _iso_datetime(season.end_date) if season.end_date else None,
                    int(season.active),
                ),
            )

    def get_active_season(self, team_id: uuid.UUID) -> Optional[Season]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM seasons WHERE team_id = ? AND active = 1 LIMIT 1",
                (str(team_id),),
            ).fetchone()
        if row is None:
            return None
        return _season_from_row(row)

    def last_season_no(self, team_id: uuid.UUID) -> int:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT MAX(season_no) AS last_no FROM seasons WHERE team_id = ?",
                (str(team_id),),
            ).fetchone()
        return row["last_no"] or 0

    def list_seasons(self, team_id: uuid.UUID) -> List[Season]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM seasons WHERE team_id = ? ORDER BY season_no",
                (str(team_id),),
            ).fetchall()
        return [_season_from_row(row) for row in rows]

    def close_season(
        self,
        season_id: uuid.UUID,
        end_date: datetime,
        stats: Sequence[SeasonStats] = (),
        awards: Sequence[PlayerAward] = (),
    ) -> bool:
        """Close an active season and archive its standings in one transaction.

        Returns ``False`` (and writes nothing) when the season is not active.
        """

        with self._connection() as conn:
            cursor = conn.execute(
                "UPDATE seasons SET active = 0, end_date = ? WHERE id = ? AND active = 1",
                (_iso_datetime(end_date), str(season_id)),
            )
            if cursor.rowcount == 0:
                return False
            conn.executemany(
                """
                INSERT INTO season_stats (
                    season_id, player_id, team_id, final_elo, final_mu, final_sigma,
                    highest_elo, longest_win_streak, wins, losses
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        str(entry.season_id),
                        str(entry.player_id),
                        str(entry.team_id),
                        entry.final_elo,
                        entry.final_mu,
                        entry.final_sigma,
                        entry.highest_elo,
                        entry.longest_win_streak,
                        entry.wins,
                        entry.losses,
                    )
                    for entry in stats
                ],
            )
            conn.executemany(
                """
                INSERT INTO player_awards (season_id, player_id, team_id, award_type, award_value)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (
                        str(award.season_id),
                        str(award.player_id),
                        str(award.team_id),
                        award.award_type.value,
                        award.award_value,
                    )
                    for award in awards
                ],
            )
        return True

    def get_season(self, season_id: uuid.UUID) -> Optional[Season]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM seasons WHERE id = ?", (str(season_id),)).fetchone()
        if row is None:
            return None
        return _season_from_row(row)

    def list_season_stats(self, season_id: uuid.UUID) -> List[SeasonStats]:
        """Archived standings of a season, best final Elo first."""

        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM season_stats WHERE season_id = ?
                ORDER BY final_elo DESC, wins DESC, player_id
                """,
                (str(season_id),),
            ).fetchall()
        return [_season_stats_from_row(row) for row in rows]

    def list_season_awards(self, season_id: uuid.UUID) -> List[PlayerAward]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM player_awards WHERE season_id = ? ORDER BY award_type, player_id",
                (str(season_id),),
            ).fetchall()
        return [_award_from_row(row) for row in rows]

    def player_season_history(self, player_id: uuid.UUID) -> List[Tuple[Season, SeasonStats]]:
        """A player's archived seasons, most recent first."""

        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT ss.*, s.id AS id, s.season_no, s.start_date, s.end_date, s.active
                FROM season_stats ss
                JOIN seasons s ON s.id = ss.season_id
                WHERE ss.player_id = ?
                ORDER BY s.season_no DESC
                """,
                (str(player_id),),
            ).fetchall()
        return [(_season_from_row(row), _season_stats_from_row(row)) for row in rows]

    def list_player_awards(self, player_id: uuid.UUID) -> List[PlayerAward]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT pa.* FROM player_awards pa
                JOIN seasons s ON s.id = pa.season_id
                WHERE pa.player_id = ?
                ORDER BY s.season_no DESC, pa.award_type
                """,
                (str(player_id),),
            ).fetchall()
        return [_award_from_row(row) for row in rows]

    # Session operations ------------------------------------------------
    def add_session(self, session: PlaySession, games: Sequence[ScheduledGame] = ()) -> None:
        """Insert a session together with its schedule in one transaction."""

        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO sessions (id, team_id, title, session_date, active)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    str(session.id),
                    str(session.team_id),
                    session.title,
                    _iso_datetime(session.session_date),
                    int(session.active),
                ),
            )
            conn.executemany(
                """
                INSERT INTO scheduled_games (
                    id, session_id, game_number, round_no, squad_a_id, squad_b_id,
                    status, squad_a_score, squad_b_score
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        str(game.id),
                        str(game.session_id),
                        game.game_number,
                        game.round_no,
                        game.squad_a_id,
                        game.squad_b_id,
                        game.status.value,
                        game.squad_a_score,
                        game.squad_b_score,
                    )
                    for game in games
                ],
            )

    def get_session(self, session_id: uuid.UUID) -> Optional[PlaySession]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM sessions WHERE id = ?", (str(session_id),)).fetchone()
        if row is None:
            return None
        return _session_from_row(row)

    def get_active_session(self, team_id: uuid.UUID) -> Optional[PlaySession]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM sessions WHERE team_id = ? AND active = 1 LIMIT 1",
                (str(team_id),),
            ).fetchone()
        if row is None:
            return None
        return _session_from_row(row)

    def close_session(self, session_id: uuid.UUID) -> bool:
        with self._connection() as conn:
            cursor = conn.execute(
                "UPDATE sessions SET active = 0 WHERE id = ? AND active = 1",
                (str(session_id),),
            )
        return cursor.rowcount > 0

    def list_scheduled_games(self, session_id: uuid.UUID) -> List[ScheduledGame]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM scheduled_games WHERE session_id = ? ORDER BY game_number",
                (str(session_id),),
            ).fetchall()
        return [_scheduled_game_from_row(row) for row in rows]

    def get_scheduled_game(self, game_id: uuid.UUID) -> Optional[ScheduledGame]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM scheduled_games WHERE id = ?", (str(game_id),)
            ).fetchone()
        if row is None:
            return None
        return _scheduled_game_from_row(row)

    def complete_scheduled_game(self, game_id: uuid.UUID, squad_a_score: int, squad_b_score: int) -> bool:
        with self._connection() as conn:
            cursor = conn.execute(
                """
                UPDATE scheduled_games
                SET status = ?, squad_a_score = ?, squad_b_score = ?
                WHERE id = ?
                """,
                (GameStatus.COMPLETED.value, squad_a_score, squad_b_score, str(game_id)),
            )
        return cursor.rowcount > 0

    # Game operations ---------------------------------------------------
    def add_game(
        self,
        game: GameRecord,
        participants: Sequence[GameParticipant],
        ratings: Sequence[RatingWrite] = (),
    ) -> Optional[List[PlayerRating]]:
        """Store a game with its participants and their new ratings.

        Everything lands in one transaction. Returns the stored ratings, or
        ``None`` (and writes nothing) when any rating is no longer at its
        expected version.
        """

        with self._connection() as conn:
            stored = _write_ratings(conn, ratings)
            if stored is None:
                return None
            conn.execute(
                """
                INSERT INTO games (id, team_id, squad_a_score, squad_b_score, weight, match_date)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    str(game.id),
                    str(game.team_id),
                    game.squad_a_score,
                    game.squad_b_score,
                    game.weight,
                    _iso_datetime(game.match_date),
                ),
            )
            conn.executemany(
                f"""
                INSERT INTO game_players (
                    game_id, player_id, squad, is_winner, elo_after, {_BEFORE_COLUMNS}
                ) VALUES (?, ?, ?, ?, ?, {_BEFORE_PLACEHOLDERS})
                """,
                [
                    (
                        str(participant.game_id),
                        str(participant.player_id),
                        participant.squad,
                        int(participant.is_winner),
                        participant.elo_after,
                        *(getattr(participant.before, column) for column in _STAT_COLUMNS),
                    )
                    for participant in participants
                ],
            )
        return stored

    def get_game(self, game_id: uuid.UUID) -> Optional[GameRecord]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM games WHERE id = ?", (str(game_id),)).fetchone()
        if row is None:
            return None
        return GameRecord(
            id=_as_uuid(row["id"]),
            team_id=_as_uuid(row["team_id"]),
            squad_a_score=row["squad_a_score"],
            squad_b_score=row["squad_b_score"],
            weight=row["weight"],
            match_date=_parse_datetime(row["match_date"]),
        )

    def list_game_participants(self, game_id: uuid.UUID) -> List[GameParticipant]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM game_players WHERE game_id = ? ORDER BY squad, player_id",
                (str(game_id),),
            ).fetchall()
        return [
            GameParticipant(
                game_id=_as_uuid(row["game_id"]),
                player_id=_as_uuid(row["player_id"]),
                squad=row["squad"],
                is_winner=bool(row["is_winner"]),
                elo_after=row["elo_after"],
                before=StatsSnapshot(**{column: row[column + "_before"] for column in _STAT_COLUMNS}),
            )
            for row in rows
        ]

    def latest_game_id(self, player_id: uuid.UUID) -> Optional[uuid.UUID]:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT g.id FROM game_players gp
                JOIN games g ON g.id = gp.game_id
                WHERE gp.player_id = ?
                ORDER BY g.match_date DESC, g.rowid DESC
                LIMIT 1
                """,
                (str(player_id),),
            ).fetchone()
        if row is None:
            return None
        return _as_uuid(row["id"])

    def delete_game(
        self,
        game_id: uuid.UUID,
        ratings: Sequence[RatingWrite] = (),
    ) -> Optional[List[PlayerRating]]:
        """Delete a game and write its players' restored ratings together.

        Returns ``None`` (and changes nothing) when a rating is no longer at
        its expected version or the game is already gone.
        """

        with self._connection() as conn:
            stored = _write_ratings(conn, ratings)
            if stored is None:
                return None
            cursor = conn.execute("DELETE FROM games WHERE id = ?", (str(game_id),))
            if cursor.rowcount == 0:
                conn.rollback()
                return None
        return stored


__all__ = ["LeagueRepository"]
