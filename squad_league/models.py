"""Domain models for the squad_league project.

Teams own player ratings, seasons and play sessions. A session is split into
rounds; in each round the attending players are grouped into squads and the
squads play a round-robin, recorded as scheduled games. The dataclasses stay
storage-agnostic; the SQLite mapping lives in ``repository``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import uuid
from typing import Optional


DEFAULT_ELO = 1500
DEFAULT_MU = 15.0
DEFAULT_SIGMA = 4.0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameStatus(Enum):
    """Lifecycle of a scheduled game."""

    PENDING = "pending"
    COMPLETED = "completed"


class AwardType(Enum):
    """End-of-season awards."""

    HIGHEST_ELO_1ST = "highest_elo_1st"
    HIGHEST_ELO_2ND = "highest_elo_2nd"
    HIGHEST_ELO_3RD = "highest_elo_3rd"
    MOST_WINS = "most_wins"
    LONGEST_WIN_STREAK = "longest_win_streak"


@dataclass(frozen=True)
class Team:
    """A club whose players share one rating ladder."""

    id: uuid.UUID
    name: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class PlayerRating:
    """A player's standing within one team.

    ``mu``/``sigma`` are the player's TrueSkill skill estimate, from which
    Elo movements are derived. ``version`` is bumped by every stored update
    and is used to detect concurrent writers.
    """

    id: uuid.UUID
    team_id: uuid.UUID
    name: str
    mu: float = DEFAULT_MU
    sigma: float = DEFAULT_SIGMA
    elo: int = DEFAULT_ELO
    highest_elo: int = DEFAULT_ELO
    elo_change: int = 0
    wins: int = 0
    losses: int = 0
    win_streak: int = 0
    loss_streak: int = 0
    longest_win_streak: int = 0
    win_percent: float = 0.0
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)

    @property
    def games_played(self) -> int:
        return self.wins + self.losses


@dataclass(frozen=True)
class StatsSnapshot:
    """The rating and stat fields of a player at one point in time."""

    mu: float
    sigma: float
    elo: int
    highest_elo: int
    elo_change: int
    wins: int
    losses: int
    win_streak: int
    loss_streak: int
    longest_win_streak: int
    win_percent: float

    @classmethod
    def of(cls, rating: PlayerRating) -> "StatsSnapshot":
        return cls(
            mu=rating.mu,
            sigma=rating.sigma,
            elo=rating.elo,
            highest_elo=rating.highest_elo,
            elo_change=rating.elo_change,
            wins=rating.wins,
            losses=rating.losses,
            win_streak=rating.win_streak,
            loss_streak=rating.loss_streak,
            longest_win_streak=rating.longest_win_streak,
            win_percent=rating.win_percent,
        )


@dataclass(frozen=True)
class Season:
    """A numbered season of a team; at most one is active at a time."""

    id: uuid.UUID
    team_id: uuid.UUID
    season_no: int
    start_date: datetime = field(default_factory=utcnow)
    end_date: Optional[datetime] = None
    active: bool = True


@dataclass(frozen=True)
class SeasonStats:
    """A player's archived standing at the end of a season."""

    season_id: uuid.UUID
    team_id: uuid.UUID
    player_id: uuid.UUID
    final_elo: int
    final_mu: float
    final_sigma: float
    highest_elo: int
    longest_win_streak: int
    wins: int
    losses: int

    @property
    def games_played(self) -> int:
        return self.wins + self.losses

    @property
    def win_percent(self) -> float:
        if self.games_played == 0:
            return 0.0
        return round(self.wins / self.games_played * 100, 2)

    @classmethod
    def archive(cls, season_id: uuid.UUID, rating: "PlayerRating") -> "SeasonStats":
        return cls(
            season_id=season_id,
            team_id=rating.team_id,
            player_id=rating.id,
            final_elo=rating.elo,
            final_mu=rating.mu,
            final_sigma=rating.sigma,
            highest_elo=rating.highest_elo,
            longest_win_streak=rating.longest_win_streak,
            wins=rating.wins,
            losses=rating.losses,
        )


@dataclass(frozen=True)
class PlayerAward:
    season_id: uuid.UUID
    team_id: uuid.UUID
    player_id: uuid.UUID
    award_type: AwardType
    award_value: int


@dataclass(frozen=True)
class PlaySession:
    """A meet-up of a team during which scheduled games are played."""

    id: uuid.UUID
    team_id: uuid.UUID
    title: str
    session_date: datetime = field(default_factory=utcnow)
    active: bool = True


@dataclass(frozen=True)
class ScheduledGame:
    """One slot of a session's round-robin schedule."""

    id: uuid.UUID
    session_id: uuid.UUID
    game_number: int
    round_no: int
    squad_a_id: str
    squad_b_id: str
    status: GameStatus = GameStatus.PENDING
    squad_a_score: int = 0
    squad_b_score: int = 0

    def involves(self, squad_id: str) -> bool:
        return squad_id in (self.squad_a_id, self.squad_b_id)


@dataclass(frozen=True)
class GameRecord:
    """A played game between two squads of players."""

    id: uuid.UUID
    team_id: uuid.UUID
    squad_a_score: int
    squad_b_score: int
    weight: str = "normal"
    match_date: datetime = field(default_factory=utcnow)

    @property
    def squad_a_won(self) -> bool:
        return self.squad_a_score > self.squad_b_score


@dataclass(frozen=True)
class GameParticipant:
    """A player's part in a recorded game, with their stats before it."""

    game_id: uuid.UUID
    player_id: uuid.UUID
    squad: str
    is_winner: bool
    elo_after: int
    before: StatsSnapshot


__all__ = [
    "AwardType",
    "DEFAULT_ELO",
    "DEFAULT_MU",
    "DEFAULT_SIGMA",
    "GameParticipant",
    "GameRecord",
    "GameStatus",
    "PlayerAward",
    "PlaySession",
    "PlayerRating",
    "ScheduledGame",
    "Season",
    "SeasonStats",
    "StatsSnapshot",
    "Team",
    "utcnow",
]
