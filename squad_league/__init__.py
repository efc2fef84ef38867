"""squad_league package exposing scheduling, rating utilities and the repository."""

from .awards import season_awards
from .models import (
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
from .ranks import Rank, classify
from .repository import LeagueRepository
from .scheduling import BYE, Pairing, generate_schedule, number_games
from .service import LeagueService, PlayerStatsUpdater, UpdateOutcome
from .stats import apply_result, revert_result

__all__ = [
    "AwardType",
    "BYE",
    "GameParticipant",
    "GameRecord",
    "GameStatus",
    "LeagueRepository",
    "LeagueService",
    "Pairing",
    "PlayerAward",
    "PlaySession",
    "PlayerRating",
    "PlayerStatsUpdater",
    "Rank",
    "ScheduledGame",
    "Season",
    "SeasonStats",
    "StatsSnapshot",
    "Team",
    "UpdateOutcome",
    "apply_result",
    "classify",
    "generate_schedule",
    "number_games",
    "revert_result",
    "season_awards",
]
