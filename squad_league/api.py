"""FastAPI application exposing the league endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
import uuid

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import Config
from .exceptions import (
    ConflictError,
    LeagueError,
    NotFoundError,
    RemoteFetchError,
    RemoteWriteError,
    ValidationError,
)
from .logger import setup_logging
from .models import PlayerAward, PlaySession, PlayerRating, ScheduledGame, Season, SeasonStats
from .ranks import classify
from .repository import LeagueRepository
from .scheduling import generate_schedule
from .service import LeagueService, SquadResult, UpdateOutcome


app = FastAPI(title="Squad League API")

_repository = LeagueRepository(Config.DATABASE_PATH)
_service = LeagueService(_repository)

_ERROR_STATUS = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    RemoteFetchError: status.HTTP_503_SERVICE_UNAVAILABLE,
    RemoteWriteError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@app.on_event("startup")
def _startup() -> None:
    setup_logging()
    Config.validate()
    _repository.initialize_schema()


@app.exception_handler(LeagueError)
async def _league_error_handler(request: Request, exc: LeagueError) -> JSONResponse:
    status_code = _ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=status_code, content={"detail": exc.user_message})


def get_service() -> LeagueService:
    """Provide the service instance for FastAPI dependencies."""

    return _service


# Schemas --------------------------------------------------------------
class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1)


class TeamResponse(BaseModel):
    id: uuid.UUID
    name: str
    created_at: datetime


class PlayerCreate(BaseModel):
    name: str = Field(..., min_length=1)


class PlayerResponse(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    name: str
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
    rank_icon: str
    rank_name: str


class LeaderboardEntryResponse(BaseModel):
    position: int
    player: PlayerResponse


class ResultCreate(BaseModel):
    is_winner: bool


class SquadPayload(BaseModel):
    player_ids: List[uuid.UUID] = Field(..., min_length=1)
    score: int = Field(..., ge=0)


class GameCreate(BaseModel):
    squad_a: SquadPayload
    squad_b: SquadPayload
    weight: str = "normal"


class PlayerUpdateResponse(BaseModel):
    player_id: uuid.UUID
    ok: bool
    error: Optional[str] = None
    player: Optional[PlayerResponse] = None


class GameResponse(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    squad_a_score: int
    squad_b_score: int
    weight: str
    match_date: datetime
    ok: bool
    players: List[PlayerUpdateResponse]


class SeasonResponse(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    season_no: int
    start_date: datetime
    end_date: Optional[datetime]
    active: bool


class SeasonEndResponse(BaseModel):
    ended: SeasonResponse
    started: Optional[SeasonResponse] = None


class SeasonStatsResponse(BaseModel):
    player_id: uuid.UUID
    final_elo: int
    final_mu: float
    final_sigma: float
    highest_elo: int
    longest_win_streak: int
    wins: int
    losses: int
    games_played: int
    win_percent: float


class AwardResponse(BaseModel):
    season_id: uuid.UUID
    player_id: uuid.UUID
    award_type: str
    award_value: int


class SeasonStandingsResponse(BaseModel):
    season: SeasonResponse
    standings: List[SeasonStatsResponse]
    awards: List[AwardResponse]


class SeasonHistoryEntryResponse(BaseModel):
    season: SeasonResponse
    stats: SeasonStatsResponse


class SessionCreate(BaseModel):
    title: str = Field(..., min_length=1)
    rounds: List[List[str]]


class ScheduledGameResponse(BaseModel):
    id: uuid.UUID
    game_number: int
    round_no: int
    squad_a_id: str
    squad_b_id: str
    status: str
    squad_a_score: int
    squad_b_score: int


class SessionResponse(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    title: str
    session_date: datetime
    active: bool
    games: List[ScheduledGameResponse] = []


class ScoreUpdate(BaseModel):
    squad_a_score: int = Field(..., ge=0)
    squad_b_score: int = Field(..., ge=0)


class ScheduleRequest(BaseModel):
    participants: List[str]


class PairingResponse(BaseModel):
    squad_a_id: str
    squad_b_id: str


class ScheduleResponse(BaseModel):
    rounds: List[List[PairingResponse]]


class RankResponse(BaseModel):
    rating: float
    icon: str
    name: str


# Converters -----------------------------------------------------------
def _player_to_response(player: PlayerRating) -> PlayerResponse:
    rank = classify(player.elo)
    return PlayerResponse(
        id=player.id,
        team_id=player.team_id,
        name=player.name,
        mu=player.mu,
        sigma=player.sigma,
        elo=player.elo,
        highest_elo=player.highest_elo,
        elo_change=player.elo_change,
        wins=player.wins,
        losses=player.losses,
        win_streak=player.win_streak,
        loss_streak=player.loss_streak,
        longest_win_streak=player.longest_win_streak,
        win_percent=player.win_percent,
        rank_icon=rank.icon,
        rank_name=rank.name,
    )


def _outcome_to_response(outcome: UpdateOutcome) -> PlayerUpdateResponse:
    return PlayerUpdateResponse(
        player_id=outcome.player_id,
        ok=outcome.ok,
        error=outcome.error.user_message if outcome.error else None,
        player=_player_to_response(outcome.record) if outcome.record else None,
    )


def _season_to_response(season: Season) -> SeasonResponse:
    return SeasonResponse(
        id=season.id,
        team_id=season.team_id,
        season_no=season.season_no,
        start_date=season.start_date,
        end_date=season.end_date,
        active=season.active,
    )


def _season_stats_to_response(stats: SeasonStats) -> SeasonStatsResponse:
    return SeasonStatsResponse(
        player_id=stats.player_id,
        final_elo=stats.final_elo,
        final_mu=stats.final_mu,
        final_sigma=stats.final_sigma,
        highest_elo=stats.highest_elo,
        longest_win_streak=stats.longest_win_streak,
        wins=stats.wins,
        losses=stats.losses,
        games_played=stats.games_played,
        win_percent=stats.win_percent,
    )


def _award_to_response(award: PlayerAward) -> AwardResponse:
    return AwardResponse(
        season_id=award.season_id,
        player_id=award.player_id,
        award_type=award.award_type.value,
        award_value=award.award_value,
    )


def _session_to_response(session: PlaySession, games: List[ScheduledGame]) -> SessionResponse:
    return SessionResponse(
        id=session.id,
        team_id=session.team_id,
        title=session.title,
        session_date=session.session_date,
        active=session.active,
        games=[_scheduled_game_to_response(game) for game in games],
    )


def _scheduled_game_to_response(game: ScheduledGame) -> ScheduledGameResponse:
    return ScheduledGameResponse(
        id=game.id,
        game_number=game.game_number,
        round_no=game.round_no,
        squad_a_id=game.squad_a_id,
        squad_b_id=game.squad_b_id,
        status=game.status.value,
        squad_a_score=game.squad_a_score,
        squad_b_score=game.squad_b_score,
    )


# Teams and players ----------------------------------------------------
@app.post("/teams", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
def create_team(payload: TeamCreate, service: LeagueService = Depends(get_service)) -> TeamResponse:
    team = service.create_team(payload.name)
    return TeamResponse(id=team.id, name=team.name, created_at=team.created_at)


@app.post(
    "/teams/{team_id}/players",
    response_model=PlayerResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_player(
    team_id: uuid.UUID,
    payload: PlayerCreate,
    service: LeagueService = Depends(get_service),
) -> PlayerResponse:
    return _player_to_response(service.add_player(team_id, payload.name))


@app.get("/teams/{team_id}/leaderboard", response_model=List[LeaderboardEntryResponse])
def leaderboard(
    team_id: uuid.UUID,
    played_only: bool = False,
    service: LeagueService = Depends(get_service),
) -> List[LeaderboardEntryResponse]:
    return [
        LeaderboardEntryResponse(position=entry.position, player=_player_to_response(entry.player))
        for entry in service.leaderboard(team_id, played_only=played_only)
    ]


@app.get("/players/search", response_model=List[PlayerResponse])
def search_players(
    q: str,
    team_id: Optional[uuid.UUID] = None,
    limit: int = Query(10, ge=1, le=100),
    service: LeagueService = Depends(get_service),
) -> List[PlayerResponse]:
    players = service.search_players(q, team_id=team_id, limit=limit)
    return [_player_to_response(player) for player in players]


@app.get("/players/{player_id}", response_model=PlayerResponse)
def get_player(player_id: uuid.UUID, service: LeagueService = Depends(get_service)) -> PlayerResponse:
    return _player_to_response(service.get_player(player_id))


@app.post("/players/{player_id}/results", response_model=PlayerUpdateResponse)
def apply_player_result(
    player_id: uuid.UUID,
    payload: ResultCreate,
    service: LeagueService = Depends(get_service),
) -> PlayerUpdateResponse:
    outcome = service.updater.apply_result(player_id, payload.is_winner)
    if not outcome.ok:
        raise outcome.error
    return _outcome_to_response(outcome)


@app.get("/ranks/{rating}", response_model=RankResponse)
def get_rank(rating: float) -> RankResponse:
    rank = classify(rating)
    return RankResponse(rating=rating, icon=rank.icon, name=rank.name)


# Games ----------------------------------------------------------------
@app.post("/teams/{team_id}/games", response_model=GameResponse, status_code=status.HTTP_201_CREATED)
def record_game(
    team_id: uuid.UUID,
    payload: GameCreate,
    service: LeagueService = Depends(get_service),
) -> GameResponse:
    result = service.record_game(
        team_id,
        SquadResult(player_ids=payload.squad_a.player_ids, score=payload.squad_a.score),
        SquadResult(player_ids=payload.squad_b.player_ids, score=payload.squad_b.score),
        weight=payload.weight,
    )
    return GameResponse(
        id=result.game.id,
        team_id=result.game.team_id,
        squad_a_score=result.game.squad_a_score,
        squad_b_score=result.game.squad_b_score,
        weight=result.game.weight,
        match_date=result.game.match_date,
        ok=result.ok,
        players=[_outcome_to_response(outcome) for outcome in result.outcomes],
    )


@app.delete("/games/{game_id}", response_model=List[PlayerUpdateResponse])
def delete_game(game_id: uuid.UUID, service: LeagueService = Depends(get_service)) -> List[PlayerUpdateResponse]:
    return [_outcome_to_response(outcome) for outcome in service.delete_game(game_id)]


@app.post("/schedules", response_model=ScheduleResponse)
def preview_schedule(payload: ScheduleRequest) -> ScheduleResponse:
    rounds = generate_schedule(payload.participants)
    return ScheduleResponse(
        rounds=[
            [PairingResponse(squad_a_id=pair.squad_a_id, squad_b_id=pair.squad_b_id) for pair in round_pairs]
            for round_pairs in rounds
        ]
    )


# Seasons --------------------------------------------------------------
@app.get("/teams/{team_id}/seasons", response_model=List[SeasonResponse])
def list_seasons(team_id: uuid.UUID, service: LeagueService = Depends(get_service)) -> List[SeasonResponse]:
    return [_season_to_response(season) for season in service.list_seasons(team_id)]


@app.get("/teams/{team_id}/seasons/active", response_model=SeasonResponse)
def get_active_season(team_id: uuid.UUID, service: LeagueService = Depends(get_service)) -> SeasonResponse:
    season = service.active_season(team_id)
    if season is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active season")
    return _season_to_response(season)


@app.post(
    "/teams/{team_id}/seasons",
    response_model=SeasonResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_season(team_id: uuid.UUID, service: LeagueService = Depends(get_service)) -> SeasonResponse:
    return _season_to_response(service.start_season(team_id))


@app.post("/teams/{team_id}/seasons/end", response_model=SeasonEndResponse)
def end_season(
    team_id: uuid.UUID,
    start_next: bool = False,
    service: LeagueService = Depends(get_service),
) -> SeasonEndResponse:
    ended, started = service.end_season(team_id, start_next=start_next)
    return SeasonEndResponse(
        ended=_season_to_response(ended),
        started=_season_to_response(started) if started else None,
    )


@app.get("/seasons/{season_id}/standings", response_model=SeasonStandingsResponse)
def season_standings(season_id: uuid.UUID, service: LeagueService = Depends(get_service)) -> SeasonStandingsResponse:
    season, stats, awards = service.season_standings(season_id)
    return SeasonStandingsResponse(
        season=_season_to_response(season),
        standings=[_season_stats_to_response(entry) for entry in stats],
        awards=[_award_to_response(award) for award in awards],
    )


@app.get("/players/{player_id}/seasons", response_model=List[SeasonHistoryEntryResponse])
def player_season_history(
    player_id: uuid.UUID,
    service: LeagueService = Depends(get_service),
) -> List[SeasonHistoryEntryResponse]:
    return [
        SeasonHistoryEntryResponse(season=_season_to_response(season), stats=_season_stats_to_response(stats))
        for season, stats in service.player_season_history(player_id)
    ]


@app.get("/players/{player_id}/awards", response_model=List[AwardResponse])
def player_awards(player_id: uuid.UUID, service: LeagueService = Depends(get_service)) -> List[AwardResponse]:
    return [_award_to_response(award) for award in service.player_awards(player_id)]


# Sessions -------------------------------------------------------------
@app.post(
    "/teams/{team_id}/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_session(
    team_id: uuid.UUID,
    payload: SessionCreate,
    service: LeagueService = Depends(get_service),
) -> SessionResponse:
    session, games = service.create_session(team_id, payload.title, payload.rounds)
    return _session_to_response(session, games)


@app.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: uuid.UUID, service: LeagueService = Depends(get_service)) -> SessionResponse:
    session, games = service.session_schedule(session_id)
    return _session_to_response(session, games)


@app.post("/sessions/{session_id}/complete", response_model=SessionResponse)
def complete_session(session_id: uuid.UUID, service: LeagueService = Depends(get_service)) -> SessionResponse:
    service.complete_session(session_id)
    session, games = service.session_schedule(session_id)
    return _session_to_response(session, games)


@app.put("/scheduled-games/{game_id}/score", response_model=ScheduledGameResponse)
def record_scheduled_score(
    game_id: uuid.UUID,
    payload: ScoreUpdate,
    service: LeagueService = Depends(get_service),
) -> ScheduledGameResponse:
    game = service.record_scheduled_score(game_id, payload.squad_a_score, payload.squad_b_score)
    return _scheduled_game_to_response(game)
