"""
REST API for the competition engine.
Thin wrappers around services and repositories; domain errors map to HTTP status codes.
"""
from __future__ import annotations

import sys
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncGenerator, Generator

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

# Ensure project root on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from competition_engine import config
from competition_engine.persistence import (
    get_connection,
    init_db,
    LeagueRepository,
    TeamRepository,
    PlayerRepository,
    RefereeRepository,
    SeasonRepository,
    MatchRepository,
)
from competition_engine.persistence.db import get_db_path
from competition_engine.services import (
    BusinessRuleError,
    ConflictError,
    DependentDataMissingError,
    LeaderboardAggregator,
    MatchLifecycle,
    NotFoundError,
    SeasonService,
    StandingsCalculator,
    SuspensionPolicy,
    ValidationError,
)


@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def service_errors() -> Generator:
    """Translate domain errors raised inside the block into HTTP errors."""
    try:
        yield
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except BusinessRuleError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except DependentDataMissingError as e:
        raise HTTPException(status_code=500, detail=str(e))


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config.configure_logging()
    init_db(db_path=get_db_path())
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="Competition Engine API",
    description="Amateur football league: fixtures, live matches, suspensions, standings",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Request models ----------


class CreateLeagueRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=32)
    hourly_rate: float | None = Field(None, ge=0)


class CreateTeamRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    short_name: str | None = None
    kit_home: str | None = None
    kit_away: str | None = None
    coach: str | None = None
    logo: str | None = None
    contact_email: str | None = None


class CreatePlayerRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    number: int | None = Field(None, ge=0, le=99)
    image: str | None = None


class CreateRefereeRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str | None = None


class CreateSeasonRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    rounds: int = Field(2, ge=1, le=10)
    make_primary: bool = False


class AddRoundsRequest(BaseModel):
    rounds: int = Field(..., ge=1, le=10)


class CreateMatchRequest(BaseModel):
    home_team_id: str
    away_team_id: str
    gameday: int | None = Field(None, ge=1)
    scheduled_at: datetime | None = None
    venue: str | None = None
    referee_id: str | None = None
    home_kit: str | None = None
    away_kit: str | None = None


class UpdateMatchRequest(BaseModel):
    referee_id: str | None = None
    scheduled_at: datetime | None = None
    venue: str | None = None


class GoalRequest(BaseModel):
    player_id: str
    side: str
    minute: int = Field(..., ge=0)
    own_goal: bool = False


class CardRequest(BaseModel):
    player_id: str
    team_id: str
    minute: int = Field(..., ge=0)
    card_type: str


class SubmitRequest(BaseModel):
    report: str | None = None


class WinningSideRequest(BaseModel):
    winning_side: str


class SheetPlayerRequest(BaseModel):
    player_id: str
    number: int | None = Field(None, ge=0, le=99)


# ---------- Leagues, teams, players, referees ----------


@app.post("/leagues")
def create_league(req: CreateLeagueRequest) -> dict[str, Any]:
    with db_conn() as conn:
        repo = LeagueRepository()
        if repo.get_by_code(conn, req.code) is not None:
            raise HTTPException(status_code=409, detail=f"League code already in use: {req.code}")
        return repo.create(conn, req.name, req.code, hourly_rate=req.hourly_rate).to_dict()


@app.get("/leagues")
def list_leagues() -> dict[str, Any]:
    with db_conn() as conn:
        return {"leagues": [l.to_dict() for l in LeagueRepository().list_all(conn)]}


@app.get("/leagues/{league_id}")
def get_league(league_id: str) -> dict[str, Any]:
    """League with its teams and seasons."""
    with db_conn() as conn:
        league = LeagueRepository().get(conn, league_id)
        if league is None:
            raise HTTPException(status_code=404, detail="League not found")
        out = league.to_dict()
        out["teams"] = [t.to_dict() for t in TeamRepository().list_by_league(conn, league_id)]
        out["seasons"] = [s.to_dict() for s in SeasonRepository().list_by_league(conn, league_id)]
        return out


@app.post("/leagues/{league_id}/teams")
def create_team(league_id: str, req: CreateTeamRequest) -> dict[str, Any]:
    with db_conn() as conn:
        if LeagueRepository().get(conn, league_id) is None:
            raise HTTPException(status_code=404, detail="League not found")
        team = TeamRepository().create(
            conn, league_id, req.name, short_name=req.short_name, kit_home=req.kit_home,
            kit_away=req.kit_away, coach=req.coach, logo=req.logo, contact_email=req.contact_email,
        )
        return team.to_dict()


@app.post("/teams/{team_id}/players")
def create_player(team_id: str, req: CreatePlayerRequest) -> dict[str, Any]:
    with db_conn() as conn:
        if TeamRepository().get(conn, team_id) is None:
            raise HTTPException(status_code=404, detail="Team not found")
        return PlayerRepository().create(conn, team_id, req.name, number=req.number, image=req.image).to_dict()


@app.get("/teams/{team_id}/players")
def list_team_players(team_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        if TeamRepository().get(conn, team_id) is None:
            raise HTTPException(status_code=404, detail="Team not found")
        return {"players": [p.to_dict() for p in PlayerRepository().list_by_team(conn, team_id)]}


@app.post("/referees")
def create_referee(req: CreateRefereeRequest) -> dict[str, Any]:
    with db_conn() as conn:
        return RefereeRepository().create(conn, req.name, email=req.email).to_dict()


# ---------- Seasons ----------


@app.post("/leagues/{league_id}/seasons")
def create_season(league_id: str, req: CreateSeasonRequest) -> dict[str, Any]:
    """Create a season and generate its round-robin schedule."""
    with db_conn() as conn, service_errors():
        season, matches = SeasonService().create_season(
            conn, league_id, req.name, rounds=req.rounds, make_primary=req.make_primary
        )
        out = season.to_dict()
        out["matches"] = [m.to_dict() for m in matches]
        return out


@app.get("/leagues/{league_id}/seasons")
def list_seasons(league_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        if LeagueRepository().get(conn, league_id) is None:
            raise HTTPException(status_code=404, detail="League not found")
        return {"seasons": [s.to_dict() for s in SeasonRepository().list_by_league(conn, league_id)]}


@app.post("/seasons/{season_id}/primary")
def set_primary_season(season_id: str) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        return SeasonService().set_primary_season(conn, season_id).to_dict()


@app.post("/seasons/{season_id}/rounds")
def add_rounds(season_id: str, req: AddRoundsRequest) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        matches = SeasonService().add_rounds(conn, season_id, req.rounds)
        return {"season_id": season_id, "matches": [m.to_dict() for m in matches]}


@app.post("/seasons/{season_id}/matches")
def create_match(season_id: str, req: CreateMatchRequest) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        match = SeasonService().create_match(
            conn, season_id, req.home_team_id, req.away_team_id, gameday=req.gameday,
            scheduled_at=req.scheduled_at, venue=req.venue, referee_id=req.referee_id,
            home_kit=req.home_kit, away_kit=req.away_kit,
        )
        return match.to_dict()


@app.get("/seasons/{season_id}/matches")
def list_season_matches(season_id: str) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        SeasonService().get_season(conn, season_id)
        return {"matches": [m.to_dict() for m in MatchRepository().list_by_season(conn, season_id)]}


@app.get("/seasons/{season_id}/gameday")
def get_gameday(season_id: str, gameday: int | None = Query(None, ge=1)) -> dict[str, Any]:
    """Matches of a gameday (default: current) plus every scheduled gameday number."""
    with db_conn() as conn, service_errors():
        svc = SeasonService()
        season = svc.get_season(conn, season_id)
        return {
            "season_id": season_id,
            "current_gameday": season.current_gameday,
            "gameday": gameday or season.current_gameday,
            "gamedays": svc.gamedays(conn, season_id),
            "matches": [m.to_dict() for m in svc.matches_for_gameday(conn, season_id, gameday)],
        }


@app.post("/seasons/{season_id}/gameday/complete")
def complete_gameday(season_id: str) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        return SeasonService().complete_gameday(conn, season_id).to_dict()


@app.delete("/seasons/{season_id}")
def teardown_season(season_id: str) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        SeasonService().teardown_season(conn, season_id)
        return {"season_id": season_id, "deleted": True}


# ---------- Matches ----------


@app.get("/matches/live")
def live_matches() -> dict[str, Any]:
    """Matches in first half, halftime or second half, grouped by league."""
    with db_conn() as conn:
        grouped = MatchLifecycle().live_matches(conn)
        return {
            "leagues": [
                {"league_id": league_id, "matches": [m.to_dict() for m in matches]}
                for league_id, matches in grouped.items()
            ]
        }


@app.get("/matches/{match_id}")
def get_match(match_id: str) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        return MatchLifecycle().get_match(conn, match_id).to_dict()


@app.patch("/matches/{match_id}")
def update_match(match_id: str, req: UpdateMatchRequest) -> dict[str, Any]:
    """Assign referee, kick-off time or venue. Omitted fields are left unchanged."""
    with db_conn() as conn, service_errors():
        return MatchLifecycle().update_match(
            conn, match_id, referee_id=req.referee_id, scheduled_at=req.scheduled_at, venue=req.venue
        ).to_dict()


@app.get("/matches/{match_id}/events")
def list_match_events(match_id: str) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        return {"events": [e.to_dict() for e in MatchLifecycle().list_events(conn, match_id)]}


@app.post("/matches/{match_id}/goals")
def record_goal(match_id: str, req: GoalRequest) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        event = MatchLifecycle().record_goal(
            conn, match_id, req.player_id, req.side, req.minute, own_goal=req.own_goal
        )
        return event.to_dict()


@app.post("/matches/{match_id}/cards")
def record_card(match_id: str, req: CardRequest) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        result = MatchLifecycle().record_card(
            conn, match_id, req.player_id, req.team_id, req.minute, req.card_type
        )
        return {
            "event": result.event.to_dict(),
            "suspended": result.suspension.suspend,
            "blockdate": result.suspension.blockdate.isoformat() if result.suspension.blockdate else None,
            "voided_event_id": result.voided_event_id,
        }


@app.post("/matches/{match_id}/submit")
def submit_match(match_id: str, req: SubmitRequest) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        return MatchLifecycle().submit(conn, match_id, req.report).to_dict()


@app.post("/matches/{match_id}/no-show")
def no_show(match_id: str, req: WinningSideRequest) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        return MatchLifecycle().no_show(conn, match_id, req.winning_side).to_dict()


@app.post("/matches/{match_id}/team-cancel")
def team_cancel(match_id: str, req: WinningSideRequest) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        return MatchLifecycle().team_cancel(conn, match_id, req.winning_side).to_dict()


@app.post("/matches/{match_id}/sheets/{side}/players")
def add_sheet_player(match_id: str, side: str, req: SheetPlayerRequest) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        return MatchLifecycle().add_player(conn, match_id, side, req.player_id, number=req.number).to_dict()


@app.delete("/matches/{match_id}/sheets/{side}/players/{player_id}")
def remove_sheet_player(match_id: str, side: str, player_id: str) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        return MatchLifecycle().remove_player(conn, match_id, side, player_id).to_dict()


@app.post("/matches/{match_id}/sheets/{side}/toggle-kit")
def toggle_kit(match_id: str, side: str) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        return MatchLifecycle().toggle_kit(conn, match_id, side).to_dict()


@app.delete("/events/{event_id}")
def delete_event(event_id: str) -> dict[str, Any]:
    """Delete a goal/card event and reverse its effect. Suspensions are not lifted."""
    with db_conn() as conn, service_errors():
        revert = MatchLifecycle().delete_event(conn, event_id)
        return {"event": revert.event.to_dict(), "deleted": True, "needs_review": revert.needs_review}


_SIMPLE_COMMANDS = {
    "start": "start_game",
    "end-first-half": "end_first_half",
    "start-second-half": "start_second_half",
    "end-game": "end_game",
    "done": "done",
    "abort": "abort",
    "reset": "reset_game",
    "reset-halftime": "reset_halftime",
}


@app.post("/matches/{match_id}/{command}")
def run_match_command(match_id: str, command: str) -> dict[str, Any]:
    """Clock and administrative commands that take no body."""
    method = _SIMPLE_COMMANDS.get(command)
    if method is None:
        raise HTTPException(status_code=404, detail=f"Unknown match command: {command}")
    with db_conn() as conn, service_errors():
        return getattr(MatchLifecycle(), method)(conn, match_id).to_dict()


# ---------- Standings, leaderboards, suspensions ----------


@app.get("/leagues/{league_id}/standings")
def get_league_standings(league_id: str, primary_only: bool = Query(True)) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        rows = StandingsCalculator().compute_standings(conn, league_id, primary_only=primary_only)
        return {"league_id": league_id, "standings": [r.to_dict() for r in rows]}


@app.get("/leagues/{league_id}/leaderboard")
def get_league_leaderboard(
    league_id: str,
    event_type: str = Query("goal"),
    primary_only: bool = Query(False),
    since: datetime | None = Query(None),
    until: datetime | None = Query(None),
) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        entries = LeaderboardAggregator().league_leaderboard(
            conn, league_id, event_type, primary_only=primary_only, since=since, until=until
        )
        return {"league_id": league_id, "event_type": event_type, "entries": [e.to_dict() for e in entries]}


@app.get("/leaderboard/top-scorers")
def get_top_scorers(limit: int = Query(config.TOP_SCORERS_LIMIT, ge=1, le=500)) -> dict[str, Any]:
    with db_conn() as conn, service_errors():
        return {"entries": [e.to_dict() for e in LeaderboardAggregator().top_scorers(conn, limit=limit)]}


@app.get("/leagues/{league_id}/suspensions")
def get_blocked_players(league_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        if LeagueRepository().get(conn, league_id) is None:
            raise HTTPException(status_code=404, detail="League not found")
        return {"league_id": league_id, "players": SuspensionPolicy().blocked_players(conn, league_id)}


@app.post("/suspensions/release")
def release_suspensions() -> dict[str, Any]:
    """Reinstate players whose suspension has expired (normally run on a schedule)."""
    with db_conn() as conn:
        released = SuspensionPolicy().release_expired(conn)
        return {"released": released}


# ---------- Run with: uvicorn competition_engine.api:app --reload ----------
