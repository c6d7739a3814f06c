"""
Shared fixtures: a fresh SQLite database per test and a small league to play in.
"""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from competition_engine.persistence.db import get_connection, init_db, set_db_path
from competition_engine.persistence.repositories import (
    LeagueRepository,
    PlayerRepository,
    RefereeRepository,
    TeamRepository,
)
from competition_engine.services.match_lifecycle import MatchLifecycle
from competition_engine.services.season_service import SeasonService


class FakeClock:
    """Deterministic clock; advance() moves it forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []

    def notify(self, kind: str, payload: dict[str, Any]) -> None:
        self.sent.append((kind, payload))

    def kinds(self) -> list[str]:
        return [k for k, _ in self.sent]


class FailingNotifier:
    def notify(self, kind: str, payload: dict[str, Any]) -> None:
        raise ConnectionError("push gateway down")


@pytest.fixture
def db_conn(tmp_path):
    """Temporary DB with schema."""
    db_path = tmp_path / "competition_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def clock():
    # 2024-03-09 18:30 UTC is 19:30 in Vienna
    return FakeClock(datetime(2024, 3, 9, 18, 30, tzinfo=timezone.utc))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def lifecycle(clock, notifier):
    return MatchLifecycle(notifier=notifier, clock=clock)


@pytest.fixture
def league(db_conn):
    """League with four teams (two players each) and a referee."""
    league = LeagueRepository().create(db_conn, "Kreisliga Nord", "KLN", hourly_rate=40.0)
    team_repo = TeamRepository()
    player_repo = PlayerRepository()
    teams = []
    players: dict[str, list] = {}
    for i, name in enumerate(["Rapid", "Austria", "Sturm", "Admira"]):
        team = team_repo.create(
            db_conn, league.id, name, kit_home=f"{name}-home", kit_away=f"{name}-away",
            coach=f"Coach {name}", contact_email=f"{name.lower()}@example.org",
        )
        teams.append(team)
        players[team.id] = [
            player_repo.create(db_conn, team.id, f"{name} Player {n}", number=n + 1)
            for n in range(2)
        ]
    referee = RefereeRepository().create(db_conn, "Ref One", email="ref@example.org")
    return {"league": league, "teams": teams, "players": players, "referee": referee}


@pytest.fixture
def season(db_conn, league):
    """Primary double round-robin season for the league."""
    season, matches = SeasonService().create_season(
        db_conn, league["league"].id, "2024/2025", rounds=2, make_primary=True
    )
    return {"season": season, "matches": matches}


@pytest.fixture
def match(db_conn, lifecycle, league, season):
    """First scheduled match, with the referee assigned."""
    return lifecycle.update_match(db_conn, season["matches"][0].id, referee_id=league["referee"].id)