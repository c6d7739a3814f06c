"""
API integration tests.
Uses TestClient to avoid starting a server.
Requires: pip install httpx (for TestClient)
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

try:
    from fastapi.testclient import TestClient
    HAS_HTTPX = True
except (ImportError, RuntimeError):
    HAS_HTTPX = False

# Ensure project root on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

pytestmark = pytest.mark.skipif(not HAS_HTTPX, reason="httpx required for TestClient")

from competition_engine.api import app
from competition_engine.persistence.db import init_db, set_db_path


@pytest.fixture(autouse=True)
def isolated_db(tmp_path):
    """Use a temporary DB for each test."""
    db_path = tmp_path / "api_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    yield db_path


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def setup(client):
    """League with two teams, one player each, a referee and a primary single-round season."""
    league = client.post("/leagues", json={"name": "Kreisliga Nord", "code": "KLN", "hourly_rate": 40.0}).json()
    teams = [
        client.post(f"/leagues/{league['id']}/teams", json={
            "name": name, "kit_home": f"{name}-home", "kit_away": f"{name}-away",
            "contact_email": f"{name.lower()}@example.org",
        }).json()
        for name in ("Rapid", "Austria")
    ]
    players = {
        t["id"]: client.post(f"/teams/{t['id']}/players", json={"name": f"{t['name']} Nine", "number": 9}).json()
        for t in teams
    }
    referee = client.post("/referees", json={"name": "Ref One", "email": "ref@example.org"}).json()
    resp = client.post(f"/leagues/{league['id']}/seasons", json={"name": "2024/2025", "rounds": 1, "make_primary": True})
    assert resp.status_code == 200
    season = resp.json()
    return {"league": league, "teams": teams, "players": players, "referee": referee, "season": season}


def test_create_and_list_leagues(client):
    resp = client.post("/leagues", json={"name": "Kreisliga Nord", "code": "KLN"})
    assert resp.status_code == 200
    assert resp.json()["code"] == "KLN"
    assert client.post("/leagues", json={"name": "Duplicate", "code": "KLN"}).status_code == 409
    leagues = client.get("/leagues").json()["leagues"]
    assert [l["code"] for l in leagues] == ["KLN"]


def test_league_detail(client, setup):
    data = client.get(f"/leagues/{setup['league']['id']}").json()
    assert [t["name"] for t in data["teams"]] == ["Rapid", "Austria"]
    assert data["seasons"][0]["is_primary"] is True
    assert client.get("/leagues/missing").status_code == 404


def test_season_schedule(client, setup):
    season = setup["season"]
    assert len(season["matches"]) == 1
    m = season["matches"][0]
    assert m["status"] == "pending"
    assert m["score"] == {"home": 0, "away": 0}
    gameday = client.get(f"/seasons/{season['id']}/gameday").json()
    assert gameday["current_gameday"] == 1
    assert gameday["gamedays"] == [1]
    assert [x["id"] for x in gameday["matches"]] == [m["id"]]


def test_season_needs_two_teams(client):
    league = client.post("/leagues", json={"name": "Tiny", "code": "TINY"}).json()
    client.post(f"/leagues/{league['id']}/teams", json={"name": "Lonely"})
    resp = client.post(f"/leagues/{league['id']}/seasons", json={"name": "2024", "rounds": 1})
    assert resp.status_code == 400


def test_match_flow_to_standings(client, setup):
    match = setup["season"]["matches"][0]
    mid = match["id"]
    home_player = setup["players"][match["home_team_id"]]

    assert client.post(f"/matches/{mid}/start").json()["status"] == "first"
    resp = client.post(f"/matches/{mid}/goals", json={"player_id": home_player["id"], "side": "home", "minute": 12})
    assert resp.status_code == 200
    assert resp.json()["type"] == "goal"
    for command, status in [("end-first-half", "halftime"), ("start-second-half", "second"), ("end-game", "completed")]:
        resp = client.post(f"/matches/{mid}/{command}")
        assert resp.status_code == 200
        assert resp.json()["status"] == status

    events = client.get(f"/matches/{mid}/events").json()["events"]
    assert len(events) == 1

    standings = client.get(f"/leagues/{setup['league']['id']}/standings").json()["standings"]
    assert standings[0]["team_id"] == match["home_team_id"]
    assert standings[0]["points"] == 3
    assert standings[1]["points"] == 0

    board = client.get(f"/leagues/{setup['league']['id']}/leaderboard").json()["entries"]
    assert [(e["player_id"], e["count"]) for e in board] == [(home_player["id"], 1)]
    top = client.get("/leaderboard/top-scorers", params={"limit": 5}).json()["entries"]
    assert top[0]["name"] == home_player["name"]


def test_illegal_transition_is_conflict(client, setup):
    mid = setup["season"]["matches"][0]["id"]
    assert client.post(f"/matches/{mid}/end-game").status_code == 409
    assert client.post(f"/matches/{mid}/not-a-command").status_code == 404


def test_validation_and_not_found(client, setup):
    match = setup["season"]["matches"][0]
    player = setup["players"][match["home_team_id"]]
    resp = client.post(f"/matches/{match['id']}/goals", json={"player_id": player["id"], "side": "left", "minute": 3})
    assert resp.status_code == 400
    resp = client.post("/matches/missing/goals", json={"player_id": player["id"], "side": "home", "minute": 3})
    assert resp.status_code == 404
    assert client.get("/matches/missing").status_code == 404
    resp = client.post(f"/matches/{match['id']}/cards", json={
        "player_id": player["id"], "team_id": match["home_team_id"], "minute": 3, "card_type": "purple_card",
    })
    assert resp.status_code == 400


def test_red_card_suspends_and_blocks_sheet(client, setup):
    match = setup["season"]["matches"][0]
    player = setup["players"][match["home_team_id"]]
    resp = client.post(f"/matches/{match['id']}/cards", json={
        "player_id": player["id"], "team_id": match["home_team_id"], "minute": 40, "card_type": "red_card",
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["suspended"] is True
    assert body["blockdate"] is not None
    blocked = client.get(f"/leagues/{setup['league']['id']}/suspensions").json()["players"]
    assert [b["id"] for b in blocked] == [player["id"]]
    resp = client.post(f"/matches/{match['id']}/sheets/home/players", json={"player_id": player["id"]})
    assert resp.status_code == 422


def test_roster_sheet_endpoints(client, setup):
    match = setup["season"]["matches"][0]
    mid = match["id"]
    player = setup["players"][match["away_team_id"]]
    resp = client.post(f"/matches/{mid}/sheets/away/players", json={"player_id": player["id"], "number": 10})
    assert resp.status_code == 200
    assert resp.json()["away_sheet"]["players"][0]["number"] == 10
    resp = client.post(f"/matches/{mid}/sheets/away/toggle-kit")
    assert resp.json()["away_sheet"]["kit"].endswith("-home")
    resp = client.delete(f"/matches/{mid}/sheets/away/players/{player['id']}")
    assert resp.json()["away_sheet"]["players"] == []
    resp = client.delete(f"/matches/{mid}/sheets/away/players/{player['id']}")
    assert resp.status_code == 409


def test_delete_event_restores_score(client, setup):
    match = setup["season"]["matches"][0]
    player = setup["players"][match["away_team_id"]]
    event = client.post(f"/matches/{match['id']}/goals", json={
        "player_id": player["id"], "side": "away", "minute": 77,
    }).json()
    resp = client.delete(f"/events/{event['id']}")
    assert resp.status_code == 200
    assert resp.json()["needs_review"] is False
    assert client.get(f"/matches/{match['id']}").json()["score"] == {"home": 0, "away": 0}
    assert client.delete(f"/events/{event['id']}").status_code == 404


def test_submit_without_referee_reports_missing_data(client, setup):
    mid = setup["season"]["matches"][0]["id"]
    resp = client.post(f"/matches/{mid}/submit", json={"report": "Quiet game"})
    assert resp.status_code == 500
    match = client.get(f"/matches/{mid}").json()
    assert match["status"] == "submitted"
    assert match["report"] == "Quiet game"
    assert match["paid"] is False


def test_patch_match_assigns_referee_to_scheduled_fixture(client, setup):
    mid = setup["season"]["matches"][0]["id"]
    resp = client.patch(f"/matches/{mid}", json={
        "referee_id": setup["referee"]["id"], "scheduled_at": "2024-03-16T15:00:00+01:00", "venue": "Sportplatz Nord",
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["referee_id"] == setup["referee"]["id"]
    assert body["scheduled_at"] == "2024-03-16T14:00:00+00:00"
    assert body["venue"] == "Sportplatz Nord"
    resp = client.post(f"/matches/{mid}/submit", json={"report": ""})
    assert resp.status_code == 200
    assert resp.json()["paid"] is True
    assert client.patch(f"/matches/{mid}", json={"referee_id": "missing"}).status_code == 404
    assert client.patch("/matches/missing", json={"venue": "Prater"}).status_code == 404


def test_submit_with_referee_pays_once(client, setup):
    league_id = setup["league"]["id"]
    season_id = setup["season"]["id"]
    home, away = setup["teams"]
    resp = client.post(f"/seasons/{season_id}/matches", json={
        "home_team_id": away["id"], "away_team_id": home["id"], "referee_id": setup["referee"]["id"],
    })
    assert resp.status_code == 200
    mid = resp.json()["id"]
    assert resp.json()["gameday"] == 2
    first = client.post(f"/matches/{mid}/submit", json={"report": ""})
    assert first.status_code == 200
    assert first.json()["paid"] is True
    second = client.post(f"/matches/{mid}/submit", json={"report": "late note"})
    assert second.status_code == 200
    assert second.json()["report"] == "late note"
    assert client.get(f"/leagues/{league_id}").status_code == 200


def test_team_cancel_cap_is_business_rule(client, setup):
    season_id = setup["season"]["id"]
    home, away = setup["teams"]
    matches = [
        client.post(f"/seasons/{season_id}/matches", json={"home_team_id": home["id"], "away_team_id": away["id"]}).json()
        for _ in range(4)
    ]
    for m in matches[:3]:
        resp = client.post(f"/matches/{m['id']}/team-cancel", json={"winning_side": "away"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert resp.json()["score"] == {"home": 0, "away": 6}
    resp = client.post(f"/matches/{matches[3]['id']}/team-cancel", json={"winning_side": "away"})
    assert resp.status_code == 422
    assert client.get(f"/matches/{matches[3]['id']}").json()["status"] == "pending"


def test_no_show(client, setup):
    mid = setup["season"]["matches"][0]["id"]
    resp = client.post(f"/matches/{mid}/no-show", json={"winning_side": "home"})
    assert resp.status_code == 200
    assert resp.json()["score"] == {"home": 6, "away": 0}
    assert client.post(f"/matches/{mid}/no-show", json={"winning_side": "home"}).status_code == 409


def test_live_matches_endpoint(client, setup):
    mid = setup["season"]["matches"][0]["id"]
    assert client.get("/matches/live").json()["leagues"] == []
    client.post(f"/matches/{mid}/start")
    leagues = client.get("/matches/live").json()["leagues"]
    assert leagues[0]["league_id"] == setup["league"]["id"]
    assert [m["id"] for m in leagues[0]["matches"]] == [mid]


def test_season_teardown(client, setup):
    season_id = setup["season"]["id"]
    assert client.delete(f"/seasons/{season_id}").status_code == 200
    assert client.get(f"/seasons/{season_id}/matches").status_code == 404


def test_top_scorers_limit_validated(client):
    assert client.get("/leaderboard/top-scorers", params={"limit": 0}).status_code == 422
