"""
Tests for goal/card leaderboards and the cross-league top scorers list.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from competition_engine.persistence.repositories import LeagueRepository, PlayerRepository, TeamRepository
from competition_engine.services.errors import NotFoundError, ValidationError
from competition_engine.services.leaderboard import LeaderboardAggregator
from competition_engine.services.season_service import SeasonService


def _score(lifecycle, db_conn, match, player, times=1):
    side = "home" if player.team_id == match.home_team_id else "away"
    for minute in range(times):
        lifecycle.record_goal(db_conn, match.id, player.id, side, minute + 1)


@pytest.fixture
def other_league(db_conn):
    """Second league with a primary season and one scorer."""
    lg = LeagueRepository().create(db_conn, "Kreisliga Sued", "KLS", hourly_rate=35.0)
    t1 = TeamRepository().create(db_conn, lg.id, "Wacker")
    t2 = TeamRepository().create(db_conn, lg.id, "Vienna")
    striker = PlayerRepository().create(db_conn, t1.id, "Wacker Striker", number=9)
    PlayerRepository().create(db_conn, t2.id, "Vienna Keeper", number=1)
    _, matches = SeasonService().create_season(db_conn, lg.id, "2024/2025", rounds=1, make_primary=True)
    return {"league": lg, "striker": striker, "match": matches[0]}


def test_goal_leaderboard_counts_and_order(db_conn, lifecycle, league, season, match):
    home = league["players"][match.home_team_id]
    away = league["players"][match.away_team_id]
    _score(lifecycle, db_conn, match, away[0], times=1)
    _score(lifecycle, db_conn, match, home[0], times=3)
    _score(lifecycle, db_conn, match, home[1], times=1)
    board = LeaderboardAggregator().league_leaderboard(db_conn, league["league"].id, "goal")
    assert [(e.player_id, e.count) for e in board] == [(home[0].id, 3), (away[0].id, 1), (home[1].id, 1)]
    top = board[0]
    assert top.name == home[0].name
    assert top.number == home[0].number
    assert top.team_id == match.home_team_id
    home_team = next(t for t in league["teams"] if t.id == match.home_team_id)
    assert top.team_name == home_team.name


def test_card_leaderboard(db_conn, lifecycle, league, match):
    player = league["players"][match.home_team_id][0]
    lifecycle.record_card(db_conn, match.id, player.id, match.home_team_id, 10, "yellow_card")
    lifecycle.record_card(db_conn, match.id, player.id, match.home_team_id, 30, "red_card")
    agg = LeaderboardAggregator()
    yellows = agg.league_leaderboard(db_conn, league["league"].id, "yellow_card")
    assert [(e.player_id, e.count) for e in yellows] == [(player.id, 1)]
    assert agg.league_leaderboard(db_conn, league["league"].id, "goal") == []


def test_leaderboard_primary_only(db_conn, lifecycle, league, season, match):
    _, cup_matches = SeasonService().create_season(db_conn, league["league"].id, "Cup", rounds=1)
    cup_game = cup_matches[0]
    scorer = league["players"][cup_game.home_team_id][0]
    _score(lifecycle, db_conn, cup_game, scorer, times=2)
    agg = LeaderboardAggregator()
    assert agg.league_leaderboard(db_conn, league["league"].id, "goal", primary_only=True) == []
    every = agg.league_leaderboard(db_conn, league["league"].id, "goal")
    assert [(e.player_id, e.count) for e in every] == [(scorer.id, 2)]


def test_leaderboard_time_window(db_conn, lifecycle, clock, league, match):
    player = league["players"][match.home_team_id][0]
    _score(lifecycle, db_conn, match, player, times=2)
    clock.advance(days=7)
    cutoff = clock()
    _score(lifecycle, db_conn, match, player, times=1)
    agg = LeaderboardAggregator()
    recent = agg.league_leaderboard(db_conn, league["league"].id, "goal", since=cutoff)
    assert [e.count for e in recent] == [1]
    earlier = agg.league_leaderboard(db_conn, league["league"].id, "goal", until=cutoff)
    assert [e.count for e in earlier] == [2]


def test_leaderboard_window_bounds_in_other_offsets(db_conn, lifecycle, league, match):
    """Goal at 18:30 UTC; bounds given at +02:00 or naive are compared in UTC."""
    player = league["players"][match.home_team_id][0]
    _score(lifecycle, db_conn, match, player, times=1)
    plus_two = timezone(timedelta(hours=2))
    agg = LeaderboardAggregator()
    lg = league["league"].id
    hour_before = datetime(2024, 3, 9, 19, 30, tzinfo=plus_two)
    assert [e.count for e in agg.league_leaderboard(db_conn, lg, "goal", since=hour_before)] == [1]
    assert agg.league_leaderboard(db_conn, lg, "goal", until=hour_before) == []
    hour_after = datetime(2024, 3, 9, 21, 30, tzinfo=plus_two)
    assert agg.league_leaderboard(db_conn, lg, "goal", since=hour_after) == []
    assert [e.count for e in agg.league_leaderboard(db_conn, lg, "goal", until=hour_after)] == [1]
    naive = datetime(2024, 3, 9, 18, 0)
    assert [e.count for e in agg.league_leaderboard(db_conn, lg, "goal", since=naive)] == [1]


def test_leaderboard_scoped_to_league(db_conn, lifecycle, league, match, other_league):
    _score(lifecycle, db_conn, other_league["match"], other_league["striker"], times=4)
    home_player = league["players"][match.home_team_id][0]
    _score(lifecycle, db_conn, match, home_player, times=1)
    board = LeaderboardAggregator().league_leaderboard(db_conn, league["league"].id, "goal")
    assert [e.player_id for e in board] == [home_player.id]


def test_top_scorers_across_leagues(db_conn, lifecycle, league, match, other_league):
    home_player = league["players"][match.home_team_id][0]
    _score(lifecycle, db_conn, match, home_player, times=1)
    _score(lifecycle, db_conn, other_league["match"], other_league["striker"], times=4)
    agg = LeaderboardAggregator()
    top = agg.top_scorers(db_conn)
    assert [(e.player_id, e.count) for e in top] == [(other_league["striker"].id, 4), (home_player.id, 1)]
    assert [e.player_id for e in agg.top_scorers(db_conn, limit=1)] == [other_league["striker"].id]


def test_top_scorers_ignores_non_primary_seasons(db_conn, lifecycle, league, season):
    _, cup_matches = SeasonService().create_season(db_conn, league["league"].id, "Cup", rounds=1)
    scorer = league["players"][cup_matches[0].home_team_id][0]
    _score(lifecycle, db_conn, cup_matches[0], scorer, times=3)
    assert LeaderboardAggregator().top_scorers(db_conn) == []


def test_top_scorers_falls_back_to_ledger_snapshot(db_conn, lifecycle, league, match):
    player = league["players"][match.home_team_id][0]
    _score(lifecycle, db_conn, match, player, times=2)
    db_conn.execute("DELETE FROM players WHERE id = ?", (player.id,))
    db_conn.commit()
    top = LeaderboardAggregator().top_scorers(db_conn)
    assert len(top) == 1
    assert top[0].player_id == player.id
    assert top[0].count == 2
    assert top[0].name == player.name
    assert top[0].number == player.number
    assert top[0].team_name is None


def test_invalid_arguments(db_conn, league):
    agg = LeaderboardAggregator()
    with pytest.raises(ValidationError):
        agg.league_leaderboard(db_conn, league["league"].id, "corner_kick")
    with pytest.raises(NotFoundError):
        agg.league_leaderboard(db_conn, "missing", "goal")
    with pytest.raises(ValidationError):
        agg.top_scorers(db_conn, limit=0)
