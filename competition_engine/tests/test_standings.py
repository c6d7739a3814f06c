"""
Tests for standings: points, goal difference, counted statuses, tie order and form.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from competition_engine.models import Match, MatchStatus, RosterSheet, Team
from competition_engine.persistence.repositories import LeagueRepository, TeamRepository
from competition_engine.services.errors import NotFoundError
from competition_engine.services.season_service import SeasonService
from competition_engine.services.standings import StandingsCalculator, compute_table

NOW = datetime(2024, 3, 9, 18, 30, tzinfo=timezone.utc)


def _team(team_id: str) -> Team:
    return Team(id=team_id, league_id="L", name=team_id.upper(), created_at=NOW)


def _match(home: str, away: str, home_score: int, away_score: int,
           status: MatchStatus = MatchStatus.DONE) -> Match:
    return Match(
        id=f"{home}-{away}", season_id="S", home_team_id=home, away_team_id=away, gameday=1,
        status=status, home_sheet=RosterSheet(name=home), away_sheet=RosterSheet(name=away),
        created_at=NOW, home_score=home_score, away_score=away_score,
    )


# ---------- compute_table ----------


def test_three_team_round_robin():
    """A beats B 2-0 and C 1-0, B beats C 3-1."""
    teams = [_team("c"), _team("b"), _team("a")]
    matches = [_match("a", "b", 2, 0), _match("a", "c", 1, 0), _match("b", "c", 3, 1)]
    table = compute_table(teams, matches)
    assert [r.team_id for r in table] == ["a", "b", "c"]
    assert [r.points for r in table] == [6, 3, 0]
    assert [r.goal_difference for r in table] == [3, 0, -3]
    assert [r.rank for r in table] == [1, 2, 3]
    a = table[0]
    assert (a.played, a.wins, a.draws, a.losses, a.goals_for, a.goals_against) == (2, 2, 0, 0, 3, 0)


def test_draw_gives_one_point_each():
    table = compute_table([_team("a"), _team("b")], [_match("a", "b", 2, 2)])
    assert [r.points for r in table] == [1, 1]
    assert all(r.draws == 1 for r in table)


def test_only_finished_matches_count():
    teams = [_team("a"), _team("b")]
    counted = [
        _match("a", "b", 1, 0, status)
        for status in (
            MatchStatus.COMPLETED, MatchStatus.SUBMITTED, MatchStatus.CANCELLED,
            MatchStatus.ABORTED, MatchStatus.DONE,
        )
    ]
    ignored = [
        _match("a", "b", 1, 0, status)
        for status in (MatchStatus.PENDING, MatchStatus.FIRST, MatchStatus.HALFTIME, MatchStatus.SECOND)
    ]
    table = compute_table(teams, counted + ignored)
    assert table[0].team_id == "a"
    assert table[0].played == 5
    assert table[0].points == 15


def test_ties_broken_by_goal_difference_then_registration_order():
    teams = [_team("a"), _team("b"), _team("c"), _team("d")]
    matches = [_match("b", "a", 1, 0), _match("c", "d", 4, 0)]
    table = compute_table(teams, matches)
    assert [r.team_id for r in table] == ["c", "b", "a", "d"]
    # Equal points and goal difference keep registration order
    table = compute_table(teams, [_match("a", "b", 1, 1), _match("c", "d", 0, 0)])
    assert [r.team_id for r in table] == ["a", "b", "c", "d"]


def test_form_newest_first_and_capped():
    teams = [_team("a"), _team("b")]
    scores = [(1, 0), (0, 1), (2, 2), (3, 0), (0, 2), (1, 0)]
    matches = [_match("a", "b", h, a) for h, a in scores]
    table = {r.team_id: r for r in compute_table(teams, matches)}
    assert table["a"].form == ["W", "L", "W", "D", "L"]
    assert table["b"].form == ["L", "W", "L", "D", "W"]


def test_matches_with_unlisted_teams_ignored():
    table = compute_table([_team("a"), _team("b")], [_match("a", "x", 5, 0)])
    assert all(r.played == 0 for r in table)


def test_empty_league():
    assert compute_table([], []) == []


# ---------- StandingsCalculator ----------


def test_standings_from_database(db_conn, lifecycle, league, season):
    """Forfeits count with their 6-0 score; pending matches do not count."""
    teams = league["teams"]
    games = season["matches"]
    first = games[0]
    scorer = league["players"][first.home_team_id][0]
    lifecycle.record_goal(db_conn, first.id, scorer.id, "home", 12)
    lifecycle.done(db_conn, first.id)
    lifecycle.no_show(db_conn, games[1].id, "away")
    # Pending match with a goal does not count
    other_scorer = league["players"][games[2].home_team_id][0]
    lifecycle.record_goal(db_conn, games[2].id, other_scorer.id, "home", 40)

    table = StandingsCalculator().compute_standings(db_conn, league["league"].id)
    by_id = {r.team_id: r for r in table}
    assert by_id[first.home_team_id].points == 3
    assert by_id[first.away_team_id].points == 0
    assert by_id[games[1].away_team_id].points == 3
    assert by_id[games[1].away_team_id].goals_for == 6
    assert by_id[games[1].home_team_id].goals_against == 6
    assert sum(r.played for r in table) == 4
    assert len(table) == len(teams)
    assert table[0].team_id == games[1].away_team_id


def test_standings_primary_only(db_conn, lifecycle, league, season):
    _, cup_matches = SeasonService().create_season(db_conn, league["league"].id, "Cup", rounds=1)
    lifecycle.no_show(db_conn, cup_matches[0].id, "home")
    calc = StandingsCalculator()
    primary = calc.compute_standings(db_conn, league["league"].id)
    assert all(r.played == 0 for r in primary)
    every = calc.compute_standings(db_conn, league["league"].id, primary_only=False)
    assert sum(r.played for r in every) == 2
    assert calc.team_points(db_conn, cup_matches[0].home_team_id) == 0
    assert calc.team_points(db_conn, cup_matches[0].home_team_id, primary_only=False) == 3


def test_standings_unknown_league(db_conn):
    with pytest.raises(NotFoundError):
        StandingsCalculator().compute_standings(db_conn, "missing")
    with pytest.raises(NotFoundError):
        StandingsCalculator().team_points(db_conn, "missing")


def test_standings_league_without_matches(db_conn):
    lg = LeagueRepository().create(db_conn, "Fresh", "FR")
    TeamRepository().create(db_conn, lg.id, "Only")
    table = StandingsCalculator().compute_standings(db_conn, lg.id)
    assert [(r.team_name, r.points, r.rank) for r in table] == [("Only", 0, 1)]
