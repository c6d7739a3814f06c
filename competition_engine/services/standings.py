"""
League standings derived from match history.

Only matches that have left active play count (completed, submitted, cancelled,
abbgebrochen, done). Points are 3/1/0 from the final score; forfeits count with
their 6-0 score. Rows sort by points, then goal difference; remaining ties keep
the league's team registration order.
"""
from __future__ import annotations

import sqlite3
from typing import Iterable

from competition_engine import config
from competition_engine.models import COUNTED_STATUSES, Match, TableItem, Team
from competition_engine.persistence.repositories import LeagueRepository, MatchRepository, TeamRepository
from competition_engine.services.errors import NotFoundError


def _result(goals_for: int, goals_against: int) -> str:
    if goals_for > goals_against:
        return "W"
    if goals_for < goals_against:
        return "L"
    return "D"


def compute_table(teams: list[Team], matches: Iterable[Match]) -> list[TableItem]:
    """
    Aggregate matches (in schedule order) into ranked table rows, one per team.
    Matches that are not counted or involve teams outside `teams` are ignored.
    """
    rows = {t.id: TableItem(team_id=t.id, team_name=t.name) for t in teams}
    history: dict[str, list[str]] = {t.id: [] for t in teams}
    for m in matches:
        if m.status not in COUNTED_STATUSES:
            continue
        if m.home_team_id not in rows or m.away_team_id not in rows:
            continue
        for team_id, goals_for, goals_against in (
            (m.home_team_id, m.home_score, m.away_score),
            (m.away_team_id, m.away_score, m.home_score),
        ):
            row = rows[team_id]
            row.played += 1
            row.goals_for += goals_for
            row.goals_against += goals_against
            outcome = _result(goals_for, goals_against)
            if outcome == "W":
                row.wins += 1
                row.points += config.POINTS_WIN
            elif outcome == "D":
                row.draws += 1
                row.points += config.POINTS_DRAW
            else:
                row.losses += 1
            history[team_id].append(outcome)
    for team_id, outcomes in history.items():
        rows[team_id].form = list(reversed(outcomes[-config.RECENT_FORM_LENGTH:]))
    ranked = sorted(rows.values(), key=lambda r: (-r.points, -r.goal_difference))
    for i, row in enumerate(ranked):
        row.rank = i + 1
    return ranked


class StandingsCalculator:
    """Read-only; recomputed per request, takes no locks."""

    def __init__(self) -> None:
        self._league_repo = LeagueRepository()
        self._team_repo = TeamRepository()
        self._match_repo = MatchRepository()

    def compute_standings(
        self, conn: sqlite3.Connection, league_id: str, primary_only: bool = True
    ) -> list[TableItem]:
        """Standings for a league, by default restricted to its primary season."""
        if self._league_repo.get(conn, league_id) is None:
            raise NotFoundError(f"League not found: {league_id}")
        teams = self._team_repo.list_by_league(conn, league_id)
        matches = self._match_repo.list_by_league(
            conn, league_id, statuses=COUNTED_STATUSES, primary_only=primary_only
        )
        return compute_table(teams, matches)

    def team_points(self, conn: sqlite3.Connection, team_id: str, primary_only: bool = True) -> int:
        """A team's current point total, derived the same way as the table."""
        team = self._team_repo.get(conn, team_id)
        if team is None:
            raise NotFoundError(f"Team not found: {team_id}")
        for row in self.compute_standings(conn, team.league_id, primary_only=primary_only):
            if row.team_id == team_id:
                return row.points
        return 0
