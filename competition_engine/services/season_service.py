"""
Season service: schedule materialization, primary-season toggle, gameday sequencing.
Create season: generate round-robin fixtures, one pending match per fixture.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from competition_engine.models import Match, RosterSheet, Season, Side, Team
from competition_engine.persistence.db import transaction
from competition_engine.persistence.repositories import (
    CancellationRepository,
    DisciplinaryCaseRepository,
    LeagueRepository,
    MatchEventRepository,
    MatchRepository,
    RefereeRepository,
    SeasonRepository,
    TeamRepository,
)
from competition_engine.services import locks
from competition_engine.services.errors import NotFoundError, ValidationError
from competition_engine.services.scheduling import fixtures_per_pass, round_robin_fixtures

logger = logging.getLogger(__name__)


class SeasonService:
    """
    Domain logic for seasons: fixture generation, primary flag, gameday progression.
    Persistence is delegated to repositories; each command commits once.
    """

    def __init__(self) -> None:
        self._league_repo = LeagueRepository()
        self._season_repo = SeasonRepository()
        self._team_repo = TeamRepository()
        self._match_repo = MatchRepository()
        self._event_repo = MatchEventRepository()
        self._cancellation_repo = CancellationRepository()
        self._case_repo = DisciplinaryCaseRepository()
        self._referee_repo = RefereeRepository()

    # ---------- Lookups ----------

    def get_season(self, conn: sqlite3.Connection, season_id: str) -> Season:
        season = self._season_repo.get(conn, season_id)
        if season is None:
            raise NotFoundError(f"Season not found: {season_id}")
        return season

    def _league_teams(self, conn: sqlite3.Connection, league_id: str) -> list[Team]:
        if self._league_repo.get(conn, league_id) is None:
            raise NotFoundError(f"League not found: {league_id}")
        return self._team_repo.list_by_league(conn, league_id)

    def _materialize(
        self,
        conn: sqlite3.Connection,
        season: Season,
        teams: list[Team],
        rounds: int,
        gameday_offset: int = 0,
    ) -> list[Match]:
        by_id = {t.id: t for t in teams}
        fixtures = round_robin_fixtures([t.id for t in teams], rounds)
        expected = fixtures_per_pass(len(teams)) * rounds
        if len(fixtures) != expected:
            raise RuntimeError(f"Schedule generation produced {len(fixtures)} fixtures, expected {expected}")
        matches: list[Match] = []
        for f in fixtures:
            home, away = by_id[f.home_team_id], by_id[f.away_team_id]
            matches.append(self._match_repo.create(
                conn, season.id, home.id, away.id, f.gameday + gameday_offset,
                home_sheet=RosterSheet.stub_for(home, Side.HOME),
                away_sheet=RosterSheet.stub_for(away, Side.AWAY),
            ))
        return matches

    # ---------- Season creation & scheduling ----------

    def create_season(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        name: str,
        rounds: int = 2,
        make_primary: bool = False,
    ) -> tuple[Season, list[Match]]:
        """
        Create a season with a full round-robin schedule for the league's teams.
        Requires at least 2 teams. make_primary moves the primary flag to the new season.
        """
        if not name or not name.strip():
            raise ValidationError("Season name is required")
        teams = self._league_teams(conn, league_id)
        if len(teams) < 2:
            raise ValidationError(f"League {league_id} must have at least 2 teams (has {len(teams)})")
        with transaction(conn):
            season = self._season_repo.create(conn, league_id, name.strip())
            matches = self._materialize(conn, season, teams, rounds)
            if make_primary:
                self._season_repo.clear_primary(conn, league_id)
                self._season_repo.mark_primary(conn, season.id)
                season.is_primary = True
        logger.info(
            "season created season_id=%s league_id=%s teams=%d rounds=%d matches=%d primary=%s",
            season.id, league_id, len(teams), rounds, len(matches), make_primary,
        )
        return season, matches

    def add_rounds(self, conn: sqlite3.Connection, season_id: str, rounds: int) -> list[Match]:
        """Append further round-robin passes; gamedays continue after the last scheduled one."""
        if rounds < 1:
            raise ValidationError(f"rounds must be >= 1 (got {rounds})")
        season = self.get_season(conn, season_id)
        teams = self._league_teams(conn, season.league_id)
        if len(teams) < 2:
            raise ValidationError(f"League {season.league_id} must have at least 2 teams (has {len(teams)})")
        offset = self._match_repo.max_gameday(conn, season_id)
        with transaction(conn):
            matches = self._materialize(conn, season, teams, rounds, gameday_offset=offset)
        logger.info("rounds added season_id=%s rounds=%d matches=%d", season_id, rounds, len(matches))
        return matches

    def create_match(
        self,
        conn: sqlite3.Connection,
        season_id: str,
        home_team_id: str,
        away_team_id: str,
        gameday: int | None = None,
        scheduled_at: datetime | None = None,
        venue: str | None = None,
        referee_id: str | None = None,
        home_kit: str | None = None,
        away_kit: str | None = None,
    ) -> Match:
        """Manual fixture. Both teams must be in the season's league; gameday defaults to last + 1."""
        season = self.get_season(conn, season_id)
        if home_team_id == away_team_id:
            raise ValidationError("Home and away team cannot be the same")
        home = self._team_repo.get(conn, home_team_id)
        if home is None:
            raise NotFoundError(f"Team not found: {home_team_id}")
        away = self._team_repo.get(conn, away_team_id)
        if away is None:
            raise NotFoundError(f"Team not found: {away_team_id}")
        if home.league_id != season.league_id or away.league_id != season.league_id:
            raise ValidationError("Both teams must belong to the season's league")
        if referee_id and self._referee_repo.get(conn, referee_id) is None:
            raise NotFoundError(f"Referee not found: {referee_id}")
        if gameday is None:
            gameday = self._match_repo.max_gameday(conn, season_id) + 1
        elif gameday < 1:
            raise ValidationError(f"gameday must be >= 1 (got {gameday})")
        home_sheet = RosterSheet.stub_for(home, Side.HOME)
        away_sheet = RosterSheet.stub_for(away, Side.AWAY)
        if home_kit:
            home_sheet.kit = home_kit
        if away_kit:
            away_sheet.kit = away_kit
        with transaction(conn):
            match = self._match_repo.create(
                conn, season_id, home.id, away.id, gameday, home_sheet, away_sheet,
                referee_id=referee_id, scheduled_at=scheduled_at, venue=venue,
            )
        logger.info("match created match_id=%s season_id=%s gameday=%d", match.id, season_id, gameday)
        return match

    # ---------- Primary season ----------

    def set_primary_season(self, conn: sqlite3.Connection, season_id: str) -> Season:
        """Clear the flag on every season of the league, then set it on this one. One transaction."""
        season = self.get_season(conn, season_id)
        with transaction(conn):
            self._season_repo.clear_primary(conn, season.league_id)
            self._season_repo.mark_primary(conn, season.id)
        season.is_primary = True
        logger.info("primary season set season_id=%s league_id=%s", season.id, season.league_id)
        return season

    def get_primary_season(self, conn: sqlite3.Connection, league_id: str) -> Season | None:
        return self._season_repo.get_primary(conn, league_id)

    # ---------- Gamedays ----------

    def matches_for_gameday(
        self, conn: sqlite3.Connection, season_id: str, gameday: int | None = None
    ) -> list[Match]:
        """Matches of a gameday; defaults to the season's current one."""
        season = self.get_season(conn, season_id)
        return self._match_repo.list_by_gameday(conn, season_id, gameday or season.current_gameday)

    def gamedays(self, conn: sqlite3.Connection, season_id: str) -> list[int]:
        self.get_season(conn, season_id)
        return sorted({m.gameday for m in self._match_repo.list_by_season(conn, season_id)})

    def complete_gameday(self, conn: sqlite3.Connection, season_id: str) -> Season:
        """Advance current_gameday by one, never past the last scheduled gameday."""
        season = self.get_season(conn, season_id)
        last = self._match_repo.max_gameday(conn, season_id)
        next_gameday = min(season.current_gameday + 1, max(last, 1))
        with transaction(conn):
            self._season_repo.update_current_gameday(conn, season_id, next_gameday)
        season.current_gameday = next_gameday
        logger.info("gameday advanced season_id=%s gameday=%d", season_id, next_gameday)
        return season

    # ---------- Teardown ----------

    def teardown_season(self, conn: sqlite3.Connection, season_id: str) -> None:
        """Delete the season with its matches, events, cases and cancellation counters."""
        self.get_season(conn, season_id)
        match_ids = [m.id for m in self._match_repo.list_by_season(conn, season_id)]
        with transaction(conn):
            self._event_repo.delete_by_season(conn, season_id)
            self._case_repo.delete_by_season(conn, season_id)
            self._cancellation_repo.delete_by_season(conn, season_id)
            self._match_repo.delete_by_season(conn, season_id)
            self._season_repo.delete(conn, season_id)
        for match_id in match_ids:
            locks.forget(match_id)
        logger.info("season torn down season_id=%s matches=%d", season_id, len(match_ids))
