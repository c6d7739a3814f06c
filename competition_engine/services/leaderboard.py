"""
Per-player leaderboards over the event ledger (goals and cards).

Counting happens first on the full scoped event set; only the players that make
the board are then hydrated with their current name, image and team. The ledger
snapshot is used when the player record no longer exists.
"""
from __future__ import annotations

import sqlite3
from datetime import datetime

from competition_engine import config
from competition_engine.models import EventType, LeaderboardEntry
from competition_engine.persistence.repositories import (
    LeagueRepository,
    MatchEventRepository,
    PlayerRepository,
    TeamRepository,
)
from competition_engine.services.errors import NotFoundError, ValidationError


def parse_event_type(value: EventType | str) -> EventType:
    if isinstance(value, EventType):
        return value
    try:
        return EventType(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid event type: {value!r}") from None


class LeaderboardAggregator:
    """Read-only; takes no locks."""

    def __init__(self) -> None:
        self._league_repo = LeagueRepository()
        self._event_repo = MatchEventRepository()
        self._player_repo = PlayerRepository()
        self._team_repo = TeamRepository()

    def league_leaderboard(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        event_type: EventType | str,
        primary_only: bool = False,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[LeaderboardEntry]:
        """
        Counts of one event type for players of the league's teams, highest first.
        primary_only keeps events from primary-season matches; since/until bound event time.
        """
        event_type = parse_event_type(event_type)
        if self._league_repo.get(conn, league_id) is None:
            raise NotFoundError(f"League not found: {league_id}")
        counts = self._event_repo.count_by_player(
            conn, event_type, league_id=league_id, primary_only=primary_only, since=since, until=until
        )
        return self._hydrate(conn, _ranked(counts))

    def top_scorers(self, conn: sqlite3.Connection, limit: int = config.TOP_SCORERS_LIMIT) -> list[LeaderboardEntry]:
        """Top goal scorers across every league's primary season."""
        if limit < 1:
            raise ValidationError(f"limit must be >= 1 (got {limit})")
        counts = self._event_repo.count_by_player(conn, EventType.GOAL, primary_only=True)
        return self._hydrate(conn, _ranked(counts)[:limit])

    def _hydrate(self, conn: sqlite3.Connection, counts: list[tuple[str, int]]) -> list[LeaderboardEntry]:
        player_ids = [pid for pid, _ in counts]
        players = self._player_repo.get_many(conn, player_ids)
        teams = self._team_repo.get_many(conn, (p.team_id for p in players.values()))
        missing = [pid for pid in player_ids if pid not in players]
        snapshots = self._event_repo.latest_snapshots(conn, missing)
        entries: list[LeaderboardEntry] = []
        for player_id, count in counts:
            player = players.get(player_id)
            if player is not None:
                team = teams.get(player.team_id)
                entries.append(LeaderboardEntry(
                    player_id=player_id, count=count, name=player.name, number=player.number,
                    image=player.image, team_id=player.team_id, team_name=team.name if team else None,
                ))
                continue
            snap = snapshots.get(player_id)
            entries.append(LeaderboardEntry(
                player_id=player_id, count=count,
                name=snap.name if snap else None,
                number=snap.number if snap else None,
                image=snap.image if snap else None,
            ))
        return entries


def _ranked(counts: list[tuple[str, int]]) -> list[tuple[str, int]]:
    """Highest count first; equal counts keep first-appearance order."""
    return sorted(counts, key=lambda c: -c[1])
