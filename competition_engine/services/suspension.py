"""
Suspension policy: decides from the card ledger whether a player becomes ineligible and until when.

Red and yellow-red cards suspend immediately. Yellow cards suspend on every 4th
yellow in the league's primary season. A suspension ends at 07:00 local time,
8 days after the card. A yellow-red also voids the player's latest yellow, so the
second yellow of a sending-off does not count towards the threshold.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Any

from competition_engine import config
from competition_engine.models import Eligibility, EventType, MatchEvent, Season
from competition_engine.persistence.db import transaction
from competition_engine.persistence.repositories import (
    MatchEventRepository,
    PlayerRepository,
    TeamRepository,
)

logger = logging.getLogger(__name__)


def block_date(event_time: datetime, tz: tzinfo | None = None) -> datetime:
    """07:00 local time on the 8th day after the event. Naive times are taken as UTC."""
    tz = tz or config.local_timezone()
    if event_time.tzinfo is None:
        event_time = event_time.replace(tzinfo=timezone.utc)
    local_day = event_time.astimezone(tz).date() + timedelta(days=config.SUSPENSION_DAYS)
    return datetime.combine(local_day, time(hour=config.SUSPENSION_RELEASE_HOUR), tzinfo=tz)


@dataclass
class SuspensionDecision:
    suspend: bool
    reason: str
    blockdate: datetime | None = None
    yellow_count: int | None = None


def decide(
    event_type: EventType,
    event_time: datetime,
    yellow_count: int | None = None,
    tz: tzinfo | None = None,
) -> SuspensionDecision:
    """
    Pure decision for one card event.
    yellow_count is the player's primary-season yellow total including this card;
    None means the card was not shown in a primary season and never triggers.
    """
    if event_type in (EventType.RED_CARD, EventType.YELLOW_RED_CARD):
        return SuspensionDecision(True, event_type.value, block_date(event_time, tz))
    if event_type is EventType.YELLOW_CARD:
        if yellow_count and yellow_count % config.YELLOW_CARD_THRESHOLD == 0:
            return SuspensionDecision(
                True, f"yellow_card_{yellow_count}", block_date(event_time, tz), yellow_count
            )
        return SuspensionDecision(False, "below_threshold", yellow_count=yellow_count)
    return SuspensionDecision(False, "not_a_card")


class SuspensionPolicy:
    """Applies card decisions to player eligibility. Writes join the caller's transaction."""

    def __init__(self, tz: tzinfo | None = None) -> None:
        self._tz = tz
        self._event_repo = MatchEventRepository()
        self._player_repo = PlayerRepository()
        self._team_repo = TeamRepository()

    def evaluate(self, conn: sqlite3.Connection, event: MatchEvent, season: Season) -> SuspensionDecision:
        """Decide for an event already appended to the ledger."""
        yellow_count = None
        if event.type is EventType.YELLOW_CARD and season.is_primary:
            yellow_count = self._event_repo.count_in_season(
                conn, event.player_id, EventType.YELLOW_CARD, season.id
            )
        return decide(event.type, event.created_at, yellow_count, self._tz)

    def apply(self, conn: sqlite3.Connection, event: MatchEvent, season: Season) -> SuspensionDecision:
        decision = self.evaluate(conn, event, season)
        if decision.suspend:
            self._player_repo.update_eligibility(
                conn, event.player_id, Eligibility.SUSPENDED, decision.blockdate
            )
            logger.info(
                "player suspended player_id=%s reason=%s blockdate=%s",
                event.player_id, decision.reason, decision.blockdate.isoformat() if decision.blockdate else None,
            )
        return decision

    def voided_yellow(self, conn: sqlite3.Connection, event: MatchEvent) -> MatchEvent | None:
        """The yellow a yellow-red card cancels: the player's most recent yellow, if any."""
        if event.type is not EventType.YELLOW_RED_CARD:
            return None
        return self._event_repo.latest_for_player(conn, event.player_id, EventType.YELLOW_CARD)

    # ---------- Housekeeping ----------

    def release_expired(self, conn: sqlite3.Connection, now: datetime | None = None) -> list[str]:
        """Set suspended players whose blockdate has passed back to eligible. Returns their ids."""
        now = now or datetime.now(timezone.utc)
        released: list[str] = []
        with transaction(conn):
            for player in self._player_repo.list_by_eligibility(conn, Eligibility.SUSPENDED):
                if player.blockdate is not None and player.blockdate <= now:
                    self._player_repo.update_eligibility(conn, player.id, Eligibility.ELIGIBLE, player.blockdate)
                    released.append(player.id)
        if released:
            logger.info("suspensions released count=%d", len(released))
        return released

    def blocked_players(
        self, conn: sqlite3.Connection, league_id: str, now: datetime | None = None
    ) -> list[dict[str, Any]]:
        """Players of the league currently serving a suspension, soonest release first."""
        now = now or datetime.now(timezone.utc)
        players = [
            p for p in self._player_repo.list_by_league(conn, league_id)
            if p.eligibility is Eligibility.SUSPENDED and p.blockdate is not None and p.blockdate > now
        ]
        teams = self._team_repo.get_many(conn, (p.team_id for p in players))
        players.sort(key=lambda p: p.blockdate)
        result: list[dict[str, Any]] = []
        for p in players:
            row = p.to_dict()
            team = teams.get(p.team_id)
            row["team_name"] = team.name if team else None
            result.append(row)
        return result
