"""
Match lifecycle: state machine, score and roster-sheet mutation, event ledger writes.

Every mutating command holds the match's lock and runs in one transaction:
validation happens first, writes land together, and notifications go out
only after commit. Points are not stored; standings derive them from
finished matches.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from competition_engine import config
from competition_engine.models import (
    CARD_TYPES,
    LIVE_STATUSES,
    TERMINAL_STATUSES,
    Eligibility,
    EventType,
    Match,
    MatchEvent,
    MatchStatus,
    RosterEntry,
    Season,
    Side,
)
from competition_engine.persistence.db import transaction
from competition_engine.persistence.repositories import (
    CancellationRepository,
    LeagueRepository,
    MatchEventRepository,
    MatchRepository,
    PlayerRepository,
    RefereeRepository,
    SeasonRepository,
    TeamRepository,
)
from competition_engine.services.collaborators import (
    Billing,
    DisciplinaryPanel,
    LoggingNotifier,
    NotificationKind,
    Notifier,
    dispatch,
)
from competition_engine.services.errors import (
    BusinessRuleError,
    ConflictError,
    DependentDataMissingError,
    MatchTransitionError,
    NotFoundError,
    ValidationError,
)
from competition_engine.services.locks import lock_for, match_lock, match_locks
from competition_engine.services.suspension import SuspensionDecision, SuspensionPolicy

logger = logging.getLogger(__name__)

Notices = list[tuple[str, dict[str, Any]]]

# ---------- Clock transitions ----------
# target status -> (required source status, timestamp field, notification)
_CLOCK_STEPS: dict[MatchStatus, tuple[MatchStatus, str, str]] = {
    MatchStatus.FIRST: (MatchStatus.PENDING, "first_half_start", NotificationKind.GAME_STARTED),
    MatchStatus.HALFTIME: (MatchStatus.FIRST, "first_half_end", NotificationKind.HALFTIME),
    MatchStatus.SECOND: (MatchStatus.HALFTIME, "second_half_start", NotificationKind.SECOND_HALF_STARTED),
    MatchStatus.COMPLETED: (MatchStatus.SECOND, "second_half_end", NotificationKind.GAME_ENDED),
}

# Settled matches cannot be submitted, forfeited or cancelled again
_SETTLED: frozenset[MatchStatus] = frozenset({MatchStatus.DONE, MatchStatus.CANCELLED})


def parse_side(value: Side | str) -> Side:
    """'home' / 'away' (case-insensitive) to Side; anything else is a ValidationError."""
    if isinstance(value, Side):
        return value
    try:
        return Side(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid side: {value!r} (expected 'home' or 'away')") from None


def parse_card_type(value: EventType | str) -> EventType:
    try:
        card = value if isinstance(value, EventType) else EventType(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid card type: {value!r}") from None
    if card not in CARD_TYPES:
        raise ValidationError(f"Not a card type: {card.value}")
    return card


def _require(value: str | None, name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return value


@dataclass
class CardResult:
    event: MatchEvent
    suspension: SuspensionDecision
    voided_event_id: str | None = None


@dataclass
class EventRevert:
    """Outcome of deleting a ledger entry. needs_review: a suspension stays in place and should be checked."""
    event: MatchEvent
    needs_review: bool = False


class MatchLifecycle:
    """
    Commands that move a match through
    pending → first → halftime → second → completed → done | submitted | cancelled | abbgebrochen.
    Persistence is delegated to repositories; collaborators are injectable for tests.
    """

    def __init__(
        self,
        notifier: Notifier | None = None,
        billing: Billing | None = None,
        panel: DisciplinaryPanel | None = None,
        suspension: SuspensionPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._notifier = notifier or LoggingNotifier()
        self._billing = billing or Billing()
        self._panel = panel or DisciplinaryPanel()
        self._suspension = suspension or SuspensionPolicy()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._match_repo = MatchRepository()
        self._event_repo = MatchEventRepository()
        self._season_repo = SeasonRepository()
        self._league_repo = LeagueRepository()
        self._team_repo = TeamRepository()
        self._player_repo = PlayerRepository()
        self._referee_repo = RefereeRepository()
        self._cancellation_repo = CancellationRepository()

    # ---------- Reads ----------

    def get_match(self, conn: sqlite3.Connection, match_id: str) -> Match:
        _require(match_id, "match_id")
        match = self._match_repo.get(conn, match_id)
        if match is None:
            raise NotFoundError(f"Match not found: {match_id}")
        return match

    def list_events(self, conn: sqlite3.Connection, match_id: str) -> list[MatchEvent]:
        self.get_match(conn, match_id)
        return self._event_repo.list_by_match(conn, match_id)

    def live_matches(self, conn: sqlite3.Connection) -> dict[str, list[Match]]:
        """Matches currently in play, grouped by league id."""
        grouped: dict[str, list[Match]] = {}
        for league_id, match in self._match_repo.list_by_status(conn, LIVE_STATUSES):
            grouped.setdefault(league_id, []).append(match)
        return grouped

    # ---------- Command plumbing ----------

    @contextmanager
    def _mutating(self, conn: sqlite3.Connection, match_id: str) -> Iterator[tuple[Match, Notices]]:
        """Lock, load, yield, save, commit; then dispatch collected notices."""
        _require(match_id, "match_id")
        notices: Notices = []
        with match_lock(match_id):
            with transaction(conn):
                match = self.get_match(conn, match_id)
                yield match, notices
                self._match_repo.save(conn, match)
        dispatch(self._notifier, notices)

    def _season(self, conn: sqlite3.Connection, match: Match) -> Season:
        season = self._season_repo.get(conn, match.season_id)
        if season is None:
            raise NotFoundError(f"Season not found: {match.season_id}")
        return season

    @staticmethod
    def _assert_in_play(match: Match, action: str) -> None:
        if match.status in TERMINAL_STATUSES:
            raise MatchTransitionError(f"Cannot {action}: match is {match.status.value}")

    @staticmethod
    def _notice(kind: str, match: Match, **extra: Any) -> tuple[str, dict[str, Any]]:
        payload: dict[str, Any] = {
            "match_id": match.id,
            "home_team_id": match.home_team_id,
            "away_team_id": match.away_team_id,
            "home_score": match.home_score,
            "away_score": match.away_score,
        }
        payload.update(extra)
        return kind, payload

    def _transition(self, conn: sqlite3.Connection, match_id: str, target: MatchStatus) -> Match:
        source, field, kind = _CLOCK_STEPS[target]
        with self._mutating(conn, match_id) as (match, notices):
            if match.status is not source:
                raise MatchTransitionError(
                    f"Invalid transition: {match.status.value} -> {target.value}. Requires {source.value}"
                )
            match.status = target
            setattr(match, field, self._clock())
            notices.append(self._notice(kind, match))
        logger.info("match transition match_id=%s status=%s", match_id, target.value)
        return match

    # ---------- Clock ----------

    def start_game(self, conn: sqlite3.Connection, match_id: str) -> Match:
        return self._transition(conn, match_id, MatchStatus.FIRST)

    def end_first_half(self, conn: sqlite3.Connection, match_id: str) -> Match:
        return self._transition(conn, match_id, MatchStatus.HALFTIME)

    def start_second_half(self, conn: sqlite3.Connection, match_id: str) -> Match:
        return self._transition(conn, match_id, MatchStatus.SECOND)

    def end_game(self, conn: sqlite3.Connection, match_id: str) -> Match:
        return self._transition(conn, match_id, MatchStatus.COMPLETED)

    # ---------- Match details ----------

    def update_match(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        referee_id: str | None = None,
        scheduled_at: datetime | None = None,
        venue: str | None = None,
    ) -> Match:
        """
        Assign the referee, kick-off time or venue; None leaves a field unchanged.
        The referee cannot change once the match fee has been paid.
        """
        with self._mutating(conn, match_id) as (match, _notices):
            if referee_id is not None:
                if self._referee_repo.get(conn, referee_id) is None:
                    raise NotFoundError(f"Referee not found: {referee_id}")
                if match.paid and referee_id != match.referee_id:
                    raise ConflictError(f"Referee of match {match.id} has already been paid")
                match.referee_id = referee_id
            if scheduled_at is not None:
                if scheduled_at.tzinfo is None:
                    scheduled_at = scheduled_at.replace(tzinfo=timezone.utc)
                match.scheduled_at = scheduled_at.astimezone(timezone.utc)
            if venue is not None:
                match.venue = venue.strip() or None
        logger.info(
            "match details updated match_id=%s referee_id=%s scheduled_at=%s venue=%s",
            match.id, match.referee_id,
            match.scheduled_at.isoformat() if match.scheduled_at else None, match.venue,
        )
        return match

    # ---------- Goals & cards ----------

    def record_goal(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        player_id: str,
        side: Side | str,
        minute: int,
        own_goal: bool = False,
    ) -> MatchEvent:
        """Credit one goal to `side` and append a goal event. own_goal marks a goal scored by the other side's player."""
        side = parse_side(side)
        _require(player_id, "player_id")
        if minute < 0:
            raise ValidationError(f"minute must be >= 0 (got {minute})")
        with self._mutating(conn, match_id) as (match, notices):
            self._assert_in_play(match, "record goal")
            player = self._player_repo.get(conn, player_id)
            if player is None:
                raise NotFoundError(f"Player not found: {player_id}")
            listed = match.home_sheet.find(player_id) or match.away_sheet.find(player_id)
            if side is Side.HOME:
                match.home_score += 1
            else:
                match.away_score += 1
            event = self._event_repo.append(
                conn, match.id, player_id, EventType.GOAL, minute, self._clock(),
                name=player.name,
                number=listed.number if listed and listed.number is not None else player.number,
                image=player.image,
                side=side,
                own_goal=own_goal,
            )
            notices.append(self._notice(
                NotificationKind.GOAL, match, player_id=player_id, player_name=player.name,
                side=side.value, minute=minute, own_goal=own_goal,
            ))
        logger.info(
            "goal recorded match_id=%s side=%s player_id=%s score=%d-%d",
            match.id, side.value, player_id, match.home_score, match.away_score,
        )
        return event

    def record_card(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        player_id: str,
        team_id: str,
        minute: int,
        card_type: EventType | str,
    ) -> CardResult:
        """
        Append a card event, bump the player's counter on the team's sheet and
        run the suspension policy. A yellow-red also voids the player's latest yellow.
        """
        card = parse_card_type(card_type)
        _require(player_id, "player_id")
        _require(team_id, "team_id")
        if minute < 0:
            raise ValidationError(f"minute must be >= 0 (got {minute})")
        held = self._card_lock_ids(conn, match_id, player_id, card)
        with match_locks(held):
            with self._mutating(conn, match_id) as (match, notices):
                self._assert_in_play(match, "record card")
                side = match.side_of_team(team_id)
                if side is None:
                    raise ValidationError(f"Team {team_id} does not play in match {match.id}")
                player = self._player_repo.get(conn, player_id)
                if player is None:
                    raise NotFoundError(f"Player not found: {player_id}")
                season = self._season(conn, match)
                entry = match.sheet_for(side).find(player_id)
                if entry is not None:
                    counter = entry.counter_for(card)
                    setattr(entry, counter, getattr(entry, counter) + 1)
                event = self._event_repo.append(
                    conn, match.id, player_id, card, minute, self._clock(),
                    name=player.name,
                    number=entry.number if entry and entry.number is not None else player.number,
                    image=player.image,
                    side=side,
                )
                decision = self._suspension.apply(conn, event, season)
                voided = self._suspension.voided_yellow(conn, event)
                if voided is not None:
                    if voided.match_id not in held:
                        raise ConflictError(f"Yellow cards of player {player_id} changed meanwhile; retry")
                    self._revert(conn, match, voided)
                    logger.info("yellow card voided by yellow-red event_id=%s player_id=%s", voided.id, player_id)
                notices.append(self._notice(
                    NotificationKind.CARD, match, player_id=player_id, player_name=player.name,
                    team_id=team_id, card_type=card.value, minute=minute,
                ))
        logger.info("card recorded match_id=%s type=%s player_id=%s", match.id, card.value, player_id)
        return CardResult(event=event, suspension=decision, voided_event_id=voided.id if voided else None)

    def _card_lock_ids(
        self, conn: sqlite3.Connection, match_id: str, player_id: str, card: EventType
    ) -> list[str]:
        """The match itself, plus the match holding the yellow a yellow-red would void."""
        ids = [match_id]
        if card is EventType.YELLOW_RED_CARD:
            prior = self._event_repo.latest_for_player(conn, player_id, EventType.YELLOW_CARD)
            if prior is not None:
                ids.append(prior.match_id)
        return ids

    def _revert(self, conn: sqlite3.Connection, match: Match, event: MatchEvent) -> None:
        """
        Undo exactly what the event did to its match, then delete it.
        `match` is the in-memory match being mutated; events of other matches are
        loaded, reverted and saved under that match's lock, which record_card
        already holds: both locks are taken up front in id order.
        """
        if event.match_id != match.id:
            with lock_for(event.match_id):
                other = self.get_match(conn, event.match_id)
                self._undo_effect(other, event)
                self._match_repo.save(conn, other)
        else:
            self._undo_effect(match, event)
        self._event_repo.delete(conn, event.id)

    @staticmethod
    def _undo_effect(match: Match, event: MatchEvent) -> None:
        if event.type is EventType.GOAL:
            if event.side is Side.HOME and match.home_score > 0:
                match.home_score -= 1
            elif event.side is Side.AWAY and match.away_score > 0:
                match.away_score -= 1
            return
        sides = [event.side] if event.side else [Side.HOME, Side.AWAY]
        for side in sides:
            entry = match.sheet_for(side).find(event.player_id)
            if entry is None:
                continue
            counter = entry.counter_for(event.type)
            if getattr(entry, counter) > 0:
                setattr(entry, counter, getattr(entry, counter) - 1)
            return

    def delete_event(self, conn: sqlite3.Connection, event_id: str) -> EventRevert:
        """
        Delete a ledger entry and reverse its score or counter increment.
        A suspension the event caused is left in place and flagged for review.
        """
        _require(event_id, "event_id")
        event = self._event_repo.get(conn, event_id)
        if event is None:
            raise NotFoundError(f"Event not found: {event_id}")
        with self._mutating(conn, event.match_id) as (match, _notices):
            event = self._event_repo.get(conn, event_id)
            if event is None:
                raise NotFoundError(f"Event not found: {event_id}")
            self._revert(conn, match, event)
        needs_review = False
        if event.type in CARD_TYPES:
            player = self._player_repo.get(conn, event.player_id)
            if player is not None and player.eligibility is Eligibility.SUSPENDED:
                needs_review = True
                logger.warning(
                    "card reverted but suspension kept, needs review event_id=%s player_id=%s blockdate=%s",
                    event.id, player.id, player.blockdate.isoformat() if player.blockdate else None,
                )
        logger.info("event deleted event_id=%s match_id=%s type=%s", event.id, event.match_id, event.type.value)
        return EventRevert(event=event, needs_review=needs_review)

    # ---------- Report & settlement ----------

    def submit(self, conn: sqlite3.Connection, match_id: str, report: str | None = None) -> Match:
        """
        Store the referee's report and mark the match submitted (aborted matches stay aborted).
        Opens a disciplinary case for a non-empty report if none exists. The referee
        is paid the league's hourly rate once, guarded by match.paid. The report is
        committed before settlement: when referee, league or rate is missing the
        submission stands and DependentDataMissingError is raised.
        """
        _require(match_id, "match_id")
        text = (report or "").strip()
        with match_lock(match_id):
            with transaction(conn):
                match = self.get_match(conn, match_id)
                if match.status in _SETTLED:
                    raise MatchTransitionError(f"Cannot submit: match is {match.status.value}")
                if match.status is not MatchStatus.ABORTED:
                    match.status = MatchStatus.SUBMITTED
                match.report = report
                if text and not self._panel.has_case(conn, match.id):
                    self._panel.open_case(conn, match.id, match.referee_id, text)
                self._match_repo.save(conn, match)
            logger.info("match submitted match_id=%s status=%s", match.id, match.status.value)
            if not match.paid:
                with transaction(conn):
                    self._settle_referee(conn, match)
                    match.paid = True
                    self._match_repo.save(conn, match)
        return match

    def _settle_referee(self, conn: sqlite3.Connection, match: Match) -> None:
        if not match.referee_id:
            raise DependentDataMissingError(f"Match {match.id} has no referee; settlement skipped")
        referee = self._referee_repo.get(conn, match.referee_id)
        if referee is None:
            raise DependentDataMissingError(f"Referee not found: {match.referee_id}")
        season = self._season(conn, match)
        league = self._league_repo.get(conn, season.league_id)
        if league is None:
            raise DependentDataMissingError(f"League not found: {season.league_id}")
        if league.hourly_rate is None:
            raise DependentDataMissingError(f"League {league.id} has no hourly rate")
        self._billing.debit_referee(conn, referee.id, league.hourly_rate, f"Match fee: {match.id}")

    def done(self, conn: sqlite3.Connection, match_id: str) -> Match:
        """Mark the result settled. Points follow from the score in standings."""
        with self._mutating(conn, match_id) as (match, _notices):
            match.status = MatchStatus.DONE
        logger.info("match done match_id=%s score=%d-%d", match.id, match.home_score, match.away_score)
        return match

    # ---------- Forfeits ----------

    @staticmethod
    def _forfeit(match: Match, winner: Side) -> None:
        if winner is Side.HOME:
            match.home_score, match.away_score = config.FORFEIT_WINNER_GOALS, config.FORFEIT_LOSER_GOALS
        else:
            match.home_score, match.away_score = config.FORFEIT_LOSER_GOALS, config.FORFEIT_WINNER_GOALS
        match.status = MatchStatus.CANCELLED

    def no_show(self, conn: sqlite3.Connection, match_id: str, winning_side: Side | str) -> Match:
        """The other side did not turn up: 6-0 for the winning side, match cancelled."""
        winner = parse_side(winning_side)
        with self._mutating(conn, match_id) as (match, notices):
            if match.status in _SETTLED:
                raise MatchTransitionError(f"Cannot record no-show: match is {match.status.value}")
            self._forfeit(match, winner)
            notices.append(self._notice(NotificationKind.MATCH_CANCELLED, match, reason="no_show"))
        logger.info("no-show match_id=%s winner=%s", match.id, winner.value)
        return match

    def team_cancel(self, conn: sqlite3.Connection, match_id: str, winning_side: Side | str) -> Match:
        """
        The losing side cancelled: 6-0 forfeit, cancellation counted against the
        loser for this season and charged 170/270/370. A 4th cancellation is
        rejected before anything is written.
        """
        winner = parse_side(winning_side)
        with self._mutating(conn, match_id) as (match, notices):
            if match.status in _SETTLED:
                raise MatchTransitionError(f"Cannot cancel: match is {match.status.value}")
            loser_id = match.team_id_for(winner.other)
            winner_id = match.team_id_for(winner)
            count = self._cancellation_repo.get_count(conn, loser_id, match.season_id)
            if count >= config.MAX_CANCELLATIONS_PER_SEASON:
                raise BusinessRuleError(
                    f"Team {loser_id} already cancelled {count} matches this season "
                    f"(max {config.MAX_CANCELLATIONS_PER_SEASON})"
                )
            count += 1
            self._cancellation_repo.set_count(conn, loser_id, match.season_id, count)
            penalty = config.CANCELLATION_PENALTIES[count - 1]
            self._billing.charge_team(conn, loser_id, penalty, f"Match cancellation: {count}")
            self._forfeit(match, winner)
            opponent = self._team_repo.get(conn, winner_id)
            notices.append(self._notice(
                NotificationKind.MATCH_CANCELLED, match, reason="team_cancel",
                cancelled_by=loser_id, recipient=opponent.contact_email if opponent else None,
            ))
            if match.referee_id:
                referee = self._referee_repo.get(conn, match.referee_id)
                notices.append(self._notice(
                    NotificationKind.REFEREE_CANCELLED, match, cancelled_by=loser_id,
                    referee_id=match.referee_id, recipient=referee.email if referee else None,
                ))
        logger.info(
            "team cancelled match_id=%s team_id=%s cancellation=%d penalty=%s",
            match.id, loser_id, count, penalty,
        )
        return match

    # ---------- Administrative ----------

    def abort(self, conn: sqlite3.Connection, match_id: str) -> Match:
        """Match abandoned ("Spielabbruch"); score stays as it was."""
        with self._mutating(conn, match_id) as (match, _notices):
            match.status = MatchStatus.ABORTED
        logger.info("match aborted match_id=%s", match.id)
        return match

    def reset_game(self, conn: sqlite3.Connection, match_id: str) -> Match:
        """Full rollback to pending: timestamps, score, card counters and every event."""
        with self._mutating(conn, match_id) as (match, _notices):
            match.status = MatchStatus.PENDING
            match.first_half_start = match.first_half_end = None
            match.second_half_start = match.second_half_end = None
            match.home_score = match.away_score = 0
            for entry in match.home_sheet.players + match.away_sheet.players:
                entry.reset_counters()
            deleted = self._event_repo.delete_by_match(conn, match.id)
        logger.info("match reset match_id=%s events_deleted=%d", match.id, deleted)
        return match

    def reset_halftime(self, conn: sqlite3.Connection, match_id: str) -> Match:
        """Back to halftime; only the second-half timestamps are cleared."""
        with self._mutating(conn, match_id) as (match, _notices):
            match.status = MatchStatus.HALFTIME
            match.second_half_start = match.second_half_end = None
        logger.info("match reset to halftime match_id=%s", match.id)
        return match

    # ---------- Roster sheets ----------

    def add_player(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        side: Side | str,
        player_id: str,
        number: int | None = None,
    ) -> Match:
        """
        List a player on a side's sheet. Re-adding updates the shirt number.
        Rejects suspended players and full sheets (12 players).
        """
        side = parse_side(side)
        _require(player_id, "player_id")
        with self._mutating(conn, match_id) as (match, _notices):
            self._assert_in_play(match, "edit roster sheet")
            player = self._player_repo.get(conn, player_id)
            if player is None:
                raise NotFoundError(f"Player not found: {player_id}")
            if player.team_id != match.team_id_for(side):
                raise ValidationError(f"Player {player_id} does not belong to the {side.value} team")
            if (
                player.eligibility is Eligibility.SUSPENDED
                and player.blockdate is not None
                and player.blockdate > self._clock()
            ):
                raise BusinessRuleError(f"Player {player_id} is suspended until {player.blockdate.isoformat()}")
            sheet = match.sheet_for(side)
            shirt = number if number is not None else player.number
            existing = sheet.find(player_id)
            if existing is not None:
                existing.number = shirt
            else:
                if len(sheet.players) >= config.ROSTER_SHEET_MAX_PLAYERS:
                    raise ConflictError(
                        f"Roster sheet full: {side.value} already lists {config.ROSTER_SHEET_MAX_PLAYERS} players"
                    )
                sheet.players.append(
                    RosterEntry(player_id=player.id, name=player.name, number=shirt, image=player.image)
                )
        return match

    def remove_player(self, conn: sqlite3.Connection, match_id: str, side: Side | str, player_id: str) -> Match:
        side = parse_side(side)
        _require(player_id, "player_id")
        with self._mutating(conn, match_id) as (match, _notices):
            self._assert_in_play(match, "edit roster sheet")
            sheet = match.sheet_for(side)
            entry = sheet.find(player_id)
            if entry is None:
                raise ConflictError(f"Player {player_id} is not on the {side.value} sheet")
            sheet.players.remove(entry)
        return match

    def toggle_kit(self, conn: sqlite3.Connection, match_id: str, side: Side | str) -> Match:
        """Switch a side's sheet between its team's home and away kit."""
        side = parse_side(side)
        with self._mutating(conn, match_id) as (match, _notices):
            team = self._team_repo.get(conn, match.team_id_for(side))
            if team is None:
                raise NotFoundError(f"Team not found: {match.team_id_for(side)}")
            sheet = match.sheet_for(side)
            sheet.kit = team.kit_away if sheet.kit == team.kit_home else team.kit_home
        return match
