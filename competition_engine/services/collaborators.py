"""
Collaborators the match lifecycle reports to: notifications, billing, disciplinary panel.
Billing and the panel write inside the caller's transaction; notifications are
dispatched after commit and never fail a command.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Any, Protocol

from competition_engine.models import DisciplinaryCase, Invoice
from competition_engine.persistence.repositories import (
    DisciplinaryCaseRepository,
    InvoiceRepository,
    RefereeRepository,
    TeamRepository,
)
from competition_engine.services.errors import NotFoundError

logger = logging.getLogger(__name__)


# ---------- Notifications ----------


class NotificationKind:
    GAME_STARTED = "game_started"
    HALFTIME = "halftime"
    SECOND_HALF_STARTED = "second_half_started"
    GAME_ENDED = "game_ended"
    GOAL = "goal"
    CARD = "card"
    MATCH_CANCELLED = "match_cancelled"
    REFEREE_CANCELLED = "referee_cancelled"


class Notifier(Protocol):
    def notify(self, kind: str, payload: dict[str, Any]) -> None: ...


class LoggingNotifier:
    """Default notifier: writes each notice to the log. Push/e-mail delivery plugs in here."""

    def notify(self, kind: str, payload: dict[str, Any]) -> None:
        logger.info("notification kind=%s payload=%s", kind, payload)


def dispatch(notifier: Notifier, notices: list[tuple[str, dict[str, Any]]]) -> None:
    """Send notices collected during a committed command. Failures are logged and dropped."""
    for kind, payload in notices:
        try:
            notifier.notify(kind, payload)
        except Exception:
            logger.exception("notification failed kind=%s match_id=%s", kind, payload.get("match_id"))


# ---------- Billing ----------


class Billing:
    """Debits team and referee balances and records an invoice for each charge."""

    def __init__(self) -> None:
        self._team_repo = TeamRepository()
        self._referee_repo = RefereeRepository()
        self._invoice_repo = InvoiceRepository()

    def charge_team(self, conn: sqlite3.Connection, team_id: str, amount: float, reference: str) -> Invoice:
        team = self._team_repo.get(conn, team_id)
        if team is None:
            raise NotFoundError(f"Team not found: {team_id}")
        previous = team.balance
        self._team_repo.update_balance(conn, team_id, previous - amount)
        logger.info("team charged team_id=%s amount=%s reference=%r", team_id, amount, reference)
        return self._invoice_repo.create(
            conn, amount=amount, previous_balance=previous, reference=reference, team_id=team_id
        )

    def debit_referee(self, conn: sqlite3.Connection, referee_id: str, amount: float, reference: str) -> Invoice:
        referee = self._referee_repo.get(conn, referee_id)
        if referee is None:
            raise NotFoundError(f"Referee not found: {referee_id}")
        previous = referee.balance
        self._referee_repo.update_balance(conn, referee_id, previous - amount)
        logger.info("referee settled referee_id=%s amount=%s reference=%r", referee_id, amount, reference)
        return self._invoice_repo.create(
            conn, amount=amount, previous_balance=previous, reference=reference, referee_id=referee_id
        )


# ---------- Disciplinary panel ----------


class DisciplinaryPanel:
    """Case tracking for match reports with incident text ("Strafsenat")."""

    def __init__(self) -> None:
        self._repo = DisciplinaryCaseRepository()

    def has_case(self, conn: sqlite3.Connection, match_id: str) -> bool:
        return self._repo.exists_for_match(conn, match_id)

    def open_case(
        self, conn: sqlite3.Connection, match_id: str, referee_id: str | None, text: str
    ) -> DisciplinaryCase:
        case = self._repo.create(conn, match_id, text, referee_id=referee_id)
        logger.info("disciplinary case opened match_id=%s case_id=%s", match_id, case.id)
        return case
