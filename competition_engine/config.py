"""
Runtime configuration and competition rule constants.
Environment variables override paths, timezone and log level; rule constants are fixed.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Final
from zoneinfo import ZoneInfo


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


DB_PATH: Final[str] = os.environ.get(
    "COMPETITION_DB_PATH", str(_project_root() / "data" / "competition.db")
)
TIMEZONE: Final[str] = os.environ.get("COMPETITION_TIMEZONE", "Europe/Vienna")
LOG_LEVEL: Final[str] = os.environ.get("COMPETITION_LOG_LEVEL", "INFO")

# ---------- Suspension rules ----------
SUSPENSION_DAYS: Final[int] = 8
SUSPENSION_RELEASE_HOUR: Final[int] = 7
YELLOW_CARD_THRESHOLD: Final[int] = 4

# ---------- Match rules ----------
ROSTER_SHEET_MAX_PLAYERS: Final[int] = 12
FORFEIT_WINNER_GOALS: Final[int] = 6
FORFEIT_LOSER_GOALS: Final[int] = 0
POINTS_WIN: Final[int] = 3
POINTS_DRAW: Final[int] = 1
RECENT_FORM_LENGTH: Final[int] = 5

# ---------- Cancellation rules ----------
MAX_CANCELLATIONS_PER_SEASON: Final[int] = 3
# Penalty for the 1st, 2nd and 3rd cancellation in a season
CANCELLATION_PENALTIES: Final[tuple[float, ...]] = (170.0, 270.0, 370.0)

# ---------- Leaderboards ----------
TOP_SCORERS_LIMIT: Final[int] = 100


def local_timezone() -> ZoneInfo:
    """Timezone used for block dates and match-day arithmetic."""
    return ZoneInfo(TIMEZONE)


def configure_logging(level: str | None = None) -> None:
    """Install a basic stream handler. Safe to call more than once."""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
