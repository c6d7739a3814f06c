"""
Persistence layer for competition data.
No business logic, only read/write interfaces.
"""
from .db import get_connection, init_db, set_db_path, get_db_path, transaction
from .repositories import (
    LeagueRepository,
    TeamRepository,
    PlayerRepository,
    RefereeRepository,
    SeasonRepository,
    MatchRepository,
    MatchEventRepository,
    CancellationRepository,
    InvoiceRepository,
    DisciplinaryCaseRepository,
)

__all__ = [
    "get_connection",
    "init_db",
    "set_db_path",
    "get_db_path",
    "transaction",
    "LeagueRepository",
    "TeamRepository",
    "PlayerRepository",
    "RefereeRepository",
    "SeasonRepository",
    "MatchRepository",
    "MatchEventRepository",
    "CancellationRepository",
    "InvoiceRepository",
    "DisciplinaryCaseRepository",
]
