"""
Service layer: scheduling, match lifecycle, suspensions, standings, leaderboards.
Services orchestrate persistence; scheduling and the standings table are pure.
"""
from .errors import (
    CompetitionError,
    ValidationError,
    NotFoundError,
    ConflictError,
    MatchTransitionError,
    BusinessRuleError,
    DependentDataMissingError,
)
from .scheduling import Fixture, round_robin_fixtures
from .season_service import SeasonService
from .match_lifecycle import MatchLifecycle, CardResult, EventRevert
from .suspension import SuspensionPolicy, SuspensionDecision, block_date
from .standings import StandingsCalculator, compute_table
from .leaderboard import LeaderboardAggregator

__all__ = [
    "CompetitionError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "MatchTransitionError",
    "BusinessRuleError",
    "DependentDataMissingError",
    "Fixture",
    "round_robin_fixtures",
    "SeasonService",
    "MatchLifecycle",
    "CardResult",
    "EventRevert",
    "SuspensionPolicy",
    "SuspensionDecision",
    "block_date",
    "StandingsCalculator",
    "compute_table",
    "LeaderboardAggregator",
]
