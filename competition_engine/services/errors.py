"""
Error taxonomy for competition commands.
Everything except DependentDataMissingError is raised before any write.
"""
from __future__ import annotations


class CompetitionError(ValueError):
    """Base class for rejected competition commands."""


class ValidationError(CompetitionError):
    """Malformed input: unknown side, empty required field, team not in match."""


class NotFoundError(CompetitionError):
    """Unknown match, player, team, season, league, referee or event."""


class ConflictError(CompetitionError):
    """Command conflicts with current state (roster sheet full, player not listed)."""


class MatchTransitionError(ConflictError):
    """Invalid match status transition (e.g. pending -> halftime)."""


class BusinessRuleError(CompetitionError):
    """League rule violated (e.g. cancellation cap reached)."""


class DependentDataMissingError(RuntimeError):
    """
    Settlement data missing (referee, league or hourly rate).
    Raised after the command's own mutation has been committed.
    """
