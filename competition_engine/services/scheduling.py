"""
Deterministic round-robin fixture generation for seasons.

Every pair of teams meets once per round-robin pass; a pass spans N-1 gamedays
(N = team count, padded to even). Passes are repeated `rounds` times, with
home/away swapped on odd passes so a double round-robin gives each pair one
home and one away match.

BYE handling: when the number of teams is odd, a private sentinel is added.
Fixtures against it are dropped, so one team idles per gameday and the
sentinel never reaches persisted matches.

Uses the circle method: slot N-1 is fixed, the remaining slots rotate each
gameday. Same team list ordering yields the same schedule.
"""
from __future__ import annotations

from typing import NamedTuple

from competition_engine.services.errors import ValidationError

# Sentinel for bye when number of teams is odd; compared by identity
_BYE = object()


class Fixture(NamedTuple):
    gameday: int
    home_team_id: str
    away_team_id: str


def _pass_pairings(n: int) -> list[list[tuple[int, int]]]:
    """
    One round-robin pass over slots 0..n-1 (n even): a list of gamedays, each a
    list of (home_slot, away_slot). Step s pairs (s + i) % (n-1) with
    (n-1-i+s) % (n-1); the first pairing of each step plays the fixed slot n-1.
    """
    steps: list[list[tuple[int, int]]] = []
    for step in range(n - 1):
        pairs: list[tuple[int, int]] = []
        for i in range(n // 2):
            home = (step + i) % (n - 1)
            away = n - 1 if i == 0 else (n - 1 - i + step) % (n - 1)
            pairs.append((home, away))
        steps.append(pairs)
    return steps


def round_robin_fixtures(
    team_ids: list[str],
    rounds: int = 2,
    start_gameday: int = 1,
) -> list[Fixture]:
    """
    Generate fixtures for `rounds` round-robin passes.
    Gamedays count up from start_gameday and wrap to 1 once they pass (N-1) * rounds.
    Raises ValidationError for fewer than 2 teams, duplicate teams or rounds < 1.
    """
    if len(team_ids) < 2:
        raise ValidationError("League must have at least 2 teams to generate a schedule")
    if len(set(team_ids)) != len(team_ids):
        raise ValidationError("Team list contains duplicates")
    if rounds < 1:
        raise ValidationError(f"rounds must be >= 1 (got {rounds})")
    if start_gameday < 1:
        raise ValidationError(f"start_gameday must be >= 1 (got {start_gameday})")
    slots: list[object] = list(team_ids)
    if len(slots) % 2 == 1:
        slots.append(_BYE)
    n = len(slots)
    total_gamedays = (n - 1) * rounds
    one_pass = _pass_pairings(n)

    fixtures: list[Fixture] = []
    gameday = start_gameday
    for round_number in range(rounds):
        swap = round_number % 2 == 1
        for pairs in one_pass:
            for home_slot, away_slot in pairs:
                home, away = slots[home_slot], slots[away_slot]
                if home is _BYE or away is _BYE:
                    continue
                if swap:
                    home, away = away, home
                fixtures.append(Fixture(gameday, home, away))  # type: ignore[arg-type]
            gameday += 1
            if gameday > total_gamedays:
                gameday = 1
    return fixtures


def fixtures_per_pass(team_count: int) -> int:
    """Number of real fixtures in one pass: n(n-1)/2 pairs, whatever the parity."""
    return team_count * (team_count - 1) // 2
