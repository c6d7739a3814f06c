"""
Data models for the competition engine.
Domain objects only; no persistence or API logic.

Leagues own teams and seasons; seasons own matches; matches own two roster
sheets and an append-only ledger of goal/card events. Standings and
leaderboards are derived views, never stored.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# ---------- Match status (state machine) ----------
class MatchStatus(str, Enum):
    """pending → first → halftime → second → completed, then a terminal settlement state."""
    PENDING = "pending"
    FIRST = "first"
    HALFTIME = "halftime"
    SECOND = "second"
    COMPLETED = "completed"  # Clock finished, waiting for report/settlement
    DONE = "done"
    SUBMITTED = "submitted"
    CANCELLED = "cancelled"
    ABORTED = "abbgebrochen"


TERMINAL_STATUSES: frozenset[MatchStatus] = frozenset({
    MatchStatus.DONE,
    MatchStatus.CANCELLED,
    MatchStatus.SUBMITTED,
    MatchStatus.ABORTED,
})

# Matches that have left active play and count towards standings
COUNTED_STATUSES: frozenset[MatchStatus] = frozenset({
    MatchStatus.COMPLETED,
    MatchStatus.SUBMITTED,
    MatchStatus.CANCELLED,
    MatchStatus.ABORTED,
    MatchStatus.DONE,
})

LIVE_STATUSES: frozenset[MatchStatus] = frozenset({
    MatchStatus.FIRST,
    MatchStatus.HALFTIME,
    MatchStatus.SECOND,
})


class EventType(str, Enum):
    GOAL = "goal"
    YELLOW_CARD = "yellow_card"
    RED_CARD = "red_card"
    YELLOW_RED_CARD = "yellow_red_card"


CARD_TYPES: frozenset[EventType] = frozenset({
    EventType.YELLOW_CARD,
    EventType.RED_CARD,
    EventType.YELLOW_RED_CARD,
})


class Side(str, Enum):
    HOME = "home"
    AWAY = "away"

    @property
    def other(self) -> "Side":
        return Side.AWAY if self is Side.HOME else Side.HOME


class Eligibility(str, Enum):
    ELIGIBLE = "eligible"
    WAITING = "waiting"
    SUSPENDED = "suspended"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# ---------- League ----------
@dataclass
class League:
    id: str
    name: str
    code: str
    created_at: datetime
    hourly_rate: float | None = None  # Referee compensation per match

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "hourly_rate": self.hourly_rate,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Team ----------
@dataclass
class Team:
    """A club registered in one league. balance is debited by cancellation penalties."""
    id: str
    league_id: str
    name: str
    created_at: datetime
    short_name: str | None = None
    kit_home: str | None = None
    kit_away: str | None = None
    coach: str | None = None
    logo: str | None = None
    contact_email: str | None = None
    balance: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "league_id": self.league_id,
            "name": self.name,
            "short_name": self.short_name,
            "kit_home": self.kit_home,
            "kit_away": self.kit_away,
            "coach": self.coach,
            "logo": self.logo,
            "contact_email": self.contact_email,
            "balance": self.balance,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Player ----------
@dataclass
class Player:
    """
    A registered player. eligibility and blockdate are written only by the
    suspension policy; blockdate is the moment the suspension expires.
    """
    id: str
    team_id: str
    name: str
    created_at: datetime
    number: int | None = None
    image: str | None = None
    eligibility: Eligibility = Eligibility.ELIGIBLE
    blockdate: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "team_id": self.team_id,
            "name": self.name,
            "number": self.number,
            "image": self.image,
            "eligibility": self.eligibility.value,
            "blockdate": _iso(self.blockdate),
            "created_at": self.created_at.isoformat(),
        }


# ---------- Referee ----------
@dataclass
class Referee:
    id: str
    name: str
    created_at: datetime
    email: str | None = None
    balance: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "balance": self.balance,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Season ----------
@dataclass
class Season:
    """At most one season per league is primary; the toggle keeps that true."""
    id: str
    league_id: str
    name: str
    created_at: datetime
    is_primary: bool = False
    current_gameday: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "league_id": self.league_id,
            "name": self.name,
            "is_primary": self.is_primary,
            "current_gameday": self.current_gameday,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Roster sheet ----------
@dataclass
class RosterEntry:
    """One listed player on a matchday sheet, with live card counters."""
    player_id: str
    name: str
    number: int | None = None
    image: str | None = None
    yellow_cards: int = 0
    red_cards: int = 0
    yellow_red_cards: int = 0

    def counter_for(self, event_type: EventType) -> str:
        return _CARD_COUNTERS[event_type]

    def reset_counters(self) -> None:
        self.yellow_cards = 0
        self.red_cards = 0
        self.yellow_red_cards = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "name": self.name,
            "number": self.number,
            "image": self.image,
            "yellow_cards": self.yellow_cards,
            "red_cards": self.red_cards,
            "yellow_red_cards": self.yellow_red_cards,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "RosterEntry":
        return cls(
            player_id=d["player_id"],
            name=d.get("name", ""),
            number=d.get("number"),
            image=d.get("image"),
            yellow_cards=int(d.get("yellow_cards", 0)),
            red_cards=int(d.get("red_cards", 0)),
            yellow_red_cards=int(d.get("yellow_red_cards", 0)),
        )


_CARD_COUNTERS: dict[EventType, str] = {
    EventType.YELLOW_CARD: "yellow_cards",
    EventType.RED_CARD: "red_cards",
    EventType.YELLOW_RED_CARD: "yellow_red_cards",
}


@dataclass
class RosterSheet:
    """Matchday team sheet ("Blankett"): name, kit, coach and listed players."""
    name: str
    kit: str | None = None
    coach: str | None = None
    logo: str | None = None
    players: list[RosterEntry] = field(default_factory=list)

    def find(self, player_id: str) -> RosterEntry | None:
        for entry in self.players:
            if entry.player_id == player_id:
                return entry
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kit": self.kit,
            "coach": self.coach,
            "logo": self.logo,
            "players": [p.to_dict() for p in self.players],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "RosterSheet":
        return cls(
            name=d.get("name", ""),
            kit=d.get("kit"),
            coach=d.get("coach"),
            logo=d.get("logo"),
            players=[RosterEntry.from_dict(p) for p in d.get("players", [])],
        )

    @classmethod
    def stub_for(cls, team: Team, side: Side) -> "RosterSheet":
        """Fresh sheet for a fixture: team name, coach and the kit for that side."""
        kit = team.kit_home if side is Side.HOME else team.kit_away
        return cls(name=team.name, kit=kit, coach=team.coach, logo=team.logo)


# ---------- Match ----------
@dataclass
class Match:
    """
    A fixture within a season. Mutated only through MatchLifecycle commands.
    paid guards the one-time referee settlement on submit.
    """
    id: str
    season_id: str
    home_team_id: str
    away_team_id: str
    gameday: int
    status: MatchStatus
    home_sheet: RosterSheet
    away_sheet: RosterSheet
    created_at: datetime
    home_score: int = 0
    away_score: int = 0
    referee_id: str | None = None
    scheduled_at: datetime | None = None
    venue: str | None = None
    first_half_start: datetime | None = None
    first_half_end: datetime | None = None
    second_half_start: datetime | None = None
    second_half_end: datetime | None = None
    report: str | None = None
    paid: bool = False

    def team_id_for(self, side: Side) -> str:
        return self.home_team_id if side is Side.HOME else self.away_team_id

    def sheet_for(self, side: Side) -> RosterSheet:
        return self.home_sheet if side is Side.HOME else self.away_sheet

    def side_of_team(self, team_id: str) -> Side | None:
        if team_id == self.home_team_id:
            return Side.HOME
        if team_id == self.away_team_id:
            return Side.AWAY
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "season_id": self.season_id,
            "home_team_id": self.home_team_id,
            "away_team_id": self.away_team_id,
            "referee_id": self.referee_id,
            "gameday": self.gameday,
            "scheduled_at": _iso(self.scheduled_at),
            "venue": self.venue,
            "status": self.status.value,
            "score": {"home": self.home_score, "away": self.away_score},
            "home_sheet": self.home_sheet.to_dict(),
            "away_sheet": self.away_sheet.to_dict(),
            "first_half_start": _iso(self.first_half_start),
            "first_half_end": _iso(self.first_half_end),
            "second_half_start": _iso(self.second_half_start),
            "second_half_end": _iso(self.second_half_end),
            "report": self.report,
            "paid": self.paid,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Match event (ledger entry) ----------
@dataclass
class MatchEvent:
    """
    Immutable goal/card record. name/number/image are a snapshot of the player
    at event time so displays stay stable if the player record changes.
    """
    id: str
    match_id: str
    player_id: str
    type: EventType
    minute: int
    created_at: datetime
    name: str | None = None
    number: int | None = None
    image: str | None = None
    side: Side | None = None
    own_goal: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "match_id": self.match_id,
            "player_id": self.player_id,
            "type": self.type.value,
            "minute": self.minute,
            "name": self.name,
            "number": self.number,
            "image": self.image,
            "side": self.side.value if self.side else None,
            "own_goal": self.own_goal,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Billing / disciplinary ----------
@dataclass
class Invoice:
    id: str
    amount: float
    previous_balance: float
    reference: str
    created_at: datetime
    team_id: str | None = None
    referee_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "team_id": self.team_id,
            "referee_id": self.referee_id,
            "amount": self.amount,
            "previous_balance": self.previous_balance,
            "reference": self.reference,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class DisciplinaryCase:
    """Case opened for the disciplinary panel ("Strafsenat") from a match report."""
    id: str
    match_id: str
    text: str
    created_at: datetime
    referee_id: str | None = None
    is_open: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "match_id": self.match_id,
            "referee_id": self.referee_id,
            "text": self.text,
            "is_open": self.is_open,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Derived views ----------
@dataclass
class TableItem:
    """One standings row. Derived from counted matches; never persisted."""
    team_id: str
    team_name: str
    played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0
    rank: int = 0
    form: list[str] = field(default_factory=list)  # Newest first: W / D / L

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "team_id": self.team_id,
            "team_name": self.team_name,
            "played": self.played,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "goal_difference": self.goal_difference,
            "points": self.points,
            "form": list(self.form),
        }


@dataclass
class LeaderboardEntry:
    player_id: str
    count: int
    name: str | None = None
    number: int | None = None
    image: str | None = None
    team_id: str | None = None
    team_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "name": self.name,
            "number": self.number,
            "image": self.image,
            "team_id": self.team_id,
            "team_name": self.team_name,
            "count": self.count,
        }
