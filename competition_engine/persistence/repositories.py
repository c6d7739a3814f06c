"""
Repository interfaces for competition data.
No business logic, only read/write operations.

Registry inserts (league, team, player, referee) commit on their own.
Everything a service composes into a command (seasons, matches, events,
balances, counters) is left uncommitted; the service wraps those writes in
persistence.db.transaction so they land together or not at all.
"""
from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from competition_engine.models import (
    DisciplinaryCase,
    Eligibility,
    EventType,
    Invoice,
    League,
    Match,
    MatchEvent,
    MatchStatus,
    Player,
    Referee,
    RosterSheet,
    Season,
    Side,
    Team,
)


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _parse_optional(s: str | None) -> datetime | None:
    return _parse_datetime(s) if s else None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _utc_iso(value: datetime | None) -> str | None:
    """ISO text in UTC so stored timestamps compare correctly as strings. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _placeholders(values: Iterable[Any]) -> str:
    return ", ".join("?" for _ in values)


# ---------- LeagueRepository ----------


class LeagueRepository:
    """CRUD for leagues."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        code: str,
        hourly_rate: float | None = None,
        id: str | None = None,
    ) -> League:
        lid = id or str(uuid.uuid4())
        now = _now()
        conn.execute(
            "INSERT INTO leagues (id, name, code, hourly_rate, created_at) VALUES (?, ?, ?, ?, ?)",
            (lid, name, code, hourly_rate, now.isoformat()),
        )
        conn.commit()
        return League(id=lid, name=name, code=code, hourly_rate=hourly_rate, created_at=now)

    def get(self, conn: sqlite3.Connection, league_id: str) -> League | None:
        row = conn.execute(
            "SELECT id, name, code, hourly_rate, created_at FROM leagues WHERE id = ?",
            (league_id,),
        ).fetchone()
        return _row_to_league(row) if row else None

    def get_by_code(self, conn: sqlite3.Connection, code: str) -> League | None:
        row = conn.execute(
            "SELECT id, name, code, hourly_rate, created_at FROM leagues WHERE code = ?",
            (code,),
        ).fetchone()
        return _row_to_league(row) if row else None

    def list_all(self, conn: sqlite3.Connection) -> list[League]:
        rows = conn.execute(
            "SELECT id, name, code, hourly_rate, created_at FROM leagues ORDER BY created_at"
        ).fetchall()
        return [_row_to_league(r) for r in rows]

    def update_hourly_rate(self, conn: sqlite3.Connection, league_id: str, hourly_rate: float | None) -> None:
        conn.execute("UPDATE leagues SET hourly_rate = ? WHERE id = ?", (hourly_rate, league_id))
        conn.commit()


def _row_to_league(r: sqlite3.Row) -> League:
    return League(
        id=r["id"],
        name=r["name"],
        code=r["code"],
        hourly_rate=r["hourly_rate"],
        created_at=_parse_datetime(r["created_at"]),
    )


# ---------- TeamRepository ----------

_TEAM_COLS = "id, league_id, name, short_name, kit_home, kit_away, coach, logo, contact_email, balance, created_at"


class TeamRepository:
    """CRUD for teams. Balance updates join the caller's transaction."""

    def create(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        name: str,
        short_name: str | None = None,
        kit_home: str | None = None,
        kit_away: str | None = None,
        coach: str | None = None,
        logo: str | None = None,
        contact_email: str | None = None,
        id: str | None = None,
    ) -> Team:
        tid = id or str(uuid.uuid4())
        now = _now()
        conn.execute(
            f"INSERT INTO teams ({_TEAM_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (tid, league_id, name, short_name, kit_home, kit_away, coach, logo, contact_email, 0.0, now.isoformat()),
        )
        conn.commit()
        return Team(
            id=tid, league_id=league_id, name=name, short_name=short_name,
            kit_home=kit_home, kit_away=kit_away, coach=coach, logo=logo,
            contact_email=contact_email, balance=0.0, created_at=now,
        )

    def get(self, conn: sqlite3.Connection, team_id: str) -> Team | None:
        row = conn.execute(f"SELECT {_TEAM_COLS} FROM teams WHERE id = ?", (team_id,)).fetchone()
        return _row_to_team(row) if row else None

    def get_many(self, conn: sqlite3.Connection, team_ids: Iterable[str]) -> dict[str, Team]:
        ids = list(dict.fromkeys(team_ids))
        if not ids:
            return {}
        rows = conn.execute(
            f"SELECT {_TEAM_COLS} FROM teams WHERE id IN ({_placeholders(ids)})", ids
        ).fetchall()
        return {r["id"]: _row_to_team(r) for r in rows}

    def list_by_league(self, conn: sqlite3.Connection, league_id: str) -> list[Team]:
        """Registration order; standings ties and schedules rely on it being stable."""
        rows = conn.execute(
            f"SELECT {_TEAM_COLS} FROM teams WHERE league_id = ? ORDER BY created_at, rowid",
            (league_id,),
        ).fetchall()
        return [_row_to_team(r) for r in rows]

    def update_balance(self, conn: sqlite3.Connection, team_id: str, balance: float) -> None:
        conn.execute("UPDATE teams SET balance = ? WHERE id = ?", (balance, team_id))


def _row_to_team(r: sqlite3.Row) -> Team:
    return Team(
        id=r["id"],
        league_id=r["league_id"],
        name=r["name"],
        short_name=r["short_name"],
        kit_home=r["kit_home"],
        kit_away=r["kit_away"],
        coach=r["coach"],
        logo=r["logo"],
        contact_email=r["contact_email"],
        balance=r["balance"],
        created_at=_parse_datetime(r["created_at"]),
    )


# ---------- PlayerRepository ----------

_PLAYER_COLS = "id, team_id, name, number, image, eligibility, blockdate, created_at"


class PlayerRepository:
    """CRUD for players. Eligibility updates join the caller's transaction."""

    def create(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        name: str,
        number: int | None = None,
        image: str | None = None,
        id: str | None = None,
    ) -> Player:
        pid = id or str(uuid.uuid4())
        now = _now()
        conn.execute(
            f"INSERT INTO players ({_PLAYER_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (pid, team_id, name, number, image, Eligibility.ELIGIBLE.value, None, now.isoformat()),
        )
        conn.commit()
        return Player(id=pid, team_id=team_id, name=name, number=number, image=image, created_at=now)

    def get(self, conn: sqlite3.Connection, player_id: str) -> Player | None:
        row = conn.execute(f"SELECT {_PLAYER_COLS} FROM players WHERE id = ?", (player_id,)).fetchone()
        return _row_to_player(row) if row else None

    def get_many(self, conn: sqlite3.Connection, player_ids: Iterable[str]) -> dict[str, Player]:
        ids = list(dict.fromkeys(player_ids))
        if not ids:
            return {}
        rows = conn.execute(
            f"SELECT {_PLAYER_COLS} FROM players WHERE id IN ({_placeholders(ids)})", ids
        ).fetchall()
        return {r["id"]: _row_to_player(r) for r in rows}

    def list_by_team(self, conn: sqlite3.Connection, team_id: str) -> list[Player]:
        rows = conn.execute(
            f"SELECT {_PLAYER_COLS} FROM players WHERE team_id = ? ORDER BY created_at, rowid",
            (team_id,),
        ).fetchall()
        return [_row_to_player(r) for r in rows]

    def list_by_league(self, conn: sqlite3.Connection, league_id: str) -> list[Player]:
        rows = conn.execute(
            """
            SELECT p.id, p.team_id, p.name, p.number, p.image, p.eligibility, p.blockdate, p.created_at
            FROM players p JOIN teams t ON t.id = p.team_id
            WHERE t.league_id = ?
            ORDER BY p.created_at, p.rowid
            """,
            (league_id,),
        ).fetchall()
        return [_row_to_player(r) for r in rows]

    def list_by_eligibility(self, conn: sqlite3.Connection, eligibility: Eligibility) -> list[Player]:
        rows = conn.execute(
            f"SELECT {_PLAYER_COLS} FROM players WHERE eligibility = ? ORDER BY created_at, rowid",
            (eligibility.value,),
        ).fetchall()
        return [_row_to_player(r) for r in rows]

    def update_eligibility(
        self,
        conn: sqlite3.Connection,
        player_id: str,
        eligibility: Eligibility,
        blockdate: datetime | None,
    ) -> None:
        conn.execute(
            "UPDATE players SET eligibility = ?, blockdate = ? WHERE id = ?",
            (eligibility.value, _iso(blockdate), player_id),
        )


def _row_to_player(r: sqlite3.Row) -> Player:
    return Player(
        id=r["id"],
        team_id=r["team_id"],
        name=r["name"],
        number=r["number"],
        image=r["image"],
        eligibility=Eligibility(r["eligibility"]),
        blockdate=_parse_optional(r["blockdate"]),
        created_at=_parse_datetime(r["created_at"]),
    )


# ---------- RefereeRepository ----------


class RefereeRepository:
    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        email: str | None = None,
        id: str | None = None,
    ) -> Referee:
        rid = id or str(uuid.uuid4())
        now = _now()
        conn.execute(
            "INSERT INTO referees (id, name, email, balance, created_at) VALUES (?, ?, ?, ?, ?)",
            (rid, name, email, 0.0, now.isoformat()),
        )
        conn.commit()
        return Referee(id=rid, name=name, email=email, balance=0.0, created_at=now)

    def get(self, conn: sqlite3.Connection, referee_id: str) -> Referee | None:
        row = conn.execute(
            "SELECT id, name, email, balance, created_at FROM referees WHERE id = ?",
            (referee_id,),
        ).fetchone()
        if row is None:
            return None
        return Referee(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            balance=row["balance"],
            created_at=_parse_datetime(row["created_at"]),
        )

    def update_balance(self, conn: sqlite3.Connection, referee_id: str, balance: float) -> None:
        conn.execute("UPDATE referees SET balance = ? WHERE id = ?", (balance, referee_id))


# ---------- SeasonRepository ----------

_SEASON_COLS = "id, league_id, name, is_primary, current_gameday, created_at"


class SeasonRepository:
    """Seasons and the per-league primary flag. Writes join the caller's transaction."""

    def create(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        name: str,
        id: str | None = None,
    ) -> Season:
        sid = id or str(uuid.uuid4())
        now = _now()
        conn.execute(
            f"INSERT INTO seasons ({_SEASON_COLS}) VALUES (?, ?, ?, ?, ?, ?)",
            (sid, league_id, name, 0, 1, now.isoformat()),
        )
        return Season(id=sid, league_id=league_id, name=name, created_at=now)

    def get(self, conn: sqlite3.Connection, season_id: str) -> Season | None:
        row = conn.execute(f"SELECT {_SEASON_COLS} FROM seasons WHERE id = ?", (season_id,)).fetchone()
        return _row_to_season(row) if row else None

    def list_by_league(self, conn: sqlite3.Connection, league_id: str) -> list[Season]:
        rows = conn.execute(
            f"SELECT {_SEASON_COLS} FROM seasons WHERE league_id = ? ORDER BY created_at, rowid",
            (league_id,),
        ).fetchall()
        return [_row_to_season(r) for r in rows]

    def get_primary(self, conn: sqlite3.Connection, league_id: str) -> Season | None:
        row = conn.execute(
            f"SELECT {_SEASON_COLS} FROM seasons WHERE league_id = ? AND is_primary = 1",
            (league_id,),
        ).fetchone()
        return _row_to_season(row) if row else None

    def clear_primary(self, conn: sqlite3.Connection, league_id: str) -> None:
        conn.execute("UPDATE seasons SET is_primary = 0 WHERE league_id = ?", (league_id,))

    def mark_primary(self, conn: sqlite3.Connection, season_id: str) -> None:
        conn.execute("UPDATE seasons SET is_primary = 1 WHERE id = ?", (season_id,))

    def update_current_gameday(self, conn: sqlite3.Connection, season_id: str, gameday: int) -> None:
        conn.execute("UPDATE seasons SET current_gameday = ? WHERE id = ?", (gameday, season_id))

    def delete(self, conn: sqlite3.Connection, season_id: str) -> None:
        conn.execute("DELETE FROM seasons WHERE id = ?", (season_id,))


def _row_to_season(r: sqlite3.Row) -> Season:
    return Season(
        id=r["id"],
        league_id=r["league_id"],
        name=r["name"],
        is_primary=bool(r["is_primary"]),
        current_gameday=r["current_gameday"],
        created_at=_parse_datetime(r["created_at"]),
    )


# ---------- MatchRepository ----------

_MATCH_COLS = (
    "m.id, m.season_id, m.home_team_id, m.away_team_id, m.referee_id, m.gameday, m.scheduled_at, m.venue, "
    "m.home_score, m.away_score, m.status, m.home_sheet, m.away_sheet, m.first_half_start, m.first_half_end, "
    "m.second_half_start, m.second_half_end, m.report, m.paid, m.created_at"
)


class MatchRepository:
    """Matches with their roster sheets. Writes join the caller's transaction."""

    def create(
        self,
        conn: sqlite3.Connection,
        season_id: str,
        home_team_id: str,
        away_team_id: str,
        gameday: int,
        home_sheet: RosterSheet,
        away_sheet: RosterSheet,
        referee_id: str | None = None,
        scheduled_at: datetime | None = None,
        venue: str | None = None,
        id: str | None = None,
    ) -> Match:
        mid = id or str(uuid.uuid4())
        now = _now()
        conn.execute(
            """
            INSERT INTO matches (id, season_id, home_team_id, away_team_id, referee_id, gameday,
                scheduled_at, venue, home_score, away_score, status, home_sheet, away_sheet, paid, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, 0, ?, ?, ?, 0, ?)
            """,
            (
                mid, season_id, home_team_id, away_team_id, referee_id, gameday,
                _utc_iso(scheduled_at), venue, MatchStatus.PENDING.value,
                json.dumps(home_sheet.to_dict()), json.dumps(away_sheet.to_dict()),
                now.isoformat(),
            ),
        )
        return Match(
            id=mid, season_id=season_id, home_team_id=home_team_id, away_team_id=away_team_id,
            referee_id=referee_id, gameday=gameday, scheduled_at=scheduled_at, venue=venue,
            status=MatchStatus.PENDING, home_sheet=home_sheet, away_sheet=away_sheet, created_at=now,
        )

    def get(self, conn: sqlite3.Connection, match_id: str) -> Match | None:
        row = conn.execute(f"SELECT {_MATCH_COLS} FROM matches m WHERE m.id = ?", (match_id,)).fetchone()
        return _row_to_match(row) if row else None

    def save(self, conn: sqlite3.Connection, match: Match) -> None:
        """Write back every mutable field of the match."""
        conn.execute(
            """
            UPDATE matches SET
                referee_id = ?, scheduled_at = ?, venue = ?, home_score = ?, away_score = ?, status = ?,
                home_sheet = ?, away_sheet = ?, first_half_start = ?, first_half_end = ?,
                second_half_start = ?, second_half_end = ?, report = ?, paid = ?
            WHERE id = ?
            """,
            (
                match.referee_id, _utc_iso(match.scheduled_at), match.venue,
                match.home_score, match.away_score, match.status.value,
                json.dumps(match.home_sheet.to_dict()), json.dumps(match.away_sheet.to_dict()),
                _iso(match.first_half_start), _iso(match.first_half_end),
                _iso(match.second_half_start), _iso(match.second_half_end),
                match.report, 1 if match.paid else 0,
                match.id,
            ),
        )

    def list_by_season(self, conn: sqlite3.Connection, season_id: str) -> list[Match]:
        rows = conn.execute(
            f"SELECT {_MATCH_COLS} FROM matches m WHERE m.season_id = ? ORDER BY m.gameday, m.rowid",
            (season_id,),
        ).fetchall()
        return [_row_to_match(r) for r in rows]

    def list_by_gameday(self, conn: sqlite3.Connection, season_id: str, gameday: int) -> list[Match]:
        rows = conn.execute(
            f"SELECT {_MATCH_COLS} FROM matches m WHERE m.season_id = ? AND m.gameday = ? ORDER BY m.rowid",
            (season_id, gameday),
        ).fetchall()
        return [_row_to_match(r) for r in rows]

    def list_by_league(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        statuses: Iterable[MatchStatus] | None = None,
        primary_only: bool = False,
    ) -> list[Match]:
        """Matches of every season in the league, in schedule order."""
        sql = f"SELECT {_MATCH_COLS} FROM matches m JOIN seasons s ON s.id = m.season_id WHERE s.league_id = ?"
        args: list[Any] = [league_id]
        if primary_only:
            sql += " AND s.is_primary = 1"
        if statuses is not None:
            values = [s.value for s in statuses]
            sql += f" AND m.status IN ({_placeholders(values)})"
            args.extend(values)
        sql += " ORDER BY s.created_at, m.gameday, m.rowid"
        return [_row_to_match(r) for r in conn.execute(sql, args).fetchall()]

    def list_by_status(self, conn: sqlite3.Connection, statuses: Iterable[MatchStatus]) -> list[tuple[str, Match]]:
        """(league_id, match) pairs for every match in one of the given statuses."""
        values = [s.value for s in statuses]
        rows = conn.execute(
            f"""
            SELECT s.league_id AS league_id, {_MATCH_COLS}
            FROM matches m JOIN seasons s ON s.id = m.season_id
            WHERE m.status IN ({_placeholders(values)})
            ORDER BY s.league_id, m.gameday, m.rowid
            """,
            values,
        ).fetchall()
        return [(r["league_id"], _row_to_match(r)) for r in rows]

    def max_gameday(self, conn: sqlite3.Connection, season_id: str) -> int:
        row = conn.execute(
            "SELECT MAX(gameday) AS g FROM matches WHERE season_id = ?", (season_id,)
        ).fetchone()
        return row["g"] or 0

    def delete_by_season(self, conn: sqlite3.Connection, season_id: str) -> None:
        conn.execute("DELETE FROM matches WHERE season_id = ?", (season_id,))


def _row_to_match(r: sqlite3.Row) -> Match:
    return Match(
        id=r["id"],
        season_id=r["season_id"],
        home_team_id=r["home_team_id"],
        away_team_id=r["away_team_id"],
        referee_id=r["referee_id"],
        gameday=r["gameday"],
        scheduled_at=_parse_optional(r["scheduled_at"]),
        venue=r["venue"],
        home_score=r["home_score"],
        away_score=r["away_score"],
        status=MatchStatus(r["status"]),
        home_sheet=RosterSheet.from_dict(json.loads(r["home_sheet"])),
        away_sheet=RosterSheet.from_dict(json.loads(r["away_sheet"])),
        first_half_start=_parse_optional(r["first_half_start"]),
        first_half_end=_parse_optional(r["first_half_end"]),
        second_half_start=_parse_optional(r["second_half_start"]),
        second_half_end=_parse_optional(r["second_half_end"]),
        report=r["report"],
        paid=bool(r["paid"]),
        created_at=_parse_datetime(r["created_at"]),
    )


# ---------- MatchEventRepository ----------

_EVENT_COLS = "e.id, e.match_id, e.player_id, e.type, e.minute, e.name, e.number, e.image, e.side, e.own_goal, e.created_at"


class MatchEventRepository:
    """The event ledger. Appends and deletes join the caller's transaction."""

    def append(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        player_id: str,
        type: EventType,
        minute: int,
        created_at: datetime,
        name: str | None = None,
        number: int | None = None,
        image: str | None = None,
        side: Side | None = None,
        own_goal: bool = False,
        id: str | None = None,
    ) -> MatchEvent:
        eid = id or str(uuid.uuid4())
        conn.execute(
            """
            INSERT INTO match_events (id, match_id, player_id, type, minute, name, number, image, side, own_goal, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                eid, match_id, player_id, type.value, minute, name, number, image,
                side.value if side else None, 1 if own_goal else 0, _utc_iso(created_at),
            ),
        )
        return MatchEvent(
            id=eid, match_id=match_id, player_id=player_id, type=type, minute=minute,
            name=name, number=number, image=image, side=side, own_goal=own_goal, created_at=created_at,
        )

    def get(self, conn: sqlite3.Connection, event_id: str) -> MatchEvent | None:
        row = conn.execute(f"SELECT {_EVENT_COLS} FROM match_events e WHERE e.id = ?", (event_id,)).fetchone()
        return _row_to_event(row) if row else None

    def list_by_match(self, conn: sqlite3.Connection, match_id: str) -> list[MatchEvent]:
        rows = conn.execute(
            f"SELECT {_EVENT_COLS} FROM match_events e WHERE e.match_id = ? ORDER BY e.seq",
            (match_id,),
        ).fetchall()
        return [_row_to_event(r) for r in rows]

    def latest_for_player(
        self,
        conn: sqlite3.Connection,
        player_id: str,
        type: EventType,
        exclude_id: str | None = None,
    ) -> MatchEvent | None:
        row = conn.execute(
            f"""
            SELECT {_EVENT_COLS} FROM match_events e
            WHERE e.player_id = ? AND e.type = ? AND e.id != ?
            ORDER BY e.seq DESC LIMIT 1
            """,
            (player_id, type.value, exclude_id or ""),
        ).fetchone()
        return _row_to_event(row) if row else None

    def count_in_season(
        self, conn: sqlite3.Connection, player_id: str, type: EventType, season_id: str
    ) -> int:
        row = conn.execute(
            """
            SELECT COUNT(*) AS c FROM match_events e JOIN matches m ON m.id = e.match_id
            WHERE e.player_id = ? AND e.type = ? AND m.season_id = ?
            """,
            (player_id, type.value, season_id),
        ).fetchone()
        return row["c"]

    def count_by_player(
        self,
        conn: sqlite3.Connection,
        type: EventType,
        league_id: str | None = None,
        primary_only: bool = False,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[tuple[str, int]]:
        """Per-player event counts as (player_id, count), in first-appearance order."""
        sql = (
            "SELECT e.player_id AS player_id, COUNT(*) AS count, MIN(e.seq) AS first_seq "
            "FROM match_events e JOIN matches m ON m.id = e.match_id JOIN seasons s ON s.id = m.season_id"
        )
        where = ["e.type = ?"]
        args: list[Any] = [type.value]
        if league_id is not None:
            sql += " JOIN players p ON p.id = e.player_id JOIN teams t ON t.id = p.team_id"
            where.append("t.league_id = ?")
            args.append(league_id)
        if primary_only:
            where.append("s.is_primary = 1")
        if since is not None:
            where.append("e.created_at >= ?")
            args.append(_utc_iso(since))
        if until is not None:
            where.append("e.created_at < ?")
            args.append(_utc_iso(until))
        sql += " WHERE " + " AND ".join(where) + " GROUP BY e.player_id ORDER BY first_seq"
        return [(r["player_id"], r["count"]) for r in conn.execute(sql, args).fetchall()]

    def latest_snapshots(self, conn: sqlite3.Connection, player_ids: Iterable[str]) -> dict[str, MatchEvent]:
        """Most recent ledger entry per player; its name/number/image is the display fallback."""
        ids = list(dict.fromkeys(player_ids))
        if not ids:
            return {}
        rows = conn.execute(
            f"""
            SELECT {_EVENT_COLS} FROM match_events e
            WHERE e.seq IN (
                SELECT MAX(seq) FROM match_events WHERE player_id IN ({_placeholders(ids)}) GROUP BY player_id
            )
            """,
            ids,
        ).fetchall()
        return {r["player_id"]: _row_to_event(r) for r in rows}

    def delete(self, conn: sqlite3.Connection, event_id: str) -> None:
        conn.execute("DELETE FROM match_events WHERE id = ?", (event_id,))

    def delete_by_match(self, conn: sqlite3.Connection, match_id: str) -> int:
        cur = conn.execute("DELETE FROM match_events WHERE match_id = ?", (match_id,))
        return cur.rowcount

    def delete_by_season(self, conn: sqlite3.Connection, season_id: str) -> None:
        conn.execute(
            "DELETE FROM match_events WHERE match_id IN (SELECT id FROM matches WHERE season_id = ?)",
            (season_id,),
        )


def _row_to_event(r: sqlite3.Row) -> MatchEvent:
    return MatchEvent(
        id=r["id"],
        match_id=r["match_id"],
        player_id=r["player_id"],
        type=EventType(r["type"]),
        minute=r["minute"],
        name=r["name"],
        number=r["number"],
        image=r["image"],
        side=Side(r["side"]) if r["side"] else None,
        own_goal=bool(r["own_goal"]),
        created_at=_parse_datetime(r["created_at"]),
    )


# ---------- CancellationRepository ----------


class CancellationRepository:
    """Per-season cancellation counters. Writes join the caller's transaction."""

    def get_count(self, conn: sqlite3.Connection, team_id: str, season_id: str) -> int:
        row = conn.execute(
            "SELECT count FROM season_cancellations WHERE team_id = ? AND season_id = ?",
            (team_id, season_id),
        ).fetchone()
        return row["count"] if row else 0

    def set_count(self, conn: sqlite3.Connection, team_id: str, season_id: str, count: int) -> None:
        conn.execute(
            """
            INSERT INTO season_cancellations (team_id, season_id, count) VALUES (?, ?, ?)
            ON CONFLICT(team_id, season_id) DO UPDATE SET count = excluded.count
            """,
            (team_id, season_id, count),
        )

    def delete_by_season(self, conn: sqlite3.Connection, season_id: str) -> None:
        conn.execute("DELETE FROM season_cancellations WHERE season_id = ?", (season_id,))


# ---------- InvoiceRepository ----------

_INVOICE_COLS = "id, team_id, referee_id, amount, previous_balance, reference, created_at"


class InvoiceRepository:
    def create(
        self,
        conn: sqlite3.Connection,
        amount: float,
        previous_balance: float,
        reference: str,
        team_id: str | None = None,
        referee_id: str | None = None,
    ) -> Invoice:
        iid = str(uuid.uuid4())
        now = _now()
        conn.execute(
            f"INSERT INTO invoices ({_INVOICE_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (iid, team_id, referee_id, amount, previous_balance, reference, now.isoformat()),
        )
        return Invoice(
            id=iid, team_id=team_id, referee_id=referee_id, amount=amount,
            previous_balance=previous_balance, reference=reference, created_at=now,
        )

    def list_by_team(self, conn: sqlite3.Connection, team_id: str) -> list[Invoice]:
        rows = conn.execute(
            f"SELECT {_INVOICE_COLS} FROM invoices WHERE team_id = ? ORDER BY created_at, rowid",
            (team_id,),
        ).fetchall()
        return [
            Invoice(
                id=r["id"], team_id=r["team_id"], referee_id=r["referee_id"], amount=r["amount"],
                previous_balance=r["previous_balance"], reference=r["reference"],
                created_at=_parse_datetime(r["created_at"]),
            )
            for r in rows
        ]


# ---------- DisciplinaryCaseRepository ----------


class DisciplinaryCaseRepository:
    def exists_for_match(self, conn: sqlite3.Connection, match_id: str) -> bool:
        row = conn.execute(
            "SELECT 1 FROM disciplinary_cases WHERE match_id = ? LIMIT 1", (match_id,)
        ).fetchone()
        return row is not None

    def create(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        text: str,
        referee_id: str | None = None,
    ) -> DisciplinaryCase:
        cid = str(uuid.uuid4())
        now = _now()
        conn.execute(
            "INSERT INTO disciplinary_cases (id, match_id, referee_id, text, is_open, created_at) VALUES (?, ?, ?, ?, 1, ?)",
            (cid, match_id, referee_id, text, now.isoformat()),
        )
        return DisciplinaryCase(id=cid, match_id=match_id, referee_id=referee_id, text=text, created_at=now)

    def list_by_match(self, conn: sqlite3.Connection, match_id: str) -> list[DisciplinaryCase]:
        rows = conn.execute(
            "SELECT id, match_id, referee_id, text, is_open, created_at FROM disciplinary_cases WHERE match_id = ?",
            (match_id,),
        ).fetchall()
        return [
            DisciplinaryCase(
                id=r["id"], match_id=r["match_id"], referee_id=r["referee_id"], text=r["text"],
                is_open=bool(r["is_open"]), created_at=_parse_datetime(r["created_at"]),
            )
            for r in rows
        ]

    def delete_by_season(self, conn: sqlite3.Connection, season_id: str) -> None:
        conn.execute(
            "DELETE FROM disciplinary_cases WHERE match_id IN (SELECT id FROM matches WHERE season_id = ?)",
            (season_id,),
        )
