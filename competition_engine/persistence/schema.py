"""
SQLite schema for competition entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def leagues_schema() -> str:
    """hourly_rate: referee compensation per match; NULL blocks settlement."""
    return """
    CREATE TABLE IF NOT EXISTS leagues (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        code TEXT NOT NULL,
        hourly_rate REAL,
        created_at TEXT NOT NULL
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_leagues_code ON leagues(code);
    """


def teams_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS teams (
        id TEXT PRIMARY KEY,
        league_id TEXT NOT NULL,
        name TEXT NOT NULL,
        short_name TEXT,
        kit_home TEXT,
        kit_away TEXT,
        coach TEXT,
        logo TEXT,
        contact_email TEXT,
        balance REAL NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        FOREIGN KEY (league_id) REFERENCES leagues(id)
    );
    CREATE INDEX IF NOT EXISTS ix_teams_league ON teams(league_id);
    """


def players_schema() -> str:
    """eligibility: eligible | waiting | suspended. blockdate = suspension expiry."""
    return """
    CREATE TABLE IF NOT EXISTS players (
        id TEXT PRIMARY KEY,
        team_id TEXT NOT NULL,
        name TEXT NOT NULL,
        number INTEGER,
        image TEXT,
        eligibility TEXT NOT NULL DEFAULT 'eligible',
        blockdate TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_players_team ON players(team_id);
    """


def referees_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS referees (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT,
        balance REAL NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    );
    """


def seasons_schema() -> str:
    """is_primary: at most one per league, enforced by the toggle, not by an index."""
    return """
    CREATE TABLE IF NOT EXISTS seasons (
        id TEXT PRIMARY KEY,
        league_id TEXT NOT NULL,
        name TEXT NOT NULL,
        is_primary INTEGER NOT NULL DEFAULT 0,
        current_gameday INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        FOREIGN KEY (league_id) REFERENCES leagues(id)
    );
    CREATE INDEX IF NOT EXISTS ix_seasons_league ON seasons(league_id);
    """


def matches_schema() -> str:
    """Roster sheets are stored as JSON. status follows MatchStatus."""
    return """
    CREATE TABLE IF NOT EXISTS matches (
        id TEXT PRIMARY KEY,
        season_id TEXT NOT NULL,
        home_team_id TEXT NOT NULL,
        away_team_id TEXT NOT NULL,
        referee_id TEXT,
        gameday INTEGER NOT NULL,
        scheduled_at TEXT,
        venue TEXT,
        home_score INTEGER NOT NULL DEFAULT 0,
        away_score INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'pending',
        home_sheet TEXT NOT NULL,
        away_sheet TEXT NOT NULL,
        first_half_start TEXT,
        first_half_end TEXT,
        second_half_start TEXT,
        second_half_end TEXT,
        report TEXT,
        paid INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        FOREIGN KEY (season_id) REFERENCES seasons(id),
        FOREIGN KEY (home_team_id) REFERENCES teams(id),
        FOREIGN KEY (away_team_id) REFERENCES teams(id),
        FOREIGN KEY (referee_id) REFERENCES referees(id)
    );
    CREATE INDEX IF NOT EXISTS ix_matches_season ON matches(season_id);
    CREATE INDEX IF NOT EXISTS ix_matches_home ON matches(home_team_id);
    CREATE INDEX IF NOT EXISTS ix_matches_away ON matches(away_team_id);
    CREATE INDEX IF NOT EXISTS ix_matches_status ON matches(status);
    """


def match_events_schema() -> str:
    """Append-only ledger; rows are deleted only by reverts and resets. seq keeps insertion order."""
    return """
    CREATE TABLE IF NOT EXISTS match_events (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        match_id TEXT NOT NULL,
        player_id TEXT NOT NULL,
        type TEXT NOT NULL,
        minute INTEGER NOT NULL,
        name TEXT,
        number INTEGER,
        image TEXT,
        side TEXT,
        own_goal INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        FOREIGN KEY (match_id) REFERENCES matches(id)
    );
    CREATE INDEX IF NOT EXISTS ix_match_events_match ON match_events(match_id);
    CREATE INDEX IF NOT EXISTS ix_match_events_player_type ON match_events(player_id, type);
    """


def season_cancellations_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS season_cancellations (
        team_id TEXT NOT NULL,
        season_id TEXT NOT NULL,
        count INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (team_id, season_id),
        FOREIGN KEY (team_id) REFERENCES teams(id),
        FOREIGN KEY (season_id) REFERENCES seasons(id)
    );
    """


def invoices_schema() -> str:
    """Billing ledger. Exactly one of team_id / referee_id is set."""
    return """
    CREATE TABLE IF NOT EXISTS invoices (
        id TEXT PRIMARY KEY,
        team_id TEXT,
        referee_id TEXT,
        amount REAL NOT NULL,
        previous_balance REAL NOT NULL,
        reference TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (team_id) REFERENCES teams(id),
        FOREIGN KEY (referee_id) REFERENCES referees(id)
    );
    CREATE INDEX IF NOT EXISTS ix_invoices_team ON invoices(team_id);
    """


def disciplinary_cases_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS disciplinary_cases (
        id TEXT PRIMARY KEY,
        match_id TEXT NOT NULL,
        referee_id TEXT,
        text TEXT NOT NULL,
        is_open INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        FOREIGN KEY (match_id) REFERENCES matches(id)
    );
    CREATE INDEX IF NOT EXISTS ix_disciplinary_cases_match ON disciplinary_cases(match_id);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Parents before children."""
    return "\n".join([
        leagues_schema(),
        teams_schema(),
        players_schema(),
        referees_schema(),
        seasons_schema(),
        matches_schema(),
        match_events_schema(),
        season_cancellations_schema(),
        invoices_schema(),
        disciplinary_cases_schema(),
    ])
