#!/usr/bin/env python3
"""
Demo season: Create league → Schedule season → Play a gameday → Print table and scorers.
Run from project root: python3 scripts/seed_demo.py
"""
from __future__ import annotations

import random
import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from competition_engine import config
from competition_engine.persistence import (
    init_db,
    get_connection,
    LeagueRepository,
    PlayerRepository,
    RefereeRepository,
    TeamRepository,
)
from competition_engine.persistence.db import set_db_path
from competition_engine.services import LeaderboardAggregator, MatchLifecycle, SeasonService, StandingsCalculator

TEAMS = ["Rapid Ottakring", "Austria Favoriten", "Sturm Simmering", "Admira Floridsdorf"]


def main() -> None:
    # Use data/demo.db (distinct from the application database)
    config.configure_logging("WARNING")
    db_path = PROJECT_ROOT / "data" / "demo.db"
    if db_path.exists():
        db_path.unlink()
    set_db_path(db_path)
    init_db(db_path=db_path)

    rng = random.Random(2024)
    conn = get_connection()
    try:
        # 1. League, teams, squads, referee
        league = LeagueRepository().create(conn, "Kreisliga Wien", "KLW", hourly_rate=45.0)
        team_repo = TeamRepository()
        player_repo = PlayerRepository()
        squads = {}
        for name in TEAMS:
            team = team_repo.create(
                conn, league.id, name, kit_home=f"{name} home", kit_away=f"{name} away",
                contact_email=f"{name.split()[0].lower()}@example.org",
            )
            squads[team.id] = [player_repo.create(conn, team.id, f"{name.split()[0]} #{n}", number=n) for n in range(1, 13)]
        referee = RefereeRepository().create(conn, "Demo Referee", email="referee@example.org")
        print(f"Created league {league.name} with {len(TEAMS)} teams")

        # 2. Double round-robin season
        seasons = SeasonService()
        season, matches = seasons.create_season(conn, league.id, "2024/2025", rounds=2, make_primary=True)
        print(f"Scheduled {len(matches)} matches over {len(seasons.gamedays(conn, season.id))} gamedays")

        # 3. Play the first gameday
        lifecycle = MatchLifecycle()
        for match in seasons.matches_for_gameday(conn, season.id):
            match = lifecycle.update_match(conn, match.id, referee_id=referee.id, venue=f"{match.home_sheet.name} ground")
            for side, team_id in (("home", match.home_team_id), ("away", match.away_team_id)):
                for player in squads[team_id][:11]:
                    lifecycle.add_player(conn, match.id, side, player.id)
            lifecycle.start_game(conn, match.id)
            for _ in range(rng.randint(0, 5)):
                side = rng.choice(["home", "away"])
                team_id = match.home_team_id if side == "home" else match.away_team_id
                scorer = rng.choice(squads[team_id][:11])
                lifecycle.record_goal(conn, match.id, scorer.id, side, rng.randint(1, 90))
            booked = rng.choice(squads[match.away_team_id][:11])
            lifecycle.record_card(conn, match.id, booked.id, match.away_team_id, rng.randint(1, 90), "yellow_card")
            lifecycle.end_first_half(conn, match.id)
            lifecycle.start_second_half(conn, match.id)
            lifecycle.end_game(conn, match.id)
            played = lifecycle.submit(conn, match.id, "")
            print(f"  Gameday {played.gameday}: {played.home_sheet.name} {played.home_score}-{played.away_score} {played.away_sheet.name}")
        seasons.complete_gameday(conn, season.id)

        # 4. Table and scorers
        print("\nStandings:")
        for row in StandingsCalculator().compute_standings(conn, league.id):
            print(f"  {row.rank}. {row.team_name:<20} {row.played} {row.goals_for}:{row.goals_against} {row.points}")
        print("\nTop scorers:")
        for entry in LeaderboardAggregator().top_scorers(conn, limit=5):
            print(f"  {entry.name:<20} {entry.team_name or '-':<20} {entry.count}")

        print("\nDemo season complete.")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
