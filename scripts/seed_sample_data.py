#!/usr/bin/env python
"""Populate the development database with a demo league."""
from __future__ import annotations

import argparse
import random
from typing import Sequence

from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from league.app import create_app, db
from league import models, services


def ensure_admin_user() -> models.User:
    admin = db.session.query(models.User).filter_by(email="admin@example.com").first()
    if admin is None:
        admin = models.User(
            email="admin@example.com",
            name="Admin User",
            is_admin=True,
        )
        admin.set_password("admin123")
        db.session.add(admin)
        db.session.commit()
    return admin


def ensure_players(details: Sequence[tuple[str, str]]) -> list[models.Player]:
    players: list[models.Player] = []
    for name, color in details:
        player = db.session.query(models.Player).filter_by(name=name).first()
        if player is None:
            player = models.Player(name=name, background_color=color)
            db.session.add(player)
        players.append(player)
    db.session.commit()
    return players


def play_rounds(tournament: models.Tournament, rounds_to_play: int) -> None:
    """Play every fixture of the first ``rounds_to_play`` rounds at random."""
    for _ in range(rounds_to_play):
        state = tournament.schedule_state()
        for idx in state.pending_fixtures():
            services.play_fixture(db.session, tournament.id, idx, random.choice("ab"))
        state = tournament.schedule_state()
        if state.is_final_round:
            break
        services.advance_tournament_round(db.session, tournament.id)


def build_sample_world(reset: bool = False, seed: int = 7) -> None:
    if reset:
        db.drop_all()
    db.create_all()
    random.seed(seed)
    ensure_admin_user()

    players = ensure_players([
        ("Lena Hart", "#e11d48"),
        ("Noah Kim", "#2563eb"),
        ("Eli Turner", "#16a34a"),
        ("Zara Brooks", "#9333ea"),
        ("Theo White", "#f59e0b"),
    ])

    if services.get_active_tournament(db.session) is not None:
        print("A league is already running, nothing to do.")
        return

    participants = [{"id": p.id, "name": p.name, "color": p.background_color} for p in players]
    participants.append({"id": None, "name": "Guest", "color": "#64748b"})
    tournament = services.start_tournament(db.session, "Commander League", participants, mode="double")
    play_rounds(tournament, 3)

    for row in services.get_standings(db.session, tournament.id):
        print(f"{row['name']:<12} {row['points']:>3} pts  {row['wins']}-{row['losses']}  {''.join(row['last'])}")
    print("Database populated with demo content.")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--reset", action="store_true", help="drop and recreate the database before loading data")
    parser.add_argument("--seed", type=int, default=7, help="random seed for match outcomes")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        build_sample_world(reset=args.reset, seed=args.seed)


if __name__ == "__main__":
    main()
