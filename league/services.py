"""Tournament operations over a SQLAlchemy session.

The tournament row is the persisted record store for the schedule state and
the ``Match``/``MatchPlayer`` tables are the match-results store. Every state
write is a compare-and-set on ``Tournament.version`` so two callers racing on
the same read snapshot cannot both apply their change.
"""
import random

from sqlalchemy import func

from .errors import (
    ActiveTournamentExists,
    InvalidFixtureIndex,
    InvalidInput,
    StaleState,
    TournamentFinished,
    TournamentNotFound,
)
from .models import (
    DEFAULT_PLAYER_COLOR,
    Match,
    MatchPlayer,
    Player,
    Tournament,
)
from .schedule import initial_state
from .standings import compute_standings
from .state import MODES, Participant, advance_round, dump_state, mark_played


def random_hex_color():
    return '#{:06x}'.format(random.randint(0, 0xFFFFFF))


def _positive_int(value):
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def parse_participants(raw):
    if not isinstance(raw, (list, tuple)):
        raise InvalidInput("participants must be a list")
    participants = []
    seen = set()
    seen_ids = set()
    for pos, item in enumerate(raw):
        if isinstance(item, Participant):
            item = item.to_dict()
        if not isinstance(item, dict):
            raise InvalidInput(f"participant {pos} must be an object")
        name = item.get('name')
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput(f"participant {pos} needs a name")
        name = name.strip()
        if name.lower() in seen:
            raise InvalidInput(f"duplicate participant name {name!r}")
        seen.add(name.lower())
        pid = item.get('id')
        if pid is not None and not _positive_int(pid):
            raise InvalidInput(f"participant {pos} id must be a positive integer")
        if pid is not None:
            if pid in seen_ids:
                raise InvalidInput(f"player {pid} is entered twice")
            seen_ids.add(pid)
        color = item.get('color') or random_hex_color()
        if not isinstance(color, str):
            raise InvalidInput(f"participant {pos} color must be a string")
        participants.append(Participant(name=name, color=color, id=pid))
    return participants


# --- tournament record store ---

def get_tournament(session, tournament_id) -> Tournament:
    t = session.get(Tournament, tournament_id)
    if t is None:
        raise TournamentNotFound(f"tournament {tournament_id} not found")
    return t


def get_active_tournament(session):
    return (
        session.query(Tournament)
        .filter_by(finished=False)
        .order_by(Tournament.created_at.desc(), Tournament.id.desc())
        .first()
    )


def _compare_and_set(session, t: Tournament, state, expected_version: int):
    """Write ``state`` inside the current transaction, rolling it back if stale."""
    updated = (
        session.query(Tournament)
        .filter_by(id=t.id, version=expected_version)
        .update({'state': dump_state(state), 'version': expected_version + 1},
                synchronize_session=False)
    )
    if updated == 0:
        session.rollback()
        raise StaleState(f"tournament {t.id} was modified concurrently")


def save_state(session, t: Tournament, state, expected_version: int):
    _compare_and_set(session, t, state, expected_version)
    session.commit()
    return state


def _load_open(session, tournament_id):
    t = get_tournament(session, tournament_id)
    if t.finished:
        raise TournamentFinished(f"tournament {tournament_id} is finished")
    return t, t.schedule_state(), t.version


def serialize_tournament(t: Tournament):
    return {
        'id': t.id,
        'name': t.name,
        'finished': bool(t.finished),
        'createdAt': t.created_at.isoformat() if t.created_at else None,
        'version': t.version,
        'state': t.schedule_state().to_dict(),
    }


def list_tournaments(session):
    rows = (
        session.query(Tournament, func.count(Match.id))
        .outerjoin(Match, Match.tournament_id == Tournament.id)
        .group_by(Tournament.id)
        .order_by(Tournament.created_at.desc(), Tournament.id.desc())
        .all()
    )
    return [{
        'id': t.id,
        'name': t.name,
        'finished': bool(t.finished),
        'createdAt': t.created_at.isoformat() if t.created_at else None,
        'playedMatches': int(played or 0),
        'plannedMatches': t.planned_matches(),
    } for t, played in rows]


# --- boundary operations ---

def start_tournament(session, name, participants, mode='double', tiebreaker_enabled=False):
    if not isinstance(name, str) or not name.strip() or len(name.strip()) > 256:
        raise InvalidInput("tournament name must be 1-256 characters")
    if mode not in MODES:
        raise InvalidInput(f"unknown mode {mode!r}")
    if not isinstance(tiebreaker_enabled, bool):
        raise InvalidInput("tiebreakerEnabled must be true or false")
    active = get_active_tournament(session)
    if active is not None:
        raise ActiveTournamentExists(
            f"tournament {active.id} ({active.name}) is still running")
    entries = parse_participants(participants)
    for p in entries:
        if p.id is not None and session.get(Player, p.id) is None:
            raise InvalidInput(f"player {p.id} does not exist")
    state = initial_state(entries, mode, tiebreaker_enabled=tiebreaker_enabled)
    t = Tournament(name=name.strip(), state=dump_state(state), finished=False, version=1)
    session.add(t)
    session.commit()
    return t


def record_fixture_result(session, tournament_id, fixture_index, match_id=None):
    t, state, version = _load_open(session, tournament_id)
    new_state = mark_played(state, fixture_index, match_id)
    if new_state == state:
        return state
    return save_state(session, t, new_state, version)


def advance_tournament_round(session, tournament_id):
    t, state, version = _load_open(session, tournament_id)
    return save_state(session, t, advance_round(state), version)


def finish_tournament(session, tournament_id):
    t = get_tournament(session, tournament_id)
    if not t.finished:
        t.finished = True
        t.version = t.version + 1
        session.commit()
    return t


# --- match results store ---

def _resolve_player(session, entry, pos):
    pid = entry.get('id')
    if pid is not None:
        if not _positive_int(pid):
            raise InvalidInput(f"player {pos} id must be a positive integer")
        player = session.get(Player, pid)
        if player is None:
            raise InvalidInput(f"player {pid} does not exist")
        return player
    name = (entry.get('name') or '').strip()
    if not name:
        raise InvalidInput(f"player {pos} needs an id or a name")
    player = session.query(Player).filter_by(name=name).first()
    if player is None:
        player = Player(name=name, background_color=entry.get('color') or DEFAULT_PLAYER_COLOR)
        session.add(player)
        session.flush()
    return player


def _add_match(session, players, tournament_id=None, starting_hp=40):
    if not isinstance(players, (list, tuple)) or len(players) < 2:
        raise InvalidInput("a match needs at least two players")
    placements = [p.get('placement') if isinstance(p, dict) else None for p in players]
    if not all(_positive_int(p) for p in placements) or len(set(placements)) != len(placements):
        raise InvalidInput("placements must be distinct positive integers")
    if not _positive_int(starting_hp):
        raise InvalidInput("starting_hp must be a positive integer")
    if tournament_id is not None:
        if not _positive_int(tournament_id):
            raise InvalidInput("tournament id must be a positive integer")
        t = get_tournament(session, tournament_id)
        if t.finished:
            raise TournamentFinished(f"tournament {tournament_id} is finished")

    try:
        resolved = [_resolve_player(session, p, i) for i, p in enumerate(players)]
        if len({p.id for p in resolved}) != len(resolved):
            raise InvalidInput("a player cannot appear twice in one match")
    except InvalidInput:
        # drop catalog rows flushed for this match
        session.rollback()
        raise
    m = Match(starting_hp=starting_hp, tournament_id=tournament_id)
    session.add(m)
    for player, placement in zip(resolved, placements):
        m.placements.append(MatchPlayer(player=player, placement=placement))
    session.flush()
    return m


def record_match(session, players, tournament_id=None, starting_hp=40):
    """Persist a finished match with one placement per player."""
    m = _add_match(session, players, tournament_id=tournament_id, starting_hp=starting_hp)
    session.commit()
    return m


def play_fixture(session, tournament_id, fixture_index, winner):
    """Record the match for a scheduled fixture and flag the fixture played.

    ``winner`` is ``'a'`` or ``'b'``. A fixture that is already played is
    returned unchanged and no new match is stored. The match insert and the
    state write share one transaction, so a stale read stores neither.
    """
    if winner not in ('a', 'b'):
        raise InvalidInput("winner must be 'a' or 'b'")
    t, state, version = _load_open(session, tournament_id)
    if isinstance(fixture_index, bool) or not isinstance(fixture_index, int) \
            or not 0 <= fixture_index < len(state.fixtures):
        raise InvalidFixtureIndex(f"fixture {fixture_index!r} out of range")
    fixture = state.fixtures[fixture_index]
    if fixture.played:
        return None, state
    home = state.participants[fixture.a]
    away = state.participants[fixture.b]
    players = [
        {'id': home.id, 'name': home.name, 'color': home.color,
         'placement': 1 if winner == 'a' else 2},
        {'id': away.id, 'name': away.name, 'color': away.color,
         'placement': 1 if winner == 'b' else 2},
    ]
    m = _add_match(session, players, tournament_id=t.id)
    new_state = mark_played(state, fixture_index, m.id)
    _compare_and_set(session, t, new_state, version)
    session.commit()
    return m, new_state


def tournament_results(session, tournament_id):
    get_tournament(session, tournament_id)
    matches = (
        session.query(Match)
        .filter_by(tournament_id=tournament_id)
        .order_by(Match.created_at.asc(), Match.id.asc())
        .all()
    )
    results = []
    for m in matches:
        players = []
        for mp in sorted(m.placements, key=lambda r: r.placement):
            players.append(dict(mp.player.as_dict(), placement=mp.placement))
        results.append({
            'matchId': m.id,
            'createdAt': m.created_at.isoformat() if m.created_at else None,
            'players': players,
        })
    return results


def get_standings(session, tournament_id):
    return compute_standings(tournament_results(session, tournament_id))
