"""Serializable schedule state for a round-robin tournament.

The state is stored as a JSON blob on the tournament row. Everything in this
module is pure: operations return a new state and never touch the original.
Loading re-validates the blob on every read and rejects anything that does
not match the expected shape with :class:`InvalidState`.
"""
import json
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from .errors import (
    AlreadyAtFinalRound,
    InvalidFixtureIndex,
    InvalidState,
    RoundIncomplete,
)

MODES = ('single', 'double')


@dataclass(frozen=True)
class Participant:
    name: str
    color: str
    id: Optional[int] = None

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'color': self.color}


@dataclass(frozen=True)
class Fixture:
    a: int
    b: int
    played: bool = False
    match_id: Optional[int] = None

    def to_dict(self):
        d = {'a': self.a, 'b': self.b, 'played': self.played}
        if self.match_id is not None:
            d['matchId'] = self.match_id
        return d


@dataclass(frozen=True)
class ScheduleState:
    participants: Tuple[Participant, ...]
    fixtures: Tuple[Fixture, ...]
    rounds: Tuple[Tuple[int, ...], ...]
    mode: str = 'double'
    started: bool = True
    current_round: int = 0
    tiebreaker_enabled: bool = False

    @property
    def is_final_round(self) -> bool:
        return self.current_round >= len(self.rounds) - 1

    def round_fixtures(self, number=None):
        """Fixture indices of round ``number`` (defaults to the current round)."""
        if number is None:
            number = self.current_round
        if number < 0 or number >= len(self.rounds):
            return ()
        return self.rounds[number]

    def pending_fixtures(self):
        return [idx for idx in self.round_fixtures() if not self.fixtures[idx].played]

    def to_dict(self):
        return {
            'participants': [p.to_dict() for p in self.participants],
            'started': self.started,
            'fixtures': [f.to_dict() for f in self.fixtures],
            'rounds': [list(r) for r in self.rounds],
            'currentRound': self.current_round,
            'mode': self.mode,
            'tiebreakerEnabled': self.tiebreaker_enabled,
        }


def dump_state(state: ScheduleState) -> str:
    return json.dumps(state.to_dict())


# --- validation ---

def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _check(condition, message):
    if not condition:
        raise InvalidState(message)


def _field(raw, key, kind):
    _check(key in raw, f"missing field {key!r}")
    value = raw[key]
    if kind is int:
        _check(_is_int(value), f"{key!r} must be an integer")
    else:
        _check(isinstance(value, kind), f"{key!r} must be {kind.__name__}")
    return value


def _load_participant(raw, pos):
    _check(isinstance(raw, dict), f"participant {pos} must be an object")
    name = _field(raw, 'name', str)
    _check(name.strip() != '', f"participant {pos} has an empty name")
    color = _field(raw, 'color', str)
    _check('id' in raw, f"participant {pos} is missing 'id'")
    pid = raw['id']
    _check(pid is None or (_is_int(pid) and pid > 0),
           f"participant {pos} id must be a positive integer or null")
    return Participant(name=name, color=color, id=pid)


def _load_fixture(raw, pos, n_participants):
    _check(isinstance(raw, dict), f"fixture {pos} must be an object")
    a = _field(raw, 'a', int)
    b = _field(raw, 'b', int)
    played = _field(raw, 'played', bool)
    _check(a != b, f"fixture {pos} pairs participant {a} with itself")
    for idx in (a, b):
        _check(0 <= idx < n_participants,
               f"fixture {pos} references participant {idx} out of range")
    match_id = raw.get('matchId')
    _check(match_id is None or (_is_int(match_id) and match_id > 0),
           f"fixture {pos} matchId must be a positive integer or null")
    return Fixture(a=a, b=b, played=played, match_id=match_id)


def load_state(raw) -> ScheduleState:
    """Parse and validate a stored schedule state (JSON text or dict)."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise InvalidState(f"state is not valid JSON: {exc}") from exc
    _check(isinstance(raw, dict), "state must be a JSON object")

    participants = tuple(
        _load_participant(p, i) for i, p in enumerate(_field(raw, 'participants', list)))
    fixtures = tuple(
        _load_fixture(f, i, len(participants))
        for i, f in enumerate(_field(raw, 'fixtures', list)))

    rounds = []
    for i, rnd in enumerate(_field(raw, 'rounds', list)):
        _check(isinstance(rnd, list), f"round {i} must be a list")
        for idx in rnd:
            _check(_is_int(idx) and 0 <= idx < len(fixtures),
                   f"round {i} references fixture {idx!r} out of range")
        rounds.append(tuple(rnd))

    current = _field(raw, 'currentRound', int)
    _check(current >= 0, "currentRound must not be negative")
    _check(current < len(rounds) or (current == 0 and not rounds),
           f"currentRound {current} is past the last round")

    mode = _field(raw, 'mode', str)
    _check(mode in MODES, f"unknown mode {mode!r}")
    started = _field(raw, 'started', bool)
    tiebreaker = raw.get('tiebreakerEnabled', False)
    _check(isinstance(tiebreaker, bool), "'tiebreakerEnabled' must be bool")

    return ScheduleState(
        participants=participants,
        fixtures=fixtures,
        rounds=tuple(rounds),
        mode=mode,
        started=started,
        current_round=current,
        tiebreaker_enabled=tiebreaker,
    )


# --- mutations ---

def mark_played(state: ScheduleState, fixture_index, match_id=None) -> ScheduleState:
    """Flag a fixture as played, attaching the persisted match id.

    Marking an already played fixture again returns the state unchanged,
    except that a missing match id is filled in.
    """
    if not _is_int(fixture_index) or not 0 <= fixture_index < len(state.fixtures):
        raise InvalidFixtureIndex(
            f"fixture {fixture_index!r} out of range (0..{len(state.fixtures) - 1})")
    fixture = state.fixtures[fixture_index]
    if fixture.played and (match_id is None or fixture.match_id is not None):
        return state
    updated = replace(fixture, played=True,
                      match_id=match_id if match_id is not None else fixture.match_id)
    fixtures = state.fixtures[:fixture_index] + (updated,) + state.fixtures[fixture_index + 1:]
    return replace(state, fixtures=fixtures)


def advance_round(state: ScheduleState) -> ScheduleState:
    if not state.rounds or state.is_final_round:
        raise AlreadyAtFinalRound(
            f"round {state.current_round + 1} of {len(state.rounds)} is the last round")
    pending = state.pending_fixtures()
    if pending:
        raise RoundIncomplete(
            f"round {state.current_round + 1} has {len(pending)} pending fixture(s)")
    return replace(state, current_round=state.current_round + 1)
