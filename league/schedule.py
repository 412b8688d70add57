from .errors import InsufficientParticipants, InvalidInput
from .state import Fixture, MODES, ScheduleState

BYE = -1


def rounds_for(n_players: int, mode: str = 'single') -> int:
    # Classic round robin: even n -> n-1 rounds, odd n -> n rounds (one bye each)
    if n_players < 2:
        return 0
    single = n_players - 1 if n_players % 2 == 0 else n_players
    return single * 2 if mode == 'double' else single


def _rotate(circle):
    # first slot stays fixed, last of the rest moves to the front of the rest
    rest = circle[1:]
    return [circle[0]] + rest[-1:] + rest[:-1]


def circle_pairings(indices):
    """Yield the pairings of each circle-method round over ``indices``.

    Pairings that involve the bye slot are left out, so an odd list yields
    rounds one pairing short of ``len(indices) // 2 + 1``.
    """
    circle = list(indices)
    if len(circle) % 2 == 1:
        circle.append(BYE)
    total = len(circle)
    half = total // 2
    for _ in range(total - 1):
        pairs = []
        for i in range(half):
            a = circle[i]
            b = circle[total - 1 - i]
            if a == BYE or b == BYE:
                continue
            pairs.append((a, b))
        yield pairs
        circle = _rotate(circle)


def generate_for_indices(indices):
    """Single round robin over an arbitrary list of participant indices."""
    if len(indices) < 2:
        raise InsufficientParticipants(
            f"need at least 2 participants, got {len(indices)}")
    fixtures = []
    rounds = []
    for pairs in circle_pairings(indices):
        round_idxs = []
        for a, b in pairs:
            round_idxs.append(len(fixtures))
            fixtures.append(Fixture(a=a, b=b))
        if round_idxs:
            rounds.append(round_idxs)
    return fixtures, rounds


def _mirror_leg(fixtures, rounds):
    second_rounds = []
    mirrored = list(fixtures)
    for leg in rounds:
        round_idxs = []
        for idx in leg:
            first = fixtures[idx]
            round_idxs.append(len(mirrored))
            mirrored.append(Fixture(a=first.b, b=first.a))
        second_rounds.append(round_idxs)
    return mirrored, rounds + second_rounds


def generate(participants, mode='single'):
    """Build the fixture list and round partition for ``participants``.

    Returns ``(fixtures, rounds)`` where each round is a list of indices into
    ``fixtures``. In ``double`` mode the first leg is followed by a mirrored
    second leg with home and away swapped.
    """
    if mode not in MODES:
        raise InvalidInput(f"unknown mode {mode!r}")
    fixtures, rounds = generate_for_indices(list(range(len(participants))))
    if mode == 'double':
        fixtures, rounds = _mirror_leg(fixtures, rounds)
    return fixtures, rounds


def initial_state(participants, mode='single', tiebreaker_enabled=False) -> ScheduleState:
    fixtures, rounds = generate(participants, mode)
    return ScheduleState(
        participants=tuple(participants),
        fixtures=tuple(fixtures),
        rounds=tuple(tuple(r) for r in rounds),
        mode=mode,
        started=True,
        current_round=0,
        tiebreaker_enabled=tiebreaker_enabled,
    )
