import unicodedata

WIN_POINTS = 3
FORM_LENGTH = 5


def _name_key(name):
    # accent and case insensitive first, raw name keeps the order total
    folded = unicodedata.normalize('NFKD', name)
    folded = ''.join(c for c in folded if not unicodedata.combining(c))
    return (folded.casefold(), name)


def _winner_and_loser(players):
    if len(players) != 2:
        return None, None
    winner = next((p for p in players if p.get('placement') == 1), None)
    if winner is None:
        return None, None
    loser = players[1] if players[0] is winner else players[0]
    return winner, loser


def compute_standings(completed_matches):
    """Rank participants from completed 1v1 matches.

    ``completed_matches`` is an iterable of ``{'matchId', 'players': [...]}``
    in the order they were played, each player being
    ``{'id', 'name', 'backgroundColor', 'placement'}``. Matches without
    exactly two players or without a winner are skipped.
    """
    table = {}
    for match in completed_matches:
        winner, loser = _winner_and_loser(match.get('players') or [])
        if winner is None:
            continue
        for p in (winner, loser):
            entry = table.get(p['id'])
            if entry is None:
                entry = table[p['id']] = {
                    'id': p['id'],
                    'name': p['name'],
                    'color': p.get('backgroundColor'),
                    'points': 0,
                    'wins': 0,
                    'played': 0,
                    'last': [],
                }
            entry['played'] += 1
            if p is winner:
                entry['wins'] += 1
                entry['points'] += WIN_POINTS
                entry['last'].insert(0, 'W')
            else:
                entry['last'].insert(0, 'L')
            del entry['last'][FORM_LENGTH:]

    rows = []
    for entry in table.values():
        rows.append(dict(entry, losses=entry['played'] - entry['wins']))
    rows.sort(key=lambda r: (-r['points'], -r['wins'], _name_key(r['name'])))
    return rows
