from league.app import db
from league.models import SiteLog, TournamentLog


def start(client, catalog, names=('Ana', 'Bruno', 'Carla', 'Zoe'), mode='single'):
    participants = [
        {'id': catalog[n].id, 'name': n, 'color': catalog[n].background_color} for n in names
    ]
    return client.post('/api/tournaments', json={
        'name': 'Liga de los martes',
        'participants': participants,
        'mode': mode,
    })


def test_mutations_require_login(client, catalog):
    resp = start(client, catalog)
    assert resp.status_code == 401
    assert resp.get_json()['error'] == 'unauthorized'
    assert client.post('/api/tournaments/1/advance').status_code == 401


def test_bad_login(client):
    resp = client.post('/api/login', json={'email': 'admin@example.com', 'password': 'nope'})
    assert resp.status_code == 401
    assert db.session.query(SiteLog).filter_by(action='login', result='failure').count() == 1


def test_start_and_read(auth_client, catalog):
    resp = start(auth_client, catalog)
    assert resp.status_code == 201
    tournament = resp.get_json()['tournament']
    assert tournament['state']['currentRound'] == 0
    assert len(tournament['state']['fixtures']) == 6

    active = auth_client.get('/api/tournaments/active').get_json()['tournament']
    assert active['id'] == tournament['id']
    fetched = auth_client.get(f"/api/tournaments/{tournament['id']}").get_json()['tournament']
    assert fetched['state'] == tournament['state']

    listing = auth_client.get('/api/tournaments').get_json()['tournaments']
    assert listing[0]['plannedMatches'] == 6
    assert listing[0]['playedMatches'] == 0


def test_default_mode_is_double(auth_client, catalog):
    resp = auth_client.post('/api/tournaments', json={
        'name': 'Liga',
        'participants': [{'id': None, 'name': 'Uno'}, {'id': None, 'name': 'Dos'}],
    })
    state = resp.get_json()['tournament']['state']
    assert state['mode'] == 'double'
    assert len(state['rounds']) == 2
    assert all(p['color'].startswith('#') for p in state['participants'])


def test_error_kinds_are_reported(auth_client, catalog):
    resp = auth_client.post('/api/tournaments', json={
        'name': 'Liga', 'participants': [{'id': None, 'name': 'Solo'}]})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'insufficient_participants'

    resp = auth_client.post('/api/tournaments', json={
        'name': 'Liga', 'participants': [{'id': None, 'name': 'Uno'}, {'id': None, 'name': 'Dos'}],
        'tiebreakerEnabled': 'false'})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'invalid_input'

    tid = start(auth_client, catalog).get_json()['tournament']['id']
    resp = auth_client.post(f'/api/tournaments/{tid}/advance')
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'round_incomplete'

    resp = auth_client.post(f'/api/tournaments/{tid}/fixtures/40/played', json={'matchId': 1})
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'invalid_fixture_index'

    resp = auth_client.get('/api/tournaments/999/standings')
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'tournament_not_found'

    logged = db.session.query(TournamentLog).filter_by(tournament_id=tid, result='failure').all()
    assert {log.error for log in logged} == {'round_incomplete', 'invalid_fixture_index'}


def test_full_round_flow(auth_client, catalog):
    tid = start(auth_client, catalog).get_json()['tournament']['id']
    state = auth_client.get(f'/api/tournaments/{tid}').get_json()['tournament']['state']
    for idx in state['rounds'][0]:
        resp = auth_client.post(f'/api/tournaments/{tid}/fixtures/{idx}/play', json={'winner': 'a'})
        assert resp.status_code == 200
        assert resp.get_json()['state']['fixtures'][idx]['played'] is True

    resp = auth_client.post(f'/api/tournaments/{tid}/advance')
    assert resp.get_json() == {'ok': True, 'currentRound': 1}

    standings = auth_client.get(f'/api/tournaments/{tid}/standings').get_json()['standings']
    assert len(standings) == 4
    assert [r['points'] for r in standings] == [3, 3, 0, 0]
    assert all(r['played'] == 1 for r in standings)

    results = auth_client.get(f'/api/tournaments/{tid}/results').get_json()['results']
    assert len(results) == 2

    assert auth_client.post(f'/api/tournaments/{tid}/finish').get_json() == {'ok': True}
    resp = auth_client.post(f'/api/tournaments/{tid}/fixtures/2/play', json={'winner': 'a'})
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'tournament_finished'
    assert auth_client.get('/api/tournaments/active').get_json()['tournament'] is None


def test_record_match_then_mark_fixture(auth_client, catalog):
    tid = start(auth_client, catalog, names=('Ana', 'Bruno'), mode='double').get_json()['tournament']['id']
    resp = auth_client.post('/api/matches', json={
        'tournamentId': tid,
        'players': [
            {'id': catalog['Ana'].id, 'placement': 2},
            {'id': catalog['Bruno'].id, 'placement': 1},
        ],
    })
    assert resp.status_code == 201
    match_id = resp.get_json()['matchId']

    resp = auth_client.post(f'/api/tournaments/{tid}/fixtures/0/played', json={'matchId': match_id})
    fixture = resp.get_json()['state']['fixtures'][0]
    assert fixture == {'a': 0, 'b': 1, 'played': True, 'matchId': match_id}

    resp = auth_client.post(f'/api/tournaments/{tid}/fixtures/0/played', json={'matchId': 'x'})
    assert resp.status_code == 400


def test_logout(auth_client, catalog):
    assert auth_client.post('/api/logout').get_json() == {'ok': True}
    assert start(auth_client, catalog).status_code == 401
