from ladder.auth_utils import generate_identity_token, get_identity_from_token


def _auth(display_name, identity_id=None):
    token = generate_identity_token(identity_id or display_name.lower().replace(' ', '-'), display_name)
    return {'Authorization': f'Bearer {token}'}


def _join(client, name, email=None):
    response = client.post('/api/ladder/join', json={'email': email} if email else {}, headers=_auth(name))
    assert response.status_code == 201, response.get_json()
    return response.get_json()['player']


def _setup_trio(client):
    return [
        _join(client, 'Player One', 'one@example.com'),
        _join(client, 'Player Two', 'two@example.com'),
        _join(client, 'Player Three', 'three@example.com'),
    ]


def _challenge(client, challenger_name, challenged_id):
    return client.post('/api/challenges', json={'challenged_id': challenged_id}, headers=_auth(challenger_name))


# ── Identity ──────────────────────────────────────────────────────────

def test_join_requires_identity(client):
    response = client.post('/api/ladder/join', json={})
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Authentication required'


def test_bad_and_expired_tokens_are_rejected(client):
    response = client.post('/api/ladder/join', json={}, headers={'Authorization': 'Bearer not-a-token'})
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Invalid token'

    expired = generate_identity_token('abc', 'Someone', expires_in_hours=-1)
    response = client.post('/api/ladder/join', json={}, headers={'Authorization': f'Bearer {expired}'})
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Token expired'


def test_identity_round_trip(app):
    token = generate_identity_token('id-42', 'Jo Squash')
    assert get_identity_from_token(f'Bearer {token}') == {'id': 'id-42', 'display_name': 'Jo Squash'}
    assert get_identity_from_token('') is None


# ── Ladder membership ─────────────────────────────────────────────────

def test_join_and_view_ladder(client):
    player = _join(client, 'Player One', 'one@example.com')
    assert player['position'] == 1
    assert player['email'] == 'one@example.com'

    data = client.get('/api/ladder').get_json()
    assert [p['name'] for p in data['players']] == ['Player One']
    assert data['summary']['total_players'] == 1
    assert data['summary']['current_leader'] == 'Player One'


def test_duplicate_join_is_conflict(client):
    _join(client, 'Player One')
    response = client.post('/api/ladder/join', json={}, headers=_auth('player one', 'other-id'))
    assert response.status_code == 409
    assert response.get_json()['code'] == 'duplicate_name'


def test_players_can_only_remove_themselves(client):
    one, two, three = _setup_trio(client)
    response = client.post(f'/api/ladder/players/{two["id"]}/deactivate', headers=_auth('Player One'))
    assert response.status_code == 403

    response = client.post(f'/api/ladder/players/{two["id"]}/deactivate', headers=_auth('Player Two'))
    assert response.status_code == 200
    assert response.get_json()['player']['is_active'] is False
    positions = {p['name']: p['position'] for p in client.get('/api/ladder').get_json()['players']}
    assert positions == {'Player One': 1, 'Player Three': 2}


def test_player_lookup_and_detail(client):
    one, two, three = _setup_trio(client)
    response = client.get('/api/players/lookup?name=player%20two')
    assert response.get_json()['player']['id'] == two['id']
    assert client.get('/api/players/lookup?name=nobody').status_code == 404

    detail = client.get(f'/api/players/{three["id"]}').get_json()
    assert detail['player']['position'] == 3
    assert detail['stats']['matches'] == 0
    assert detail['status']['status'] == 'available'
    assert client.get('/api/players/999').status_code == 404

    challengeable = client.get(f'/api/players/{three["id"]}/challengeable').get_json()['players']
    assert [p['id'] for p in challengeable] == [one['id'], two['id']]


# ── Challenge flow ────────────────────────────────────────────────────

def test_full_challenge_flow(client):
    one, two, three = _setup_trio(client)

    response = _challenge(client, 'Player Three', one['id'])
    assert response.status_code == 201
    challenge = response.get_json()['challenge']
    assert challenge['status'] == 'pending'
    assert challenge['email_notifications']['challenge_created'] is not None

    response = client.post(
        f'/api/challenges/{challenge["id"]}/respond',
        json={'decision': 'accepted'}, headers=_auth('Player One'),
    )
    assert response.status_code == 200
    assert response.get_json()['challenge']['status'] == 'accepted'

    response = client.post(
        f'/api/challenges/{challenge["id"]}/result',
        json={'games': [[11, 9], [11, 7], [9, 11], [11, 6]]},
        headers=_auth('Player Three'),
    )
    assert response.status_code == 201
    match = response.get_json()['match']
    assert match['match_score'] == '3-1'
    assert match['winner_id'] == three['id']
    assert match['positions_after'] == {'winner': 1, 'loser': 2}

    ladder = client.get('/api/ladder').get_json()
    assert [p['name'] for p in ladder['players']] == ['Player Three', 'Player One', 'Player Two']
    assert ladder['summary']['matches_played'] == 1

    matches = client.get('/api/matches?limit=5').get_json()['matches']
    assert [m['id'] for m in matches] == [match['id']]

    detail = client.get(f'/api/challenges/{challenge["id"]}').get_json()['challenge']
    assert detail['status'] == 'completed'


def test_challenge_errors_map_to_status_codes(client):
    one, two, three = _setup_trio(client)

    response = _challenge(client, 'Player One', three['id'])
    assert response.status_code == 400
    assert response.get_json()['code'] == 'invalid_direction'

    assert _challenge(client, 'Player Three', one['id']).status_code == 201
    response = _challenge(client, 'Player Two', one['id'])
    assert response.status_code == 409
    assert response.get_json()['code'] == 'player_busy'

    response = _challenge(client, 'Outsider', one['id'])
    assert response.status_code == 404
    assert response.get_json()['error'] == 'You need to join the ladder first'

    response = client.post(
        '/api/challenges', data='not json', content_type='application/json',
        headers=_auth('Player Two'),
    )
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Invalid JSON payload'

    response = client.post('/api/challenges', json={}, headers=_auth('Player Two'))
    assert response.status_code == 404


def test_only_challenged_player_can_respond(client):
    one, two, three = _setup_trio(client)
    challenge = _challenge(client, 'Player Three', one['id']).get_json()['challenge']

    response = client.post(
        f'/api/challenges/{challenge["id"]}/respond',
        json={'decision': 'accepted'}, headers=_auth('Player Two'),
    )
    assert response.status_code == 403
    assert response.get_json()['code'] == 'not_authorized'

    response = client.post(
        f'/api/challenges/{challenge["id"]}/respond',
        json={'decision': 'perhaps'}, headers=_auth('Player One'),
    )
    assert response.status_code == 400
    assert response.get_json()['code'] == 'invalid_decision'

    assert client.post(
        '/api/challenges/9999/respond', json={'decision': 'accepted'}, headers=_auth('Player One'),
    ).status_code == 404


def test_result_validation_errors(client):
    one, two, three = _setup_trio(client)
    challenge = _challenge(client, 'Player Three', one['id']).get_json()['challenge']
    url = f'/api/challenges/{challenge["id"]}/result'

    response = client.post(url, json={'is_walkover': True}, headers=_auth('Player Three'))
    assert response.status_code == 409
    assert response.get_json()['code'] == 'invalid_state'

    client.post(
        f'/api/challenges/{challenge["id"]}/respond',
        json={'decision': 'accepted'}, headers=_auth('Player One'),
    )

    response = client.post(url, json={'games': [[11, 11], [11, 7], [11, 6]]}, headers=_auth('Player Three'))
    assert response.status_code == 400
    assert response.get_json()['code'] == 'tied_game'

    response = client.post(url, json={'games': [[11, 10], [11, 7], [11, 6]]}, headers=_auth('Player Three'))
    assert response.get_json()['code'] == 'invalid_score'

    response = client.post(url, json={'notes': 'we played'}, headers=_auth('Player Three'))
    assert response.status_code == 400

    response = client.post(url, json={'is_walkover': True}, headers=_auth('Player Two'))
    assert response.status_code == 403

    response = client.post(url, json={'is_walkover': 'true'}, headers=_auth('Player One'))
    assert response.status_code == 201
    assert response.get_json()['match']['is_walkover'] is True


def test_list_challenges_by_status_and_player(client):
    one, two, three = _setup_trio(client)
    _challenge(client, 'Player Three', one['id'])

    pending = client.get('/api/challenges?status=pending').get_json()['challenges']
    assert len(pending) == 1
    assert client.get(f'/api/challenges?player_id={two["id"]}').get_json()['challenges'] == []
    assert client.get('/api/challenges?status=bogus').status_code == 409
    assert client.get('/api/challenges/777').status_code == 404
