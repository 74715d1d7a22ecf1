def create_match(client, **setup):
    res = client.post('/api/matches/create', json={'match_setup': setup})
    assert res.status_code == 201
    return res.get_json()


def test_create_match_as_guest_uses_config_defaults(client):
    match = create_match(client, title='Semis <script>', player_names=['A', 'B', 'C', 'D'])
    assert match['status'] == 'active'
    assert match['host_id'] is None
    assert match['match_setup']['title'] == 'Semis script'
    assert match['match_setup']['game_score_limit'] == 11
    assert match['match_setup']['sink_points'] == 3
    assert match['match_setup']['win_by_two'] is True
    assert match['player_stats']['1']['name'] == 'A'
    assert match['team_scores'] == {'1': 0, '2': 0}
    assert match['game_state'] == 'standard'


def test_create_match_rejects_bad_setup(client):
    res = client.post('/api/matches/create', json={'match_setup': {'game_score_limit': 0}})
    assert res.status_code == 400
    assert 'error' in res.get_json()


def test_signed_in_host_is_recorded(login_client):
    host, user = login_client('hosty')
    match = create_match(host)
    assert match['host_id'] == user.id
    assert match['participants'] == [user.id]


def test_state_for_unknown_room_is_404(client):
    res = client.get('/api/matches/NOPE00/state')
    assert res.status_code == 404


def test_play_flow_and_scoreboard(client):
    code = create_match(client)['room_code']
    res = client.post(f'/api/matches/{code}/plays', json={
        'throwing_player': 1, 'throw_result': 'goal',
        'defending_player': 3, 'defense_result': 'drop',
    })
    assert res.status_code == 200
    state = res.get_json()
    assert state['player_stats']['1']['score'] == 2
    assert state['player_stats']['3']['blunders'] == 1
    assert state['team_scores'] == {'1': 2, '2': 0}
    assert state['notice'] is None


def test_incomplete_play_returns_400_and_changes_nothing(client):
    created = create_match(client)
    code = created['room_code']
    res = client.post(f'/api/matches/{code}/plays', json={'throwing_player': 1})
    assert res.status_code == 400
    state = client.get(f'/api/matches/{code}/state').get_json()
    assert state['version'] == created['version']


def test_self_sink_returns_notice(client):
    code = create_match(client, player_names=['Ann', 'Ben', 'Cat', 'Dov'])['room_code']
    res = client.post(f'/api/matches/{code}/plays', json={'throwing_player': 2, 'throw_result': 'selfSink'})
    body = res.get_json()
    assert res.status_code == 200
    assert 'Ben must run a naked lap' in body['notice']
    assert body['player_stats']['2']['throws'] == 0


def test_stale_expected_version_is_409(client):
    created = create_match(client)
    code = created['room_code']
    client.post(f'/api/matches/{code}/plays', json={'throwing_player': 1, 'throw_result': 'hit'})
    res = client.post(f'/api/matches/{code}/plays', json={
        'throwing_player': 1, 'throw_result': 'hit', 'expected_version': created['version'],
    })
    assert res.status_code == 409


def test_join_requires_login(client):
    code = create_match(client)['room_code']
    res = client.post(f'/api/matches/{code}/join', json={'player_slot': 1})
    assert res.status_code == 401


def test_join_conflicts(client, login_client):
    code = create_match(client)['room_code']
    alice, _ = login_client('alice', nickname='Ally')
    bob, _ = login_client('bob')
    res = alice.post(f'/api/matches/{code}/join', json={'player_slot': 1})
    assert res.status_code == 200
    assert res.get_json()['match_setup']['player_names'][0] == 'Ally'
    # rejoining the same slot is fine
    assert alice.post(f'/api/matches/{code}/join', json={'player_slot': 1}).status_code == 200
    assert bob.post(f'/api/matches/{code}/join', json={'player_slot': 1}).status_code == 409
    assert alice.post(f'/api/matches/{code}/join', json={'player_slot': 4}).status_code == 409
    res = bob.post(f'/api/matches/{code}/join', json={'player_slot': 4})
    assert res.get_json()['match_setup']['player_names'][3] == 'bob'


def test_sync_overwrites_full_state(client):
    created = create_match(client)
    code = created['room_code']
    stats = created['player_stats']
    stats['2']['score'] = 4
    res = client.put(f'/api/matches/{code}/sync', json={
        'player_stats': stats,
        'team_penalties': {'1': 1, '2': 0},
        'expected_version': created['version'],
    })
    assert res.status_code == 200
    assert res.get_json()['team_scores'] == {'1': 3, '2': 0}


def test_finish_save_and_history(client, login_client):
    code = create_match(client)['room_code']
    alice, user = login_client('alice')
    alice.post(f'/api/matches/{code}/join', json={'player_slot': 3})
    client.post(f'/api/matches/{code}/plays', json={'throwing_player': 3, 'throw_result': 'dink'})

    finished = client.post(f'/api/matches/{code}/finish').get_json()
    assert finished['status'] == 'finished'
    assert finished['winner_team'] == 2

    rejected = client.post(f'/api/matches/{code}/plays', json={'throwing_player': 3, 'throw_result': 'dink'})
    assert rejected.status_code == 400

    # the guest scorekeeper saves to alice's profile
    saved = client.post(f'/api/matches/{code}/save')
    assert saved.status_code == 201
    body = saved.get_json()
    assert body['user_id'] == user.id
    assert body['saved_as_guest'] is True
    assert client.get(f'/api/matches/{code}/state').status_code == 404

    history = alice.get('/api/history/').get_json()
    assert [m['id'] for m in history] == [body['id']]
    assert alice.get(f"/api/history/{body['id']}").get_json()['winner_team'] == 2


def test_guest_save_with_nobody_signed_in_is_401(client):
    code = create_match(client)['room_code']
    res = client.post(f'/api/matches/{code}/save')
    assert res.status_code == 401


def test_history_requires_login(client):
    assert client.get('/api/history/').status_code == 401


def test_delete_match(client):
    code = create_match(client)['room_code']
    assert client.delete(f'/api/matches/{code}').status_code == 200
    assert client.get(f'/api/matches/{code}/state').status_code == 404


def test_ratings(client):
    code = create_match(client)['room_code']
    client.post(f'/api/matches/{code}/plays', json={'throwing_player': 1, 'throw_result': 'hit'})
    ratings = client.get(f'/api/matches/{code}/ratings').get_json()
    assert set(ratings) == {'1', '2', '3', '4'}
    assert 'Isaac Newton' in ratings['1']['awards']
    assert 'LeKing' in ratings['1']['awards']
    assert ratings['2']['rating'] == 0


def test_register_login_and_profile(client):
    res = client.post('/register', json={'username': 'neo', 'password': 'pw', 'nickname': 'The One'})
    assert res.status_code == 201
    assert client.get('/check_login').get_json()['user']['nickname'] == 'The One'
    res = client.put('/profile', json={'nickname': 'Mr Anderson'})
    assert res.get_json()['user']['nickname'] == 'Mr Anderson'
    client.post('/logout')
    assert client.get('/check_login').status_code == 401
    assert client.post('/login', json={'username': 'neo', 'password': 'bad'}).status_code == 401


def test_create_match_reads_win_by_two_strings(client):
    match = create_match(client, win_by_two='false')
    assert match['match_setup']['win_by_two'] is False
    match = create_match(client, win_by_two='1')
    assert match['match_setup']['win_by_two'] is True


def test_sync_with_malformed_stats_is_400_and_match_stays_usable(client):
    created = create_match(client)
    code = created['room_code']
    stats = created['player_stats']
    for row in stats.values():
        row['score'] = 'lots'
    res = client.put(f'/api/matches/{code}/sync', json={'player_stats': stats, 'team_penalties': {'1': 0, '2': 0}})
    assert res.status_code == 400
    assert 'error' in res.get_json()

    state = client.get(f'/api/matches/{code}/state')
    assert state.status_code == 200
    assert state.get_json()['version'] == created['version']
    res = client.post(f'/api/matches/{code}/plays', json={'throwing_player': 1, 'throw_result': 'hit'})
    assert res.status_code == 200
    assert client.get(f'/api/matches/{code}/ratings').status_code == 200


def test_sync_with_unreadable_penalty_or_version_is_400(client):
    created = create_match(client)
    code = created['room_code']
    res = client.put(f'/api/matches/{code}/sync', json={
        'player_stats': created['player_stats'], 'team_penalties': {'1': 'x', '2': 0},
    })
    assert res.status_code == 400
    res = client.put(f'/api/matches/{code}/sync', json={
        'player_stats': created['player_stats'], 'team_penalties': {'1': 0, '2': 0},
        'expected_version': 'latest',
    })
    assert res.status_code == 400


def test_play_while_another_is_recording_is_409(flask_app, client):
    from dietracker.services.matches import session

    code = create_match(client)['room_code']
    with flask_app.app_context():
        replica = session.replica_for(session.get_match(code))
    replica.begin_submit()
    res = client.post(f'/api/matches/{code}/plays', json={'throwing_player': 1, 'throw_result': 'hit'})
    assert res.status_code == 409
    replica.end_submit()
    res = client.post(f'/api/matches/{code}/plays', json={'throwing_player': 1, 'throw_result': 'hit'})
    assert res.status_code == 200
    assert res.get_json()['player_stats']['1']['hits'] == 1
