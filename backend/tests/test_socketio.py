def _connected(sio_client):
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')
    # Flush the connect greeting
    sio_client.get_received('/ws')
    return sio_client


def _events(sio_client, name):
    return [pkt['args'][0] for pkt in sio_client.get_received('/ws') if pkt['name'] == name]


def test_socket_connect_greets(flask_app):
    from dietracker import socketio as _sio
    fresh = _sio.test_client(flask_app, namespace='/ws')
    received = fresh.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)
    fresh.disconnect(namespace='/ws')


def test_join_match_sends_current_state(sio_client, client):
    code = client.post('/api/matches/create').get_json()['room_code']
    _connected(sio_client)

    sio_client.emit('join_match', {'room_code': code.lower()}, namespace='/ws')
    received = sio_client.get_received('/ws')
    names = [pkt['name'] for pkt in received]
    assert 'joined' in names
    update = next(pkt['args'][0] for pkt in received if pkt['name'] == 'match_update')
    assert update['room_code'] == code
    assert update['status'] == 'active'


def test_join_unknown_match_reports_error(sio_client):
    _connected(sio_client)
    sio_client.emit('join_match', {'room_code': 'NOPE00'}, namespace='/ws')
    errors = _events(sio_client, 'error')
    assert errors and 'not found' in errors[0]['message']


def test_plays_are_pushed_to_the_room(sio_client, client):
    code = client.post('/api/matches/create').get_json()['room_code']
    _connected(sio_client)
    sio_client.emit('join_match', {'room_code': code}, namespace='/ws')
    sio_client.get_received('/ws')

    client.post(f'/api/matches/{code}/plays', json={'throwing_player': 2, 'throw_result': 'sink'})
    updates = _events(sio_client, 'match_update')
    assert updates[-1]['player_stats']['2']['score'] == 3


def test_self_sink_is_announced_without_state_change(sio_client, client):
    code = client.post('/api/matches/create').get_json()['room_code']
    _connected(sio_client)
    sio_client.emit('join_match', {'room_code': code}, namespace='/ws')
    sio_client.get_received('/ws')

    client.post(f'/api/matches/{code}/plays', json={'throwing_player': 4, 'throw_result': 'self_sink'})
    received = sio_client.get_received('/ws')
    assert not any(pkt['name'] == 'match_update' for pkt in received)
    notices = [pkt['args'][0] for pkt in received if pkt['name'] == 'self_sink']
    assert 'Player4' in notices[0]['message']


def test_left_room_gets_no_updates(sio_client, client):
    code = client.post('/api/matches/create').get_json()['room_code']
    _connected(sio_client)
    sio_client.emit('join_match', {'room_code': code}, namespace='/ws')
    sio_client.emit('leave_match', {'room_code': code}, namespace='/ws')
    assert _events(sio_client, 'left')

    client.post(f'/api/matches/{code}/plays', json={'throwing_player': 1, 'throw_result': 'hit'})
    assert _events(sio_client, 'match_update') == []


def test_finish_and_delete_end_the_session(sio_client, client):
    code = client.post('/api/matches/create').get_json()['room_code']
    _connected(sio_client)
    sio_client.emit('join_match', {'room_code': code}, namespace='/ws')
    sio_client.get_received('/ws')

    client.post(f'/api/matches/{code}/finish')
    finished = _events(sio_client, 'match_finished')
    assert finished and finished[0]['winner_team'] is None

    client.delete(f'/api/matches/{code}')
    ended = _events(sio_client, 'session_ended')
    assert ended and ended[0]['room_code'] == code


def test_ping_pong(sio_client):
    _connected(sio_client)
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    assert _events(sio_client, 'pong') == [{'n': 1}]
