def _events(sio_client, name):
    return [pkt for pkt in sio_client.get_received('/ws') if pkt['name'] == name]


def _joined(sio_client, game_id):
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    sio_client.get_received('/ws')  # flush
    sio_client.emit('join_game', {'game_id': game_id}, namespace='/ws')
    return sio_client.get_received('/ws')


def test_socket_connect_and_join(sio_client, new_game):
    game = new_game()
    received = _joined(sio_client, game['id'])
    names = [pkt['name'] for pkt in received]
    assert 'joined' in names
    state = [pkt for pkt in received if pkt['name'] == 'state_update'][0]['args'][0]
    assert state['id'] == game['id']
    assert state['undo']['available'] is False


def test_join_unknown_game_errors(sio_client):
    received = _joined(sio_client, 404)
    assert any(pkt['name'] == 'error' for pkt in received)


def test_join_requires_game_id(sio_client):
    sio_client.emit('join_game', {}, namespace='/ws')
    errors = _events(sio_client, 'error')
    assert errors and errors[0]['args'][0]['message'] == 'game_id is required'


def test_ping_pong(sio_client):
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    pongs = _events(sio_client, 'pong')
    assert pongs[0]['args'][0] == {'n': 1}


def test_hit_broadcasts_state_and_celebration(client, sio_client, new_game):
    game = new_game()
    _joined(sio_client, game['id'])
    client.post(f"/api/games/{game['id']}/hit")
    received = sio_client.get_received('/ws')
    states = [pkt['args'][0] for pkt in received if pkt['name'] == 'state_update']
    ui = [pkt['args'][0] for pkt in received if pkt['name'] == 'ui_event']
    assert states[-1]['team1']['score'] == 1
    assert ui[0]['type'] == 'hit_celebration'
    assert ui[0]['data'] == {'drinking_player': 'Cara'}
    assert ui[0]['game_id'] == game['id']


def test_ui_event_ids_increase(client, sio_client, new_game):
    game = new_game()
    _joined(sio_client, game['id'])
    client.post(f"/api/games/{game['id']}/hit")
    client.post(f"/api/games/{game['id']}/miss")
    ids = [pkt['args'][0]['event_id'] for pkt in sio_client.get_received('/ws') if pkt['name'] == 'ui_event']
    assert len(ids) == 2
    assert ids[0] < ids[1]


def test_left_room_stops_updates(client, sio_client, new_game):
    game = new_game()
    _joined(sio_client, game['id'])
    sio_client.emit('leave_game', {'game_id': game['id']}, namespace='/ws')
    sio_client.get_received('/ws')
    client.post(f"/api/games/{game['id']}/hit")
    assert _events(sio_client, 'state_update') == []


def test_client_published_ui_event_is_relayed(flask_app, sio_client, new_game):
    from cupgame import socketio

    game = new_game()
    _joined(sio_client, game['id'])
    other = socketio.test_client(flask_app, namespace='/ws')
    other.emit('publish_ui_event', {'game_id': game['id'], 'type': 'turn_banner', 'data': {'player': 'Bob'}},
               namespace='/ws')
    ui = [pkt['args'][0] for pkt in sio_client.get_received('/ws') if pkt['name'] == 'ui_event']
    assert ui and ui[0]['type'] == 'turn_banner'
    assert ui[0]['data'] == {'player': 'Bob'}
    other.disconnect(namespace='/ws')


def test_overlay_pauses_and_resumes_undo(client, sio_client, new_game):
    game = new_game()
    _joined(sio_client, game['id'])
    client.post(f"/api/games/{game['id']}/hit")
    sio_client.get_received('/ws')

    sio_client.emit('overlay_opened', {'game_id': game['id']}, namespace='/ws')
    state = _events(sio_client, 'undo_state')[0]['args'][0]
    assert state['paused'] is True
    assert state['available'] is True

    sio_client.emit('overlay_closed', {'game_id': game['id']}, namespace='/ws')
    state = _events(sio_client, 'undo_state')[0]['args'][0]
    assert state['paused'] is False


def test_join_heals_over_cap_score(sio_client, new_game):
    from cupgame import db
    from cupgame.models import Game

    game = new_game()
    row = db.session.get(Game, game['id'])
    row.team2_score = 9
    db.session.commit()

    received = _joined(sio_client, game['id'])
    state = [pkt for pkt in received if pkt['name'] == 'state_update'][-1]['args'][0]
    assert state['status'] == 'completed'
    assert state['winner'] == 2
    assert state['team2']['score'] == 6


def test_overlay_on_finished_game_reports_no_undo(flask_app, client, sio_client, new_game):
    game = new_game()
    client.post(f"/api/games/{game['id']}/complete", json={'winner': 1})
    _joined(sio_client, game['id'])

    sio_client.emit('overlay_opened', {'game_id': game['id']}, namespace='/ws')
    state = _events(sio_client, 'undo_state')[0]['args'][0]
    assert state['available'] is False
    assert game['id'] not in flask_app.extensions['cupgame_undo']
