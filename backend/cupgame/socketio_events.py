from flask_socketio import join_room, leave_room, emit
from cupgame import socketio
from flask import current_app, request
from typing import Dict, Set

from cupgame.services.games import broadcast
from cupgame.errors import GameNotFound
from cupgame.services.games.session import GameSession, undo_windows

NAMESPACE = broadcast.NAMESPACE

# Rooms each connected socket has joined
_sid_to_games: Dict[str, Set[int]] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore


def _game_id(data):
    raw = (data or {}).get('game_id')
    try:
        return int(raw)
    except (TypeError, ValueError):
        emit('error', {'message': 'game_id is required'})
        return None


def _open_window(game_id):
    windows = undo_windows()
    # Games without a tracked window have nothing to undo
    return windows.get(game_id) if game_id in windows else windows.detached()


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    games = _sid_to_games.pop(_get_sid(), set())
    if games:
        current_app.logger.info(f"[ws-disconnect] sid={_get_sid()} games={sorted(games)}")


def handle_join_game(data):
    game_id = _game_id(data)
    if game_id is None:
        return
    try:
        session = GameSession.load(game_id)
    except GameNotFound:
        emit('error', {'message': 'Game not found', 'game_id': game_id})
        return
    room = broadcast.game_room(game_id)
    join_room(room)
    _sid_to_games.setdefault(_get_sid(), set()).add(game_id)
    emit('joined', {'room': room})
    # Late joiners get the current state without waiting for the next write
    emit('state_update', session.payload())


def handle_leave_game(data):
    game_id = _game_id(data)
    if game_id is None:
        return
    room = broadcast.game_room(game_id)
    leave_room(room)
    _sid_to_games.get(_get_sid(), set()).discard(game_id)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def handle_publish_ui_event(data):
    """Relay a client-originated celebration to everyone watching the game."""
    game_id = _game_id(data)
    if game_id is None:
        return
    event_type = (data or {}).get('type')
    if not isinstance(event_type, str) or not event_type:
        emit('error', {'message': 'type is required'})
        return
    broadcast.publish_ui_event(game_id, event_type, (data or {}).get('data'))


def handle_overlay_opened(data):
    game_id = _game_id(data)
    if game_id is None:
        return
    window = _open_window(game_id)
    window.pause()
    emit('undo_state', {'game_id': game_id, **window.to_dict()})


def handle_overlay_closed(data):
    game_id = _game_id(data)
    if game_id is None:
        return
    window = _open_window(game_id)
    window.resume()
    emit('undo_state', {'game_id': game_id, **window.to_dict()})


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'join_game': handle_join_game,
    'leave_game': handle_leave_game,
    'ping': handle_ping,
    'publish_ui_event': handle_publish_ui_event,
    'overlay_opened': handle_overlay_opened,
    'overlay_closed': handle_overlay_closed,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace=NAMESPACE)

    if testing:
        # Test-only mirror on default namespace
        for event, handler in _HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')
