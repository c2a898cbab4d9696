"""Server side of the realtime channel.

State changes go out as ``state_update`` (the full authoritative game
payload) and celebration-style UI events as ``ui_event`` with a monotonically
increasing ``event_id`` that viewers use for deduplication. Broadcast
failures are logged and never raised.
"""

import time
from typing import Optional

from flask import current_app

from cupgame import socketio

NAMESPACE = '/ws'


def game_room(game_id) -> str:
    return f"game:{game_id}"


class EventIdSource:
    """Millisecond timestamps, bumped when two events land in the same ms."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._last = 0

    def next_id(self) -> int:
        now = int(self._clock() * 1000)
        self._last = max(now, self._last + 1)
        return self._last


_event_ids = EventIdSource()


def state_payload(game, undo_window=None) -> dict:
    payload = game.to_dict()
    if undo_window is not None:
        payload['undo'] = undo_window.to_dict()
    return payload


def publish_state(game, undo_window=None) -> Optional[dict]:
    payload = state_payload(game, undo_window)
    try:
        socketio.emit('state_update', payload, to=game_room(game.id), namespace=NAMESPACE)
    except Exception as exc:
        current_app.logger.error(f"[broadcast-failed] game={game.id} event=state_update error={exc}")
        return None
    return payload


def publish_ui_event(game_id, event_type: str, data: Optional[dict] = None) -> Optional[dict]:
    packet = {
        'event_id': _event_ids.next_id(),
        'game_id': game_id,
        'type': event_type,
        'data': dict(data or {}),
    }
    try:
        socketio.emit('ui_event', packet, to=game_room(game_id), namespace=NAMESPACE)
    except Exception as exc:
        current_app.logger.error(f"[broadcast-failed] game={game_id} event={event_type} error={exc}")
        return None
    current_app.logger.info(f"[ui-event] game={game_id} type={event_type} id={packet['event_id']}")
    return packet
