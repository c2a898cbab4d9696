"""Viewer side of the realtime channel.

A ``GameViewer`` is what a single open game screen keeps: the latest game
payload, optimistic guesses made by the local user, the set of UI events
already shown, and the acting user's undo window.
"""

import copy
from collections import deque
from typing import Callable, Dict, List, Optional

CELEBRATION_EVENTS = frozenset({
    'hit_celebration',
    'miss_celebration',
    'catch_celebration',
    'redemption_start',
    'redemption_end',
    'island_call',
    'confetti',
})


class RecentEventIds:
    """Bounded set of event ids in arrival order; the oldest go first."""

    def __init__(self, capacity: int = 50):
        if capacity < 1:
            raise ValueError('capacity must be positive')
        self.capacity = capacity
        self._order = deque()
        self._ids = set()

    def __contains__(self, event_id) -> bool:
        return event_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, event_id) -> bool:
        """Remember ``event_id``; False when it was already seen."""
        if event_id in self._ids:
            return False
        self._order.append(event_id)
        self._ids.add(event_id)
        while len(self._order) > self.capacity:
            self._ids.discard(self._order.popleft())
        return True


class GameViewer:

    def __init__(self, game_id, history_size: int = 50, undo_window=None):
        self.game_id = game_id
        self.state: Optional[dict] = None
        self.version = -1
        self.optimistic = False
        self.acting = False
        self.overlay: Optional[str] = None
        self.undo_window = undo_window
        self.recent = RecentEventIds(history_size)
        self._handlers: Dict[str, List[Callable]] = {}

    @classmethod
    def from_config(cls, game_id, config, undo_window=None) -> 'GameViewer':
        return cls(game_id, int(config.get('UI_EVENT_HISTORY_SIZE', 50)), undo_window)

    def on(self, event_type: str, handler: Callable) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def apply_optimistic(self, updater: Callable[[dict], dict]) -> dict:
        """Show the local user's guess right away; the next broadcast replaces it."""
        self.state = updater(copy.deepcopy(self.state) if self.state is not None else {})
        self.optimistic = True
        self.acting = True
        return self.state

    def on_state_change(self, payload: dict) -> bool:
        if payload.get('id') not in (None, self.game_id):
            return False
        version = payload.get('version', 0)
        if version < self.version:
            return False
        self.state = payload
        self.version = version
        self.optimistic = False
        return True

    def on_ui_event(self, packet: dict) -> bool:
        if packet.get('game_id') != self.game_id:
            return False
        if not self.recent.add(packet.get('event_id')):
            return False
        event_type = packet.get('type')
        if event_type in CELEBRATION_EVENTS:
            self.overlay = event_type
            if self.acting and self.undo_window is not None:
                self.undo_window.pause()
        for handler in self._handlers.get(event_type, []):
            handler(packet.get('data') or {})
        return True

    def close_overlay(self) -> None:
        self.overlay = None
        if self.undo_window is not None:
            self.undo_window.resume()
        self.acting = False
