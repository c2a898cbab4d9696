import time
from typing import Dict, Optional


class UndoWindow:
    """Pausable countdown during which the last transition can be reverted.

    Opening the window stores the snapshot to restore and starts a fresh
    countdown, discarding any earlier snapshot. While paused (e.g. a
    celebration overlay covers the undo button) the remaining time is frozen.
    """

    def __init__(self, duration: float = 5.0, clock=time.monotonic):
        self.duration = duration
        self._clock = clock
        self._snapshot = None
        self._deadline: Optional[float] = None
        self._remaining = 0.0
        self._paused = False

    @property
    def paused(self) -> bool:
        return self._paused

    def open(self, snapshot) -> None:
        self._snapshot = snapshot
        self._paused = False
        self._remaining = self.duration
        self._deadline = self._clock() + self.duration

    def remaining(self) -> float:
        if self._snapshot is None:
            return 0.0
        if self._paused:
            return self._remaining
        return max(0.0, self._deadline - self._clock())

    def is_open(self) -> bool:
        return self._snapshot is not None and self.remaining() > 0

    def pause(self) -> None:
        if self.is_open() and not self._paused:
            self._remaining = self.remaining()
            self._paused = True

    def resume(self) -> None:
        if self._paused:
            self._paused = False
            self._deadline = self._clock() + self._remaining

    def take(self):
        """Return the snapshot and close the window; None once expired."""
        snapshot = self._snapshot if self.is_open() else None
        self.close()
        return snapshot

    def close(self) -> None:
        self._snapshot = None
        self._deadline = None
        self._remaining = 0.0
        self._paused = False

    def to_dict(self):
        return {
            'available': self.is_open(),
            'remaining_sec': round(self.remaining(), 3),
            'paused': self._paused,
        }


class UndoWindows:
    """One undo window per game id."""

    def __init__(self, duration: float = 5.0, clock=time.monotonic):
        self.duration = duration
        self._clock = clock
        self._windows: Dict[int, UndoWindow] = {}

    def get(self, game_id: int) -> UndoWindow:
        window = self._windows.get(game_id)
        if window is None:
            window = UndoWindow(self.duration, self._clock)
            self._windows[game_id] = window
        return window

    def discard(self, game_id: int) -> None:
        self._windows.pop(game_id, None)

    def detached(self) -> UndoWindow:
        """A closed window that is not tracked, for games that can no longer undo."""
        return UndoWindow(self.duration, self._clock)

    def __contains__(self, game_id) -> bool:
        return game_id in self._windows

    def __len__(self) -> int:
        return len(self._windows)
