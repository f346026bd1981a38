"""Bounded undo/redo log over the learning and gamification sections."""

from collections import deque

import structlog

from sentence_builder.models.snapshot import HistorySlice

logger = structlog.get_logger()

DEFAULT_CAPACITY = 50


class TemporalHistory:
    """Fixed-capacity ring buffer of history slices plus a cursor.

    ``entries[cursor]`` is the slice matching the live state. Recording after
    an undo drops everything forward of the cursor; recording at capacity
    drops the oldest entry.

    Args:
        capacity: Maximum number of retained entries.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._entries: deque[HistorySlice] = deque(maxlen=capacity)
        self._cursor = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return 0 <= self._cursor < len(self._entries) - 1

    @property
    def present(self) -> HistorySlice | None:
        if self._cursor < 0:
            return None
        return self._entries[self._cursor]

    def record(self, entry: HistorySlice) -> None:
        """Append a new present, discarding any redo branch."""
        while len(self._entries) - 1 > self._cursor:
            self._entries.pop()
        self._entries.append(entry)
        self._cursor = len(self._entries) - 1

    def undo(self) -> HistorySlice | None:
        """Step back one entry and return it, or None at the oldest entry."""
        if not self.can_undo:
            return None
        self._cursor -= 1
        logger.debug("history_undo", cursor=self._cursor, size=len(self._entries))
        return self._entries[self._cursor]

    def redo(self) -> HistorySlice | None:
        """Step forward one entry and return it, or None at the newest entry."""
        if not self.can_redo:
            return None
        self._cursor += 1
        logger.debug("history_redo", cursor=self._cursor, size=len(self._entries))
        return self._entries[self._cursor]

    def clear(self) -> None:
        self._entries.clear()
        self._cursor = -1
