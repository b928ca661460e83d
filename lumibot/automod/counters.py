# per-user sliding-window counters
from __future__ import annotations

from collections import deque

MIN_DUPLICATE_LENGTH = 5


def _evict(history: deque, cutoff: float, key=None) -> None:
    while history and (key(history[0]) if key else history[0]) <= cutoff:
        history.popleft()


class RateWindow:
    """Counts messages per user inside a sliding time window."""

    def __init__(self, max_messages: int, window_seconds: float) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.max_messages = max_messages
        self.window_seconds = window_seconds
        self._history: dict[int, deque[float]] = {}

    def record_and_check(self, user_id: int, now: float) -> bool:
        """Record a message and return True if the user is over the limit."""
        history = self._history.setdefault(user_id, deque())
        history.append(now)
        _evict(history, now - self.window_seconds)
        return len(history) > self.max_messages

    def tracked_users(self) -> int:
        return len(self._history)


class DuplicateTracker:
    """Counts repeats of the same normalized message per user.

    The message being recorded counts toward its own total, so with
    ``max_duplicates=3`` the third identical send trips the check.
    """

    def __init__(self, max_duplicates: int, window_seconds: float) -> None:
        if max_duplicates < 1:
            raise ValueError("max_duplicates must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.max_duplicates = max_duplicates
        self.window_seconds = window_seconds
        self._history: dict[int, deque[tuple[str, float]]] = {}

    @staticmethod
    def normalize(text: str) -> str:
        return text.lower().strip()

    def record_and_check(self, user_id: int, text: str, now: float) -> bool:
        content = self.normalize(text)
        if len(content) < MIN_DUPLICATE_LENGTH:
            return False

        history = self._history.setdefault(user_id, deque())
        history.append((content, now))
        _evict(history, now - self.window_seconds, key=lambda entry: entry[1])
        repeats = sum(1 for seen, _ in history if seen == content)
        return repeats >= self.max_duplicates

    def tracked_users(self) -> int:
        return len(self._history)
