from __future__ import annotations

from .models import WarningAction, WarningEntry

AUTOMOD_MODERATOR = "Auto-Mod"

ESCALATION: dict[int, WarningAction] = {
    1: WarningAction.WARN,
    2: WarningAction.MUTE_1H,
    3: WarningAction.MUTE_24H,
    4: WarningAction.BAN_7D,
    5: WarningAction.BAN_PERMANENT,
}


def tier_for(count: int) -> WarningAction:
    """Map a live warning count to its escalation action.

    Counts past the end of the table reuse the harshest action.
    """
    if count < 1:
        raise ValueError("warning count must be >= 1")
    return ESCALATION[min(count, max(ESCALATION))]


class WarningLedger:
    """In-memory warning history per user.

    Expired warnings are pruned whenever a user's record is read; nothing
    sweeps users who never come back.
    """

    def __init__(self, expire_seconds: float) -> None:
        if expire_seconds <= 0:
            raise ValueError("expire_seconds must be > 0")
        self.expire_seconds = expire_seconds
        self._warnings: dict[int, list[WarningEntry]] = {}

    def add(self, user_id: int, reason: str, moderator: str, now: float) -> int:
        """Record a warning and return the user's live warning count."""
        self._warnings.setdefault(user_id, []).append(WarningEntry(reason, moderator, now))
        return len(self.get_live(user_id, now))

    def get_live(self, user_id: int, now: float) -> list[WarningEntry]:
        entries = self._warnings.get(user_id)
        if entries is None:
            return []
        cutoff = now - self.expire_seconds
        live = [entry for entry in entries if entry.timestamp > cutoff]
        if live:
            self._warnings[user_id] = live
        else:
            del self._warnings[user_id]
        return list(live)

    def clear(self, user_id: int) -> bool:
        return self._warnings.pop(user_id, None) is not None

    def tracked_users(self) -> int:
        return len(self._warnings)
