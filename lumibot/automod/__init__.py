"""Auto-moderation and warning escalation engine."""

from __future__ import annotations

import time
from collections import Counter
from typing import Callable

from ..config import AutoModSettings
from .checks import build_checks
from .counters import DuplicateTracker, RateWindow
from .ledger import ESCALATION, WarningLedger, tier_for
from .models import ModerationEvent, ModerationOutcome, PunishmentKind, Violation, WarningAction
from .pipeline import ACKNOWLEDGEMENT_DELETE_AFTER, ModerationPipeline, apply_escalation
from .raid import RaidGuard


class AutoModState:
    """Owns every piece of in-memory moderation state for one bot process."""

    def __init__(self, config: AutoModSettings, clock: Callable[[], float] = time.time) -> None:
        self.config = config
        self.clock = clock
        self.rate_window = RateWindow(config.spam_max_messages, config.spam_window_seconds)
        self.duplicates = DuplicateTracker(config.duplicate_max, config.duplicate_window_seconds)
        self.ledger = WarningLedger(config.warning_expire_days * 86400)
        self.raid_guard = RaidGuard(
            config.raid_join_threshold,
            config.raid_window_seconds,
            config.raid_lockdown_minutes,
        )
        self.pipeline = ModerationPipeline(
            build_checks(config, self.rate_window, self.duplicates),
            self.ledger,
        )
        self.violations: Counter[str] = Counter()
        self.actions: Counter[str] = Counter()

    def record_outcome(self, outcome: ModerationOutcome) -> None:
        self.violations[outcome.violation.key] += 1
        if outcome.punished:
            self.actions[outcome.action.key] += 1

    def stats(self) -> dict:
        return {
            "violations": dict(self.violations),
            "actions": dict(self.actions),
            "lockdown_active": self.raid_guard.lockdown_active,
            "recent_joins": self.raid_guard.recent_joins,
            "tracked_users": {
                "rate_window": self.rate_window.tracked_users(),
                "duplicates": self.duplicates.tracked_users(),
                "warnings": self.ledger.tracked_users(),
            },
        }


__all__ = [
    "ACKNOWLEDGEMENT_DELETE_AFTER",
    "AutoModState",
    "DuplicateTracker",
    "ESCALATION",
    "ModerationEvent",
    "ModerationOutcome",
    "ModerationPipeline",
    "PunishmentKind",
    "RaidGuard",
    "RateWindow",
    "Violation",
    "WarningAction",
    "WarningLedger",
    "apply_escalation",
    "tier_for",
]
