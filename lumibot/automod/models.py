from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional


class Violation(enum.Enum):
    """Kinds of message violation, with the reason shown to the author."""

    BANNED_CONTENT = ("banned_words", "Using prohibited language")
    DISALLOWED_LINK = ("unapproved_link", "Posting unapproved links")
    MENTION_SPAM = ("mention_spam", "Mention spam")
    SPAM = ("spam", "Message spam")
    DUPLICATE = ("duplicate", "Duplicate messages")

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason


class PunishmentKind(enum.Enum):
    WARN = "warn"
    TIMEOUT = "timeout"
    BAN = "ban"


class WarningAction(enum.Enum):
    """Escalation steps, ordered by severity."""

    WARN = ("warn", PunishmentKind.WARN, None, "Warning Issued")
    MUTE_1H = ("mute_1h", PunishmentKind.TIMEOUT, timedelta(hours=1), "Muted (1 hour)")
    MUTE_24H = ("mute_24h", PunishmentKind.TIMEOUT, timedelta(hours=24), "Muted (24 hours)")
    BAN_7D = ("ban_7d", PunishmentKind.BAN, timedelta(days=7), "Banned (7 days)")
    BAN_PERMANENT = ("ban_permanent", PunishmentKind.BAN, None, "Banned (Permanent)")

    def __init__(self, key: str, kind: PunishmentKind, duration: Optional[timedelta], title: str) -> None:
        self.key = key
        self.kind = kind
        self.duration = duration
        self.title = title


@dataclass(frozen=True)
class ModerationEvent:
    """One inbound guild message, as seen by the auto-moderator."""

    author_id: int
    channel_id: int
    guild_id: int
    content: str
    mention_count: int
    timestamp: float


@dataclass(frozen=True)
class WarningEntry:
    reason: str
    moderator: str
    timestamp: float


@dataclass(frozen=True)
class ModerationOutcome:
    """What the pipeline did with a message that tripped a check."""

    violation: Violation
    warning_count: int
    action: WarningAction
    deleted: bool
    punished: bool
