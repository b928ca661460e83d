"""Message checks run by the moderation pipeline, in priority order."""

from __future__ import annotations

from typing import Optional, Protocol

from ..config import AutoModSettings
from .counters import DuplicateTracker, RateWindow
from .models import ModerationEvent, Violation
from .policies import BannedContentPolicy, LinkPolicy


class MessageCheck(Protocol):
    def detect(self, event: ModerationEvent) -> Optional[Violation]: ...


class BannedContentCheck:
    def __init__(self, policy: BannedContentPolicy) -> None:
        self.policy = policy

    def detect(self, event: ModerationEvent) -> Optional[Violation]:
        return Violation.BANNED_CONTENT if self.policy.is_banned(event.content) else None


class LinkCheck:
    def __init__(self, policy: LinkPolicy) -> None:
        self.policy = policy

    def detect(self, event: ModerationEvent) -> Optional[Violation]:
        return Violation.DISALLOWED_LINK if self.policy.has_disallowed_link(event.content) else None


class MentionSpamCheck:
    def __init__(self, max_mentions: int) -> None:
        self.max_mentions = max_mentions

    def detect(self, event: ModerationEvent) -> Optional[Violation]:
        return Violation.MENTION_SPAM if event.mention_count > self.max_mentions else None


class RateCheck:
    def __init__(self, window: RateWindow) -> None:
        self.window = window

    def detect(self, event: ModerationEvent) -> Optional[Violation]:
        if self.window.record_and_check(event.author_id, event.timestamp):
            return Violation.SPAM
        return None


class DuplicateCheck:
    def __init__(self, tracker: DuplicateTracker) -> None:
        self.tracker = tracker

    def detect(self, event: ModerationEvent) -> Optional[Violation]:
        if self.tracker.record_and_check(event.author_id, event.content, event.timestamp):
            return Violation.DUPLICATE
        return None


def build_checks(
    config: AutoModSettings,
    rate_window: RateWindow,
    duplicates: DuplicateTracker,
) -> list[MessageCheck]:
    """Assemble the enabled checks, highest priority first."""
    checks: list[MessageCheck] = []
    if config.is_enabled("banned_words"):
        checks.append(BannedContentCheck(BannedContentPolicy(config.banned_words, config.banned_patterns)))
    if config.is_enabled("links"):
        checks.append(LinkCheck(LinkPolicy(config.allowed_domains)))
    if config.is_enabled("mentions"):
        checks.append(MentionSpamCheck(config.max_mentions))
    if config.is_enabled("spam"):
        checks.append(RateCheck(rate_window))
    if config.is_enabled("duplicates"):
        checks.append(DuplicateCheck(duplicates))
    return checks
