"""Shared test doubles."""

from unittest.mock import MagicMock

import discord

from lumibot.automod import ModerationEvent


class FakeClock:
    """Manually advanced replacement for time.time()."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def forbidden() -> discord.Forbidden:
    return discord.Forbidden(MagicMock(status=403, reason="Forbidden"), "Missing Permissions")


def make_event(content="hello there", *, author_id=42, mentions=0, timestamp=1_700_000_000.0):
    return ModerationEvent(
        author_id=author_id,
        channel_id=7,
        guild_id=111,
        content=content,
        mention_count=mentions,
        timestamp=timestamp,
    )
