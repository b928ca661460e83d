from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

LockdownCallback = Callable[[Any], Awaitable[None]]


class RaidGuard:
    """Global join-burst detector with a self-expiring lockdown flag.

    Enabling the lockdown while it is already active does nothing: the
    original release timer keeps running and is never extended.
    """

    def __init__(
        self,
        join_threshold: int,
        window_seconds: float,
        lockdown_minutes: float,
        *,
        on_lockdown: Optional[LockdownCallback] = None,
        on_release: Optional[LockdownCallback] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if join_threshold < 1:
            raise ValueError("join_threshold must be >= 1")
        if window_seconds <= 0 or lockdown_minutes <= 0:
            raise ValueError("window_seconds and lockdown_minutes must be > 0")
        self.join_threshold = join_threshold
        self.window_seconds = window_seconds
        self.lockdown_minutes = lockdown_minutes
        self.on_lockdown = on_lockdown
        self.on_release = on_release
        self.lockdown_active = False
        self._sleep = sleep
        self._joins: deque[float] = deque()
        self._release_task: Optional[asyncio.Task] = None

    @property
    def recent_joins(self) -> int:
        return len(self._joins)

    def on_join(self, now: float) -> bool:
        """Record a join and return True if the burst threshold is reached."""
        self._joins.append(now)
        cutoff = now - self.window_seconds
        while self._joins and self._joins[0] <= cutoff:
            self._joins.popleft()
        return len(self._joins) >= self.join_threshold

    async def enable_lockdown(self, context: Any = None) -> bool:
        """Turn the lockdown on. Returns False if it was already active."""
        if self.lockdown_active:
            return False

        self.lockdown_active = True
        logger.warning(
            "Raid lockdown enabled: %d+ joins within %ss, lifting in %s minutes",
            self.join_threshold,
            self.window_seconds,
            self.lockdown_minutes,
        )
        self._release_task = asyncio.create_task(self._release_after(context), name="raid-lockdown-release")
        if self.on_lockdown is not None:
            await self.on_lockdown(context)
        return True

    async def _release_after(self, context: Any) -> None:
        await self._sleep(self.lockdown_minutes * 60)
        self.lockdown_active = False
        self._release_task = None
        logger.info("Raid lockdown lifted")
        if self.on_release is not None:
            await self.on_release(context)

    def cancel(self) -> None:
        """Stop a pending release timer, e.g. on shutdown."""
        if self._release_task is not None and not self._release_task.done():
            self._release_task.cancel()
        self._release_task = None
