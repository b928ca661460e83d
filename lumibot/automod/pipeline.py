from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

import discord

from .checks import MessageCheck
from .ledger import AUTOMOD_MODERATOR, WarningLedger, tier_for
from .models import ModerationEvent, ModerationOutcome, PunishmentKind, Violation, WarningAction

logger = logging.getLogger(__name__)

ACKNOWLEDGEMENT_DELETE_AFTER = 5.0


class ModerationActions(Protocol):
    """Side effects the pipeline needs, bound to one offending message/member."""

    async def delete_message(self) -> None: ...

    async def notify_member(self, action: WarningAction, count: int, reason: str) -> None: ...

    async def apply_punishment(self, action: WarningAction, count: int, reason: str) -> None: ...

    async def log_punishment(self, action: WarningAction, count: int, reason: str) -> None: ...

    async def report_failure(self, action: WarningAction, count: int, reason: str, error: Exception) -> None: ...

    async def send_acknowledgement(self, reason: str, delete_after: float) -> None: ...


async def _notify(actions: ModerationActions, action: WarningAction, count: int, reason: str) -> None:
    try:
        await actions.notify_member(action, count, reason)
    except discord.HTTPException as e:
        logger.debug("Could not DM member about %s: %s", action.key, e)


async def apply_escalation(actions: ModerationActions, action: WarningAction, count: int, reason: str) -> bool:
    """Notify the member and carry out ``action``. Returns False if it failed.

    Bans DM first since the member cannot be reached afterwards.
    """
    if action.kind is PunishmentKind.BAN:
        await _notify(actions, action, count, reason)

    try:
        await actions.apply_punishment(action, count, reason)
    except discord.HTTPException as e:
        logger.error("Failed to apply %s (warning #%d, %s): %s", action.key, count, reason, e)
        await actions.report_failure(action, count, reason, e)
        return False

    if action.kind is not PunishmentKind.BAN:
        await _notify(actions, action, count, reason)
    await actions.log_punishment(action, count, reason)
    logger.info("Warning #%d applied: %s (%s)", count, action.key, reason)
    return True


class ModerationPipeline:
    """Runs message checks in order and acts on the first violation."""

    def __init__(self, checks: Sequence[MessageCheck], ledger: WarningLedger) -> None:
        self.checks = list(checks)
        self.ledger = ledger

    def detect(self, event: ModerationEvent) -> Optional[Violation]:
        for check in self.checks:
            violation = check.detect(event)
            if violation is not None:
                return violation
        return None

    async def on_message(self, event: ModerationEvent, actions: ModerationActions) -> Optional[ModerationOutcome]:
        violation = self.detect(event)
        if violation is None:
            return None

        deleted = True
        try:
            await actions.delete_message()
        except discord.HTTPException as e:
            deleted = False
            logger.warning("Failed to delete %s message from %s: %s", violation.key, event.author_id, e)
        else:
            logger.info("Deleted message from %s in %s: %s", event.author_id, event.channel_id, violation.key)

        count = self.ledger.add(event.author_id, violation.reason, AUTOMOD_MODERATOR, event.timestamp)
        action = tier_for(count)
        punished = await apply_escalation(actions, action, count, violation.reason)

        try:
            await actions.send_acknowledgement(violation.reason, ACKNOWLEDGEMENT_DELETE_AFTER)
        except discord.HTTPException as e:
            logger.debug("Could not send acknowledgement in %s: %s", event.channel_id, e)

        return ModerationOutcome(
            violation=violation,
            warning_count=count,
            action=action,
            deleted=deleted,
            punished=punished,
        )
