# auto-moderation, raid protection and warning commands
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional, TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from ..automod.ledger import AUTOMOD_MODERATOR
from ..automod import (
    ModerationEvent,
    PunishmentKind,
    WarningAction,
    apply_escalation,
    tier_for,
)
from ..utils import find_role, find_text_channel, format_duration, is_staff, truncate_text

if TYPE_CHECKING:
    from ..bot import BotCoordinator

logger = logging.getLogger(__name__)

ACTION_COLOURS = {
    WarningAction.WARN: discord.Colour(0xFFA500),
    WarningAction.MUTE_1H: discord.Colour(0xE67E22),
    WarningAction.MUTE_24H: discord.Colour(0xE74C3C),
    WarningAction.BAN_7D: discord.Colour(0x992D22),
    WarningAction.BAN_PERMANENT: discord.Colour(0x1A1A1A),
}

BAN_DELETE_MESSAGE_SECONDS = 86400

MAX_WARNING_FIELDS = 25
# Discord rejects embeds over 6000 characters; leave room for the "not shown" line.
EMBED_SIZE_BUDGET = 5900


def _member_notice(action: WarningAction, count: int, reason: str) -> str:
    if action is WarningAction.WARN:
        return (
            f"⚠️ **Warning from Lumist.ai Server**\nReason: {reason}\n\n"
            f"This is warning #{count}. Please follow the server rules."
        )
    if action.kind is PunishmentKind.TIMEOUT:
        return f"🔇 **You have been muted for {format_duration(action.duration)}**\nReason: {reason}\n\nThis is warning #{count}."
    if action.duration is not None:
        return f"🚫 **You have been banned for {format_duration(action.duration)}**\nReason: {reason}\n\nThis is warning #{count}."
    return f"🚫 **You have been permanently banned**\nReason: {reason}\n\nThis was warning #{count}."


class MemberEscalation:
    """Carries out escalation steps against one member."""

    def __init__(self, cog: "ModerationCog", member: discord.Member, moderator: str) -> None:
        self.cog = cog
        self.member = member
        self.moderator = moderator

    async def notify_member(self, action: WarningAction, count: int, reason: str) -> None:
        await self.member.send(_member_notice(action, count, reason))

    async def apply_punishment(self, action: WarningAction, count: int, reason: str) -> None:
        audit_reason = f"{reason} (Warning #{count})"
        if action.kind is PunishmentKind.TIMEOUT:
            await self.member.timeout(action.duration, reason=audit_reason)
        elif action.kind is PunishmentKind.BAN:
            await self.member.ban(reason=audit_reason, delete_message_seconds=BAN_DELETE_MESSAGE_SECONDS)
            if action.duration is not None:
                self.cog.schedule_unban(self.member.guild, self.member.id, action.duration.total_seconds())

    async def log_punishment(self, action: WarningAction, count: int, reason: str) -> None:
        await self.cog.log_action(
            self.member.guild,
            action.title,
            self.member,
            self.moderator,
            f"{reason} (Warning #{count})",
            colour=ACTION_COLOURS[action],
        )
        await self.cog.coordinator.event_sink.record(
            "punishment",
            user_id=str(self.member.id),
            action=action.key,
            warning_count=count,
            reason=reason,
            moderator=self.moderator,
        )

    async def report_failure(self, action: WarningAction, count: int, reason: str, error: Exception) -> None:
        await self.cog.log_action(
            self.member.guild,
            f"Failed: {action.title}",
            self.member,
            self.moderator,
            f"{reason} (Warning #{count}) - {truncate_text(str(error), 200)}",
            colour=discord.Colour.dark_red(),
        )
        await self.cog.coordinator.event_sink.record(
            "punishment_failed",
            user_id=str(self.member.id),
            action=action.key,
            warning_count=count,
            error=str(error),
        )


class MessageEscalation(MemberEscalation):
    """Escalation bound to the offending message as well as its author."""

    def __init__(self, cog: "ModerationCog", message: discord.Message) -> None:
        super().__init__(cog, message.author, AUTOMOD_MODERATOR)
        self.message = message

    async def delete_message(self) -> None:
        await self.message.delete()

    async def send_acknowledgement(self, reason: str, delete_after: float) -> None:
        await self.message.channel.send(
            f"⚠️ {self.member.mention}, your message was removed: **{reason}**",
            delete_after=delete_after,
        )


class ModerationCog(commands.Cog):
    """Auto-moderation, raid lockdown and manual warning tools."""

    def __init__(self, coordinator: "BotCoordinator"):
        self.coordinator = coordinator
        self.state = coordinator.automod
        self._log_channels: dict[int, discord.TextChannel] = {}
        self._pending_unbans: dict[tuple[int, int], asyncio.Task] = {}
        self.state.raid_guard.on_lockdown = self._announce_lockdown
        self.state.raid_guard.on_release = self._announce_release

    async def cog_unload(self) -> None:
        for task in self._pending_unbans.values():
            task.cancel()
        self._pending_unbans.clear()

    def _get_log_channel(self, guild: discord.Guild) -> Optional[discord.TextChannel]:
        cached = self._log_channels.get(guild.id)
        if cached is not None:
            return cached
        channel = find_text_channel(guild, self.coordinator.settings.mod_log_channel)
        if channel is not None:
            self._log_channels[guild.id] = channel
        return channel

    async def _send_log(self, guild: discord.Guild, **kwargs) -> None:
        channel = self._get_log_channel(guild)
        if channel is None:
            logger.debug("No #%s channel in %s; skipping mod log", self.coordinator.settings.mod_log_channel, guild.name)
            return
        try:
            await channel.send(**kwargs)
        except discord.HTTPException as e:
            logger.warning("Failed to post to mod log in %s: %s", guild.name, e)

    async def log_action(
        self,
        guild: discord.Guild,
        action: str,
        target: discord.abc.User,
        moderator: str,
        reason: Optional[str],
        colour: discord.Colour = discord.Colour(0xE74C3C),
    ) -> None:
        embed = discord.Embed(title=f"🛡️ {action}", colour=colour, timestamp=discord.utils.utcnow())
        embed.add_field(name="User", value=f"{target.mention} ({target.id})", inline=True)
        embed.add_field(name="Moderator", value=moderator, inline=True)
        embed.add_field(name="Reason", value=reason or "No reason provided", inline=False)
        embed.set_footer(text=f"User ID: {target.id}")
        await self._send_log(guild, embed=embed)

    def schedule_unban(self, guild: discord.Guild, user_id: int, seconds: float) -> None:
        key = (guild.id, user_id)

        async def _unban_task() -> None:
            try:
                await asyncio.sleep(seconds)
                try:
                    await guild.unban(discord.Object(id=user_id), reason="Temporary ban expired")
                except discord.HTTPException as e:
                    logger.warning("Failed to lift temporary ban for %s: %s", user_id, e)
                    return
                logger.info("Temporary ban expired for %s", user_id)
                await self._send_log(
                    guild,
                    embed=discord.Embed(
                        description=f"Temporary ban expired for <@{user_id}> ({user_id}).",
                        colour=discord.Colour.green(),
                        timestamp=discord.utils.utcnow(),
                    ),
                )
            finally:
                self._pending_unbans.pop(key, None)

        if task := self._pending_unbans.get(key):
            task.cancel()
        self._pending_unbans[key] = asyncio.create_task(_unban_task())

    # ------------------------------------------------------------------
    # Raid protection
    # ------------------------------------------------------------------
    async def _announce_lockdown(self, guild: Optional[discord.Guild]) -> None:
        await self.coordinator.event_sink.record("raid_lockdown", active=True)
        if guild is None:
            return
        guard = self.state.raid_guard
        embed = discord.Embed(
            title="🚨 RAID DETECTED - LOCKDOWN ENABLED",
            description=(
                f"Detected {guard.join_threshold}+ joins within {guard.window_seconds:g} seconds.\n\n"
                f"New members will be automatically kicked for {guard.lockdown_minutes:g} minutes."
            ),
            colour=discord.Colour.red(),
            timestamp=discord.utils.utcnow(),
        )
        role = find_role(guild, self.coordinator.settings.moderator_role)
        await self._send_log(guild, content=role.mention if role else None, embed=embed)

    async def _announce_release(self, guild: Optional[discord.Guild]) -> None:
        await self.coordinator.event_sink.record("raid_lockdown", active=False)
        if guild is None:
            return
        embed = discord.Embed(
            title="✅ Raid Mode Disabled",
            description="Lockdown has been lifted. New members can join normally.",
            colour=discord.Colour(0x2ECC71),
            timestamp=discord.utils.utcnow(),
        )
        await self._send_log(guild, embed=embed)

    async def screen_join(self, member: discord.Member) -> bool:
        """Track the join for raid detection. Returns False if the member was turned away."""
        await self.coordinator.event_sink.record("member_join", user_id=str(member.id))

        guard = self.state.raid_guard
        # Disabling the raid check stops automatic lockdowns only; a manual /lockdown still applies.
        if self.coordinator.settings.automod.is_enabled("raid") and guard.on_join(self.state.clock()):
            await guard.enable_lockdown(member.guild)
        if not guard.lockdown_active:
            return True

        with contextlib.suppress(discord.HTTPException):
            await member.send("⚠️ The server is currently in lockdown mode due to a raid. Please try joining again later.")
        try:
            await member.kick(reason="Raid protection - auto kicked during lockdown")
        except discord.HTTPException as e:
            logger.error("Failed to kick %s during raid lockdown: %s", member, e)
            return False

        logger.info("Kicked %s (raid protection)", member)
        await self.log_action(
            member.guild,
            "Kicked (Raid Lockdown)",
            member,
            AUTOMOD_MODERATOR,
            "Joined during raid lockdown",
            colour=discord.Colour.red(),
        )
        await self.coordinator.event_sink.record("raid_kick", user_id=str(member.id))
        return False

    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member) -> None:
        logger.info("Member left: %s", member)
        await self.coordinator.event_sink.record("member_leave", user_id=str(member.id))

    # ------------------------------------------------------------------
    # Message auto-moderation
    # ------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.guild is None or message.author.bot:
            return
        # Threads, voice-channel chat and forum posts are not moderated.
        if not isinstance(message.channel, discord.TextChannel):
            return
        if not isinstance(message.author, discord.Member) or is_staff(message.author):
            return

        event = ModerationEvent(
            author_id=message.author.id,
            channel_id=message.channel.id,
            guild_id=message.guild.id,
            content=message.content,
            mention_count=len(message.mentions) + len(message.role_mentions),
            timestamp=message.created_at.timestamp(),
        )
        outcome = await self.state.pipeline.on_message(event, MessageEscalation(self, message))
        if outcome is None:
            return

        self.state.record_outcome(outcome)
        await self.coordinator.event_sink.record(
            "violation",
            user_id=str(event.author_id),
            channel_id=str(event.channel_id),
            violation=outcome.violation.key,
            warning_count=outcome.warning_count,
            action=outcome.action.key,
        )

    # ------------------------------------------------------------------
    # Staff commands
    # ------------------------------------------------------------------
    @app_commands.command(name="warn", description="Warn a member and apply the escalation step.")
    @app_commands.default_permissions(manage_messages=True)
    @app_commands.guild_only()
    @app_commands.describe(member="Member to warn.", reason="Reason for the warning.")
    async def warn(self, interaction: discord.Interaction, member: discord.Member, reason: str) -> None:
        await interaction.response.defer(ephemeral=True)
        count = self.state.ledger.add(member.id, reason, str(interaction.user), self.state.clock())
        action = tier_for(count)
        applied = await apply_escalation(
            MemberEscalation(self, member, interaction.user.mention),
            action,
            count,
            reason,
        )
        if applied:
            self.state.actions[action.key] += 1
            await interaction.followup.send(
                f"⚠️ Warned {member.mention} (Warning #{count}, action: {action.title}).",
                ephemeral=True,
            )
        else:
            await interaction.followup.send(
                f"⚠️ Warning #{count} recorded for {member.mention}, but **{action.title}** failed. See the mod log.",
                ephemeral=True,
            )

    @app_commands.command(name="warnings", description="View active warnings for a member.")
    @app_commands.default_permissions(manage_messages=True)
    @app_commands.guild_only()
    @app_commands.describe(member="Member to check warnings for.")
    async def view_warnings(self, interaction: discord.Interaction, member: discord.Member) -> None:
        warnings = self.state.ledger.get_live(member.id, self.state.clock())
        if not warnings:
            await interaction.response.send_message(f"{member.mention} has no active warnings.", ephemeral=True)
            return

        description = (
            f"Active: {len(warnings)} warning(s), expiring after "
            f"{self.coordinator.settings.automod.warning_expire_days:g} days"
        )
        embed = discord.Embed(
            title=truncate_text(f"Warnings for {member.display_name}", 256),
            description=description,
            colour=discord.Colour.orange(),
        )

        # Newest first, stopping before Discord's field count or total size limit.
        shown = 0
        for number in range(len(warnings), 0, -1):
            if shown >= MAX_WARNING_FIELDS:
                break
            warning = warnings[number - 1]
            name = f"Warning #{number}"
            value = (
                f"**Reason:** {truncate_text(warning.reason, 200)}\n"
                f"**Moderator:** {truncate_text(warning.moderator, 100)}\n"
                f"**Date:** <t:{int(warning.timestamp)}:f>"
            )
            if len(embed) + len(name) + len(value) > EMBED_SIZE_BUDGET:
                break
            embed.add_field(name=name, value=value, inline=False)
            shown += 1

        hidden = len(warnings) - shown
        if hidden:
            embed.description = f"{description}\n…and {hidden} older warning(s) not shown"
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="clearwarnings", description="Clear all warnings for a member.")
    @app_commands.default_permissions(manage_messages=True)
    @app_commands.guild_only()
    @app_commands.describe(member="Member to clear warnings for.")
    async def clear_warnings(self, interaction: discord.Interaction, member: discord.Member) -> None:
        if not self.state.ledger.clear(member.id):
            await interaction.response.send_message(f"{member.mention} has no warnings to clear.", ephemeral=True)
            return

        await interaction.response.send_message(f"✅ Cleared all warnings for {member.mention}.", ephemeral=True)
        await self.log_action(
            interaction.guild,
            "Warnings Cleared",
            member,
            interaction.user.mention,
            None,
            colour=discord.Colour.green(),
        )

    @app_commands.command(name="lockdown", description="Turn on raid lockdown now.")
    @app_commands.default_permissions(ban_members=True)
    @app_commands.guild_only()
    async def lockdown(self, interaction: discord.Interaction) -> None:
        guard = self.state.raid_guard
        await interaction.response.defer(ephemeral=True)
        if await guard.enable_lockdown(interaction.guild):
            logger.warning("Raid lockdown enabled manually by %s", interaction.user)
            await interaction.followup.send(f"🚨 Lockdown enabled for {guard.lockdown_minutes:g} minutes.", ephemeral=True)
        else:
            await interaction.followup.send("Lockdown is already active.", ephemeral=True)

    async def cog_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        if isinstance(error, app_commands.MissingPermissions):
            message = "You do not have permission to use that command."
        elif isinstance(error, app_commands.CommandInvokeError):
            logger.error("Command %s failed: %s", interaction.command and interaction.command.name, error.original)
            message = f"Action failed: {error.original}"
        else:
            message = "An error occurred while running that command."

        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)
