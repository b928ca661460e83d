import logging
import time
from typing import Optional

import discord
from discord.ext import commands

from .analytics import ModerationEventSink
from .automod import AutoModState
from .cogs import ModerationCog, OnboardingCog
from .cogs.onboarding import persistent_views
from .config import Settings
from .utils import format_uptime

logger = logging.getLogger(__name__)


class LumistBot(commands.Bot):
    """Discord client wiring gateway events to the coordinator."""

    def __init__(self, coordinator: "BotCoordinator"):
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True
        intents.messages = True
        intents.message_content = True
        intents.dm_messages = True
        intents.moderation = True
        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
        )
        self.coordinator = coordinator

    async def setup_hook(self) -> None:
        self.moderation = ModerationCog(self.coordinator)
        self.onboarding = OnboardingCog(self, self.coordinator)
        await self.add_cog(self.moderation)
        await self.add_cog(self.onboarding)
        # Buttons on welcome messages must keep working across restarts.
        for view in persistent_views(self.onboarding):
            self.add_view(view)
        await self.coordinator.sync_commands()

    async def on_ready(self) -> None:
        logger.info("Lumist bot is online as %s (guild %s)", self.user, self.coordinator.settings.guild_id or "all")
        logger.info("Active checks: %s", ", ".join(self.coordinator.active_checks()) or "none")

    async def on_member_join(self, member: discord.Member) -> None:
        await self.coordinator.handle_member_join(member)

    async def on_disconnect(self) -> None:
        logger.warning("Discord bot disconnected")
        self.coordinator.record_error()

    async def on_error(self, event_method: str, *args, **kwargs) -> None:
        logger.exception("Unhandled error in %s", event_method)
        self.coordinator.record_error()


class BotCoordinator:
    """Owns settings, moderation state and the Discord client for one process."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.automod = AutoModState(settings.automod)
        self.event_sink = ModerationEventSink(settings.analytics_url, settings.analytics_api_key)
        self.discord_bot = LumistBot(self)
        self._start_time = time.time()
        self._error_count = 0
        self._last_error_time: Optional[float] = None

    def get_uptime(self) -> float:
        """Get bot uptime in seconds."""
        return time.time() - self._start_time

    def record_error(self) -> None:
        self._error_count += 1
        self._last_error_time = time.time()

    def active_checks(self) -> list[str]:
        config = self.settings.automod
        return [check for check in ("banned_words", "links", "mentions", "spam", "duplicates", "raid") if config.is_enabled(check)]

    def get_health_stats(self) -> dict:
        """Snapshot served by the health endpoint."""
        uptime_seconds = self.get_uptime()
        user = self.discord_bot.user
        return {
            "status": "ok",
            "bot": str(user) if user else "connecting...",
            "uptime": uptime_seconds,
            "uptime_formatted": format_uptime(uptime_seconds),
            "discord_ready": self.discord_bot.is_ready(),
            "error_count": self._error_count,
            "timestamp": discord.utils.utcnow().isoformat(),
        }

    async def sync_commands(self) -> None:
        bot = self.discord_bot
        try:
            if self.settings.guild_id is not None:
                guild = discord.Object(id=self.settings.guild_id)
                bot.tree.copy_global_to(guild=guild)
                await bot.tree.sync(guild=guild)
                logger.info("Slash commands synced for guild %s", self.settings.guild_id)
            else:
                await bot.tree.sync()
                logger.info("Slash commands synced globally")
        except discord.HTTPException:
            logger.exception("Failed to sync application commands")

    async def handle_member_join(self, member: discord.Member) -> None:
        """Screen a new member for raids, then start onboarding if admitted."""
        if member.bot:
            return
        if self.settings.guild_id is not None and member.guild.id != self.settings.guild_id:
            return
        logger.info("New member joined: %s", member)
        bot = self.discord_bot
        admitted = await bot.moderation.screen_join(member)
        if admitted:
            await bot.onboarding.start(member)

    async def start_discord(self) -> None:
        await self.discord_bot.start(self.settings.bot_token)

    async def shutdown(self) -> None:
        self.automod.raid_guard.cancel()
        if not self.discord_bot.is_closed():
            try:
                await self.discord_bot.close()
            except Exception as e:
                logger.warning("Error closing Discord bot: %s", e)
        await self.event_sink.aclose()
