"""Utility functions for the bot."""

from datetime import timedelta
from typing import Optional

import discord


def format_uptime(seconds: float) -> str:
    """Format uptime in seconds to human-readable string.

    Args:
        seconds: Uptime in seconds

    Returns:
        Formatted string like "2d 3h 15m"
    """
    if seconds < 0:
        return "0s"

    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    seconds = int(seconds % 60)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if seconds > 0 and len(parts) < 2:
        parts.append(f"{seconds}s")

    return " ".join(parts) if parts else "0s"


def format_duration(delta: timedelta) -> str:
    """Format timedelta to human-readable string like "1d" or "2h 30m"."""
    return format_uptime(int(delta.total_seconds()))


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """Truncate text to maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix


def find_role(guild: discord.Guild, name: str) -> Optional[discord.Role]:
    return discord.utils.get(guild.roles, name=name)


def find_text_channel(guild: discord.Guild, name: str) -> Optional[discord.TextChannel]:
    return discord.utils.get(guild.text_channels, name=name)


def is_staff(member: discord.abc.User) -> bool:
    """Staff are members who can manage messages or administer the guild."""
    if not isinstance(member, discord.Member):
        return False
    permissions = member.guild_permissions
    return permissions.manage_messages or permissions.administrator
