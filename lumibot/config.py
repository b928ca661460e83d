import base64
import logging
import math
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_DOMAINS = (
    "lumist.ai",
    "www.lumist.ai",
    "app.lumist.ai",
    "collegeboard.org",
    "www.collegeboard.org",
    "khanacademy.org",
    "www.khanacademy.org",
    "youtube.com",
    "www.youtube.com",
    "youtu.be",
    "discord.com",
    "discord.gg",
    "imgur.com",
    "i.imgur.com",
    "gyazo.com",
    "tenor.com",
    "giphy.com",
)

AUTOMOD_CHECKS = ("spam", "mentions", "duplicates", "links", "banned_words", "raid")


def _get_decryption_key() -> Optional[bytes]:
    """Return the Fernet key from ENCRYPTION_KEY or ENCRYPTION_KEY_FILE, if any."""
    key_str = os.getenv("ENCRYPTION_KEY")
    if key_str:
        return key_str.encode()

    key_file = os.getenv("ENCRYPTION_KEY_FILE", ".encryption_key")
    if os.path.exists(key_file):
        try:
            with open(key_file, "rb") as f:
                return f.read().strip()
        except OSError as e:
            logger.warning("Failed to read encryption key file: %s", e)
    return None


def load_environment() -> None:
    """Load `.env`, transparently decrypting `.env.encrypted` when present.

    The encrypted file is only used when no plain `.env` exists and a key is
    configured.
    """
    env_file = os.getenv("ENV_FILE", ".env")
    encrypted_path = Path(".env.encrypted")
    if not Path(env_file).exists() and encrypted_path.exists():
        key = _get_decryption_key()
        if key is None:
            logger.warning("Found .env.encrypted but no ENCRYPTION_KEY is configured")
        else:
            try:
                decrypted = Fernet(key).decrypt(encrypted_path.read_bytes())
            except (InvalidToken, ValueError) as e:
                logger.warning("Found .env.encrypted but failed to decrypt: %s", e)
            else:
                with tempfile.NamedTemporaryFile(mode="w", delete=False, suffix=".env") as tmp:
                    tmp.write(decrypted.decode())
                    tmp_path = tmp.name
                try:
                    load_dotenv(tmp_path, override=True)
                    logger.info("Loaded encrypted environment from %s", encrypted_path)
                finally:
                    os.unlink(tmp_path)
                return

    load_dotenv(env_file)


def _decrypt_value(encrypted_value: str) -> Optional[str]:
    """Decrypt an `encrypted:<base64>` environment value."""
    key = _get_decryption_key()
    if key is None:
        logger.warning("Encrypted value detected but no decryption key available")
        return None

    encrypted_data = encrypted_value[len("encrypted:"):]
    try:
        encrypted_bytes = base64.urlsafe_b64decode(encrypted_data.encode())
        return Fernet(key).decrypt(encrypted_bytes).decode()
    except (InvalidToken, ValueError) as e:
        logger.error("Failed to decrypt value: %s", e)
        return None


def _get_env(name: str, *, required: bool = False, default: Optional[str] = None) -> Optional[str]:
    """Read an environment variable and optionally enforce its presence.

    Values prefixed with "encrypted:" are decrypted with the configured key.
    """
    value = os.getenv(name, default)
    if value is not None and value.strip() == "":
        value = default
    if value is None and required:
        raise RuntimeError(f"Missing required environment variable: {name}")

    if value and value.startswith("encrypted:"):
        decrypted = _decrypt_value(value)
        if decrypted is None:
            raise RuntimeError(f"Failed to decrypt encrypted environment variable: {name}")
        return decrypted

    return value


def _parse_optional_int(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer value: {raw}") from exc


def _parse_int(name: str, default: int) -> int:
    value = _parse_optional_int(_get_env(name))
    return default if value is None else value


def _parse_float(name: str, default: float) -> float:
    raw = _get_env(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid number value for {name}: {raw}") from exc
    if not math.isfinite(value):
        raise RuntimeError(f"Invalid number value for {name}: {raw}")
    return value


def _parse_csv(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _parse_lines(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [line.strip() for line in raw.splitlines() if line.strip()]


@dataclass(frozen=True)
class AutoModSettings:
    """Thresholds for the auto-moderation checks and raid guard."""

    spam_max_messages: int = 5
    spam_window_seconds: float = 5.0
    max_mentions: int = 5
    duplicate_max: int = 3
    duplicate_window_seconds: float = 60.0
    allowed_domains: tuple[str, ...] = DEFAULT_ALLOWED_DOMAINS
    banned_words: tuple[str, ...] = ()
    banned_patterns: tuple[str, ...] = ()
    raid_join_threshold: int = 10
    raid_window_seconds: float = 60.0
    raid_lockdown_minutes: float = 5.0
    warning_expire_days: float = 30.0
    disabled_checks: frozenset[str] = field(default_factory=frozenset)

    def is_enabled(self, check: str) -> bool:
        return check not in self.disabled_checks

    @classmethod
    def from_env(cls) -> "AutoModSettings":
        allowed = _parse_csv(_get_env("AUTOMOD_ALLOWED_DOMAINS"))
        return cls(
            spam_max_messages=_parse_int("AUTOMOD_SPAM_MAX_MESSAGES", 5),
            spam_window_seconds=_parse_float("AUTOMOD_SPAM_WINDOW_SECONDS", 5.0),
            max_mentions=_parse_int("AUTOMOD_MAX_MENTIONS", 5),
            duplicate_max=_parse_int("AUTOMOD_DUPLICATE_MAX", 3),
            duplicate_window_seconds=_parse_float("AUTOMOD_DUPLICATE_WINDOW_SECONDS", 60.0),
            allowed_domains=tuple(d.lower() for d in allowed) if allowed else DEFAULT_ALLOWED_DOMAINS,
            banned_words=tuple(_parse_csv(_get_env("AUTOMOD_BANNED_WORDS"))),
            banned_patterns=tuple(_parse_lines(_get_env("AUTOMOD_BANNED_PATTERNS"))),
            raid_join_threshold=_parse_int("RAID_JOIN_THRESHOLD", 10),
            raid_window_seconds=_parse_float("RAID_WINDOW_SECONDS", 60.0),
            raid_lockdown_minutes=_parse_float("RAID_LOCKDOWN_MINUTES", 5.0),
            warning_expire_days=_parse_float("WARNING_EXPIRE_DAYS", 30.0),
            disabled_checks=frozenset(c.lower() for c in _parse_csv(_get_env("AUTOMOD_DISABLED"))),
        )

    def validate(self) -> list[str]:
        errors = []
        if self.spam_max_messages < 1:
            errors.append("AUTOMOD_SPAM_MAX_MESSAGES must be >= 1")
        if self.spam_window_seconds <= 0:
            errors.append("AUTOMOD_SPAM_WINDOW_SECONDS must be > 0")
        if self.max_mentions < 0:
            errors.append("AUTOMOD_MAX_MENTIONS must be >= 0")
        if self.duplicate_max < 1:
            errors.append("AUTOMOD_DUPLICATE_MAX must be >= 1")
        if self.duplicate_window_seconds <= 0:
            errors.append("AUTOMOD_DUPLICATE_WINDOW_SECONDS must be > 0")
        if self.raid_join_threshold < 1:
            errors.append("RAID_JOIN_THRESHOLD must be >= 1")
        if self.raid_window_seconds <= 0:
            errors.append("RAID_WINDOW_SECONDS must be > 0")
        if self.raid_lockdown_minutes <= 0:
            errors.append("RAID_LOCKDOWN_MINUTES must be > 0")
        if self.warning_expire_days <= 0:
            errors.append("WARNING_EXPIRE_DAYS must be > 0")
        for pattern in self.banned_patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                errors.append(f"AUTOMOD_BANNED_PATTERNS has an invalid pattern {pattern!r}: {e}")
        unknown = self.disabled_checks - set(AUTOMOD_CHECKS)
        if unknown:
            errors.append(f"AUTOMOD_DISABLED has unknown checks: {', '.join(sorted(unknown))}")
        return errors


@dataclass(frozen=True)
class Settings:
    bot_token: str
    guild_id: Optional[int] = None
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    mod_log_channel: str = "mod-logs"
    welcome_channel: str = "welcome"
    introductions_channel: str = "introductions"
    moderator_role: str = "🛡️ Moderator"
    analytics_url: Optional[str] = None
    analytics_api_key: Optional[str] = None
    automod: AutoModSettings = field(default_factory=AutoModSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            bot_token=_get_env("BOT_TOKEN", required=True),
            guild_id=_parse_optional_int(_get_env("GUILD_ID")),
            api_host=_get_env("API_HOST", default="0.0.0.0"),
            api_port=_parse_int("PORT", 3000),
            mod_log_channel=_get_env("MOD_LOG_CHANNEL", default="mod-logs"),
            welcome_channel=_get_env("WELCOME_CHANNEL", default="welcome"),
            introductions_channel=_get_env("INTRODUCTIONS_CHANNEL", default="introductions"),
            moderator_role=_get_env("MODERATOR_ROLE", default="🛡️ Moderator"),
            analytics_url=_get_env("ANALYTICS_URL"),
            analytics_api_key=_get_env("ANALYTICS_API_KEY"),
            automod=AutoModSettings.from_env(),
        )
        logger.debug("Loaded settings for guild %s", settings.guild_id)
        return settings

    def validate(self) -> list[str]:
        """Validate settings and return list of errors (empty if valid)."""
        errors = []
        if not self.bot_token or self.bot_token == "replace-me":
            errors.append("BOT_TOKEN is required and must not be 'replace-me'")
        if not (1 <= self.api_port <= 65535):
            errors.append(f"PORT must be between 1 and 65535 (got {self.api_port})")
        if self.analytics_api_key and not self.analytics_url:
            errors.append("ANALYTICS_URL is required when ANALYTICS_API_KEY is set")
        errors.extend(self.automod.validate())
        return errors

    def disabled_features(self) -> list[str]:
        """Names of optional features switched off by missing configuration."""
        disabled = []
        if self.guild_id is None:
            disabled.append("guild command sync (GUILD_ID unset, syncing globally)")
        if not self.analytics_url:
            disabled.append("analytics mirror (ANALYTICS_URL unset)")
        disabled.extend(f"auto-mod check '{check}'" for check in sorted(self.automod.disabled_checks))
        return disabled


def validate_settings(settings: Settings) -> None:
    """Validate settings and raise RuntimeError if invalid."""
    errors = settings.validate()
    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors)
        logger.error(error_msg)
        raise RuntimeError(error_msg)


def load_settings() -> Settings:
    load_environment()
    return Settings.from_env()
