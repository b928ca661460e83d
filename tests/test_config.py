"""Tests for environment-driven settings."""

import base64

import pytest
from cryptography.fernet import Fernet

from lumibot.config import (
    DEFAULT_ALLOWED_DOMAINS,
    AutoModSettings,
    Settings,
    validate_settings,
)

ENV_VARS = (
    "BOT_TOKEN",
    "GUILD_ID",
    "PORT",
    "ANALYTICS_URL",
    "ANALYTICS_API_KEY",
    "AUTOMOD_ALLOWED_DOMAINS",
    "AUTOMOD_BANNED_WORDS",
    "AUTOMOD_BANNED_PATTERNS",
    "AUTOMOD_DISABLED",
    "AUTOMOD_SPAM_MAX_MESSAGES",
    "RAID_JOIN_THRESHOLD",
    "AUTOMOD_SPAM_WINDOW_SECONDS",
    "RAID_LOCKDOWN_MINUTES",
    "WARNING_EXPIRE_DAYS",
    "ENCRYPTION_KEY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ENCRYPTION_KEY_FILE", str(tmp_path / "missing.key"))


def test_defaults(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "abc")
    settings = Settings.from_env()

    assert settings.bot_token == "abc"
    assert settings.guild_id is None
    assert settings.api_port == 3000
    assert settings.mod_log_channel == "mod-logs"
    assert settings.automod.spam_max_messages == 5
    assert settings.automod.allowed_domains == DEFAULT_ALLOWED_DOMAINS
    assert settings.automod.raid_join_threshold == 10
    assert settings.validate() == []


def test_missing_token_raises():
    with pytest.raises(RuntimeError, match="BOT_TOKEN"):
        Settings.from_env()


def test_overrides(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "abc")
    monkeypatch.setenv("GUILD_ID", "123456")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("AUTOMOD_ALLOWED_DOMAINS", "Lumist.ai, example.org")
    monkeypatch.setenv("AUTOMOD_BANNED_WORDS", "scam,spam link")
    monkeypatch.setenv("AUTOMOD_BANNED_PATTERNS", "free\\s+nitro\n\nsteam.*gift")
    monkeypatch.setenv("AUTOMOD_DISABLED", "Duplicates,raid")
    monkeypatch.setenv("RAID_JOIN_THRESHOLD", "20")

    settings = Settings.from_env()
    automod = settings.automod
    assert settings.guild_id == 123456
    assert settings.api_port == 8080
    assert automod.allowed_domains == ("lumist.ai", "example.org")
    assert automod.banned_words == ("scam", "spam link")
    assert automod.banned_patterns == ("free\\s+nitro", "steam.*gift")
    assert automod.disabled_checks == frozenset({"duplicates", "raid"})
    assert not automod.is_enabled("raid")
    assert automod.is_enabled("spam")
    assert automod.raid_join_threshold == 20


def test_invalid_integer(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "abc")
    monkeypatch.setenv("GUILD_ID", "not-a-number")
    with pytest.raises(RuntimeError, match="Invalid integer"):
        Settings.from_env()


def test_fractional_durations(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "abc")
    monkeypatch.setenv("WARNING_EXPIRE_DAYS", "0.5")
    monkeypatch.setenv("RAID_LOCKDOWN_MINUTES", "2.5")
    monkeypatch.setenv("AUTOMOD_SPAM_WINDOW_SECONDS", "7")
    automod = Settings.from_env().automod
    assert automod.warning_expire_days == 0.5
    assert automod.raid_lockdown_minutes == 2.5
    assert automod.spam_window_seconds == 7.0
    assert automod.validate() == []


@pytest.mark.parametrize("raw", ["abc", "nan", "inf"])
def test_invalid_duration(monkeypatch, raw):
    monkeypatch.setenv("BOT_TOKEN", "abc")
    monkeypatch.setenv("WARNING_EXPIRE_DAYS", raw)
    with pytest.raises(RuntimeError, match="Invalid number value for WARNING_EXPIRE_DAYS"):
        Settings.from_env()


def test_encrypted_values(monkeypatch):
    key = Fernet.generate_key()
    token = Fernet(key).encrypt(b"secret-token")
    monkeypatch.setenv("ENCRYPTION_KEY", key.decode())
    monkeypatch.setenv("BOT_TOKEN", "encrypted:" + base64.urlsafe_b64encode(token).decode())

    assert Settings.from_env().bot_token == "secret-token"


def test_encrypted_value_without_key(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "encrypted:Zm9v")
    with pytest.raises(RuntimeError, match="decrypt"):
        Settings.from_env()


def test_validation_errors():
    settings = Settings(
        bot_token="replace-me",
        api_port=70000,
        automod=AutoModSettings(
            spam_max_messages=0,
            banned_patterns=("(unclosed",),
            disabled_checks=frozenset({"typos"}),
        ),
    )
    errors = settings.validate()
    assert len(errors) == 5
    with pytest.raises(RuntimeError, match="Configuration validation failed"):
        validate_settings(settings)


def test_disabled_features():
    settings = Settings(bot_token="abc", automod=AutoModSettings(disabled_checks=frozenset({"links"})))
    disabled = settings.disabled_features()
    assert any("GUILD_ID" in item for item in disabled)
    assert any("ANALYTICS_URL" in item for item in disabled)
    assert "auto-mod check 'links'" in disabled
