"""Pytest configuration and shared fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from lumibot.automod import AutoModState
from lumibot.config import AutoModSettings, Settings

from .helpers import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def automod_settings():
    return AutoModSettings(banned_words=("badword",))


@pytest.fixture
def minimal_settings(automod_settings):
    """Create minimal settings for testing."""
    return Settings(bot_token="test_token", guild_id=111, automod=automod_settings)


@pytest.fixture
def mock_coordinator(minimal_settings, clock):
    """Coordinator with real moderation state and a mocked analytics sink."""
    coordinator = MagicMock()
    coordinator.settings = minimal_settings
    coordinator.automod = AutoModState(minimal_settings.automod, clock=clock)
    coordinator.event_sink = MagicMock()
    coordinator.event_sink.record = AsyncMock(return_value=True)
    return coordinator
