"""Tests for API endpoints."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from lumibot.api import create_app


@pytest.fixture
def api_coordinator(mock_coordinator):
    mock_coordinator.get_health_stats = MagicMock(return_value={
        "status": "ok",
        "bot": "Lumist Bot#1234",
        "uptime": 3600.0,
        "uptime_formatted": "1h",
        "discord_ready": True,
        "error_count": 0,
        "timestamp": "2024-01-01T00:00:00+00:00",
    })
    mock_coordinator.active_checks = MagicMock(return_value=["banned_words", "links"])
    return mock_coordinator


@pytest.fixture
def client(api_coordinator, minimal_settings):
    """Create test client."""
    return TestClient(create_app(api_coordinator, minimal_settings))


@pytest.mark.parametrize("path", ["/", "/health"])
def test_health_endpoint(client, path):
    response = client.get(path)
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "bot": "Lumist Bot#1234",
        "uptime": 3600.0,
        "timestamp": "2024-01-01T00:00:00+00:00",
    }


def test_moderation_stats(client, api_coordinator):
    api_coordinator.automod.violations["spam"] += 2
    api_coordinator.automod.actions["warn"] += 1

    response = client.get("/api/moderation/stats")
    assert response.status_code == 200
    data = response.json()
    assert data["violations"] == {"spam": 2}
    assert data["actions"] == {"warn": 1}
    assert data["lockdown_active"] is False
    assert data["active_checks"] == ["banned_words", "links"]
    assert data["guild_id"] == 111


def test_moderation_stats_rate_limited(client):
    statuses = [client.get("/api/moderation/stats").status_code for _ in range(61)]
    assert statuses[:60] == [200] * 60
    assert statuses[60] == 429


def test_rate_limit_is_per_app(api_coordinator, minimal_settings):
    apps = [create_app(api_coordinator, minimal_settings) for _ in range(3)]
    client = TestClient(apps[-1])
    statuses = [client.get("/api/moderation/stats").status_code for _ in range(60)]
    assert statuses == [200] * 60
    assert apps[0].state.limiter is not apps[-1].state.limiter
