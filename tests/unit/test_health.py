"""
Unit tests for health report sections
"""

import sys
from types import SimpleNamespace

import pytest

from peer_relay.api import health

pytestmark = pytest.mark.unit

REDIS_URL = "redis://localhost:6379/0"


def _fake_redis(ping):
    calls = []

    def from_url(url, **kwargs):
        calls.append(url)
        return SimpleNamespace(ping=ping)

    return SimpleNamespace(from_url=from_url), calls


class TestStorageHealth:
    def test_memory_storage_is_healthy(self):
        storage = health.check_storage_health(None)

        assert storage["type"] == "memory"
        assert storage["healthy"] is True

    def test_reachable_redis_is_healthy(self, monkeypatch):
        fake, calls = _fake_redis(lambda: True)
        monkeypatch.setitem(sys.modules, "redis", fake)

        storage = health.check_storage_health(REDIS_URL)

        assert calls == [REDIS_URL]
        assert storage == {
            "type": "redis",
            "healthy": True,
            "message": "Redis connection successful",
        }

    def test_unreachable_redis_is_unhealthy(self, monkeypatch):
        def refuse():
            raise ConnectionError("connection refused")

        fake, _ = _fake_redis(refuse)
        monkeypatch.setitem(sys.modules, "redis", fake)

        storage = health.check_storage_health(REDIS_URL)

        assert storage["type"] == "redis"
        assert storage["healthy"] is False
        assert "connection refused" in storage["message"]


class TestRateLimitingSection:
    def test_configured_redis_url_is_checked(self, monkeypatch):
        fake, calls = _fake_redis(lambda: True)
        monkeypatch.setitem(sys.modules, "redis", fake)
        monkeypatch.setattr(health, "get_limiter_storage", lambda: REDIS_URL)

        section = health.rate_limiting_section()

        assert calls == [REDIS_URL]
        assert section["status"] == "enabled"
        assert section["storage"]["type"] == "redis"

    def test_unreachable_storage_degrades_section(self, monkeypatch):
        def refuse():
            raise ConnectionError("connection refused")

        fake, _ = _fake_redis(refuse)
        monkeypatch.setitem(sys.modules, "redis", fake)
        monkeypatch.setattr(health, "get_limiter_storage", lambda: REDIS_URL)

        section = health.rate_limiting_section()

        assert section["status"] == "degraded"
        assert section["storage"]["healthy"] is False
