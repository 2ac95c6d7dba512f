"""
Tests for application startup and shutdown.

Startup must refuse to serve traffic when the permission catalog or the
settings are broken, and must start and stop the expiry sweeper cleanly.
"""

import threading

import pytest
from fastapi.testclient import TestClient

from main import app
from nexus.config.settings import get_settings
from nexus.constants.permissions import ROLE_PERMISSIONS, Permission, Role
from nexus.database import session as db_session_module
from nexus.database.session import get_engine, reset_engine
from nexus.db_base import Base
from nexus.jobs import expiry_sweeper
from nexus.platform.errors import ConfigurationError


@pytest.fixture
def fresh_settings():
    """Drop cached settings and engine before and after the test."""
    get_settings.cache_clear()
    reset_engine()
    yield
    get_settings.cache_clear()
    reset_engine()


# =============================================================================
# Startup refusal
# =============================================================================

class TestStartupRefusal:

    def test_drifted_admin_grant_aborts_startup(self, monkeypatch, fresh_settings):
        monkeypatch.setitem(
            ROLE_PERMISSIONS,
            Role.ADMIN,
            frozenset(Permission) - {Permission.MANAGE_SUBSCRIPTIONS},
        )

        with pytest.raises(ConfigurationError, match="manage_subscriptions"):
            with TestClient(app):
                pass

    def test_malformed_setting_aborts_startup(self, monkeypatch, fresh_settings):
        monkeypatch.setenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "0")

        with pytest.raises(ConfigurationError, match="must be positive"):
            with TestClient(app):
                pass

    def test_intact_catalog_starts(self, monkeypatch, fresh_settings):
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with TestClient(app) as client:
            assert client.get("/health").json() == {"status": "ok"}


# =============================================================================
# Sweeper wiring
# =============================================================================

class TestSweeperLifecycle:

    def test_sweeper_runs_and_stops_with_app(self, monkeypatch, tmp_path, fresh_settings):
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'nexus.db'}")
        monkeypatch.setenv("EXPIRY_SWEEP_ENABLED", "true")
        monkeypatch.setenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "60")
        monkeypatch.setenv("EXPIRY_SWEEP_BATCH_SIZE", "25")
        Base.metadata.create_all(bind=get_engine())

        swept = threading.Event()
        calls = []
        real_sweep_once = expiry_sweeper.sweep_once

        def recording_sweep(session_factory, clock, batch_size):
            stats = real_sweep_once(session_factory, clock, batch_size)
            calls.append((batch_size, stats))
            swept.set()
            return stats

        monkeypatch.setattr(expiry_sweeper, "sweep_once", recording_sweep)

        with TestClient(app) as client:
            assert swept.wait(timeout=10)
            assert client.get("/health").status_code == 200

        assert calls[0] == (25, {"scanned": 0, "expired": 0, "skipped": 0, "errors": 0})
        # Shutdown cut the interval wait short before a second sweep
        assert len(calls) == 1
        assert db_session_module._engine is None

    def test_sweeper_not_started_when_disabled(self, monkeypatch, tmp_path, fresh_settings):
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'nexus.db'}")
        monkeypatch.setenv("EXPIRY_SWEEP_ENABLED", "false")
        calls = []
        monkeypatch.setattr(expiry_sweeper, "sweep_once", lambda *args: calls.append(args))

        with TestClient(app) as client:
            assert client.get("/health").status_code == 200

        assert calls == []
