"""
Global test configuration and fixtures for Peer Relay

This module provides shared test fixtures and configuration that can be used
across all test modules. It includes database setup, store and session
fixtures, and the application client.
"""

import os
import tempfile
from pathlib import Path

# Keep the application's import-time database out of the working tree
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite:///{Path(tempfile.gettempdir()) / 'peer_relay_test_app.db'}",
)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from peer_relay.api.signaling import get_store
from peer_relay.core.config import settings
from peer_relay.core.limiter import limiter
from peer_relay.db.base import Base
from peer_relay.main import app
from peer_relay.services.mailbox import MailboxStore
from peer_relay.services.session import RelaySession

from tests.utils.helpers import TEST_SECRET_KEY, FakeClock


# ============================================================================
# Test Environment Setup
# ============================================================================

@pytest.fixture(scope="function")
def test_settings():
    """Override settings for testing; tests may change them further"""
    test_overrides = {
        "SECRET_KEY": TEST_SECRET_KEY,
        "PEER_API_KEY": None,
        "PEER_POLL_INTERVAL": 4500,
        "AUTH_TIMEOUT_SECONDS": 10.0,
        "DEV_MODE": True,
    }

    original_values = {key: getattr(settings, key) for key in test_overrides}
    for key, value in test_overrides.items():
        setattr(settings, key, value)

    yield settings

    for key, value in original_values.items():
        setattr(settings, key, value)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def test_db():
    """Create a test database for each test function"""
    db_fd, db_path = tempfile.mkstemp(suffix='.db')
    test_db_url = f"sqlite:///{db_path}"

    engine = create_engine(test_db_url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    yield TestingSessionLocal

    engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture(scope="function")
def store(test_db):
    """Mailbox store backed by the per-test database"""
    return MailboxStore(test_db)


@pytest.fixture(scope="function")
def clock():
    return FakeClock()


@pytest.fixture(scope="function")
def make_session(store, clock):
    """Factory for sessions sharing the test store and clock"""
    def _make(**kwargs):
        kwargs.setdefault("clock", clock)
        return RelaySession(store, TEST_SECRET_KEY, **kwargs)
    return _make


# ============================================================================
# Application Client Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def client(test_settings, store):
    """Create FastAPI test client"""
    app.dependency_overrides[get_store] = lambda: store
    limiter.reset()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
