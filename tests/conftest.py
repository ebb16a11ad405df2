"""Shared test fixtures and configuration.

Sets up fake environment variables so family_app.config doesn't sys.exit(),
and provides common fixtures like a temp snapshot DB and a seeded store.
"""

import os

# Patch env vars BEFORE any family_app imports
os.environ.setdefault("DATA_MODE", "local")
os.environ.setdefault("API_BASE_URL", "")
os.environ.setdefault("STORE_PATH", ":memory:")
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:fake-token-for-tests")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_family_app.db")


@pytest.fixture
def snapshot_db(tmp_db_path):
    """Return a SnapshotDB instance backed by a temp file."""
    from family_app.data.db import SnapshotDB
    return SnapshotDB(db_path=tmp_db_path)


@pytest.fixture
def store(snapshot_db):
    """Return an EntityStore loaded from an empty snapshot, i.e. the seed."""
    from family_app.data.store import EntityStore
    entity_store = EntityStore(snapshot_db)
    entity_store.load()
    return entity_store


@pytest.fixture
def local_source(store):
    from family_app.adapters.local_source import LocalDataSource
    return LocalDataSource(store)


@pytest.fixture
def query_client():
    from family_app.core.query_client import QueryClient
    return QueryClient()


@pytest.fixture
def local_settings(tmp_db_path):
    from family_app.config import Settings
    return Settings(DATA_MODE="local", STORE_PATH=tmp_db_path,
                    TELEGRAM_BOT_TOKEN="123456:fake-token-for-tests")


@pytest.fixture
def remote_settings():
    from family_app.config import Settings
    return Settings(DATA_MODE="remote", API_BASE_URL="https://family.test/api/",
                    API_RETRY_BACKOFF_SECONDS=0,
                    TELEGRAM_BOT_TOKEN="123456:fake-token-for-tests")


@pytest.fixture
def local_app(local_settings, store):
    """A local-mode FamilyApp over the seeded store, signed in as user 1."""
    from family_app.core.app import create_app
    return create_app(local_settings, store=store)
