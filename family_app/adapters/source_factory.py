"""Data source factory — creates the right adapter for the data mode."""

from __future__ import annotations

from typing import TYPE_CHECKING

from family_app.config import DataMode, Settings
from family_app.ports.data_port import DataSource

if TYPE_CHECKING:
    from family_app.data.store import EntityStore


def create_data_source(settings: Settings, store: EntityStore | None = None) -> DataSource:
    """Return the data source matching settings.DATA_MODE.

    Args:
        settings: Resolved configuration. The mode is read once, here.
        store: Entity store for local mode. Built from STORE_PATH if omitted.
    """
    if settings.DATA_MODE is DataMode.LOCAL:
        from family_app.adapters.local_source import LocalDataSource

        if store is None:
            from family_app.data.db import SnapshotDB
            from family_app.data.store import EntityStore

            store = EntityStore(SnapshotDB(settings.STORE_PATH))
            store.load()
        return LocalDataSource(store)

    if settings.DATA_MODE is DataMode.REMOTE:
        from family_app.adapters.rest_source import RestDataSource

        return RestDataSource(
            base_url=settings.API_BASE_URL,
            timeout=settings.API_TIMEOUT_SECONDS,
            max_retries=settings.API_MAX_RETRIES,
            retry_backoff=settings.API_RETRY_BACKOFF_SECONDS,
        )

    raise ValueError(f"Unknown DATA_MODE: {settings.DATA_MODE!r}")
