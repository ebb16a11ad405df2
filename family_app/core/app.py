"""
Family App — Application lifecycle.

FamilyApp wires settings, store, data source, query client and notifier
together. Nothing is a module global: two apps (say, one local and one
remote) can live side by side in a single process.

    app = create_app(settings)
    await app.start()
    tasks = app.tasks("f1")
    await tasks.load()
    await tasks.complete("t1")
    await app.close()
"""

from __future__ import annotations

import logging

from family_app.adapters.source_factory import create_data_source
from family_app.config import DataMode, Settings
from family_app.core.notifications import Notifier
from family_app.core.queries import (
    CategoriesQuery,
    CurrentUserQuery,
    EventsQuery,
    FamiliesQuery,
    FriendsQuery,
    TasksQuery,
    UserProfileQuery,
    WishlistQuery,
)
from family_app.core.query_client import QueryClient
from family_app.data.models import TelegramIdentity, User
from family_app.data.store import EntityStore
from family_app.integrations.telegram_webapp import verify_init_data
from family_app.ports.data_port import DataSource, InvalidInputError

logger = logging.getLogger(__name__)


class FamilyApp:
    """One running instance of the data layer."""

    def __init__(
        self,
        settings: Settings,
        source: DataSource,
        store: EntityStore | None = None,
        notifier: Notifier | None = None,
        client: QueryClient | None = None,
    ) -> None:
        self.settings = settings
        self.source = source
        self.store = store
        self.notifier = notifier
        self.client = client or QueryClient()
        self.current_user = CurrentUserQuery(self.client, source, store, notifier)

    @property
    def mode(self) -> DataMode:
        return self.settings.DATA_MODE

    @property
    def user_id(self) -> str | None:
        return self.current_user.user_id

    def _require_user(self, user_id: str | None) -> str:
        uid = user_id or self.user_id
        if uid is None:
            raise InvalidInputError("No signed-in user")
        return uid

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> User | None:
        """Load the current user, if one is known."""
        logger.info("Family app starting in %s mode", self.mode.value)
        return await self.current_user.load()

    async def sign_in(self, init_data: str) -> User | None:
        """Verify Telegram init data and upsert the user it names."""
        identity = verify_init_data(
            init_data,
            self.settings.TELEGRAM_BOT_TOKEN,
            self.settings.INIT_DATA_MAX_AGE_SECONDS,
        )
        return await self.sign_in_identity(identity)

    async def sign_in_identity(self, identity: TelegramIdentity) -> User | None:
        return await self.current_user.sign_in(identity)

    def reset(self) -> None:
        """Restore local seed data and drop every cached query."""
        if self.store is None:
            raise RuntimeError("reset is only available in local mode")
        self.store.reset()
        self.current_user.user_id = self.store.current_user_id
        self.client.clear()

    async def close(self) -> None:
        close = getattr(self.source, "close", None)
        if close is not None:
            await close()
        logger.info("Family app closed")

    # ------------------------------------------------------------------
    # Feature queries
    # ------------------------------------------------------------------

    def families(self, user_id: str | None = None) -> FamiliesQuery:
        return FamiliesQuery(
            self.client, self.source, self._require_user(user_id), self.store, self.notifier
        )

    def tasks(self, family_id: str, user_id: str | None = None) -> TasksQuery:
        return TasksQuery(
            self.client, self.source, family_id, self._require_user(user_id),
            self.store, self.notifier,
        )

    def categories(self) -> CategoriesQuery:
        return CategoriesQuery(self.client, self.source, self.store, self.notifier)

    def events(self, user_id: str | None = None) -> EventsQuery:
        return EventsQuery(
            self.client, self.source, self._require_user(user_id), self.store, self.notifier
        )

    def wishlist(self, user_id: str | None = None, viewer_id: str | None = None) -> WishlistQuery:
        viewer = self._require_user(viewer_id)
        return WishlistQuery(
            self.client, self.source, user_id or viewer, viewer, self.store, self.notifier
        )

    def friends(self, user_id: str | None = None) -> FriendsQuery:
        return FriendsQuery(
            self.client, self.source, self._require_user(user_id), self.store, self.notifier
        )

    def user_profile(self, user_id: str, viewer_id: str | None = None) -> UserProfileQuery:
        return UserProfileQuery(
            self.client, self.source, user_id, self._require_user(viewer_id),
            self.store, self.notifier,
        )


def create_app(
    settings: Settings,
    store: EntityStore | None = None,
    source: DataSource | None = None,
) -> FamilyApp:
    """Build a FamilyApp for settings.DATA_MODE.

    Local mode loads (or seeds) the entity store from STORE_PATH unless a
    store is passed in. Notifications are wired only in remote mode with
    NOTIFICATIONS_ENABLED and a bot token.
    """
    if settings.DATA_MODE is DataMode.LOCAL and store is None and source is None:
        from family_app.data.db import SnapshotDB

        store = EntityStore(SnapshotDB(settings.STORE_PATH))
        store.load()
    if settings.DATA_MODE is DataMode.REMOTE:
        store = None

    source = source or create_data_source(settings, store)

    notifier = None
    if (
        settings.DATA_MODE is DataMode.REMOTE
        and settings.NOTIFICATIONS_ENABLED
        and settings.TELEGRAM_BOT_TOKEN
    ):
        from family_app.adapters.telegram_notifier import TelegramNotifier

        notifier = Notifier(TelegramNotifier.from_token(settings.TELEGRAM_BOT_TOKEN), source)
        logger.info("Telegram notifications enabled")

    return FamilyApp(settings, source, store=store, notifier=notifier)
