"""Composition root: builds and runs one engine instance."""

import structlog

from sentence_builder.config import Settings
from sentence_builder.content.generator import OpenAIContentProvider
from sentence_builder.content.loader import ContentLoader
from sentence_builder.content.provider import ContentProvider, StaticContentProvider
from sentence_builder.models.snapshot import initial_snapshot
from sentence_builder.state.effects import AchievementUnlocked, Effect
from sentence_builder.state.history import TemporalHistory
from sentence_builder.state.store import SnapshotStore
from sentence_builder.storage.backends import JsonFileBackend, MemoryBackend, PersistenceAdapter
from sentence_builder.storage.persister import Persister
from sentence_builder.storage.projection import rehydrate
from sentence_builder.sync.coordinator import SyncCoordinator
from sentence_builder.sync.remote import RemoteSyncAPI, WebSocketSyncClient

logger = structlog.get_logger()


class Engine:
    """Store plus its persistence, sync and content collaborators.

    Args:
        settings: Application settings.
        adapter: Persistence adapter; JSON files under ``settings.data_dir``
            with a memory fallback if omitted.
        remote: Remote sync API; a WebSocket client when ``settings.sync_url``
            is set, otherwise sync is disabled.
        content: Content collaborator; OpenAI-backed when an API key is
            configured, otherwise the static tables.
    """

    def __init__(
        self,
        settings: Settings,
        adapter: PersistenceAdapter | None = None,
        remote: RemoteSyncAPI | None = None,
        content: ContentProvider | None = None,
    ):
        self.settings = settings
        self.adapter = adapter or PersistenceAdapter(
            JsonFileBackend(settings.data_dir), MemoryBackend()
        )
        if remote is None and settings.sync_url:
            remote = WebSocketSyncClient(settings.sync_url, api_key=settings.sync_token)
        if content is None:
            content = (
                OpenAIContentProvider(settings.openai_api_key, model=settings.content_model)
                if settings.openai_api_key
                else StaticContentProvider()
            )

        base = initial_snapshot(credits=settings.generation_credits)
        self.store = SnapshotStore(
            initial=rehydrate(self.adapter, base),
            history=TemporalHistory(settings.history_limit),
            recent_achievements_limit=settings.recent_achievements_limit,
        )
        self.persister = Persister(self.adapter, debounce_seconds=settings.sync_debounce_seconds)
        self._detach_persister = self.persister.attach(self.store)
        self.store.on_effect(self._log_effect)

        self.content = ContentLoader(self.store, content, self.adapter)
        self.sync: SyncCoordinator | None = None
        if remote is not None:
            self.sync = SyncCoordinator(
                self.store,
                remote,
                timeout_seconds=settings.remote_timeout_seconds,
                interval_seconds=settings.sync_interval_seconds,
            )

    async def start(self) -> None:
        logger.info(
            "engine_starting",
            pending=len(self.store.get_snapshot().offline.queue),
            sync_enabled=self.sync is not None,
        )
        await self.content.load()
        if self.sync is not None:
            await self.sync.start()

    async def stop(self) -> None:
        if self.sync is not None:
            await self.sync.stop()
            disconnect = getattr(self.sync.remote, "disconnect", None)
            if disconnect is not None:
                await disconnect()
        self.store.close()
        await self.persister.flush()
        self._detach_persister()
        logger.info("engine_stopped")

    @staticmethod
    def _log_effect(effect: Effect) -> None:
        if isinstance(effect, AchievementUnlocked):
            logger.info("achievement_unlocked", achievement_id=effect.achievement_id)
