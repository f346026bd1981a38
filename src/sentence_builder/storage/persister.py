"""Debounced background commits of the snapshot projection."""

import asyncio
from collections.abc import Callable

import structlog

from sentence_builder.models.snapshot import Snapshot
from sentence_builder.state.store import SnapshotStore
from sentence_builder.storage.backends import PersistenceAdapter
from sentence_builder.storage.projection import (
    PENDING_KEY,
    PROJECTION_KEY,
    project,
    project_pending,
)

logger = structlog.get_logger()


def _persisted_changed(new: Snapshot, old: Snapshot) -> bool:
    """True when a section that ends up in storage changed."""
    return (
        new.user is not old.user
        or new.learning.progress is not old.learning.progress
        or new.learning.adaptive is not old.learning.adaptive
        or new.learning.current_pattern != old.learning.current_pattern
        or new.gamification is not old.gamification
        or new.content.word_banks.custom is not old.content.word_banks.custom
        or new.content.word_banks.favorites is not old.content.word_banks.favorites
        or new.content.patterns.custom is not old.content.patterns.custom
        or new.content.patterns.history is not old.content.patterns.history
        or new.content.generated.credits != old.content.generated.credits
        or new.offline.queue is not old.offline.queue
    )


class Persister:
    """Writes the projection after the store commits, never during dispatch.

    With a running event loop, writes are debounced and run in a worker
    thread; without one (scripts, sync tests) they happen inline.

    Args:
        adapter: Persistence adapter (primary + fallback).
        debounce_seconds: Quiet period before a write.
    """

    def __init__(self, adapter: PersistenceAdapter, debounce_seconds: float = 1.0):
        self.adapter = adapter
        self.debounce_seconds = debounce_seconds
        self._dirty: Snapshot | None = None
        self._task: asyncio.Task | None = None

    def attach(self, store: SnapshotStore) -> Callable[[], None]:
        return store.subscribe(self._on_change)

    def _on_change(self, new: Snapshot, old: Snapshot) -> None:
        if not _persisted_changed(new, old):
            return
        self._dirty = new
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._commit_dirty()
            return
        if self._task is None or self._task.done():
            self._task = loop.create_task(self._commit_later())

    async def _commit_later(self) -> None:
        while self._dirty is not None:
            await asyncio.sleep(self.debounce_seconds)
            snapshot, self._dirty = self._dirty, None
            if snapshot is not None:
                await asyncio.to_thread(self.commit, snapshot)

    def _commit_dirty(self) -> None:
        snapshot, self._dirty = self._dirty, None
        if snapshot is not None:
            self.commit(snapshot)

    def commit(self, snapshot: Snapshot) -> None:
        """Write both persisted namespaces. Best-effort."""
        try:
            self.adapter.save(PROJECTION_KEY, project(snapshot))
            self.adapter.save(PENDING_KEY, project_pending(snapshot))
            logger.debug("projection_committed", pending=len(snapshot.offline.queue))
        except Exception:
            logger.exception("projection_commit_failed")

    async def flush(self) -> None:
        """Write any pending change now (used at shutdown)."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        if self._dirty is not None:
            snapshot, self._dirty = self._dirty, None
            await asyncio.to_thread(self.commit, snapshot)
