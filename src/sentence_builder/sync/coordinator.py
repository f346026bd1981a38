"""Drains the offline queue against the remote sync API."""

import asyncio

import structlog

from sentence_builder.errors import SyncError
from sentence_builder.models import actions as a
from sentence_builder.models.operations import OperationKind, PendingOperation, SyncStatus
from sentence_builder.state.effects import ConnectivityRestored, Effect
from sentence_builder.state.store import SnapshotStore
from sentence_builder.sync.remote import RemoteSyncAPI, SyncAck

logger = structlog.get_logger()


class SyncCoordinator:
    """Sends queued operations in FIFO order, removing each only once accepted.

    Status lives in the store's ``offline`` section and moves
    idle -> syncing -> success | error; every change is a dispatch. A failure
    stops the pass and keeps the failed operation and everything after it
    queued. Delivery is at-least-once, so the remote must treat commands as
    idempotent.

    Args:
        store: Snapshot store holding the queue.
        remote: Remote sync API.
        timeout_seconds: Per-command timeout; expiry counts as a network error.
        interval_seconds: Period of the background flush loop (0 disables it).
    """

    def __init__(
        self,
        store: SnapshotStore,
        remote: RemoteSyncAPI,
        timeout_seconds: float = 5.0,
        interval_seconds: float = 30.0,
    ):
        self.store = store
        self.remote = remote
        self.timeout_seconds = timeout_seconds
        self.interval_seconds = interval_seconds
        self._tasks: set[asyncio.Task] = set()
        self._periodic: asyncio.Task | None = None
        self._remove_effect_handler = store.on_effect(self._on_effect)

    async def start(self) -> None:
        """Start periodic flushing and flush once if online."""
        if self.interval_seconds > 0 and self._periodic is None:
            self._periodic = asyncio.create_task(self._periodic_loop())
        if self.store.get_snapshot().offline.is_online:
            self._spawn_flush("startup")

    async def stop(self) -> None:
        self._remove_effect_handler()
        tasks = list(self._tasks)
        if self._periodic is not None:
            tasks.append(self._periodic)
            self._periodic = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def flush(self) -> bool:
        """Send every queued operation in order.

        Returns:
            True if the queue was fully drained. False when offline, when a
            flush was already running, or when a send failed.
        """
        snapshot = self.store.get_snapshot()
        if snapshot.offline.sync_status == SyncStatus.SYNCING:
            logger.debug("sync_flush_skipped_busy")
            return False
        if not snapshot.offline.is_online:
            logger.debug("sync_flush_skipped_offline")
            return False

        self.store.dispatch(a.SyncStarted())
        operations = list(snapshot.offline.queue.pending())
        logger.info("sync_started", pending=len(operations))
        try:
            return await self._drain(operations)
        except asyncio.CancelledError:
            self.store.dispatch(a.SyncFailed(error="Sync cancelled"))
            raise

    async def _drain(self, operations: list[PendingOperation]) -> bool:
        sent = 0
        for op in operations:
            try:
                ack = await asyncio.wait_for(self._send(op), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                return self._fail(op, f"Timed out after {self.timeout_seconds}s")
            except SyncError as e:
                if e.permanent:
                    self._discard(op, str(e))
                    continue
                return self._fail(op, str(e))
            except Exception as e:
                logger.exception("sync_send_error", op_id=op.id)
                return self._fail(op, str(e) or type(e).__name__)

            if ack.accepted:
                self.store.dispatch(a.OperationAcknowledged(op_id=op.id))
                sent += 1
            elif ack.permanent:
                self._discard(op, ack.reason)
            else:
                return self._fail(op, ack.reason or "Rejected by remote")

        self.store.dispatch(a.SyncSucceeded())
        logger.info("sync_completed", sent=sent)
        return True

    async def _send(self, op: PendingOperation) -> SyncAck:
        if op.kind.is_sentence_op:
            return await self.remote.sync_sentences([op])
        match op.kind:
            case OperationKind.PROGRESS_UPDATE:
                return await self.remote.sync_progress(op.payload)
            case OperationKind.ACHIEVEMENT_UNLOCK:
                return await self.remote.sync_achievements([op.payload["achievement_id"]])
        raise SyncError(f"Unknown operation kind: {op.kind}", permanent=True)

    def _fail(self, op: PendingOperation, reason: str) -> bool:
        logger.warning("sync_failed", op_id=op.id, kind=op.kind.value, reason=reason)
        self.store.dispatch(a.SyncFailed(error=reason))
        return False

    def _discard(self, op: PendingOperation, reason: str) -> None:
        logger.warning("sync_operation_discarded", op_id=op.id, kind=op.kind.value, reason=reason)
        self.store.dispatch(a.OperationDiscarded(op_id=op.id, reason=reason))

    def _on_effect(self, effect: Effect) -> None:
        if isinstance(effect, ConnectivityRestored):
            self._spawn_flush("connectivity_restored")

    def _spawn_flush(self, trigger: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("sync_flush_not_scheduled_no_loop", trigger=trigger)
            return
        logger.info("sync_flush_triggered", trigger=trigger)
        task = loop.create_task(self.flush())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _periodic_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                if self.store.get_snapshot().offline.queue.pending():
                    await self.flush()
            except Exception:
                logger.exception("sync_periodic_flush_error")
