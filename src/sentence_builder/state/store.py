"""Snapshot store: the single writer over application state."""

import asyncio
import threading
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from sentence_builder.errors import ValidationError
from sentence_builder.learning.achievements import RECENT_ACHIEVEMENTS_LIMIT, keep_unlocked
from sentence_builder.models.actions import Action, parse_action
from sentence_builder.models.snapshot import HistorySlice, Snapshot, initial_snapshot
from sentence_builder.state.effects import Effect, ScheduleAction
from sentence_builder.state.history import TemporalHistory
from sentence_builder.state.reducers import ReducerContext, reduce

logger = structlog.get_logger()

Listener = Callable[[Snapshot, Snapshot], None]
EffectHandler = Callable[[Effect], None]


class SnapshotStore:
    """Holds the latest committed snapshot and applies actions one at a time.

    ``dispatch`` is synchronous and does no I/O: it runs the pure reducer,
    commits the new snapshot, records the versioned slice, then notifies
    listeners and effect handlers outside the writer section. Handlers that
    need I/O schedule it themselves and report back with another dispatch.

    Args:
        initial: Starting snapshot (e.g. rehydrated from storage).
        history: Undo/redo log; a 50-entry one is created if omitted.
        clock: Returns the current time for each dispatch.
        id_factory: Returns fresh unique ids.
        recent_achievements_limit: Cap for the recent achievements list.
    """

    def __init__(
        self,
        initial: Snapshot | None = None,
        history: TemporalHistory | None = None,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] | None = None,
        recent_achievements_limit: int = RECENT_ACHIEVEMENTS_LIMIT,
    ):
        self._snapshot = initial if initial is not None else initial_snapshot()
        self._history = history if history is not None else TemporalHistory()
        self._clock = clock
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._recent_limit = recent_achievements_limit
        self._write_lock = threading.Lock()
        self._listeners: list[Listener] = []
        self._effect_handlers: list[EffectHandler] = []
        self._timers: list[asyncio.TimerHandle] = []
        self._history.record(HistorySlice.of(self._snapshot))

    @property
    def history(self) -> TemporalHistory:
        return self._history

    def get_snapshot(self) -> Snapshot:
        return self._snapshot

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(new, old)``; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_effect(self, handler: EffectHandler) -> Callable[[], None]:
        """Register a handler for reducer effects; returns an unregister callable."""
        self._effect_handlers.append(handler)

        def remove() -> None:
            if handler in self._effect_handlers:
                self._effect_handlers.remove(handler)

        return remove

    def dispatch(self, action: Action | dict[str, Any]) -> Snapshot:
        """Apply an action and return the new committed snapshot.

        Args:
            action: A typed action or a raw mapping with a ``kind`` tag.

        Returns:
            The latest snapshot (identical object if nothing changed).

        Raises:
            ValidationError: Malformed action or missing pattern/state. The
                snapshot is unchanged.
        """
        parsed = parse_action(action)
        with self._write_lock:
            old = self._snapshot
            ctx = ReducerContext(
                now=self._clock(),
                id_factory=self._id_factory,
                recent_achievements_limit=self._recent_limit,
            )
            try:
                new, effects = reduce(old, parsed, ctx)
            except ValidationError as e:
                logger.info("action_rejected", kind=parsed.kind, reason=str(e))
                raise
            self._snapshot = new
            if new is not old and (
                new.learning is not old.learning or new.gamification is not old.gamification
            ):
                self._history.record(HistorySlice.of(new))

        if new is not old:
            self._notify(new, old)
        for effect in effects:
            self._run_effect(effect)
        return self._snapshot

    def undo(self) -> Snapshot | None:
        """Restore the previous learning/gamification slice, if any."""
        return self._travel(self._history.undo)

    def redo(self) -> Snapshot | None:
        """Re-apply the next learning/gamification slice, if any."""
        return self._travel(self._history.redo)

    def close(self) -> None:
        """Cancel pending UI timers."""
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

    def _travel(self, step: Callable[[], HistorySlice | None]) -> Snapshot | None:
        with self._write_lock:
            entry = step()
            if entry is None:
                return None
            old = self._snapshot
            new = old.model_copy(update={
                "learning": entry.learning,
                "gamification": keep_unlocked(entry.gamification, old.gamification),
            })
            self._snapshot = new
        self._notify(new, old)
        return new

    def _notify(self, new: Snapshot, old: Snapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(new, old)
            except Exception:
                logger.exception("store_listener_error")

    def _run_effect(self, effect: Effect) -> None:
        if isinstance(effect, ScheduleAction):
            self._schedule(effect)
        for handler in list(self._effect_handlers):
            try:
                handler(effect)
            except Exception:
                logger.exception("effect_handler_error", effect=type(effect).__name__)

    def _schedule(self, effect: ScheduleAction) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop (sync callers, tests): timers are not run.
            logger.debug("timer_skipped_no_loop", action=effect.action.kind)
            return

        def fire() -> None:
            self._timers[:] = [t for t in self._timers if not t.cancelled() and t is not handle]
            try:
                self.dispatch(effect.action)
            except ValidationError:
                logger.warning("scheduled_action_rejected", action=effect.action.kind)

        handle = loop.call_later(effect.delay, fire)
        self._timers.append(handle)
