"""Side effects requested by reducers and executed by the store."""

from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict

from sentence_builder.models.snapshot import Snapshot


class _Effect(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class AchievementUnlocked(_Effect):
    """Emitted exactly once per newly unlocked achievement id."""

    achievement_id: str


class ConnectivityRestored(_Effect):
    """Offline -> online transition; the sync coordinator flushes on it."""


class ScheduleAction(_Effect):
    """Dispatch ``action`` after ``delay`` seconds (UI timers)."""

    action: Any
    delay: float


Effect = AchievementUnlocked | ConnectivityRestored | ScheduleAction


class Transition(NamedTuple):
    snapshot: Snapshot
    effects: tuple[Effect, ...] = ()
