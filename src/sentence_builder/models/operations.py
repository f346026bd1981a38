"""Pending operation and sync status models."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sentence_builder.models.frozen import FrozenDict


class OperationKind(StrEnum):
    """Kinds of mutations that are replayed against the remote service."""

    ADD_WORD = "add-word"
    REMOVE_WORD = "remove-word"
    COMPLETE_SENTENCE = "complete-sentence"
    PROGRESS_UPDATE = "progress-update"
    ACHIEVEMENT_UNLOCK = "achievement-unlock"

    @property
    def is_sentence_op(self) -> bool:
        return self in (
            OperationKind.ADD_WORD,
            OperationKind.REMOVE_WORD,
            OperationKind.COMPLETE_SENTENCE,
        )


class SyncStatus(StrEnum):
    """Sync coordinator lifecycle states."""

    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


class PendingOperation(BaseModel):
    """A queued mutation awaiting remote confirmation."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    id: str
    seq: int
    kind: OperationKind
    payload: FrozenDict[str, Any] = Field(default_factory=dict)
    created_at: datetime
