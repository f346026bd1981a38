"""Persisted projection of the snapshot and startup rehydration."""

from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from sentence_builder.models.content import Pattern
from sentence_builder.models.operations import PendingOperation
from sentence_builder.models.snapshot import (
    AdaptiveModel,
    CustomWord,
    GamificationState,
    Progress,
    Snapshot,
    UserState,
)
from sentence_builder.storage.backends import PersistenceAdapter
from sentence_builder.sync.queue import OfflineQueue

logger = structlog.get_logger()

PROJECTION_KEY = "store-projection"
PENDING_KEY = "pending-operations"
PROJECTION_VERSION = 1


def project(snapshot: Snapshot) -> dict[str, Any]:
    """Durable subset of the snapshot.

    UI state, the in-progress sentence and the generated-content cache are
    left out; the offline queue is stored under its own key.
    """
    word_banks = snapshot.content.word_banks
    patterns = snapshot.content.patterns
    return {
        "version": PROJECTION_VERSION,
        "user": snapshot.user.model_dump(mode="json"),
        "learning": {
            "current_pattern": snapshot.learning.current_pattern,
            "progress": snapshot.learning.progress.model_dump(mode="json"),
            "adaptive": snapshot.learning.adaptive.model_dump(mode="json"),
        },
        "gamification": snapshot.gamification.model_dump(mode="json"),
        "content": {
            "word_banks": {
                "custom": [w.model_dump(mode="json") for w in word_banks.custom],
                "favorites": list(word_banks.favorites),
            },
            "patterns": {
                "custom": [p.model_dump(mode="json") for p in patterns.custom],
                "history": list(patterns.history),
            },
            "generated": {"credits": snapshot.content.generated.credits},
        },
    }


def project_pending(snapshot: Snapshot) -> list[dict[str, Any]]:
    return [op.model_dump(mode="json") for op in snapshot.offline.queue.pending()]


def apply_projection(base: Snapshot, data: dict[str, Any]) -> Snapshot:
    """Overlay a stored projection on ``base``.

    Raises:
        pydantic.ValidationError: If the stored document does not match.
    """
    learning_data = data.get("learning", {})
    content_data = data.get("content", {})

    learning = base.learning.model_copy(update={
        "current_pattern": learning_data.get("current_pattern", base.learning.current_pattern),
        "progress": Progress.model_validate(learning_data.get("progress", {})),
        "adaptive": AdaptiveModel.model_validate(learning_data.get("adaptive", {})),
    })

    word_banks_data = content_data.get("word_banks", {})
    patterns_data = content_data.get("patterns", {})
    word_banks = base.content.word_banks.model_copy(update={
        "custom": tuple(CustomWord.model_validate(w) for w in word_banks_data.get("custom", [])),
        "favorites": tuple(word_banks_data.get("favorites", [])),
    })
    patterns = base.content.patterns.model_copy(update={
        "custom": tuple(Pattern.model_validate(p) for p in patterns_data.get("custom", [])),
        "history": tuple(patterns_data.get("history", [])),
    })
    generated = base.content.generated.model_copy(update={
        "credits": content_data.get("generated", {}).get(
            "credits", base.content.generated.credits
        ),
    })
    content = base.content.model_copy(update={
        "word_banks": word_banks,
        "patterns": patterns,
        "generated": generated,
    })

    return base.model_copy(update={
        "user": UserState.model_validate(data.get("user", {})),
        "learning": learning,
        "gamification": GamificationState.model_validate(data.get("gamification", {})),
        "content": content,
    })


def rehydrate(adapter: PersistenceAdapter, base: Snapshot) -> Snapshot:
    """Build the startup snapshot from storage.

    Unreadable or mismatched documents are logged and skipped; the pending
    queue is restored independently so unsynced work survives a broken
    projection.
    """
    snapshot = base
    data = adapter.load(PROJECTION_KEY)
    if isinstance(data, dict):
        try:
            snapshot = apply_projection(base, data)
            logger.info("projection_restored", version=data.get("version"))
        except PydanticValidationError:
            logger.exception("projection_invalid")

    pending = adapter.load(PENDING_KEY)
    if isinstance(pending, list) and pending:
        try:
            operations = [PendingOperation.model_validate(op) for op in pending]
        except PydanticValidationError:
            logger.exception("pending_operations_invalid")
        else:
            queue = OfflineQueue.from_operations(operations)
            offline = snapshot.offline.model_copy(update={"queue": queue})
            snapshot = snapshot.model_copy(update={"offline": offline})
            logger.info("pending_operations_restored", count=len(queue))
    return snapshot
