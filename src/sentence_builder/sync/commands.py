"""Command builders for the remote sync protocol."""

from collections.abc import Mapping
from typing import Any

from sentence_builder.models.frozen import thaw
from sentence_builder.models.operations import PendingOperation

# Client → Server command builders


def sync_sentences_command(request_id: str, operations: list[PendingOperation]) -> dict[str, Any]:
    """Build a sync.sentences command."""
    return {
        "type": "sync.sentences",
        "request_id": request_id,
        "operations": [op.model_dump(mode="json") for op in operations],
    }


def sync_progress_command(request_id: str, progress: Mapping[str, Any]) -> dict[str, Any]:
    """Build a sync.progress command."""
    return {
        "type": "sync.progress",
        "request_id": request_id,
        "progress": thaw(progress),
    }


def sync_achievements_command(request_id: str, achievement_ids: list[str]) -> dict[str, Any]:
    """Build a sync.achievements command."""
    return {
        "type": "sync.achievements",
        "request_id": request_id,
        "achievements": achievement_ids,
    }
