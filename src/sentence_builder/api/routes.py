"""REST API routes exposing the store to the UI."""

from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Request
from pydantic import BaseModel

from sentence_builder.engine import Engine
from sentence_builder.errors import ValidationError
from sentence_builder.models.actions import INTERNAL_ACTION_KINDS
from sentence_builder.models.snapshot import Snapshot

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


class GenerateRequest(BaseModel):
    topic: str
    level: str = "beginner"


def get_engine(request: Request) -> Engine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not started")
    return engine


def serialize_snapshot(snapshot: Snapshot) -> dict[str, Any]:
    return snapshot.model_dump(mode="json")


def dispatch_from_client(engine: Engine, action: Any) -> Snapshot:
    """Dispatch a browser-supplied action, mapping rejections to HTTP 422."""
    if isinstance(action, dict) and action.get("kind") in INTERNAL_ACTION_KINDS:
        raise HTTPException(status_code=422, detail=f"Action not allowed: {action['kind']}")
    try:
        return engine.store.dispatch(action)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/snapshot")
async def get_snapshot(engine: Engine = Depends(get_engine)) -> dict:
    """Latest committed snapshot."""
    return serialize_snapshot(engine.store.get_snapshot())


@router.post("/actions")
async def post_action(
    action: dict[str, Any] = Body(...), engine: Engine = Depends(get_engine)
) -> dict:
    """Dispatch one action and return the resulting snapshot."""
    return serialize_snapshot(dispatch_from_client(engine, action))


def _travel_response(engine: Engine, applied: bool) -> dict:
    history = engine.store.history
    return {
        "applied": applied,
        "can_undo": history.can_undo,
        "can_redo": history.can_redo,
        "snapshot": serialize_snapshot(engine.store.get_snapshot()),
    }


@router.post("/undo")
async def undo(engine: Engine = Depends(get_engine)) -> dict:
    return _travel_response(engine, engine.store.undo() is not None)


@router.post("/redo")
async def redo(engine: Engine = Depends(get_engine)) -> dict:
    return _travel_response(engine, engine.store.redo() is not None)


@router.post("/sync")
async def sync_now(engine: Engine = Depends(get_engine)) -> dict:
    """Manual retry of the offline queue."""
    if engine.sync is None:
        raise HTTPException(status_code=503, detail="Remote sync is not configured")
    drained = await engine.sync.flush()
    offline = engine.store.get_snapshot().offline
    return {
        "drained": drained,
        "status": offline.sync_status.value,
        "pending": len(offline.queue),
        "last_error": offline.last_error,
    }


@router.post("/content/generate")
async def generate_content(
    request: GenerateRequest, engine: Engine = Depends(get_engine)
) -> dict:
    content = await engine.content.generate(request.topic, request.level)
    if content is None:
        raise HTTPException(status_code=409, detail="Content generation unavailable")
    return content.model_dump(mode="json")
