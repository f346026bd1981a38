"""Browser WebSocket handler: pushes snapshots, accepts actions."""

import asyncio
from typing import Any

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from sentence_builder.engine import Engine
from sentence_builder.errors import ValidationError
from sentence_builder.models.actions import INTERNAL_ACTION_KINDS
from sentence_builder.models.snapshot import Snapshot
from sentence_builder.state.effects import AchievementUnlocked, Effect

logger = structlog.get_logger()


class BrowserConnection:
    """One browser tab subscribed to the store.

    Args:
        engine: Running engine.
        browser_ws: WebSocket connection to the browser.
    """

    def __init__(self, engine: Engine, browser_ws: WebSocket):
        self.engine = engine
        self.browser_ws = browser_ws
        self._outbox: asyncio.Queue[dict] = asyncio.Queue()
        self._unsubscribe = engine.store.subscribe(self._on_snapshot)
        self._remove_effect_handler = engine.store.on_effect(self._on_effect)

    def _on_snapshot(self, new: Snapshot, old: Snapshot) -> None:
        self._outbox.put_nowait({"type": "snapshot", "snapshot": new.model_dump(mode="json")})

    def _on_effect(self, effect: Effect) -> None:
        if isinstance(effect, AchievementUnlocked):
            self._outbox.put_nowait({
                "type": "achievement_unlocked",
                "achievement_id": effect.achievement_id,
            })

    async def send_loop(self) -> None:
        """Forward queued messages to the browser."""
        try:
            while True:
                message = await self._outbox.get()
                await self._send_to_browser(message)
        except asyncio.CancelledError:
            pass

    async def handle(self, data: Any) -> None:
        if not isinstance(data, dict):
            await self._send_error("Messages must be JSON objects")
            return
        msg_type = data.get("type", "")
        store = self.engine.store

        if msg_type == "dispatch":
            action = data.get("action")
            if isinstance(action, dict) and action.get("kind") in INTERNAL_ACTION_KINDS:
                await self._send_error(f"Action not allowed: {action['kind']}")
                return
            try:
                store.dispatch(action)
            except ValidationError as e:
                await self._send_error(str(e))

        elif msg_type == "undo":
            store.undo()

        elif msg_type == "redo":
            store.redo()

        elif msg_type == "get_snapshot":
            await self._send_to_browser({
                "type": "snapshot",
                "snapshot": store.get_snapshot().model_dump(mode="json"),
            })

        else:
            await self._send_error(f"Unknown message type: {msg_type}")

    def close(self) -> None:
        self._unsubscribe()
        self._remove_effect_handler()

    async def _send_error(self, message: str) -> None:
        await self._send_to_browser({"type": "error", "message": message})

    async def _send_to_browser(self, data: dict) -> None:
        """Send a message to the browser WebSocket."""
        try:
            await self.browser_ws.send_json(data)
        except Exception:
            logger.warning("browser_send_failed")


async def handle_browser_websocket(websocket: WebSocket, engine: Engine) -> None:
    """Handle a browser WebSocket connection."""
    await websocket.accept()
    connection = BrowserConnection(engine, websocket)
    sender = asyncio.create_task(connection.send_loop())
    await connection.handle({"type": "get_snapshot"})

    try:
        while True:
            data = await websocket.receive_json()
            await connection.handle(data)

    except WebSocketDisconnect:
        logger.info("browser_disconnected")
    except Exception:
        logger.exception("websocket_handler_error")
    finally:
        connection.close()
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
