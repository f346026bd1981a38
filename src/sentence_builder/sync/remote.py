"""Remote sync API: protocol and WebSocket client."""

import asyncio
import json
import uuid
from collections.abc import Mapping
from typing import Any, Protocol

import structlog
import websockets
from pydantic import BaseModel
from websockets.asyncio.client import ClientConnection

from sentence_builder.errors import SyncError
from sentence_builder.models.operations import PendingOperation
from sentence_builder.sync.commands import (
    sync_achievements_command,
    sync_progress_command,
    sync_sentences_command,
)

logger = structlog.get_logger()


class SyncAck(BaseModel):
    """Remote verdict on one command.

    ``accepted=False`` with ``permanent=True`` means the command can never
    apply (e.g. it references a deleted entity) and should be dropped.
    """

    accepted: bool = True
    reason: str = ""
    permanent: bool = False


class RemoteSyncAPI(Protocol):
    """Idempotent command consumer on the server side."""

    async def sync_sentences(self, operations: list[PendingOperation]) -> SyncAck: ...

    async def sync_progress(self, progress: Mapping[str, Any]) -> SyncAck: ...

    async def sync_achievements(self, achievement_ids: list[str]) -> SyncAck: ...


class WebSocketSyncClient:
    """Sends sync commands over a WebSocket and waits for matching acks.

    One command is in flight at a time. The connection is opened lazily and
    dropped on any transport error so the next command reconnects.

    Args:
        url: Server WebSocket URL.
        api_key: Optional bearer token.
    """

    def __init__(self, url: str, api_key: str | None = None):
        self.url = url
        self.api_key = api_key
        self._ws: ClientConnection | None = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else None
        self._ws = await websockets.connect(self.url, additional_headers=headers)
        logger.info("sync_remote_connected", url=self.url)

    async def disconnect(self) -> None:
        if self._ws:
            await self._ws.close()
            self._ws = None
        logger.info("sync_remote_disconnected")

    async def sync_sentences(self, operations: list[PendingOperation]) -> SyncAck:
        return await self._request(lambda rid: sync_sentences_command(rid, operations))

    async def sync_progress(self, progress: Mapping[str, Any]) -> SyncAck:
        return await self._request(lambda rid: sync_progress_command(rid, progress))

    async def sync_achievements(self, achievement_ids: list[str]) -> SyncAck:
        return await self._request(lambda rid: sync_achievements_command(rid, achievement_ids))

    async def _request(self, build) -> SyncAck:
        """Send one command and wait for the ack carrying its request id."""
        async with self._lock:
            request_id = uuid.uuid4().hex
            command = build(request_id)
            try:
                if self._ws is None:
                    await self.connect()
                await self._ws.send(json.dumps(command))
                async for message in self._ws:
                    reply = json.loads(message)
                    if reply.get("type") == "ack" and reply.get("request_id") == request_id:
                        return SyncAck(
                            accepted=bool(reply.get("accepted", True)),
                            reason=reply.get("reason", ""),
                            permanent=bool(reply.get("permanent", False)),
                        )
                    logger.debug("sync_remote_unmatched_message", type=reply.get("type"))
            except (OSError, websockets.exceptions.WebSocketException, ValueError) as e:
                self._ws = None
                raise SyncError(f"{command['type']} failed: {e}") from e
            self._ws = None
            raise SyncError(f"{command['type']}: connection closed before ack")
