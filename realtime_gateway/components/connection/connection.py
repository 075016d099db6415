"""
Admitted websocket connection.

A Connection owns its transport handle, the rooms it joined, its liveness
timestamps and a bounded outbound queue drained by a single writer task.

Enqueueing is synchronous so a relaying handler never suspends while
fanning a frame out to room members; the writer preserves per-recipient
order. Frames queued for a connection that is already torn down are
dropped as BroadcastDeliveryError and never retried.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime
from typing import Any, Callable, TYPE_CHECKING

from starlette.websockets import WebSocketState

from shared.config.logging import get_logger

from realtime_gateway.components.connection.presence import next_after, utc_now
from realtime_gateway.components.core.constants import WSConstants
from realtime_gateway.components.core.exceptions import BroadcastDeliveryError

if TYPE_CHECKING:
    from fastapi import WebSocket

    from shared.security.auth import Identity

logger = get_logger(__name__)

# Sentinel that tells the writer to stop after draining what is queued
_STOP = object()


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if WebSocket is in connected state before sending.

    Starlette does not expose transitional states, so a connection may
    appear connected briefly after a disconnect was initiated.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class Connection:
    """
    One admitted websocket connection.

    identity is fixed at construction and never reassigned. Instances hash
    by object identity, so they can be room members.
    """

    def __init__(
        self,
        websocket: "WebSocket",
        identity: "Identity",
        *,
        queue_size: int = 256,
        send_timeout: float = 5.0,
        connection_id: str | None = None,
        clock: Callable[[], datetime] = utc_now,
        on_writer_failure: Callable[["Connection", BroadcastDeliveryError], None] | None = None,
    ) -> None:
        self.websocket = websocket
        self._identity = identity
        self.connection_id = connection_id or uuid.uuid4().hex
        self.rooms: set[str] = set()

        self._clock = clock
        self.connected_at = clock()
        self.last_seen_at = self.connected_at

        self.malformed_events = 0
        self.torn_down = False

        self._send_timeout = send_timeout
        self._outbox: asyncio.Queue[Any] = asyncio.Queue(maxsize=queue_size)
        self._writer: asyncio.Task[None] | None = None
        self._closed = False
        self._on_writer_failure = on_writer_failure

    def __repr__(self) -> str:
        return f"<Connection {self.connection_id[:8]} user={self.user_id}>"

    @property
    def identity(self) -> "Identity":
        return self._identity

    @property
    def user_id(self) -> str:
        return self._identity.user_id

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_frames(self) -> int:
        return self._outbox.qsize()

    def touch(self) -> datetime:
        """Refresh last_seen_at; strictly increases on every call."""
        self.last_seen_at = next_after(self.last_seen_at, self._clock())
        return self.last_seen_at

    def idle_seconds(self, now: datetime | None = None) -> float:
        return ((now or self._clock()) - self.last_seen_at).total_seconds()

    # =========================================================================
    # Outbound
    # =========================================================================

    def start_writer(self) -> None:
        """Start the writer task. Must be called from the running event loop."""
        if self._writer is None:
            self._writer = asyncio.create_task(
                self._write_loop(),
                name=f"ws-writer-{self.connection_id[:8]}",
            )

    def enqueue(self, frame: dict[str, Any]) -> None:
        """
        Queue a frame for delivery without suspending.

        Raises:
            BroadcastDeliveryError: If the connection is closed or its queue is full.
        """
        if self._closed:
            raise BroadcastDeliveryError(self.connection_id, "connection closed")
        try:
            self._outbox.put_nowait(frame)
        except asyncio.QueueFull:
            raise BroadcastDeliveryError(self.connection_id, "outbound queue full")

    async def _send(self, frame: dict[str, Any]) -> None:
        if not is_ws_connected(self.websocket):
            raise BroadcastDeliveryError(self.connection_id, "transport not connected")
        try:
            # A cancel arriving as the send completes must still stop the writer
            async with asyncio.timeout(self._send_timeout):
                await self.websocket.send_json(frame)
        except TimeoutError:
            raise BroadcastDeliveryError(self.connection_id, "send timeout")
        except Exception as e:
            # Transport errors differ per server (uvicorn, websockets, TestClient)
            raise BroadcastDeliveryError(self.connection_id, f"{type(e).__name__}: {e}") from e

    async def _write_loop(self) -> None:
        try:
            while True:
                frame = await self._outbox.get()
                if frame is _STOP:
                    return
                await self._send(frame)
        except BroadcastDeliveryError as e:
            self._closed = True
            if self._on_writer_failure is not None:
                self._on_writer_failure(self, e)

    async def stop_writer(self, drain: bool = False) -> None:
        """
        Stop the writer task.

        Args:
            drain: Deliver frames already queued before stopping (bounded by
                the send timeout). Otherwise pending frames are discarded.
        """
        writer = self._writer
        already_closed = self._closed
        self._closed = True
        if writer is None or writer.done():
            return

        if drain and not already_closed:
            try:
                self._outbox.put_nowait(_STOP)
                async with asyncio.timeout(self._send_timeout):
                    await asyncio.shield(writer)
                return
            except (asyncio.QueueFull, TimeoutError):
                pass

        writer.cancel()
        # Teardown waits at most send_timeout; a cancel of the caller propagates
        done, _ = await asyncio.wait({writer}, timeout=self._send_timeout)
        if not done:
            logger.warning(
                "Writer did not stop after cancel",
                target_connection=self.connection_id[:8],
            )

    async def close(self, code: int, reason: str = "") -> None:
        """
        Flush pending frames, then close the transport.

        Errors are logged and ignored: the peer may already be gone.
        """
        await self.stop_writer(drain=True)
        if self.websocket.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            async with asyncio.timeout(WSConstants.CLOSE_TIMEOUT):
                await self.websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug(
                "Close frame not delivered",
                target_connection=self.connection_id[:8],
                error=str(e),
            )
