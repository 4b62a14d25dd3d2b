from __future__ import annotations

import asyncio
from typing import Optional
from uuid import uuid4

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from chatroom.errors import TransportError
from chatroom.logging.ndjson import log_event


# Policy violation: the client is not reading fast enough.
CLOSE_OUTBOX_FULL = 1008
CLOSE_SEND_FAILED = 1011


class WebSocketConnection:
    """
    Connection handle handed to the chat core.

    `send` never blocks: frames go onto a bounded per-connection queue that a
    writer task drains in FIFO order, so one slow client cannot stall a
    broadcast to everybody else. A client that lets its queue fill up is
    disconnected rather than left with a gap in its stream.
    """

    def __init__(self, ws: WebSocket, *, maxsize: int = 256) -> None:
        self.ws = ws
        self.id = str(uuid4())
        self.session_id: Optional[str] = None
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._writer: Optional[asyncio.Task] = None
        self._closer: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"<WebSocketConnection {self.id} client={getattr(self.ws.client, 'host', None)}>"

    @property
    def is_open(self) -> bool:
        if self._closed:
            return False
        return (
            self.ws.client_state == WebSocketState.CONNECTED
            and self.ws.application_state == WebSocketState.CONNECTED
        )

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain())

    def send(self, text: str) -> None:
        if not self.is_open:
            return
        try:
            self._queue.put_nowait(text)
        except asyncio.QueueFull as e:
            self._closed = True
            self._closer = asyncio.create_task(self._close_socket(CLOSE_OUTBOX_FULL))
            raise TransportError(f"outbound queue full ({self._queue.maxsize} frames)") from e

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _drain(self) -> None:
        while True:
            text = await self._queue.get()
            try:
                await self.ws.send_text(text)
            except Exception as e:  # noqa: BLE001
                self._closed = True
                log_event(level="warn", event="ws.send_failed", sessionId=self.session_id, data={"error": str(e)})
                await self._close_socket(CLOSE_SEND_FAILED)
                return

    async def _close_socket(self, code: int) -> None:
        try:
            await self.ws.close(code=code)
        except Exception:
            pass

    async def aclose(self) -> None:
        self._closed = True
        task, self._writer = self._writer, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
