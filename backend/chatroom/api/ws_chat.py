from __future__ import annotations

from fastapi import APIRouter, WebSocket

from chatroom.config import outbox_size
from chatroom.logging.ndjson import log_event
from chatroom.session import ChatSessionHandler
from chatroom.ws.connection import WebSocketConnection


router = APIRouter()


@router.websocket("/")
@router.websocket("/ws")
async def ws_chat(ws: WebSocket) -> None:
    handler: ChatSessionHandler = ws.app.state.chat

    disconnect_code: int | None = None
    await ws.accept()
    conn = WebSocketConnection(ws, maxsize=outbox_size())
    conn.start()
    session = handler.on_connect(conn)
    conn.session_id = session.session_id
    log_event(
        level="info",
        event="ws.connect",
        sessionId=session.session_id,
        data={
            "client": getattr(ws.client, "host", None),
            "online": handler.connection_count(),
            "headers": {
                "origin": ws.headers.get("origin"),
                "user_agent": ws.headers.get("user-agent"),
                "x_forwarded_for": ws.headers.get("x-forwarded-for"),
            },
        },
    )

    try:
        while True:
            try:
                message = await ws.receive()
            except Exception as e:  # noqa: BLE001
                log_event(level="warn", event="ws.receive_error", sessionId=session.session_id, data={"error": str(e)})
                return
            if message["type"] == "websocket.disconnect":
                disconnect_code = message.get("code")
                return
            text = message.get("text")
            if text is None:
                text = message.get("bytes") or b""
            handler.on_message(conn, text)
    finally:
        handler.on_close(conn)
        await conn.aclose()
        log_event(
            level="info",
            event="ws.disconnect",
            sessionId=session.session_id,
            data={"code": disconnect_code, "client": getattr(ws.client, "host", None)},
        )
