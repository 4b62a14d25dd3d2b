from __future__ import annotations

import argparse
from typing import Optional

import uvicorn
from fastapi import FastAPI

from chatroom.api.users import router as users_router
from chatroom.api.ws_chat import router as ws_chat_router
from chatroom.config import listen_host, listen_port, load_dotenvs
from chatroom.logging.ndjson import init_logging, log_event
from chatroom.session import ChatSessionHandler


def create_app(*, handler: Optional[ChatSessionHandler] = None) -> FastAPI:
    """
    Build an app that owns one chat room. Each call gets its own registry
    unless a handler is passed in.
    """
    load_dotenvs()
    try:
        init_logging()
    except Exception:
        pass
    app = FastAPI(title="Chatroom Relay", version="0.1.0")
    app.state.chat = handler or ChatSessionHandler()

    @app.get("/api/health")
    def health() -> dict:
        return {"ok": True}

    @app.on_event("startup")
    async def startup_tasks() -> None:
        log_event(level="info", event="app.startup", data={"ok": True})

    app.include_router(users_router)
    app.include_router(ws_chat_router)
    return app


app = create_app()


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Run the chat room WebSocket relay.")
    ap.add_argument(
        "--port",
        type=int,
        default=None,
        help="Listen port (default: $CHATROOM_PORT or 8080).",
    )
    args = ap.parse_args(argv)

    port = args.port if args.port is not None else listen_port()
    print(f"聊天室 WebSocket 服务器正在运行于 ws://localhost:{port}")
    uvicorn.run(app, host=listen_host(), port=port, log_level="warning")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
