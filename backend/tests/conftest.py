from __future__ import annotations

import json
import os
import tempfile
from typing import Any, Callable

import pytest

# Keep NDJSON logs out of the source tree during collection (chatroom.main builds an app at import).
os.environ.setdefault("CHATROOM_LOG_DIR", tempfile.mkdtemp(prefix="chatroom-test-logs-"))

from chatroom.errors import TransportError  # noqa: E402
from chatroom.session import ChatSessionHandler  # noqa: E402


class FakeConnection:
    """Records frames instead of writing to a socket."""

    def __init__(self, label: str = "", *, open: bool = True, fail: bool = False) -> None:
        self.label = label
        self.open = open
        self.fail = fail
        self.sent: list[str] = []

    def __repr__(self) -> str:
        return f"<FakeConnection {self.label}>"

    @property
    def is_open(self) -> bool:
        return self.open

    def send(self, text: str) -> None:
        if self.fail:
            raise TransportError("socket gone")
        self.sent.append(text)

    def messages(self) -> list[dict[str, Any]]:
        return [json.loads(t) for t in self.sent]

    def last(self) -> dict[str, Any]:
        return json.loads(self.sent[-1])

    def take(self) -> list[dict[str, Any]]:
        out = self.messages()
        self.sent.clear()
        return out


@pytest.fixture(autouse=True)
def _log_dir(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("CHATROOM_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def make_conn() -> Callable[..., FakeConnection]:
    return FakeConnection


@pytest.fixture
def handler() -> ChatSessionHandler:
    return ChatSessionHandler()


@pytest.fixture
def named(handler: ChatSessionHandler, make_conn: Callable[..., FakeConnection]) -> Callable[[str], FakeConnection]:
    """Connect a client, set its nickname and drop everything it received so far."""

    def _named(name: str) -> FakeConnection:
        conn = make_conn(name)
        handler.on_connect(conn)
        handler.on_message(conn, json.dumps({"type": "SET_NICKNAME", "nickname": name}))
        assert handler.registry.get(conn).display_name == name
        return conn

    return _named
