from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from chatroom.errors import AlreadyRegistered


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


class SessionState(str, enum.Enum):
    CONNECTED_ANONYMOUS = "CONNECTED_ANONYMOUS"
    NAMED = "NAMED"
    CLOSED = "CLOSED"


@dataclass
class Session:
    handle: Any
    session_id: str = field(default_factory=lambda: str(uuid4()))
    display_name: Optional[str] = None
    state: SessionState = SessionState.CONNECTED_ANONYMOUS
    connected_at: str = field(default_factory=_now_iso)

    @property
    def is_named(self) -> bool:
        return self.display_name is not None


class ConnectionRegistry:
    """
    Live connection handle -> Session. Single source of truth for who is online.

    All methods are synchronous; callers running on one event loop get
    run-to-completion semantics for any sequence of calls made without an
    intervening await.
    """

    def __init__(self) -> None:
        self._sessions: dict[Any, Session] = {}

    def register(self, handle: Any) -> Session:
        if handle in self._sessions:
            raise AlreadyRegistered(f"connection already registered: {handle!r}")
        s = Session(handle=handle)
        self._sessions[handle] = s
        return s

    def get(self, handle: Any) -> Optional[Session]:
        return self._sessions.get(handle)

    def set_display_name(self, handle: Any, name: str) -> Session:
        """
        Does not re-validate; the nickname policy must have accepted `name`
        in the same synchronous step.
        """
        s = self._sessions[handle]
        s.display_name = name
        s.state = SessionState.NAMED
        return s

    def remove(self, handle: Any) -> Optional[Session]:
        s = self._sessions.pop(handle, None)
        if s is not None:
            s.state = SessionState.CLOSED
        return s

    def list_display_names(self) -> list[str]:
        names = [s.display_name for s in self._sessions.values() if s.display_name is not None]
        return sorted(names, key=lambda n: (n.casefold(), n))

    def all_handles(self) -> list[Any]:
        return list(self._sessions.keys())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, handle: object) -> bool:
        return handle in self._sessions
