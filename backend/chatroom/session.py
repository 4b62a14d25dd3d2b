from __future__ import annotations

from typing import Any, Optional

from chatroom.dispatcher import BroadcastDispatcher
from chatroom.errors import DecodeError, NicknameError
from chatroom.logging.ndjson import log_event
from chatroom.nickname import NicknamePolicy
from chatroom.protocol import (
    ChatEvent,
    ChatRequest,
    InboundMessage,
    SetNicknameRequest,
    SystemEvent,
    TypingEvent,
    TypingStartRequest,
    TypingStopRequest,
    UserListUpdate,
    decode,
)
from chatroom.registry import ConnectionRegistry, Session


WELCOME_TEXT = "欢迎来到聊天室！请先设置昵称。"


def _confirm_text(name: str) -> str:
    return f"昵称设置成功，你现在是 {name}。"


def _join_text(name: str) -> str:
    return f"{name} 加入了聊天室。"


def _rename_text(old: str, new: str) -> str:
    return f"{old} 更名为 {new}。"


def _leave_text(name: str) -> str:
    return f"{name} 离开了聊天室。"


class ChatSessionHandler:
    """
    Connection lifecycle and inbound message routing for the chat room.

    Owns the registry, nickname policy and dispatcher. Every callback is
    synchronous and runs to completion, which is what makes the nickname
    check-then-write atomic with respect to other connections.
    """

    def __init__(
        self,
        *,
        registry: Optional[ConnectionRegistry] = None,
        policy: Optional[NicknamePolicy] = None,
        dispatcher: Optional[BroadcastDispatcher] = None,
    ) -> None:
        self.registry = registry or ConnectionRegistry()
        self.policy = policy or NicknamePolicy(self.registry)
        self.dispatcher = dispatcher or BroadcastDispatcher(self.registry)

    def on_connect(self, handle: Any) -> Session:
        s = self.registry.register(handle)
        self.dispatcher.send(handle, SystemEvent(message=WELCOME_TEXT))
        self._close_failed()
        return s

    def on_message(self, handle: Any, text: str | bytes) -> None:
        s = self.registry.get(handle)
        if s is None:
            return
        try:
            msg = decode(text)
        except DecodeError as e:
            log_event(
                level="warn",
                event="ws.decode_error",
                sessionId=s.session_id,
                data={"reason": e.reason, "type": e.message_type, "len": len(text or "")},
            )
            return
        self._route(s, msg)
        self._close_failed()

    def on_close(self, handle: Any) -> Optional[Session]:
        s = self._close(handle)
        self._close_failed()
        return s

    def _close(self, handle: Any) -> Optional[Session]:
        s = self.registry.remove(handle)
        if s is None:
            return None
        log_event(
            level="info",
            event="session.closed",
            sessionId=s.session_id,
            data={"nickname": s.display_name, "online": len(self.registry)},
        )
        if s.is_named:
            self.dispatcher.broadcast(SystemEvent(message=_leave_text(s.display_name)))
            self._broadcast_user_list()
        return s

    def _route(self, s: Session, msg: InboundMessage) -> None:
        if isinstance(msg, SetNicknameRequest):
            self._set_nickname(s, msg.nickname or "")
            return
        if not s.is_named:
            # Chat and typing need an identity.
            return
        if isinstance(msg, ChatRequest):
            self._chat(s, msg.message)
            return
        if isinstance(msg, (TypingStartRequest, TypingStopRequest)):
            self.dispatcher.broadcast(TypingEvent(type=msg.type, sender=s.display_name), exclude=s.handle)

    def _set_nickname(self, s: Session, requested: str) -> None:
        try:
            name = self.policy.validate(requested, requester=s.handle)
        except NicknameError as e:
            log_event(
                level="info",
                event="session.nickname_rejected",
                sessionId=s.session_id,
                data={"reason": type(e).__name__, "nickname": e.nickname},
            )
            self.dispatcher.send(s.handle, SystemEvent(message=str(e)))
            return

        old = s.display_name
        # No await between validate() and this write.
        self.registry.set_display_name(s.handle, name)
        log_event(level="info", event="session.nickname", sessionId=s.session_id, data={"old": old, "new": name})

        self.dispatcher.send(s.handle, SystemEvent(message=_confirm_text(name), nickname=name))
        if old == name:
            return
        announce = _join_text(name) if old is None else _rename_text(old, name)
        self.dispatcher.broadcast(SystemEvent(message=announce), exclude=s.handle)
        self._broadcast_user_list()

    def _chat(self, s: Session, body: Optional[str]) -> None:
        text = (body or "").strip()
        if not text:
            return
        assert s.display_name is not None
        n = self.dispatcher.broadcast(ChatEvent(sender=s.display_name, message=text), exclude=s.handle)
        log_event(level="info", event="session.chat", sessionId=s.session_id, data={"len": len(text), "recipients": n})

    def _broadcast_user_list(self) -> None:
        self.dispatcher.broadcast(UserListUpdate(users=self.registry.list_display_names()))

    def _close_failed(self) -> None:
        # A failed handoff ends the session exactly like a disconnect; run it
        # after the fan-out so the other recipients see events in order.
        failed = self.dispatcher.take_failed()
        while failed:
            for handle in failed:
                self._close(handle)
            failed = self.dispatcher.take_failed()

    def online_users(self) -> list[str]:
        return self.registry.list_display_names()

    def connection_count(self) -> int:
        return len(self.registry)
