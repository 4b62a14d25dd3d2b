from __future__ import annotations

import json
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from chatroom.errors import DecodeError


SYSTEM_SENDER = "系统"

SET_NICKNAME = "SET_NICKNAME"
CHAT = "CHAT"
TYPING_START = "TYPING_START"
TYPING_STOP = "TYPING_STOP"
SYSTEM = "SYSTEM"
USER_LIST_UPDATE = "USER_LIST_UPDATE"

INBOUND_TYPES = frozenset({SET_NICKNAME, CHAT, TYPING_START, TYPING_STOP})


class SetNicknameRequest(BaseModel):
    type: Literal["SET_NICKNAME"]
    nickname: Optional[StrictStr] = None


class ChatRequest(BaseModel):
    type: Literal["CHAT"]
    message: Optional[StrictStr] = None


class TypingStartRequest(BaseModel):
    type: Literal["TYPING_START"]


class TypingStopRequest(BaseModel):
    type: Literal["TYPING_STOP"]


InboundMessage = Annotated[
    Union[SetNicknameRequest, ChatRequest, TypingStartRequest, TypingStopRequest],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def decode(text: str | bytes) -> InboundMessage:
    """
    Parse one inbound frame. Fails closed: anything that is not exactly one of
    the known message shapes raises DecodeError.
    """
    try:
        raw = json.loads(text)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"invalid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise DecodeError(f"expected a JSON object, got {type(raw).__name__}")

    mtype = raw.get("type")
    if not isinstance(mtype, str) or mtype not in INBOUND_TYPES:
        raise DecodeError("unrecognized message type", message_type=str(mtype) if mtype is not None else None)

    try:
        return _inbound_adapter.validate_python(raw)
    except PydanticValidationError as e:
        fields = [".".join(str(p) for p in err.get("loc", ())) for err in e.errors()]
        raise DecodeError(f"malformed {mtype}: {', '.join(fields) or 'invalid'}", message_type=mtype) from e


class SystemEvent(BaseModel):
    type: Literal["SYSTEM"] = SYSTEM
    sender: str = SYSTEM_SENDER
    message: str
    # Only set on the requester's own nickname confirmation.
    nickname: Optional[str] = None


class ChatEvent(BaseModel):
    type: Literal["CHAT"] = CHAT
    sender: str
    message: str


class TypingEvent(BaseModel):
    type: Literal["TYPING_START", "TYPING_STOP"]
    sender: str


class UserListUpdate(BaseModel):
    type: Literal["USER_LIST_UPDATE"] = USER_LIST_UPDATE
    users: list[str] = Field(default_factory=list)


OutboundEvent = Union[SystemEvent, ChatEvent, TypingEvent, UserListUpdate]


def encode(event: OutboundEvent) -> str:
    return json.dumps(event.model_dump(exclude_none=True), ensure_ascii=False, separators=(",", ":"))
