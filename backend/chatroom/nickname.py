from __future__ import annotations

from typing import Any, Optional

from chatroom.errors import InvalidLength, NameTaken
from chatroom.registry import ConnectionRegistry


MIN_NICKNAME_LENGTH = 2
MAX_NICKNAME_LENGTH = 15


class NicknamePolicy:
    """
    Length and case-insensitive uniqueness rules for display names.

    `validate` reads the registry but never writes it; the caller writes the
    accepted name in the same synchronous step so no other handler can claim
    it in between.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        min_length: int = MIN_NICKNAME_LENGTH,
        max_length: int = MAX_NICKNAME_LENGTH,
    ) -> None:
        self.registry = registry
        self.min_length = min_length
        self.max_length = max_length

    def validate(self, name: str, *, requester: Optional[Any] = None) -> str:
        nickname = (name or "").strip()
        if not (self.min_length <= len(nickname) <= self.max_length):
            raise InvalidLength(
                f"昵称长度必须在 {self.min_length} 到 {self.max_length} 个字符之间。",
                nickname=nickname,
            )

        own: Optional[str] = None
        if requester is not None:
            s = self.registry.get(requester)
            own = s.display_name if s is not None else None

        key = nickname.casefold()
        for taken in self.registry.list_display_names():
            if taken.casefold() != key:
                continue
            # A user may re-submit (or re-case) their own current name.
            if own is not None and taken == own:
                continue
            raise NameTaken(f'昵称 "{nickname}" 已被占用，请换一个。', nickname=nickname)
        return nickname
