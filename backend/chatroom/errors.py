from __future__ import annotations


class ChatroomError(RuntimeError):
    pass


class DecodeError(ChatroomError):
    """
    Inbound frame that is not valid JSON, not an object, of an unknown `type`,
    or carries fields of the wrong shape. Logged and discarded; never reported
    to the client.
    """

    def __init__(self, reason: str, *, message_type: str | None = None):
        self.reason = reason
        self.message_type = message_type
        super().__init__(reason)


class NicknameError(ChatroomError):
    """
    Rejected nickname. `str(err)` is the user-facing text sent back to the
    requester in a SYSTEM message.
    """

    def __init__(self, message: str, *, nickname: str):
        self.nickname = nickname
        super().__init__(message)


# Nickname failures are the only validation errors the protocol has.
ValidationError = NicknameError


class InvalidLength(NicknameError):
    pass


class NameTaken(NicknameError):
    pass


class TransportError(ChatroomError):
    pass


class AlreadyRegistered(ChatroomError):
    pass
