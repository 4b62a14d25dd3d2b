from __future__ import annotations

from typing import Any, Optional, Protocol

from chatroom.logging.ndjson import log_event
from chatroom.protocol import OutboundEvent, encode
from chatroom.registry import ConnectionRegistry


class Outbound(Protocol):
    """What the dispatcher needs from a connection handle."""

    @property
    def is_open(self) -> bool: ...

    def send(self, text: str) -> None:
        """Non-blocking handoff; raises TransportError on failure."""
        ...


class BroadcastDispatcher:
    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry
        self._failed: list[Any] = []

    def broadcast(self, event: OutboundEvent, *, exclude: Optional[Any] = None) -> int:
        """
        Fan `event` out to every open connection except `exclude`.
        Best-effort per recipient; returns how many handoffs succeeded.
        """
        payload = encode(event)
        delivered = 0
        # Snapshot: cleanup of failed recipients mutates the registry.
        for handle in self.registry.all_handles():
            if exclude is not None and handle is exclude:
                continue
            if self._deliver(handle, payload, event_type=event.type):
                delivered += 1
        return delivered

    def send(self, handle: Any, event: OutboundEvent) -> bool:
        return self._deliver(handle, encode(event), event_type=event.type)

    def _deliver(self, handle: Outbound, payload: str, *, event_type: str) -> bool:
        if not handle.is_open:
            return False
        try:
            handle.send(payload)
            return True
        except Exception as e:  # noqa: BLE001
            s = self.registry.get(handle)
            log_event(
                level="warn",
                event="ws.send_failed",
                sessionId=s.session_id if s is not None else None,
                data={"type": event_type, "error": str(e)},
            )
            if s is not None and handle not in self._failed:
                self._failed.append(handle)
            return False

    def take_failed(self) -> list[Any]:
        """
        Registered connections whose handoff raised since the last call.
        The caller closes them once the current fan-out is done.
        """
        failed, self._failed = self._failed, []
        return failed
