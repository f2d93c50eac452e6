from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from collections.abc import Callable

SmsHandler = Callable[[str], None]


class PermissionStatus(str, enum.Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNAVAILABLE = "unavailable"


class SmsEventSource(ABC):
    """Platform stream of inbound SMS events.

    Each event is the raw JSON envelope ``{"messageBody", "senderPhoneNumber"}``.
    """

    name: str = ""

    @abstractmethod
    async def request_permission(self) -> PermissionStatus:
        """Ask the platform for permission to receive SMS."""

    @abstractmethod
    def add_listener(self, handler: SmsHandler) -> Callable[[], None]:
        """Register handler for every received event and return its remover."""


class LocalSmsSource(SmsEventSource):
    """In-process event source; events are pushed with ``emit``."""

    name = "local"

    def __init__(self, permission: PermissionStatus = PermissionStatus.GRANTED) -> None:
        self.permission = permission
        self._handlers: list[SmsHandler] = []

    async def request_permission(self) -> PermissionStatus:
        return self.permission

    def add_listener(self, handler: SmsHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def remove() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return remove

    @property
    def listener_count(self) -> int:
        return len(self._handlers)

    def emit(self, raw: str) -> None:
        for handler in list(self._handlers):
            handler(raw)
