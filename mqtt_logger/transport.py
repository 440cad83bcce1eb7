from __future__ import annotations

from typing import Protocol

from .events import Notification

EXACTLY_ONCE = 2


class TransportError(Exception):
    """The notification source failed; the dispatcher cannot continue."""


class SubmitError(TransportError):
    """A subscribe command could not be handed to the transport."""


class Transport(Protocol):
    def connect(self) -> None: ...

    def subscribe(self, topic: str, qos: int = EXACTLY_ONCE) -> None: ...

    def poll(self) -> Notification: ...

    def close(self) -> None: ...
