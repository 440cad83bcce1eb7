from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class Publish:
    topic: str
    payload: bytes


@dataclass(frozen=True)
class SubAck:
    """One success flag per requested filter, with the filter when the transport knows it."""

    codes: Tuple[bool, ...]
    topics: Tuple[Optional[str], ...] = ()

    def topic_at(self, index: int) -> Optional[str]:
        if index < len(self.topics):
            return self.topics[index]
        return None


@dataclass(frozen=True)
class ConnAck:
    success: bool
    code: str = ""


@dataclass(frozen=True)
class Disconnect:
    reason: str = ""


@dataclass(frozen=True)
class Ignored:
    kind: str


@dataclass(frozen=True)
class PollError:
    detail: str


Notification = Union[Publish, SubAck, ConnAck, Disconnect, Ignored, PollError]


@dataclass
class DispatchStats:
    received: int = 0
    written: int = 0
    dropped_unknown: int = 0
    subscribe_failures: int = 0
