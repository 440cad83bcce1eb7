from __future__ import annotations

import io
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Set

import pytest

from mqtt_logger.events import Notification
from mqtt_logger.timestamps import Timestamp
from mqtt_logger.transport import EXACTLY_ONCE, SubmitError, TransportError


class FakeTransport:
    """Scripted notification source: yields the script, then fails."""

    def __init__(self, script: Iterable[Notification] = (), fail_subscribe: Optional[Set[str]] = None) -> None:
        self.script: List[Notification] = list(script)
        self.fail_subscribe = fail_subscribe or set()
        self.subscribed: List[tuple[str, int]] = []
        self.polls = 0
        self.connected = False
        self.closed = False
        self.connect_error: Optional[TransportError] = None

    def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def subscribe(self, topic: str, qos: int = EXACTLY_ONCE) -> None:
        if topic in self.fail_subscribe:
            raise SubmitError("request channel closed")
        self.subscribed.append((topic, qos))

    def poll(self) -> Notification:
        self.polls += 1
        if not self.script:
            raise TransportError("connection closed by broker")
        return self.script.pop(0)

    def close(self) -> None:
        self.closed = True


FIXED = Timestamp.from_datetime(datetime(2024, 3, 9, 7, 5, 3, 42000))


@pytest.fixture
def fake_transport():
    return FakeTransport


@pytest.fixture
def console():
    return io.BytesIO()


@pytest.fixture(autouse=True)
def _capture_mqttlogger(caplog):
    caplog.set_level(logging.DEBUG, logger="mqttlogger")
    yield


@pytest.fixture
def fixed_ts() -> Timestamp:
    return FIXED
