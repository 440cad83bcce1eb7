from __future__ import annotations

import enum
import logging
from typing import Callable, Dict, Optional

from .events import ConnAck, Disconnect, DispatchStats, Ignored, Notification, PollError, Publish, SubAck
from .logging_config import report
from .timestamps import Timestamp, stamp
from .transport import Transport, TransportError
from .writer import DualSinkWriter

log = logging.getLogger("mqttlogger.dispatcher")


class State(enum.Enum):
    RUNNING = "running"
    TERMINATED = "terminated"


class Signal(enum.Enum):
    CONTINUE = "continue"
    TERMINATE = "terminate"


class Dispatcher:
    """Polls the transport and routes one notification per iteration.

    The loop only ends when the transport reports an error.
    """

    def __init__(
        self,
        transport: Transport,
        writer: DualSinkWriter,
        clock: Callable[[], Timestamp] = stamp,
    ) -> None:
        self.transport = transport
        self.writer = writer
        self.clock = clock
        self.state = State.RUNNING
        self.stats = DispatchStats()
        self.error: Optional[str] = None
        self._handlers: Dict[type, Callable[..., Signal]] = {
            Publish: self._on_publish,
            SubAck: self._on_suback,
            ConnAck: self._on_connack,
            Disconnect: self._on_disconnect,
            Ignored: self._on_ignored,
            PollError: self._on_poll_error,
        }

    def run(self) -> DispatchStats:
        while self.state is State.RUNNING:
            try:
                notification = self.transport.poll()
            except TransportError as e:
                notification = PollError(str(e))
            if self.dispatch(notification) is Signal.TERMINATE:
                self.state = State.TERMINATED
        return self.stats

    def dispatch(self, notification: Notification) -> Signal:
        handler = self._handlers.get(type(notification), self._on_ignored)
        return handler(notification)

    def _on_publish(self, p: Publish) -> Signal:
        self.stats.received += 1
        # One instant for both sinks.
        ts = self.clock()
        if self.writer.write(ts, p.topic, p.payload):
            self.stats.written += 1
        else:
            self.stats.dropped_unknown += 1
        return Signal.CONTINUE

    def _on_suback(self, ack: SubAck) -> Signal:
        for i, ok in enumerate(ack.codes):
            if ok:
                continue
            self.stats.subscribe_failures += 1
            topic = ack.topic_at(i)
            if topic is None:
                report(log, logging.WARNING, "Got a subscribe fail packet")
            else:
                report(log, logging.WARNING, "Got a subscribe fail packet", topic=topic)
        return Signal.CONTINUE

    def _on_connack(self, ack: ConnAck) -> Signal:
        if ack.success:
            log.info("Connection established")
        return Signal.CONTINUE

    def _on_disconnect(self, d: Disconnect) -> Signal:
        if d.reason:
            log.info("Got disconnect: %s", d.reason)
        else:
            log.info("Got disconnect")
        return Signal.CONTINUE

    def _on_ignored(self, _notification: object) -> Signal:
        return Signal.CONTINUE

    def _on_poll_error(self, e: PollError) -> Signal:
        report(log, logging.ERROR, "Transport error, stopping", error=e.detail)
        self.error = e.detail
        return Signal.TERMINATE
