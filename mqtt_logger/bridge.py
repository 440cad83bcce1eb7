from __future__ import annotations

import logging
import sys
from typing import BinaryIO, List, Optional

from .config import Settings
from .dispatcher import Dispatcher
from .events import DispatchStats
from .registry import subscribe_topics
from .transport import Transport, TransportError
from .writer import DualSinkWriter

log = logging.getLogger("mqttlogger.bridge")


def build_transport(settings: Settings) -> Transport:
    if settings.transport == "zmq":
        from .zmq_transport import ZmqTransport

        return ZmqTransport(settings)
    from .mqtt_transport import MqttTransport

    return MqttTransport(settings)


class Bridge:
    def __init__(
        self,
        settings: Settings,
        transport: Optional[Transport] = None,
        console: Optional[BinaryIO] = None,
    ) -> None:
        self.settings = settings
        self.transport = transport if transport is not None else build_transport(settings)
        self.console = console if console is not None else sys.stdout.buffer
        self.stats: Optional[DispatchStats] = None

    def run(self, topics: List[str]) -> int:
        """Log until the transport fails. Returns the process exit status."""
        try:
            self.transport.connect()
        except TransportError as e:
            log.error("%s", e)
            return 1
        try:
            log.info("Selected topics: %s", topics)
            with subscribe_topics(topics, self.transport, self.settings.log_dir) as registry:
                writer = DualSinkWriter(registry, self.console, sync=self.settings.sync_writes)
                dispatcher = Dispatcher(self.transport, writer)
                self.stats = dispatcher.run()
                log.info(
                    "Stopped after %d messages (%d written, %d without a log file)",
                    self.stats.received,
                    self.stats.written,
                    self.stats.dropped_unknown,
                )
        finally:
            self.transport.close()
        return 1
