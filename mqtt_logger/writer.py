from __future__ import annotations

import logging
import os
from typing import BinaryIO

from .logging_config import report
from .registry import TopicFileRegistry
from .timestamps import Timestamp, topic_tag

log = logging.getLogger("mqttlogger.writer")


class DualSinkWriter:
    """Writes each publication to its topic file, then mirrors it to the console.

    Every file record is flushed before write() returns, so a record is on
    disk before the next notification is polled. I/O errors propagate.
    """

    def __init__(self, registry: TopicFileRegistry, console: BinaryIO, sync: bool = False) -> None:
        self.registry = registry
        self.console = console
        self.sync = sync

    def write(self, ts: Timestamp, topic: str, payload: bytes) -> bool:
        written = self._write_file(ts, topic, payload)
        self._write_console(ts, topic, payload)
        return written

    def _write_file(self, ts: Timestamp, topic: str, payload: bytes) -> bool:
        fh = self.registry.get(topic)
        if fh is None:
            report(log, logging.WARNING, "Got packet from a topic with no log file", topic=topic)
            return False
        fh.write(ts.plain.encode("utf-8") + payload + b"\n")
        fh.flush()
        if self.sync:
            os.fsync(fh.fileno())
        return True

    def _write_console(self, ts: Timestamp, topic: str, payload: bytes) -> None:
        line = (ts.colored + topic_tag(topic)).encode("utf-8") + payload + b"\n"
        self.console.write(line)
        self.console.flush()
