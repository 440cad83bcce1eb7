from __future__ import annotations

import collections
import logging
from typing import Any, Deque, Dict, List, Optional

import zmq
from zmq.utils.monitor import recv_monitor_message

from .config import Settings
from .events import ConnAck, Disconnect, Ignored, Notification, Publish
from .transport import EXACTLY_ONCE, SubmitError, TransportError

log = logging.getLogger("mqttlogger.zmq")

EVENT_NAMES = {getattr(zmq, name): name for name in dir(zmq) if name.startswith("EVENT_")}


def publication_from_frames(frames: List[bytes]) -> Publish:
    """[topic, part, part, ...] -> Publish; payload parts are concatenated."""
    if not frames:
        raise ValueError("empty multipart message")
    topic = frames[0].decode("utf-8", errors="replace")
    return Publish(topic=topic, payload=b"".join(frames[1:]))


def notification_from_monitor(evt: Dict[str, Any]) -> Notification:
    code = evt.get("event")
    if code == zmq.EVENT_CONNECTED:
        return ConnAck(success=True, code=EVENT_NAMES[code])
    if code == zmq.EVENT_DISCONNECTED:
        return Disconnect(reason=EVENT_NAMES[code])
    return Ignored(kind=EVENT_NAMES.get(code, str(code)))


class ZmqTransport:
    """SUB socket plus its monitor socket, polled together.

    ZMQ reconnects on its own and has no subscribe acknowledgement; the
    monitor supplies the connect/disconnect notifications.
    """

    def __init__(self, settings: Settings, context: Optional[zmq.Context] = None) -> None:
        self.settings = settings
        self._own_context = context is None
        self._ctx: zmq.Context | None = context
        self._sock: zmq.Socket | None = None
        self._monitor: zmq.Socket | None = None
        self._poller = zmq.Poller()
        self._pending: Deque[Notification] = collections.deque()

    @property
    def endpoint(self) -> str:
        return f"tcp://{self.settings.broker}:{self.settings.port}"

    def connect(self) -> None:
        if self._ctx is None:
            self._ctx = zmq.Context(io_threads=1)
        try:
            sock = self._ctx.socket(zmq.SUB)
            self._sock = sock
            sock.setsockopt(zmq.LINGER, self.settings.linger_ms)
            if self.settings.channel_capacity is not None:
                sock.set_hwm(self.settings.channel_capacity)
            if self.settings.max_packet_size is not None:
                sock.setsockopt(zmq.MAXMSGSIZE, self.settings.max_packet_size)
            self._monitor = sock.get_monitor_socket()
            sock.connect(self.endpoint)
        except zmq.ZMQError as e:
            raise TransportError(f"cannot connect to {self.endpoint}: {e}") from e
        self._poller.register(self._sock, zmq.POLLIN)
        self._poller.register(self._monitor, zmq.POLLIN)
        log.info("SUB connecting to %s", self.endpoint)

    def subscribe(self, topic: str, qos: int = EXACTLY_ONCE) -> None:
        if self._sock is None:
            raise SubmitError("not connected")
        try:
            self._sock.setsockopt(zmq.SUBSCRIBE, topic.encode("utf-8"))
        except zmq.ZMQError as e:
            raise SubmitError(str(e)) from e

    def poll(self) -> Notification:
        if self._sock is None or self._monitor is None:
            raise TransportError("not connected")
        while not self._pending:
            try:
                events = dict(self._poller.poll())
                if self._monitor in events:
                    evt = recv_monitor_message(self._monitor, flags=zmq.NOBLOCK)
                    if evt.get("event") == zmq.EVENT_MONITOR_STOPPED:
                        raise TransportError("socket monitor stopped")
                    self._pending.append(notification_from_monitor(evt))
                if self._sock in events:
                    frames = self._sock.recv_multipart(flags=zmq.NOBLOCK)
                    if frames:
                        self._pending.append(publication_from_frames(frames))
            except zmq.Again:
                continue
            except zmq.ZMQError as e:
                raise TransportError(str(e)) from e
        return self._pending.popleft()

    def close(self) -> None:
        if self._sock is not None:
            try:
                self._sock.disable_monitor()
            except zmq.ZMQError:
                log.debug("disable_monitor failed", exc_info=True)
            self._sock.close(self.settings.linger_ms)
            self._sock = None
        if self._monitor is not None:
            self._monitor.close(0)
            self._monitor = None
        if self._ctx is not None and self._own_context:
            self._ctx.term()
        self._ctx = None
