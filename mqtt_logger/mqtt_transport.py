from __future__ import annotations

import collections
import logging
from typing import Any, Deque, Dict, Optional

import paho.mqtt.client as mqtt

from .config import Settings
from .events import ConnAck, Disconnect, Notification, Publish, SubAck
from .transport import EXACTLY_ONCE, SubmitError, TransportError

log = logging.getLogger("mqttlogger.mqtt")


class MqttTransport:
    """paho-mqtt client driven from poll().

    Network I/O only happens inside poll(), via client.loop(), so callbacks
    run on the caller's thread and simply queue notifications.
    """

    def __init__(self, settings: Settings, client: Any = None, loop_timeout: float = 1.0) -> None:
        self.settings = settings
        self.loop_timeout = loop_timeout
        self._client = client if client is not None else self._build_client(settings)
        self._pending: Deque[Notification] = collections.deque()
        self._sub_topics: Dict[int, str] = {}
        self._error: Optional[TransportError] = None

        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_subscribe = self._on_subscribe
        self._client.on_message = self._on_message

    @staticmethod
    def _build_client(settings: Settings) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
            clean_session=settings.clean_session,
            protocol=mqtt.MQTTv311,
        )
        if settings.username is not None:
            client.username_pw_set(settings.username, settings.password)
        if settings.inflight is not None:
            client.max_inflight_messages_set(settings.inflight)
        if settings.channel_capacity is not None:
            client.max_queued_messages_set(settings.channel_capacity)
        client.enable_logger(logging.getLogger("mqttlogger.paho"))
        return client

    def connect(self) -> None:
        try:
            self._client.connect(self.settings.broker, self.settings.port, keepalive=self.settings.keep_alive)
        except OSError as e:
            raise TransportError(f"cannot connect to {self.settings.broker}:{self.settings.port}: {e}") from e
        log.info("Connecting to %s:%s as %s", self.settings.broker, self.settings.port, self.settings.client_id)

    def subscribe(self, topic: str, qos: int = EXACTLY_ONCE) -> None:
        try:
            rc, mid = self._client.subscribe(topic, qos=qos)
        except ValueError as e:
            raise SubmitError(str(e)) from e
        if rc != mqtt.MQTT_ERR_SUCCESS:
            raise SubmitError(mqtt.error_string(rc))
        self._sub_topics[mid] = topic

    def poll(self) -> Notification:
        # Queued notifications are delivered before a pending loop error.
        while True:
            if self._pending:
                return self._pending.popleft()
            if self._error is not None:
                raise self._error
            rc = self._client.loop(timeout=self.loop_timeout)
            if rc != mqtt.MQTT_ERR_SUCCESS and self._error is None:
                self._error = TransportError(mqtt.error_string(rc))

    def close(self) -> None:
        try:
            self._client.disconnect()
        except OSError:
            log.debug("disconnect on a dead socket", exc_info=True)

    def _queue(self, notification: Notification) -> None:
        # Nothing is queued behind a fatal error.
        if self._error is None:
            self._pending.append(notification)

    # paho callbacks (callback API version 2)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self._queue(ConnAck(success=not reason_code.is_failure, code=str(reason_code)))

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self._queue(Disconnect(reason=str(reason_code)))

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties=None) -> None:
        topic = self._sub_topics.pop(mid, None)
        codes = tuple(not rc.is_failure for rc in reason_code_list)
        self._queue(SubAck(codes=codes, topics=(topic,) * len(codes)))

    def _on_message(self, client, userdata, msg) -> None:
        limit = self.settings.max_packet_size
        if limit is not None and len(msg.payload) > limit:
            if self._error is None:
                self._error = TransportError(f"{len(msg.payload)}B message on {msg.topic} exceeds max packet size {limit}")
            return
        self._queue(Publish(topic=msg.topic, payload=bytes(msg.payload)))
