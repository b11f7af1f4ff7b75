"""MQTT v5 transport.

Correlation data and the response topic travel as MQTT v5 publish
properties, so the payload carries nothing but the envelope. The paho
network loop runs on its own thread; it keeps retrying the connection and
re-subscribes every registered topic each time the connection comes up.
"""

from __future__ import annotations

import threading
from typing import Dict, Optional, Tuple

import paho.mqtt.client as mqtt
from loguru import logger
from paho.mqtt.enums import CallbackAPIVersion
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties

from ..errors import ConnectError, TransportError
from .base import Inbound, SubscribedCallback, Transport


QOS = 0
KEEPALIVE = 30
RETRY_DELAY = 2


class MqttTransport(Transport):
    """Publish and subscribe via an MQTT v5 broker."""

    def __init__(
        self,
        client_id: str,
        host: str = "localhost",
        port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        super().__init__()

        self.client_id = client_id
        self.host = host
        self.port = int(port)

        self._lock = threading.Lock()
        self._connected = False
        self._subscriptions: Dict[str, Optional[SubscribedCallback]] = {}
        self._inflight: Dict[int, str] = {}

        client = mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv5,
        )
        if username:
            client.username_pw_set(username, password or None)
        client.reconnect_delay_set(min_delay=RETRY_DELAY, max_delay=RETRY_DELAY)

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_subscribe = self._on_subscribe
        client.on_message = self._on_message
        client.on_connect_fail = self._on_connect_fail

        self.client = client

    def __repr__(self) -> str:
        return f"<MqttTransport {self.client_id} mqtt://{self.host}:{self.port}>"

    @property
    def is_open(self) -> bool:
        return self._connected

    def connect(self) -> None:
        try:
            self.client.connect_async(self.host, self.port, keepalive=KEEPALIVE)
        except (OSError, ValueError) as exc:
            raise ConnectError(f"cannot connect to mqtt://{self.host}:{self.port}: {exc}") from exc

        self.client.loop_start()

    def close(self) -> None:
        self.client.disconnect()
        self.client.loop_stop()
        self._connected = False

    def publish(
        self,
        topic: str,
        payload: bytes,
        correlation: Optional[bytes] = None,
        response_topic: Optional[str] = None,
    ) -> None:
        properties = None
        if correlation is not None or response_topic is not None:
            properties = Properties(PacketTypes.PUBLISH)
            if correlation is not None:
                properties.CorrelationData = correlation
            if response_topic is not None:
                properties.ResponseTopic = response_topic

        info = self.client.publish(topic, payload, qos=QOS, properties=properties)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(f"publish to {topic!r} failed: {mqtt.error_string(info.rc)}")

    def subscribe(
        self,
        topic: str,
        on_subscribed: Optional[SubscribedCallback] = None,
    ) -> None:
        with self._lock:
            self._subscriptions[topic] = on_subscribed
            connected = self._connected

        # Subscribing from the connect callback covers every later reconnect;
        # this covers a subscription added while already connected.
        if connected:
            self._subscribe(topic)

    # --- internal ---

    def _subscribe(self, topic: str) -> None:
        # The SUBACK can arrive before subscribe() returns; holding the lock
        # makes _on_subscribe wait until the message id is recorded.
        with self._lock:
            result, mid = self.client.subscribe(topic, qos=QOS)
            if result == mqtt.MQTT_ERR_SUCCESS:
                self._inflight[mid] = topic

        if result != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(
                f"{self.client_id} failed to subscribe to {topic!r} ({mqtt.error_string(result)})."
                " This is likely to mean no messages will be received."
            )

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            logger.error(f"error whilst attempting connection: {reason_code}")
            return

        logger.info(f"{self.client_id} connected to mqtt://{self.host}:{self.port}")

        with self._lock:
            self._connected = True
            topics = tuple(self._subscriptions.keys())

        for topic in topics:
            self._subscribe(topic)

    def _on_connect_fail(self, client, userdata) -> None:
        logger.error(f"error whilst attempting connection to mqtt://{self.host}:{self.port}")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties) -> None:
        self._connected = False
        if properties is not None and getattr(properties, "ReasonString", None):
            logger.warning(f"requested disconnect: {properties.ReasonString}")
        else:
            logger.warning(f"requested disconnect; reason code: {reason_code}")

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties) -> None:
        with self._lock:
            topic = self._inflight.pop(mid, None)
            callback = self._subscriptions.get(topic) if topic is not None else None

        if topic is None:
            return

        for reason_code in reason_code_list:
            if reason_code.is_failure:
                logger.warning(
                    f"{self.client_id} subscription to {topic!r} refused: {reason_code}."
                    " This is likely to mean no messages will be received."
                )
                return

        logger.debug(f"{self.client_id} subscribed to {topic!r}")
        if callback is not None:
            callback(topic)

    def _on_message(self, client, userdata, message) -> None:
        correlation, response_topic = _metadata(message.properties)
        self._deliver(Inbound(message.topic, message.payload, correlation, response_topic))


def _metadata(properties) -> Tuple[Optional[bytes], Optional[str]]:
    if properties is None:
        return None, None

    correlation = getattr(properties, "CorrelationData", None)
    response_topic = getattr(properties, "ResponseTopic", None) or None
    return correlation, response_topic
