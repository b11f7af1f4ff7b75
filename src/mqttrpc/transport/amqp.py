"""RabbitMQ (AMQP 0-9-1) publish/subscribe transport.

Topics are routing keys on the ``amq.topic`` exchange, with ``/`` mapped to
``.`` the same way the RabbitMQ MQTT plugin maps them, so MQTT and AMQP
clients can share one broker. The correlation data and response topic map
onto the ``correlation_id`` and ``reply_to`` message properties.
"""

from __future__ import annotations

import queue
import threading
import time
from typing import Dict, Optional, Tuple

import pika
import pika.exceptions
from loguru import logger

from ..errors import ConnectError, TransportError
from .base import Inbound, SubscribedCallback, Transport


EXCHANGE = "amq.topic"
RETRY_DELAY = 2


def routing_key(topic: str) -> str:
    return topic.replace("/", ".")


def topic_name(key: str) -> str:
    return key.replace(".", "/")


class AmqpTransport(Transport):
    """Publish to the topic exchange; consume from an exclusive queue bound
    to every subscribed topic. All channel operations happen on the
    connection thread, other threads hand work over via
    ``add_callback_threadsafe``."""

    def __init__(
        self,
        client_id: str,
        host: str = "localhost",
        port: int = 5672,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        super().__init__()

        self.client_id = client_id
        self.host = host
        self.port = int(port)

        if username:
            credentials = pika.PlainCredentials(username, password or "")
        else:
            credentials = pika.ConnectionParameters.DEFAULT_CREDENTIALS

        self._parameters = pika.ConnectionParameters(
            host=host,
            port=self.port,
            credentials=credentials,
            heartbeat=30,
            blocked_connection_timeout=300,
            client_properties={"connection_name": client_id},
        )

        self._lock = threading.Lock()
        self._subscriptions: Dict[str, Optional[SubscribedCallback]] = {}
        self._outbox: queue.SimpleQueue = queue.SimpleQueue()
        self._connection = None
        self._channel = None
        self._queue = None
        self._ready = threading.Event()
        self.shutdown = False
        self._thread: Optional[threading.Thread] = None

    def __repr__(self) -> str:
        return f"<AmqpTransport {self.client_id} amqp://{self.host}:{self.port}>"

    @property
    def is_open(self) -> bool:
        return self._ready.is_set()

    def connect(self) -> None:
        if self._thread is not None:
            raise ConnectError("transport already started")

        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def close(self) -> None:
        self.shutdown = True
        connection = self._connection
        if connection is not None and self._ready.is_set():
            try:
                connection.add_callback_threadsafe(self._stop)
            except pika.exceptions.AMQPError:
                pass

        if self._thread is not None:
            self._thread.join(timeout=5)

    def publish(
        self,
        topic: str,
        payload: bytes,
        correlation: Optional[bytes] = None,
        response_topic: Optional[str] = None,
    ) -> None:
        if not self._ready.is_set():
            raise TransportError(f"not connected to AMQP broker at {self.host}:{self.port}")

        properties = pika.BasicProperties(
            correlation_id=correlation.decode("latin-1") if correlation is not None else None,
            reply_to=response_topic,
        )
        self._outbox.put((routing_key(topic), payload, properties))

        try:
            self._connection.add_callback_threadsafe(self._flush_outbox)
        except pika.exceptions.AMQPError as exc:
            raise TransportError(f"publish to {topic!r} failed: {exc}") from exc

    def subscribe(
        self,
        topic: str,
        on_subscribed: Optional[SubscribedCallback] = None,
    ) -> None:
        with self._lock:
            self._subscriptions[topic] = on_subscribed

        if self._ready.is_set():
            self._connection.add_callback_threadsafe(lambda: self._bind(topic))

    # --- internal, connection thread only ---

    def _run(self) -> None:
        while not self.shutdown:
            try:
                self._session()
            except pika.exceptions.AMQPError as exc:
                logger.error(f"error whilst attempting connection: {exc}")
            finally:
                self._ready.clear()

            if not self.shutdown:
                time.sleep(RETRY_DELAY)

    def _session(self) -> None:
        self._connection = pika.BlockingConnection(self._parameters)
        try:
            self._channel = self._connection.channel()

            result = self._channel.queue_declare(queue="", exclusive=True, auto_delete=True)
            self._queue = result.method.queue
            self._channel.basic_consume(
                queue=self._queue,
                on_message_callback=self._on_message,
                auto_ack=True,
            )

            logger.info(f"{self.client_id} connected to amqp://{self.host}:{self.port}")
            self._ready.set()

            with self._lock:
                topics = tuple(self._subscriptions.keys())
            for topic in topics:
                self._bind(topic)

            self._flush_outbox()
            self._channel.start_consuming()
        finally:
            if self._connection.is_open:
                self._connection.close()

    def _stop(self) -> None:
        if self._channel is not None:
            self._channel.stop_consuming()

    def _bind(self, topic: str) -> None:
        self._channel.queue_bind(queue=self._queue, exchange=EXCHANGE, routing_key=routing_key(topic))
        logger.debug(f"{self.client_id} subscribed to {topic!r}")

        with self._lock:
            callback = self._subscriptions.get(topic)
        if callback is not None:
            callback(topic)

    def _flush_outbox(self) -> None:
        """Drain all queued outgoing messages."""
        while True:
            try:
                key, payload, properties = self._outbox.get_nowait()
            except queue.Empty:
                break

            self._channel.basic_publish(
                exchange=EXCHANGE,
                routing_key=key,
                properties=properties,
                body=payload,
            )

    def _on_message(self, _channel, method, properties, body: bytes) -> None:
        correlation, reply_to = _metadata(properties)
        self._deliver(Inbound(topic_name(method.routing_key), body, correlation, reply_to))


def _metadata(properties) -> Tuple[Optional[bytes], Optional[str]]:
    correlation = properties.correlation_id
    if correlation is not None:
        correlation = correlation.encode("latin-1")
    return correlation, properties.reply_to or None
