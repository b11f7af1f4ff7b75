"""Transport layer implementations."""

import os

from .base import Inbound, Transport, response_topic
from ..errors import (
    TransportError,
    ConnectError,
    SubscribeTimeout,
    ConfigError,
)

backends = ("mqtt", "amqp")


def create(config, client_id):
    """Return an unconnected transport for *client_id*, built from a
    :class:`mqttrpc.config.Configuration`. The ``MQTTRPC_TRANSPORT``
    environment variable overrides the configured backend."""

    backend = os.environ.get("MQTTRPC_TRANSPORT", config.transport)

    if backend == "mqtt":
        from .mqtt import MqttTransport

        broker = config.mqtt
        return MqttTransport(
            client_id,
            host=broker.host,
            port=broker.port,
            username=broker.username,
            password=broker.password,
        )

    if backend == "amqp":
        from .amqp import AmqpTransport

        broker = config.amqp
        return AmqpTransport(
            client_id,
            host=broker.host,
            port=broker.port,
            username=broker.username,
            password=broker.password,
        )

    raise ConfigError(f"unknown transport backend: {backend!r}")
