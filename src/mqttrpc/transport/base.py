"""Transport interface.

This is the (small) contract that transport implementations should follow.
It lives outside :mod:`mqttrpc.protocol` so the protocol remains
transport-agnostic. A transport moves opaque payloads between topics, and
carries two pieces of metadata alongside each payload: the correlation data
binding a reply to its request, and the topic a reply should be sent to.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, List, NamedTuple, Optional


class Inbound(NamedTuple):
    """One message as delivered by a transport."""

    topic: str
    payload: bytes
    correlation: Optional[bytes] = None
    response_topic: Optional[str] = None


MessageCallback = Callable[[Inbound], None]
SubscribedCallback = Callable[[str], None]


def response_topic(client_id: str) -> str:
    """Private reply topic for *client_id*."""
    return f"response/{client_id}"


class Transport(ABC):
    """Minimal contract for a publish/subscribe transport.

    Implementations deliver inbound messages on a thread of their own, by
    invoking every callback registered with :meth:`on_message`. They are
    expected to re-establish subscriptions after a reconnect, invoking the
    subscription's *on_subscribed* callback each time it is confirmed.
    """

    def __init__(self) -> None:
        self._callbacks: List[MessageCallback] = []

    def on_message(self, callback: MessageCallback) -> None:
        """Register *callback* for every inbound message."""
        if not callable(callback):
            raise TypeError("callback must be callable")
        self._callbacks.append(callback)

    def _deliver(self, inbound: Inbound) -> None:
        for callback in tuple(self._callbacks):
            callback(inbound)

    @abstractmethod
    def connect(self) -> None:
        """Start connecting to the broker. May return before connected."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the underlying connection."""

    @abstractmethod
    def publish(
        self,
        topic: str,
        payload: bytes,
        correlation: Optional[bytes] = None,
        response_topic: Optional[str] = None,
    ) -> None:
        """Publish *payload* to *topic*, raising TransportError on failure."""

    @abstractmethod
    def subscribe(
        self,
        topic: str,
        on_subscribed: Optional[SubscribedCallback] = None,
    ) -> None:
        """Subscribe to *topic*, now and after every reconnect."""

    @property
    def is_open(self) -> bool:
        """Whether the transport is currently connected."""
        return False
