""" An in-process stand-in for a message broker, so the requester and the
    responder can be exercised without a network. Delivery is synchronous:
    a publish invokes every matching subscriber's callbacks before it
    returns.
"""

import threading
import time

from mqttrpc.errors import TransportError
from mqttrpc.transport.base import Inbound, Transport


class Broker:

    def __init__(self):

        self.lock = threading.Lock()
        self.subscribers = dict()
        self.published = list()


    def attach(self, topic, transport):

        with self.lock:
            try:
                transports = self.subscribers[topic]
            except KeyError:
                transports = list()
                self.subscribers[topic] = transports

            if transport not in transports:
                transports.append(transport)


    def detach(self, transport):

        with self.lock:
            for transports in self.subscribers.values():
                if transport in transports:
                    transports.remove(transport)


    def publish(self, sender, inbound):

        with self.lock:
            self.published.append((time.monotonic(), sender, inbound))
            transports = tuple(self.subscribers.get(inbound.topic, ()))

        for transport in transports:
            transport._deliver(inbound)


    def topics(self):
        return [inbound.topic for _when, _sender, inbound in self.published]


# end of class Broker



class LoopbackTransport(Transport):
    """ Transport attached to a :class:`Broker`. With *confirm* set to False
        subscriptions are not confirmed until :func:`confirm` is called,
        which is how a slow broker is simulated.
    """

    def __init__(self, broker, client_id, confirm=True):

        Transport.__init__(self)

        self.broker = broker
        self.client_id = client_id
        self.auto_confirm = confirm
        self.connected = False
        self.close_count = 0
        self.subscriptions = dict()
        self.unconfirmed = list()
        self.fail_publish = False


    @property
    def is_open(self):
        return self.connected


    def connect(self):

        self.connected = True

        for topic in tuple(self.subscriptions.keys()):
            self._attach(topic)


    def close(self):

        self.close_count += 1
        self.connected = False
        self.broker.detach(self)


    def publish(self, topic, payload, correlation=None, response_topic=None):

        if self.fail_publish:
            raise TransportError('publish failed on purpose')

        if self.close_count:
            raise TransportError('transport is closed')

        inbound = Inbound(topic, payload, correlation, response_topic)
        self.broker.publish(self.client_id, inbound)


    def subscribe(self, topic, on_subscribed=None):

        self.subscriptions[topic] = on_subscribed

        if self.connected:
            self._attach(topic)


    def confirm(self):
        """ Confirm every subscription still waiting for it. Returns the
            monotonic time at which the confirmations went out.
        """

        when = time.monotonic()
        unconfirmed = self.unconfirmed
        self.unconfirmed = list()

        for topic in unconfirmed:
            self._confirm(topic)

        return when


    def _attach(self, topic):

        self.broker.attach(topic, self)

        if self.auto_confirm:
            self._confirm(topic)
        else:
            self.unconfirmed.append(topic)


    def _confirm(self, topic):

        callback = self.subscriptions.get(topic)
        if callback is not None:
            callback(topic)


# end of class LoopbackTransport



class EchoService:
    """ A minimal responder that does not use :class:`mqttrpc.Responder`: it
        collects *batch* requests, then answers all of them at once in a
        random order. Each reply echoes the request arguments back as
        result fields.
    """

    def __init__(self, broker, batch, rng, topic='request'):

        self.transport = LoopbackTransport(broker, 'echo')
        self.transport.on_message(self.receive)
        self.transport.subscribe(topic)
        self.transport.connect()

        self.batch = batch
        self.rng = rng
        self.lock = threading.Lock()
        self.collected = list()


    def receive(self, inbound):

        with self.lock:
            self.collected.append(inbound)
            if len(self.collected) < self.batch:
                return

            collected = self.collected
            self.collected = list()

        # Reply from another thread; the last caller is still inside its
        # own publish() at this point.

        thread = threading.Thread(target=self.reply_all, args=(collected,))
        thread.daemon = True
        thread.start()


    def reply_all(self, collected):

        from mqttrpc import json

        self.rng.shuffle(collected)

        for inbound in collected:
            request = json.loads(inbound.payload)
            reply = dict(request['args'])
            reply['status'] = 200
            self.transport.publish(inbound.response_topic, json.dumps(reply),
                                   correlation=inbound.correlation)


# end of class EchoService


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
