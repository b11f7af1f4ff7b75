""" The calling end of the RPC protocol. A :class:`Requester` subscribes to
    its private response topic, and only once that subscription has been
    confirmed does it publish anything; a request sent before then could be
    answered before the broker has anywhere to deliver the reply.

    Each :func:`Requester.call` publishes one request with a fresh
    correlation token and waits for the reply carrying the same token.
    Calls are matched purely by token, so any number of threads can have
    calls outstanding through the same requester.
"""

import threading
import time
import uuid

from loguru import logger

from .gate import Gate
from .errors import SubscribeTimeout, Timeout
from .protocol.message import encode_request, decode_response
from .responder import request_topic
from .transport.base import response_topic


class Pending:
    """ Bookkeeping for one call in flight: where the request went, the
        token tying the reply to it, where the reply is expected, and by
        when. The *done* gate is set when the reply payload arrives.
    """

    def __init__(self, topic, token, response_topic, deadline):

        self.topic = topic
        self.token = token
        self.response_topic = response_topic
        self.deadline = deadline
        self.payload = None
        self.done = Gate('reply ' + token.decode())
        self._lock = threading.Lock()


    def _complete(self, payload):
        """ Record the reply payload. A duplicate delivery of the same reply
            is ignored; the first one wins.
        """

        with self._lock:
            if self.done.is_set():
                return False

            self.payload = payload
            self.done.set()
            return True


    def remaining(self):

        if self.deadline is None:
            return None

        return max(0.0, self.deadline - time.monotonic())


# end of class Pending



class Requester:
    """ Issue calls over *transport* on behalf of *client_id*. Replies come
        back on ``response/<client_id>``. Use :func:`start` (or the context
        manager protocol) before making calls.

        :ivar ready: Gate set once the response subscription is confirmed.
        :ivar cancelled: Gate set by :func:`close`; aborts every wait.
    """

    # Default bound, in seconds, on connecting and subscribing.

    connect_timeout = 10

    # Default bound, in seconds, on waiting for a reply.

    timeout = 30

    def __init__(self, transport, client_id, topic=request_topic,
                 connect_timeout=None, timeout=None):

        self.transport = transport
        self.client_id = client_id
        self.topic = topic
        self.response_topic = response_topic(client_id)

        if connect_timeout is not None:
            self.connect_timeout = connect_timeout

        if timeout is not None:
            self.timeout = timeout

        self.ready = Gate('response subscription')
        self.cancelled = Gate('requester closed')

        self.pending = dict()
        self._pending_lock = threading.Lock()
        self._started = False
        self._start_lock = threading.Lock()


    def __enter__(self):
        self.start()
        return self


    def __exit__(self, *exc_info):
        self.close()


    def start(self, timeout=None, cancel=None):
        """ Subscribe to the response topic and connect, then block until the
            subscription is confirmed. Raises
            :class:`mqttrpc.errors.SubscribeTimeout` if that takes longer than
            *timeout* seconds, or :class:`mqttrpc.errors.Cancelled` if the
            *cancel* gate fires first. Calling it again is harmless.
        """

        with self._start_lock:
            if self._started == False:
                self._started = True
                self.transport.on_message(self._receive)
                self.transport.subscribe(self.response_topic, self._on_subscribed)
                self.transport.connect()

        self.wait_ready(timeout, cancel)


    def wait_ready(self, timeout=None, cancel=None):

        if timeout is None:
            timeout = self.connect_timeout

        ready = self.ready.wait(timeout, (self.cancelled, cancel))

        if ready == False:
            raise SubscribeTimeout('%s failed to connect & subscribe to %r within %.1f sec' % (
                self.client_id, self.response_topic, timeout))


    def _on_subscribed(self, topic):

        # The transport calls this again after every reconnect; only the
        # first confirmation changes anything.

        if self.ready.set():
            logger.debug(f'{self.client_id} listening for replies on {topic!r}')


    def call(self, function, args=None, timeout=None, cancel=None):
        """ Invoke *function* on the remote side with the *args* dictionary,
            and return the :class:`mqttrpc.protocol.message.Response`.

            Raises :class:`mqttrpc.errors.Timeout` if no reply arrives within
            *timeout* seconds, :class:`mqttrpc.errors.Cancelled` if the
            *cancel* gate fires (or the requester is closed) first, and
            :class:`mqttrpc.errors.DecodeError` if a reply arrives but cannot
            be decoded. A response with a non-200 status is returned, not
            raised; check :func:`Response.ok`.
        """

        payload = encode_request(function, args)

        if timeout is None:
            timeout = self.timeout

        cancels = (self.cancelled, cancel)

        # Never publish ahead of the response subscription.

        self.wait_ready(self.connect_timeout, cancel)

        token = uuid.uuid4().hex.encode()
        pending = Pending(self.topic, token, self.response_topic, time.monotonic() + timeout)

        with self._pending_lock:
            self.pending[token] = pending

        try:
            logger.info(f'Sending request: {payload.decode()}')
            self.transport.publish(self.topic, payload,
                                   correlation=token,
                                   response_topic=self.response_topic)

            replied = pending.done.wait(pending.remaining(), cancels)
        finally:
            with self._pending_lock:
                self.pending.pop(token, None)

        if replied == False:
            raise Timeout('%s: no reply to %r in %.2f sec' % (self.client_id, function, timeout))

        return decode_response(pending.payload)


    def _receive(self, inbound):
        """ Transport callback: hand a reply to the call waiting for it. """

        if inbound.topic != self.response_topic:
            return

        token = inbound.correlation

        with self._pending_lock:
            pending = self.pending.get(token)

        if pending is None:
            # The original caller gave up on this one, or it was never ours.
            logger.debug(f'{self.client_id} discarding reply with unknown correlation {token!r}')
            return

        pending._complete(inbound.payload)


    def close(self):
        """ Abandon any outstanding calls and close the transport. """

        self.cancelled.set()
        self.transport.close()


# end of class Requester


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
