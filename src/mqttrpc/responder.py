""" The receiving end of the RPC protocol. A :class:`Responder` subscribes
    to the request topic, feeds every inbound message through its
    :class:`mqttrpc.protocol.dispatch.Dispatcher`, and publishes the result
    to the response topic and correlation data the caller supplied.

    Inbound messages are handed from the transport's network thread to a
    single loop thread via a queue; handlers run one at a time, in arrival
    order, on that loop thread. The responder moves through three states:

    * RUNNING: requests are answered.
    * DRAINING: a quit request has been answered; anything still queued is
      discarded and teardown begins.
    * STOPPED: the database handle and the transport are closed.
"""

import queue
import threading

from loguru import logger

from .gate import Gate
from .errors import TransportError, ValidationError
from .protocol.dispatch import Outcome
from .protocol.message import Response, encode_response


RUNNING = 'running'
DRAINING = 'draining'
STOPPED = 'stopped'

request_topic = 'request'


class Responder:
    """ Answer requests arriving on *topic* via *transport*, using the
        handlers registered with *dispatcher*. The optional *database* is
        any object with a ``close()`` method; it is closed, along with the
        transport, when the responder stops.
    """

    # How often, in seconds, the loop thread checks for cancellation while
    # the queue is empty.

    poll_interval = 0.05

    def __init__(self, transport, dispatcher, database=None, topic=request_topic):

        self.transport = transport
        self.dispatcher = dispatcher
        self.database = database
        self.topic = topic

        self.queue = queue.SimpleQueue()
        self.quit = Gate('quit')
        self.subscribed = Gate('request subscription')
        self.state = RUNNING

        self._stop_lock = threading.Lock()
        self._stopped = False


    def start(self):
        """ Freeze the dispatcher, subscribe to the request topic, and start
            connecting. Returns immediately; the subscription is confirmed
            asynchronously, see :attr:`subscribed`.
        """

        self.dispatcher.seal()
        self.transport.on_message(self.receive)
        self.transport.subscribe(self.topic, self._on_subscribed)
        self.transport.connect()


    def _on_subscribed(self, topic):

        if self.subscribed.set():
            logger.info(f'listening for requests on {topic!r}')
        else:
            logger.info(f're-subscribed to {topic!r}')


    def receive(self, inbound):
        """ Transport callback. Only queues the message, the loop thread
            does the rest.
        """

        self.queue.put(inbound)


    def run(self, cancel=None):
        """ Process requests until a quit request is honored, or until the
            optional *cancel* gate is set. The responder is stopped when
            this method returns.
        """

        try:
            while True:
                if self.quit.is_set():
                    break

                if cancel is not None and cancel.is_set():
                    logger.info('cancelled, no longer accepting requests')
                    break

                try:
                    inbound = self.queue.get(timeout=self.poll_interval)
                except queue.Empty:
                    continue

                try:
                    self.handle(inbound)
                except Exception:
                    logger.exception(f'unexpected failure handling message on {inbound.topic!r}')
        finally:
            self.stop()


    def handle(self, inbound):
        """ Answer one inbound message. Returns the dispatch
            :class:`mqttrpc.protocol.dispatch.Outcome` if a reply was
            published, otherwise None.
        """

        if self.state != RUNNING:
            logger.info(f'discarding request, responder is {self.state}')
            return None

        logger.info(f'Received request: {_printable(inbound.payload)}')

        if not inbound.correlation:
            logger.info('discarding request with no correlation data')
            return None

        if not inbound.response_topic:
            logger.info('discarding request with empty response topic')
            return None

        outcome = self.dispatcher.dispatch(inbound.payload)

        try:
            body = encode_response(outcome.response)
        except ValidationError as e:
            logger.warning(f'replacing unencodable reply: {e}')
            outcome = Outcome(Response.bad_request(str(e)), False)
            body = encode_response(outcome.response)

        logger.info(f'Sending reply: {_printable(body)}')

        try:
            self.transport.publish(inbound.response_topic, body, correlation=inbound.correlation)
        except (TransportError, ValueError) as e:
            logger.warning(f'could not publish reply to {inbound.response_topic!r}: {e}')
            return None

        if outcome.quit:
            if self.quit.set():
                self.state = DRAINING
                logger.info('Quitting')
            else:
                logger.debug('redundant quit request')

        return outcome


    def stop(self):
        """ Discard anything still queued, then close the database handle
            and the transport. Only the first call has any effect.
        """

        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True

        if self.state == RUNNING:
            self.state = DRAINING

        discarded = 0
        while True:
            try:
                self.queue.get_nowait()
            except queue.Empty:
                break
            discarded += 1

        if discarded:
            logger.info(f'discarded {discarded} request(s) received during shutdown')

        try:
            if self.database is not None:
                self.database.close()
        finally:
            self.transport.close()
            self.state = STOPPED


# end of class Responder



def _printable(payload):

    try:
        return payload.decode()
    except (AttributeError, UnicodeDecodeError):
        return repr(payload)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
