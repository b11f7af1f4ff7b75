import random
import threading
import time

import pytest

import mqttrpc
from mqttrpc.errors import Cancelled, DecodeError, SubscribeTimeout, Timeout, ValidationError
from mqttrpc.transport.base import Inbound

import loopback


class Replier:
    """ Answer every request with a fixed payload. """

    def __init__(self, broker, payload):

        self.payload = payload
        self.transport = loopback.LoopbackTransport(broker, 'replier')
        self.transport.on_message(self.receive)
        self.transport.subscribe('request')
        self.transport.connect()

    def receive(self, inbound):
        self.transport.publish(inbound.response_topic, self.payload, correlation=inbound.correlation)


def test_round_trip(running_responder, requester):

    response = requester.call('calculator', {'operation': 'add', 'param1': 2, 'param2': 40})
    assert response.ok()
    assert response.get_integer('result') == 42

    response = requester.call('unknownThing', {})
    assert response.status == 400
    assert 'unexpected function: unknownThing' in response.message

    response = requester.call('buildinfo')
    assert response.get_string('version') == mqttrpc.version

    # Nothing is left behind once a call completes.

    assert requester.pending == {}


def test_quit_round_trip(running_responder, requester, database):

    response = requester.call('quit', {'quit': True})
    assert response.ok()

    running_responder.thread.join(timeout=2)
    assert running_responder.thread.is_alive() == False
    assert database.close_count == 1


def test_request_goes_where_expected(broker, running_responder, requester):

    requester.call('getPages')

    requests = [inbound for _when, sender, inbound in broker.published if sender == 'requester']
    assert len(requests) == 1

    sent = requests[0]
    assert sent.topic == 'request'
    assert sent.response_topic == 'response/requester'
    assert sent.correlation

    # The correlation token is not part of the payload.

    envelope = mqttrpc.json.loads(sent.payload)
    assert sorted(envelope.keys()) == ['args', 'function']


def test_no_publish_before_subscription(broker, running_responder):
    """ A call made before the response subscription is confirmed must
        wait for it before publishing anything.
    """

    transport = loopback.LoopbackTransport(broker, 'slow', confirm=False)
    requester = mqttrpc.Requester(transport, 'slow', connect_timeout=5, timeout=2)
    results = list()

    def caller():
        requester.start()
        results.append(requester.call('getPages'))

    thread = threading.Thread(target=caller)
    thread.daemon = True
    thread.start()

    time.sleep(0.2)

    assert requester.ready.is_set() == False
    assert [sender for _when, sender, _inbound in broker.published if sender == 'slow'] == []

    confirmed = transport.confirm()
    thread.join(timeout=2)

    assert len(results) == 1
    assert results[0].ok()

    sent = [when for when, sender, _inbound in broker.published if sender == 'slow']
    assert len(sent) == 1
    assert sent[0] >= confirmed

    requester.close()


def test_subscribe_timeout(broker):

    transport = loopback.LoopbackTransport(broker, 'slow', confirm=False)
    requester = mqttrpc.Requester(transport, 'slow', connect_timeout=0.1)

    begin = time.monotonic()
    with pytest.raises(SubscribeTimeout):
        requester.start()
    assert time.monotonic() - begin < 0.5

    # A call cannot sneak past the gate either.

    with pytest.raises(SubscribeTimeout):
        requester.call('getPages')

    assert broker.published == []


def test_resubscribe_is_harmless(broker, running_responder, requester):

    # Simulate the transport reconnecting and confirming the subscription
    # a second time.

    requester._on_subscribed(requester.response_topic)
    assert requester.ready.is_set()

    assert requester.call('getPages').ok()


def test_timeout(requester):
    """ Nobody is listening on the request topic, so no reply ever comes.
    """

    deadline = 0.2

    begin = time.monotonic()
    with pytest.raises(Timeout):
        requester.call('getPages', timeout=deadline)
    elapsed = time.monotonic() - begin

    assert elapsed >= deadline
    assert elapsed < deadline + 0.05
    assert requester.pending == {}


def test_timeout_is_a_timeout_error(requester):

    with pytest.raises(TimeoutError):
        requester.call('getPages', timeout=0.01)


def test_cancel(requester):

    cancel = mqttrpc.Gate('cancel')
    timer = threading.Timer(0.1, cancel.set)
    timer.start()

    begin = time.monotonic()
    with pytest.raises(Cancelled):
        requester.call('getPages', timeout=5, cancel=cancel)
    elapsed = time.monotonic() - begin

    assert elapsed < 0.5
    assert requester.pending == {}


def test_close_cancels_outstanding_calls(broker):

    transport = loopback.LoopbackTransport(broker, 'requester')
    requester = mqttrpc.Requester(transport, 'requester', timeout=5)
    requester.start()

    errors = list()

    def caller():
        try:
            requester.call('getPages')
        except Exception as e:
            errors.append(e)

    thread = threading.Thread(target=caller)
    thread.daemon = True
    thread.start()

    time.sleep(0.1)
    requester.close()
    thread.join(timeout=1)

    assert len(errors) == 1
    assert isinstance(errors[0], Cancelled)
    assert transport.close_count == 1


def test_malformed_reply(broker, requester):

    Replier(broker, b'this is not json')

    with pytest.raises(DecodeError):
        requester.call('getPages')


def test_reply_without_status(broker, requester):

    Replier(broker, b'{"message": "where is my status"}')

    with pytest.raises(DecodeError):
        requester.call('getPages')


def test_reply_with_empty_field_name(broker, requester):

    Replier(broker, b'{"status": 200, "": 1}')

    response = requester.call('getPages')
    assert response.ok()
    assert response.get_integer('') == 1


def test_invalid_request_is_not_sent(broker, requester):

    with pytest.raises(ValidationError):
        requester.call('', {})

    assert broker.published == []


def test_stray_replies_are_ignored(broker, running_responder, requester):

    stranger = loopback.LoopbackTransport(broker, 'stranger')
    stranger.publish('response/requester', b'{"status": 200}', correlation=b'nobody')
    stranger.publish('response/requester', b'{"status": 200}', correlation=None)

    assert requester.call('getPages').ok()


def test_duplicate_reply_first_wins(broker, requester):

    class Twice:
        def __init__(self):
            self.transport = loopback.LoopbackTransport(broker, 'twice')
            self.transport.on_message(self.receive)
            self.transport.subscribe('request')
            self.transport.connect()

        def receive(self, inbound):
            for status in (200, 500):
                payload = mqttrpc.json.dumps({'status': status})
                self.transport.publish(inbound.response_topic, payload, correlation=inbound.correlation)

    Twice()

    assert requester.call('getPages').status == 200


def test_concurrent_calls_get_their_own_replies(broker, requester):
    """ Many calls outstanding at once, answered in a random order: each
        call must see the reply carrying its own arguments.
    """

    count = 25
    loopback.EchoService(broker, count, random.Random(42))

    results = dict()
    errors = list()
    lock = threading.Lock()

    def caller(number):
        try:
            response = requester.call('echo', {'number': number, 'label': 'call-%d' % (number,)})
        except Exception as e:
            with lock:
                errors.append(e)
            return

        with lock:
            results[number] = response

    threads = [threading.Thread(target=caller, args=(number,)) for number in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=3)

    assert errors == []
    assert sorted(results.keys()) == list(range(count))

    for number, response in results.items():
        assert response.get_integer('number') == number
        assert response.get_string('label') == 'call-%d' % (number,)

    assert requester.pending == {}


def test_replies_on_other_topics_are_ignored(requester):

    requester._receive(Inbound('response/somebody-else', b'{"status": 200}', b'x', None))
    assert requester.pending == {}


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
