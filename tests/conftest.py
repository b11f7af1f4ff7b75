import threading

import pytest

import mqttrpc
import loopback


class ClosingCounter:
    """ Stands in for the database handle; only counts close() calls. """

    def __init__(self):
        self.close_count = 0

    def close(self):
        self.close_count += 1


@pytest.fixture
def broker():
    return loopback.Broker()


@pytest.fixture
def database():
    return ClosingCounter()


@pytest.fixture
def running_responder(broker, database):
    """ A stock responder running on its own thread. The fixture yields the
        :class:`mqttrpc.Responder`; its thread is available as the
        ``thread`` attribute.
    """

    transport = loopback.LoopbackTransport(broker, 'listener')
    responder = mqttrpc.Responder(transport, mqttrpc.handlers.create_dispatcher(), database)
    responder.start()

    cancel = mqttrpc.Gate('test teardown')
    thread = threading.Thread(target=responder.run, args=(cancel,))
    thread.daemon = True
    thread.start()
    responder.thread = thread

    yield responder

    cancel.set()
    thread.join(timeout=2)


@pytest.fixture
def requester(broker):

    transport = loopback.LoopbackTransport(broker, 'requester')
    requester = mqttrpc.Requester(transport, 'requester', connect_timeout=1, timeout=2)
    requester.start()

    yield requester

    requester.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
