""" A :class:`Gate` is a one-shot signal: it is set exactly once, it is
    never reset, and any number of threads can wait for it. The requester
    uses one to know its response subscription is in place; the responder
    uses one to know a quit request has been honored; either side can use
    one as a cancellation signal.
"""

import threading
import time

from .errors import Cancelled


class Gate:
    """ Set-once boolean with blocking waiters. Concurrent calls to
        :func:`set` are safe, the first one wins and the rest are no-ops.
    """

    # How often a waiter that also watches a cancellation gate wakes up to
    # check it, in seconds.

    poll_interval = 0.02

    def __init__(self, name=None):

        self.name = name
        self._event = threading.Event()
        self._lock = threading.Lock()


    def __repr__(self):
        state = 'set' if self.is_set() else 'clear'
        return '<Gate %s %s>' % (self.name, state)


    def is_set(self):
        return self._event.is_set()


    def set(self):
        """ Set the gate. Returns True if this call is the one that set it,
            False if it was already set.
        """

        with self._lock:
            if self._event.is_set():
                return False

            self._event.set()
            return True


    def wait(self, timeout=None, cancel=None):
        """ Block until the gate is set, or until *timeout* seconds elapse.
            Returns True if the gate is set, False on timeout. If a *cancel*
            gate (or a sequence of them) is provided and any of them fires
            before this gate is set, :class:`mqttrpc.errors.Cancelled` is
            raised instead.
        """

        if cancel is None:
            return self._event.wait(timeout)

        if isinstance(cancel, Gate):
            cancels = (cancel,)
        else:
            cancels = tuple(gate for gate in cancel if gate is not None)

        if timeout is None:
            deadline = None
        else:
            deadline = time.monotonic() + timeout

        while True:
            if self._event.is_set():
                return True

            for gate in cancels:
                if gate.is_set():
                    raise Cancelled('cancelled while waiting for ' + str(self.name))

            if deadline is None:
                interval = self.poll_interval
            else:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                interval = min(remaining, self.poll_interval)

            if self._event.wait(interval):
                return True


# end of class Gate


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
