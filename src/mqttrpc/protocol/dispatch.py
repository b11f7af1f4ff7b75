""" Routing of incoming requests to their handlers. A :class:`Dispatcher`
    is built once at startup, handlers are registered by function name, and
    from then on :func:`Dispatcher.dispatch` turns raw request bytes into an
    :class:`Outcome`: a response and a flag indicating whether the responder
    should shut down once that response has been sent.

    A handler is any object with a ``handle(request)`` method returning an
    :class:`Outcome` (or an equivalent ``(response, quit)`` tuple). Handlers
    signal failure by raising an exception.
"""

import collections

from loguru import logger

from . import message
from ..errors import DecodeError


Outcome = collections.namedtuple('Outcome', ('response', 'quit'))


def bad_request(text):
    """ Return an :class:`Outcome` with a 400 response that does not ask
        the responder to quit.
    """

    return Outcome(message.Response.bad_request(text), False)



class Dispatcher:
    """ Map function names to handlers, and validate and route incoming
        requests. Once :func:`seal` has been called the set of handlers is
        fixed; the responder seals its dispatcher when it starts.
    """

    def __init__(self, handlers=None):

        self.handlers = dict()
        self.sealed = False

        if handlers is not None:
            for name, handler in handlers.items():
                self.register(name, handler)


    def __contains__(self, name):
        return name in self.handlers


    def names(self):
        return tuple(sorted(self.handlers.keys()))


    def register(self, name, handler):
        """ Associate *handler* with the function *name*. Re-registering a
            name replaces the previous handler.
        """

        if self.sealed:
            raise RuntimeError('cannot register handlers on a sealed dispatcher')

        if isinstance(name, str) and name != '':
            pass
        else:
            raise ValueError('handler names must be non-empty strings')

        try:
            handler.handle
        except AttributeError:
            raise TypeError('handler for %r has no handle() method' % (name,))

        self.handlers[name] = handler


    def seal(self):
        self.sealed = True


    def dispatch(self, raw):
        """ Decode *raw* bytes as a :class:`mqttrpc.protocol.message.Request`,
            invoke the matching handler, and return its :class:`Outcome`.
            Every failure along the way becomes a 400 response; nothing is
            raised past this method.
        """

        try:
            request = message.decode_request(raw)
        except DecodeError as e:
            return bad_request('request could not be decoded: ' + str(e))

        if request.args is None:
            return bad_request('missing request')

        function = request.function

        if function == '':
            return bad_request('empty function')

        try:
            handler = self.handlers[function]
        except KeyError:
            return bad_request('unexpected function: ' + function)

        try:
            returned = handler.handle(request)
        except Exception as e:
            logger.opt(exception=True).debug(f"handler '{function}' raised")
            return bad_request(f"handler '{function}' failed: {e}")

        if returned is None:
            return bad_request('response is null')

        try:
            response, quit = returned
        except (TypeError, ValueError):
            return bad_request(f"handler '{function}' failed: returned {returned!r}")

        if response is None:
            return bad_request('response is null')

        return Outcome(response, bool(quit))


# end of class Dispatcher


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
