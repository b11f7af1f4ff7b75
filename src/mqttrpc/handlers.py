""" The handlers a stock responder answers to. Each handler is a small
    class with a ``handle(request)`` method returning an
    :class:`mqttrpc.protocol.dispatch.Outcome`; :func:`create_dispatcher`
    registers all of them under their conventional function names.
"""

import platform
import socket

from loguru import logger

from . import version
from .errors import FieldMissingOrWrongType, HandlerError
from .protocol.dispatch import Dispatcher, Outcome
from .protocol.message import Response, OK, BAD_REQUEST


class QuitHandler:
    """ Ask the responder to shut down. The boolean ``quit`` argument is
        required; its value is what gets returned as the quit flag, so a
        request with ``quit=False`` succeeds without shutting anything down.
    """

    def handle(self, request):
        logger.debug('QuitHandler')

        try:
            quit = request.get_boolean('quit')
        except FieldMissingOrWrongType as e:
            response = Response(BAD_REQUEST)
            response.put_message("could not find 'quit' in arguments: " + str(e))
            return Outcome(response, False)

        return Outcome(Response(OK), quit)


# end of class QuitHandler



class BuildInfoHandler:
    """ Describe the running responder. """

    def handle(self, request):
        logger.debug('BuildInfoHandler')

        response = Response(OK)
        response.put_string('version', version)
        response.put_string('python', platform.python_version())
        response.put_string('platform', platform.platform())
        response.put_string('hostname', socket.gethostname())
        return Outcome(response, False)


# end of class BuildInfoHandler



class CalculatorHandler:
    """ Integer arithmetic on ``param1`` and ``param2``; the ``operation``
        is one of add, sub, mul, or div. Division truncates toward zero.
    """

    operations = ('add', 'sub', 'mul', 'div')

    # Results are signed 64-bit integers.

    minimum = -2 ** 63
    maximum = 2 ** 63 - 1

    def handle(self, request):
        logger.debug('CalculatorHandler')

        operation = request.get_string('operation')
        param1 = request.get_integer('param1')
        param2 = request.get_integer('param2')

        if operation == 'add':
            result = param1 + param2
        elif operation == 'sub':
            result = param1 - param2
        elif operation == 'mul':
            result = param1 * param2
        elif operation == 'div':
            if param2 == 0:
                raise HandlerError('division by zero')

            # Python's // floors; the protocol truncates like C does.
            result = abs(param1) // abs(param2)
            if (param1 < 0) != (param2 < 0):
                result = -result
        else:
            raise HandlerError('unexpected operation: ' + operation)

        if result < self.minimum or result > self.maximum:
            raise HandlerError('result out of range: ' + str(result))

        response = Response(OK)
        response.put_integer('result', result)
        return Outcome(response, False)


# end of class CalculatorHandler



class GetPagesHandler:

    pages = "[ 'one', 'two', 'three' ]"

    def handle(self, request):
        logger.debug('GetPagesHandler')

        response = Response(OK)
        response.put_string('result', self.pages)
        return Outcome(response, False)


# end of class GetPagesHandler



def create_dispatcher():
    """ Return a new :class:`Dispatcher` with the stock handlers registered.
        The caller may register more before handing it to a responder.
    """

    dispatcher = Dispatcher()
    dispatcher.register('buildinfo', BuildInfoHandler())
    dispatcher.register('calculator', CalculatorHandler())
    dispatcher.register('getPages', GetPagesHandler())
    dispatcher.register('quit', QuitHandler())

    return dispatcher


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
