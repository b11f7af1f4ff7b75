""" Command line entry points. ``mqttrpc-responder`` answers requests until
    it is asked to quit; ``mqttrpc-calculator``, ``mqttrpc-quit`` and
    ``mqttrpc-call`` each send a single request and report the reply.

    Every entry point returns the process exit status: 0 on success, 1 for
    a failure to get an answer at all, 2 for an answer that says no.
"""

import argparse
import signal

from loguru import logger

from . import config
from . import handlers
from . import json
from . import log
from . import transport
from .database import Database
from .errors import Cancelled, ConfigError, DecodeError, RpcError, Timeout
from .gate import Gate
from .requester import Requester
from .responder import Responder


def _parser(description, client_id):

    parser = argparse.ArgumentParser(description=description)
    parser.add_argument('--config', default=None,
                        help='configuration file (default: $MQTTRPC_HOME/responder.json)')
    parser.add_argument('--log-level', default=None,
                        help='log level (default: $MQTTRPC_LOG_LEVEL, or INFO)')
    parser.add_argument('--client-id', default=client_id,
                        help='broker client identifier (default: %(default)s)')
    return parser



def _requester_parser(description):

    parser = _parser(description, 'requester')
    parser.add_argument('--timeout', type=float, default=Requester.timeout,
                        help='seconds to wait for the reply (default: %(default)s)')
    return parser



def _interruptible():
    """ Return a gate that SIGINT or SIGTERM will set. """

    cancel = Gate('interrupt')

    def interrupted(signum, frame):
        logger.info('interrupted by signal %d' % (signum,))
        cancel.set()

    signal.signal(signal.SIGINT, interrupted)
    signal.signal(signal.SIGTERM, interrupted)

    return cancel



def _setup(arguments):

    log.configure(arguments.log_level)
    return config.load(arguments.config)



def _request(arguments, function, args):
    """ Send one request and return the response, or an integer exit
        status if no response was obtained.
    """

    try:
        configuration = _setup(arguments)
        connection = transport.create(configuration, arguments.client_id)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    cancel = _interruptible()
    requester = Requester(connection, arguments.client_id)

    try:
        requester.start(cancel=cancel)
        response = requester.call(function, args, timeout=arguments.timeout, cancel=cancel)
    except DecodeError as e:
        logger.error(f'could not decode response: {e}')
        return 1
    except (Timeout, Cancelled) as e:
        logger.error(str(e))
        return 1
    except RpcError as e:
        logger.error(f'{type(e).__name__}: {e}')
        return 1
    finally:
        requester.close()

    if response.ok():
        return response

    logger.error(f'code: {response.get_code()}, message: {response.message}')
    return 2



def responder(argv=None):

    parser = _parser('Answer RPC requests until asked to quit.', 'listener')
    arguments = parser.parse_args(argv)

    try:
        configuration = _setup(arguments)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    logger.info('mqttrpc Responder')

    database = None
    if configuration.db is not None:
        database = Database(configuration.db)
        try:
            database.open()
        except ConfigError as e:
            logger.error(str(e))
            return 1

    try:
        connection = transport.create(configuration, arguments.client_id)
    except ConfigError as e:
        logger.error(str(e))
        if database is not None:
            database.close()
        return 1

    service = Responder(connection, handlers.create_dispatcher(), database)
    cancel = _interruptible()

    try:
        service.start()
    except RpcError as e:
        logger.error(str(e))
        service.stop()
        return 1

    service.run(cancel)
    return 0



def calculator(argv=None):

    parser = _requester_parser('Ask the responder to do some integer arithmetic.')
    parser.add_argument('--operation', required=True,
                        help='the calculation operation (add, sub, mul, div)')
    parser.add_argument('--param1', required=True, type=int,
                        help='the first integer argument')
    parser.add_argument('--param2', required=True, type=int,
                        help='the second integer argument')
    arguments = parser.parse_args(argv)

    args = dict()
    args['operation'] = arguments.operation
    args['param1'] = arguments.param1
    args['param2'] = arguments.param2

    response = _request(arguments, 'calculator', args)
    if isinstance(response, int):
        return response

    try:
        result = response.get_integer('result')
    except RpcError as e:
        logger.error(str(e))
        return 1

    logger.info(f'result: {result}')
    return 0



def quit(argv=None):

    parser = _requester_parser('Ask the responder to shut down.')
    arguments = parser.parse_args(argv)

    response = _request(arguments, 'quit', {'quit': True})
    if isinstance(response, int):
        return response

    logger.info('Responder is quitting')
    return 0



def call(argv=None):

    parser = _requester_parser('Call any function on the responder.')
    parser.add_argument('function', help='name of the remote function')
    parser.add_argument('--arg', action='append', default=[], metavar='NAME=VALUE',
                        help='an argument; VALUE is parsed as JSON if possible, '
                             'otherwise taken as a string. May be repeated.')
    arguments = parser.parse_args(argv)

    try:
        args = parse_args(arguments.arg)
    except ValueError as e:
        parser.error(str(e))

    response = _request(arguments, arguments.function, args)
    if isinstance(response, int):
        return response

    print(json.dumps(response.fields).decode())
    return 0



def parse_args(pairs):
    """ Turn a list of ``name=value`` strings into an argument dictionary.
    """

    args = dict()

    for pair in pairs:
        name, separator, value = pair.partition('=')

        if separator == '' or name == '':
            raise ValueError('arguments must look like NAME=VALUE, not ' + repr(pair))

        try:
            args[name] = json.loads(value)
        except json.JSONDecodeError:
            args[name] = value

    return args


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
