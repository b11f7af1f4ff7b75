""" Logging setup for the command line programs. Library code just uses
    the loguru ``logger`` directly; :func:`configure` decides where it goes.
"""

import os
import sys

from loguru import logger

from .errors import ConfigError


levels = ('TRACE', 'DEBUG', 'INFO', 'SUCCESS', 'WARNING', 'ERROR', 'CRITICAL')

format = '<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | {message}'


def configure(level=None, sink=None):
    """ Replace the default loguru sink with one writing to *sink* (stderr
        by default) at the requested *level*. The level is taken from the
        argument, the ``MQTTRPC_LOG_LEVEL`` environment variable, or else
        defaults to INFO. Returns the level that is now in effect.
    """

    if level is None:
        level = os.environ.get('MQTTRPC_LOG_LEVEL', 'INFO')

    level = str(level).strip().upper()

    if level in levels:
        pass
    else:
        raise ConfigError('unknown log level: ' + repr(level))

    if sink is None:
        sink = sys.stderr

    logger.remove()
    logger.add(sink, level=level, format=format)

    return level


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
