import io
import sys

import pytest
from loguru import logger

import mqttrpc
from mqttrpc.errors import ConfigError


@pytest.fixture
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_levels(monkeypatch, restore_logger):

    sink = io.StringIO()

    monkeypatch.delenv('MQTTRPC_LOG_LEVEL', raising=False)
    assert mqttrpc.log.configure(sink=sink) == 'INFO'

    logger.debug('hidden')
    logger.info('shown')

    monkeypatch.setenv('MQTTRPC_LOG_LEVEL', 'debug')
    assert mqttrpc.log.configure(sink=sink) == 'DEBUG'
    logger.debug('now visible')

    assert mqttrpc.log.configure('warning', sink=sink) == 'WARNING'
    logger.info('hidden again')

    output = sink.getvalue()
    assert 'shown' in output
    assert 'now visible' in output
    assert 'hidden' not in output


def test_unknown_level(restore_logger):

    with pytest.raises(ConfigError):
        mqttrpc.log.configure('chatty')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
