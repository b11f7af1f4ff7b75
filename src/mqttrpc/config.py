""" Loading of the JSON configuration file shared by the responder and the
    requester commands. A complete file looks like::

        {
            "mqtt": {"host": "broker", "port": 1883,
                     "username": "diaries", "password": "secret"},
            "db": {"driver": "postgresql+psycopg2", "host": "dbhost",
                   "port": 5432, "database": "diaries",
                   "username": "diaries", "password": "secret"},
            "transport": "mqtt"
        }

    Every block is optional; the ``amqp`` block, used when the transport is
    ``amqp``, defaults to the ``mqtt`` credentials on the AMQP port.
"""

import os

from loguru import logger
from sqlalchemy.engine import URL

from . import json
from .errors import ConfigError


default_filename = 'responder.json'


class BrokerConfig:
    """ Where the message broker is and how to log in to it. """

    def __init__(self, host='localhost', port=1883, username='', password=''):

        self.host = host
        self.port = port
        self.username = username
        self.password = password


    def __repr__(self):
        return 'BrokerConfig(%r, %r, %r)' % (self.host, self.port, self.username)


    def server(self, scheme='mqtt'):
        return '%s://%s:%d' % (scheme, self.host, self.port)


# end of class BrokerConfig



class DBConfig:
    """ Connection details for the database the responder holds open. The
        *driver* is an SQLAlchemy dialect name, such as
        ``postgresql+psycopg2`` or ``sqlite``.
    """

    def __init__(self, driver, host='', port=None, database='', username='', password=''):

        self.driver = driver
        self.host = host
        self.port = port
        self.database = database
        self.username = username
        self.password = password


    def __repr__(self):
        return 'DBConfig(%r)' % (self.url(),)


    def driver_name(self):
        return self.driver


    def url(self, database=None):
        """ Return the SQLAlchemy :class:`URL` for this database. The
            *database* argument overrides the configured database name.
        """

        if database is None:
            database = self.database

        return URL.create(
            drivername=self.driver,
            username=self.username or None,
            password=self.password or None,
            host=self.host or None,
            port=self.port,
            database=database or None)


# end of class DBConfig



class Configuration:

    def __init__(self, mqtt=None, amqp=None, db=None, transport='mqtt'):

        if mqtt is None:
            mqtt = BrokerConfig()

        if amqp is None:
            amqp = BrokerConfig(mqtt.host, 5672, mqtt.username, mqtt.password)

        self.mqtt = mqtt
        self.amqp = amqp
        self.db = db
        self.transport = transport


# end of class Configuration



def directory():
    """ Return the directory where configuration files live. This defaults
        to ``$HOME/.mqttrpc``, and can be overridden by setting the
        ``MQTTRPC_HOME`` environment variable.
    """

    try:
        return os.environ['MQTTRPC_HOME']
    except KeyError:
        pass

    return os.path.join(os.path.expanduser('~'), '.mqttrpc')



def load(filename=None):
    """ Read the configuration file and return a :class:`Configuration`.
        If no *filename* is given the default file in :func:`directory` is
        used. Any problem reading or interpreting the file is raised as a
        :class:`mqttrpc.errors.ConfigError`.
    """

    if filename is None:
        filename = os.path.join(directory(), default_filename)

    logger.debug(f'reading configuration from {filename}')

    try:
        with open(filename, 'rb') as file:
            contents = file.read()
    except OSError as e:
        raise ConfigError('cannot read configuration %s: %s' % (filename, e.strerror))

    try:
        decoded = json.loads(contents)
    except json.JSONDecodeError as e:
        raise ConfigError('configuration %s is not valid JSON: %s' % (filename, e))

    return parse(decoded)



def parse(decoded):
    """ Return a :class:`Configuration` built from an already decoded
        dictionary.
    """

    if isinstance(decoded, dict):
        pass
    else:
        raise ConfigError('configuration must be a JSON object')

    mqtt_block = _block(decoded, 'mqtt')
    amqp_block = _block(decoded, 'amqp')
    db_block = _block(decoded, 'db')

    if mqtt_block is None:
        mqtt = BrokerConfig()
    else:
        mqtt = _broker(mqtt_block, 'mqtt', 1883, None)

    if amqp_block is None:
        amqp = None
    else:
        amqp = _broker(amqp_block, 'amqp', 5672, mqtt)

    if db_block is None:
        db = None
    else:
        db = DBConfig(
            driver=_driver(db_block),
            host=_option(db_block, 'db', 'host', str, ''),
            port=_option(db_block, 'db', 'port', int, None),
            database=_option(db_block, 'db', 'database', str, ''),
            username=_option(db_block, 'db', 'username', str, ''),
            password=_option(db_block, 'db', 'password', str, ''))

        if db.driver is None:
            raise ConfigError("configuration option 'db.driver' is required")

    transport = _option(decoded, None, 'transport', str, 'mqtt')

    return Configuration(mqtt, amqp, db, transport)



# database/sql driver names and the SQLAlchemy dialects that stand in for them.

go_drivers = {
    'postgres': 'postgresql+psycopg2',
    'pgx': 'postgresql+psycopg2',
    'mysql': 'mysql',
    'sqlite3': 'sqlite',
    'sqlite': 'sqlite',
}


def _driver(db_block):
    """ The ``db.driver`` option, or failing that the ``driver`` in a nested
        ``go`` block, as older configuration files have it.
    """

    driver = _option(db_block, 'db', 'driver', str, None)

    if driver is not None:
        return driver

    go_block = _block(db_block, 'go')

    if go_block is None:
        return None

    driver = _option(go_block, 'db.go', 'driver', str, None)

    if driver is None:
        return None

    return go_drivers.get(driver, driver)



def _block(decoded, name):

    block = decoded.get(name)

    if block is None or isinstance(block, dict):
        return block

    raise ConfigError('configuration block %r must be an object' % (name,))



def _broker(block, prefix, port, fallback):

    if fallback is None:
        fallback = BrokerConfig()

    return BrokerConfig(
        host=_option(block, prefix, 'host', str, fallback.host),
        port=_option(block, prefix, 'port', int, port),
        username=_option(block, prefix, 'username', str, fallback.username),
        password=_option(block, prefix, 'password', str, fallback.password))



def _option(block, prefix, name, kind, default):

    if prefix is None:
        full_name = name
    else:
        full_name = prefix + '.' + name

    try:
        value = block[name]
    except KeyError:
        return default

    if value is None:
        return default

    if kind is int and isinstance(value, bool):
        raise ConfigError('configuration option %r must be an integer' % (full_name,))

    if isinstance(value, kind):
        return value

    raise ConfigError('configuration option %r must be of type %s' % (full_name, kind.__name__))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
