""" The database handle the responder holds for the lifetime of the process.
    It is opened once at startup and closed once at shutdown; handlers that
    need it can reach it through :attr:`Database.engine`.
"""

import threading

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from .errors import ConfigError


class Database:
    """ Thin lifecycle wrapper around an SQLAlchemy engine. Calling
        :func:`close` more than once is harmless; re-opening a closed
        database is not permitted.
    """

    def __init__(self, db_config):

        self.config = db_config
        self.engine = None
        self.closed = False
        self._lock = threading.Lock()


    def __enter__(self):
        self.open()
        return self


    def __exit__(self, *exc_info):
        self.close()


    def open(self):
        """ Create the engine. SQLAlchemy does not touch the server until a
            connection is first requested; :func:`ping` will do that.
        """

        with self._lock:
            if self.closed:
                raise RuntimeError('database handle has already been closed')

            if self.engine is not None:
                return self.engine

            url = self.config.url()

            try:
                self.engine = create_engine(url, pool_pre_ping=True)
            except (SQLAlchemyError, ImportError) as e:
                logger.error(f'driverName: {self.config.driver_name()}')
                logger.error(f'connection: {url!r}')
                raise ConfigError('could not connect to database: ' + str(e))

            logger.info(f'database handle opened: {url!r}')
            return self.engine


    def ping(self):
        """ Round-trip a trivial query, returning True if the server answered.
        """

        if self.engine is None:
            raise RuntimeError('database handle is not open')

        try:
            with self.engine.connect() as connection:
                connection.execute(text('SELECT 1'))
        except SQLAlchemyError as e:
            logger.warning(f'database ping failed: {e}')
            return False

        return True


    def close(self):

        with self._lock:
            if self.closed:
                return

            self.closed = True

            if self.engine is not None:
                self.engine.dispose()
                logger.info('database handle closed')


# end of class Database


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
