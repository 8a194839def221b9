"""
Database - Engine management for the migration stores.

Production runs against MySQL through the mysql-connector driver
(``mysql+mysqlconnector://``); tests use SQLite files.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from retrying import retry
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError

from .config import DatabaseConfig
from .exceptions import ConfigError
from .schema import metadata


def _is_transient(exc: Exception) -> bool:
    return isinstance(exc, OperationalError)


class Database:
    """
    Lazily created SQLAlchemy engine shared by all stores.

    Every store operation runs inside ``transaction()`` so multi-statement
    writes commit or roll back together.
    """

    def __init__(
        self,
        config: Optional[DatabaseConfig] = None,
        engine: Optional[Engine] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize database.

        Args:
            config: Database configuration (ignored when engine is given)
            engine: Optional pre-built engine
            logger: Optional logger instance
        """
        self.config = config or DatabaseConfig()
        self.logger = logger or logging.getLogger(__name__)
        self._engine = engine

    @classmethod
    def from_url(cls, url: str, logger: Optional[logging.Logger] = None) -> 'Database':
        return cls(DatabaseConfig(url=url), logger=logger)

    @property
    def engine(self) -> Engine:
        """Return the engine, creating it on first use."""
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    def _create_engine(self) -> Engine:
        if not self.config.url:
            raise ConfigError("DATABASE_URL is not set")

        self.logger.debug("Creating database engine...")
        if self.config.url.startswith('sqlite'):
            return create_engine(
                self.config.url,
                echo=self.config.echo,
                connect_args={'check_same_thread': False, 'timeout': 30},
            )
        return create_engine(
            self.config.url,
            echo=self.config.echo,
            pool_size=self.config.pool_size,
            pool_pre_ping=True,
        )

    @retry(
        retry_on_exception=_is_transient,
        stop_max_attempt_number=3,
        wait_exponential_multiplier=1000
    )
    def _connect(self) -> Connection:
        return self.engine.connect()

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """
        Yield a connection inside a transaction.

        Acquiring the connection is retried on transient errors; the body is
        committed on success and rolled back on any exception.
        """
        conn = self._connect()
        try:
            with conn.begin():
                yield conn
        finally:
            conn.close()

    def create_tables(self) -> None:
        """Create the pipeline tables if they do not exist."""
        self.logger.info("Creating tables (if missing)...")
        metadata.create_all(self.engine)

    def dispose(self) -> None:
        """Release pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
