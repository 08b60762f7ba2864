"""
Connection pool for the relational store.

The pool is a plain object created at startup and handed to whoever needs
it (services, dependencies, tests). There is no module-level engine.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, TimeoutError as SQLAlchemyTimeoutError
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import QueuePool

from core.exceptions import AcquireTimeoutError, ConnectError
from utils.logger import get_logger

logger = get_logger(__name__)

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class ConnectionPool:
    """
    Bounded set of reusable connections.

    Callers beyond ``size`` wait up to ``timeout`` seconds for a connection to
    be released, then get AcquireTimeoutError.
    """

    def __init__(self, url: str, size: int = 10, timeout: float = 60.0, echo: bool = False):
        self.size = size
        self.timeout = timeout

        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False

        self.engine: Engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=size,
            max_overflow=0,
            pool_timeout=timeout,
            pool_pre_ping=True,
            connect_args=connect_args,
        )

        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

    @classmethod
    def from_settings(cls, settings) -> "ConnectionPool":
        return cls(
            settings.DATABASE_URL,
            size=settings.DB_POOL_SIZE,
            timeout=settings.DB_POOL_TIMEOUT,
            echo=settings.DB_ECHO,
        )

    @property
    def checked_out(self) -> int:
        """Number of connections currently lent out."""
        return self.engine.pool.checkedout()

    def acquire(self) -> Connection:
        try:
            return self.engine.connect()
        except SQLAlchemyTimeoutError as exc:
            logger.warning(
                "Timed out waiting for a database connection",
                extra={"pool_size": self.size, "timeout": self.timeout}
            )
            raise AcquireTimeoutError() from exc
        except DBAPIError as exc:
            logger.error(
                "Could not open a database connection",
                extra={"error": str(exc.orig)}
            )
            raise ConnectError(str(exc.orig)) from exc

    def release(self, connection: Connection) -> None:
        # Closing a pooled connection rolls back anything left open and
        # returns it to the pool.
        connection.close()

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Borrow a connection for the duration of a ``with`` block."""
        conn = self.acquire()
        try:
            yield conn
        finally:
            self.release(conn)

    def verify(self) -> None:
        """Check the store is reachable. Raises ConnectError if it is not."""
        with self.connection() as conn:
            try:
                conn.execute(text("SELECT 1"))
            except DBAPIError as exc:
                raise ConnectError(str(exc.orig)) from exc

        logger.info(
            "Database connected successfully",
            extra={"database": self.engine.url.render_as_string(hide_password=True)}
        )

    def create_schema(self) -> None:
        import models  # noqa: F401  registers every table on Base.metadata

        Base.metadata.create_all(bind=self.engine)

    def drop_schema(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
