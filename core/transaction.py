"""
Unit-of-work coordination over a single pooled connection.

    coordinator = TransactionCoordinator(pool)
    order_id = coordinator.run(lambda conn: insert_order_and_items(conn))

``work`` receives the connection and passes it to ``execute`` for every
statement. The coordinator commits when ``work`` returns, rolls back when it
raises, and always hands the connection back to the pool.
"""

import enum
from typing import Callable, TypeVar

from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError

from core.database import ConnectionPool
from core.exceptions import PersistenceError, TransactionError
from utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TransactionState(str, enum.Enum):
    OPEN = "open"
    COMMITTING = "committing"
    COMMITTED = "committed"
    ROLLING_BACK = "rolling_back"
    ROLLED_BACK = "rolled_back"


class TransactionCoordinator:

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    def run(self, work: Callable[[Connection], T]) -> T:
        connection = self.pool.acquire()
        try:
            return self._run_on(connection, work)
        finally:
            self.pool.release(connection)

    def _run_on(self, connection: Connection, work: Callable[[Connection], T]) -> T:
        try:
            transaction = connection.begin()
        except DBAPIError as exc:
            raise PersistenceError(str(exc.orig)) from exc

        state = TransactionState.OPEN

        try:
            result = work(connection)
        except BaseException as exc:
            # Any exit from work, cancellation included, must leave no open
            # transaction on the pooled connection.
            state = TransactionState.ROLLING_BACK
            logger.warning(
                "Rolling back transaction",
                extra={"state": state.value, "error_type": type(exc).__name__, "error": str(exc)}
            )
            try:
                transaction.rollback()
            except Exception as rollback_exc:
                logger.error(
                    "Rollback failed",
                    extra={"error": str(exc), "rollback_error": str(rollback_exc)},
                    exc_info=True
                )
                raise TransactionError(exc, rollback_exc) from exc

            state = TransactionState.ROLLED_BACK
            logger.debug("Transaction rolled back", extra={"state": state.value})
            raise

        state = TransactionState.COMMITTING
        try:
            transaction.commit()
        except DBAPIError as exc:
            logger.error("Commit failed", extra={"state": state.value, "error": str(exc.orig)})
            try:
                transaction.rollback()
            except Exception as rollback_exc:
                raise TransactionError(exc, rollback_exc) from exc
            raise PersistenceError(str(exc.orig)) from exc

        state = TransactionState.COMMITTED
        logger.debug("Transaction committed", extra={"state": state.value})
        return result
