"""
Scoped statement execution.

``execute`` runs one statement. Given a connection it runs on it and leaves
the connection alone (the caller owns it, usually TransactionCoordinator).
Without one it borrows a connection from the pool, runs the statement in its
own short transaction and gives the connection back on every exit path.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.sql import Executable

from core.database import ConnectionPool
from core.exceptions import PersistenceError
from utils.logger import get_logger, log_database_query, sanitize_log_data

logger = get_logger(__name__)


@dataclass
class QueryResult:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0
    inserted_id: Optional[int] = None

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None


def _query_type(statement: Executable) -> str:
    return getattr(statement, "__visit_name__", type(statement).__name__).upper()


def _table_name(statement: Executable) -> str:
    table = getattr(statement, "table", None)
    if table is None and hasattr(statement, "get_final_froms"):
        froms = statement.get_final_froms()
        table = froms[0] if froms else None
    return getattr(table, "name", "?")


def _bound_params(statement: Executable, params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    bound = dict(statement.compile().params)
    if params:
        bound.update(params)
    return bound


def _run(connection: Connection, statement: Executable,
         params: Optional[Mapping[str, Any]]) -> QueryResult:
    start = time.perf_counter()

    try:
        result = connection.execute(statement, params)

        rows = [dict(row) for row in result.mappings().all()] if result.returns_rows else []
        inserted_id = None
        if getattr(result, "is_insert", False) and result.inserted_primary_key:
            inserted_id = result.inserted_primary_key[0]

    except SQLAlchemyError as exc:
        message = str(exc.orig) if isinstance(exc, DBAPIError) else str(exc)
        safe_params = sanitize_log_data(_bound_params(statement, params))

        logger.error(
            "Query error",
            extra={
                "error": message,
                "statement": str(statement),
                "params": safe_params,
            }
        )
        raise PersistenceError(message, statement=str(statement), params=safe_params) from exc

    log_database_query(
        logger,
        _query_type(statement),
        _table_name(statement),
        (time.perf_counter() - start) * 1000,
        rows_affected=None if result.returns_rows else result.rowcount
    )

    return QueryResult(rows=rows, rowcount=result.rowcount, inserted_id=inserted_id)


def execute(pool: ConnectionPool, statement: Executable,
            params: Optional[Mapping[str, Any]] = None,
            connection: Optional[Connection] = None) -> QueryResult:
    """
    Run ``statement`` and return its rows and metadata.

    Raises PersistenceError on any statement failure, and the pool's
    AcquireTimeoutError/ConnectError when no connection can be borrowed.
    """
    if connection is not None:
        return _run(connection, statement, params)

    with pool.connection() as conn:
        try:
            with conn.begin():
                return _run(conn, statement, params)
        except DBAPIError as exc:
            # commit of the statement's own transaction failed
            logger.error("Commit failed", extra={"error": str(exc.orig), "statement": str(statement)})
            raise PersistenceError(str(exc.orig), statement=str(statement)) from exc
