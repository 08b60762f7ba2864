"""
Logging helpers shared by the store layer and the services.
"""

import logging
from typing import Any, Dict, Optional


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


SENSITIVE_FIELDS = {
    'password', 'token', 'secret', 'api_key', 'credit_card', 'cvv',
    'payment_id', 'payer_email', 'payment_details'
}


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of ``data`` that is safe to write to the logs.

    Keys containing a sensitive name are redacted. Tokens keep their first
    8 characters so a request can still be correlated. Nested dicts are
    sanitized recursively.
    """
    sanitized = dict(data)

    for key, value in sanitized.items():
        lowered = str(key).lower()

        if any(sensitive in lowered for sensitive in SENSITIVE_FIELDS):
            if isinstance(value, str) and 'token' in lowered and len(value) > 8:
                sanitized[key] = f"{value[:8]}..."
            elif value is not None:
                sanitized[key] = "***REDACTED***"

        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)

    return sanitized


def log_database_query(
    logger: logging.Logger,
    query_type: str,
    table: str,
    duration_ms: float,
    rows_affected: Optional[int] = None
):
    """
    Log one statement. Slow statements (> 1s) are raised to WARNING.

    Usage:
        log_database_query(logger, "INSERT", "orders", 3.2, rows_affected=1)
    """
    log_data = {
        "query_type": query_type,
        "table": table,
        "duration_ms": round(duration_ms, 2)
    }

    if rows_affected is not None:
        log_data["rows_affected"] = rows_affected

    if duration_ms > 1000:
        logger.warning(f"Slow {query_type} query on {table}", extra=log_data)
    else:
        logger.debug(f"{query_type} query on {table}", extra=log_data)
