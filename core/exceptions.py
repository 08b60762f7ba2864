"""
Error taxonomy for the order subsystem.

Every failure the core raises carries its own status class. Nothing here
knows about HTTP responses: main.py maps AppError to a JSON response at the
boundary, so services stay usable outside a request.
"""

from typing import Any, Dict, Optional

from starlette import status


class AppError(Exception):
    """Base class for failures reported to the caller with a stable status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def extra(self) -> Dict[str, Any]:
        """Additional fields to include in the error body."""
        return {}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "validation_error"
    default_message = "Invalid request"


class AuthError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "authentication_error"
    default_message = "Could not validate credentials."


class InvalidTokenError(AuthError):
    error_type = "invalid_token"


class UserInactiveError(AuthError):
    error_type = "user_inactive"
    default_message = "User not found or inactive"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "forbidden"
    default_message = "Access denied"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"
    default_message = "Resource not found"


class InvalidTransitionError(AppError):
    status_code = status.HTTP_409_CONFLICT
    error_type = "invalid_transition"
    default_message = "Invalid state transition"


class PoolExhaustedError(AppError):
    """No connection could be handed out. Retryable by the caller after backoff."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_type = "pool_exhausted"
    default_message = "Database is busy, please retry"
    retry_after: int = 1


class AcquireTimeoutError(PoolExhaustedError):
    error_type = "acquire_timeout"
    default_message = "Timed out waiting for a database connection"


class PersistenceError(AppError):
    """
    Statement-level fault.

    Holds the statement text and sanitized parameters for logging. The
    message is the driver's error text only, never the connection URL.
    """

    error_type = "persistence_error"
    default_message = "Database error"

    def __init__(self, message: Optional[str] = None, statement: Optional[str] = None,
                 params: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.statement = statement
        self.params = params


class ConnectError(PersistenceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_type = "connect_error"
    default_message = "Could not connect to the database"


class TransactionError(PersistenceError):
    """Rollback failed after the unit of work failed; both causes are kept."""

    error_type = "transaction_error"

    def __init__(self, original: BaseException, rollback_error: BaseException):
        super().__init__(
            f"Transaction failed ({original}) and rollback failed ({rollback_error})"
        )
        self.original = original
        self.rollback_error = rollback_error


class PartialSuccessError(AppError):
    """The order was committed but reading it back failed. The order exists."""

    error_type = "partial_success"
    default_message = "Order was created but could not be loaded"

    def __init__(self, order_id: int, order_number: str, message: Optional[str] = None):
        super().__init__(message)
        self.order_id = order_id
        self.order_number = order_number

    def extra(self) -> Dict[str, Any]:
        return {"order_id": self.order_id, "order_number": self.order_number}
