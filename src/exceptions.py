"""
Error types for reading-quest

Every error carries a request id, a structured context and a message safe
to show to a child or parent. Errors log themselves when raised; the API
layer maps each family to an HTTP status.
"""

from datetime import date, datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class ReadingQuestError(Exception):
    """
    Root of the reading-quest error tree

    Example:
        raise ReadingQuestError(
            message="Stats recompute failed",
            user_id="42",
            operation="recompute_user_stats",
            context={"checkin_id": 17}
        )
    """

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "Something went wrong. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        self._log()

    def _log(self) -> None:
        extra = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # 'message' is reserved on LogRecord
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
        }

        # Driver failures are errors; rule violations are expected traffic
        if self.cause:
            extra["cause"] = str(self.cause)
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=extra, exc_info=self.cause)
        else:
            logger.warning(f"{self.__class__.__name__}: {self.message}", extra=extra)

    def to_dict(self) -> Dict[str, Any]:
        """JSON body for API error responses"""
        return {
            "error": self.__class__.__name__,
            "detail": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Bad input
# ==========================================

class ValidationError(ReadingQuestError):
    """
    Input that breaks a domain rule pydantic cannot express

    Example:
        raise ValidationError(
            message="Point grants must be positive",
            field="amount",
            value=0,
            user_id="42"
        )
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value},
            **kwargs
        )


# ==========================================
# Conflicts
# ==========================================

class ConflictError(ReadingQuestError):
    """A write hit a uniqueness rule"""

    def __init__(self, message: str, user_message: Optional[str] = None, **kwargs):
        super().__init__(
            message=message,
            user_message=user_message or "That was already recorded.",
            **kwargs
        )


class DuplicateCheckInError(ConflictError):
    """Same user, same book, same day"""

    def __init__(self, book_id: int, checkin_date: date, **kwargs):
        self.book_id = book_id
        self.checkin_date = checkin_date
        super().__init__(
            message=f"Check-in for book {book_id} on {checkin_date.isoformat()} already exists",
            user_message="You have already checked in this book today.",
            context={"book_id": book_id, "checkin_date": checkin_date.isoformat()},
            **kwargs
        )


# ==========================================
# Storage
# ==========================================

class DatabaseError(ReadingQuestError):
    """Anything that went wrong talking to PostgreSQL"""
    pass


class ConnectionError(DatabaseError):
    """Pool exhausted or server unreachable"""

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(
            message=message,
            user_message="Reading records are unavailable right now. Please try again in a moment.",
            **kwargs
        )


class QueryError(DatabaseError):
    """A statement failed for a reason other than a connection problem"""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        self.query = query
        context = {"query": query, **(kwargs.pop("context", None) or {})}
        super().__init__(
            message=message,
            user_message="Your reading could not be saved. Please try again.",
            context=context,
            **kwargs
        )


class RecordNotFoundError(DatabaseError):
    """No user, check-in, badge or stats row with that id"""

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


# ==========================================
# Access
# ==========================================

class AuthenticationError(ReadingQuestError):
    """The caller could not be identified"""

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(
            message=message,
            user_message="Please sign in again.",
            **kwargs
        )


class AuthorizationError(ReadingQuestError):
    """The caller is known but may not do this (e.g. a child commenting)"""

    def __init__(
        self,
        message: str = "Insufficient permissions",
        resource: Optional[str] = None,
        **kwargs
    ):
        self.resource = resource
        super().__init__(
            message=message,
            user_message=f"You are not allowed to use {resource or 'this feature'}.",
            context={"resource": resource},
            **kwargs
        )


def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
    record_type: Optional[str] = None
) -> ReadingQuestError:
    """
    Translate a psycopg error into the matching ReadingQuestError

    Example:
        try:
            checkin = await queries.insert_checkin(...)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="create_checkin", user_id="42")

    A foreign key violation means the caller referenced a row that does not
    exist (record_type names it) and maps to RecordNotFoundError.
    """
    import psycopg
    from psycopg import errors as pg_errors

    common = dict(user_id=user_id, operation=operation, context=context, cause=error)

    if isinstance(error, pg_errors.UniqueViolation):
        return ConflictError(message=f"Unique constraint violated: {error}", **common)
    if isinstance(error, pg_errors.ForeignKeyViolation):
        record_id = (context or {}).get(f"{(record_type or '').lower()}_id")
        return RecordNotFoundError(
            message=f"Referenced {record_type or 'record'} does not exist: {error}",
            record_type=record_type,
            record_id=str(record_id) if record_id is not None else None,
            user_id=user_id,
            operation=operation,
            cause=error,
        )
    if isinstance(error, psycopg.OperationalError):
        return ConnectionError(message=f"Database connection failed: {error}", **common)
    if isinstance(error, psycopg.Error):
        return QueryError(message=f"Database query failed: {error}", **common)

    return ReadingQuestError(message=f"{operation} failed: {error}", **common)
