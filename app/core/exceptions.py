"""Error codes and service exceptions shared by the auth and share layers."""
import enum
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from fastapi import status
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class ErrorCode(str, enum.Enum):
    """Symbolic codes returned to clients. Values are part of the public contract."""
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    INVALID_ADMIN_CREDENTIALS = "INVALID_ADMIN_CREDENTIALS"
    INVALID_RESET_TOKEN = "INVALID_RESET_TOKEN"
    LINK_REVOKED = "LINK_REVOKED"
    LINK_EXPIRED = "LINK_EXPIRED"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_EXISTS = "USER_EXISTS"
    INVALID_PASSWORD = "INVALID_PASSWORD"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.INVALID_CREDENTIALS: "Invalid email or password",
    ErrorCode.ACCOUNT_LOCKED: "Account is temporarily locked due to too many failed login attempts. Please try again later.",
    ErrorCode.INVALID_ADMIN_CREDENTIALS: "Invalid admin credentials",
    ErrorCode.INVALID_RESET_TOKEN: "Invalid or expired reset token",
    ErrorCode.LINK_REVOKED: "This file link has been revoked",
    ErrorCode.LINK_EXPIRED: "This file link has expired",
    ErrorCode.LIMIT_EXCEEDED: "Download limit exceeded",
    ErrorCode.FILE_NOT_FOUND: "File not found",
    ErrorCode.VALIDATION_FAILED: "File validation failed",
    ErrorCode.RATE_LIMIT_EXCEEDED: "Too many requests from this IP, please try again later",
}


class ServiceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None, **meta: Any):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.meta = meta


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = ErrorCode.FILE_NOT_FOUND


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = ErrorCode.USER_EXISTS


class InvalidInputError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = ErrorCode.VALIDATION_ERROR


class AuthenticationError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = ErrorCode.NOT_AUTHENTICATED


class PermissionDeniedError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = ErrorCode.FORBIDDEN


class RateLimitedError(ServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = ErrorCode.RATE_LIMIT_EXCEEDED


class StoreUnavailableError(ServiceError):
    """Transient store failure. Safe for the caller to retry."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = ErrorCode.SERVICE_UNAVAILABLE
    retryable = True


class InternalServiceError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = ErrorCode.INTERNAL_ERROR


@contextmanager
def store_errors(db: Session, operation: str) -> Iterator[None]:
    """
    Roll back and translate anything unexpected raised inside ``operation``.

    Service errors pass through untouched. Constraint violations are not
    transient and become InternalServiceError. Other driver-level failures
    become StoreUnavailableError, everything else InternalServiceError. The rollback
    discards any counter increment the failed unit of work had made.
    """
    try:
        yield
    except ServiceError:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Constraint violation during {operation}: {e}")
        raise InternalServiceError("Internal error") from e
    except (OperationalError, DBAPIError) as e:
        db.rollback()
        logger.error(f"Store failure during {operation}: {e}")
        raise StoreUnavailableError("Storage temporarily unavailable, please retry") from e
    except Exception as e:
        db.rollback()
        logger.exception(f"Unexpected error during {operation}")
        raise InternalServiceError("Internal error") from e
