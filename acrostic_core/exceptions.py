"""
Consolidated exception system with error codes, context, and correlation support.

Every error logs itself when constructed, so call sites only need to raise.
"""

import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


class ErrorCode(str, Enum):
    """Standardized error codes."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"
    TIMEOUT_ERROR = "1004"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"
    CONFLICT = "3002"

    # Storage errors (4xxx)
    STORAGE_UNAVAILABLE = "4000"
    MIGRATION_FAILED = "4001"
    SECRET_STORE_ERROR = "4002"

    # External service errors (5xxx)
    EXTERNAL_API_ERROR = "5002"
    UNAUTHORIZED = "5003"


class BaseError(Exception):
    """Base exception with context, error codes, logging, and error chaining."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """
        Initialize base error with rich context.

        Args:
            message: Human-readable error message
            error_code: Standardized error code from ErrorCode enum
            status_code: HTTP-style severity (>=500 logs as error, >=400 as warning)
            cause: Original exception that caused this error
            **context: Additional context information
        """
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_id = str(uuid.uuid4())
        self.context = context

        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id

        self.context["error_id"] = self.error_id

        if cause:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        self._log_error()

        super().__init__(message)

    def _log_error(self) -> None:
        """Log error with appropriate level based on status code."""
        # Import logger here to avoid circular dependency at module load time
        from .utils.logger import get_logger

        logger = get_logger()

        log_data = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "context": {k: v for k, v in self.context.items() if k not in ["cause", "traceback"]},
        }

        if "correlation_id" in self.context:
            log_data["correlation_id"] = self.context["correlation_id"]

        if self.status_code >= 500:
            logger.error(f"Error {self.error_code.value}: {self.message}", extra=log_data)
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.value}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code.value}: {self.message}", extra=log_data)

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """
        Convert to a dict suitable for surfacing to the UI layer.

        Args:
            include_cause: Include cause information (useful for debugging)
        """
        result: Dict[str, Any] = {
            "error": {
                "id": self.error_id,
                "code": self.error_code.value,
                "message": self.message,
                "timestamp": self.timestamp,
                "context": {
                    k: v
                    for k, v in self.context.items()
                    if k not in ["cause", "error_id", "correlation_id"]
                },
            }
        }

        if "correlation_id" in self.context:
            result["error"]["correlation_id"] = self.context["correlation_id"]

        if include_cause and "cause" in self.context:
            result["error"]["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }

        return result

    def add_context(self, **kwargs: Any) -> "BaseError":
        """Add additional context to the error (fluent interface)."""
        self.context.update(kwargs)
        return self

    @property
    def error_chain(self) -> List[Exception]:
        """Get the full chain of errors."""
        chain: List[Exception] = [self]
        current = self.cause
        while current:
            chain.append(current)
            current = getattr(current, "cause", None)
        return chain


# Layer-specific base exceptions
class RepositoryError(BaseError):
    """Object store errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
        super().__init__(message, error_code, status_code, cause, **context)


class ServiceError(BaseError):
    """Service layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        if operation:
            context["operation"] = operation
        super().__init__(message, error_code, 500, cause, **context)


class ValidationError(BaseError):
    """Validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


class ExternalServiceError(BaseError):
    """Remote source errors (network, HTTP status, malformed payloads)."""

    def __init__(
        self,
        message: str,
        service_name: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_API_ERROR,
        cause: Optional[Exception] = None,
        **context,
    ):
        context["service_name"] = service_name
        super().__init__(message, error_code, 502, cause, **context)


class StorageInitializationError(RepositoryError):
    """Raised when a storage backend cannot be opened."""

    def __init__(
        self,
        message: str = "Storage backend unavailable",
        error_code: ErrorCode = ErrorCode.STORAGE_UNAVAILABLE,
        **kwargs,
    ):
        super().__init__(message, error_code=error_code, **kwargs)


class StorageMigrationError(RepositoryError):
    """Raised when moving data between storage backends fails."""

    def __init__(self, message: str = "Storage migration failed", **kwargs):
        super().__init__(message, error_code=ErrorCode.MIGRATION_FAILED, **kwargs)


class SecretStoreError(BaseError):
    """Raised when the secret vault cannot be read or written."""

    def __init__(self, message: str = "Secret store error", **kwargs):
        super().__init__(
            message=message, error_code=ErrorCode.SECRET_STORE_ERROR, status_code=500, **kwargs
        )


# Factory functions for common error patterns
def not_found(
    resource_type: str, cause: Optional[Exception] = None, **identifiers
) -> RepositoryError:
    """
    Factory for not found errors.

    Args:
        resource_type: Type of resource (e.g., 'Token', 'Database')
        cause: Original exception if any
        **identifiers: Resource identifiers (e.g., token_id='123')

    Returns:
        Configured RepositoryError instance with 404 status
    """
    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    message = f"{resource_type} not found"
    if id_parts:
        message += f": {', '.join(id_parts)}"

    return RepositoryError(
        message,
        error_code=ErrorCode.NOT_FOUND,
        status_code=404,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def duplicate(
    resource_type: str, cause: Optional[Exception] = None, **identifiers
) -> RepositoryError:
    """Factory for duplicate resource errors."""
    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    message = f"Duplicate {resource_type}"
    if id_parts:
        message += f": {', '.join(id_parts)}"

    return RepositoryError(
        message,
        error_code=ErrorCode.DUPLICATE,
        status_code=409,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def validation_failed(
    field: str, value: Any, reason: str, cause: Optional[Exception] = None
) -> ValidationError:
    """Factory for validation errors."""
    return ValidationError(
        f"Validation failed for {field}: {reason}",
        field=field,
        error_code=ErrorCode.VALIDATION_FAILED,
        cause=cause,
        value=str(value),
        reason=reason,
    )


# Correlation ID management
def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current task or thread."""
    _correlation_id.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID."""
    return _correlation_id.get()


def clear_correlation_id() -> None:
    """Clear the current correlation ID."""
    _correlation_id.set(None)
