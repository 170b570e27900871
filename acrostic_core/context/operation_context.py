"""
Operation context for handling cross-cutting concerns.

This module provides context management for service operations: ENTER/EXIT/ERROR
logging with duration, and a correlation id shared by every log line and error
raised inside the operation, including nested operations.
"""

import inspect
import logging
import time
import uuid
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Dict, Optional, TypeVar, Union, cast

from ..constants import OperationStatus
from ..exceptions import BaseError, _correlation_id, get_correlation_id
from ..utils.logger import ContextAwareLogger, get_logger


class OperationContext:
    """Context for a specific operation."""

    def __init__(self, operation_name: str, correlation_id: Optional[str] = None, **context):
        self.operation_name = operation_name
        self.operation_id = str(uuid.uuid4())

        # Inherit the caller's correlation id so nested operations share it
        self.correlation_id = correlation_id or get_correlation_id() or str(uuid.uuid4())
        self._token = _correlation_id.set(self.correlation_id)

        self.context = context
        self.context["operation_id"] = self.operation_id
        self.context["correlation_id"] = self.correlation_id

        self.start_time = time.time()
        self.metrics: Dict[str, Union[int, float]] = {}

    @property
    def duration_ms(self) -> float:
        """Get the operation duration in milliseconds."""
        return (time.time() - self.start_time) * 1000

    def add_context(self, **kwargs) -> None:
        """Add additional context information."""
        self.context.update(kwargs)

    def add_metric(self, name: str, value: Union[int, float]) -> None:
        """Record a count or measurement, logged with the EXIT line."""
        self.metrics[name] = value

    def close(self) -> None:
        _correlation_id.reset(self._token)


class OperationHandler:
    """Handles operation logging and error enrichment."""

    def __init__(self, logger: Optional[Union[logging.Logger, ContextAwareLogger]] = None):
        self.logger = logger if logger is not None else get_logger()

    @contextmanager
    def operation(self, name: str, **context):
        """Context manager for operations."""
        op_ctx = OperationContext(name, **context)

        self.logger.info(
            f"ENTER: {name}",
            extra={
                **context,
                "operation_id": op_ctx.operation_id,
                "correlation_id": op_ctx.correlation_id,
            },
        )

        try:
            yield op_ctx

            self.logger.info(
                f"EXIT: {name}",
                extra={
                    **context,
                    "operation_id": op_ctx.operation_id,
                    "correlation_id": op_ctx.correlation_id,
                    "duration_ms": round(op_ctx.duration_ms, 2),
                    "status": OperationStatus.SUCCESS.value,
                    **op_ctx.metrics,
                },
            )

        except BaseError as e:
            e.add_context(
                operation_name=name,
                operation_id=op_ctx.operation_id,
                operation_duration_ms=op_ctx.duration_ms,
            )

            # BaseError already logged itself
            self.logger.error(
                f"ERROR: {name} -> {e.error_code.value}: {e.message}",
                extra={
                    **context,
                    "operation_id": op_ctx.operation_id,
                    "correlation_id": op_ctx.correlation_id,
                    "duration_ms": round(op_ctx.duration_ms, 2),
                    "error_id": e.error_id,
                    "status": OperationStatus.ERROR.value,
                },
            )
            raise

        except Exception as e:
            self.logger.exception(
                f"ERROR: {name} -> {type(e).__name__}: {str(e)}",
                extra={
                    **context,
                    "operation_id": op_ctx.operation_id,
                    "correlation_id": op_ctx.correlation_id,
                    "duration_ms": round(op_ctx.duration_ms, 2),
                    "error_type": type(e).__name__,
                    "status": OperationStatus.ERROR.value,
                },
            )
            raise

        finally:
            op_ctx.close()


F = TypeVar("F", bound=Callable[..., Any])


def _operation_name(func: Callable, args: tuple, name: Optional[str]) -> str:
    if name is not None:
        return name
    op_name = func.__name__
    if args and hasattr(args[0], func.__name__):
        op_name = f"{args[0].__class__.__name__}.{op_name}"
    return f"{func.__module__.split('.')[-1]}.{op_name}"


def operation(name: Union[Optional[str], Callable] = None):
    """
    Decorator for service operations, sync or async.

    Args:
        name: Optional operation name. Defaults to ``module.Class.method``.
    """

    def decorator(func: F) -> F:
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args, **kwargs) -> Any:
                op_name = _operation_name(func, args, name)
                with OperationHandler().operation(op_name, source_module=func.__module__):
                    return await func(*args, **kwargs)

            return cast(F, async_wrapper)

        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            op_name = _operation_name(func, args, name)
            with OperationHandler().operation(op_name, source_module=func.__module__):
                return func(*args, **kwargs)

        return cast(F, wrapper)

    # Handle case where decorator is used without parentheses
    if callable(name):
        func, name = name, None
        return decorator(func)

    return decorator
