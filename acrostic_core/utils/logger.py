"""
Console logging with pipe-delimited context.

ContextAwareLogger formats the ``extra`` mapping into the message so context
survives handlers that only print ``%(message)s``.
"""

import logging
import sys
from typing import Optional, Union

from ..config import get_config

_component_logger = None


class ContextAwareLogger:
    """Logger wrapper that formats extra attributes in message while preserving them."""

    def __init__(self, logger):
        """Initialize with an existing logger."""
        self.logger = logger

    def _log_with_formatted_extra(self, level, msg, **kwargs):
        """
        Log with extra data formatted into the message.

        Args:
            level: Logging level method to use
            msg: Log message
            **kwargs: Additional arguments including 'extra'
        """
        extra = kwargs.pop("extra", {}) or {}

        if extra:
            extra_str = " | ".join([f"{k}={v}" for k, v in extra.items()])
            full_msg = f"{msg} | {extra_str}"
        else:
            full_msg = msg

        # LogRecord reserves some attribute names; keep them in the message only
        safe_extra = {k: v for k, v in extra.items() if k not in _RESERVED_RECORD_ATTRS}

        log_method = getattr(self.logger, level)
        log_method(full_msg, extra=safe_extra, **kwargs)

    def set_level(self, level):
        """Set the logging level of the underlying logger."""
        self.logger.setLevel(level)

    def info(self, msg, **kwargs):
        """Log at INFO level with formatted extra."""
        self._log_with_formatted_extra("info", msg, **kwargs)

    def error(self, msg, **kwargs):
        """Log at ERROR level with formatted extra."""
        self._log_with_formatted_extra("error", msg, **kwargs)

    def warning(self, msg, **kwargs):
        """Log at WARNING level with formatted extra."""
        self._log_with_formatted_extra("warning", msg, **kwargs)

    def debug(self, msg, **kwargs):
        """Log at DEBUG level with formatted extra."""
        self._log_with_formatted_extra("debug", msg, **kwargs)

    def exception(self, msg, **kwargs):
        """Log exception with formatted extra."""
        self._log_with_formatted_extra("exception", msg, **kwargs)


_RESERVED_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys() | {"message", "asctime"}
)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds the active correlation id to log records."""

    def filter(self, record):
        # Lazy import to avoid circular dependency
        from ..exceptions import get_correlation_id

        correlation_id = get_correlation_id()
        if correlation_id:
            record.correlation_id = correlation_id

        return True


def configure_logging(
    component_name: str,
    log_level: Optional[Union[int, str]] = None,
) -> "ContextAwareLogger":
    """
    Configure console logging for a component (app process or widget extension).

    Args:
        component_name: Name used for the underlying logger
        log_level: Logging level (default: from config.logging.level)

    Returns:
        The configured logger wrapped with ContextAwareLogger
    """
    global _component_logger

    if log_level is None:
        log_level = get_config().logging.level

    if isinstance(log_level, str):
        log_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(f"acrostic.{component_name}")
    logger.setLevel(log_level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    console_handler.addFilter(CorrelationIdFilter())
    logger.addHandler(console_handler)

    wrapped_logger = ContextAwareLogger(logger)
    wrapped_logger.info("Logger configured", extra={"component": component_name})
    _component_logger = wrapped_logger
    return wrapped_logger


def get_logger(
    log_level: Optional[Union[int, str]] = None,
) -> "ContextAwareLogger":
    """
    Get the component logger, or a wrapped root logger when none is configured.

    Args:
        log_level: Optional log level to set on the root logger
    """
    if _component_logger is not None:
        return _component_logger

    logger = logging.getLogger()

    if log_level is None:
        log_level = get_config().logging.level

    if isinstance(log_level, str):
        log_level = getattr(logging, log_level.upper(), logging.INFO)
    logger.setLevel(log_level)

    return ContextAwareLogger(logger)
