"""
Structured logging utility for the platform rules layer.

Every log line is a single JSON document so CloudWatch Insights can filter on
operation, level and context keys. Consumer contact details are masked before
they reach a log line.
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from functools import wraps

# Filters applied to every handler StructuredLogger installs, including
# handlers created after the filter was registered.
_HANDLER_FILTERS: List[logging.Filter] = []
_HANDLERS: List[logging.Handler] = []


def mask_phone(phone: Optional[str]) -> str:
    """
    Mask a phone number, keeping only the last four digits.

    Spaces, hyphens and a leading "+" are ignored when counting digits.

    Example:
        >>> mask_phone("+30 690 123 4567")
        "***4567"
        >>> mask_phone("123")
        "invalid"
    """
    if not phone:
        return "unknown"

    digits = "".join(ch for ch in phone if ch.isdigit())

    if len(digits) < 7:
        return "invalid"

    return f"***{digits[-4:]}"


def mask_email(email: Optional[str]) -> str:
    """
    Mask the local part of an email address.

    Example:
        >>> mask_email("maria@example.com")
        "m***@example.com"
    """
    if not email or "@" not in email:
        return "unknown"

    local, _, domain = email.partition("@")
    if not local:
        return f"***@{domain}"
    return f"{local[0]}***@{domain}"


class StructuredLogger:
    """
    JSON logger with context injection and operation timing.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter("%(message)s"))
            for log_filter in _HANDLER_FILTERS:
                handler.addFilter(log_filter)
            _HANDLERS.append(handler)
            self.logger.addHandler(handler)

    def _format_log(
        self,
        level: str,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
        error: Optional[str] = None,
    ) -> str:
        """
        Render a log entry as JSON.

        Args:
            level: Log level name
            message: Human-readable message
            operation: Operation name (e.g. "search_global", "update_fee_rate")
            context: Extra keys such as business_id or page size
            duration_ms: Operation duration in milliseconds
            error: Error message if applicable

        Returns:
            JSON-formatted log string
        """
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level,
            "message": message,
        }

        if operation:
            log_entry["operation"] = operation

        if context:
            log_entry["context"] = context

        if duration_ms is not None:
            log_entry["duration_ms"] = round(duration_ms, 2)

        if error:
            log_entry["error"] = error

        # default=str keeps Decimal values from DynamoDB serialisable
        return json.dumps(log_entry, ensure_ascii=False, default=str)

    def debug(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Log debug message."""
        self.logger.debug(self._format_log("DEBUG", message, operation, context))

    def info(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
    ):
        """Log info message."""
        self.logger.info(self._format_log("INFO", message, operation, context, duration_ms))

    def warning(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        """Log warning message."""
        self.logger.warning(
            self._format_log("WARNING", message, operation, context, error=error)
        )

    def error(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        duration_ms: Optional[float] = None,
    ):
        """Log error message."""
        self.logger.error(
            self._format_log("ERROR", message, operation, context, duration_ms, error)
        )


def log_operation(operation_name: str):
    """
    Decorator that logs start, duration and failure of an operation.

    Usage:
        @log_operation("search_global")
        def search_global(query, index):
            ...
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = StructuredLogger(func.__module__)
            context: Dict[str, Any] = {"function": func.__name__}

            logger.debug(f"Starting {operation_name}", operation=operation_name, context=context)

            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Failed {operation_name}",
                    operation=operation_name,
                    context=context,
                    error=str(e),
                    duration_ms=(time.time() - start_time) * 1000,
                )
                raise

            logger.info(
                f"Completed {operation_name}",
                operation=operation_name,
                context=context,
                duration_ms=(time.time() - start_time) * 1000,
            )
            return result

        return wrapper

    return decorator


def add_handler_filter(log_filter: logging.Filter) -> None:
    """
    Attach a filter to the output handlers of all structured loggers.

    Logger-level filters do not see records propagated from child loggers,
    so redaction has to sit on the handlers that write the lines.
    """
    if log_filter in _HANDLER_FILTERS:
        return
    _HANDLER_FILTERS.append(log_filter)
    for handler in _HANDLERS:
        handler.addFilter(log_filter)


def get_logger(name: str) -> StructuredLogger:
    """Return a StructuredLogger for the given module name."""
    return StructuredLogger(name)
