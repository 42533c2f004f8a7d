"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of Sheets Harness, licensed under the MIT License.
See LICENSE file for details.
"""

"""Structured logging for the harness.

This module provides structured logging with context data, timed operation
logging, and redaction of the OAuth credentials the harness handles.
"""

import json
import logging
import os
import re
import sys
import time
import uuid
from contextlib import contextmanager
from datetime import datetime
from re import Pattern
from typing import Any

from rich.logging import RichHandler

ROOT_LOGGER_NAME = "sheets_harness"


class LogRedactor:
    """
    Redacts sensitive information from log messages.
    """

    def __init__(self) -> None:
        """
        Initialize the log redactor with patterns for sensitive information.

        Covers OAuth access and refresh tokens, client secrets, passwords and
        bearer authorization headers.
        """
        self.patterns: dict[str, Pattern] = {
            "token": re.compile(
                r'(access[_-]?token|refresh[_-]?token|accessToken|refreshToken)["\']?\s*[:=]\s*["\']?([^"\'&\s,}]+)',
                re.IGNORECASE,
            ),
            "secret": re.compile(
                r'(client[_-]?secret|clientSecret|password|passwd)["\']?\s*[:=]\s*["\']?([^"\'&\s,}]+)',
                re.IGNORECASE,
            ),
            "bearer_token": re.compile(r"(Bearer)\s+([^\"'&\s,}]+)", re.IGNORECASE),
        }

    def redact(self, message: str) -> str:
        """
        Redact sensitive information from the message.
        """
        if not isinstance(message, str):
            return message

        for field, pattern in self.patterns.items():
            if field == "bearer_token":
                message = pattern.sub(r"\1 [REDACTED]", message)
            else:
                # Keep the key but redact the value
                message = pattern.sub(r"\1: [REDACTED]", message)
        return message


# Global redactor instance
redactor = LogRedactor()


class StructuredLogger(logging.Logger):
    """
    Logger that supports structured logging with context data.
    """

    def _log(
        self,
        level: int,
        msg: Any,
        args: tuple,
        exc_info: Any = None,
        extra: dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        context: dict[str, Any] | None = None,
    ) -> None:
        """
        Log a message with the specified level and optional context.

        Args:
        ----
            level: The log level (DEBUG, INFO, etc.)
            msg: The message to log
            args: Arguments for string formatting
            exc_info: Exception info for traceback
            extra: Extra attributes to add to the LogRecord
            stack_info: Whether to include stack info
            stacklevel: Stack frame offset used to find the caller
            context: Context key-value pairs stored on the record as ``context_data``

        """
        extra = dict(extra) if extra else {}

        context = context if context is not None else getattr(self, "_log_context", None)
        if context:
            extra["context_data"] = context

        if isinstance(msg, str):
            msg = redactor.redact(msg)

        super()._log(level, msg, args, exc_info, extra, stack_info, stacklevel + 1)

    def with_context(self, **context: Any) -> "StructuredLogger":
        """
        Return a child logger that attaches the given context to every record.

        Args:
        ----
            **context: Arbitrary context key-value pairs to include in logs

        Returns:
        -------
            A StructuredLogger instance with the specified context

        """
        child = StructuredLogger(self.name, self.level)
        child.parent = self
        child._log_context = context
        return child


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs log records as JSON.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if getattr(record, "context_data", None):
            log_data["context"] = record.context_data

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, default=str)


class RichContextFormatter(logging.Formatter):
    """
    Formatter for Rich console output with context data.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        if getattr(record, "context_data", None):
            context_str = " ".join(f"[{k}={v}]" for k, v in record.context_data.items())
            if context_str:
                message = f"{message} {context_str}"

        return message


def _log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    context: dict[str, Any],
    exc_info: bool = False,
) -> None:
    # Works for plain loggers as well as StructuredLogger
    logger.log(level, msg, extra={"context_data": context}, exc_info=exc_info)


@contextmanager
def log_operation(
    logger: logging.Logger,
    operation_name: str,
    level: int = logging.INFO,
    context: dict[str, Any] | None = None,
) -> Any:
    """
    Context manager for logging operations with timing and context tracking.

    Args:
    ----
        logger: The logger instance to use
        operation_name: Name of the operation being performed
        level: Log level to use
        context: Additional context data to include in the logs

    Yields:
    ------
        None: This context manager doesn't yield a value

    Raises:
    ------
        Exception: Re-raises any exception that occurs within the context

    """
    start_time = time.time()
    context = dict(context or {})
    context["operation_id"] = str(uuid.uuid4())[:8]

    _log_with_context(logger, level, f"Starting {operation_name}", context)

    try:
        yield
    except Exception as e:
        duration = time.time() - start_time
        error_context = {
            **context,
            "error_type": type(e).__name__,
            "error": str(e),
            "duration": f"{duration:.2f}s",
        }
        _log_with_context(
            logger,
            logging.ERROR,
            f"Failed {operation_name} after {duration:.2f}s",
            error_context,
            exc_info=True,
        )
        raise

    duration = time.time() - start_time
    _log_with_context(logger, level, f"Completed {operation_name} in {duration:.2f}s", context)


def configure_logging(
    level: int | str = logging.INFO,
    log_file: str | None = None,
    json_format: bool = False,
    include_timestamp: bool = True,
    use_rich: bool = True,
) -> None:
    """
    Configure harness logging.

    Args:
    ----
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL or integer)
        log_file: Optional path to log file
        json_format: Whether to use JSON format for logs
        include_timestamp: Whether to include timestamps in logs
        use_rich: Whether to use Rich for console output

    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logging.setLoggerClass(StructuredLogger)

    format_str = (
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        if include_timestamp
        else "[%(levelname)s] %(name)s: %(message)s"
    )

    handlers: list[logging.Handler] = []

    if use_rich and not json_format:
        rich_handler = RichHandler(rich_tracebacks=True, markup=False, show_time=include_timestamp)
        rich_handler.setFormatter(RichContextFormatter("%(message)s"))
        handlers.append(rich_handler)
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(format_str))
        handlers.append(console_handler)

    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(format_str))
        handlers.append(file_handler)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    for handler in handlers:
        logger.addHandler(handler)

    logger.debug(f"Logging configured with level {logging.getLevelName(level)}")


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger.

    Args:
    ----
        name: Name of the logger, typically __name__

    Returns:
    -------
        A structured logger instance

    """
    previous_class = logging.getLoggerClass()
    logging.setLoggerClass(StructuredLogger)
    try:
        return logging.getLogger(name)
    finally:
        logging.setLoggerClass(previous_class)
