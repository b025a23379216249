"""Standardized Error Handling Utilities

Provides the exception hierarchy for the capture-and-encode pipeline and the
helpers that translate foreign exceptions into it with consistent logging.
The pipeline coordinator is the single place where these errors are caught
and turned into a failed run.
"""

from __future__ import annotations

import logging
import traceback
from contextlib import contextmanager
from enum import Enum
from typing import Any


class ErrorLevel(Enum):
    """Error severity levels for consistent logging."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class PromoGifError(Exception):
    """Base exception class for all promogif errors."""

    def __init__(
        self, message: str, cause: Exception | None = None, context: dict | None = None
    ):
        super().__init__(message)
        self.cause = cause
        self.context = context or {}

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.cause:
            return f"{base_msg} (caused by: {self.cause})"
        return base_msg


class ConfigurationError(PromoGifError):
    """Raised when configuration is invalid or inconsistent."""

    pass


class ResourceLoadError(PromoGifError):
    """Raised when an image referenced by the scene cannot be fetched or decoded."""

    pass


class RasterizationError(PromoGifError):
    """Raised when the rasterizer rejects a capture."""

    pass


class CaptureTimeoutError(RasterizationError):
    """Raised when a single frame capture exceeds its timeout."""

    pass


class EncodingError(PromoGifError):
    """Raised when building the animated image fails."""

    pass


class SessionStateError(EncodingError):
    """Raised when an encoding session is used after it was finalized."""

    pass


class RunCancelledError(PromoGifError):
    """Raised at a suspension point once the run's cancellation token fired."""

    pass


class SceneLockedError(PromoGifError):
    """Raised when scene parameters are changed while a capture run owns the scene."""

    pass


def handle_error(
    error: Exception,
    operation: str,
    error_type: type[PromoGifError] = RasterizationError,
    level: ErrorLevel = ErrorLevel.ERROR,
    context: dict | None = None,
    logger: logging.Logger | None = None,
    reraise: bool = True,
) -> PromoGifError | None:
    """Standardized error handling with consistent logging and error transformation.

    Args:
        error: Original exception that occurred
        operation: Description of operation that failed
        error_type: Type of PromoGifError to raise
        level: Logging level for the error
        context: Additional context information
        logger: Logger to use (defaults to module logger)
        reraise: Whether to reraise the transformed exception

    Returns:
        The transformed error if reraise=False, otherwise None

    Raises:
        PromoGifError: Transformed error if reraise=True
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    message = f"Failed to {operation}: {error}"

    error_context = dict(context or {})
    error_context.update(
        {
            "operation": operation,
            "original_error_type": type(error).__name__,
        }
    )

    transformed_error = error_type(message, cause=error, context=error_context)

    log_message = f"🚨 {operation.capitalize()} failed: {error}"
    context_str = ", ".join(f"{k}={v}" for k, v in error_context.items())
    if context_str:
        log_message += f" (context: {context_str})"

    log_func = getattr(logger, level.value)
    log_func(log_message)

    if level in [ErrorLevel.ERROR, ErrorLevel.CRITICAL]:
        logger.debug(f"Traceback for {operation}: {traceback.format_exc()}")

    if reraise:
        raise transformed_error from error
    return transformed_error


@contextmanager
def error_context(
    operation: str,
    error_type: type[PromoGifError] = RasterizationError,
    level: ErrorLevel = ErrorLevel.ERROR,
    context: dict | None = None,
    logger: logging.Logger | None = None,
) -> Any:
    """Context manager for standardized error handling.

    Usage:
        with error_context("encode frames", EncodingError, context={'frames': 24}):
            risky_operation()

    Args:
        operation: Description of operation being performed
        error_type: Type of PromoGifError to raise on failure
        level: Logging level for errors
        context: Additional context information
        logger: Logger to use
    """
    try:
        yield
    except PromoGifError:
        # Already part of the hierarchy
        raise
    except Exception as e:
        handle_error(e, operation, error_type, level, context, logger, reraise=True)


def log_warning_with_context(
    message: str, context: dict | None = None, logger: logging.Logger | None = None
) -> None:
    """Log a warning with standardized context formatting.

    Args:
        message: Warning message
        context: Additional context information
        logger: Logger to use
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    warning_msg = f"⚠️  {message}"
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        warning_msg += f" (context: {context_str})"

    logger.warning(warning_msg)


def log_info_with_context(
    message: str, context: dict | None = None, logger: logging.Logger | None = None
) -> None:
    """Log an info message with standardized context formatting."""
    if logger is None:
        logger = logging.getLogger(__name__)

    info_msg = f"ℹ️  {message}"
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        info_msg += f" (context: {context_str})"

    logger.info(info_msg)


def clean_error_message(error_msg: str, max_length: int = 300) -> str:
    """Collapse an error message to a single short line for user-facing output.

    Args:
        error_msg: Raw error message string
        max_length: Maximum length of the returned message

    Returns:
        Single-line message, truncated with an ellipsis when too long
    """
    cleaned = " ".join(str(error_msg).split())
    if len(cleaned) > max_length:
        cleaned = cleaned[: max_length - 3] + "..."
    return cleaned
