"""
Utility functions for exception logging that never raise themselves.

Proxy failures are reported to clients in the same request, so the logging
around them must not be able to turn a handled upstream error into a crash.
"""

import logging


def _safe_str(obj) -> str:
    """
    Safely convert an object to string, handling cases where __str__ or __repr__ might fail.

    Args:
        obj: The object to convert to string

    Returns:
        A string representation of the object, falling back to safe alternatives
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            try:
                return f"<{type(obj).__name__} object (string conversion failed)>"
            except Exception:
                return "<object (all string conversions failed)>"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with its traceback.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]", "[RateLimit]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        safe_prefix = _safe_str(prefix) if prefix is not None else ""
        if exception is None:
            logger.log(level, f"{safe_prefix} Exception: None")
            return

        message = f"{safe_prefix} Exception: {format_exception_message(exception)}"
        try:
            logger.log(level, message, exc_info=exception)
        except Exception:
            # exc_info formatting can fail on broken tracebacks
            logger.log(level, message)
    except Exception:
        try:
            if logger is not None:
                logger.log(logging.ERROR, "Exception logging failed")
        except Exception:
            pass


def format_exception_message(exception: Exception) -> str:
    """
    Format an exception into a client-facing message.

    httpx raises some transport errors (read timeouts in particular) with an
    empty message; those are reported by their type name instead.
    """
    try:
        if exception is None:
            return "None"
        message = _safe_str(exception).strip()
        if message:
            return message
        return type(exception).__name__
    except Exception:
        return "<exception (all formatting failed)>"
