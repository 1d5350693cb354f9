"""
Utility functions for logging proxy failures together with the upstream URL
and the underlying transport cause.
"""

import logging
from typing import Optional

import httpx


def _safe_str(obj) -> str:
    """
    Safely convert an object to string, handling cases where __str__ or __repr__ might fail.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def describe_cause(exception: Optional[BaseException]) -> str:
    """
    Build a short cause string for an exception.

    httpx errors often stringify to an empty message (e.g. bare timeouts), so
    the exception type is always included and the request URL is appended when
    the transport attached one.
    """
    if exception is None:
        return "None"
    message = _safe_str(exception)
    cause = f"{type(exception).__name__}: {message}" if message else type(exception).__name__
    if isinstance(exception, httpx.RequestError):
        try:
            cause = f"{cause} ({exception.request.method} {exception.request.url})"
        except RuntimeError:
            # .request raises when the error was created without one
            pass
    chained = exception.__cause__
    if chained is not None and chained is not exception:
        cause = f"{cause} <- {type(chained).__name__}: {_safe_str(chained)}"
    return cause


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    target_url: Optional[str] = None,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with the URL it relates to and its cause.
    This function never raises, even for broken exception objects.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[RSS]", "[Image]")
        exception: The exception to log
        target_url: The upstream URL that was being fetched, if any
        level: The logging level to use (default: ERROR)
    """
    try:
        safe_prefix = _safe_str(prefix) if prefix is not None else ""
        target = f" url={target_url}" if target_url else ""
        message = f"{safe_prefix} Failed{target}: {describe_cause(exception)}"
        # Tracebacks only for unexpected failures; expected gateway errors stay one line
        logger.log(level, message, exc_info=exception if level >= logging.ERROR else False)
    except Exception:
        try:
            logger.log(logging.ERROR, f"{prefix} Exception logging failed")
        except Exception:
            pass
