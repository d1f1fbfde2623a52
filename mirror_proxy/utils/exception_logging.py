"""
Helpers for logging failures raised while forwarding a request.
"""

import logging

import httpx


def _safe_str(obj) -> str:
    """
    Convert an object to string without letting a broken ``__str__`` escape.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def describe_exception(exception: BaseException) -> str:
    """
    One-line description of a forwarding failure.

    httpx errors carry the request they belong to, which is added so the
    log line names the upstream URL. Exception groups list their members.
    """
    if exception is None:
        return "None"

    message = f"{type(exception).__name__}: {_safe_str(exception)}"

    if isinstance(exception, httpx.RequestError):
        try:
            message += f" ({exception.request.method} {exception.request.url})"
        except RuntimeError:
            # .request raises when the error was not bound to a request
            pass

    try:
        sub_exceptions = getattr(exception, "exceptions", None)
    except Exception:
        sub_exceptions = None
    if sub_exceptions:
        inner = "; ".join(describe_exception(sub) for sub in sub_exceptions)
        message += f" (Sub-exceptions: {inner})"

    return message


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with its description and traceback.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]", "[Chain]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    logger.log(
        level,
        f"{prefix} Exception: {describe_exception(exception)}",
        exc_info=exception if exception is not None else False,
    )
