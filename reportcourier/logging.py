"""Logging helpers built on femtologging.

Report Courier emits pre-formatted messages: callers pass a percent-style
template and arguments, and the helpers interpolate before handing the text
to femtologging. Structured lifecycle events use :func:`log_event`, which
renders ``[event] key=value`` pairs in a stable order.

Example:
>>> from reportcourier.logging import get_logger, log_event, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Dispatching %d subscription(s)", 3)
>>> log_event(logger, "INFO", "dispatch.cycle.started", evaluated=3)

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger


class LogLevel(enum.StrEnum):
    """Log levels understood by femtologging."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Return the canonical level name and whether *level* was invalid.

    Parameters
    ----------
    level : str | None
        Raw level, typically read from ``COURIER_LOG_LEVEL``.

    Returns
    -------
    tuple[str, bool]
        ``(level, invalid)``. Invalid or empty input yields ``("INFO", True)``.

    """
    if not level:
        return ("INFO", True)

    candidate = level.strip().upper()
    if candidate in LogLevel.__members__:
        return (candidate, False)
    return ("INFO", True)


def configure_logging(level: str, *, force: bool = False) -> tuple[str, bool]:
    """Install the femtologging root handler at the normalized *level*.

    Parameters
    ----------
    level : str
        Raw log level string.
    force : bool, optional
        Replace an existing handler configuration.

    Returns
    -------
    tuple[str, bool]
        The level actually applied and the invalid-input flag.

    """
    normalized, invalid = normalize_log_level(level)
    basicConfig(level=normalized, force=force)
    return (normalized, invalid)


def format_log_message(template: str, *args: object) -> str:
    """Interpolate *args* into *template* using percent formatting."""
    return template % args


def format_event(event: str, **fields: object) -> str:
    """Render a structured event as ``[event] key=value ...``.

    ``None`` values are rendered as ``None`` so absent fields remain visible
    in the log line.
    """
    parts = [f"[{event}]"]
    parts.extend(f"{key}={value}" for key, value in fields.items())
    return " ".join(parts)


class _SupportsLog(typ.Protocol):
    """Protocol for femtologging-compatible loggers."""

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def _emit(
    logger: _SupportsLog,
    level: str,
    message: str,
    *,
    exc_info: object | None = None,
) -> None:
    logger.log(level, message, exc_info=exc_info, stack_info=False)


def log_info(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an INFO message with percent-style formatting.

    Parameters
    ----------
    logger : _SupportsLog
        Destination logger.
    template : str
        Percent-style message template.
    *args : object
        Values interpolated into the template.
    exc_info : object | None, optional
        Exception information attached to the record.

    """
    _emit(logger, "INFO", format_log_message(template, *args), exc_info=exc_info)


def log_warning(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a WARNING message with percent-style formatting.

    Parameters
    ----------
    logger : _SupportsLog
        Destination logger.
    template : str
        Percent-style message template.
    *args : object
        Values interpolated into the template.
    exc_info : object | None, optional
        Exception information attached to the record.

    """
    _emit(
        logger, "WARNING", format_log_message(template, *args), exc_info=exc_info
    )


def log_error(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an ERROR message with percent-style formatting.

    Parameters
    ----------
    logger : _SupportsLog
        Destination logger.
    template : str
        Percent-style message template.
    *args : object
        Values interpolated into the template.
    exc_info : object | None, optional
        Exception information attached to the record.

    """
    _emit(logger, "ERROR", format_log_message(template, *args), exc_info=exc_info)


def log_exception(logger: _SupportsLog, message: str, exc: BaseException) -> None:
    """Log *message* at ERROR with *exc* attached as ``exc_info``."""
    _emit(logger, "ERROR", message, exc_info=exc)


def log_event(
    logger: _SupportsLog,
    level: str,
    event: str,
    *,
    exc_info: object | None = None,
    **fields: object,
) -> None:
    """Log a structured lifecycle event at *level*.

    Parameters
    ----------
    logger : _SupportsLog
        Destination logger.
    level : str
        femtologging level name.
    event : str
        Dotted event identifier, e.g. ``dispatch.cycle.completed``.
    exc_info : object | None, optional
        Exception information attached to the record.
    **fields : object
        Key/value pairs appended to the message in insertion order.

    """
    _emit(logger, level, format_event(event, **fields), exc_info=exc_info)


__all__ = [
    "configure_logging",
    "format_event",
    "format_log_message",
    "get_logger",
    "log_error",
    "log_event",
    "log_exception",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
