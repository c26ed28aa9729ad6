"""Logging helpers for femtologging integration.

gitfeed entrypoints (the ingest process and the API runtime) configure
femtologging once at start-up and emit pre-formatted messages through the
helpers below, so both processes share the same level handling.

Example:
>>> from gitfeed.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Connected to %s", "wss://example.invalid")

"""

from __future__ import annotations

import enum
import os
import typing as typ

from femtologging import basicConfig, get_logger

DEFAULT_LOG_LEVEL = "INFO"


class LogLevel(enum.StrEnum):
    """Supported log levels for femtologging."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Normalize a log level string and report invalid inputs.

    Parameters
    ----------
    level : str | None
        Raw log level string to normalize.

    Returns
    -------
    tuple[str, bool]
        The normalized log level and a flag indicating invalid input.

    """
    if not level:
        return (DEFAULT_LOG_LEVEL, True)

    normalized = level.strip().upper()
    if normalized in LogLevel.__members__:
        return (normalized, False)

    return (DEFAULT_LOG_LEVEL, True)


def configure_logging(level: str, *, force: bool = False) -> tuple[str, bool]:
    """Configure femtologging and return the normalized level.

    Parameters
    ----------
    level : str
        Raw log level string to normalize.
    force : bool, optional
        Whether to replace any existing handler configuration.

    Returns
    -------
    tuple[str, bool]
        The normalized log level and a flag indicating invalid input.

    """
    normalized, invalid = normalize_log_level(level)
    basicConfig(level=normalized, force=force)
    return (normalized, invalid)


def configure_logging_from_env(
    env_var: str = "GITFEED_LOG_LEVEL",
    *,
    logger: _SupportsLog | None = None,
) -> str:
    """Configure logging from an environment variable and warn on bad values.

    Parameters
    ----------
    env_var : str, optional
        Name of the environment variable holding the level.
    logger : _SupportsLog | None, optional
        Logger receiving the warning when the configured level is invalid.
        Defaults to the ``gitfeed`` logger.

    Returns
    -------
    str
        The level that was applied.

    """
    raw = os.environ.get(env_var, DEFAULT_LOG_LEVEL)
    normalized, invalid = configure_logging(raw)
    if invalid:
        log_warning(
            logger or get_logger("gitfeed"),
            "Invalid %s %r, falling back to %s",
            env_var,
            raw,
            normalized,
        )
    return normalized


def _format_message(template: str, *args: object) -> str:
    """Format a message using percent-style interpolation."""
    return template % args


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


def _log_at_level(
    logger: _SupportsLog,
    level: str,
    template: str,
    args: tuple[object, ...],
    *,
    exc_info: object | None = None,
) -> None:
    """Format ``template`` with ``args`` and log it at ``level``."""
    logger.log(
        level,
        _format_message(template, *args),
        exc_info=exc_info,
        stack_info=False,
    )


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
        Logger that receives the formatted message.
    template : str
        Message template using percent-style placeholders.
    *args : object
        Values to interpolate into the template.
    exc_info : object | None, optional
        Exception information to attach to the log record.

    """
    _log_at_level(logger, LogLevel.INFO.value, template, args, exc_info=exc_info)


def log_warning(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a WARNING message with percent-style formatting."""
    _log_at_level(logger, LogLevel.WARNING.value, template, args, exc_info=exc_info)


def log_error(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an ERROR message with percent-style formatting."""
    _log_at_level(logger, LogLevel.ERROR.value, template, args, exc_info=exc_info)


def log_exception(logger: _SupportsLog, message: str, exc: BaseException) -> None:
    """Log an exception with exc_info wired into femtologging.

    Parameters
    ----------
    logger : _SupportsLog
        Logger that receives the exception payload.
    message : str
        Pre-formatted message describing the failure.
    exc : BaseException
        Exception instance to attach as exc_info.

    """
    logger.log(LogLevel.ERROR.value, message, exc_info=exc, stack_info=False)


__all__ = [
    "DEFAULT_LOG_LEVEL",
    "LogLevel",
    "configure_logging",
    "configure_logging_from_env",
    "get_logger",
    "log_error",
    "log_exception",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
