"""Structured logging for the Jetstream connection and ingestion pipeline.

Events are emitted through Python logging with a ``[event.type]`` prefix and
``key=value`` pairs so log aggregators can parse connection churn, dropped
posts and ingestion throughput without a metrics backend.
"""

from __future__ import annotations

import enum
import logging
import typing as typ

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from gitfeed.posts.errors import StorageError

from .errors import DecodeError, ReconnectAttemptsExceededError, TransportError

if typ.TYPE_CHECKING:
    from gitfeed.posts.models import StoredPost

logger = logging.getLogger(__name__)


class StreamEventType(enum.StrEnum):
    """Structured log event types for the pipeline."""

    CONNECT_ATTEMPT = "jetstream.connect.attempt"
    CONNECT_SUCCEEDED = "jetstream.connect.succeeded"
    CONNECT_FAILED = "jetstream.connect.failed"
    CONNECT_EXHAUSTED = "jetstream.connect.exhausted"
    READ_FAILED = "jetstream.read.failed"
    STOPPED = "jetstream.stopped"
    PROGRESS = "ingest.progress"
    POST_WRITTEN = "ingest.post.written"
    POST_DROPPED = "ingest.post.dropped"
    PRUNE_FAILED = "ingest.prune.failed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    DECODE = "decode"
    CONFIGURATION = "configuration"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATA_INTEGRITY = "data_integrity"
    DATABASE_ERROR = "database_error"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (DecodeError, ErrorCategory.DECODE),
    (TransportError, ErrorCategory.TRANSIENT),
    (ReconnectAttemptsExceededError, ErrorCategory.CONFIGURATION),
    (OSError, ErrorCategory.TRANSIENT),
    (TimeoutError, ErrorCategory.TRANSIENT),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    Storage errors are categorised by the SQLAlchemy error that caused them.
    """
    if isinstance(exc, StorageError) and exc.__cause__ is not None:
        return categorize_error(exc.__cause__)

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class StreamEventLogger:
    """Emit structured pipeline events via Python logging.

    INFO for lifecycle and progress, WARNING for recoverable failures, ERROR
    for dropped posts and fatal exhaustion.
    """

    def log_connect_attempt(self, url: str, attempt: int) -> None:
        """Log a dial attempt."""
        logger.info(
            "[%s] url=%s attempt=%d",
            StreamEventType.CONNECT_ATTEMPT,
            url,
            attempt,
        )

    def log_connected(self, url: str, attempts: int) -> None:
        """Log a successful handshake."""
        logger.info(
            "[%s] url=%s attempts=%d",
            StreamEventType.CONNECT_SUCCEEDED,
            url,
            attempts,
        )

    def log_connect_failed(
        self, url: str, attempt: int, exc: BaseException, next_delay: float
    ) -> None:
        """Log a failed dial and the delay before the next one."""
        logger.warning(
            "[%s] url=%s attempt=%d error_category=%s next_delay_s=%.1f error=%s",
            StreamEventType.CONNECT_FAILED,
            url,
            attempt,
            categorize_error(exc),
            next_delay,
            exc,
        )

    def log_connect_exhausted(self, url: str, attempts: int) -> None:
        """Log that the reconnect policy gave up."""
        logger.error(
            "[%s] url=%s attempts=%d",
            StreamEventType.CONNECT_EXHAUSTED,
            url,
            attempts,
        )

    def log_read_failed(self, exc: BaseException) -> None:
        """Log a read or decode failure that forces a reconnect."""
        logger.warning(
            "[%s] error_category=%s error=%s",
            StreamEventType.READ_FAILED,
            categorize_error(exc),
            exc,
        )

    def log_stopped(self, url: str) -> None:
        """Log a clean shutdown of the read loop."""
        logger.info("[%s] url=%s", StreamEventType.STOPPED, url)

    def log_progress(self, read: int, written: int) -> None:
        """Log throughput every so often."""
        logger.info(
            "[%s] read=%d written=%d",
            StreamEventType.PROGRESS,
            read,
            written,
        )

    def log_post_written(self, post: StoredPost) -> None:
        """Log a stored match."""
        logger.info(
            "[%s] did=%s time_us=%d uri=%s",
            StreamEventType.POST_WRITTEN,
            post.did,
            post.time_us,
            post.uri,
        )

    def log_post_dropped(self, post: StoredPost, exc: BaseException) -> None:
        """Log a matched post that could not be written."""
        logger.error(
            "[%s] did=%s time_us=%d error_category=%s error=%s",
            StreamEventType.POST_DROPPED,
            post.did,
            post.time_us,
            categorize_error(exc),
            exc,
        )

    def log_prune_failed(self, limit: int, exc: BaseException) -> None:
        """Log a retention prune failure; the next tick retries."""
        logger.error(
            "[%s] limit=%d error_category=%s error=%s",
            StreamEventType.PRUNE_FAILED,
            limit,
            categorize_error(exc),
            exc,
        )
