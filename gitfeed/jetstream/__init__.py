"""Jetstream connection, event filtering and the ingestion worker."""

from __future__ import annotations

from .config import FeedConfig, StreamConfig
from .connection import (
    ConnectionState,
    Dialer,
    StreamConnectionManager,
    StreamTransport,
    websocket_dialer,
)
from .errors import (
    DecodeError,
    JetstreamError,
    ReconnectAttemptsExceededError,
    TransportError,
)
from .filters import accept, extract_link, find_matches, to_stored_post
from .ingestion import FeedIngestionWorker, IngestionStats
from .models import JetstreamEvent, decode_batch, decode_event
from .observability import (
    ErrorCategory,
    StreamEventLogger,
    StreamEventType,
    categorize_error,
)
from .retention import RetentionPruner

__all__ = [
    "ConnectionState",
    "DecodeError",
    "Dialer",
    "ErrorCategory",
    "FeedConfig",
    "FeedIngestionWorker",
    "IngestionStats",
    "JetstreamError",
    "JetstreamEvent",
    "ReconnectAttemptsExceededError",
    "RetentionPruner",
    "StreamConfig",
    "StreamConnectionManager",
    "StreamEventLogger",
    "StreamEventType",
    "StreamTransport",
    "TransportError",
    "accept",
    "categorize_error",
    "decode_batch",
    "decode_event",
    "extract_link",
    "find_matches",
    "to_stored_post",
    "websocket_dialer",
]
