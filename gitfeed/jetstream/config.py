"""Configuration for the Jetstream connection and the ingestion pipeline.

Usage
-----
Create a configuration with defaults:

>>> config = StreamConfig()
>>> config.handshake_timeout
10.0

Or load from environment variables:

>>> import os
>>> os.environ["GITFEED_RECONNECT_DELAY"] = "3"
>>> StreamConfig.from_env().reconnect_delay
3.0

"""

from __future__ import annotations

import dataclasses as dc
import os

DEFAULT_JETSTREAM_URL = (
    "wss://jetstream2.us-west.bsky.network/subscribe"
    "?wantedCollections=app.bsky.feed.post"
)
DEFAULT_MATCH_PATTERN = "github.com"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///gitfeed.db"
DEFAULT_MAX_MESSAGE_SIZE = 512 * 1024
DEFAULT_RETENTION_LIMIT = 10

# Ping period as a fraction of the keepalive deadline.
_PING_FRACTION = 0.9


def _raw(env_var: str) -> str:
    return os.environ.get(env_var, "").strip()


def _parse_positive_int(env_var: str, default: int) -> int:
    """Read a positive integer env var, falling back to a default."""
    raw = _raw(env_var)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"{env_var} must be an integer, got: {raw!r}"
        raise ValueError(msg) from exc
    if value < 1:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


def _parse_optional_positive_int(env_var: str) -> int | None:
    if not _raw(env_var):
        return None
    return _parse_positive_int(env_var, 1)


def _parse_non_negative_float(env_var: str, default: float) -> float:
    """Read a float env var that may be zero but not negative."""
    raw = _raw(env_var)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        msg = f"{env_var} must be a number, got: {raw!r}"
        raise ValueError(msg) from exc
    if value < 0:
        msg = f"{env_var} must not be negative, got: {value}"
        raise ValueError(msg)
    return value


def _parse_positive_float(env_var: str, default: float) -> float:
    value = _parse_non_negative_float(env_var, default)
    if value == 0:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


@dc.dataclass(frozen=True, slots=True)
class StreamConfig:
    """Connection policy for the upstream Jetstream WebSocket.

    Attributes
    ----------
    url
        Jetstream subscribe endpoint.
    reconnect_delay
        Seconds to wait before every dial attempt, including the first.
    reconnect_multiplier
        Factor applied to the delay after each failed attempt. ``1.0`` keeps
        the delay fixed.
    reconnect_max_delay
        Upper bound for the backoff delay in seconds.
    max_reconnect_attempts
        Failed dials tolerated per connect before giving up. ``None`` retries
        forever.
    handshake_timeout
        Deadline in seconds for the opening handshake.
    keepalive
        Read deadline in seconds. A connection that delivers nothing for
        this long, or misses a pong, is torn down and redialled.
    max_message_size
        Inbound message ceiling in bytes.

    """

    url: str = DEFAULT_JETSTREAM_URL
    reconnect_delay: float = 5.0
    reconnect_multiplier: float = 1.0
    reconnect_max_delay: float = 60.0
    max_reconnect_attempts: int | None = None
    handshake_timeout: float = 10.0
    keepalive: float = 60.0
    max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE

    def __post_init__(self) -> None:
        """Reject policies that could never connect or would spin."""
        if self.reconnect_delay < 0:
            msg = f"reconnect_delay must not be negative, got {self.reconnect_delay}"
            raise ValueError(msg)
        if self.reconnect_multiplier < 1:
            msg = f"reconnect_multiplier must be >= 1, got {self.reconnect_multiplier}"
            raise ValueError(msg)
        if self.max_reconnect_attempts is not None and self.max_reconnect_attempts < 1:
            msg = (
                "max_reconnect_attempts must be positive, "
                f"got {self.max_reconnect_attempts}"
            )
            raise ValueError(msg)

    @property
    def ping_interval(self) -> float:
        """Seconds between client pings, just inside the keepalive deadline."""
        return self.keepalive * _PING_FRACTION

    def next_delay(self, current: float) -> float:
        """Return the backoff delay that follows ``current``."""
        return min(current * self.reconnect_multiplier, self.reconnect_max_delay)

    @classmethod
    def from_env(cls) -> StreamConfig:
        """Create configuration from ``GITFEED_*`` environment variables.

        Raises
        ------
        ValueError
            If any variable is set to an invalid value.

        """
        defaults = cls()
        return cls(
            url=_raw("GITFEED_JETSTREAM_URL") or defaults.url,
            reconnect_delay=_parse_non_negative_float(
                "GITFEED_RECONNECT_DELAY", defaults.reconnect_delay
            ),
            reconnect_multiplier=_parse_positive_float(
                "GITFEED_RECONNECT_MULTIPLIER", defaults.reconnect_multiplier
            ),
            reconnect_max_delay=_parse_positive_float(
                "GITFEED_RECONNECT_MAX_DELAY", defaults.reconnect_max_delay
            ),
            max_reconnect_attempts=_parse_optional_positive_int(
                "GITFEED_RECONNECT_MAX_ATTEMPTS"
            ),
            handshake_timeout=_parse_positive_float(
                "GITFEED_HANDSHAKE_TIMEOUT", defaults.handshake_timeout
            ),
            keepalive=_parse_positive_float("GITFEED_KEEPALIVE", defaults.keepalive),
            max_message_size=_parse_positive_int(
                "GITFEED_MAX_MESSAGE_SIZE", defaults.max_message_size
            ),
        )


@dc.dataclass(frozen=True, slots=True)
class FeedConfig:
    """What the pipeline keeps and where it keeps it.

    Attributes
    ----------
    pattern
        Literal, case-sensitive substring that both the post text and its
        link must contain.
    retention_limit
        Number of newest ``(did, time_us)`` pairs kept by each prune.
    prune_interval
        Seconds between retention prunes in the ingest process.
    database_url
        SQLAlchemy async database URL.

    """

    pattern: str = DEFAULT_MATCH_PATTERN
    retention_limit: int = DEFAULT_RETENTION_LIMIT
    prune_interval: float = 300.0
    database_url: str = DEFAULT_DATABASE_URL

    @classmethod
    def from_env(cls) -> FeedConfig:
        """Create configuration from ``GITFEED_*`` environment variables."""
        defaults = cls()
        return cls(
            pattern=os.environ.get("GITFEED_MATCH_PATTERN") or defaults.pattern,
            retention_limit=_parse_positive_int(
                "GITFEED_RETENTION_LIMIT", defaults.retention_limit
            ),
            prune_interval=_parse_positive_float(
                "GITFEED_PRUNE_INTERVAL", defaults.prune_interval
            ),
            database_url=_raw("GITFEED_DATABASE_URL") or defaults.database_url,
        )
