"""Ingestion worker joining the Jetstream connection to the posts store.

Each decoded event is filtered and, on a match, written before the next
read is issued. A failed write drops that one post and the worker carries
on; only reconnect exhaustion ends :meth:`FeedIngestionWorker.run` early.
"""

from __future__ import annotations

import dataclasses
import typing as typ

from gitfeed.posts.errors import WriteError

from .config import DEFAULT_MATCH_PATTERN
from .filters import accept
from .observability import StreamEventLogger

if typ.TYPE_CHECKING:
    from gitfeed.posts.models import StoredPost

    from .connection import StreamConnectionManager
    from .models import JetstreamEvent

DEFAULT_PROGRESS_INTERVAL = 100


class PostWriter(typ.Protocol):
    """Storage dependency of the worker."""

    async def write(self, post: StoredPost) -> StoredPost:
        """Persist ``post`` and return it with its surrogate id."""
        ...


@dataclasses.dataclass(slots=True)
class IngestionStats:
    """Running counters for one worker."""

    read: int = 0
    matched: int = 0
    written: int = 0
    dropped: int = 0


class FeedIngestionWorker:
    """Filter Jetstream events and persist the matches."""

    def __init__(
        self,
        repository: PostWriter,
        manager: StreamConnectionManager,
        *,
        pattern: str = DEFAULT_MATCH_PATTERN,
        progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
        event_logger: StreamEventLogger | None = None,
    ) -> None:
        """Bind the worker to its store and connection manager."""
        self._repository = repository
        self._manager = manager
        self._pattern = pattern
        self._progress_interval = progress_interval
        self._event_logger = event_logger or StreamEventLogger()
        self._stats = IngestionStats()

    @property
    def stats(self) -> IngestionStats:
        """Counters accumulated since the worker was created."""
        return self._stats

    async def handle_event(self, event: JetstreamEvent) -> StoredPost | None:
        """Filter ``event`` and write it when it matches.

        Returns the stored post, or ``None`` when the event did not match or
        its write failed.
        """
        self._stats.read += 1
        if self._stats.read % self._progress_interval == 0:
            self._event_logger.log_progress(self._stats.read, self._stats.written)

        post = accept(event, self._pattern)
        if post is None:
            return None
        self._stats.matched += 1

        try:
            stored = await self._repository.write(post)
        except WriteError as exc:
            self._stats.dropped += 1
            self._event_logger.log_post_dropped(post, exc)
            return None

        self._stats.written += 1
        self._event_logger.log_post_written(stored)
        return stored

    async def run(self) -> IngestionStats:
        """Consume the stream until the manager is stopped."""
        await self._manager.run(self.handle_event)
        return self._stats

    def stop(self) -> None:
        """Ask the connection manager to stop reading."""
        self._manager.stop()
