"""Periodic retention pruning for the posts store."""

from __future__ import annotations

import asyncio
import typing as typ

from gitfeed.posts.errors import StorageError

from .config import DEFAULT_RETENTION_LIMIT
from .observability import StreamEventLogger


class PostPruner(typ.Protocol):
    """Storage dependency of the pruner."""

    async def prune(self, limit: int) -> int:
        """Keep the ``limit`` newest posts and return how many were removed."""
        ...


class RetentionPruner:
    """Call ``prune(limit)`` every ``interval`` seconds until stopped."""

    def __init__(
        self,
        repository: PostPruner,
        *,
        limit: int = DEFAULT_RETENTION_LIMIT,
        interval: float = 300.0,
        stop_event: asyncio.Event | None = None,
        event_logger: StreamEventLogger | None = None,
    ) -> None:
        """Bind the pruner to its store, limit and schedule."""
        self._repository = repository
        self._limit = limit
        self._interval = interval
        self._stop = stop_event or asyncio.Event()
        self._event_logger = event_logger or StreamEventLogger()
        self.runs = 0

    def stop(self) -> None:
        """Request the loop to exit after the current prune."""
        self._stop.set()

    async def prune_once(self) -> int | None:
        """Prune now; return rows removed, or ``None`` if the prune failed."""
        self.runs += 1
        try:
            return await self._repository.prune(self._limit)
        except StorageError as exc:
            self._event_logger.log_prune_failed(self._limit, exc)
            return None

    async def run(self) -> None:
        """Prune on every tick until the stop event is set."""
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except TimeoutError:
                await self.prune_once()
