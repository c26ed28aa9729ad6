"""gitfeed: a Jetstream firehose ingester for posts that link to GitHub.

The package is split into three layers:

- :mod:`gitfeed.jetstream` owns the upstream WebSocket, the event filter and
  the ingestion worker that feeds matches into storage.
- :mod:`gitfeed.storage` owns the ``posts`` table and the repository that
  serialises every read and write against it.
- :mod:`gitfeed.api` exposes the repository over a Falcon ASGI application.
"""

from __future__ import annotations

__all__: list[str] = []
