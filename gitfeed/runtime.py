"""gitfeed API runtime entrypoint.

This module provides the ASGI application factory used by Granian. It
delegates to :func:`gitfeed.api.app.create_app` while keeping the
``gitfeed.runtime:create_app`` entrypoint stable.

When ``GITFEED_DATABASE_URL`` is set, the runtime builds a posts repository
and a GitHub client so the app serves every ``/api/v1`` route. Otherwise it
starts in health-only mode; unlike the ingest process it never falls back
to ``sqlite+aiosqlite:///gitfeed.db``.

Configuration is driven by environment variables:

- ``GITFEED_HOST``: Bind address (default ``0.0.0.0``)
- ``GITFEED_PORT``: Listen port (default ``8000``)
- ``GITFEED_LOG_LEVEL``: Log level (default ``INFO``)
- ``GITFEED_DATABASE_URL``: Database connection URL (optional; enables the
  posts and GitHub endpoints when set)
- ``GITFEED_RETENTION_LIMIT`` and ``GITFEED_MATCH_PATTERN``: as for the
  ingest process
- ``GITFEED_GITHUB_TOKEN``: optional GitHub token

Run the service directly with ``python -m gitfeed.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from gitfeed.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid GITFEED_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def create_app() -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    The API does not share the ingest process's default database. Unless
    ``GITFEED_DATABASE_URL`` is set, the app serves only ``/health`` and
    ``/ready``, even when ``gitfeed.db`` exists in the working directory. Set
    the variable for both processes to serve the posts the ingester writes.

    When a database is configured the ``posts`` table is created during the
    ASGI lifespan startup, so an empty database answers 404 until the first
    post arrives.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    from gitfeed.api.app import create_app as _create_api_app

    database_url = os.environ.get("GITFEED_DATABASE_URL")

    if database_url is None:
        return _create_api_app()

    from sqlalchemy.ext.asyncio import async_sessionmaker

    from gitfeed.api.app import AppDependencies
    from gitfeed.github.client import GitHubClientConfig, GitHubRepoClient
    from gitfeed.jetstream.config import FeedConfig
    from gitfeed.posts import PostRepository, create_post_engine

    feed = FeedConfig.from_env()
    engine = create_post_engine(database_url)
    repository = PostRepository(async_sessionmaker(engine, expire_on_commit=False))

    deps = AppDependencies(
        repository=repository,
        github_client=GitHubRepoClient(GitHubClientConfig.from_env()),
        retention_limit=feed.retention_limit,
        pattern=feed.pattern,
    )
    return _create_api_app(deps)


def main() -> None:
    """Start the gitfeed API server using Granian.

    Reads ``GITFEED_HOST``, ``GITFEED_PORT``, and ``GITFEED_LOG_LEVEL`` from
    the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("GITFEED_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port_str = os.environ.get("GITFEED_PORT", "8000")
    port = _parse_port(port_str)
    log_level_str = os.environ.get("GITFEED_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid GITFEED_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting gitfeed API on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "gitfeed.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
