"""ASGI lifespan middleware for the gitfeed API.

Creates the ``posts`` table when the server starts, so a fresh database
answers 404 instead of failing queries, and closes the GitHub client on
shutdown.

Usage
-----
Register the middleware when creating the Falcon app::

    lifecycle = StoreLifecycle(repository, github_client=client)
    app = falcon.asgi.App(middleware=[lifecycle])

"""

from __future__ import annotations

import typing as typ

from gitfeed.logging import get_logger, log_exception, log_info
from gitfeed.posts.errors import SchemaError

if typ.TYPE_CHECKING:
    from gitfeed.github.client import GitHubRepoClient
    from gitfeed.posts.repository import PostRepository

__all__ = ["StoreLifecycle"]

logger = get_logger(__name__)


class StoreLifecycle:
    """Falcon middleware hooking store setup and teardown into the lifespan.

    Parameters
    ----------
    repository
        Posts store whose schema is ensured at startup.
    github_client
        Optional GitHub client closed at shutdown.

    """

    def __init__(
        self,
        repository: PostRepository | None,
        *,
        github_client: GitHubRepoClient | None = None,
    ) -> None:
        """Initialize the middleware with the collaborators it manages."""
        self._repository = repository
        self._github_client = github_client

    async def process_startup(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Create the ``posts`` table if it is absent.

        A :class:`SchemaError` propagates and fails the server's startup.
        """
        if self._repository is None:
            return
        try:
            await self._repository.ensure_schema()
        except SchemaError as exc:
            log_exception(logger, "Failed to create posts table at startup", exc)
            raise
        log_info(logger, "Posts table ready")

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Release the GitHub client's connection pool."""
        if self._github_client is not None:
            await self._github_client.aclose()
