"""Application factory for the gitfeed Falcon ASGI application.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app with the posts and GitHub endpoints::

    from gitfeed.api.app import AppDependencies, create_app

    deps = AppDependencies(repository=repository, github_client=client)
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from gitfeed.api.errors import register_error_handlers
from gitfeed.api.health.resources import HealthResource, ReadyResource
from gitfeed.jetstream.config import DEFAULT_MATCH_PATTERN, DEFAULT_RETENTION_LIMIT

if typ.TYPE_CHECKING:
    from gitfeed.github.client import GitHubRepoClient
    from gitfeed.posts.repository import PostRepository

__all__ = ["API_PREFIX", "AppDependencies", "create_app"]

API_PREFIX = "/api/v1"


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    repository
        Posts store; enables the ``/api/v1/post*`` and timestamp routes.
    github_client
        GitHub client; enables the ``/api/v1/github`` route.
    retention_limit
        Default scan size and prune limit.
    pattern
        Match pattern applied to bulk writes.

    """

    repository: PostRepository | None = None
    github_client: GitHubRepoClient | None = None
    retention_limit: int = DEFAULT_RETENTION_LIMIT
    pattern: str = DEFAULT_MATCH_PATTERN


def _add_post_routes(app: falcon.asgi.App, deps: AppDependencies) -> None:
    from gitfeed.api.posts.resources import (
        PostCollectionResource,
        PostResource,
        PostResourceDependencies,
        PostsResource,
        TimestampResource,
    )

    repository = typ.cast("PostRepository", deps.repository)
    resource_deps = PostResourceDependencies(
        repository=repository,
        retention_limit=deps.retention_limit,
        pattern=deps.pattern,
    )
    app.add_route(f"{API_PREFIX}/post", PostCollectionResource(resource_deps))
    app.add_route(f"{API_PREFIX}/post/{{post_ref}}", PostResource(resource_deps))
    app.add_route(f"{API_PREFIX}/posts", PostsResource(resource_deps))
    app.add_route(f"{API_PREFIX}/timestamp", TimestampResource(resource_deps))


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    ``/health`` and ``/ready`` are always registered. Post routes need a
    repository and the GitHub route needs a client.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None``, only health
        endpoints are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    middleware: list[object] = []
    if dependencies is not None and (
        dependencies.repository is not None or dependencies.github_client is not None
    ):
        from gitfeed.api.middleware import StoreLifecycle

        middleware.append(
            StoreLifecycle(
                dependencies.repository, github_client=dependencies.github_client
            )
        )

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource())

    if dependencies is not None and dependencies.repository is not None:
        _add_post_routes(app, dependencies)

    if dependencies is not None and dependencies.github_client is not None:
        from gitfeed.api.github.resources import GitHubRepositoryResource

        app.add_route(
            f"{API_PREFIX}/github/{{owner}}/{{repository}}",
            GitHubRepositoryResource(dependencies.github_client),
        )

    register_error_handlers(app)
    return app
