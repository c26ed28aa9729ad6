"""``GET /api/v1/github/{owner}/{repository}``: GitHub metadata passthrough."""

from __future__ import annotations

import typing as typ

import falcon

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from gitfeed.github.client import GitHubRepoClient

__all__ = ["GitHubRepositoryResource"]


class GitHubRepositoryResource:
    """Return GitHub's JSON for a repository unchanged.

    Non-2xx answers from GitHub surface as :class:`GitHubAPIError` and are
    mirrored by the error handler; unreachable upstreams become 502.
    """

    def __init__(self, client: GitHubRepoClient) -> None:
        """Bind the resource to a GitHub client."""
        self._client = client

    async def on_get(
        self,
        _req: Request,
        resp: Response,
        *,
        owner: str,
        repository: str,
    ) -> None:
        """Fetch ``owner/repository`` from GitHub."""
        resp.media = await self._client.fetch_repository(owner, repository)
        resp.status = falcon.HTTP_200
