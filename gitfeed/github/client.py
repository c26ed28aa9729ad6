"""Thin async client for GitHub's repository metadata endpoint."""

from __future__ import annotations

import dataclasses
import os
import typing as typ

import httpx

from .errors import GitHubAPIError, GitHubTransportError

_HTTP_ERROR_STATUS_THRESHOLD = 300


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubClientConfig:
    """Configuration for the GitHub REST client.

    ``token`` is optional; unauthenticated requests work but are rate
    limited more aggressively by GitHub.
    """

    api_url: str = "https://api.github.com"
    token: str | None = None
    timeout_s: float = 10.0
    user_agent: str = "gitfeed/0.1"

    @classmethod
    def from_env(cls) -> GitHubClientConfig:
        """Build configuration from ``GITFEED_GITHUB_*`` env vars."""
        defaults = cls()
        token = os.environ.get("GITFEED_GITHUB_TOKEN", "").strip()
        api_url = os.environ.get("GITFEED_GITHUB_API_URL", "").strip()
        return cls(api_url=api_url or defaults.api_url, token=token or None)

    def headers(self) -> dict[str, str]:
        """Return the default request headers."""
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/vnd.github+json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers


class GitHubRepoClient:
    """Fetch repository metadata from ``GET /repos/{owner}/{name}``."""

    def __init__(
        self,
        config: GitHubClientConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client, creating an HTTP client unless one is given."""
        self._config = config or GitHubClientConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=self._config.api_url,
            timeout=self._config.timeout_s,
            headers=self._config.headers(),
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch_repository(self, owner: str, name: str) -> dict[str, typ.Any]:
        """Return GitHub's JSON description of ``owner/name``.

        Raises
        ------
        GitHubAPIError
            If GitHub answers with a non-2xx status.
        GitHubTransportError
            If the request fails or the body is not a JSON object.

        """
        path = f"/repos/{owner}/{name}"
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as exc:
            raise GitHubTransportError.unreachable(path, str(exc)) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise GitHubAPIError.http_error(response.status_code, path)
        try:
            payload = response.json()
        except ValueError as exc:
            raise GitHubTransportError.invalid_body(path) from exc
        if not isinstance(payload, dict):
            raise GitHubTransportError.invalid_body(path)
        return payload
