"""GitHub REST client used by the repository lookup endpoint."""

from __future__ import annotations

from .client import GitHubClientConfig, GitHubRepoClient
from .errors import GitHubAPIError, GitHubTransportError

__all__ = [
    "GitHubAPIError",
    "GitHubClientConfig",
    "GitHubRepoClient",
    "GitHubTransportError",
]
