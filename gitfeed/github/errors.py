"""GitHub client errors."""

from __future__ import annotations


class GitHubAPIError(RuntimeError):
    """Raised when GitHub returns a non-2xx response."""

    def __init__(self, message: str, *, status_code: int) -> None:
        """Initialise with a message and the upstream HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int, path: str) -> GitHubAPIError:
        """Return an error for a non-2xx HTTP response."""
        return cls(f"GitHub HTTP {status_code} for {path}", status_code=status_code)


class GitHubTransportError(RuntimeError):
    """Raised when GitHub cannot be reached or the response cannot be read."""

    @classmethod
    def unreachable(cls, path: str, detail: str) -> GitHubTransportError:
        """Return an error for a failed request."""
        return cls(f"GitHub request for {path} failed: {detail}")

    @classmethod
    def invalid_body(cls, path: str) -> GitHubTransportError:
        """Return an error for a 2xx response whose body is not a JSON object."""
        return cls(f"GitHub response for {path} is not a JSON object")
