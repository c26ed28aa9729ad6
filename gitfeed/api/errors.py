"""API exceptions and Falcon error handlers.

Storage and GitHub errors raised inside resources are translated to HTTP
responses here so resources only deal with the success path.

Usage
-----
Register every handler on the Falcon app::

    from gitfeed.api.errors import register_error_handlers

    register_error_handlers(app)

"""

from __future__ import annotations

import typing as typ

import falcon

from gitfeed.github.errors import GitHubAPIError, GitHubTransportError
from gitfeed.logging import get_logger, log_error, log_warning
from gitfeed.posts.errors import (
    InvalidLimitError,
    PostNotFoundError,
    QueryError,
    WriteError,
)

if typ.TYPE_CHECKING:
    import falcon.asgi
    from falcon.asgi import Request, Response

__all__ = [
    "InvalidInputError",
    "handle_github_api_error",
    "handle_github_transport_error",
    "handle_invalid_input",
    "handle_invalid_limit",
    "handle_post_not_found",
    "handle_storage_failure",
    "register_error_handlers",
]

logger = get_logger(__name__)


class InvalidInputError(Exception):
    """Raised for client validation errors that should map to HTTP 400.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Optional name of the input field that failed validation.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialize with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)


async def handle_post_not_found(
    _req: Request,
    resp: Response,
    ex: PostNotFoundError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``PostNotFoundError`` to an HTTP 404 JSON response."""
    resp.status = falcon.HTTP_404
    resp.media = {"title": "Post not found", "description": str(ex)}


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to an HTTP 400 JSON response.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and media are set.
    ex
        The validation exception containing reason and optional field.
    _params
        URI template parameters (unused).

    """
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {
        "title": "Invalid input",
        "description": ex.reason,
    }
    if ex.field is not None:
        media["field"] = ex.field
    resp.media = media


async def handle_invalid_limit(
    _req: Request,
    resp: Response,
    ex: InvalidLimitError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidLimitError`` to an HTTP 400 JSON response."""
    resp.status = falcon.HTTP_400
    resp.media = {"title": "Invalid input", "description": str(ex), "field": "limit"}


async def handle_storage_failure(
    req: Request,
    resp: Response,
    ex: QueryError | WriteError,
    _params: dict[str, typ.Any],
) -> None:
    """Log a store failure and map it to an HTTP 500 JSON response."""
    log_error(
        logger,
        "Store failure on %s %s: %s (cause: %s)",
        req.method,
        req.path,
        ex,
        ex.__cause__,
    )
    resp.status = falcon.HTTP_500
    resp.media = {"title": "Storage error", "description": str(ex)}


async def handle_github_api_error(
    _req: Request,
    resp: Response,
    ex: GitHubAPIError,
    _params: dict[str, typ.Any],
) -> None:
    """Mirror GitHub's own status code back to the caller."""
    log_warning(logger, "GitHub lookup failed: %s", ex)
    resp.status = ex.status_code
    resp.media = {"title": "GitHub error", "description": str(ex)}


async def handle_github_transport_error(
    _req: Request,
    resp: Response,
    ex: GitHubTransportError,
    _params: dict[str, typ.Any],
) -> None:
    """Map an unreachable or unreadable GitHub response to HTTP 502."""
    log_error(logger, "GitHub request failed: %s", ex)
    resp.status = falcon.HTTP_502
    resp.media = {"title": "Bad gateway", "description": str(ex)}


def register_error_handlers(app: falcon.asgi.App) -> None:
    """Attach every gitfeed error handler to ``app``."""
    app.add_error_handler(PostNotFoundError, handle_post_not_found)
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(InvalidLimitError, handle_invalid_limit)
    app.add_error_handler(QueryError, handle_storage_failure)
    app.add_error_handler(WriteError, handle_storage_failure)
    app.add_error_handler(GitHubAPIError, handle_github_api_error)
    app.add_error_handler(GitHubTransportError, handle_github_transport_error)
