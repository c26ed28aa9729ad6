"""Health probe resources for liveness and readiness checks.

These resources are stateless and never touch the posts store, so they are
registered even when the API runs without a database.
"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe resource returning ``{"status": "ready"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests."""
        resp.media = {"status": "ready"}
        resp.status = HTTPStatus.OK
