"""Resources for reading, writing and pruning stored posts.

Routes
------
``POST /api/v1/post``
    Filter a batch of raw Jetstream events and write the matches.
``GET /api/v1/post/{did}``
    Return the newest post written by an actor.
``DELETE /api/v1/post/{post_id}``
    Delete one post by surrogate id.
``GET /api/v1/posts``
    Return recent posts, newest first.
``DELETE /api/v1/posts``
    Prune the table to the retention limit.
``GET /api/v1/timestamp``
    Return the newest stored ``time_us`` in milliseconds.

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon

from gitfeed.api.errors import InvalidInputError
from gitfeed.common.time import micros_to_millis
from gitfeed.jetstream.config import DEFAULT_MATCH_PATTERN, DEFAULT_RETENTION_LIMIT
from gitfeed.jetstream.errors import DecodeError
from gitfeed.jetstream.filters import accept
from gitfeed.jetstream.models import decode_batch
from gitfeed.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from gitfeed.posts.models import StoredPost
    from gitfeed.posts.repository import PostRepository

__all__ = [
    "PostCollectionResource",
    "PostResource",
    "PostResourceDependencies",
    "PostsResource",
    "TimestampResource",
]

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class PostResourceDependencies:
    """Collaborators shared by the post resources.

    Attributes
    ----------
    repository
        Store holding matched posts.
    retention_limit
        Default scan size and the limit applied by ``DELETE /api/v1/posts``.
    pattern
        Match pattern applied to events posted in bulk.

    """

    repository: PostRepository
    retention_limit: int = DEFAULT_RETENTION_LIMIT
    pattern: str = DEFAULT_MATCH_PATTERN


def serialize_post(post: StoredPost) -> dict[str, typ.Any]:
    """Serialize a stored post to a JSON-compatible dict."""
    return {
        "id": post.id,
        "did": post.did,
        "time_us": post.time_us,
        "kind": post.kind,
        "commit_rev": post.rev,
        "commit_operation": post.operation,
        "commit_collection": post.collection,
        "commit_rkey": post.rkey,
        "commit_cid": post.cid,
        "record_type": post.record_type,
        "record_created_at": post.created_at.isoformat(),
        "record_langs": post.lang,
        "record_text": post.text,
        "record_uri": post.uri,
    }


class PostCollectionResource:
    """``POST /api/v1/post``: bulk write of raw Jetstream events."""

    def __init__(self, dependencies: PostResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._repository = dependencies.repository
        self._pattern = dependencies.pattern

    async def on_post(self, req: Request, resp: Response) -> None:
        """Filter the posted events and write every match.

        Parameters
        ----------
        req
            Falcon request whose body is ``{"posts": [event, ...]}``.
        resp
            Falcon response populated with received and written counts.

        Raises
        ------
        InvalidInputError
            If the body is not a valid event batch.

        """
        body = await req.bounded_stream.read()
        try:
            batch = decode_batch(body)
        except DecodeError as exc:
            raise InvalidInputError(str(exc), field="posts") from exc

        written = 0
        for event in batch.posts:
            post = accept(event, self._pattern)
            if post is None:
                continue
            await self._repository.write(post)
            written += 1

        log_info(
            logger, "Bulk write received %d events, wrote %d", len(batch.posts), written
        )
        resp.media = {"received": len(batch.posts), "written": written}
        resp.status = falcon.HTTP_200


def _parse_post_id(raw: str) -> int:
    try:
        post_id = int(raw)
    except ValueError as exc:
        msg = f"must be an integer post id, got {raw!r}"
        raise InvalidInputError(msg, field="post_id") from exc
    if post_id < 1:
        msg = f"must be a positive integer post id, got {post_id}"
        raise InvalidInputError(msg, field="post_id")
    return post_id


class PostResource:
    """Point operations on a single post.

    ``GET`` addresses a post by its author's DID, ``DELETE`` by surrogate id.
    DIDs always carry a ``did:`` scheme, so the two never collide.
    """

    def __init__(self, dependencies: PostResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._repository = dependencies.repository

    async def on_get(self, _req: Request, resp: Response, *, post_ref: str) -> None:
        """Return the newest post written by the DID ``post_ref``."""
        post = await self._repository.get(post_ref)
        resp.media = serialize_post(post)
        resp.status = falcon.HTTP_200

    async def on_delete(self, _req: Request, resp: Response, *, post_ref: str) -> None:
        """Delete the post whose surrogate id is ``post_ref``."""
        post_id = _parse_post_id(post_ref)
        await self._repository.delete(post_id)
        log_info(logger, "Deleted post id=%d", post_id)
        resp.status = falcon.HTTP_204


class PostsResource:
    """Scans and retention over the whole table."""

    def __init__(self, dependencies: PostResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._repository = dependencies.repository
        self._retention_limit = dependencies.retention_limit

    async def on_get(self, req: Request, resp: Response) -> None:
        """Return up to ``limit`` distinct posts, newest first.

        ``limit`` defaults to the retention limit. An empty table yields 404.
        """
        limit = req.get_param_as_int("limit", default=self._retention_limit)
        if limit is None or limit < 1:
            msg = f"must be a positive integer, got {limit}"
            raise InvalidInputError(msg, field="limit")
        posts = await self._repository.list_recent(limit)
        resp.media = {"posts": [serialize_post(post) for post in posts]}
        resp.status = falcon.HTTP_200

    async def on_delete(self, _req: Request, resp: Response) -> None:
        """Prune the table to the retention limit."""
        removed = await self._repository.prune(self._retention_limit)
        resp.media = {"removed": removed, "limit": self._retention_limit}
        resp.status = falcon.HTTP_200


class TimestampResource:
    """``GET /api/v1/timestamp``: cursor of the newest stored post."""

    def __init__(self, dependencies: PostResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._repository = dependencies.repository

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Return the newest ``time_us`` converted to epoch milliseconds."""
        latest = await self._repository.latest_timestamp()
        resp.media = {"timestamp": micros_to_millis(latest)}
        resp.status = falcon.HTTP_200
