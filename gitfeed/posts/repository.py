"""Repository serialising every read and write against the ``posts`` table.

The ingestion worker, the retention pruner and API requests all share one
:class:`PostRepository`. Each operation holds the repository lock for its
full duration, so a scan can never observe a half-applied write or prune.
"""

from __future__ import annotations

import asyncio
import logging
import typing as typ

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from gitfeed.posts.errors import (
    InvalidLimitError,
    PostNotFoundError,
    QueryError,
    SchemaError,
    WriteError,
)
from gitfeed.posts.models import StoredPost
from gitfeed.posts.storage import POSTS_TABLE, Base, PostRow

if typ.TYPE_CHECKING:
    from sqlalchemy import Row
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from sqlalchemy.orm import Session

    SessionFactory: typ.TypeAlias = async_sessionmaker[AsyncSession]

logger = logging.getLogger(__name__)

# Columns that make two rows the "same" post for recency scans.
_CONTENT_COLUMNS = (
    PostRow.did,
    PostRow.time_us,
    PostRow.kind,
    PostRow.rev,
    PostRow.operation,
    PostRow.collection,
    PostRow.rkey,
    PostRow.cid,
    PostRow.record_type,
    PostRow.created_at,
    PostRow.lang,
    PostRow.text,
    PostRow.uri,
)


def _to_row(post: StoredPost) -> PostRow:
    return PostRow(
        did=post.did,
        time_us=post.time_us,
        kind=post.kind,
        rev=post.rev,
        operation=post.operation,
        collection=post.collection,
        rkey=post.rkey,
        cid=post.cid,
        record_type=post.record_type,
        created_at=post.created_at,
        lang=post.lang,
        text=post.text,
        uri=post.uri,
    )


def _to_post(row: PostRow | Row[typ.Any]) -> StoredPost:
    return StoredPost(
        id=row.id,
        did=row.did,
        time_us=row.time_us,
        kind=row.kind,
        rev=row.rev,
        operation=row.operation,
        collection=row.collection,
        rkey=row.rkey,
        cid=row.cid,
        record_type=row.record_type,
        created_at=row.created_at,
        lang=row.lang,
        text=row.text,
        uri=row.uri,
    )


def _require_positive(limit: int) -> None:
    if limit < 1:
        raise InvalidLimitError(limit)


def _create_schema(session: Session) -> None:
    Base.metadata.create_all(bind=session.connection())


class PostRepository:
    """Concurrency-safe access to matched posts."""

    def __init__(self, session_factory: SessionFactory) -> None:
        """Bind the repository to a session factory and create its lock."""
        self._session_factory = session_factory
        self._lock = asyncio.Lock()

    async def ensure_schema(self) -> None:
        """Create the ``posts`` table and time index if absent.

        Safe to call on every start-up.

        Raises
        ------
        SchemaError
            If the database rejects the DDL.

        """
        async with self._lock:
            try:
                async with self._session_factory() as session:
                    await session.run_sync(_create_schema)
                    await session.commit()
            except SQLAlchemyError as exc:
                raise SchemaError.for_table(POSTS_TABLE) from exc

    async def write(self, post: StoredPost) -> StoredPost:
        """Insert one post and return it with its surrogate id.

        Raises
        ------
        WriteError
            On constraint violations or other database errors.

        """
        async with self._lock:
            try:
                async with self._session_factory() as session:
                    row = _to_row(post)
                    session.add(row)
                    await session.commit()
                    await session.refresh(row)
                    stored = _to_post(row)
            except SQLAlchemyError as exc:
                logger.debug("rejected post %r", post)
                raise WriteError.for_insert(post.did, post.time_us) from exc
        logger.debug("wrote post did=%s id=%s", stored.did, stored.id)
        return stored

    async def get(self, did: str) -> StoredPost:
        """Return the most recent post written by ``did``.

        Raises
        ------
        PostNotFoundError
            If the actor has no stored posts.
        QueryError
            On database errors.

        """
        stmt = (
            select(PostRow)
            .where(PostRow.did == did)
            .order_by(PostRow.time_us.desc(), PostRow.id.desc())
            .limit(1)
        )
        async with self._lock:
            try:
                async with self._session_factory() as session:
                    row = await session.scalar(stmt)
            except SQLAlchemyError as exc:
                raise QueryError.for_operation("get") from exc
        if row is None:
            raise PostNotFoundError.for_did(did)
        return _to_post(row)

    async def list_recent(self, limit: int) -> list[StoredPost]:
        """Return up to ``limit`` distinct posts, newest ``time_us`` first.

        Rows with identical content collapse to the one with the lowest id.

        Raises
        ------
        PostNotFoundError
            If the table is empty. An empty table is an error, not an empty
            result.
        QueryError
            On database errors.

        """
        _require_positive(limit)
        stmt = (
            select(func.min(PostRow.id).label("id"), *_CONTENT_COLUMNS)
            .group_by(*_CONTENT_COLUMNS)
            .order_by(PostRow.time_us.desc(), func.min(PostRow.id).desc())
            .limit(limit)
        )
        async with self._lock:
            try:
                async with self._session_factory() as session:
                    rows = (await session.execute(stmt)).all()
            except SQLAlchemyError as exc:
                raise QueryError.for_operation("list_recent") from exc
        if not rows:
            raise PostNotFoundError.empty()
        return [_to_post(row) for row in rows]

    async def delete(self, post_id: int) -> None:
        """Delete the post with surrogate id ``post_id``.

        Deleting an id that does not exist is a no-op and is not reported.

        Raises
        ------
        WriteError
            On database errors.

        """
        stmt = delete(PostRow).where(PostRow.id == post_id)
        async with self._lock:
            try:
                async with self._session_factory() as session:
                    await session.execute(
                        stmt, execution_options={"synchronize_session": False}
                    )
                    await session.commit()
            except SQLAlchemyError as exc:
                raise WriteError.for_delete(f"post id={post_id}") from exc

    async def prune(self, limit: int) -> int:
        """Delete every post outside the ``limit`` newest ``(did, time_us)`` pairs.

        Idempotent. Returns the number of rows removed.

        Raises
        ------
        WriteError
            On database errors.

        """
        _require_positive(limit)
        recent = (
            select(PostRow.did, PostRow.time_us)
            .distinct()
            .order_by(PostRow.time_us.desc())
            .limit(limit)
            .subquery("recent")
        )
        keep = (
            select(recent.c.did)
            .where(recent.c.did == PostRow.did, recent.c.time_us == PostRow.time_us)
            .correlate(PostRow)
            .exists()
        )
        stmt = delete(PostRow).where(~keep)
        async with self._lock:
            try:
                async with self._session_factory() as session:
                    result = await session.execute(
                        stmt, execution_options={"synchronize_session": False}
                    )
                    await session.commit()
            except SQLAlchemyError as exc:
                raise WriteError.for_delete(f"posts beyond newest {limit}") from exc
        removed = typ.cast("int", getattr(result, "rowcount", 0) or 0)
        logger.info("pruned %d posts, keeping newest %d", removed, limit)
        return removed

    async def latest_timestamp(self) -> int:
        """Return the largest ``time_us`` currently stored.

        Raises
        ------
        PostNotFoundError
            If the table is empty.
        QueryError
            On database errors.

        """
        async with self._lock:
            try:
                async with self._session_factory() as session:
                    latest = await session.scalar(select(func.max(PostRow.time_us)))
            except SQLAlchemyError as exc:
                raise QueryError.for_operation("latest_timestamp") from exc
        if latest is None:
            raise PostNotFoundError.empty()
        return int(latest)

    async def count(self) -> int:
        """Return the total number of stored rows."""
        async with self._lock:
            try:
                async with self._session_factory() as session:
                    total = await session.scalar(
                        select(func.count()).select_from(PostRow)
                    )
            except SQLAlchemyError as exc:
                raise QueryError.for_operation("count") from exc
        return int(total or 0)
