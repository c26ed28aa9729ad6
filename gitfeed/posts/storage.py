"""Persistence model and engine setup for the ``posts`` table."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import BigInteger, DateTime, Index, String, Text, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from gitfeed.common.time import as_utc
from gitfeed.posts.errors import SchemaError

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine

POSTS_TABLE = "posts"
SQLITE_BUSY_TIMEOUT_MS = 5000


class Base(DeclarativeBase):
    """Base declarative class for gitfeed models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite.

    Jetstream ``createdAt`` values occasionally omit an offset; those are
    taken to be UTC rather than rejected.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        return None if value is None else as_utc(value)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        return None if value is None else as_utc(value)


class PostRow(Base):
    """One matched post. Rows are immutable once written."""

    __tablename__ = POSTS_TABLE
    __table_args__ = (Index("ix_posts_time_us", "time_us"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    did: Mapped[str] = mapped_column(String(255))
    time_us: Mapped[int] = mapped_column(BigInteger)
    kind: Mapped[str] = mapped_column(String(32))
    rev: Mapped[str | None] = mapped_column("commit_rev", String(64), default=None)
    operation: Mapped[str] = mapped_column("commit_operation", String(16))
    collection: Mapped[str] = mapped_column("commit_collection", String(128))
    rkey: Mapped[str] = mapped_column("commit_rkey", String(64))
    cid: Mapped[str] = mapped_column("commit_cid", String(128))
    record_type: Mapped[str] = mapped_column(String(128))
    created_at: Mapped[dt.datetime] = mapped_column(
        "record_created_at", UTCDateTime()
    )
    lang: Mapped[str | None] = mapped_column(
        "record_langs", String(32), default=None
    )
    text: Mapped[str] = mapped_column("record_text", Text())
    uri: Mapped[str] = mapped_column("record_uri", Text())


def _set_sqlite_pragmas(dbapi_connection: typ.Any, _record: object) -> None:  # noqa: ANN401
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS}")
    finally:
        cursor.close()


def create_post_engine(database_url: str) -> AsyncEngine:
    """Create an async engine, enabling WAL and a busy timeout on SQLite."""
    engine = create_async_engine(database_url)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)
    return engine


async def init_post_storage(engine: AsyncEngine) -> None:
    """Create the ``posts`` table and its time index if they are absent.

    Raises
    ------
    SchemaError
        If the database rejects the DDL.

    """
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except SQLAlchemyError as exc:
        raise SchemaError.for_table(POSTS_TABLE) from exc
