"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from gitfeed.posts import PostRepository, create_post_engine, init_post_storage

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Return a SQLite URL in a per-test temporary directory."""
    return f"sqlite+aiosqlite:///{tmp_path / 'gitfeed_test.db'}"


@pytest_asyncio.fixture
async def post_engine(database_url: str) -> typ.AsyncIterator[AsyncEngine]:
    """Yield an engine whose ``posts`` table already exists."""
    engine = create_post_engine(database_url)
    try:
        await init_post_storage(engine)
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(post_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return a session factory bound to the test engine."""
    return async_sessionmaker(post_engine, expire_on_commit=False)


@pytest.fixture
def repository(session_factory: async_sessionmaker[AsyncSession]) -> PostRepository:
    """Return a repository over the test database."""
    return PostRepository(session_factory)
