"""Shared fixtures for BDD feature tests."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from pytest_bdd import parsers, then
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from gitfeed.posts import PostRepository


@pytest.fixture
def feature_repository(database_url: str) -> typ.Iterator[PostRepository]:
    """Yield an initialised repository usable from any event loop.

    Steps drive each coroutine with ``asyncio.run``, so connections must not
    be pooled across loops.
    """
    engine = create_async_engine(database_url, poolclass=NullPool)
    repository = PostRepository(async_sessionmaker(engine, expire_on_commit=False))
    asyncio.run(repository.ensure_schema())
    yield repository
    asyncio.run(engine.dispose())


@then(parsers.re(r"the store holds (?P<count>\d+) posts?"))
def store_holds(feature_repository: PostRepository, count: str) -> None:
    """Assert the number of stored posts."""
    assert asyncio.run(feature_repository.count()) == int(count)
