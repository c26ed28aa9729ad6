"""End-to-end tests for the post resources over a real SQLite store."""

from __future__ import annotations

import asyncio
import typing as typ

import falcon
import falcon.testing
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from gitfeed.api.app import AppDependencies, create_app
from gitfeed.jetstream.filters import accept
from gitfeed.posts import PostRepository
from tests.helpers.jetstream_events import (
    FIXTURE_DID,
    FIXTURE_LINK,
    FIXTURE_TIME_US,
    event,
    github_post_payload,
    post_payload,
)

if typ.TYPE_CHECKING:
    from gitfeed.posts import StoredPost


@pytest.fixture
def api_repository(database_url: str) -> typ.Iterator[PostRepository]:
    """Yield a repository whose engine opens a connection per session.

    Falcon's test client drives each request on its own event loop, so
    pooled connections must not outlive a request.
    """
    engine = create_async_engine(database_url, poolclass=NullPool)
    repository = PostRepository(async_sessionmaker(engine, expire_on_commit=False))
    asyncio.run(repository.ensure_schema())
    yield repository
    asyncio.run(engine.dispose())


@pytest.fixture
def client(api_repository: PostRepository) -> falcon.testing.TestClient:
    """Build a test client with a retention limit of three."""
    deps = AppDependencies(repository=api_repository, retention_limit=3)
    return falcon.testing.TestClient(create_app(deps))


def _seed(
    repository: PostRepository, *payloads: dict[str, typ.Any]
) -> list[StoredPost]:
    async def _write_all() -> list[StoredPost]:
        stored: list[StoredPost] = []
        for payload in payloads:
            post = accept(event(payload))
            assert post is not None, "seed payloads must match the filter"
            stored.append(await repository.write(post))
        return stored

    return asyncio.run(_write_all())


def _matching(time_us: int, did: str = FIXTURE_DID) -> dict[str, typ.Any]:
    return post_payload(
        text=f"github.com/repo{time_us}",
        links=[f"https://github.com/repo{time_us}"],
        did=did,
        time_us=time_us,
    )


class TestBulkWrite:
    """Tests for POST /api/v1/post."""

    def test_writes_matching_events(
        self, client: falcon.testing.TestClient, api_repository: PostRepository
    ) -> None:
        """Only events passing the filter are written."""
        body = {
            "posts": [
                github_post_payload(),
                post_payload(text="github.com", links=["https://example.com"]),
                post_payload(text="unrelated"),
            ]
        }

        result = client.simulate_post("/api/v1/post", json=body)

        assert result.status == falcon.HTTP_200
        assert result.json == {"received": 3, "written": 1}
        assert asyncio.run(api_repository.count()) == 1

    @pytest.mark.parametrize(
        "body",
        [b"not json", b'{"posts": "nope"}', b'{"posts": [{"time_us": 1}]}'],
    )
    def test_malformed_body_is_rejected(
        self, client: falcon.testing.TestClient, body: bytes
    ) -> None:
        """Bodies that are not event batches yield 400."""
        result = client.simulate_post(
            "/api/v1/post",
            body=body,
            headers={"Content-Type": "application/json"},
        )

        assert result.status == falcon.HTTP_400
        assert result.json["field"] == "posts"


class TestGetPost:
    """Tests for GET /api/v1/post/{did}."""

    def test_returns_stored_post(
        self, client: falcon.testing.TestClient, api_repository: PostRepository
    ) -> None:
        """The newest post for the actor is serialised."""
        (stored,) = _seed(api_repository, github_post_payload())

        result = client.simulate_get(f"/api/v1/post/{FIXTURE_DID}")

        assert result.status == falcon.HTTP_200
        assert result.json["id"] == stored.id
        assert result.json["did"] == FIXTURE_DID
        assert result.json["time_us"] == FIXTURE_TIME_US
        assert result.json["record_uri"] == FIXTURE_LINK
        assert result.json["record_langs"] == "en"
        assert result.json["record_created_at"] == "2024-12-20T15:45:00+00:00"

    def test_missing_post_is_404(self, client: falcon.testing.TestClient) -> None:
        """Unknown actors yield 404."""
        result = client.simulate_get("/api/v1/post/did:plc:nobody")

        assert result.status == falcon.HTTP_404
        assert "did:plc:nobody" in result.json["description"]


class TestDeletePost:
    """Tests for DELETE /api/v1/post/{post_id}."""

    def test_deletes_by_id(
        self, client: falcon.testing.TestClient, api_repository: PostRepository
    ) -> None:
        """The addressed row is removed."""
        (stored,) = _seed(api_repository, github_post_payload())

        result = client.simulate_delete(f"/api/v1/post/{stored.id}")

        assert result.status == falcon.HTTP_204
        assert asyncio.run(api_repository.count()) == 0

    def test_non_integer_id_is_400(self, client: falcon.testing.TestClient) -> None:
        """Ids must be integers."""
        result = client.simulate_delete("/api/v1/post/did:plc:abc")

        assert result.status == falcon.HTTP_400
        assert result.json["field"] == "post_id"


class TestListPosts:
    """Tests for GET and DELETE /api/v1/posts."""

    def test_empty_table_is_404(self, client: falcon.testing.TestClient) -> None:
        """No posts yields 404."""
        assert client.simulate_get("/api/v1/posts").status == falcon.HTTP_404

    def test_defaults_to_retention_limit(
        self, client: falcon.testing.TestClient, api_repository: PostRepository
    ) -> None:
        """Without ``limit`` the retention limit bounds the scan."""
        _seed(api_repository, *(_matching(t) for t in range(1, 6)))

        result = client.simulate_get("/api/v1/posts")

        assert result.status == falcon.HTTP_200
        assert [post["time_us"] for post in result.json["posts"]] == [5, 4, 3]

    def test_explicit_limit(
        self, client: falcon.testing.TestClient, api_repository: PostRepository
    ) -> None:
        """``limit`` overrides the default scan size."""
        _seed(api_repository, *(_matching(t) for t in range(1, 6)))

        result = client.simulate_get("/api/v1/posts", params={"limit": "5"})

        assert len(result.json["posts"]) == 5

    @pytest.mark.parametrize("limit", ["0", "-2", "many"])
    def test_invalid_limit_is_400(
        self, client: falcon.testing.TestClient, limit: str
    ) -> None:
        """Non-positive or non-numeric limits are rejected."""
        result = client.simulate_get("/api/v1/posts", params={"limit": limit})

        assert result.status == falcon.HTTP_400

    def test_prune_keeps_retention_limit(
        self, client: falcon.testing.TestClient, api_repository: PostRepository
    ) -> None:
        """DELETE prunes to the newest retention-limit posts."""
        _seed(api_repository, *(_matching(t) for t in range(1, 6)))

        result = client.simulate_delete("/api/v1/posts")

        assert result.status == falcon.HTTP_200
        assert result.json == {"removed": 2, "limit": 3}
        assert asyncio.run(api_repository.count()) == 3


class TestTimestamp:
    """Tests for GET /api/v1/timestamp."""

    def test_returns_latest_in_milliseconds(
        self, client: falcon.testing.TestClient, api_repository: PostRepository
    ) -> None:
        """The newest cursor is reported in milliseconds."""
        _seed(
            api_repository, _matching(1703088300000999), _matching(1703088200000000)
        )

        result = client.simulate_get("/api/v1/timestamp")

        assert result.status == falcon.HTTP_200
        assert result.json == {"timestamp": 1703088300000}

    def test_empty_table_is_404(self, client: falcon.testing.TestClient) -> None:
        """No posts means no timestamp."""
        assert client.simulate_get("/api/v1/timestamp").status == falcon.HTTP_404
