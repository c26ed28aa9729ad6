"""Tests for the ingest process entrypoint."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

import gitfeed.jetstream.cli as cli
from gitfeed.jetstream.config import FeedConfig, StreamConfig
from gitfeed.posts import PostRepository, create_post_engine
from tests.helpers.jetstream_events import (
    FakeTransport,
    ScriptedDialer,
    encode,
    github_post_payload,
    post_payload,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

_STREAM = StreamConfig(
    url="ws://jetstream.test/subscribe", reconnect_delay=0.0, keepalive=30.0
)


async def _stored_uris(database_url: str) -> list[str]:
    engine = create_post_engine(database_url)
    try:
        repository = PostRepository(async_sessionmaker(engine))
        return [post.uri for post in await repository.list_recent(100)]
    finally:
        await engine.dispose()


class TestRunIngest:
    """Tests for run_ingest."""

    @pytest.mark.asyncio
    async def test_stores_matches_and_stops_cleanly(self, database_url: str) -> None:
        """Matching posts are stored and a stop request exits with 0."""
        stop = asyncio.Event()
        transport = FakeTransport(
            [
                encode(github_post_payload()),
                encode(post_payload(text="no match here", time_us=2)),
            ],
            drained=stop,
        )
        feed = FeedConfig(database_url=database_url, prune_interval=60.0)

        code = await asyncio.wait_for(
            cli.run_ingest(
                feed, _STREAM, dialer=ScriptedDialer([transport]), stop_event=stop
            ),
            timeout=5.0,
        )

        assert code == 0
        assert transport.closed
        assert await _stored_uris(database_url) == [
            "https://github.com/distributed-systems-2024"
        ]

    @pytest.mark.asyncio
    async def test_exhausted_reconnects_exit_with_one(self, database_url: str) -> None:
        """A bounded reconnect policy that gives up yields exit code 1."""
        stream = StreamConfig(
            url="ws://jetstream.test/subscribe",
            reconnect_delay=0.0,
            max_reconnect_attempts=2,
        )
        dialer = ScriptedDialer([OSError("refused")])

        code = await asyncio.wait_for(
            cli.run_ingest(
                FeedConfig(database_url=database_url), stream, dialer=dialer
            ),
            timeout=5.0,
        )

        assert code == 1
        assert dialer.calls == 2

    @pytest.mark.asyncio
    async def test_schema_failure_exits_with_one(self, tmp_path: Path) -> None:
        """An unusable database is fatal at start-up."""
        feed = FeedConfig(
            database_url=f"sqlite+aiosqlite:///{tmp_path}/missing/dir/posts.db"
        )
        dialer = ScriptedDialer([FakeTransport()])

        code = await cli.run_ingest(feed, _STREAM, dialer=dialer)

        assert code == 1
        assert dialer.calls == 0, "nothing is dialled without a schema"


class TestArguments:
    """Tests for argument parsing and overrides."""

    def test_overrides_replace_environment_values(self) -> None:
        """Command-line flags take precedence over the environment."""
        args = cli.build_parser().parse_args(
            [
                "--database-url",
                "sqlite+aiosqlite:///cli.db",
                "--url",
                "ws://local/subscribe",
                "--pattern",
                "codeberg.org",
                "--retention-limit",
                "3",
            ]
        )

        feed, stream = cli._apply_overrides(args, FeedConfig(), StreamConfig())

        assert feed.database_url == "sqlite+aiosqlite:///cli.db"
        assert feed.pattern == "codeberg.org"
        assert feed.retention_limit == 3
        assert stream.url == "ws://local/subscribe"

    def test_no_flags_keep_configuration(self) -> None:
        """Without flags the environment configuration is untouched."""
        args = cli.build_parser().parse_args([])
        feed, stream = FeedConfig(pattern="x"), StreamConfig(keepalive=5.0)

        assert cli._apply_overrides(args, feed, stream) == (feed, stream)

    def test_main_rejects_bad_retention(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """main() exits with 2 on invalid configuration."""
        monkeypatch.setattr(cli, "configure_logging_from_env", lambda: "INFO")

        assert cli.main(["--retention-limit", "0"]) == 2

    def test_main_runs_ingest(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """main() hands the merged configuration to run_ingest."""
        seen: list[tuple[FeedConfig, StreamConfig]] = []

        async def _fake_run_ingest(feed: FeedConfig, stream: StreamConfig) -> int:
            seen.append((feed, stream))
            return 0

        monkeypatch.setattr(cli, "configure_logging_from_env", lambda: "INFO")
        monkeypatch.setattr(cli, "run_ingest", _fake_run_ingest)
        monkeypatch.delenv("GITFEED_MATCH_PATTERN", raising=False)

        assert cli.main(["--pattern", "tangled.sh"]) == 0
        assert seen[0][0].pattern == "tangled.sh"
