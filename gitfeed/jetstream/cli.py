"""Run the Jetstream ingest process.

Creates the ``posts`` table if needed, then streams matching posts into it
while a background task prunes the table to the retention limit. SIGINT and
SIGTERM stop the read loop without a further reconnect; an in-flight write
is allowed to finish.

Exit codes: 0 after a clean stop, 1 when the schema cannot be created or a
bounded reconnect policy is exhausted.

Run with ``python -m gitfeed.jetstream.cli`` or the ``gitfeed-ingest``
script.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import dataclasses as dc
import signal
import typing as typ

from sqlalchemy.ext.asyncio import async_sessionmaker

from gitfeed.logging import (
    configure_logging,
    configure_logging_from_env,
    get_logger,
    log_exception,
    log_info,
    log_warning,
)
from gitfeed.posts import PostRepository, SchemaError, create_post_engine

from .config import FeedConfig, StreamConfig
from .connection import StreamConnectionManager
from .errors import ReconnectAttemptsExceededError
from .ingestion import FeedIngestionWorker
from .retention import RetentionPruner

if typ.TYPE_CHECKING:
    from .connection import Dialer

logger = get_logger(__name__)

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _install_signal_handlers(stop_event: asyncio.Event) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in _STOP_SIGNALS:
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # add_signal_handler is unavailable off the main thread and on Windows.
            continue
        installed.append(sig)
    return installed


def _remove_signal_handlers(installed: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in installed:
        loop.remove_signal_handler(sig)


async def run_ingest(
    feed: FeedConfig,
    stream: StreamConfig,
    *,
    dialer: Dialer | None = None,
    stop_event: asyncio.Event | None = None,
) -> int:
    """Run ingestion until stopped and return the process exit code."""
    stop = stop_event or asyncio.Event()
    engine = create_post_engine(feed.database_url)
    repository = PostRepository(async_sessionmaker(engine, expire_on_commit=False))

    try:
        try:
            await repository.ensure_schema()
        except SchemaError as exc:
            log_exception(logger, "Failed to create posts table", exc)
            return 1

        manager = StreamConnectionManager(stream, dialer=dialer, stop_event=stop)
        worker = FeedIngestionWorker(repository, manager, pattern=feed.pattern)
        pruner = RetentionPruner(
            repository,
            limit=feed.retention_limit,
            interval=feed.prune_interval,
            stop_event=stop,
        )

        installed = _install_signal_handlers(stop)
        pruner_task = asyncio.create_task(pruner.run())
        log_info(logger, "Starting feed from %s (pattern=%r)", stream.url, feed.pattern)
        try:
            stats = await worker.run()
        except ReconnectAttemptsExceededError as exc:
            log_exception(logger, "Giving up on the Jetstream connection", exc)
            return 1
        finally:
            stop.set()
            with contextlib.suppress(asyncio.CancelledError):
                await pruner_task
            _remove_signal_handlers(installed)

        log_info(
            logger,
            "Stopped after reading %d events (%d written, %d dropped)",
            stats.read,
            stats.written,
            stats.dropped,
        )
        return 0
    finally:
        await engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser; unset options fall back to the environment."""
    parser = argparse.ArgumentParser(description="Stream matching posts into gitfeed")
    parser.add_argument("--database-url", default=None, help="SQLAlchemy async URL")
    parser.add_argument("--url", default=None, help="Jetstream subscribe URL")
    parser.add_argument("--pattern", default=None, help="Literal match pattern")
    parser.add_argument(
        "--retention-limit",
        type=int,
        default=None,
        help="Number of newest posts kept by each prune",
    )
    parser.add_argument("--log-level", default=None, help="Log level override")
    return parser


def _apply_overrides(
    args: argparse.Namespace, feed: FeedConfig, stream: StreamConfig
) -> tuple[FeedConfig, StreamConfig]:
    feed_changes: dict[str, object] = {}
    if args.database_url:
        feed_changes["database_url"] = args.database_url
    if args.pattern:
        feed_changes["pattern"] = args.pattern
    if args.retention_limit is not None:
        if args.retention_limit < 1:
            msg = f"--retention-limit must be positive, got {args.retention_limit}"
            raise ValueError(msg)
        feed_changes["retention_limit"] = args.retention_limit
    if args.url:
        stream = dc.replace(stream, url=args.url)
    return dc.replace(feed, **feed_changes), stream


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, configure logging and run the ingest loop.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Process exit code.

    """
    args = build_parser().parse_args(argv)
    if args.log_level:
        level, invalid = configure_logging(args.log_level)
        if invalid:
            log_warning(
                logger,
                "Invalid --log-level %r, falling back to %s",
                args.log_level,
                level,
            )
    else:
        configure_logging_from_env()

    try:
        feed, stream = _apply_overrides(
            args, FeedConfig.from_env(), StreamConfig.from_env()
        )
    except ValueError as exc:
        log_exception(logger, "Invalid configuration", exc)
        return 2

    return asyncio.run(run_ingest(feed, stream))


if __name__ == "__main__":
    raise SystemExit(main())
