"""Persistent connection to the Jetstream firehose.

:class:`StreamConnectionManager` owns at most one live WebSocket at a time.
It dials with a bounded handshake, reconnects after any read or decode
failure, and hands every decoded event to a handler in arrival order before
issuing the next read. Delivery is at-most-once: messages in flight during
a disconnect are lost, never replayed.

State machine::

    DISCONNECTED -> CONNECTING -> CONNECTED -> (read error) -> DISCONNECTED
    any state -> STOPPED once stop() is called
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import typing as typ

from websockets.asyncio.client import connect
from websockets.exceptions import WebSocketException

from .errors import DecodeError, ReconnectAttemptsExceededError, TransportError
from .models import decode_event
from .observability import StreamEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .config import StreamConfig
    from .models import JetstreamEvent

    EventHandler: typ.TypeAlias = cabc.Callable[[JetstreamEvent], cabc.Awaitable[object]]

T = typ.TypeVar("T")

_DIAL_ERRORS: tuple[type[BaseException], ...] = (
    TransportError,
    OSError,
    WebSocketException,
)
_READ_ERRORS: tuple[type[BaseException], ...] = (OSError, WebSocketException)


class ConnectionState(enum.StrEnum):
    """Lifecycle states of the upstream connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    STOPPED = "stopped"


class StreamTransport(typ.Protocol):
    """Minimal surface of a live upstream connection."""

    async def recv(self) -> str | bytes:
        """Return the next complete message."""
        ...

    async def close(self) -> None:
        """Close the connection."""
        ...


class Dialer(typ.Protocol):
    """Callable that opens a :class:`StreamTransport`."""

    def __call__(
        self, url: str, *, config: StreamConfig
    ) -> cabc.Awaitable[StreamTransport]:
        """Dial ``url`` honouring the size and keepalive settings in ``config``."""
        ...


async def websocket_dialer(url: str, *, config: StreamConfig) -> StreamTransport:
    """Open a WebSocket to ``url`` using the ``websockets`` client.

    Peer pings are answered automatically. The client pings every
    ``config.ping_interval`` seconds and drops the connection when a pong is
    not received within ``config.keepalive``. Messages larger than
    ``config.max_message_size`` close the connection instead of being
    buffered.
    """
    return await connect(
        url,
        open_timeout=config.handshake_timeout,
        ping_interval=config.ping_interval,
        ping_timeout=config.keepalive,
        max_size=config.max_message_size,
    )


class _StopRequestedError(Exception):
    """Internal signal that stop() won a race against I/O."""


def _message_size(message: str | bytes) -> int:
    if isinstance(message, str):
        return len(message.encode("utf-8"))
    return len(message)


class StreamConnectionManager:
    """Dial, read and redial the Jetstream endpoint until stopped."""

    def __init__(
        self,
        config: StreamConfig,
        *,
        dialer: Dialer | None = None,
        stop_event: asyncio.Event | None = None,
        event_logger: StreamEventLogger | None = None,
    ) -> None:
        """Bind the manager to a connection policy and an optional dialer."""
        self._config = config
        self._dialer: Dialer = dialer or websocket_dialer
        self._stop = stop_event or asyncio.Event()
        self._event_logger = event_logger or StreamEventLogger()
        self._transport: StreamTransport | None = None
        self._state = ConnectionState.DISCONNECTED
        self._connections = 0

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Return True while a live connection is held."""
        return self._transport is not None

    @property
    def connections(self) -> int:
        """Number of successful handshakes so far."""
        return self._connections

    @property
    def stop_event(self) -> asyncio.Event:
        """Event that cancels the read loop when set."""
        return self._stop

    def stop(self) -> None:
        """Request the read loop to exit without reconnecting."""
        self._stop.set()

    async def connect(self) -> bool:
        """Dial until connected, the policy gives up, or stop() is called.

        Every attempt is preceded by the current backoff delay, and the wait
        returns early when stop() is called.

        Returns
        -------
        bool
            ``True`` once connected, ``False`` if stopped first.

        Raises
        ------
        ReconnectAttemptsExceededError
            If ``max_reconnect_attempts`` is configured and exhausted.

        """
        delay = self._config.reconnect_delay
        attempts = 0
        while self._transport is None:
            if await self._sleep_or_stop(delay):
                self._state = ConnectionState.STOPPED
                return False
            attempts += 1
            self._state = ConnectionState.CONNECTING
            self._event_logger.log_connect_attempt(self._config.url, attempts)
            try:
                transport = await self._dial()
            except _StopRequestedError:
                self._state = ConnectionState.STOPPED
                return False
            except _DIAL_ERRORS as exc:
                self._state = ConnectionState.DISCONNECTED
                delay = self._config.next_delay(delay)
                self._event_logger.log_connect_failed(
                    self._config.url, attempts, exc, delay
                )
                limit = self._config.max_reconnect_attempts
                if limit is not None and attempts >= limit:
                    self._event_logger.log_connect_exhausted(self._config.url, attempts)
                    raise ReconnectAttemptsExceededError(attempts) from exc
                continue
            if self._stop.is_set():
                with contextlib.suppress(*_READ_ERRORS):
                    await transport.close()
                self._state = ConnectionState.STOPPED
                return False
            self._transport = transport
            self._connections += 1
            self._state = ConnectionState.CONNECTED
            self._event_logger.log_connected(self._config.url, attempts)
        return True

    async def run(self, handler: EventHandler) -> None:
        """Read events and hand each to ``handler`` until stopped.

        Read, size and decode failures drop the connection and reconnect
        transparently. Exceptions raised by ``handler`` propagate. The live
        connection is closed on exit.

        Raises
        ------
        ReconnectAttemptsExceededError
            If a bounded reconnect policy is exhausted.

        """
        try:
            while not self._stop.is_set():
                if not await self.connect():
                    break
                try:
                    event = await self._read_event()
                except _StopRequestedError:
                    break
                except (TransportError, DecodeError) as exc:
                    self._event_logger.log_read_failed(exc)
                    await self._drop_connection()
                    continue
                await handler(event)
        finally:
            await self.close()
            if self._stop.is_set():
                self._state = ConnectionState.STOPPED
            self._event_logger.log_stopped(self._config.url)

    async def close(self) -> None:
        """Close the live connection, if any."""
        await self._drop_connection()

    async def _dial(self) -> StreamTransport:
        try:
            return await self._until_stopped(
                self._dialer(self._config.url, config=self._config),
                timeout=self._config.handshake_timeout,
            )
        except TimeoutError as exc:
            raise TransportError.handshake_timeout(
                self._config.url, self._config.handshake_timeout
            ) from exc

    async def _read_event(self) -> JetstreamEvent:
        transport = self._transport
        if transport is None:
            raise TransportError.read_failed("not connected")
        try:
            message = await self._until_stopped(
                transport.recv(), timeout=self._config.keepalive
            )
        except TimeoutError as exc:
            raise TransportError.read_timeout(self._config.keepalive) from exc
        except _READ_ERRORS as exc:
            raise TransportError.read_failed(str(exc) or type(exc).__name__) from exc
        size = _message_size(message)
        if size > self._config.max_message_size:
            raise TransportError.message_too_large(size, self._config.max_message_size)
        return decode_event(message)

    async def _drop_connection(self) -> None:
        transport, self._transport = self._transport, None
        if self._state is not ConnectionState.STOPPED:
            self._state = ConnectionState.DISCONNECTED
        if transport is None:
            return
        with contextlib.suppress(*_READ_ERRORS):
            await transport.close()

    async def _sleep_or_stop(self, delay: float) -> bool:
        """Wait ``delay`` seconds; return True if stop() was called meanwhile."""
        if self._stop.is_set():
            return True
        if delay <= 0:
            return False
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay)
        except TimeoutError:
            return False
        return True

    async def _until_stopped(
        self, awaitable: cabc.Awaitable[T], *, timeout: float
    ) -> T:
        """Await ``awaitable`` unless stop() or ``timeout`` comes first.

        Raises
        ------
        _StopRequestedError
            If stop() was called before the awaitable finished.
        TimeoutError
            If neither finished within ``timeout`` seconds.

        """
        work = asyncio.ensure_future(awaitable)
        stopped = asyncio.ensure_future(self._stop.wait())
        try:
            done, _ = await asyncio.wait(
                {work, stopped},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            stopped.cancel()
            if not work.done():
                work.cancel()
                with contextlib.suppress(asyncio.CancelledError, *_DIAL_ERRORS):
                    await work
        if work in done:
            return work.result()
        if stopped in done:
            raise _StopRequestedError
        raise TimeoutError
