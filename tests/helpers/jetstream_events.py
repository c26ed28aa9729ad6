"""Builders for Jetstream event payloads and fake stream transports.

The canonical fixture is a real-world shaped post linking to GitHub:

>>> from tests.helpers.jetstream_events import github_post_payload
>>> payload = github_post_payload()
>>> payload["commit"]["record"]["langs"]
['en']

"""

from __future__ import annotations

import asyncio
import copy
import dataclasses as dc
import typing as typ

import msgspec

from gitfeed.jetstream.models import JetstreamEvent, decode_event

if typ.TYPE_CHECKING:
    from gitfeed.jetstream.config import StreamConfig

FIXTURE_DID = "did:plc:7ywxd6gcvpmgw3q33dg6xnxf"
FIXTURE_TIME_US = 1703088300000000
FIXTURE_LINK = "https://github.com/distributed-systems-2024"
FIXTURE_TEXT = (
    "@xzy Check out this fascinating article on distributed systems! "
    "https://github.com/distributed-systems-2024 #tech #distributed"
)

_GITHUB_POST: dict[str, typ.Any] = {
    "did": FIXTURE_DID,
    "time_us": FIXTURE_TIME_US,
    "kind": "commit",
    "commit": {
        "rev": "3lbxkcg4aok2u",
        "operation": "create",
        "collection": "app.bsky.feed.post",
        "rkey": "3jsu47dlw9",
        "cid": "bafyreib2rxk3rqpbswxhicg4x3nqwfxwyfqrj5luzb7pwxixphv5a2",
        "record": {
            "$type": "app.bsky.feed.post",
            "createdAt": "2024-12-20T15:45:00Z",
            "embed": {
                "$type": "app.bsky.embed.external",
                "external": {
                    "description": "A deep dive into distributed systems",
                    "title": "Distributed systems",
                    "uri": FIXTURE_LINK,
                },
            },
            "facets": [
                {
                    "features": [
                        {
                            "$type": "app.bsky.richtext.facet#mention",
                            "did": "did:plc:xzy",
                        }
                    ],
                    "index": {"byteStart": 0, "byteEnd": 4},
                },
                {
                    "features": [
                        {
                            "$type": "app.bsky.richtext.facet#link",
                            "uri": FIXTURE_LINK,
                        }
                    ],
                    "index": {"byteStart": 65, "byteEnd": 108},
                },
            ],
            "langs": ["en"],
            "text": FIXTURE_TEXT,
        },
    },
}


def github_post_payload() -> dict[str, typ.Any]:
    """Return a fresh copy of the GitHub-linking post payload."""
    return copy.deepcopy(_GITHUB_POST)


def link_facet(uri: str, *, start: int = 0, end: int = 1) -> dict[str, typ.Any]:
    """Return a facet carrying a single link feature."""
    return {
        "features": [{"$type": "app.bsky.richtext.facet#link", "uri": uri}],
        "index": {"byteStart": start, "byteEnd": end},
    }


def post_payload(  # noqa: PLR0913
    *,
    text: str,
    links: typ.Sequence[str] = (),
    did: str = FIXTURE_DID,
    time_us: int = FIXTURE_TIME_US,
    langs: typ.Sequence[str] = ("en",),
    created_at: str | None = "2024-12-20T15:45:00Z",
) -> dict[str, typ.Any]:
    """Return a post payload with one link facet per entry in ``links``."""
    record: dict[str, typ.Any] = {
        "$type": "app.bsky.feed.post",
        "text": text,
        "langs": list(langs),
        "facets": [link_facet(uri) for uri in links],
    }
    if created_at is not None:
        record["createdAt"] = created_at
    return {
        "did": did,
        "time_us": time_us,
        "kind": "commit",
        "commit": {
            "rev": "rev",
            "operation": "create",
            "collection": "app.bsky.feed.post",
            "rkey": f"rkey{time_us}",
            "cid": f"cid{time_us}",
            "record": record,
        },
    }


def encode(payload: dict[str, typ.Any]) -> bytes:
    """Encode a payload the way Jetstream sends it."""
    return msgspec.json.encode(payload)


def event(payload: dict[str, typ.Any]) -> JetstreamEvent:
    """Decode ``payload`` into a typed event."""
    return decode_event(encode(payload))


class FakeTransport:
    """In-memory stand-in for a live WebSocket.

    Yields the queued messages in order. Once drained it either raises
    ``OSError`` (``fail_when_drained``) or sets ``drained`` and blocks until
    cancelled.
    """

    def __init__(
        self,
        messages: typ.Iterable[str | bytes] = (),
        *,
        fail_when_drained: bool = False,
        drained: asyncio.Event | None = None,
    ) -> None:
        self._messages = list(messages)
        self._fail_when_drained = fail_when_drained
        self._drained = drained
        self.closed = False
        self.reads = 0

    async def recv(self) -> str | bytes:
        self.reads += 1
        if self._messages:
            return self._messages.pop(0)
        if self._fail_when_drained:
            msg = "connection reset by peer"
            raise OSError(msg)
        if self._drained is not None:
            self._drained.set()
        await asyncio.Event().wait()
        raise AssertionError

    async def close(self) -> None:
        self.closed = True


@dc.dataclass(slots=True)
class ScriptedDialer:
    """Dialer returning (or raising) scripted outcomes in order.

    An outcome of ``None`` makes the dial hang until cancelled. Once the
    script is exhausted the last outcome repeats.
    """

    outcomes: list[FakeTransport | BaseException | None]
    calls: int = 0
    urls: list[str] = dc.field(default_factory=list)

    async def __call__(self, url: str, *, config: StreamConfig) -> FakeTransport:
        del config
        self.urls.append(url)
        index = min(self.calls, len(self.outcomes) - 1)
        self.calls += 1
        outcome = self.outcomes[index]
        if outcome is None:
            await asyncio.Event().wait()
            raise AssertionError
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome
