"""Typed wire models for Jetstream events.

Only the fields gitfeed reads are declared; unknown fields are ignored by the
decoder. Identity and account events carry no ``commit`` and delete commits
carry no ``record``; both decode cleanly and simply never match the filter.
"""

from __future__ import annotations

import datetime as dt

import msgspec

from .errors import DecodeError

LINK_FEATURE_TYPE = "app.bsky.richtext.facet#link"


class FacetFeature(msgspec.Struct, kw_only=True):
    """A typed feature attached to a facet (link, mention, tag)."""

    type: str = msgspec.field(name="$type", default="")
    uri: str = ""
    did: str = ""
    tag: str = ""


class FacetIndex(msgspec.Struct, kw_only=True):
    """Byte range of the annotated text, end exclusive."""

    byte_start: int = msgspec.field(name="byteStart", default=0)
    byte_end: int = msgspec.field(name="byteEnd", default=0)


class Facet(msgspec.Struct, kw_only=True):
    """A byte-range annotation carrying one or more features."""

    index: FacetIndex = msgspec.field(default_factory=FacetIndex)
    features: list[FacetFeature] = msgspec.field(default_factory=list)


class ExternalLink(msgspec.Struct, kw_only=True):
    """Link card metadata from an ``app.bsky.embed.external`` embed."""

    uri: str = ""
    title: str = ""
    description: str = ""


class Embed(msgspec.Struct, kw_only=True):
    """Post embed; only external link cards are modelled."""

    type: str = msgspec.field(name="$type", default="")
    external: ExternalLink | None = None


class PostRecord(msgspec.Struct, kw_only=True):
    """The ``app.bsky.feed.post`` record carried by a create commit."""

    type: str = msgspec.field(name="$type", default="")
    created_at: dt.datetime | None = msgspec.field(name="createdAt", default=None)
    text: str = ""
    langs: list[str] = msgspec.field(default_factory=list)
    facets: list[Facet] = msgspec.field(default_factory=list)
    embed: Embed | None = None


class Commit(msgspec.Struct, kw_only=True):
    """Repository commit metadata for a ``kind == "commit"`` event."""

    rev: str = ""
    operation: str = ""
    collection: str = ""
    rkey: str = ""
    cid: str = ""
    record: PostRecord | None = None


class JetstreamEvent(msgspec.Struct, kw_only=True):
    """One Jetstream message envelope."""

    did: str
    time_us: int
    kind: str = ""
    commit: Commit | None = None

    @property
    def text(self) -> str:
        """Return the post text, or an empty string for non-post events."""
        if self.commit is None or self.commit.record is None:
            return ""
        return self.commit.record.text


class EventBatch(msgspec.Struct, kw_only=True):
    """Request body for bulk writes through the API."""

    posts: list[JetstreamEvent] = msgspec.field(default_factory=list)


_EVENT_DECODER = msgspec.json.Decoder(JetstreamEvent)
_BATCH_DECODER = msgspec.json.Decoder(EventBatch)


def decode_event(data: bytes | str) -> JetstreamEvent:
    """Decode one Jetstream message.

    Raises
    ------
    DecodeError
        If the payload is not JSON or does not match the event shape.

    """
    try:
        return _EVENT_DECODER.decode(data)
    except msgspec.DecodeError as exc:
        raise DecodeError.invalid_payload(str(exc)) from exc


def decode_batch(data: bytes | str) -> EventBatch:
    """Decode a ``{"posts": [...]}`` batch.

    Raises
    ------
    DecodeError
        If the payload is not JSON or does not match the batch shape.

    """
    try:
        return _BATCH_DECODER.decode(data)
    except msgspec.DecodeError as exc:
        raise DecodeError.invalid_payload(str(exc)) from exc
