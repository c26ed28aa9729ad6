"""Matching and mapping of Jetstream events onto stored posts.

Everything here is pure and total: any decoded :class:`JetstreamEvent`
yields either a :class:`StoredPost` or ``None``, never an exception.
"""

from __future__ import annotations

import typing as typ

from gitfeed.common.time import micros_to_datetime
from gitfeed.posts.models import StoredPost

from .config import DEFAULT_MATCH_PATTERN
from .models import LINK_FEATURE_TYPE

if typ.TYPE_CHECKING:
    from .models import JetstreamEvent


def find_matches(text: str, pattern: str) -> bool:
    """Return True when ``pattern`` occurs in ``text`` (case-sensitive)."""
    return pattern in text


def extract_link(event: JetstreamEvent) -> str:
    """Return the URI of the last link feature across all facets.

    Facets are scanned in order, and features within each facet in order.
    A later link overwrites an earlier one, so a post linking to several
    URLs yields the one furthest along the facet list. Returns an empty
    string when the post has no link features.
    """
    if event.commit is None or event.commit.record is None:
        return ""
    uri = ""
    for facet in event.commit.record.facets:
        for feature in facet.features:
            if feature.type == LINK_FEATURE_TYPE:
                uri = feature.uri
    return uri


def to_stored_post(event: JetstreamEvent, uri: str) -> StoredPost:
    """Flatten ``event`` into the stored row shape with the extracted ``uri``.

    ``lang`` is the first entry of the record's ``langs`` or ``None`` when the
    list is empty. A record without ``createdAt`` falls back to the event's
    own timestamp.
    """
    commit = event.commit
    record = commit.record if commit is not None else None
    langs = record.langs if record is not None else []
    created_at = record.created_at if record is not None else None
    return StoredPost(
        did=event.did,
        time_us=event.time_us,
        kind=event.kind,
        rev=commit.rev if commit is not None else None,
        operation=commit.operation if commit is not None else "",
        collection=commit.collection if commit is not None else "",
        rkey=commit.rkey if commit is not None else "",
        cid=commit.cid if commit is not None else "",
        record_type=record.type if record is not None else "",
        created_at=created_at or micros_to_datetime(event.time_us),
        lang=langs[0] if langs else None,
        text=record.text if record is not None else "",
        uri=uri,
    )


def accept(
    event: JetstreamEvent, pattern: str = DEFAULT_MATCH_PATTERN
) -> StoredPost | None:
    """Return the post to store for ``event``, or ``None`` to skip it.

    A post is kept only when its text contains ``pattern`` and its last link
    feature has a non-empty URI that also contains ``pattern``.
    """
    if not find_matches(event.text, pattern):
        return None
    uri = extract_link(event)
    if not uri or not find_matches(uri, pattern):
        return None
    return to_stored_post(event, uri)
