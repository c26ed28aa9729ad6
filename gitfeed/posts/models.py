"""Domain record persisted by the posts store."""

from __future__ import annotations

import dataclasses
import typing as typ

from gitfeed.common.time import as_utc

if typ.TYPE_CHECKING:
    import datetime as dt


@dataclasses.dataclass(frozen=True, slots=True)
class StoredPost:
    """A matched Jetstream post, flattened into the ``posts`` row shape.

    ``id`` is the surrogate key assigned by the store. It is ``None`` for
    posts that have not been written yet and is ignored by equality, so a
    post read back from the store compares equal to the one that was written.
    ``created_at`` is normalised to aware UTC; naive values are taken as UTC.
    """

    did: str
    time_us: int
    kind: str
    operation: str
    collection: str
    rkey: str
    cid: str
    record_type: str
    created_at: dt.datetime
    text: str
    uri: str
    lang: str | None = None
    rev: str | None = None
    id: int | None = dataclasses.field(default=None, compare=False)

    def __post_init__(self) -> None:
        """Normalise ``created_at`` to aware UTC."""
        object.__setattr__(self, "created_at", as_utc(self.created_at))
