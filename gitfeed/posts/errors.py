"""Error types raised by the posts record store."""

from __future__ import annotations


class StorageError(RuntimeError):
    """Base class for failures raised by :class:`PostRepository`."""


class SchemaError(StorageError):
    """Raised when the ``posts`` table or its index cannot be created."""

    @classmethod
    def for_table(cls, table: str) -> SchemaError:
        """Return an error for a rejected CREATE TABLE/INDEX statement."""
        return cls(f"could not create table {table!r} or its indexes")


class WriteError(StorageError):
    """Raised when an insert or delete is rejected by the database."""

    @classmethod
    def for_insert(cls, did: str, time_us: int) -> WriteError:
        """Return an error for a failed insert."""
        return cls(f"could not write post did={did} time_us={time_us}")

    @classmethod
    def for_delete(cls, description: str) -> WriteError:
        """Return an error for a failed delete or prune."""
        return cls(f"could not delete {description}")


class QueryError(StorageError):
    """Raised when a read query fails for reasons other than no rows."""

    @classmethod
    def for_operation(cls, operation: str) -> QueryError:
        """Return an error naming the failing read operation."""
        return cls(f"error querying posts during {operation}")


class PostNotFoundError(StorageError):
    """Raised when a lookup or scan matches no rows.

    Callers treat this as an expected, non-fatal outcome; the API maps it to
    HTTP 404.
    """

    def __init__(self, message: str, *, did: str | None = None) -> None:
        """Record the optional actor identifier that was looked up."""
        self.did = did
        super().__init__(message)

    @classmethod
    def for_did(cls, did: str) -> PostNotFoundError:
        """Return an error for a point lookup that matched nothing."""
        return cls(f"no post found with DID: {did}", did=did)

    @classmethod
    def empty(cls) -> PostNotFoundError:
        """Return an error for scans over an empty table."""
        return cls("no posts found")


class InvalidLimitError(ValueError):
    """Raised when a scan or prune limit is not a positive integer."""

    def __init__(self, limit: int) -> None:
        """Include the rejected limit in the message."""
        self.limit = limit
        super().__init__(f"limit must be positive, got {limit}")
