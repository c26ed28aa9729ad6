"""Record store for matched posts: table model, repository and errors."""

from __future__ import annotations

from .errors import (
    InvalidLimitError,
    PostNotFoundError,
    QueryError,
    SchemaError,
    StorageError,
    WriteError,
)
from .models import StoredPost
from .repository import PostRepository
from .storage import Base, PostRow, create_post_engine, init_post_storage

__all__ = [
    "Base",
    "InvalidLimitError",
    "PostNotFoundError",
    "PostRepository",
    "PostRow",
    "QueryError",
    "SchemaError",
    "StorageError",
    "StoredPost",
    "WriteError",
    "create_post_engine",
    "init_post_storage",
]
