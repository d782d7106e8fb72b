"""Content store package."""

from .content_store import (
    ContentFile,
    ContentStore,
    FileKind,
    IndexEntry,
    LoadFailed,
    SearchHit,
    TheorySnapshot,
    TypesFile,
)

__all__ = [
    "ContentFile",
    "ContentStore",
    "FileKind",
    "IndexEntry",
    "LoadFailed",
    "SearchHit",
    "TheorySnapshot",
    "TypesFile",
]
