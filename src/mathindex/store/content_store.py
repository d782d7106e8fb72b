"""In-memory store of exported theory content with atomic per-theory reloads."""

from __future__ import annotations

import json
import logging
import math
import threading
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from mathindex.errors import ContentCorruptedError
from mathindex.model.base import ContentDocument, Paragraph, Text
from mathindex.model.decode import DocumentDecodeError, decode_document
from mathindex.model.definition import Definition

logger = logging.getLogger(__name__)

DEFAULT_FILE_STEMS = {
    "GroupTheory": "group_theory",
    "FieldTheory": "field_theory",
    "RingTheory": "ring_theory",
    "TopologyTheory": "topology",
}

_PREVIEW_LENGTH = 150


class FileKind(str, Enum):
    DEFINITIONS = "definitions"
    THEOREMS = "theorems"
    TYPES = "types"


@dataclass(frozen=True, slots=True)
class ContentFile:
    name: str
    theory_name: str
    version: str
    exported_at: str
    documents: Mapping[str, ContentDocument]

    def ids(self) -> list[str]:
        return list(self.documents)


@dataclass(frozen=True, slots=True)
class TypesFile:
    name: str
    definitions: tuple[Definition, ...]


@dataclass(frozen=True, slots=True)
class LoadFailed:
    file: str
    reason: str


LoadResult = ContentFile | TypesFile | LoadFailed


@dataclass(frozen=True, slots=True)
class TheorySnapshot:
    theory: str
    files: Mapping[str, LoadResult]
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def failures(self) -> list[LoadFailed]:
        return [result for result in self.files.values() if isinstance(result, LoadFailed)]

    @property
    def available(self) -> bool:
        return any(not isinstance(result, LoadFailed) for result in self.files.values())


@dataclass(frozen=True, slots=True)
class IndexEntry:
    id: str
    title: str
    type: str
    level: str
    section_count: int
    preview: str


@dataclass(frozen=True, slots=True)
class SearchHit:
    id: str
    document: ContentDocument
    relevance: int


@dataclass(frozen=True, slots=True)
class ContentStats:
    total_documents: int
    total_sections: int
    by_level: dict[str, int]
    by_type: dict[str, int]


@dataclass(frozen=True, slots=True)
class Page:
    items: list[tuple[str, ContentDocument]]
    total: int
    pages: int
    current: int


@dataclass(frozen=True, slots=True)
class _State:
    snapshots: Mapping[str, TheorySnapshot]
    files: Mapping[str, LoadResult]


class ContentStore:
    """Load theories from ``{root}/{file}.json`` and serve immutable snapshots.

    Readers always see either the previous or the new snapshot of a theory:
    a reload builds the new snapshot off to the side and publishes it by
    replacing a single reference.
    """

    def __init__(self, root: Path, file_stems: Mapping[str, str] | None = None) -> None:
        self.root = Path(root)
        self._file_stems = dict(DEFAULT_FILE_STEMS)
        if file_stems:
            self._file_stems.update(file_stems)
        self._state = _State(snapshots=MappingProxyType({}), files=MappingProxyType({}))
        self._publish_lock = threading.Lock()
        self._theory_locks: dict[str, threading.Lock] = {}
        self._theory_locks_guard = threading.Lock()

    # -- file naming -------------------------------------------------------

    def file_stem(self, theory: str) -> str:
        return self._file_stems.get(theory) or theory.lower()

    def file_for(self, theory: str, kind: FileKind | str = FileKind.DEFINITIONS) -> str:
        return f"{self.file_stem(theory)}.{FileKind(kind).value}"

    # -- lifecycle -----------------------------------------------------------

    def load(self, theory: str) -> TheorySnapshot:
        """Read every file of ``theory`` and replace its snapshot wholesale."""
        with self._theory_lock(theory):
            snapshot = self._build(theory)
            self._publish({theory: snapshot})
        return snapshot

    def refresh(self) -> dict[str, TheorySnapshot]:
        """Reload every theory currently held by the store and publish them together.

        Nothing is published when any theory raises.
        """
        theories = list(self._state.snapshots)
        with ExitStack() as stack:
            # Fixed acquisition order; load() only ever holds one of these.
            for theory in sorted(theories):
                stack.enter_context(self._theory_lock(theory))
            snapshots = {theory: self._build(theory) for theory in theories}
            self._publish(snapshots)
        return snapshots

    def clear(self) -> None:
        with self._publish_lock:
            self._state = _State(snapshots=MappingProxyType({}), files=MappingProxyType({}))
        with self._theory_locks_guard:
            # Keep locks an in-flight load still holds.
            self._theory_locks = {name: lock for name, lock in self._theory_locks.items() if lock.locked()}

    def theories(self) -> list[str]:
        return list(self._state.snapshots)

    def snapshot(self, theory: str) -> TheorySnapshot | None:
        return self._state.snapshots.get(theory)

    # -- lookups -------------------------------------------------------------

    def file(self, name: str) -> LoadResult | None:
        return self._state.files.get(_normalize_file_name(name))

    def content_file(self, name: str) -> ContentFile | None:
        result = self.file(name)
        return result if isinstance(result, ContentFile) else None

    def get_document(self, file: str, doc_id: str) -> ContentDocument | None:
        content = self.content_file(file)
        if content is None:
            return None
        return content.documents.get(doc_id)

    def list_ids(self, file: str) -> list[str]:
        content = self.content_file(file)
        return content.ids() if content is not None else []

    def definitions(self, theory: str) -> list[Definition]:
        result = self.file(self.file_for(theory, FileKind.TYPES))
        return list(result.definitions) if isinstance(result, TypesFile) else []

    # -- browsing helpers ------------------------------------------------------

    def search(self, file: str, query: str) -> list[SearchHit]:
        """Rank documents by title (+10) and section-title (+5 per matching text) hits."""
        content = self.content_file(file)
        needle = query.lower().strip()
        if content is None or not needle:
            return []

        hits: list[SearchHit] = []
        for doc_id, document in content.documents.items():
            relevance = 0
            if needle in document.title.lower():
                relevance += 10
            for section in document.structure.body:
                if section.title is None:
                    continue
                for segment in section.title.segments:
                    if isinstance(segment, Text) and needle in segment.text.lower():
                        relevance += 5
            if relevance > 0:
                hits.append(SearchHit(id=doc_id, document=document, relevance=relevance))

        return sorted(hits, key=lambda hit: -hit.relevance)

    def index(self, file: str) -> list[IndexEntry]:
        content = self.content_file(file)
        if content is None:
            return []
        return [
            IndexEntry(
                id=doc_id,
                title=document.title,
                type=document.content_type.paper_type,
                level=_abstraction_level(document),
                section_count=len(document.structure.body),
                preview=_preview(document),
            )
            for doc_id, document in content.documents.items()
        ]

    def stats(self, file: str) -> ContentStats:
        by_level: dict[str, int] = {}
        by_type: dict[str, int] = {}
        total_sections = 0
        entries = self.index(file)
        for entry in entries:
            total_sections += entry.section_count
            by_level[entry.level] = by_level.get(entry.level, 0) + 1
            by_type[entry.type] = by_type.get(entry.type, 0) + 1
        return ContentStats(
            total_documents=len(entries),
            total_sections=total_sections,
            by_level=by_level,
            by_type=by_type,
        )

    def page(self, file: str, page: int = 1, page_size: int = 10) -> Page:
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be positive")
        content = self.content_file(file)
        entries = list(content.documents.items()) if content is not None else []
        start = (page - 1) * page_size
        return Page(
            items=entries[start : start + page_size],
            total=len(entries),
            pages=math.ceil(len(entries) / page_size),
            current=page,
        )

    # -- internals -------------------------------------------------------------

    def _theory_lock(self, theory: str) -> threading.Lock:
        with self._theory_locks_guard:
            return self._theory_locks.setdefault(theory, threading.Lock())

    def _build(self, theory: str) -> TheorySnapshot:
        files: dict[str, LoadResult] = {}
        for kind in FileKind:
            name = self.file_for(theory, kind)
            files[name] = self._read_file(name, kind)

        snapshot = TheorySnapshot(theory=theory, files=MappingProxyType(files))
        for failure in snapshot.failures:
            logger.warning("Failed to load %s: %s", failure.file, failure.reason)
        logger.info("Loaded theory %s (%d files, %d failed)", theory, len(files), len(snapshot.failures))
        return snapshot

    def _publish(self, updates: Mapping[str, TheorySnapshot]) -> None:
        with self._publish_lock:
            snapshots = dict(self._state.snapshots)
            files = dict(self._state.files)
            for theory, snapshot in updates.items():
                previous = snapshots.get(theory)
                if previous is not None:
                    for name in previous.files:
                        files.pop(name, None)
                files.update(snapshot.files)
                snapshots[theory] = snapshot
            self._state = _State(snapshots=MappingProxyType(snapshots), files=MappingProxyType(files))

    def _read_file(self, name: str, kind: FileKind) -> LoadResult:
        path = self.root / f"{name}.json"
        if not path.is_file():
            return LoadFailed(file=name, reason=f"file not found: {path}")

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            return LoadFailed(file=name, reason=f"unreadable: {exc}")
        except json.JSONDecodeError as exc:
            return LoadFailed(file=name, reason=f"invalid JSON: {exc}")

        if kind is FileKind.TYPES:
            return _parse_types_file(name, raw)
        return _parse_content_file(name, raw)


def _parse_content_file(name: str, raw: Any) -> LoadResult:
    if not isinstance(raw, dict) or "content" not in raw:
        return LoadFailed(file=name, reason="missing 'content' envelope")

    content = raw["content"]
    documents: dict[str, ContentDocument] = {}
    try:
        if isinstance(content, dict):
            for doc_id, item in content.items():
                documents[doc_id] = decode_document(item, doc_id=doc_id)
        elif isinstance(content, list):
            # Legacy array shape: every document carries its own id.
            for item in content:
                document = decode_document(item)
                documents[document.id] = document
        else:
            raise ContentCorruptedError(name, type(content).__name__)
    except DocumentDecodeError as exc:
        return LoadFailed(file=name, reason=f"invalid document: {exc}")

    return ContentFile(
        name=name,
        theory_name=str(raw.get("theory_name") or ""),
        version=str(raw.get("version") or ""),
        exported_at=str(raw.get("exported_at") or ""),
        documents=MappingProxyType(documents),
    )


def _parse_types_file(name: str, raw: Any) -> LoadResult:
    items = raw.get("definitions") if isinstance(raw, dict) else raw
    if not isinstance(items, list):
        return LoadFailed(file=name, reason="expected a 'definitions' array")

    definitions: list[Definition] = []
    for item in items:
        if not isinstance(item, dict):
            return LoadFailed(file=name, reason="definition entries must be objects")
        try:
            definitions.append(Definition.from_dict(item))
        except ValueError as exc:
            return LoadFailed(file=name, reason=str(exc))
    return TypesFile(name=name, definitions=tuple(definitions))


def _normalize_file_name(name: str) -> str:
    return name[: -len(".json")] if name.endswith(".json") else name


def _abstraction_level(document: ContentDocument) -> str:
    body = document.structure.body
    if body:
        return body[0].meta("abstraction_level", "1") or "1"
    return "1"


def _preview(document: ContentDocument) -> str:
    abstract = document.structure.abstract_content
    if abstract and abstract.content and isinstance(abstract.content[0], Paragraph):
        segments = abstract.content[0].segments
        if segments and isinstance(segments[0], Text):
            return segments[0].text[:_PREVIEW_LENGTH] + "..."
    return "No preview available"
