"""Tests for ContentStore loading, snapshots and browsing helpers.

Covers:
- Mapping and legacy array `content` shapes
- Per-file LoadFailed for missing / invalid files
- ContentCorruptedError keeps the previous snapshot
- Wholesale replacement on reload
- search / index / stats / page
- Malformed nested values stay per-file
- Atomic refresh and serialized per-theory reloads
"""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from mathindex.errors import ContentCorruptedError
from mathindex.store.content_store import (
    ContentFile,
    ContentStore,
    FileKind,
    LoadFailed,
    LoadResult,
    TheorySnapshot,
    TypesFile,
)

from conftest import CYCLIC_GROUP, GENERIC_GROUP, write_json


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def test_load_reads_all_files(store: ContentStore) -> None:
    snapshot = store.snapshot("GroupTheory")

    assert snapshot is not None
    assert snapshot.available
    assert snapshot.failures == []
    assert set(snapshot.files) == {
        "group_theory.definitions",
        "group_theory.theorems",
        "group_theory.types",
    }

    definitions = store.content_file("group_theory.definitions")
    assert isinstance(definitions, ContentFile)
    assert definitions.ids() == ["group_theory.def.generic_group", "group_theory.def.cyclic_group"]
    assert definitions.version == "1.0"
    assert isinstance(store.file("group_theory.types.json"), TypesFile)


def test_legacy_array_is_normalized_to_mapping(store: ContentStore) -> None:
    assert store.list_ids("group_theory.theorems") == ["group_theory.thm.lagrange"]
    document = store.get_document("group_theory.theorems", "group_theory.thm.lagrange")
    assert document is not None
    assert document.title == "Lagrange's Theorem"


def test_get_document_missing_returns_none(store: ContentStore) -> None:
    assert store.get_document("group_theory.definitions", "nope") is None
    assert store.get_document("unknown.definitions", "group_theory.def.generic_group") is None
    assert store.list_ids("unknown.definitions") == []


def test_missing_file_is_reported_per_file(theory_root: Path) -> None:
    (theory_root / "group_theory.theorems.json").unlink()
    store = ContentStore(theory_root)

    snapshot = store.load("GroupTheory")

    theorems = snapshot.files["group_theory.theorems"]
    assert isinstance(theorems, LoadFailed)
    assert "not found" in theorems.reason
    assert snapshot.available
    assert store.get_document("group_theory.definitions", "group_theory.def.generic_group") is not None


def test_invalid_json_is_load_failed(theory_root: Path) -> None:
    (theory_root / "group_theory.definitions.json").write_text("{not json", encoding="utf-8")
    snapshot = ContentStore(theory_root).load("GroupTheory")

    result = snapshot.files["group_theory.definitions"]
    assert isinstance(result, LoadFailed)
    assert "invalid JSON" in result.reason


def test_missing_envelope_and_bad_document_are_load_failed(theory_root: Path) -> None:
    write_json(theory_root, "group_theory.definitions", {"documents": {}})
    write_json(theory_root, "group_theory.theorems", {"content": [{"content_type": {}}]})

    snapshot = ContentStore(theory_root).load("GroupTheory")

    assert isinstance(snapshot.files["group_theory.definitions"], LoadFailed)
    assert isinstance(snapshot.files["group_theory.theorems"], LoadFailed)
    assert isinstance(snapshot.files["group_theory.types"], TypesFile)


def test_unknown_theory_is_unavailable(tmp_path: Path) -> None:
    snapshot = ContentStore(tmp_path).load("Nothing")

    assert not snapshot.available
    assert len(snapshot.failures) == 3


def test_corrupted_content_keeps_previous_snapshot(theory_root: Path) -> None:
    store = ContentStore(theory_root)
    before = store.load("GroupTheory")

    write_json(theory_root, "group_theory.definitions", {"content": 42})
    with pytest.raises(ContentCorruptedError) as exc_info:
        store.load("GroupTheory")

    assert exc_info.value.file == "group_theory.definitions"
    assert store.snapshot("GroupTheory") is before
    assert store.get_document("group_theory.definitions", "group_theory.def.generic_group") is not None


# ---------------------------------------------------------------------------
# Reloading
# ---------------------------------------------------------------------------

def test_reload_replaces_snapshot_wholesale(theory_root: Path) -> None:
    store = ContentStore(theory_root)
    old = store.load("GroupTheory")

    write_json(
        theory_root,
        "group_theory.definitions",
        {"theory_name": "group_theory", "content": {CYCLIC_GROUP["id"]: CYCLIC_GROUP}},
    )
    new = store.load("GroupTheory")

    assert store.snapshot("GroupTheory") is new
    assert store.list_ids("group_theory.definitions") == ["group_theory.def.cyclic_group"]
    assert store.get_document("group_theory.definitions", GENERIC_GROUP["id"]) is None

    # Snapshots already handed out stay intact.
    old_file = old.files["group_theory.definitions"]
    assert isinstance(old_file, ContentFile)
    assert GENERIC_GROUP["id"] in old_file.documents


def test_refresh_and_clear(store: ContentStore) -> None:
    refreshed = store.refresh()
    assert list(refreshed) == ["GroupTheory"]
    assert store.theories() == ["GroupTheory"]

    store.clear()
    assert store.theories() == []
    assert store.file("group_theory.definitions") is None


def test_file_naming() -> None:
    store = ContentStore(Path("."), file_stems={"Lattices": "lattice_theory"})

    assert store.file_for("GroupTheory") == "group_theory.definitions"
    assert store.file_for("TopologyTheory", FileKind.THEOREMS) == "topology.theorems"
    assert store.file_for("CategoryTheory", "types") == "categorytheory.types"
    assert store.file_for("Lattices") == "lattice_theory.definitions"


def test_definitions(store: ContentStore) -> None:
    names = [d.name for d in store.definitions("GroupTheory")]
    assert names == ["Group", "GroupOperation", "GroupProperty"]
    assert store.definitions("FieldTheory") == []


def test_types_file_accepts_bare_list(theory_root: Path) -> None:
    write_json(theory_root, "group_theory.types", [{"name": "Group", "members": []}])
    store = ContentStore(theory_root)
    store.load("GroupTheory")

    assert [d.name for d in store.definitions("GroupTheory")] == ["Group"]


def test_types_file_without_names_fails(theory_root: Path) -> None:
    write_json(theory_root, "group_theory.types", {"definitions": [{"kind": "Struct"}]})
    snapshot = ContentStore(theory_root).load("GroupTheory")

    assert isinstance(snapshot.files["group_theory.types"], LoadFailed)


# ---------------------------------------------------------------------------
# Browsing helpers
# ---------------------------------------------------------------------------

def test_search_ranks_title_and_section_hits(store: ContentStore) -> None:
    hits = store.search("group_theory.definitions", "cyclic")

    assert [hit.id for hit in hits] == ["group_theory.def.cyclic_group"]
    assert hits[0].relevance == 15
    assert store.search("group_theory.definitions", "   ") == []
    assert store.search("group_theory.definitions", "topology") == []


def test_index_and_stats(store: ContentStore) -> None:
    entries = {entry.id: entry for entry in store.index("group_theory.definitions")}

    generic = entries["group_theory.def.generic_group"]
    assert generic.level == "1"
    assert generic.type == "Research"
    assert generic.preview == "Groups capture symmetry...."
    cyclic = entries["group_theory.def.cyclic_group"]
    assert cyclic.level == "2"
    assert cyclic.type == "Survey"
    assert cyclic.preview == "No preview available"

    stats = store.stats("group_theory.definitions")
    assert stats.total_documents == 2
    assert stats.total_sections == 2
    assert stats.by_level == {"1": 1, "2": 1}
    assert stats.by_type == {"Research": 1, "Survey": 1}


def test_page(store: ContentStore) -> None:
    first = store.page("group_theory.definitions", page=1, page_size=1)
    assert first.total == 2
    assert first.pages == 2
    assert [doc_id for doc_id, _ in first.items] == ["group_theory.def.generic_group"]

    past_end = store.page("group_theory.definitions", page=3, page_size=1)
    assert past_end.items == []

    with pytest.raises(ValueError):
        store.page("group_theory.definitions", page=0)


# ---------------------------------------------------------------------------
# Malformed nested values
# ---------------------------------------------------------------------------

def test_non_array_document_fields_do_not_abort_load(theory_root: Path) -> None:
    write_json(
        theory_root,
        "group_theory.definitions",
        {
            "content": {
                "a": {"id": "a", "content_type": {"ScientificPaper": {"title": "A", "structure": {"body": 5}}}},
                "b": {
                    "id": "b",
                    "content_type": {
                        "ScientificPaper": {
                            "title": "B",
                            "structure": {"body": [{"id": "b.s", "content": [], "metadata": 3}]},
                        }
                    },
                },
            }
        },
    )

    snapshot = ContentStore(theory_root).load("GroupTheory")

    result = snapshot.files["group_theory.definitions"]
    assert isinstance(result, ContentFile)
    assert result.ids() == ["a", "b"]
    assert result.documents["a"].structure.body == ()
    assert result.documents["b"].structure.body[0].metadata == ()


def test_non_array_definition_fields_fail_only_the_types_file(theory_root: Path) -> None:
    store = ContentStore(theory_root)

    write_json(theory_root, "group_theory.types", {"definitions": [{"name": "Group", "members": 7}]})
    snapshot = store.load("GroupTheory")
    assert isinstance(snapshot.files["group_theory.types"], LoadFailed)
    assert isinstance(snapshot.files["group_theory.definitions"], ContentFile)

    write_json(theory_root, "group_theory.types", {"definitions": [{"name": "Group", "extends": 5}]})
    snapshot = store.load("GroupTheory")
    assert isinstance(snapshot.files["group_theory.types"], LoadFailed)


# ---------------------------------------------------------------------------
# Refresh and concurrency
# ---------------------------------------------------------------------------

def _load_two_theories(theory_root: Path) -> ContentStore:
    write_json(theory_root, "ring_theory.definitions", {"content": {"ring.a": {"id": "ring.a", "content_type": {}}}})
    store = ContentStore(theory_root)
    store.load("GroupTheory")
    store.load("RingTheory")
    return store


def test_refresh_publishes_every_theory(theory_root: Path) -> None:
    store = _load_two_theories(theory_root)
    before = {theory: store.snapshot(theory) for theory in store.theories()}

    write_json(theory_root, "ring_theory.definitions", {"content": {"ring.b": {"id": "ring.b", "content_type": {}}}})
    refreshed = store.refresh()

    assert list(refreshed) == ["GroupTheory", "RingTheory"]
    for theory, snapshot in refreshed.items():
        assert store.snapshot(theory) is snapshot
        assert snapshot is not before[theory]
    assert store.list_ids("ring_theory.definitions") == ["ring.b"]


def test_failed_refresh_publishes_nothing(theory_root: Path) -> None:
    store = _load_two_theories(theory_root)
    group_before = store.snapshot("GroupTheory")
    ring_before = store.snapshot("RingTheory")

    write_json(theory_root, "group_theory.definitions", {"content": {"group_theory.b": {"id": "group_theory.b"}}})
    write_json(theory_root, "ring_theory.definitions", {"content": 42})
    with pytest.raises(ContentCorruptedError):
        store.refresh()

    assert store.snapshot("GroupTheory") is group_before
    assert store.snapshot("RingTheory") is ring_before
    assert store.list_ids("group_theory.definitions") == [
        "group_theory.def.generic_group",
        "group_theory.def.cyclic_group",
    ]


def test_concurrent_loads_of_one_theory_are_serialized(
    theory_root: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    store = ContentStore(theory_root)
    original_read = store._read_file
    guard = threading.Lock()
    active = 0
    max_active = 0
    generation = threading.local()
    observed: list[TheorySnapshot] = []
    done = threading.Event()

    def slow_read(name: str, kind: FileKind) -> LoadResult:
        nonlocal active, max_active
        with guard:
            active += 1
            max_active = max(max_active, active)
        time.sleep(0.02)
        original_read(name, kind)
        with guard:
            active -= 1
        # Tag every file with the load that produced it.
        return LoadFailed(file=name, reason=f"load-{generation.value}")

    def loader(value: int) -> None:
        generation.value = value
        store.load("GroupTheory")

    def reader() -> None:
        while not done.is_set():
            snapshot = store.snapshot("GroupTheory")
            if snapshot is not None:
                observed.append(snapshot)
            time.sleep(0.001)

    monkeypatch.setattr(store, "_read_file", slow_read)
    watcher = threading.Thread(target=reader)
    watcher.start()
    loaders = [threading.Thread(target=loader, args=(value,)) for value in (1, 2)]
    for thread in loaders:
        thread.start()
    for thread in loaders:
        thread.join()
    done.set()
    watcher.join()

    assert max_active == 1
    final = store.snapshot("GroupTheory")
    assert final is not None
    observed.append(final)
    for snapshot in observed:
        reasons = {result.reason for result in snapshot.files.values() if isinstance(result, LoadFailed)}
        assert len(snapshot.files) == 3
        assert len(reasons) == 1


def test_clear_drops_idle_theory_locks(store: ContentStore) -> None:
    assert "GroupTheory" in store._theory_locks

    store.clear()

    assert store._theory_locks == {}
