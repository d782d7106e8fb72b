from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from mathindex.store.content_store import ContentStore


def paragraph(*segments: dict[str, Any]) -> dict[str, Any]:
    return {"Paragraph": {"segments": list(segments), "alignment": None}}


def section(section_id: str, title: str, content: list[dict[str, Any]], **metadata: str) -> dict[str, Any]:
    return {
        "id": section_id,
        "title": {"segments": [{"Text": title}]},
        "content": content,
        "metadata": [[k, v] for k, v in metadata.items()],
    }


def paper(title: str, body: list[dict[str, Any]], abstract: str | None = None, paper_type: str = "Research") -> dict[str, Any]:
    structure: dict[str, Any] = {"body": body}
    if abstract is not None:
        structure["abstract_content"] = section("abstract", "Abstract", [paragraph({"Text": abstract})])
    return {"ScientificPaper": {"title": title, "paper_type": paper_type, "structure": structure}}


def write_json(root: Path, name: str, payload: Any) -> Path:
    path = root / f"{name}.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


GENERIC_GROUP = {
    "id": "group_theory.def.generic_group",
    "content_type": paper(
        "Group",
        [
            section(
                "group_theory.def.generic_group.main_section",
                "Group",
                [
                    paragraph(
                        {"Text": "A group is a set with an operation. See "},
                        {
                            "Link": {
                                "content": [{"Text": "cyclic groups"}],
                                "target": {
                                    "DefinitionId": {
                                        "term_id": "group_theory.def.cyclic_group",
                                        "theory_context": "GroupTheory",
                                    }
                                },
                                "tooltip": "View definition",
                            }
                        },
                    ),
                    {
                        "StructuredMath": {
                            "Definition": {
                                "term_display": [{"Text": "Group"}],
                                "formal_term": {"Text": "(G, *)"},
                                "label": "Definition 1.1",
                                "body": [paragraph({"Text": "Associative, with identity and inverses."})],
                                "selectable_properties": [
                                    {"name": "Commutativity", "current_variant": "NonAbelian", "all_variants": ["Abelian", "NonAbelian"]}
                                ],
                            }
                        }
                    },
                    {"MathBlock": {"math": {"Text": "a * (b * c) = (a * b) * c"}, "label": "(1)"}},
                ],
                abstraction_level="1",
            ),
        ],
        abstract="Groups capture symmetry.",
    ),
}

CYCLIC_GROUP = {
    "id": "group_theory.def.cyclic_group",
    "content_type": paper(
        "Cyclic Group",
        [
            section(
                "group_theory.def.cyclic_group.main_section",
                "Cyclic Group",
                [
                    paragraph({"Text": "Generated by a single element."}),
                    {
                        "SubSection": section(
                            "group_theory.def.cyclic_group.generators",
                            "Generators",
                            [paragraph({"Text": "Every cyclic group of order n has phi(n) generators."})],
                        )
                    },
                ],
                abstraction_level="2",
            ),
        ],
        paper_type="Survey",
    ),
}

LAGRANGE = {
    "id": "group_theory.thm.lagrange",
    "content_type": paper(
        "Lagrange's Theorem",
        [
            section(
                "group_theory.thm.lagrange.main_section",
                "Statement",
                [
                    {
                        "StructuredMath": {
                            "Theorem": {
                                "kind": "Theorem",
                                "label": "Lagrange",
                                "statement": [paragraph({"Text": "The order of a subgroup divides the order of the group."})],
                                "proof": {"steps": [paragraph({"Text": "Cosets partition the group."})]},
                            }
                        }
                    }
                ],
            )
        ],
    ),
}

TYPES = {
    "theory": "group_theory",
    "definitions": [
        {
            "name": "Group",
            "kind": "Struct",
            "docs": "A group.",
            "members": [
                {"name": "base_set", "type": "Set", "docs": ""},
                {"name": "op", "type": "Vec<GroupOperation>", "docs": ""},
                {"name": "identity", "type": "Option<GroupOperation>", "docs": ""},
            ],
        },
        {"name": "GroupOperation", "kind": "Enum", "members": []},
        {"name": "GroupProperty", "kind": "Enum", "members": []},
    ],
}


@pytest.fixture
def theory_root(tmp_path: Path) -> Path:
    write_json(
        tmp_path,
        "group_theory.definitions",
        {
            "theory_name": "group_theory",
            "version": "1.0",
            "exported_at": "2025-01-01T00:00:00Z",
            "content": {GENERIC_GROUP["id"]: GENERIC_GROUP, CYCLIC_GROUP["id"]: CYCLIC_GROUP},
        },
    )
    # Theorems use the legacy array shape.
    write_json(tmp_path, "group_theory.theorems", {"theory_name": "group_theory", "content": [LAGRANGE]})
    write_json(tmp_path, "group_theory.types", TYPES)
    return tmp_path


@pytest.fixture
def store(theory_root: Path) -> ContentStore:
    content_store = ContentStore(theory_root)
    content_store.load("GroupTheory")
    return content_store
