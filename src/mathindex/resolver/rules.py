"""Fixed rewrite and splitting rules for drifted content ids.

The legacy table is ordered and explicit: the first marker contained in a
term id wins. New patterns are appended here, never inferred.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LegacyRewrite:
    marker: str
    document_id: str
    section_id: str


def _group(name: str) -> tuple[str, str]:
    doc = f"group_theory.def.{name}"
    return doc, f"{doc}.main_section"


LEGACY_REWRITES: tuple[LegacyRewrite, ...] = (
    # Every "{variant}-main-groupbasic-section" id pointed at the basic group section.
    LegacyRewrite("-main-groupbasic-section", *_group("generic_group")),
    LegacyRewrite("-main-topologicalgroup-section", *_group("topological_group")),
    LegacyRewrite("-main-liegroup-section", *_group("lie_group")),
    LegacyRewrite("-main-cyclicgroup-section", *_group("cyclic_group")),
    LegacyRewrite("-main-symmetricgroup-section", *_group("symmetric_group")),
    LegacyRewrite("-main-dihedralgroup-section", *_group("dihedral_group")),
    LegacyRewrite("-main-alternatinggroup-section", *_group("alternating_group")),
    LegacyRewrite("-main-productgroup-section", *_group("product_group")),
)

_DEF_MARKER = ".def."


def match_legacy(term_id: str, rules: tuple[LegacyRewrite, ...] = LEGACY_REWRITES) -> LegacyRewrite | None:
    for rule in rules:
        if rule.marker in term_id:
            return rule
    return None


def document_candidates(term_id: str) -> list[str]:
    """Document-id prefixes of ``term_id``, most specific first.

    ``theory.def.name.section`` yields ``theory.def.name`` first; then dash
    segments of the final dotted segment are dropped from the right, then
    whole dotted segments. The id itself is never included.
    """
    candidates: list[str] = []

    def add(candidate: str) -> None:
        if candidate and candidate != term_id and candidate not in candidates:
            candidates.append(candidate)

    parts = term_id.split(".")
    if _DEF_MARKER in term_id and len(parts) >= 3:
        add(".".join(parts[:3]))

    head, _, last = term_id.rpartition(".")
    dashes = last.split("-")
    for end in range(len(dashes) - 1, 0, -1):
        stem = "-".join(dashes[:end])
        add(f"{head}.{stem}" if head else stem)

    for end in range(len(parts) - 1, 0, -1):
        add(".".join(parts[:end]))

    return candidates


def anchor_candidates(section_id: str) -> list[str]:
    """Element ids a caller may try, in order, when scrolling to ``section_id``."""
    candidates = [
        section_id,
        section_id.replace(".", "-"),
        section_id.rsplit(".", 1)[-1],
        f"section-{section_id}",
        f"{section_id}-section",
    ]
    return list(dict.fromkeys(c for c in candidates if c))
