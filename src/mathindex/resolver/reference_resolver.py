"""Resolve symbolic references (theory + content id) to concrete documents.

Resolution walks a fixed ladder and stops at the first rung that answers:

1. direct hit on the id in the theory's file,
2. legacy-pattern rewrite (see :mod:`mathindex.resolver.rules`),
3. document/section split of hierarchical ids,
4. fuzzy match over the file's ids (exact, suffix, prefix, substring),
5. ``Unresolved`` with up to ``max_suggestions`` related ids.

It never mutates the store and never raises for a missing match.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from mathindex.model.base import (
    ContentDocument,
    DefinitionAspect,
    DefinitionId,
    LinkTarget,
    Section,
    TheoremId,
)
from mathindex.store.content_store import ContentStore, FileKind

from .rules import LEGACY_REWRITES, LegacyRewrite, anchor_candidates, document_candidates, match_legacy

logger = logging.getLogger(__name__)


class ReferenceKind(str, Enum):
    DEFINITION = "definition"
    THEOREM = "theorem"
    THEORY = "theory"


class MatchTier(str, Enum):
    DIRECT = "direct"
    LEGACY_REWRITE = "legacy_rewrite"
    SECTION_SPLIT = "section_split"
    EXACT = "exact"
    SUFFIX = "suffix"
    PREFIX = "prefix"
    SUBSTRING = "substring"
    THEORY = "theory"


@dataclass(frozen=True, slots=True)
class Reference:
    kind: ReferenceKind
    term_id: str
    theory_context: str

    @classmethod
    def definition(cls, term_id: str, theory_context: str) -> Reference:
        return cls(ReferenceKind.DEFINITION, term_id, theory_context)

    @classmethod
    def theorem(cls, theorem_id: str, theory_context: str) -> Reference:
        return cls(ReferenceKind.THEOREM, theorem_id, theory_context)

    @classmethod
    def theory(cls, name: str) -> Reference:
        return cls(ReferenceKind.THEORY, name, name)

    @classmethod
    def from_link_target(cls, target: LinkTarget, default_theory: str | None = None) -> Reference | None:
        """Build a reference from a link target; ``None`` when it is not a math reference."""
        if isinstance(target, (DefinitionId, DefinitionAspect)):
            theory = target.theory_context or default_theory
            if not target.term_id or not theory:
                return None
            return cls.definition(target.term_id, theory)
        if isinstance(target, TheoremId):
            theory = target.theory_context or default_theory
            if not target.theorem_id or not theory:
                return None
            return cls.theorem(target.theorem_id, theory)
        return None


@dataclass(frozen=True, slots=True)
class NavigationTarget:
    kind: ReferenceKind
    theory: str
    file: str | None
    document_id: str | None
    section_id: str | None = None
    tier: MatchTier = MatchTier.DIRECT

    @property
    def path(self) -> str:
        if self.kind is ReferenceKind.THEORY or self.document_id is None:
            return f"/math/theory/{self.theory}"
        path = f"/math/{self.kind.value}/{self.theory}/{self.document_id}"
        if self.section_id:
            path += f"#{self.section_id}"
        return path

    @property
    def anchors(self) -> list[str]:
        return anchor_candidates(self.section_id) if self.section_id else []

    def to_dict(self) -> dict[str, Any]:
        return {
            "resolved": True,
            "kind": self.kind.value,
            "theory": self.theory,
            "file": self.file,
            "document_id": self.document_id,
            "section_id": self.section_id,
            "tier": self.tier.value,
            "path": self.path,
        }


@dataclass(frozen=True, slots=True)
class Unresolved:
    reference: Reference
    file: str | None
    suggestions: tuple[str, ...] = ()

    @property
    def overview(self) -> NavigationTarget:
        return NavigationTarget(
            kind=ReferenceKind.THEORY,
            theory=self.reference.theory_context,
            file=self.file,
            document_id=None,
            tier=MatchTier.THEORY,
        )

    @property
    def fallback_path(self) -> str:
        """Where a caller should send the user instead of a dead link."""
        if self.suggestions and self.reference.kind is not ReferenceKind.THEORY:
            kind = self.reference.kind.value
            return f"/math/{kind}/{self.reference.theory_context}/{self.suggestions[0]}"
        return self.overview.path

    def to_dict(self) -> dict[str, Any]:
        return {
            "resolved": False,
            "kind": self.reference.kind.value,
            "theory": self.reference.theory_context,
            "term_id": self.reference.term_id,
            "file": self.file,
            "suggestions": list(self.suggestions),
            "fallback_path": self.fallback_path,
        }


Resolution = NavigationTarget | Unresolved


class ReferenceResolver:
    """Turn :class:`Reference` values into navigation targets over a :class:`ContentStore`."""

    def __init__(
        self,
        store: ContentStore,
        *,
        rules: tuple[LegacyRewrite, ...] = LEGACY_REWRITES,
        max_suggestions: int = 5,
    ) -> None:
        self.store = store
        self.rules = rules
        self.max_suggestions = max_suggestions

    def resolve(self, reference: Reference) -> Resolution:
        if reference.kind is ReferenceKind.THEORY:
            return self._resolve_theory(reference)

        file_kind = FileKind.THEOREMS if reference.kind is ReferenceKind.THEOREM else FileKind.DEFINITIONS
        file = self.store.file_for(reference.theory_context, file_kind)
        ids = self.store.list_ids(file)
        known = set(ids)

        def hit(document_id: str, section_id: str | None, tier: MatchTier) -> NavigationTarget:
            logger.debug("Resolved %s -> %s (%s)", reference.term_id, document_id, tier.value)
            return NavigationTarget(
                kind=reference.kind,
                theory=reference.theory_context,
                file=file,
                document_id=document_id,
                section_id=section_id,
                tier=tier,
            )

        term = reference.term_id
        if term in known:
            return hit(term, None, MatchTier.DIRECT)

        section_hint: str | None = None
        rule = match_legacy(term, self.rules)
        if rule is not None:
            logger.debug("Rewriting legacy id %s -> %s", term, rule.document_id)
            term = rule.document_id
            section_hint = rule.section_id
            if term in known:
                return hit(term, section_hint, MatchTier.LEGACY_REWRITE)

        candidates = document_candidates(term)
        for candidate in candidates:
            if candidate in known:
                return hit(candidate, section_hint or term, MatchTier.SECTION_SPLIT)

        for query in [term, *candidates[:1]]:
            match = fuzzy_match(query, ids)
            if match is not None:
                matched_id, tier = match
                section = section_hint or (term if query != term else None)
                return hit(matched_id, section, tier)

        suggestions = suggest(term, ids, limit=self.max_suggestions)
        logger.debug("Unresolved %s in %s (%d suggestions)", reference.term_id, file, len(suggestions))
        return Unresolved(reference=reference, file=file, suggestions=tuple(suggestions))

    def _resolve_theory(self, reference: Reference) -> Resolution:
        theory = reference.term_id
        snapshot = self.store.snapshot(theory)
        file = self.store.file_for(theory, FileKind.DEFINITIONS)
        if snapshot is not None and snapshot.available:
            return NavigationTarget(
                kind=ReferenceKind.THEORY,
                theory=theory,
                file=file,
                document_id=None,
                tier=MatchTier.THEORY,
            )
        loaded = [name for name in self.store.theories() if name != theory]
        return Unresolved(reference=reference, file=None, suggestions=tuple(loaded[: self.max_suggestions]))


def fuzzy_match(query: str, ids: list[str]) -> tuple[str, MatchTier] | None:
    """First id matching ``query`` by tier; file order breaks ties within a tier."""
    if not query:
        return None

    last_segment = query.rsplit(".", 1)[-1]
    tiers = (
        (MatchTier.EXACT, lambda candidate: candidate == query),
        (MatchTier.SUFFIX, lambda candidate: candidate.endswith(f".{last_segment}")),
        (MatchTier.PREFIX, lambda candidate: candidate.startswith(query) or query.startswith(candidate)),
        (MatchTier.SUBSTRING, lambda candidate: query in candidate or candidate in query),
    )
    for tier, predicate in tiers:
        for candidate in ids:
            if candidate and predicate(candidate):
                return candidate, tier
    return None


def suggest(query: str, ids: list[str], *, limit: int = 5) -> list[str]:
    """Ids sharing the leading dotted token with ``query`` (either direction)."""
    token = query.split(".", 1)[0]
    if not token:
        return []
    related = [
        candidate
        for candidate in ids
        if token in candidate or candidate.split(".", 1)[0] in query
    ]
    return related[:limit]


def locate_section(document: ContentDocument, section_id: str | None) -> Section | None:
    """Find the section an anchor refers to; ``None`` when the page has no such anchor."""
    if not section_id:
        return None
    sections = list(document.sections())
    for candidate in anchor_candidates(section_id):
        for section in sections:
            if section.id == candidate:
                return section
    return None
