"""Dependency graph over type definitions.

Extracts type references from member types, builds forward edges, links
orphans so the drawing is one connected structure, and orders definitions
dependencies-first. Handles cycles without looping.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from mathindex.errors import MalformedTypeExpression
from mathindex.model.definition import Definition

logger = logging.getLogger(__name__)

_TYPE_NAME_RE = re.compile(r"\b([A-Z][A-Za-z0-9_]*)\b")
_GENERIC_ARGS_RE = re.compile(r"<([^<>]+)>")


def extract_type_names(type_expr: str) -> list[str]:
    """Capitalized identifiers in ``type_expr``, nested generics included.

    ``Vec<Pair<Foo, Bar>>`` yields ``["Vec", "Pair", "Foo", "Bar"]``. Unbalanced
    brackets are tolerated: ``Vec<Set`` still yields ``["Vec", "Set"]``.
    """
    if not isinstance(type_expr, str):
        raise MalformedTypeExpression(f"type expression must be a string, got {type(type_expr).__name__}")

    names: list[str] = []
    _collect_type_names(type_expr, names)
    return names


def _collect_type_names(type_expr: str, names: list[str]) -> None:
    for match in _TYPE_NAME_RE.finditer(type_expr):
        if match.group(1) not in names:
            names.append(match.group(1))

    for generic in _GENERIC_ARGS_RE.finditer(type_expr):
        _collect_type_names(generic.group(1), names)


@dataclass(frozen=True, slots=True)
class GraphEdge:
    source: str
    target: str
    artificial: bool = False


@dataclass(frozen=True, slots=True)
class SkippedMember:
    definition: str
    member: str
    reason: str


@dataclass(slots=True)
class GraphResult:
    ordered: list[Definition] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    skipped: list[SkippedMember] = field(default_factory=list)

    @property
    def edge_pairs(self) -> set[tuple[str, str]]:
        return {(edge.source, edge.target) for edge in self.edges}

    def dependencies_of(self, name: str) -> list[str]:
        return [edge.target for edge in self.edges if edge.source == name and not edge.artificial]

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [{"id": d.name, "kind": d.kind} for d in self.ordered],
            "edges": [
                {"source": e.source, "target": e.target, "artificial": e.artificial}
                for e in self.edges
            ],
            "skipped": [
                {"definition": s.definition, "member": s.member, "reason": s.reason}
                for s in self.skipped
            ],
        }


class DependencyGraphBuilder:
    """Build ``{ordered, edges}`` for a theory's definitions."""

    def __init__(self, connect_orphans: bool = True) -> None:
        self.connect_orphans = connect_orphans

    def build(self, definitions: Sequence[Definition]) -> GraphResult:
        by_name: dict[str, Definition] = {}
        for definition in definitions:
            if definition.name in by_name:
                logger.warning("Duplicate definition %s ignored", definition.name)
                continue
            by_name[definition.name] = definition

        result = GraphResult()
        # Insertion-ordered so traversal follows discovery order.
        dependencies: dict[str, dict[str, None]] = {name: {} for name in by_name}

        for definition in by_name.values():
            for ref in self._references(definition, result.skipped):
                if ref == definition.name or ref not in by_name:
                    continue
                if ref in dependencies[definition.name]:
                    continue
                dependencies[definition.name][ref] = None
                result.edges.append(GraphEdge(definition.name, ref))

        if self.connect_orphans:
            result.edges.extend(_orphan_edges(list(by_name), result.edges))

        result.ordered = _topological_order(by_name, dependencies)
        return result

    def _references(self, definition: Definition, skipped: list[SkippedMember]) -> Iterator[str]:
        sources: list[tuple[str, str]] = []
        for member in definition.members:
            sources.extend((member.name, expr) for expr in member.type_expressions())
        sources.extend(("extends", expr) for expr in definition.extends)
        sources.extend(("implements", expr) for expr in definition.implements)

        for member_name, expr in sources:
            try:
                names = extract_type_names(expr)
            except MalformedTypeExpression as exc:
                logger.warning("Skipping %s.%s: %s", definition.name, member_name, exc)
                skipped.append(SkippedMember(definition.name, member_name, str(exc)))
                continue
            yield from names


def _orphan_edges(names: list[str], edges: list[GraphEdge]) -> list[GraphEdge]:
    """Artificial edges tying every orphan to the first connected definition.

    With no connected definition at all, the first orphan links to the
    second and every other orphan links to the first.
    """
    if len(names) < 2:
        return []

    connected = {edge.source for edge in edges} | {edge.target for edge in edges}
    orphans = [name for name in names if name not in connected]
    if not orphans:
        return []

    anchor = next((name for name in names if name in connected), None)
    artificial: list[GraphEdge] = []
    if anchor is None:
        anchor = orphans[0]
        artificial.append(GraphEdge(orphans[0], orphans[1], artificial=True))
        orphans = orphans[2:]

    artificial.extend(GraphEdge(orphan, anchor, artificial=True) for orphan in orphans)
    return artificial


def _topological_order(by_name: dict[str, Definition], dependencies: dict[str, dict[str, None]]) -> list[Definition]:
    """Depth-first, dependencies before dependents; a node already on the stack is treated as satisfied."""
    ordered: list[Definition] = []
    visited: set[str] = set()
    visiting: set[str] = set()

    for root in by_name:
        if root in visited:
            continue
        visiting.add(root)
        stack = [(root, iter(dependencies[root]))]
        while stack:
            name, pending = stack[-1]
            for dep in pending:
                if dep in visited or dep in visiting:
                    continue
                visiting.add(dep)
                stack.append((dep, iter(dependencies[dep])))
                break
            else:
                stack.pop()
                visiting.discard(name)
                visited.add(name)
                ordered.append(by_name[name])

    return ordered
