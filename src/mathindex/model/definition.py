"""Type-level definitions (structs, enums, traits) consumed by the dependency graph."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class Member:
    name: str
    type: str | None = None
    type_info: str | None = None
    docs: str = ""

    def type_expressions(self) -> list[str]:
        return [expr for expr in (self.type, self.type_info) if isinstance(expr, str) and expr]


@dataclass(frozen=True, slots=True)
class Definition:
    name: str
    kind: str = "Struct"
    members: tuple[Member, ...] = ()
    extends: tuple[str, ...] = ()
    implements: tuple[str, ...] = ()
    docs: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Definition:
        name = raw.get("name")
        if not name or not isinstance(name, str):
            raise ValueError("definition has no name")

        members: list[Member] = []
        members_raw = raw.get("members") or []
        if not isinstance(members_raw, list):
            raise ValueError(f"definition {name}: members must be an array")
        for item in members_raw:
            if not isinstance(item, dict):
                continue
            members.append(
                Member(
                    name=str(item.get("name") or "unnamed"),
                    type=item.get("type") if isinstance(item.get("type"), str) else None,
                    type_info=item.get("type_info") if isinstance(item.get("type_info"), str) else None,
                    docs=str(item.get("docs") or ""),
                )
            )

        return cls(
            name=name,
            kind=str(raw.get("kind") or "Struct"),
            members=tuple(members),
            extends=_type_list(name, "extends", raw.get("extends")),
            implements=_type_list(name, "implements", raw.get("implements")),
            docs=str(raw.get("docs") or ""),
        )


def _type_list(name: str, key: str, raw: Any) -> tuple[str, ...]:
    # A single supertype may be exported as a bare string.
    if isinstance(raw, str):
        return (raw,) if raw else ()
    if isinstance(raw, list):
        return tuple(str(x) for x in raw if x is not None)
    if raw is None:
        return ()
    raise ValueError(f"definition {name}: {key} must be an array")
