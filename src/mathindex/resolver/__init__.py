"""Reference resolution package."""

from .reference_resolver import (
    MatchTier,
    NavigationTarget,
    Reference,
    ReferenceKind,
    ReferenceResolver,
    Unresolved,
    locate_section,
)
from .rules import LEGACY_REWRITES, LegacyRewrite, anchor_candidates

__all__ = [
    "MatchTier",
    "NavigationTarget",
    "Reference",
    "ReferenceKind",
    "ReferenceResolver",
    "Unresolved",
    "locate_section",
    "LEGACY_REWRITES",
    "LegacyRewrite",
    "anchor_candidates",
]
