"""Exceptions shared across mathindex."""

from __future__ import annotations


class MathIndexError(Exception):
    """Base class for mathindex errors."""


class ContentCorruptedError(MathIndexError):
    """A content file's ``content`` value is neither a mapping nor an array."""

    def __init__(self, file: str, found: str) -> None:
        super().__init__(f"{file}: content must be an object or array, got {found}")
        self.file = file


class MalformedTypeExpression(MathIndexError):
    """A member type expression is not a string and cannot be tokenized."""
