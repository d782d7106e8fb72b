"""Document and definition model package."""

from .base import (
    ContentDocument,
    DefinitionAspect,
    DefinitionBlock,
    DefinitionId,
    DocumentStructure,
    ExampleBlock,
    Link,
    ListBlock,
    MathBlock,
    MathInline,
    OtherDocument,
    Paragraph,
    ScientificPaper,
    Section,
    SubSection,
    TableBlock,
    Text,
    TheoremBlock,
    TheoremId,
    UnrecognizedNode,
)
from .decode import DocumentDecodeError, decode_document
from .definition import Definition, Member

__all__ = [
    "ContentDocument",
    "DefinitionAspect",
    "DefinitionBlock",
    "DefinitionId",
    "DocumentStructure",
    "ExampleBlock",
    "Link",
    "ListBlock",
    "MathBlock",
    "MathInline",
    "OtherDocument",
    "Paragraph",
    "ScientificPaper",
    "Section",
    "SubSection",
    "TableBlock",
    "Text",
    "TheoremBlock",
    "TheoremId",
    "UnrecognizedNode",
    "DocumentDecodeError",
    "decode_document",
    "Definition",
    "Member",
]
