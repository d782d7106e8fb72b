"""Core intermediate representation (IR) for exported math documents."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Link targets
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Url:
    url: str


@dataclass(frozen=True, slots=True)
class InternalPageId:
    page_id: str


@dataclass(frozen=True, slots=True)
class DefinitionId:
    term_id: str
    theory_context: str | None = None


@dataclass(frozen=True, slots=True)
class DefinitionAspect:
    term_id: str
    aspect_id: str = ""
    theory_context: str | None = None


@dataclass(frozen=True, slots=True)
class TheoremId:
    theorem_id: str
    theory_context: str | None = None


@dataclass(frozen=True, slots=True)
class GlossaryTerm:
    term: str


@dataclass(frozen=True, slots=True)
class InteractiveElementId:
    element_id: str


@dataclass(frozen=True, slots=True)
class UnrecognizedTarget:
    tag: str
    raw: Any = None


LinkTarget = (
    Url
    | InternalPageId
    | DefinitionId
    | DefinitionAspect
    | TheoremId
    | GlossaryTerm
    | InteractiveElementId
    | UnrecognizedTarget
)


# ---------------------------------------------------------------------------
# Rich text
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class MathExpression:
    """Opaque math node; ``text`` is a flattened, display-only rendition."""

    text: str
    node_id: str | None = None
    raw: Any = None


@dataclass(frozen=True, slots=True)
class Text:
    text: str


@dataclass(frozen=True, slots=True)
class MathInline:
    math: MathExpression


@dataclass(frozen=True, slots=True)
class Link:
    content: tuple[RichTextSegment, ...]
    target: LinkTarget
    tooltip: str | None = None


@dataclass(frozen=True, slots=True)
class FootnoteReference:
    label: str


@dataclass(frozen=True, slots=True)
class StyledText:
    text: str
    styles: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CodeInline:
    code: str


@dataclass(frozen=True, slots=True)
class UnrecognizedSegment:
    tag: str
    raw: Any = None


RichTextSegment = Text | MathInline | Link | FootnoteReference | StyledText | CodeInline | UnrecognizedSegment


def plain_text(segments: tuple[RichTextSegment, ...]) -> str:
    parts: list[str] = []
    for segment in segments:
        if isinstance(segment, (Text, StyledText)):
            parts.append(segment.text)
        elif isinstance(segment, MathInline):
            parts.append(segment.math.text)
        elif isinstance(segment, Link):
            parts.append(plain_text(segment.content))
        elif isinstance(segment, CodeInline):
            parts.append(segment.code)
    return "".join(parts)


# ---------------------------------------------------------------------------
# Section content
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Paragraph:
    segments: tuple[RichTextSegment, ...] = ()
    alignment: str | None = None


@dataclass(frozen=True, slots=True)
class SubSection:
    section: Section


@dataclass(frozen=True, slots=True)
class MathBlock:
    math: MathExpression
    label: str | None = None
    caption: str | None = None


@dataclass(frozen=True, slots=True)
class ListBlock:
    items: tuple[tuple[SectionContentNode, ...], ...] = ()
    style: str | None = None


@dataclass(frozen=True, slots=True)
class TableBlock:
    headers: tuple[tuple[SectionContentNode, ...], ...] = ()
    rows: tuple[tuple[tuple[SectionContentNode, ...], ...], ...] = ()


@dataclass(frozen=True, slots=True)
class SelectableProperty:
    name: str
    current_variant: str
    all_variants: tuple[str, ...] = ()
    description: str | None = None


@dataclass(frozen=True, slots=True)
class DefinitionBlock:
    term_display: tuple[RichTextSegment, ...] = ()
    formal_term: MathExpression | None = None
    label: str | None = None
    body: tuple[SectionContentNode, ...] = ()
    selectable_properties: tuple[SelectableProperty, ...] = ()


@dataclass(frozen=True, slots=True)
class TheoremBlock:
    kind: str = "Theorem"
    label: str | None = None
    statement: tuple[SectionContentNode, ...] = ()
    proof: tuple[SectionContentNode, ...] | None = None


@dataclass(frozen=True, slots=True)
class ExampleBlock:
    title: str | None = None
    content: tuple[SectionContentNode, ...] = ()


@dataclass(frozen=True, slots=True)
class UnrecognizedNode:
    tag: str
    raw: Any = None


StructuredMath = DefinitionBlock | TheoremBlock | ExampleBlock

SectionContentNode = (
    Paragraph
    | SubSection
    | MathBlock
    | ListBlock
    | TableBlock
    | DefinitionBlock
    | TheoremBlock
    | ExampleBlock
    | UnrecognizedNode
)


@dataclass(frozen=True, slots=True)
class Section:
    id: str
    title: Paragraph | None = None
    content: tuple[SectionContentNode, ...] = ()
    metadata: tuple[tuple[str, str], ...] = ()

    @property
    def title_text(self) -> str:
        return plain_text(self.title.segments) if self.title else ""

    def meta(self, key: str, default: str | None = None) -> str | None:
        for k, value in self.metadata:
            if k == key:
                return value
        return default

    def walk(self) -> Iterator[Section]:
        """Yield this section and every nested sub-section, depth first."""
        yield self
        for node in self.content:
            if isinstance(node, SubSection):
                yield from node.section.walk()


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class DocumentStructure:
    abstract_content: Section | None = None
    body: tuple[Section, ...] = ()


@dataclass(frozen=True, slots=True)
class ScientificPaper:
    title: str
    paper_type: str = "Research"
    structure: DocumentStructure = field(default_factory=DocumentStructure)

    @property
    def kind(self) -> str:
        return "ScientificPaper"


@dataclass(frozen=True, slots=True)
class OtherDocument:
    """Any document kind other than a scientific paper, kept with its raw payload."""

    kind: str
    title: str = ""
    structure: DocumentStructure = field(default_factory=DocumentStructure)
    raw: Any = None

    @property
    def paper_type(self) -> str:
        return self.kind


DocumentContent = ScientificPaper | OtherDocument


@dataclass(frozen=True, slots=True)
class ContentDocument:
    id: str
    content_type: DocumentContent

    @property
    def title(self) -> str:
        return self.content_type.title

    @property
    def structure(self) -> DocumentStructure:
        return self.content_type.structure

    def sections(self) -> Iterator[Section]:
        """Every section of the document: abstract first, then the body, nested ones included."""
        if self.structure.abstract_content is not None:
            yield from self.structure.abstract_content.walk()
        for section in self.structure.body:
            yield from section.walk()
