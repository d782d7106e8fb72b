"""Decode exporter JSON (externally tagged unions) into the document IR.

Every union value on the wire is an object with a single key naming the
variant, e.g. ``{"Paragraph": {"segments": [...]}}``. Unknown tags, and objects
carrying zero or several tags, decode to the matching ``Unrecognized*`` variant
so that newer exports never break older readers.
"""

from __future__ import annotations

from typing import Any

from .base import (
    CodeInline,
    ContentDocument,
    DefinitionAspect,
    DefinitionBlock,
    DefinitionId,
    DocumentStructure,
    ExampleBlock,
    FootnoteReference,
    GlossaryTerm,
    InteractiveElementId,
    InternalPageId,
    Link,
    LinkTarget,
    ListBlock,
    MathBlock,
    MathExpression,
    MathInline,
    OtherDocument,
    Paragraph,
    RichTextSegment,
    ScientificPaper,
    Section,
    SectionContentNode,
    SelectableProperty,
    StyledText,
    SubSection,
    TableBlock,
    Text,
    TheoremBlock,
    TheoremId,
    UnrecognizedNode,
    UnrecognizedSegment,
    UnrecognizedTarget,
    Url,
)


class DocumentDecodeError(ValueError):
    """Raised when a document is structurally unusable (no id, not an object)."""


def decode_document(raw: Any, doc_id: str | None = None) -> ContentDocument:
    if not isinstance(raw, dict):
        raise DocumentDecodeError(f"document must be an object, got {type(raw).__name__}")

    resolved_id = raw.get("id") or doc_id
    if not resolved_id or not isinstance(resolved_id, str):
        raise DocumentDecodeError("document has no id")

    return ContentDocument(id=resolved_id, content_type=decode_content_type(raw.get("content_type")))


def decode_content_type(raw: Any) -> ScientificPaper | OtherDocument:
    tag, payload = _single_tag(raw)
    if tag is None:
        return OtherDocument(kind="Unknown", raw=raw)

    body = payload if isinstance(payload, dict) else {}
    title = _as_text(body.get("title"))
    structure = decode_structure(body.get("structure"))

    if tag == "ScientificPaper":
        return ScientificPaper(
            title=title,
            paper_type=str(body.get("paper_type") or "Research"),
            structure=structure,
        )
    return OtherDocument(kind=tag, title=title, structure=structure, raw=payload)


def decode_structure(raw: Any) -> DocumentStructure:
    if not isinstance(raw, dict):
        return DocumentStructure()

    abstract = raw.get("abstract_content")
    return DocumentStructure(
        abstract_content=decode_section(abstract) if isinstance(abstract, dict) else None,
        body=tuple(decode_section(s) for s in _as_list(raw.get("body")) if isinstance(s, dict)),
    )


def decode_section(raw: dict[str, Any]) -> Section:
    title = raw.get("title")
    return Section(
        id=str(raw.get("id") or ""),
        title=_decode_paragraph(title) if isinstance(title, dict) else None,
        content=decode_nodes(raw.get("content")),
        metadata=_decode_metadata(raw.get("metadata")),
    )


# ---------------------------------------------------------------------------
# Section content nodes
# ---------------------------------------------------------------------------

def decode_nodes(raw: Any) -> tuple[SectionContentNode, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(decode_node(item) for item in raw)


def decode_node(raw: Any) -> SectionContentNode:
    tag, payload = _single_tag(raw)
    if tag is None:
        return UnrecognizedNode(tag=_describe_tags(raw), raw=raw)

    body = payload if isinstance(payload, dict) else {}

    if tag == "Paragraph":
        return _decode_paragraph(body)

    if tag == "SubSection":
        return SubSection(section=decode_section(body))

    if tag == "MathBlock":
        caption = body.get("caption")
        return MathBlock(
            math=decode_math(body.get("math")),
            label=_optional_text(body.get("label")),
            caption=_as_text(caption) or None,
        )

    if tag == "List":
        return ListBlock(
            items=tuple(
                decode_nodes(item.get("content")) for item in _as_list(body.get("items")) if isinstance(item, dict)
            ),
            style=_style_name(body.get("style")),
        )

    if tag == "Table":
        return _decode_table(body)

    if tag == "StructuredMath":
        return _decode_structured_math(payload)

    return UnrecognizedNode(tag=tag, raw=payload)


def _decode_table(body: dict[str, Any]) -> TableBlock:
    headers = tuple(
        decode_nodes(cell.get("content"))
        for cell in _as_list(body.get("headers"))
        if isinstance(cell, dict)
    )
    rows = tuple(
        tuple(decode_nodes(cell.get("content")) for cell in _as_list(row.get("cells")) if isinstance(cell, dict))
        for row in _as_list(body.get("rows"))
        if isinstance(row, dict)
    )
    return TableBlock(headers=headers, rows=rows)


def _decode_structured_math(raw: Any) -> SectionContentNode:
    tag, payload = _single_tag(raw)
    if tag is None:
        return UnrecognizedNode(tag=f"StructuredMath.{_describe_tags(raw)}", raw=raw)

    body = payload if isinstance(payload, dict) else {}

    if tag == "Definition":
        formal = body.get("formal_term")
        return DefinitionBlock(
            term_display=decode_segments(body.get("term_display")),
            formal_term=decode_math(formal) if formal is not None else None,
            label=_optional_text(body.get("label")),
            body=decode_nodes(body.get("body")),
            selectable_properties=tuple(
                SelectableProperty(
                    name=str(prop.get("name", "")),
                    current_variant=str(prop.get("current_variant", "")),
                    all_variants=tuple(str(v) for v in _as_list(prop.get("all_variants"))),
                    description=_optional_text(prop.get("description")),
                )
                for prop in _as_list(body.get("selectable_properties"))
                if isinstance(prop, dict)
            ),
        )

    if tag == "Theorem":
        proof = body.get("proof")
        return TheoremBlock(
            kind=str(body.get("kind") or "Theorem"),
            label=_optional_text(body.get("label")),
            statement=decode_nodes(body.get("statement")),
            proof=decode_nodes(proof.get("steps")) if isinstance(proof, dict) else None,
        )

    if tag == "Example":
        return ExampleBlock(title=_optional_text(body.get("title")), content=decode_nodes(body.get("content")))

    return UnrecognizedNode(tag=f"StructuredMath.{tag}", raw=payload)


# ---------------------------------------------------------------------------
# Rich text
# ---------------------------------------------------------------------------

def decode_segments(raw: Any) -> tuple[RichTextSegment, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(decode_segment(item) for item in raw)


def decode_segment(raw: Any) -> RichTextSegment:
    tag, payload = _single_tag(raw)
    if tag is None:
        return UnrecognizedSegment(tag=_describe_tags(raw), raw=raw)

    if tag == "Text":
        return Text(text=_as_text(payload))

    if tag in {"MathInline", "Math"}:
        return MathInline(math=decode_math(payload))

    if tag == "Link":
        body = payload if isinstance(payload, dict) else {}
        return Link(
            content=decode_segments(body.get("content")),
            target=decode_link_target(body.get("target")),
            tooltip=_optional_text(body.get("tooltip")),
        )

    if tag == "FootnoteReference":
        return FootnoteReference(label=_as_text(payload))

    if tag == "StyledText":
        body = payload if isinstance(payload, dict) else {}
        return StyledText(
            text=_as_text(body.get("text")),
            styles=tuple(_style_name(s) or "" for s in _as_list(body.get("styles"))),
        )

    if tag == "CodeInline":
        return CodeInline(code=_as_text(payload))

    return UnrecognizedSegment(tag=tag, raw=payload)


def decode_link_target(raw: Any) -> LinkTarget:
    tag, payload = _single_tag(raw)
    if tag is None:
        return UnrecognizedTarget(tag=_describe_tags(raw), raw=raw)

    body = payload if isinstance(payload, dict) else {}

    if tag == "Url":
        return Url(url=_as_text(payload))
    if tag == "InternalPageId":
        return InternalPageId(page_id=_as_text(payload))
    if tag == "DefinitionId":
        return DefinitionId(
            term_id=str(body.get("term_id", "")),
            theory_context=_optional_text(body.get("theory_context")),
        )
    if tag == "DefinitionAspect":
        return DefinitionAspect(
            term_id=str(body.get("term_id", "")),
            aspect_id=str(body.get("aspect_id", "")),
            theory_context=_optional_text(body.get("theory_context")),
        )
    if tag == "TheoremId":
        # Older exports carry a bare id string without a theory context.
        if isinstance(payload, str):
            return TheoremId(theorem_id=payload)
        return TheoremId(
            theorem_id=str(body.get("theorem_id", "")),
            theory_context=_optional_text(body.get("theory_context")),
        )
    if tag == "GlossaryTerm":
        return GlossaryTerm(term=_as_text(payload))
    if tag == "InteractiveElementId":
        return InteractiveElementId(element_id=_as_text(payload))

    return UnrecognizedTarget(tag=tag, raw=payload)


def decode_math(raw: Any) -> MathExpression:
    node_id = raw.get("id") if isinstance(raw, dict) else None
    return MathExpression(text=_flatten_math(raw), node_id=node_id if isinstance(node_id, str) else None, raw=raw)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _decode_paragraph(body: dict[str, Any]) -> Paragraph:
    return Paragraph(segments=decode_segments(body.get("segments")), alignment=_style_name(body.get("alignment")))


def _decode_metadata(raw: Any) -> tuple[tuple[str, str], ...]:
    if isinstance(raw, dict):
        return tuple((str(k), str(v)) for k, v in raw.items())
    pairs: list[tuple[str, str]] = []
    for item in _as_list(raw):
        if isinstance(item, (list, tuple)) and len(item) == 2:
            pairs.append((str(item[0]), str(item[1])))
    return tuple(pairs)


def _as_list(raw: Any) -> list[Any]:
    return raw if isinstance(raw, list) else []


def _optional_text(raw: Any) -> str | None:
    if raw is None:
        return None
    return raw if isinstance(raw, str) else str(raw)


def _single_tag(raw: Any) -> tuple[str | None, Any]:
    if isinstance(raw, str):
        # Unit variants serialize as bare strings.
        return raw, None
    if isinstance(raw, dict) and len(raw) == 1:
        tag, payload = next(iter(raw.items()))
        return str(tag), payload
    return None, None


def _describe_tags(raw: Any) -> str:
    if isinstance(raw, dict):
        return "+".join(str(k) for k in raw) or "<empty>"
    return f"<{type(raw).__name__}>"


def _style_name(raw: Any) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        return raw
    tag, payload = _single_tag(raw)
    if tag is None:
        return None
    inner = _style_name(payload) if isinstance(payload, (str, dict)) else None
    return f"{tag}:{inner}" if inner else tag


def _as_text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict) and "segments" in raw:
        return "".join(_as_text(seg.get("Text")) for seg in _as_list(raw["segments"]) if isinstance(seg, dict))
    return str(raw)


def _flatten_math(raw: Any) -> str:
    """Best-effort textual rendition of a math node tree (leaf ``Text``/``Identifier`` values)."""
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (int, float)):
        return str(raw)
    if isinstance(raw, list):
        return " ".join(part for part in (_flatten_math(item) for item in raw) if part)
    if isinstance(raw, dict):
        for key in ("Text", "Identifier", "latex"):
            value = raw.get(key)
            if isinstance(value, str):
                return value
        if "content" in raw:
            return _flatten_math(raw["content"])
        return " ".join(part for part in (_flatten_math(v) for k, v in raw.items() if k != "id") if part)
    return ""
