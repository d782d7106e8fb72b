"""Render document IR and definition graphs into self-contained HTML pages."""

from __future__ import annotations

import html
from dataclasses import asdict, dataclass
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from mathindex.graph.dependency_graph import GraphResult
from mathindex.model.base import (
    CodeInline,
    ContentDocument,
    DefinitionAspect,
    DefinitionBlock,
    DefinitionId,
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
    Paragraph,
    RichTextSegment,
    Section,
    SectionContentNode,
    StyledText,
    SubSection,
    TableBlock,
    Text,
    TheoremBlock,
    TheoremId,
    UnrecognizedNode,
    UnrecognizedSegment,
    Url,
)
from mathindex.resolver.reference_resolver import NavigationTarget, Reference, ReferenceResolver

_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "template"

_STYLE_TAGS = {
    "Bold": "strong",
    "Italic": "em",
    "Underline": "u",
    "Strikethrough": "s",
    "Superscript": "sup",
    "Subscript": "sub",
}


@dataclass(slots=True)
class RenderedSection:
    level: int
    heading_tag: int
    title: str
    number: str
    anchor: str
    html: str


class HTMLRenderer:
    """Render parsed IR into the bundled page templates."""

    def __init__(self, template_dir: Path | None = None, resolver: ReferenceResolver | None = None) -> None:
        loader = FileSystemLoader(str(template_dir or _TEMPLATE_DIR))
        self._env = Environment(loader=loader, autoescape=True, trim_blocks=True, lstrip_blocks=True)
        self._resolver = resolver
        self._theory: str | None = None

    def render(
        self,
        document: ContentDocument,
        *,
        theory: str | None = None,
        title_override: str | None = None,
    ) -> str:
        page_title = title_override or document.title or document.id
        self._theory = theory

        abstract_html = ""
        abstract = document.structure.abstract_content
        if abstract is not None:
            abstract_html = self._render_nodes(abstract.content)

        rendered_sections = self._render_sections(document.structure.body)
        toc_items = [
            {
                "level": section.level,
                "title": section.title,
                "number": section.number,
                "anchor": section.anchor,
            }
            for section in rendered_sections
        ]

        template = self._env.get_template("document.html")
        return template.render(
            page_title=page_title,
            document_id=document.id,
            document_kind=document.content_type.kind,
            abstract_html=abstract_html,
            toc_items=toc_items,
            sections=[asdict(s) for s in rendered_sections],
        )

    def render_definitions(self, theory: str, graph: GraphResult) -> str:
        """List definitions in display order with their (real) dependencies."""
        items = [
            {
                "name": definition.name,
                "kind": definition.kind,
                "docs": definition.docs,
                "anchor": f"definition-{definition.name}",
                "members": [
                    {"name": member.name, "type": member.type or member.type_info or ""}
                    for member in definition.members
                ],
                "depends_on": graph.dependencies_of(definition.name),
            }
            for definition in graph.ordered
        ]
        template = self._env.get_template("definitions.html")
        return template.render(
            page_title=f"{theory} definitions",
            definitions=items,
            edges=graph.to_dict()["edges"],
        )

    # -- sections ----------------------------------------------------------

    def _render_sections(self, sections: tuple[Section, ...]) -> list[RenderedSection]:
        counters = [0, 0, 0]
        used_anchors: set[str] = set()
        rendered: list[RenderedSection] = []

        def visit(section: Section, level: int) -> None:
            level = max(1, min(3, level))
            counters[level - 1] += 1
            for idx in range(level, len(counters)):
                counters[idx] = 0

            number = ".".join(str(n) for n in counters[:level] if n > 0)
            anchor = _dedupe_anchor(section.id or f"s-{number}", used_anchors)

            own_nodes = [node for node in section.content if not isinstance(node, SubSection)]
            rendered.append(
                RenderedSection(
                    level=level,
                    heading_tag=min(level + 1, 6),
                    title=section.title_text or section.id,
                    number=number,
                    anchor=anchor,
                    html=self._render_nodes(own_nodes),
                )
            )
            for node in section.content:
                if isinstance(node, SubSection):
                    visit(node.section, level + 1)

        for section in sections:
            visit(section, 1)
        return rendered

    # -- blocks --------------------------------------------------------------

    def _render_nodes(self, nodes: tuple[SectionContentNode, ...] | list[SectionContentNode]) -> str:
        return "\n".join(part for part in (self._render_block(node) for node in nodes) if part)

    def _render_block(self, block: SectionContentNode) -> str:
        if isinstance(block, Paragraph):
            return f'<div class="wiki-paragraph">{self._render_segments(block.segments)}</div>'

        if isinstance(block, SubSection):
            title = html.escape(block.section.title_text)
            return (
                f'<div class="wiki-subsection" id="{html.escape(block.section.id)}">'
                f"<h4>{title}</h4>{self._render_nodes(block.section.content)}</div>"
            )

        if isinstance(block, MathBlock):
            label = f'<span class="wiki-math-label">{html.escape(block.label)}</span>' if block.label else ""
            caption = f'<div class="wiki-caption">{html.escape(block.caption)}</div>' if block.caption else ""
            return f'<div class="wiki-math-block">{self._render_math(block.math, display=True)}{label}{caption}</div>'

        if isinstance(block, ListBlock):
            tag = "ol" if block.style and block.style.startswith("Ordered") else "ul"
            items = "".join(f"<li>{self._render_nodes(item)}</li>" for item in block.items)
            return f'<{tag} class="wiki-list">{items}</{tag}>'

        if isinstance(block, TableBlock):
            return self._render_table(block)

        if isinstance(block, DefinitionBlock):
            label = html.escape(block.label) if block.label else "Definition"
            term = self._render_segments(block.term_display)
            formal = self._render_math(block.formal_term, display=False) if block.formal_term else ""
            props = "".join(
                f'<li><strong>{html.escape(p.name)}</strong>: {html.escape(p.current_variant)}</li>'
                for p in block.selectable_properties
            )
            props_html = f'<ul class="wiki-properties">{props}</ul>' if props else ""
            return (
                '<div class="wiki-definition">'
                f'<div class="wiki-block-title">{label}: {term} {formal}</div>'
                f"{self._render_nodes(block.body)}{props_html}</div>"
            )

        if isinstance(block, TheoremBlock):
            title = html.escape(block.kind + (f" ({block.label})" if block.label else ""))
            proof = ""
            if block.proof is not None:
                proof = f'<div class="wiki-proof"><em>Proof.</em> {self._render_nodes(block.proof)}</div>'
            return (
                '<div class="wiki-theorem">'
                f'<div class="wiki-block-title">{title}</div>{self._render_nodes(block.statement)}{proof}</div>'
            )

        if isinstance(block, ExampleBlock):
            title = html.escape(block.title or "Example")
            return (
                '<div class="wiki-example">'
                f'<div class="wiki-block-title">{title}</div>{self._render_nodes(block.content)}</div>'
            )

        if isinstance(block, UnrecognizedNode):
            return _unrecognized("content type", block.tag)

        return _unrecognized("content type", type(block).__name__)

    def _render_table(self, block: TableBlock) -> str:
        head_html = ""
        if block.headers:
            head_cells = "".join(f"<th>{self._render_nodes(cell)}</th>" for cell in block.headers)
            head_html = f"<thead><tr>{head_cells}</tr></thead>"

        row_html = ""
        if block.rows:
            rows = []
            for row in block.rows:
                cells = "".join(f"<td>{self._render_nodes(cell)}</td>" for cell in row)
                rows.append(f"<tr>{cells}</tr>")
            row_html = "<tbody>" + "".join(rows) + "</tbody>"

        return f'<div class="wiki-table-wrap"><table class="wiki-table">{head_html}{row_html}</table></div>'

    # -- inline ----------------------------------------------------------------

    def _render_segments(self, segments: tuple[RichTextSegment, ...]) -> str:
        return "".join(self._render_segment(segment) for segment in segments)

    def _render_segment(self, segment: RichTextSegment) -> str:
        if isinstance(segment, Text):
            return html.escape(segment.text)
        if isinstance(segment, MathInline):
            return self._render_math(segment.math, display=False)
        if isinstance(segment, StyledText):
            fragment = html.escape(segment.text)
            for style in segment.styles:
                tag = _STYLE_TAGS.get(style)
                if tag:
                    fragment = f"<{tag}>{fragment}</{tag}>"
            return fragment
        if isinstance(segment, CodeInline):
            return f"<code>{html.escape(segment.code)}</code>"
        if isinstance(segment, FootnoteReference):
            label = html.escape(segment.label)
            return f'<sup class="wiki-fn-content"><a class="wiki-footnote-ref" href="#fn-{label}">[{label}]</a></sup>'
        if isinstance(segment, Link):
            return self._render_link(segment)
        if isinstance(segment, UnrecognizedSegment):
            return _unrecognized("segment", segment.tag, inline=True)
        return _unrecognized("segment", type(segment).__name__, inline=True)

    def _render_link(self, link: Link) -> str:
        href, kind = self._link_href(link.target)
        inner = self._render_segments(link.content)
        title = f' title="{html.escape(link.tooltip)}"' if link.tooltip else ""
        if href is None:
            return f'<span class="wiki-link wiki-link-{kind}"{title}>{inner}</span>'
        return f'<a class="wiki-link wiki-link-{kind}" href="{html.escape(href)}"{title}>{inner}</a>'

    def _link_href(self, target: LinkTarget) -> tuple[str | None, str]:
        if isinstance(target, Url):
            return target.url, "url"
        if isinstance(target, InternalPageId):
            return f"#{target.page_id}", "internal"
        if isinstance(target, (DefinitionId, DefinitionAspect, TheoremId)):
            kind = "theorem" if isinstance(target, TheoremId) else "definition"
            reference = Reference.from_link_target(target, default_theory=self._theory)
            if reference is None:
                return None, kind
            if self._resolver is None:
                return f"/math/{kind}/{reference.theory_context}/{reference.term_id}", kind
            resolution = self._resolver.resolve(reference)
            if isinstance(resolution, NavigationTarget):
                return resolution.path, kind
            return resolution.fallback_path, f"{kind} wiki-link-unresolved"
        if isinstance(target, GlossaryTerm):
            return f"#glossary-{target.term}", "glossary"
        if isinstance(target, InteractiveElementId):
            return f"#{target.element_id}", "interactive"
        return None, "unrecognized"

    def _render_math(self, math: MathExpression, *, display: bool) -> str:
        css = "wiki-math-display" if display else "wiki-math-inline"
        return f'<code class="{css}">{html.escape(math.text)}</code>'


def _unrecognized(what: str, tag: str, *, inline: bool = False) -> str:
    element = "span" if inline else "div"
    return (
        f'<{element} class="wiki-unrecognized" data-tag="{html.escape(tag)}">'
        f"[Unrecognized {what}: {html.escape(tag)}]</{element}>"
    )


def _dedupe_anchor(anchor: str, used: set[str]) -> str:
    if anchor not in used:
        used.add(anchor)
        return anchor

    idx = 2
    while True:
        candidate = f"{anchor}-{idx}"
        if candidate not in used:
            used.add(candidate)
            return candidate
        idx += 1
