"""mathindex CLI entrypoint."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click

from mathindex.errors import ContentCorruptedError
from mathindex.graph.dependency_graph import DependencyGraphBuilder
from mathindex.renderer.html_renderer import HTMLRenderer
from mathindex.resolver.reference_resolver import NavigationTarget, Reference, ReferenceKind, ReferenceResolver
from mathindex.store.content_store import ContentStore, FileKind, LoadFailed, TheorySnapshot

_KIND_CHOICE = click.Choice([kind.value for kind in ReferenceKind], case_sensitive=False)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    envvar="MATHINDEX_ROOT",
    default=".",
    show_default=True,
    help="Directory holding exported {theory}.{definitions|theorems|types}.json files",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, root: Path, verbose: bool) -> None:
    """Resolve references and build dependency graphs over exported math theories."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = ContentStore(root)


@main.command()
@click.argument("theory")
@click.argument("term_id", required=False)
@click.option("--kind", type=_KIND_CHOICE, default="definition", show_default=True)
@click.pass_obj
def resolve(store: ContentStore, theory: str, term_id: str | None, kind: str) -> None:
    """Resolve TERM_ID within THEORY and print the navigation target as JSON."""
    ref_kind = ReferenceKind(kind.lower())
    _load(store, theory)

    if ref_kind is ReferenceKind.THEORY:
        reference = Reference.theory(theory)
    elif not term_id:
        raise click.UsageError("TERM_ID is required for definition and theorem references")
    else:
        reference = Reference(ref_kind, term_id, theory)

    resolution = ReferenceResolver(store).resolve(reference)
    click.echo(json.dumps(resolution.to_dict(), indent=2, ensure_ascii=False))


@main.command()
@click.argument("theory")
@click.pass_obj
def graph(store: ContentStore, theory: str) -> None:
    """Print the definition dependency graph of THEORY as JSON."""
    _require_file(store, theory, FileKind.TYPES)
    result = DependencyGraphBuilder().build(store.definitions(theory))
    payload = result.to_dict()
    payload["ordered"] = [d.name for d in result.ordered]
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@main.command()
@click.argument("theory")
@click.argument("doc_id")
@click.option("--output", "-o", type=click.Path(path_type=Path), required=True, help="Output HTML path")
@click.option("--kind", type=click.Choice(["definition", "theorem"]), default="definition", show_default=True)
@click.option("--title", type=str, default=None, help="Override document title")
@click.pass_obj
def render(store: ContentStore, theory: str, doc_id: str, output: Path, kind: str, title: str | None) -> None:
    """Render DOC_ID of THEORY into a self-contained HTML file."""
    file_kind = FileKind.THEOREMS if kind == "theorem" else FileKind.DEFINITIONS
    file = _require_file(store, theory, file_kind)

    resolver = ReferenceResolver(store)
    document = store.get_document(file, doc_id)
    if document is None:
        resolution = resolver.resolve(Reference(ReferenceKind(kind), doc_id, theory))
        if isinstance(resolution, NavigationTarget) and resolution.document_id:
            document = store.get_document(file, resolution.document_id)
    if document is None:
        raise click.ClickException(f"No document {doc_id!r} in {file}")

    html = HTMLRenderer(resolver=resolver).render(document, theory=theory, title_override=title)
    _write(output, html)


@main.command()
@click.argument("theory")
@click.option("--output", "-o", type=click.Path(path_type=Path), required=True, help="Output HTML path")
@click.pass_obj
def definitions(store: ContentStore, theory: str, output: Path) -> None:
    """Render THEORY's definitions in dependency order."""
    _require_file(store, theory, FileKind.TYPES)
    result = DependencyGraphBuilder().build(store.definitions(theory))
    _write(output, HTMLRenderer().render_definitions(theory, result))


@main.command()
@click.argument("theory")
@click.argument("query")
@click.option("--kind", type=click.Choice(["definition", "theorem"]), default="definition", show_default=True)
@click.pass_obj
def search(store: ContentStore, theory: str, query: str, kind: str) -> None:
    """Search document and section titles of THEORY."""
    file_kind = FileKind.THEOREMS if kind == "theorem" else FileKind.DEFINITIONS
    file = _require_file(store, theory, file_kind)
    for hit in store.search(file, query):
        click.echo(f"{hit.relevance}\t{hit.id}\t{hit.document.title}")


def _require_file(store: ContentStore, theory: str, kind: FileKind) -> str:
    snapshot = _load(store, theory)
    name = store.file_for(theory, kind)
    result = snapshot.files[name]
    if isinstance(result, LoadFailed):
        raise click.ClickException(f"Cannot load {name}: {result.reason}")
    return name


def _load(store: ContentStore, theory: str) -> TheorySnapshot:
    try:
        return store.load(theory)
    except ContentCorruptedError as exc:
        raise click.ClickException(str(exc)) from exc


def _write(output: Path, html: str) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(html, encoding="utf-8")
    click.echo(f"Rendered: {output}")


if __name__ == "__main__":  # pragma: no cover
    main()
