"""Documentation-set processor CLI."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docset.config import settings
from docset.errors import CorpusDiscoveryError
from docset.logging import bind_context, clear_context, configure_logging
from docset.models import OutputFormat
from docset.pipeline import CorpusLoader, CorpusRun, RenderOptions

app = typer.Typer(
    name="docset",
    help="Parse, cross-reference and render a corpus of reference pages",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


@app.callback()
def main(
    log_level: str = typer.Option(settings.log_level, help="Log level (DEBUG, INFO, WARNING, ...)"),
    log_format: str = typer.Option(settings.log_format, help="Log output: console or json"),
) -> None:
    """Configure logging for every command."""
    configure_logging(log_level, log_format)


def _report(run: CorpusRun) -> None:
    """Print skipped documents and warnings to diagnostic output."""
    if run.failures:
        table = Table(title="Skipped documents", title_justify="left")
        table.add_column("Document")
        table.add_column("Error")
        table.add_column("Reason")
        for failure in run.failures:
            table.add_row(
                escape(failure.document_id),
                failure.error_type,
                escape(failure.message),
            )
        err_console.print(table)

    for diagnostic in run.warnings:
        err_console.print(f"[yellow]warning[/yellow] {escape(str(diagnostic))}")


def _load_or_exit(loader: CorpusLoader) -> CorpusRun:
    try:
        return loader.load()
    except CorpusDiscoveryError as e:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=1)


@app.command()
def build(
    source: Path = typer.Option(..., "--source", help="Corpus root directory"),
    out: Path = typer.Option(..., "--out", help="Output directory"),
    output_format: OutputFormat = typer.Option(
        OutputFormat(settings.output_format), "--format", help="Output format"
    ),
    include_source_links: bool = typer.Option(
        settings.include_source_links,
        "--include-source-links/--no-source-links",
        help="Link each output page to its source file",
    ),
    workers: int = typer.Option(settings.max_workers, help="Number of parallel workers"),
    strict: bool = typer.Option(False, help="Exit non-zero if any document is skipped"),
) -> None:
    """Render every document of a corpus into an output directory."""
    console.print(f"[bold blue]Building:[/bold blue] {escape(str(source))}")
    console.print(f"[dim]Format: {output_format.value}, Output: {escape(str(out))}[/dim]")

    bind_context(source=str(source))
    try:
        loader = CorpusLoader(source, max_workers=workers)
        run = _load_or_exit(loader)
        options = RenderOptions(
            format=output_format,
            include_source_links=include_source_links,
            source_link_base=settings.source_link_base,
        )
        loader.render_all(run, out, options)
    finally:
        clear_context()

    _report(run)
    console.print(
        f"[green]Rendered {len(run.rendered)} of {len(run.sources)} documents[/green]"
        f" ({len(run.failures)} skipped, {len(run.warnings)} warnings)"
    )
    raise typer.Exit(code=run.exit_code(strict))


@app.command()
def check(
    source: Path = typer.Option(..., "--source", help="Corpus root directory"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    strict: bool = typer.Option(False, help="Exit non-zero if any document is skipped"),
) -> None:
    """Parse and cross-reference a corpus without writing output."""
    run = _load_or_exit(CorpusLoader(source))

    if as_json:
        report = {
            "documents": len(run.documents),
            "symbols": len(run.symbols),
            "references": {d.id: sorted(d.references) for d in run.documents},
            "failures": [f.model_dump(mode="json") for f in run.failures],
            "diagnostics": [d.model_dump(mode="json") for d in run.diagnostics],
        }
        typer.echo(json.dumps(report, indent=2))
    else:
        _report(run)
        console.print(
            f"[bold]{len(run.documents)}[/bold] documents parsed, "
            f"[bold]{len(run.symbols)}[/bold] symbols, "
            f"{len(run.failures)} skipped, {len(run.warnings)} warnings"
        )
    raise typer.Exit(code=run.exit_code(strict))


@app.command()
def symbols(
    source: Path = typer.Option(..., "--source", help="Corpus root directory"),
    kind: Optional[str] = typer.Option(None, help="Only show 'type' or 'routine' symbols"),
) -> None:
    """List the symbols defined across a corpus."""
    run = _load_or_exit(CorpusLoader(source))

    table = Table(title=f"Symbols in {escape(str(source))}", title_justify="left")
    table.add_column("Name")
    table.add_column("Kind")
    table.add_column("Document")
    table.add_column("Anchor")
    for name, symbol in sorted(run.symbols.symbols.items()):
        if kind and symbol.kind.value != kind:
            continue
        table.add_row(escape(name), symbol.kind.value, escape(symbol.document_id), symbol.anchor or "")
    console.print(table)


if __name__ == "__main__":
    app()
