"""Parse command implementation."""

from pathlib import Path

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from epub_ingest.config import ParserConfig
from epub_ingest.core.parser_factory import ParserFactory
from epub_ingest.models.epub import EpubDocument


def parse_book(book_path: Path, config: ParserConfig, console: Console, quiet: bool) -> EpubDocument:
    """Parse a book from disk, with a spinner unless quiet."""
    parser = ParserFactory.create(config)
    data = book_path.read_bytes()
    if quiet:
        return parser.parse(data, book_path.name)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(f"Parsing {book_path.name}...", total=None)
        return parser.parse(data, book_path.name)


def execute_parse(
    book_path: Path,
    output: Path | None,
    config: ParserConfig,
    pretty: bool,
    console: Console,
) -> None:
    """Execute the parse command."""
    document = parse_book(book_path, config, console, quiet=output is None)
    payload = document.to_json(indent=2 if pretty else None)

    if output is None:
        typer.echo(payload)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(payload, encoding="utf-8")

    summary = document.summary()
    console.print(
        f"[green]Wrote {output}[/] "
        f"[dim]({summary['chapters']} chapters, {summary['words']:,} words, "
        f"~{summary['readingTime']} min)[/]"
    )
    if summary["warnings"] or summary["errors"]:
        console.print(
            f"[yellow]{summary['warnings']} warning(s), {summary['errors']} error(s) "
            f"- run 'epub-ingest info' for details[/]"
        )
