"""Main CLI application."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from epub_ingest.commands.info import execute_info
from epub_ingest.commands.pair import execute_pair
from epub_ingest.commands.parse import execute_parse
from epub_ingest.config import ParserConfig
from epub_ingest.core.parser_factory import ParserFactory
from epub_ingest.errors import FatalParseError

app = typer.Typer(
    name="epub-ingest",
    help="Parse EPUB files into a structured document model.",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)

BookArgument = Annotated[
    Path,
    typer.Argument(
        help="Path to the book file (.epub, or .zip containing one)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
]
BackendOption = Annotated[
    str,
    typer.Option(
        "--backend",
        "-b",
        help="Parsing backend: soup (lxml/BeautifulSoup with regex fallback) or regex",
    ),
]


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
) -> None:
    """Parse EPUB files into a structured document model."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
        force=True,
    )


def _validate(book_path: Path) -> None:
    if not ParserFactory.is_supported(book_path):
        console.print(f"[red]Unsupported file format: {book_path.suffix}[/]")
        console.print("[dim]Supported formats: .epub, .zip[/]")
        raise typer.Exit(1)


def _config(backend: str) -> ParserConfig:
    try:
        return ParserConfig(backend=backend)  # type: ignore[arg-type]
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(1)


def _report(error: FatalParseError) -> None:
    console.print(f"[red]Error: {error}[/]")
    if error.hint:
        console.print(f"[dim]{error.hint}[/]")


@app.command()
def parse(
    book_path: BookArgument,
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--output",
            "-o",
            help="Write the document JSON here instead of stdout",
        ),
    ] = None,
    backend: BackendOption = "soup",
    pretty: Annotated[
        bool,
        typer.Option("--pretty", help="Indent the JSON output"),
    ] = False,
) -> None:
    """Parse an EPUB and emit the document model as JSON."""
    _validate(book_path)
    config = _config(backend)

    try:
        execute_parse(
            book_path=book_path,
            output=output,
            config=config,
            pretty=pretty,
            console=console,
        )
    except FatalParseError as e:
        _report(e)
        raise typer.Exit(1)


@app.command()
def info(
    book_path: BookArgument,
    backend: BackendOption = "soup",
) -> None:
    """Display book metadata, chapters and parse diagnostics."""
    _validate(book_path)
    config = _config(backend)

    try:
        execute_info(book_path=book_path, config=config, console=console)
    except FatalParseError as e:
        _report(e)
        raise typer.Exit(1)


@app.command()
def pair(
    foreign_path: BookArgument,
    native_path: BookArgument,
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--output",
            "-o",
            help="Write both documents and the pair summary as JSON",
        ),
    ] = None,
    backend: BackendOption = "soup",
) -> None:
    """Parse a foreign/native book pair side by side."""
    _validate(foreign_path)
    _validate(native_path)
    config = _config(backend)

    if not execute_pair(
        foreign_path=foreign_path,
        native_path=native_path,
        output=output,
        config=config,
        console=console,
    ):
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
