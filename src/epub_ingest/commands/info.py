"""Info command implementation."""

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from epub_ingest.commands.parse import parse_book
from epub_ingest.config import ParserConfig


def execute_info(book_path: Path, config: ParserConfig, console: Console) -> None:
    """Display metadata, chapters and diagnostics for a book."""
    document = parse_book(book_path, config, console, quiet=False)
    metadata = document.metadata
    structure = document.structure

    info_lines = [
        f"[bold]{metadata.title}[/]",
        "",
        f"[dim]Author:[/] {metadata.author}",
        f"[dim]Language:[/] {metadata.language}",
        f"[dim]Publisher:[/] {metadata.publisher or 'Unknown'}",
        f"[dim]EPUB version:[/] {document.parsing.epub_version}",
        f"[dim]Chapters:[/] {structure.total_chapters}",
        f"[dim]Words:[/] {structure.word_count:,} (~{structure.estimated_reading_time} min)",
        f"[dim]Cover:[/] {'yes' if document.resources.cover_image else 'no'}",
    ]

    for error in document.parsing.errors or []:
        info_lines.append(f"[red]✗ {error}[/]")
    for warning in document.parsing.warnings or []:
        info_lines.append(f"[yellow]⚠ {warning}[/]")

    console.print()
    console.print(Panel("\n".join(info_lines), title="Book Information", border_style="green"))

    console.print()
    table = Table(title="Chapters", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", style="white")
    table.add_column("Href", style="dim")
    table.add_column("Words", justify="right", style="green")

    for chapter in document.chapters:
        indent = "  " * (chapter.level - 1)
        table.add_row(
            str(chapter.order + 1),
            f"{indent}{chapter.title}",
            chapter.href,
            f"{chapter.word_count:,}",
        )

    console.print(table)
    console.print()
