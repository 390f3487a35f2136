"""Pair command implementation."""

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from epub_ingest.config import ParserConfig
from epub_ingest.core.pairing import parse_pair


def execute_pair(
    foreign_path: Path,
    native_path: Path,
    output: Path | None,
    config: ParserConfig,
    console: Console,
) -> bool:
    """Parse both books; returns True only when both sides parsed."""
    result = parse_pair(
        (foreign_path.read_bytes(), foreign_path.name),
        (native_path.read_bytes(), native_path.name),
        config,
    )
    summary = result.summary()

    table = Table(title="Book Pair", show_header=True, header_style="bold cyan")
    table.add_column("Side", style="bold")
    table.add_column("File", style="dim")
    table.add_column("Title")
    table.add_column("Chapters", justify="right", style="green")
    table.add_column("Words", justify="right", style="green")
    table.add_column("Status")

    for side in (result.foreign, result.native):
        if side.document is not None:
            structure = side.document.structure
            table.add_row(
                side.side,
                side.filename,
                side.document.metadata.title,
                str(structure.total_chapters),
                f"{structure.word_count:,}",
                "[green]parsed[/]",
            )
        else:
            table.add_row(side.side, side.filename, "-", "0", "0", f"[red]{side.error}[/]")

    console.print(table)

    if output is not None:
        payload = {
            "summary": summary,
            "foreign": side_payload(result.foreign),
            "native": side_payload(result.native),
        }
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        console.print(f"[green]Wrote {output}[/]")

    return summary["bothSuccessful"]


def side_payload(side) -> dict:
    if side.document is None:
        return {"filename": side.filename, "error": side.error}
    return {"filename": side.filename, "document": side.document.to_dict()}
