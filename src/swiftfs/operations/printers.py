"""
Human-readable output formatting.

Centralizes all CLI output so commands stay thin.
"""
from __future__ import annotations

from typing import List

import typer
from rich.console import Console
from rich.table import Table

from ..errors import SwiftPartialRename
from ..storage.base import FileStatus

_console = Console()


def _format_bytes(size: int) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def print_listing(statuses: List[FileStatus]) -> None:
    """Print directory entries, directories first."""
    if not statuses:
        typer.echo("(empty)")
        return
    table = Table(show_header=True, box=None)
    table.add_column("Type", style="cyan")
    table.add_column("Size", justify="right", style="yellow")
    table.add_column("Modified")
    table.add_column("Path", no_wrap=True)
    for status in sorted(statuses, key=lambda s: (not s.is_directory, s.path)):
        table.add_row(
            "dir" if status.is_directory else "file",
            "-" if status.is_directory else _format_bytes(status.length),
            status.modification_time.strftime("%Y-%m-%d %H:%M:%S"),
            status.path,
        )
    _console.print(table)


def print_status(status: FileStatus) -> None:
    typer.echo(f"Path: {status.path}")
    typer.echo(f"Type: {'directory' if status.is_directory else 'file'}")
    typer.echo(f"Length: {status.length}")
    typer.echo(f"Modified: {status.modification_time.isoformat()}")
    if status.manifest:
        typer.echo(f"Manifest: {status.manifest}")


def print_message(message: str) -> None:
    typer.echo(message)


def print_error(exc: BaseException) -> None:
    typer.echo(f"Error: {exc}", err=True)


def print_partial_rename(exc: SwiftPartialRename) -> None:
    """Show which entries moved and which did not."""
    typer.echo(f"Error: {exc}", err=True)
    for path in exc.renamed:
        typer.echo(f"  moved:  {path}", err=True)
    for path, error in exc.failed:
        typer.echo(f"  failed: {path} ({error})", err=True)
