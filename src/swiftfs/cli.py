"""
swiftfs CLI

Filesystem commands against swift://<service>/<path> URIs:
- ls: List a directory
- stat: Show metadata for a path
- mkdir: Create a directory and its parents
- put: Upload a local file
- cat: Write a file to stdout
- rm: Delete a file or (with -r) a directory tree
- mv: Rename a file or directory

Settings for <service> come from SWIFTFS_<SERVICE>_* environment variables.
"""
from __future__ import annotations

import logging
import shutil
from pathlib import Path

import typer

from .cli_context import CLIContext, filesystem_uri
from .errors import SwiftNotFound, SwiftOperationFailed
from .operations import run_and_exit
from .operations.printers import print_listing, print_message, print_status
from .path_safety import strip_uri

app = typer.Typer(name="swiftfs", help="Filesystem operations on OpenStack Swift")

COPY_BUFFER_SIZE = 1024 * 1024


@app.callback()
def main_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every HTTP request")
) -> None:
    """Filesystem operations on OpenStack Swift."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


@app.command()
def ls(
    uri: str = typer.Argument(..., help="Directory URI, e.g. swift://local/data")
) -> None:
    """List a directory."""

    def _ls() -> None:
        context = CLIContext.from_uri(uri)
        try:
            print_listing(context.filesystem.list_status(strip_uri(uri)))
        finally:
            context.close()

    run_and_exit(_ls)


@app.command()
def stat(
    uri: str = typer.Argument(..., help="Path URI")
) -> None:
    """Show metadata for a path."""

    def _stat() -> None:
        context = CLIContext.from_uri(uri)
        try:
            print_status(context.filesystem.get_file_status(strip_uri(uri)))
        finally:
            context.close()

    run_and_exit(_stat)


@app.command()
def mkdir(
    uri: str = typer.Argument(..., help="Directory URI")
) -> None:
    """Create a directory and any missing parents."""

    def _mkdir() -> None:
        context = CLIContext.from_uri(uri)
        try:
            context.filesystem.mkdirs(strip_uri(uri))
            print_message(f"Created {uri}")
        finally:
            context.close()

    run_and_exit(_mkdir)


@app.command()
def put(
    local_path: Path = typer.Argument(..., help="Local file to upload"),
    uri: str = typer.Argument(..., help="Destination URI"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing file")
) -> None:
    """Upload a local file."""

    def _put() -> None:
        if not local_path.is_file():
            raise FileNotFoundError(f"No such local file: {local_path}")
        context = CLIContext.from_uri(uri)
        try:
            with local_path.open("rb") as source:
                with context.filesystem.create(strip_uri(uri), overwrite=overwrite) as out:
                    shutil.copyfileobj(source, out, COPY_BUFFER_SIZE)
            print_message(f"Uploaded {local_path} to {uri} ({out.bytes_written} bytes)")
        finally:
            context.close()

    run_and_exit(_put)


@app.command()
def cat(
    uri: str = typer.Argument(..., help="File URI")
) -> None:
    """Write a file's contents to stdout."""

    def _cat() -> None:
        context = CLIContext.from_uri(uri)
        try:
            stdout = typer.get_binary_stream("stdout")
            with context.filesystem.open(strip_uri(uri)) as source:
                shutil.copyfileobj(source, stdout, COPY_BUFFER_SIZE)
            stdout.flush()
        finally:
            context.close()

    run_and_exit(_cat)


@app.command()
def rm(
    uri: str = typer.Argument(..., help="Path URI"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Delete directories and their contents")
) -> None:
    """Delete a file or directory."""

    def _rm() -> None:
        context = CLIContext.from_uri(uri)
        try:
            if not context.filesystem.delete(strip_uri(uri), recursive=recursive):
                raise SwiftNotFound(f"No such file or directory: {uri}")
            print_message(f"Deleted {uri}")
        finally:
            context.close()

    run_and_exit(_rm)


@app.command()
def mv(
    src: str = typer.Argument(..., help="Source URI"),
    dst: str = typer.Argument(..., help="Destination URI")
) -> None:
    """Rename a file or directory within one service."""

    def _mv() -> None:
        if filesystem_uri(src) != filesystem_uri(dst):
            raise ValueError(f"Cannot move between services: {src} -> {dst}")
        context = CLIContext.from_uri(src)
        try:
            if not context.filesystem.rename(strip_uri(src), strip_uri(dst)):
                raise SwiftOperationFailed(f"Cannot rename {src} to {dst}")
            print_message(f"Renamed {src} to {dst}")
        finally:
            context.close()

    run_and_exit(_mv)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
