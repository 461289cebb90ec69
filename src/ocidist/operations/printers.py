"""
Human-readable output formatting.

Centralizes all CLI output formatting. Machine-readable documents (JSON,
tag and repository lists) go to stdout through typer; summaries and errors
are rendered with rich.
"""
from __future__ import annotations

import typer
from pathlib import Path
from typing import List

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..copy import CopyResult
from ..soci import PublishedBundle, SignedBundle, SociInfo

_console = Console()
_err_console = Console(stderr=True)

def print_lines(lines: List[str], indent: str = "") -> None:
    """Print one entry per line."""
    for line in lines:
        typer.echo(f"{indent}{line}")

def print_inspect(output) -> None:
    """
    Print image inspection output as indented JSON.
    
    Args:
        output: InspectOutput to display
    """
    typer.echo(output.model_dump_json(by_alias=True, exclude_none=True, indent=4))

def print_soci_info(info: SociInfo) -> None:
    typer.echo(info.to_json())

def print_bundle(bundle: SignedBundle) -> None:
    typer.echo(bundle.model_dump_json(indent=2))

def print_copy_summary(result: CopyResult, verbose: bool = False) -> None:
    """
    Print copy summary.
    
    Args:
        result: Copy result
        verbose: Show digest and blob count
    """
    if verbose:
        _console.print(f"[bold]Copied:[/] {escape(result.source)} -> {escape(result.dest)}")
        _console.print(f"[bold]Digest:[/] [dim]{result.digest}[/]")
        _console.print(f"[bold]Blobs:[/] {result.blobs}")
    _console.print("OK")

def print_publish_summary(url: str, published: PublishedBundle) -> None:
    """
    Print the manifests pushed for a SOCI bundle.
    
    Args:
        url: Target repository URL
        published: Manifest digests of the pushed artifacts
    """
    table = Table(title=f"Published {escape(url)}")
    table.add_column("Artifact", style="cyan")
    table.add_column("Manifest", style="yellow")
    table.add_row("install", published.install)
    table.add_row("pubkeycrt", published.pubkeycrt)
    table.add_row("signature", published.signature)
    _console.print(table)

def print_bundle_start(name: str, install_file: str, pub_key: str, sign_key: str) -> None:
    _console.print(
        f"Generating SOCI bundle '{name}.soci' with\n"
        f" Install: {install_file}\n PubKeyCrt: {pub_key}\n SignKey: {sign_key}"
    )

def print_bundle_written(path: Path) -> None:
    _console.print(f"wrote {path}")

def print_error(exc: BaseException) -> None:
    """
    Print an error to stderr.
    
    Args:
        exc: Exception raised by an operation
    """
    _err_console.print(f"[bold red]Error:[/] {escape(str(exc))}", highlight=False)
