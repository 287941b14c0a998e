"""
CLI Output Utilities

JSON output for machines, rich output for humans.
"""

import json
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from semedit.exceptions import SemEditError
from semedit.schemas import DiffResult

_console = Console()
_err_console = Console(stderr=True)


def get_console() -> Console:
    return _console


def print_json(data: Dict[str, Any], minified: bool = False) -> None:
    if minified:
        typer.echo(json.dumps(data, separators=(",", ":")))
    else:
        typer.echo(json.dumps(data, indent=2))


def print_error(error: SemEditError, json_output: bool = False) -> None:
    """
    Print a SemEditError as structured JSON or a human-readable message.
    """
    payload = error.to_dict()
    if json_output:
        print_json(payload)
        return

    _err_console.print(f"[bold red]{error.kind}[/bold red]: {error.message}")
    for suggestion in payload.get("suggestions", []):
        _err_console.print(f"  did you mean [cyan]{suggestion}[/cyan]?")
    for candidate in payload.get("candidates", []):
        _err_console.print(
            f"  [{candidate['index']}] {candidate['kind']} line {candidate['line']}: {candidate['preview']}"
        )
    if payload.get("suggestion"):
        _err_console.print(f"  [yellow]{payload['suggestion']}[/yellow]")
    if payload.get("excerpt"):
        _err_console.print(payload["excerpt"])
    for problem in payload.get("problems", []):
        _err_console.print(f"  - {problem}")


def print_diff(diff: DiffResult, title: Optional[str] = None) -> None:
    """Show a diff with syntax highlighting and its metrics."""
    body = Syntax(diff.diff or "(no changes)", "diff", theme="ansi_dark", word_wrap=True)
    _console.print(Panel(body, title=title, expand=False))
    metrics = diff.metrics
    _console.print(
        f"[dim]+{metrics.lines_added} -{metrics.lines_removed} lines, "
        f"{metrics.bytes_delta:+d} bytes, {metrics.lines_total} lines total[/dim]"
    )
    if metrics.tip:
        _console.print(f"[yellow]{metrics.tip}[/yellow]")
