"""
semedit command-line entry point.

    semedit serve                      # MCP server over stdio
    semedit preview FILE --name parse -o replace_node -r '...'
    semedit apply FILE --anchor 'x: i32' -o insert_after -r ', z: i32'
"""

from pathlib import Path
from typing import Any, Dict, Optional

import typer

from semedit import __version__
from semedit.exceptions import InvalidSelector, SemEditError
from semedit.logging_config import logger
from semedit.schemas import Policy
from semedit.workspace import EditWorkspace

from .output import print_diff, print_error, print_json

app = typer.Typer(help="Structure-aware, validated source edits.")


def build_selector(
    name: Optional[str] = None,
    kind: Optional[str] = None,
    query: Optional[str] = None,
    capture: Optional[str] = None,
    position: Optional[str] = None,
    offset: Optional[int] = None,
    anchor: Optional[str] = None,
    occurrence: Optional[int] = None,
    end: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Map CLI options to the selector wire form.

    `--kind` alone selects by kind; together with `--name` it filters the
    name match.

    Raises:
        InvalidSelector: If zero or several selector options are given
    """
    chosen = [
        flag for flag, value in (
            ("--name", name), ("--query", query), ("--position", position),
            ("--offset", offset), ("--anchor", anchor),
        )
        if value is not None
    ]
    if kind is not None and name is None:
        chosen.append("--kind")
    if len(chosen) != 1:
        raise InvalidSelector(
            "Give exactly one of --name, --kind, --query, --position, --offset, --anchor",
            problems=[f"got: {', '.join(chosen) or 'none'}"],
        )

    if name is not None:
        return {"by": "name", "name": name, "kind": kind}
    if kind is not None:
        return {"by": "kind", "kind": kind}
    if query is not None:
        return {"by": "query", "query": query, "capture": capture}
    if offset is not None:
        return {"by": "position", "byte_offset": offset}
    if position is not None:
        line, _, column = position.partition(":")
        try:
            return {"by": "position", "line": int(line), "column": int(column) if column else None}
        except ValueError as e:
            raise InvalidSelector(f"--position expects LINE or LINE:COLUMN, got {position!r}") from e
    return {"by": "anchor", "pattern": anchor, "occurrence": occurrence, "end": end}


def _read_replacement(replacement: Optional[str], replacement_file: Optional[Path]) -> str:
    if replacement is not None and replacement_file is not None:
        raise typer.BadParameter("Use either --replacement or --replacement-file, not both")
    if replacement_file is not None:
        return replacement_file.read_text(encoding="utf-8")
    if replacement is None:
        raise typer.BadParameter("--replacement or --replacement-file is required")
    return replacement


def _run(
    file: Path,
    commit: bool,
    operation: str,
    replacement: Optional[str],
    replacement_file: Optional[Path],
    selector_options: Dict[str, Any],
    index: Optional[int],
    language: Optional[str],
    auto_format: bool,
    json_output: bool,
) -> None:
    text = _read_replacement(replacement, replacement_file)
    with EditWorkspace() as workspace:
        try:
            selector = build_selector(**selector_options)
            document = workspace.open_document(file.resolve(), language_hint=language)
            staged = workspace.stage(
                document.document_id,
                selector,
                operation,
                text,
                policy=Policy.unique() if index is None else Policy.select(index),
                auto_format=auto_format,
            )
            result = workspace.commit(staged.operation_id) if commit else staged
        except SemEditError as e:
            logger.debug(f"{'apply' if commit else 'preview'} failed: {e.kind}")
            print_error(e, json_output=json_output)
            raise typer.Exit(code=1)

    if json_output:
        payload = result.model_dump(mode="json")
        payload["status"] = "success"
        print_json(payload)
    elif commit:
        print_diff(result.final_diff, title=f"{file} (revision {result.revision})")
    else:
        print_diff(result.preview_diff, title=f"{file} (preview, not written)")


_NAME = typer.Option(None, "--name", "-n", help="Select nodes declaring this name")
_KIND = typer.Option(None, "--kind", "-k", help="Select nodes of this kind (or filter --name)")
_QUERY = typer.Option(None, "--query", "-q", help="Select captures of a tree-sitter query")
_CAPTURE = typer.Option(None, "--capture", help="Capture name for --query")
_POSITION = typer.Option(None, "--position", "-p", help="Select the node at LINE[:COLUMN] (1-based)")
_OFFSET = typer.Option(None, "--offset", help="Select the node at a byte offset")
_ANCHOR = typer.Option(None, "--anchor", "-a", help="Select literal text")
_OCCURRENCE = typer.Option(None, "--occurrence", help="0-based occurrence for --anchor")
_END = typer.Option(None, "--end", help="Closing text for replace_range with --anchor")
_OPERATION = typer.Option(..., "--operation", "-o", help="insert_before, insert_after, insert_after_node, replace_range, replace_exact, replace_node")
_REPLACEMENT = typer.Option(None, "--replacement", "-r", help="Replacement text")
_REPLACEMENT_FILE = typer.Option(None, "--replacement-file", "-f", help="Read replacement text from a file", exists=True, dir_okay=False)
_INDEX = typer.Option(None, "--index", "-i", help="Pick the Nth candidate (0-based) when ambiguous")
_LANGUAGE = typer.Option(None, "--language", "-l", help="Override language detection")
_FORMAT = typer.Option(False, "--format", help="Run the language formatter on the result")
_JSON = typer.Option(False, "--json", help="Output as JSON")


@app.command()
def preview(
    file: Path = typer.Argument(..., help="File to edit", exists=True, dir_okay=False),
    operation: str = _OPERATION,
    replacement: Optional[str] = _REPLACEMENT,
    replacement_file: Optional[Path] = _REPLACEMENT_FILE,
    name: Optional[str] = _NAME,
    kind: Optional[str] = _KIND,
    query: Optional[str] = _QUERY,
    capture: Optional[str] = _CAPTURE,
    position: Optional[str] = _POSITION,
    offset: Optional[int] = _OFFSET,
    anchor: Optional[str] = _ANCHOR,
    occurrence: Optional[int] = _OCCURRENCE,
    end: Optional[str] = _END,
    index: Optional[int] = _INDEX,
    language: Optional[str] = _LANGUAGE,
    auto_format: bool = _FORMAT,
    json_output: bool = _JSON,
):
    """Validate an edit and show its diff without writing."""
    _run(
        file, False, operation, replacement, replacement_file,
        dict(name=name, kind=kind, query=query, capture=capture, position=position,
             offset=offset, anchor=anchor, occurrence=occurrence, end=end),
        index, language, auto_format, json_output,
    )


@app.command()
def apply(
    file: Path = typer.Argument(..., help="File to edit", exists=True, dir_okay=False),
    operation: str = _OPERATION,
    replacement: Optional[str] = _REPLACEMENT,
    replacement_file: Optional[Path] = _REPLACEMENT_FILE,
    name: Optional[str] = _NAME,
    kind: Optional[str] = _KIND,
    query: Optional[str] = _QUERY,
    capture: Optional[str] = _CAPTURE,
    position: Optional[str] = _POSITION,
    offset: Optional[int] = _OFFSET,
    anchor: Optional[str] = _ANCHOR,
    occurrence: Optional[int] = _OCCURRENCE,
    end: Optional[str] = _END,
    index: Optional[int] = _INDEX,
    language: Optional[str] = _LANGUAGE,
    auto_format: bool = _FORMAT,
    json_output: bool = _JSON,
):
    """Validate an edit and write it to the file."""
    _run(
        file, True, operation, replacement, replacement_file,
        dict(name=name, kind=kind, query=query, capture=capture, position=position,
             offset=offset, anchor=anchor, occurrence=occurrence, end=end),
        index, language, auto_format, json_output,
    )


@app.command()
def serve():
    """Run the MCP server over stdio."""
    from semedit.mcp import run_server

    run_server()


@app.command()
def version():
    """Show the installed version."""
    typer.echo(f"semedit {__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
