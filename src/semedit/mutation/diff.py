"""
Diff computation for previews and commit reports.

Pure functions: the same inputs always give the same DiffResult.
"""

import difflib
from typing import List, Optional

from semedit.config import get_config_value
from semedit.schemas import DiffMetrics, DiffResult

HEADER_PREFIXES = ("---", "+++", "@@")


def compute_diff(
    before: str,
    after: str,
    max_lines: Optional[int] = None,
    replacement: Optional[str] = None,
) -> DiffResult:
    """
    Unified diff between two texts, without file or hunk headers.

    Args:
        before: Text before the edit
        after: Text after the edit
        max_lines: Truncate longer diffs (deleted lines are always kept)
        replacement: The replacement text, used for the efficiency metric

    Returns:
        DiffResult with diff text and metrics
    """
    if max_lines is None:
        max_lines = int(get_config_value("diff.max_lines", 100))

    diff_lines = [
        line for line in difflib.unified_diff(
            before.splitlines(),
            after.splitlines(),
            lineterm="",
        )
        if not line.startswith(HEADER_PREFIXES)
    ]

    added = sum(1 for line in diff_lines if line.startswith("+"))
    removed = sum(1 for line in diff_lines if line.startswith("-"))
    metrics = DiffMetrics(
        lines_added=added,
        lines_removed=removed,
        lines_total=len(after.splitlines()),
        bytes_delta=len(after.encode("utf-8")) - len(before.encode("utf-8")),
    )
    if replacement is not None:
        _add_efficiency(metrics, removed, replacement)

    truncated = len(diff_lines) > max_lines
    if truncated:
        text = _truncate_large_diff(diff_lines, max_lines)
    else:
        text = "\n".join(diff_lines)
    return DiffResult(diff=text, metrics=metrics, truncated=truncated)


def _add_efficiency(metrics: DiffMetrics, changed_lines: int, replacement: str) -> None:
    """
    Report how much of a large replacement actually changed anything.

    Rewriting a whole block to change two lines is wasteful; below the tip
    threshold a narrower operation is suggested.
    """
    replacement_lines = len(replacement.splitlines())
    min_lines = int(get_config_value("diff.efficiency_min_lines", 10))
    if replacement_lines <= min_lines:
        return
    percent = min(100, round(100 * changed_lines / replacement_lines))
    metrics.changed_fraction = percent
    threshold = int(get_config_value("diff.efficiency_tip_percent", 30))
    if percent < threshold:
        metrics.tip = (
            f"Edit efficiency: only {changed_lines} of {replacement_lines} replacement lines "
            f"changed ({percent}%). Use replace_exact or replace_range to target the changed lines."
        )


def _truncate_large_diff(diff_lines: List[str], max_lines: int) -> str:
    """
    Truncate a diff, keeping every deleted line and trimming additions.
    """
    deleted_lines = [line for line in diff_lines if line.startswith("-")]
    added_lines = [line for line in diff_lines if line.startswith("+")]
    context_lines = [line for line in diff_lines if not line.startswith(("-", "+"))]

    truncated = list(deleted_lines)
    remaining = max_lines - len(truncated)

    if remaining > 0:
        truncated.extend(context_lines[:remaining])
        remaining = max_lines - len(truncated)

    shown = max(0, min(len(added_lines), remaining - 1))  # -1 for truncation notice
    truncated.extend(added_lines[:shown])
    if len(added_lines) > shown:
        truncated.append(f"[... {len(added_lines) - shown} added lines truncated for brevity ...]")
    elif len(truncated) < len(diff_lines):
        truncated.append(f"[... {len(diff_lines) - len(truncated)} context lines omitted ...]")
    return "\n".join(truncated)
