"""
CodeFormatter: shell out to language formatters and re-indent JSON.
"""

import json
import shutil
import subprocess
from typing import Optional

from semedit.config import get_config_value
from semedit.exceptions import FormatFailure
from semedit.logging_config import logger
from .config import FORMATTERS, INDENT_DETECTION


class CodeFormatter:
    """
    Format whole buffers for a language.

    External formatters (black, rustfmt, prettier) read the text on stdin and
    write the result to stdout. A formatter that is not on PATH is skipped
    and the text is returned unchanged.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else float(get_config_value("format.timeout_seconds", 30))

    def format_text(self, text: str, language: str) -> str:
        """
        Raises:
            FormatFailure: If the formatter exits non-zero or times out
        """
        formatter_config = FORMATTERS.get(language)
        if not formatter_config:
            logger.debug(f"No formatter configured for {language}")
            return text

        command = formatter_config["command"]
        if not shutil.which(command):
            logger.debug(f"Formatter '{command}' not found in PATH, skipping auto-format")
            return text

        full_command = [command] + formatter_config["args"]
        try:
            result = subprocess.run(
                full_command,
                input=text,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired as e:
            raise FormatFailure(language, f"{command} timed out after {self.timeout:g}s") from e
        except OSError as e:
            raise FormatFailure(language, f"{command} could not be started: {e}") from e

        if result.returncode != 0:
            error_msg = (result.stderr or result.stdout).strip()
            logger.warning(f"Formatter {command} failed: {error_msg}")
            raise FormatFailure(language, error_msg)

        logger.debug(f"Formatted {len(text)} chars with {command}")
        return result.stdout

    def format_json(self, text: str) -> str:
        """
        Re-indent JSON keeping the indentation the document already uses.

        Raises:
            FormatFailure: If the text is not valid JSON
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise FormatFailure("json", str(e)) from e
        indent = detect_indentation(text)
        formatted = json.dumps(data, indent=indent, ensure_ascii=False)
        if text.endswith("\n"):
            formatted += "\n"
        return formatted


def detect_indentation(text: str) -> str:
    """
    Detect the indent unit of a text (a tab or a run of spaces).

    Looks at the first indented lines; falls back to the default unit.
    """
    widths = {}
    tab_count = 0
    for line in text.split("\n")[:INDENT_DETECTION["max_sample_lines"]]:
        if not line.strip():
            continue
        indent = line[:len(line) - len(line.lstrip())]
        if not indent:
            continue
        if "\t" in indent:
            tab_count += 1
        else:
            widths[len(indent)] = widths.get(len(indent), 0) + 1

    if tab_count > sum(widths.values()):
        return "\t"
    if widths:
        return " " * min(widths)
    return INDENT_DETECTION["default_indent"]
