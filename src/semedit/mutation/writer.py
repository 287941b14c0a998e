"""
File state capture and atomic writes for committed edits.
"""

import hashlib
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from semedit.exceptions import IoFailure, StaleTarget
from semedit.logging_config import logger


@dataclass(frozen=True)
class Fingerprint:
    """On-disk state used for optimistic locking."""
    mtime: float
    sha256: str

    def short(self) -> str:
        return f"mtime={self.mtime}, hash={self.sha256[:8]}..."


def fingerprint_bytes(data: bytes, mtime: float) -> Fingerprint:
    return Fingerprint(mtime=mtime, sha256=hashlib.sha256(data).hexdigest())


def file_fingerprint(path: Path) -> Optional[Fingerprint]:
    """
    Capture mtime and content hash of a file.

    Returns:
        Fingerprint, or None if the file does not exist
    """
    if not path.exists():
        return None
    try:
        mtime = path.stat().st_mtime
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise IoFailure(str(path), str(e)) from e
    return fingerprint_bytes(data, mtime)


def check_unchanged(path: Path, expected: Optional[Fingerprint]) -> None:
    """
    Verify a file hasn't changed since `expected` was captured.

    Raises:
        StaleTarget: If the file was modified (or removed) externally
    """
    current = file_fingerprint(path)
    if current == expected:
        return
    if current is None:
        raise StaleTarget(f"File removed externally: {path}")
    expected_text = expected.short() if expected else "no file"
    raise StaleTarget(
        f"File modified externally: {path}. "
        f"Expected {expected_text} but found {current.short()}"
    )


def atomic_write(path: Path, data: bytes) -> Fingerprint:
    """
    Write a file atomically using temp file + rename.

    The temp file is created beside the target so the rename stays on one
    filesystem.

    Returns:
        Fingerprint of the written file

    Raises:
        IoFailure: If the write fails; the target is left untouched
    """
    try:
        fd, temp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp"
        )
    except OSError as e:
        logger.error(f"Failed to create temp file for {path}: {e}")
        raise IoFailure(str(path), str(e)) from e

    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        if path.exists():
            os.chmod(temp_path, path.stat().st_mode & 0o7777)
        os.replace(temp_path, str(path))
    except OSError as e:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        logger.error(f"Failed during atomic write of {path}: {e}")
        raise IoFailure(str(path), str(e)) from e

    logger.debug(f"Atomic write completed: {path}")
    return fingerprint_bytes(data, path.stat().st_mtime)
