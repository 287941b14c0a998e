"""
Documents and their immutable snapshots.

A Document owns the authoritative buffer, its parse tree and a revision
counter. All resolution and validation work runs against a
DocumentSnapshot taken under the document lock.
"""

import threading
import uuid
from bisect import bisect_right
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from tree_sitter import Node, Tree

from semedit.exceptions import InvalidBoundary, IoFailure, StaleTarget
from semedit.logging_config import logger
from semedit.mutation.writer import Fingerprint, file_fingerprint, fingerprint_bytes
from semedit.parser import iter_named, parse


def is_char_boundary(source: bytes, offset: int) -> bool:
    """True if `offset` does not split a UTF-8 code point."""
    if offset < 0 or offset > len(source):
        return False
    if offset == len(source):
        return True
    return (source[offset] & 0xC0) != 0x80


def check_boundary(source: bytes, offset: int) -> None:
    """
    Raises:
        InvalidBoundary: If `offset` is outside the buffer or inside a code point
    """
    if not is_char_boundary(source, offset):
        raise InvalidBoundary(offset, len(source))


def read_utf8(path: Path) -> Tuple[bytes, float]:
    """
    Read a file's bytes and mtime, rejecting content that is not UTF-8.

    Raises:
        IoFailure: If the file cannot be read or does not decode
    """
    try:
        mtime = path.stat().st_mtime
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise IoFailure(str(path), str(e)) from e
    try:
        data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise IoFailure(str(path), f"not valid UTF-8 text (byte {e.start})") from e
    return data, mtime


@dataclass(frozen=True)
class DocumentSnapshot:
    """Immutable view of a document's buffer, tree and revision."""
    document_id: str
    source: bytes
    tree: Tree
    revision: int
    language: str
    path: Optional[str] = None

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @cached_property
    def named_nodes(self) -> List[Node]:
        """Named nodes in pre-order; a node's index here is its arena index."""
        return list(iter_named(self.tree.root_node))

    @cached_property
    def _arena(self) -> Dict[int, int]:
        return {node.id: index for index, node in enumerate(self.named_nodes)}

    def arena_index(self, node: Node) -> int:
        return self._arena[node.id]

    def node_at(self, arena_index: int, revision: int) -> Node:
        """
        Look up a node captured at `revision`.

        Raises:
            StaleTarget: If the snapshot is at a different revision
        """
        if revision != self.revision:
            raise StaleTarget(
                f"Target was captured at revision {revision} but {self.document_id} is at {self.revision}",
                captured_revision=revision,
                current_revision=self.revision,
            )
        return self.named_nodes[arena_index]

    @cached_property
    def _line_starts(self) -> List[int]:
        starts = [0]
        index = self.source.find(b"\n")
        while index != -1:
            starts.append(index + 1)
            index = self.source.find(b"\n", index + 1)
        return starts

    def line_of(self, offset: int) -> int:
        """1-based line number of a byte offset."""
        return bisect_right(self._line_starts, offset)

    def offset_of(self, line: int, column: int = 1) -> int:
        """
        Byte offset of a 1-based line and 1-based code-point column.

        Raises:
            InvalidBoundary: If the position lies outside the buffer
        """
        starts = self._line_starts
        if line < 1 or line > len(starts):
            raise InvalidBoundary(len(self.source) + line, len(self.source))
        line_start = starts[line - 1]
        line_end = starts[line] - 1 if line < len(starts) else len(self.source)
        try:
            text = self.source[line_start:line_end].decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidBoundary(line_start + e.start, len(self.source)) from e
        if column - 1 > len(text):
            raise InvalidBoundary(line_start + len(text.encode("utf-8")) + 1, len(self.source))
        return line_start + len(text[:column - 1].encode("utf-8"))


class Document:
    """
    Authoritative buffer plus parse tree and revision counter.

    Snapshots are taken under `lock`; commit holds it while swapping the
    buffer. Revision starts at 0 and grows by exactly one per commit.
    """

    def __init__(
        self,
        document_id: str,
        source: bytes,
        language: str,
        path: Optional[Path] = None,
        fingerprint: Optional[Fingerprint] = None,
    ):
        self.document_id = document_id
        self.language = language
        self.path = path
        self.lock = threading.Lock()
        self._source = source
        self._tree = parse(source, language)
        self._revision = 0
        self.fingerprint = fingerprint

    @classmethod
    def from_path(cls, path: Path, language: str, document_id: Optional[str] = None) -> "Document":
        """
        Load a document from disk.

        Raises:
            IoFailure: If the file cannot be read or is not UTF-8 text
        """
        data, mtime = read_utf8(path)
        logger.debug(f"Loaded {path} ({len(data)} bytes, {language})")
        return cls(
            document_id or str(path),
            data,
            language,
            path=path,
            fingerprint=fingerprint_bytes(data, mtime),
        )

    @classmethod
    def from_text(cls, text: str, language: str, document_id: Optional[str] = None) -> "Document":
        """In-memory document with no backing file."""
        return cls(document_id or f"mem:{uuid.uuid4().hex[:12]}", text.encode("utf-8"), language)

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def source(self) -> bytes:
        return self._source

    @property
    def text(self) -> str:
        return self._source.decode("utf-8", errors="replace")

    def snapshot(self) -> DocumentSnapshot:
        with self.lock:
            return self.locked_snapshot()

    def locked_snapshot(self) -> DocumentSnapshot:
        """Snapshot without taking the lock. Caller holds `lock`."""
        return DocumentSnapshot(
            document_id=self.document_id,
            source=self._source,
            tree=self._tree,
            revision=self._revision,
            language=self.language,
            path=str(self.path) if self.path else None,
        )

    def swap(self, source: bytes, tree: Tree, fingerprint: Optional[Fingerprint]) -> int:
        """
        Replace the buffer and tree and bump the revision. Caller holds `lock`.

        Returns:
            The new revision
        """
        self._source = source
        self._tree = tree
        self._revision += 1
        self.fingerprint = fingerprint
        return self._revision

    def reload(self) -> bool:
        """
        Re-read the backing file if it changed on disk since the last load or write.

        A reload counts as a new revision, so operations staged against the
        old contents fail their commit with StaleTarget.

        Returns:
            True if the buffer was replaced

        Raises:
            IoFailure: If the file cannot be read or is not UTF-8 text
        """
        if self.path is None:
            return False
        with self.lock:
            if file_fingerprint(self.path) == self.fingerprint:
                return False
            data, mtime = read_utf8(self.path)
            self.swap(data, parse(data, self.language), fingerprint_bytes(data, mtime))
        logger.info(f"Reloaded {self.path} after external modification (revision {self._revision})")
        return True

    def __repr__(self) -> str:
        return f"Document({self.document_id!r}, language={self.language!r}, revision={self._revision})"
