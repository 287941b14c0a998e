"""
Bounded LRU cache of open documents.

Documents with live staged operations are pinned: they are never evicted
implicitly unless forced eviction is configured, in which case their
operations are aborted first through the release hook.
"""

import threading
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

from semedit.config import get_config_value
from semedit.document import Document
from semedit.exceptions import CacheFull, DocumentNotFound
from semedit.logging_config import logger
from semedit.schemas import CacheStats

ReleaseHook = Callable[[str], None]


class DocumentCache:
    """
    LRU cache keyed by document id.

    Thread-safe. The release hook is called without the cache lock held, so
    it may call back into `unpin`.
    """

    def __init__(self, capacity: Optional[int] = None, force_eviction: Optional[bool] = None):
        self.capacity = capacity if capacity is not None else int(get_config_value("cache.max_documents", 50))
        if self.capacity < 1:
            raise ValueError("cache capacity must be at least 1")
        if force_eviction is None:
            force_eviction = bool(get_config_value("cache.force_eviction", False))
        self.force_eviction = force_eviction
        self._documents: "OrderedDict[str, Document]" = OrderedDict()
        self._pins: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._release_hook: Optional[ReleaseHook] = None
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def set_release_hook(self, hook: ReleaseHook) -> None:
        """Register the callback that aborts a document's live operations."""
        self._release_hook = hook

    def get(self, document_id: str) -> Document:
        """
        Raises:
            DocumentNotFound: If the document is not cached
        """
        with self._lock:
            document = self._documents.get(document_id)
            if document is None:
                self._misses += 1
                raise DocumentNotFound(document_id)
            self._hits += 1
            self._documents.move_to_end(document_id)
            return document

    def lookup(self, document_id: str) -> Optional[Document]:
        """Like get() but returns None on a miss."""
        try:
            return self.get(document_id)
        except DocumentNotFound:
            return None

    def put(self, document: Document) -> None:
        """
        Insert a document, evicting the least recently used unpinned one if full.

        Raises:
            CacheFull: If every cached document is pinned and forced eviction is off
        """
        while True:
            with self._lock:
                if document.document_id in self._documents:
                    self._documents[document.document_id] = document
                    self._documents.move_to_end(document.document_id)
                    return
                if len(self._documents) < self.capacity:
                    self._documents[document.document_id] = document
                    return
                victim = self._lru_unpinned()
                if victim is not None:
                    self._remove_locked(victim)
                    continue
                if not self.force_eviction:
                    raise CacheFull(self.capacity, list(self._documents))
                victim = next(iter(self._documents))
            self._release(victim)

    def evict(self, document_id: str, force: bool = False) -> None:
        """
        Remove a document explicitly.

        A pinned document is released first when `force` is given or forced
        eviction is configured.

        Raises:
            DocumentNotFound: If the document is not cached
            CacheFull: If the document is pinned and eviction is not forced
        """
        with self._lock:
            if document_id not in self._documents:
                raise DocumentNotFound(document_id)
            if not self._pins.get(document_id):
                self._remove_locked(document_id)
                return
            if not (force or self.force_eviction):
                raise CacheFull(self.capacity, [document_id])
        self._release(document_id)

    def pin(self, document_id: str) -> None:
        with self._lock:
            if document_id not in self._documents:
                raise DocumentNotFound(document_id)
            self._pins[document_id] = self._pins.get(document_id, 0) + 1

    def unpin(self, document_id: str) -> None:
        with self._lock:
            count = self._pins.get(document_id, 0) - 1
            if count > 0:
                self._pins[document_id] = count
            else:
                self._pins.pop(document_id, None)

    def is_pinned(self, document_id: str) -> bool:
        with self._lock:
            return bool(self._pins.get(document_id))

    def document_ids(self) -> List[str]:
        with self._lock:
            return list(self._documents)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                total_requests=self._hits + self._misses,
                evictions=self._evictions,
                size=len(self._documents),
                capacity=self.capacity,
            )

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()
            self._pins.clear()

    def __contains__(self, document_id: str) -> bool:
        with self._lock:
            return document_id in self._documents

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    def _lru_unpinned(self) -> Optional[str]:
        for document_id in self._documents:
            if not self._pins.get(document_id):
                return document_id
        return None

    def _remove_locked(self, document_id: str) -> None:
        self._documents.pop(document_id, None)
        self._pins.pop(document_id, None)
        self._evictions += 1
        logger.debug(f"Evicted {document_id} from document cache")

    def _release(self, document_id: str) -> None:
        logger.warning(f"Forcing eviction of {document_id}; aborting its staged operations")
        if self._release_hook is not None:
            self._release_hook(document_id)
        with self._lock:
            if document_id in self._documents:
                self._remove_locked(document_id)
