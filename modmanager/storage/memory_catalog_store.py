import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List

from modmanager.core.errors import LockError
from modmanager.domain.models import CatalogEntry
from modmanager.storage.catalog_store import CatalogStore

logger = logging.getLogger(__name__)


class InMemoryCatalogStore(CatalogStore):
    """
    Process-wide mapping of catalog id -> entries, guarded by one mutex.

    Background chunk loads append from the event loop while sync API handlers
    read from worker threads, so a threading lock is used rather than an
    asyncio one. The lock only ever covers a list copy or extend.
    """

    def __init__(self, lock_timeout: float = 30.0):
        self._catalogs: Dict[str, List[CatalogEntry]] = {}
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            logger.critical(f"Catalog store lock not acquired within {self._lock_timeout}s")
            raise LockError(f"Catalog store lock not acquired within {self._lock_timeout}s")
        try:
            yield
        finally:
            self._lock.release()

    def get(self, catalog_id: str) -> List[CatalogEntry]:
        with self._locked():
            return list(self._catalogs.get(catalog_id, ()))

    def append(self, catalog_id: str, entries: Iterable[CatalogEntry]) -> int:
        new_entries = list(entries)
        with self._locked():
            existing = self._catalogs.setdefault(catalog_id, [])
            existing.extend(new_entries)
            return len(existing)

    def count(self, catalog_id: str) -> int:
        with self._locked():
            return len(self._catalogs.get(catalog_id, ()))

    def catalog_ids(self) -> List[str]:
        with self._locked():
            return [cid for cid, entries in self._catalogs.items() if entries]
