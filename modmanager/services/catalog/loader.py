"""
Incremental catalog loading.

This service handles:
- Fetching the chunk index for a community catalog
- Loading the first chunk in the foreground so callers get results quickly
- Loading all remaining chunks concurrently in the background
- Reading and writing chunks through the on-disk chunk cache
- Merging every loaded chunk into the in-memory catalog store
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from modmanager.core.errors import CatalogIndexError, FormatError, TransportError
from modmanager.domain.models import CatalogEntry, ChunkReference
from modmanager.services.catalog.fetcher import CatalogIndexFetcher, ChunkFetcher
from modmanager.storage.catalog_store import CatalogStore
from modmanager.storage.chunk_store import ChunkStore

logger = logging.getLogger(__name__)


@dataclass
class CatalogLoadResult:
    """
    What a caller gets back from CatalogLoader.load().

    `count` is the number of entries available right now. When more chunks are
    still loading, `background` is the task doing it; awaiting it (or `wait()`)
    is the "fully loaded" signal. Background work cannot be cancelled.
    """

    catalog_id: str
    count: int
    total_chunks: int = 0
    from_memory: bool = False
    background: Optional[asyncio.Task] = None

    @property
    def loading(self) -> bool:
        return self.background is not None and not self.background.done()

    async def wait(self) -> None:
        if self.background is not None:
            await asyncio.shield(self.background)


class CatalogLoader:
    """
    Loads community catalogs into a CatalogStore, chunk by chunk.

    The store is injected so its lifetime is owned by whoever composes the
    application; the loader only ever appends to it.
    """

    def __init__(
        self,
        store: CatalogStore,
        chunk_store: ChunkStore,
        index_fetcher: CatalogIndexFetcher,
        chunk_fetcher: ChunkFetcher,
        max_concurrent_chunks: int = 8,
    ):
        self.store = store
        self.chunk_store = chunk_store
        self.index_fetcher = index_fetcher
        self.chunk_fetcher = chunk_fetcher
        self.max_concurrent_chunks = max(1, max_concurrent_chunks)

        self._catalog_locks: Dict[str, asyncio.Lock] = {}
        self._background: Dict[str, asyncio.Task] = {}

    # ========================================================================
    # Public API
    # ========================================================================

    async def load(self, catalog_id: str) -> CatalogLoadResult:
        """
        Make a catalog available in the store and return the immediate count.

        Returns after the first chunk is merged; the rest keep loading in the
        background. Raises CatalogIndexError if the index or the first chunk
        cannot be loaded.
        """
        existing = self.store.count(catalog_id)
        if existing:
            logger.debug(f"Serving catalog {catalog_id} from memory ({existing} entries)")
            return CatalogLoadResult(
                catalog_id=catalog_id,
                count=existing,
                from_memory=True,
                background=self._background.get(catalog_id),
            )

        lock = self._catalog_locks.setdefault(catalog_id, asyncio.Lock())
        async with lock:
            # Another caller may have finished the foreground phase while we waited.
            # An empty first chunk leaves the store empty while the rest still load.
            existing = self.store.count(catalog_id)
            if existing or self.is_loading(catalog_id):
                return CatalogLoadResult(
                    catalog_id=catalog_id,
                    count=existing,
                    from_memory=True,
                    background=self._background.get(catalog_id),
                )
            return await self._load_from_index(catalog_id)

    async def wait_until_loaded(self, catalog_id: str) -> int:
        """Wait for any background chunk loading of a catalog, then return its size."""
        task = self._background.get(catalog_id)
        if task is not None:
            await asyncio.shield(task)
        return self.store.count(catalog_id)

    def is_loading(self, catalog_id: str) -> bool:
        task = self._background.get(catalog_id)
        return task is not None and not task.done()

    # ========================================================================
    # Loading
    # ========================================================================

    async def _load_from_index(self, catalog_id: str) -> CatalogLoadResult:
        start_time = time.monotonic()
        try:
            refs = await self.index_fetcher.fetch(catalog_id)
        except (TransportError, FormatError) as e:
            logger.error(f"Failed to fetch chunk index for {catalog_id}: {e}")
            raise CatalogIndexError(catalog_id, str(e)) from e

        if not refs:
            logger.warning(f"Catalog index for {catalog_id} is empty")
            return CatalogLoadResult(catalog_id=catalog_id, count=0, total_chunks=0)

        first, remaining = refs[0], refs[1:]
        try:
            entries = await self._load_chunk(first)
        except (TransportError, FormatError) as e:
            logger.error(f"Failed to load first chunk of {catalog_id}: {e}")
            raise CatalogIndexError(catalog_id, f"first chunk unavailable: {e}") from e

        count = self.store.append(catalog_id, entries)
        logger.info(
            f"Catalog {catalog_id}: first chunk ready with {count} entries "
            f"in {time.monotonic() - start_time:.2f}s, {len(remaining)} chunks left"
        )

        background = None
        if remaining:
            background = asyncio.create_task(
                self._load_remaining(catalog_id, remaining, start_time),
                name=f"catalog-load-{catalog_id}",
            )
            self._background[catalog_id] = background

        return CatalogLoadResult(
            catalog_id=catalog_id,
            count=count,
            total_chunks=len(refs),
            background=background,
        )

    async def _load_remaining(
        self,
        catalog_id: str,
        refs: List[ChunkReference],
        start_time: float,
    ) -> None:
        semaphore = asyncio.Semaphore(self.max_concurrent_chunks)

        async def load_one(ref: ChunkReference) -> bool:
            async with semaphore:
                try:
                    entries = await self._load_chunk(ref)
                except Exception as e:
                    logger.error(f"Chunk {ref.content_hash} of {catalog_id} failed, skipping: {e}")
                    return False
            self.store.append(catalog_id, entries)
            return True

        results = await asyncio.gather(*(load_one(ref) for ref in refs))
        failed = results.count(False)
        logger.info(
            f"Catalog {catalog_id}: background load finished with {self.store.count(catalog_id)} entries "
            f"in {time.monotonic() - start_time:.2f}s ({failed} of {len(refs)} chunks failed)"
        )

    async def _load_chunk(self, ref: ChunkReference) -> List[CatalogEntry]:
        """Load one chunk through the disk cache: cached copy, else fetch and persist."""
        cached = await self.chunk_store.load(ref)
        if cached is not None:
            logger.debug(f"Chunk {ref.content_hash}: disk cache hit")
            return cached

        entries = await self.chunk_fetcher.fetch(ref)
        logger.debug(f"Chunk {ref.content_hash}: fetched from network")
        await self.chunk_store.save(ref, entries)
        return entries
