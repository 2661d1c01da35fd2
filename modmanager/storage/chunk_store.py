"""
Disk cache for decompressed catalog chunks.

Chunks are content-addressed: the cache key is the hash embedded in the chunk
URL, so a chunk shared by several catalogs is stored once. Files are never
evicted; chunks are immutable.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

import aiofiles
from pydantic import ValidationError

from modmanager.core.errors import CacheError
from modmanager.domain.models import CachedChunk, CatalogEntry, ChunkReference

logger = logging.getLogger(__name__)


class ChunkStore:
    """Persists and retrieves catalog chunks under <cache_dir>/chunks."""

    def __init__(self, cache_dir: Path):
        self.chunks_dir = cache_dir / "chunks"
        self.chunks_dir.mkdir(parents=True, exist_ok=True)

    def _chunk_path(self, ref: ChunkReference) -> Path:
        return self.chunks_dir / f"{ref.content_hash}.json"

    async def _read(self, ref: ChunkReference) -> CachedChunk:
        path = self._chunk_path(ref)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                content = await f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise CacheError(f"Cannot read {path}: {e}") from e

        try:
            cached = await asyncio.to_thread(CachedChunk.model_validate_json, content)
        except ValidationError as e:
            raise CacheError(f"Corrupt chunk file {path}: {e.error_count()} validation errors") from e

        if cached.content_hash != ref.content_hash:
            raise CacheError(
                f"Chunk file {path} holds hash {cached.content_hash}, expected {ref.content_hash}"
            )
        return cached

    async def load(self, ref: ChunkReference) -> Optional[List[CatalogEntry]]:
        """Return the cached entries for a chunk, or None on any miss or read problem."""
        if not self._chunk_path(ref).exists():
            return None
        try:
            cached = await self._read(ref)
        except CacheError as e:
            logger.warning(f"Ignoring cached chunk {ref.content_hash}: {e}")
            return None
        logger.debug(f"Loaded {len(cached.entries)} entries for chunk {ref.content_hash} from disk")
        return cached.entries

    async def save(self, ref: ChunkReference, entries: List[CatalogEntry]) -> bool:
        """
        Persist a chunk. Best-effort: failures are logged and reported as False.

        The file is written to a per-call temp path first and moved into place,
        so a crash never leaves a truncated chunk behind and concurrent saves of
        a shared chunk do not collide.
        """
        path = self._chunk_path(ref)
        tmp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            chunk = CachedChunk(content_hash=ref.content_hash, url=ref.url, entries=entries)
            payload = await asyncio.to_thread(chunk.model_dump_json)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            tmp_path.replace(path)
        except Exception as e:
            logger.error(f"Failed to persist chunk {ref.content_hash} to {path}: {e}")
            if tmp_path.is_file():
                tmp_path.unlink(missing_ok=True)
            return False
        logger.debug(f"Saved {len(entries)} entries for chunk {ref.content_hash} to {path}")
        return True

    def stats(self) -> Tuple[int, int]:
        """Return (number of chunk files, total bytes on disk)."""
        files = list(self.chunks_dir.glob("*.json"))
        return len(files), sum(f.stat().st_size for f in files)

    def clear(self) -> Tuple[int, int]:
        """Delete every cached chunk. Returns (files removed, bytes freed)."""
        removed = 0
        freed = 0
        for path in self.chunks_dir.glob("*.json*"):
            try:
                size = path.stat().st_size
                path.unlink()
            except OSError as e:
                logger.warning(f"Could not remove cached chunk {path}: {e}")
                continue
            removed += 1
            freed += size
        logger.info(f"Cleared {removed} cached chunks ({freed} bytes)")
        return removed, freed
