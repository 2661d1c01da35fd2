"""
Download and decode the package catalog index and its chunks.

The index for a community is a gzip-compressed JSON array of chunk URLs. Each
chunk is a gzip-compressed JSON array of package records.
"""
from __future__ import annotations

import asyncio
import gzip
import json
import logging
import zlib
from typing import Any, List, Optional

import httpx

from modmanager.core.errors import FormatError, TransportError
from modmanager.domain.models import CatalogEntry, ChunkReference, ManagerSettings

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
INDEX_PATH = "/api/cv/package-listing-index/{catalog_id}/"


def decode_json_payload(data: bytes) -> Any:
    """
    Decompress (if gzip-framed) and parse a JSON document.

    Raises FormatError for empty bodies, broken gzip streams, or invalid JSON.
    """
    if not data:
        raise FormatError("Empty response body")

    if data[:2] == GZIP_MAGIC:
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise FormatError(f"Failed to decompress payload: {e}") from e

    try:
        return json.loads(data)
    except (UnicodeDecodeError, ValueError) as e:
        raise FormatError(f"Failed to parse JSON payload: {e}") from e


def parse_chunk_urls(document: Any) -> List[ChunkReference]:
    if not isinstance(document, list):
        raise FormatError(f"Catalog index is not a list (got {type(document).__name__})")
    return [ChunkReference.from_url(item) for item in document if isinstance(item, str) and item]


def parse_chunk_entries(document: Any) -> List[CatalogEntry]:
    if not isinstance(document, list):
        raise FormatError(f"Catalog chunk is not a list (got {type(document).__name__})")
    entries = []
    for record in document:
        entry = CatalogEntry.from_record(record)
        if entry is not None:
            entries.append(entry)
    return entries


class _HttpFetcher:
    """Shared HTTP plumbing: one GET, bytes back, errors mapped to TransportError."""

    def __init__(
        self,
        settings: ManagerSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.settings.request_timeout_seconds,
            headers={"User-Agent": self.settings.user_agent},
            transport=self._transport,
        )

    async def _get_bytes(self, url: str) -> bytes:
        try:
            async with self._client() as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.content
        except httpx.HTTPStatusError as e:
            raise TransportError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise TransportError(url, str(e) or type(e).__name__) from e


class CatalogIndexFetcher(_HttpFetcher):
    """Retrieves the ordered chunk list for a community catalog."""

    def index_url(self, catalog_id: str) -> str:
        return self.settings.api_base_url.rstrip("/") + INDEX_PATH.format(catalog_id=catalog_id)

    async def fetch(self, catalog_id: str) -> List[ChunkReference]:
        url = self.index_url(catalog_id)
        logger.debug(f"Downloading catalog index from {url}")
        data = await self._get_bytes(url)
        document = await asyncio.to_thread(decode_json_payload, data)
        refs = parse_chunk_urls(document)
        logger.info(f"Catalog index for {catalog_id} lists {len(refs)} chunks")
        return refs


class ChunkFetcher(_HttpFetcher):
    """Downloads and decodes a single catalog chunk."""

    async def fetch(self, ref: ChunkReference) -> List[CatalogEntry]:
        logger.debug(f"Downloading chunk {ref.content_hash} from {ref.url}")
        data = await self._get_bytes(ref.url)
        document = await asyncio.to_thread(decode_json_payload, data)
        entries = await asyncio.to_thread(parse_chunk_entries, document)
        logger.debug(f"Decoded {len(entries)} entries from chunk {ref.content_hash} ({len(data)} bytes)")
        return entries
