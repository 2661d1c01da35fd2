"""
Catalog API endpoints.

This module exposes the package catalog cache over HTTP:
- Listing communities
- Triggering (incremental) catalog loads
- Searching, sorting and paging loaded catalogs
- Resolving mod identifiers against a loaded catalog
- Clearing the on-disk chunk cache
"""
from __future__ import annotations

from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from modmanager.core.dependencies import (
    get_catalog_loader,
    get_chunk_store,
    get_community_fetcher,
    get_query_engine,
)
from modmanager.core.errors import CatalogIndexError, FormatError, TransportError
from modmanager.domain.models import CatalogEntry, Community, LookupResult, QueryPage
from modmanager.services.catalog.communities import CommunityFetcher
from modmanager.services.catalog.loader import CatalogLoader
from modmanager.services.catalog.query import CatalogQueryEngine
from modmanager.storage.chunk_store import ChunkStore

logger = logging.getLogger(__name__)
router = APIRouter()


class LoadResponse(BaseModel):
    catalog_id: str
    count: int = Field(description="Entries available immediately.")
    total_chunks: int = Field(description="Chunks listed in the index (0 when served from memory).")
    from_memory: bool
    loading: bool = Field(description="True while remaining chunks are still loading in the background.")


class LookupRequest(BaseModel):
    names: List[str] = Field(
        default_factory=list,
        description="Mod identifiers, e.g. 'Namespace-Name' or 'Namespace-Name-1.2.3'.",
    )


class CacheClearResponse(BaseModel):
    cleared: int
    bytes_freed: int


@router.get("/communities")
async def list_communities(fetcher: CommunityFetcher = Depends(get_community_fetcher)) -> List[Community]:
    try:
        return await fetcher.fetch_all()
    except (TransportError, FormatError) as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.post("/catalog/{catalog_id}/load")
async def load_catalog(
    catalog_id: str,
    loader: CatalogLoader = Depends(get_catalog_loader),
) -> LoadResponse:
    """
    Load a community catalog. Returns once the first chunk is available;
    remaining chunks keep loading and show up in later queries.
    """
    try:
        result = await loader.load(catalog_id)
    except CatalogIndexError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return LoadResponse(
        catalog_id=catalog_id,
        count=result.count,
        total_chunks=result.total_chunks,
        from_memory=result.from_memory,
        loading=result.loading,
    )


@router.get("/catalog/{catalog_id}/packages")
def query_packages(
    catalog_id: str,
    search: str = "",
    sort: Optional[str] = Query(default=None, description="downloads, rating, updated or name"),
    sort_direction: Optional[str] = Query(default=None, description="asc or desc"),
    page: int = 0,
    page_size: int = 20,
    categories: Optional[List[str]] = Query(default=None),
    nsfw: bool = True,
    deprecated: bool = True,
    mods: bool = True,
    modpacks: bool = True,
    engine: CatalogQueryEngine = Depends(get_query_engine),
) -> QueryPage:
    try:
        return engine.query_page(
            catalog_id,
            search=search,
            sort=sort,
            page=page,
            page_size=page_size,
            sort_direction=sort_direction,
            categories=categories,
            include_nsfw=nsfw,
            include_deprecated=deprecated,
            include_mods=mods,
            include_modpacks=modpacks,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/catalog/{catalog_id}/categories")
def list_categories(
    catalog_id: str,
    engine: CatalogQueryEngine = Depends(get_query_engine),
) -> List[str]:
    return engine.available_categories(catalog_id)


@router.post("/catalog/{catalog_id}/lookup")
def lookup_packages(
    catalog_id: str,
    body: LookupRequest,
    engine: CatalogQueryEngine = Depends(get_query_engine),
) -> LookupResult:
    return engine.lookup_by_names(catalog_id, body.names)


@router.get("/catalog/{catalog_id}/packages/{name}")
def get_package(
    catalog_id: str,
    name: str,
    engine: CatalogQueryEngine = Depends(get_query_engine),
) -> CatalogEntry:
    entry = engine.find_by_name(catalog_id, name)
    if entry is None:
        raise HTTPException(status_code=404, detail="Package not found")
    return entry


@router.delete("/catalog/cache")
def clear_chunk_cache(chunk_store: ChunkStore = Depends(get_chunk_store)) -> CacheClearResponse:
    cleared, freed = chunk_store.clear()
    return CacheClearResponse(cleared=cleared, bytes_freed=freed)
