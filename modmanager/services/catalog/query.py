"""
Read-side queries over the in-memory catalog store.

Every query works on a snapshot taken from the store, so chunks merged by
background loads while a query runs are simply not part of that result.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from modmanager.domain.catalog_utils import match_text, strip_version_suffix
from modmanager.domain.models import CatalogEntry, LookupResult, QueryPage
from modmanager.storage.catalog_store import CatalogStore

logger = logging.getLogger(__name__)

MODPACK_CATEGORY = "Modpacks"

# sort name -> (key function, descending by default)
SORT_KEYS: Dict[str, Tuple[Callable[[CatalogEntry], object], bool]] = {
    "downloads": (lambda e: e.downloads, True),
    "rating": (lambda e: e.rating_score, True),
    "updated": (lambda e: e.date_updated, True),
    "name": (lambda e: e.name.lower(), False),
}


class CatalogQueryEngine:
    """Stateless filter/sort/paginate operations against a CatalogStore."""

    def __init__(self, store: CatalogStore):
        self.store = store

    def filter_entries(
        self,
        entries: Iterable[CatalogEntry],
        search: str = "",
        categories: Optional[List[str]] = None,
        include_nsfw: bool = True,
        include_deprecated: bool = True,
        include_mods: bool = True,
        include_modpacks: bool = True,
    ) -> List[CatalogEntry]:
        wanted = {c.lower() for c in categories} if categories else set()
        result = []
        for entry in entries:
            if search and not (match_text(entry.name, search) or match_text(entry.full_name, search)):
                continue
            if not include_nsfw and entry.has_nsfw_content:
                continue
            if not include_deprecated and entry.is_deprecated:
                continue

            entry_categories = {c.lower() for c in entry.categories}
            is_modpack = MODPACK_CATEGORY.lower() in entry_categories
            if is_modpack and not include_modpacks:
                continue
            if not is_modpack and not include_mods:
                continue
            if wanted and not (wanted & entry_categories):
                continue
            result.append(entry)
        return result

    def sort_entries(
        self,
        entries: List[CatalogEntry],
        sort: Optional[str] = None,
        sort_direction: Optional[str] = None,
    ) -> List[CatalogEntry]:
        """
        Sort entries by a named key. Unknown or missing sort keys keep the input order.

        The sort is stable, so ties keep their filtered order.
        """
        if not sort or sort not in SORT_KEYS:
            return entries
        key, descending = SORT_KEYS[sort]
        if sort_direction:
            direction = sort_direction.lower()
            if direction in ("asc", "ascending"):
                descending = False
            elif direction in ("desc", "descending"):
                descending = True
        return sorted(entries, key=key, reverse=descending)

    def query_page(
        self,
        catalog_id: str,
        search: str = "",
        sort: Optional[str] = None,
        page: int = 0,
        page_size: int = 20,
        sort_direction: Optional[str] = None,
        categories: Optional[List[str]] = None,
        include_nsfw: bool = True,
        include_deprecated: bool = True,
        include_mods: bool = True,
        include_modpacks: bool = True,
    ) -> QueryPage:
        if page < 0:
            raise ValueError(f"page must be >= 0 (got {page})")

        filtered = self.filter_entries(
            self.store.get(catalog_id),
            search=search,
            categories=categories,
            include_nsfw=include_nsfw,
            include_deprecated=include_deprecated,
            include_mods=include_mods,
            include_modpacks=include_modpacks,
        )
        total = len(filtered)

        # page * page_size past the end is the end-of-results signal, not an error
        start = page * page_size
        if page_size <= 0 or start >= total:
            return QueryPage(items=[], total=total, page=page, page_size=page_size, has_more=False)

        ordered = self.sort_entries(filtered, sort, sort_direction)
        end = min(start + page_size, total)
        return QueryPage(
            items=ordered[start:end],
            total=total,
            page=page,
            page_size=page_size,
            has_more=end < total,
        )

    def query(
        self,
        catalog_id: str,
        search: str = "",
        sort: Optional[str] = None,
        page: int = 0,
        page_size: int = 20,
        **filters,
    ) -> List[CatalogEntry]:
        """Return one page of matching entries; an empty list means no more results."""
        return self.query_page(catalog_id, search, sort, page, page_size, **filters).items

    def lookup_by_names(self, catalog_id: str, names: List[str]) -> LookupResult:
        """
        Resolve "Namespace-Name[-X.Y.Z]" identifiers against a loaded catalog.

        Matching is exact on full_name after stripping the version, ignoring case.
        Names that do not resolve (including every name, when the catalog is not
        loaded) are returned in `unknown`.
        """
        by_full_name: Dict[str, CatalogEntry] = {}
        for entry in self.store.get(catalog_id):
            by_full_name.setdefault(entry.full_name.lower(), entry)

        result = LookupResult()
        for name in names:
            entry = by_full_name.get(strip_version_suffix(name).lower())
            if entry is not None:
                result.found.append(entry)
            else:
                result.unknown.append(name)

        if result.unknown:
            logger.debug(f"Lookup in {catalog_id}: {len(result.found)} found, {len(result.unknown)} unknown")
        return result

    def find_by_name(self, catalog_id: str, name: str) -> Optional[CatalogEntry]:
        result = self.lookup_by_names(catalog_id, [name])
        return result.found[0] if result.found else None

    def available_categories(self, catalog_id: str) -> List[str]:
        categories = set()
        for entry in self.store.get(catalog_id):
            categories.update(entry.categories)
        return sorted(categories, key=str.lower)
