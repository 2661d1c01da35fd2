from abc import ABC, abstractmethod
from typing import Iterable, List

from modmanager.domain.models import CatalogEntry


class CatalogStore(ABC):
    """
    Abstract base class for the serving copy of loaded catalogs.

    Entries for a catalog are only ever appended; nothing is removed or
    replaced while the process runs.
    """

    @abstractmethod
    def get(self, catalog_id: str) -> List[CatalogEntry]:
        """Return an independent snapshot of the entries loaded so far."""
        pass

    @abstractmethod
    def append(self, catalog_id: str, entries: Iterable[CatalogEntry]) -> int:
        """Append entries and return the new total for the catalog."""
        pass

    @abstractmethod
    def count(self, catalog_id: str) -> int:
        """Number of entries currently loaded for a catalog (0 if unknown)."""
        pass

    @abstractmethod
    def catalog_ids(self) -> List[str]:
        """Identifiers of every catalog with at least one merged chunk."""
        pass
