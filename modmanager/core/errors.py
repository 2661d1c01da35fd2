"""
Exception hierarchy for the mod manager.

Catalog-side errors (transport, format, cache) are raised close to the I/O that
failed; the loader decides which of them are absorbed and which reach the caller.
Deployment errors always reach the caller and carry the step that failed.
"""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from modmanager.domain.models import DeploymentReport, DeploymentStep


class ModManagerError(Exception):
    """Base class for all errors raised by this package."""


class TransportError(ModManagerError):
    """A network fetch failed (connection error or non-success status)."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class FormatError(ModManagerError):
    """Downloaded or cached bytes could not be decompressed or parsed."""


class CacheError(ModManagerError):
    """A persisted chunk is unreadable. Always treated as a cache miss."""


class LockError(ModManagerError):
    """The catalog store lock could not be acquired."""


class CatalogIndexError(ModManagerError):
    """The chunk index (or its first chunk) for a catalog could not be loaded."""

    def __init__(self, catalog_id: str, reason: str):
        self.catalog_id = catalog_id
        self.reason = reason
        super().__init__(f"Failed to load catalog index for '{catalog_id}': {reason}")


class FilesystemError(ModManagerError):
    """A copy, delete or create operation failed during deployment."""

    def __init__(self, operation: str, path: Path, reason: str):
        self.operation = operation
        self.path = path
        self.reason = reason
        super().__init__(f"{operation} failed for {path}: {reason}")


class DeploymentError(ModManagerError):
    """A deployment run ended in the failed state."""

    def __init__(
        self,
        step: "DeploymentStep",
        reason: str,
        report: Optional["DeploymentReport"] = None,
    ):
        self.step = step
        self.reason = reason
        self.report = report
        super().__init__(f"Deployment failed during '{step.value}': {reason}")
