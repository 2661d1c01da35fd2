"""
Pydantic models for the mod manager.

This module defines the data models used throughout the application, including:
- Settings persisted in the data directory
- Catalog chunk references, catalog entries and the on-disk chunk cache format
- Query results returned by the catalog query engine
- Directory mirror statistics and deployment reports

All models use Pydantic for validation, serialization, and type safety.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from modmanager.domain.catalog_utils import (
    as_bool,
    as_int,
    as_str,
    as_str_list,
    extract_content_hash,
)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class ManagerSettings(BaseModel):
    """
    Top-level configuration for the mod manager.

    Stored as settings.json in the data directory. Missing fields are filled
    with defaults on load and written back so the file documents every option.
    """

    api_base_url: str = Field(
        default="https://thunderstore.io",
        description="Base URL of the package catalog API.",
    )
    user_agent: str = Field(
        default="modmanager/0.1.0",
        description="User-Agent header sent with every catalog request.",
    )
    request_timeout_seconds: float = Field(
        default=60.0,
        description="Timeout for a single catalog HTTP request.",
    )
    max_concurrent_chunks: int = Field(
        default=8,
        ge=1,
        description="Upper bound on catalog chunks loaded concurrently in the background.",
    )
    store_lock_timeout_seconds: float = Field(
        default=30.0,
        description="How long a catalog store operation waits for the store lock before failing.",
    )
    runtime_dir_name: str = Field(
        default="BepInEx",
        description="Name of the mod loader runtime directory inside profiles and game installs.",
    )
    plugins_dir_name: str = Field(
        default="plugins",
        description="Name of the plugin area inside the runtime directory; each child is one mod folder.",
    )
    loader_marker_file: str = Field(
        default="winhttp.dll",
        description="File that identifies the bundled loader payload inside the plugin area.",
    )
    loader_companion_files: List[str] = Field(
        default_factory=lambda: ["winhttp.dll", "doorstop_config.ini", ".doorstop_version"],
        description="Root-level loader files synced from the profile root to the game root.",
    )
    payload_search_depth: int = Field(
        default=3,
        ge=1,
        description="How many directory levels below the plugin area are searched for the loader payload.",
    )
    disabled_match: Literal["substring", "exact"] = Field(
        default="substring",
        description=(
            "How disabled names are matched against mod folder names: 'substring' disables any "
            "folder whose name contains a disabled fragment, 'exact' requires the whole name."
        ),
    )


# ---------------------------------------------------------------------------
# Catalog Models
# ---------------------------------------------------------------------------


class Community(BaseModel):
    """A game community whose catalog can be loaded."""

    identifier: str
    name: str = ""
    discord_url: Optional[str] = None
    wiki_url: Optional[str] = None

    @classmethod
    def from_record(cls, raw: Any) -> Optional["Community"]:
        if not isinstance(raw, dict) or not as_str(raw.get("identifier")):
            return None
        return cls(
            identifier=raw["identifier"],
            name=as_str(raw.get("name")),
            discord_url=raw.get("discord_url") if isinstance(raw.get("discord_url"), str) else None,
            wiki_url=raw.get("wiki_url") if isinstance(raw.get("wiki_url"), str) else None,
        )


class ChunkReference(BaseModel):
    """Locator of one catalog chunk and the content hash used as its cache key."""

    model_config = ConfigDict(frozen=True)

    url: str
    content_hash: str

    @classmethod
    def from_url(cls, url: str) -> "ChunkReference":
        return cls(url=url, content_hash=extract_content_hash(url))


class PackageVersion(BaseModel):
    """A single published version of a catalog package."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    full_name: str = ""
    version_number: str = ""
    description: str = ""
    icon: str = ""
    download_url: str = ""
    downloads: int = 0
    date_created: str = ""
    dependencies: List[str] = Field(default_factory=list)
    file_size: int = 0
    is_active: bool = True

    @classmethod
    def from_record(cls, raw: Dict[str, Any]) -> "PackageVersion":
        return cls(
            name=as_str(raw.get("name")),
            full_name=as_str(raw.get("full_name")),
            version_number=as_str(raw.get("version_number")),
            description=as_str(raw.get("description")),
            icon=as_str(raw.get("icon")),
            download_url=as_str(raw.get("download_url")),
            downloads=as_int(raw.get("downloads")),
            date_created=as_str(raw.get("date_created")),
            dependencies=as_str_list(raw.get("dependencies")),
            file_size=as_int(raw.get("file_size")),
            is_active=as_bool(raw.get("is_active"), default=True),
        )


class CatalogEntry(BaseModel):
    """
    One package in a community catalog.

    The upstream schema is not validated: every field is read best-effort and
    falls back to a default when absent or of the wrong type.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    full_name: str = ""
    owner: str = ""
    uuid4: str = ""
    package_url: str = ""
    date_created: str = ""
    date_updated: str = ""
    rating_score: int = 0
    is_pinned: bool = False
    is_deprecated: bool = False
    has_nsfw_content: bool = False
    categories: List[str] = Field(default_factory=list)
    versions: List[PackageVersion] = Field(default_factory=list)

    @computed_field  # type: ignore[misc]
    @property
    def downloads(self) -> int:
        """Total downloads across all versions."""
        return sum(v.downloads for v in self.versions)

    @property
    def latest_version(self) -> Optional[PackageVersion]:
        return self.versions[0] if self.versions else None

    @classmethod
    def from_record(cls, raw: Any) -> Optional["CatalogEntry"]:
        """Build an entry from an upstream record, or None if it is not an object."""
        if not isinstance(raw, dict):
            return None
        raw_versions = raw.get("versions")
        versions = []
        if isinstance(raw_versions, list):
            versions = [PackageVersion.from_record(v) for v in raw_versions if isinstance(v, dict)]
        return cls(
            name=as_str(raw.get("name")),
            full_name=as_str(raw.get("full_name")),
            owner=as_str(raw.get("owner")),
            uuid4=as_str(raw.get("uuid4")),
            package_url=as_str(raw.get("package_url")),
            date_created=as_str(raw.get("date_created")),
            date_updated=as_str(raw.get("date_updated")),
            rating_score=as_int(raw.get("rating_score")),
            is_pinned=as_bool(raw.get("is_pinned")),
            is_deprecated=as_bool(raw.get("is_deprecated")),
            has_nsfw_content=as_bool(raw.get("has_nsfw_content")),
            categories=as_str_list(raw.get("categories")),
            versions=versions,
        )


class CachedChunk(BaseModel):
    """On-disk format of one decompressed catalog chunk."""

    content_hash: str
    url: str
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    entries: List[CatalogEntry] = Field(default_factory=list)


class QueryPage(BaseModel):
    """One page of catalog query results."""

    items: List[CatalogEntry] = Field(default_factory=list)
    total: int = Field(default=0, description="Number of entries matching the filters (all pages).")
    page: int = 0
    page_size: int = 0
    has_more: bool = False


class LookupResult(BaseModel):
    """Result of resolving mod identifiers against a loaded catalog."""

    found: List[CatalogEntry] = Field(default_factory=list)
    unknown: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Deployment Models
# ---------------------------------------------------------------------------


class MirrorStats(BaseModel):
    """Counters reported by one or more directory mirror passes."""

    files_copied: int = 0
    files_skipped: int = 0
    directories_created: int = 0
    entries_removed: int = 0

    def merge(self, other: "MirrorStats") -> None:
        self.files_copied += other.files_copied
        self.files_skipped += other.files_skipped
        self.directories_created += other.directories_created
        self.entries_removed += other.entries_removed


class DeploymentStep(str, Enum):
    START = "start"
    NORMALIZING_PAYLOAD = "normalizing_payload"
    CLEANING_ORPHANS = "cleaning_orphans"
    COPYING_ENABLED = "copying_enabled"
    SYNCING_ROOT_FILES = "syncing_root_files"
    DONE = "done"
    FAILED = "failed"


class DeploymentReport(BaseModel):
    """Outcome of one deployment run."""

    profile_dir: str
    target_dir: str
    state: DeploymentStep = DeploymentStep.START
    failed_step: Optional[DeploymentStep] = None
    error: Optional[str] = None
    payload_dir: Optional[str] = Field(
        default=None,
        description="Loader payload directory found inside the profile, if any.",
    )
    companion_files_normalized: List[str] = Field(default_factory=list)
    enabled_mods: List[str] = Field(default_factory=list)
    disabled_mods: List[str] = Field(default_factory=list)
    folders_removed: List[str] = Field(default_factory=list)
    root_files_synced: List[str] = Field(default_factory=list)
    mirror: MirrorStats = Field(default_factory=MirrorStats)

    @property
    def files_copied(self) -> int:
        return self.mirror.files_copied
