from pathlib import Path
from typing import Optional
import os

from modmanager.domain.models import ManagerSettings
from modmanager.services.catalog.communities import CommunityFetcher
from modmanager.services.catalog.fetcher import CatalogIndexFetcher, ChunkFetcher
from modmanager.services.catalog.loader import CatalogLoader
from modmanager.services.catalog.query import CatalogQueryEngine
from modmanager.services.deployment.synchronizer import DeploymentSynchronizer
from modmanager.storage.catalog_store import CatalogStore
from modmanager.storage.chunk_store import ChunkStore
from modmanager.storage.memory_catalog_store import InMemoryCatalogStore
from modmanager.storage.settings_store import SettingsStore

DATA_ROOT_ENV_VAR = "MODMANAGER_DATA_DIR"
_REPO_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_DATA_DIR = _REPO_ROOT / "data"

_settings_store: Optional[SettingsStore] = None
_catalog_store: Optional[CatalogStore] = None
_chunk_store: Optional[ChunkStore] = None
_catalog_loader: Optional[CatalogLoader] = None
_query_engine: Optional[CatalogQueryEngine] = None
_synchronizer: Optional[DeploymentSynchronizer] = None


def get_data_dir() -> Path:
    env_path = os.environ.get(DATA_ROOT_ENV_VAR)
    if env_path:
        d = Path(env_path).expanduser()
    else:
        d = _DEFAULT_DATA_DIR
    d.mkdir(parents=True, exist_ok=True)
    return d


def get_settings_store() -> SettingsStore:
    global _settings_store
    if _settings_store is None:
        _settings_store = SettingsStore(get_data_dir())
        _settings_store.load()
    return _settings_store


def get_settings() -> ManagerSettings:
    return get_settings_store().get()


def get_catalog_store() -> CatalogStore:
    global _catalog_store
    if _catalog_store is None:
        _catalog_store = InMemoryCatalogStore(lock_timeout=get_settings().store_lock_timeout_seconds)
    return _catalog_store


def get_chunk_store() -> ChunkStore:
    global _chunk_store
    if _chunk_store is None:
        _chunk_store = ChunkStore(get_data_dir() / "cache")
    return _chunk_store


def get_catalog_loader() -> CatalogLoader:
    global _catalog_loader
    if _catalog_loader is None:
        settings = get_settings()
        _catalog_loader = CatalogLoader(
            store=get_catalog_store(),
            chunk_store=get_chunk_store(),
            index_fetcher=CatalogIndexFetcher(settings),
            chunk_fetcher=ChunkFetcher(settings),
            max_concurrent_chunks=settings.max_concurrent_chunks,
        )
    return _catalog_loader


def get_query_engine() -> CatalogQueryEngine:
    global _query_engine
    if _query_engine is None:
        _query_engine = CatalogQueryEngine(get_catalog_store())
    return _query_engine


def get_community_fetcher() -> CommunityFetcher:
    return CommunityFetcher(get_settings())


def get_synchronizer() -> DeploymentSynchronizer:
    global _synchronizer
    if _synchronizer is None:
        _synchronizer = DeploymentSynchronizer(get_settings())
    return _synchronizer
