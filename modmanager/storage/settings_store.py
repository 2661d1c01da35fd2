import json
import logging
from pathlib import Path
from typing import Optional

from modmanager.domain.models import ManagerSettings

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = "settings.json"


class SettingsStore:
    """Loads and persists ManagerSettings as <data_dir>/settings.json."""

    def __init__(self, data_dir: Path):
        self._data_dir = data_dir
        self._settings: Optional[ManagerSettings] = None

        if not self._data_dir.exists():
            self._data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._data_dir / SETTINGS_FILE_NAME

    def get(self) -> ManagerSettings:
        if self._settings is None:
            return self.load()
        return self._settings

    def load(self) -> ManagerSettings:
        """
        Load settings.json, merging defaults for any missing fields,
        and write it back so new fields are persisted.
        """
        path = self.path
        if path.exists():
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
                settings = ManagerSettings(**raw)
            except Exception as e:
                # Fall back to defaults and overwrite the broken file.
                logger.warning(f"Invalid settings file {path}, using defaults: {e}")
                settings = ManagerSettings()
        else:
            settings = ManagerSettings()

        self.save(settings)
        return settings

    def save(self, settings: ManagerSettings) -> None:
        self._settings = settings
        self.path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
