"""
Read enable/disable state from a profile's mods.yml.

The file is the r2modman profile layout: a YAML list of mod records, each with
at least a "name" and an "enabled" flag. Only the names of disabled mods are
needed for deployment.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import yaml

logger = logging.getLogger(__name__)

MANIFEST_FILE_NAME = "mods.yml"


def read_disabled_mod_names(profile_dir: Path) -> List[str]:
    """
    Return the names of mods marked `enabled: false` in <profile_dir>/mods.yml.

    A missing or unreadable manifest means nothing is disabled.
    """
    manifest_path = profile_dir / MANIFEST_FILE_NAME
    if not manifest_path.is_file():
        return []

    try:
        content = manifest_path.read_text(encoding="utf-8")
        records = yaml.safe_load(content)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.warning(f"Could not read profile manifest {manifest_path}: {e}")
        return []

    if not isinstance(records, list):
        logger.warning(f"Profile manifest {manifest_path} is not a list of mods")
        return []

    disabled = []
    for record in records:
        if not isinstance(record, dict):
            continue
        name = record.get("name")
        if isinstance(name, str) and name and record.get("enabled") is False:
            disabled.append(name)

    logger.debug(f"Profile manifest {manifest_path}: {len(disabled)} disabled mods")
    return disabled
