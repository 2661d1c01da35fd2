"""
Deploy a mod profile into a game installation.

A run walks a fixed sequence of steps:

    start -> normalizing_payload -> cleaning_orphans -> copying_enabled
          -> syncing_root_files -> done

Any failure moves the run to `failed` and raises DeploymentError naming the
step. Nothing is rolled back; every step is idempotent, so running deploy
again from the start converges the target.

Only one deployment may touch a given target at a time. This class does not
enforce that; callers serialize runs.
"""
from __future__ import annotations

import logging
from collections import deque
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from modmanager.core.errors import DeploymentError, FilesystemError
from modmanager.domain.catalog_utils import strip_version_suffix
from modmanager.domain.models import DeploymentReport, DeploymentStep, ManagerSettings
from modmanager.services.deployment.mirror import (
    DirectoryMirror,
    copy_file,
    needs_copy,
    remove_path,
)

logger = logging.getLogger(__name__)


class DeploymentSynchronizer:
    """Mirrors the enabled part of a profile into a target directory."""

    def __init__(self, settings: ManagerSettings, mirror: Optional[DirectoryMirror] = None):
        self.settings = settings
        self.mirror = mirror or DirectoryMirror()

    # ========================================================================
    # Layout helpers
    # ========================================================================

    def runtime_dir(self, root: Path) -> Path:
        return root / self.settings.runtime_dir_name

    def plugins_dir(self, root: Path) -> Path:
        return self.runtime_dir(root) / self.settings.plugins_dir_name

    def is_disabled(self, folder_name: str, disabled_names: Iterable[str]) -> bool:
        """
        Decide whether a mod folder is disabled.

        In the default "substring" mode a folder is disabled when its name
        contains any disabled fragment, ignoring case. This also catches
        unrelated folders ("AutoSave" when disabling "Save"); set
        disabled_match to "exact" to compare whole names instead.
        """
        name = folder_name.lower()
        for fragment in disabled_names:
            fragment = fragment.strip().lower()
            if not fragment:
                # an empty fragment would match every folder
                continue
            if self.settings.disabled_match == "exact":
                if name == fragment or strip_version_suffix(name) == strip_version_suffix(fragment):
                    return True
            elif fragment in name:
                return True
        return False

    def partition_mod_folders(
        self,
        profile_dir: Path,
        disabled_names: Iterable[str],
    ) -> Tuple[List[str], List[str]]:
        """Split the profile's mod folders into (enabled, disabled) names."""
        plugins = self.plugins_dir(profile_dir)
        if not plugins.is_dir():
            return [], []
        disabled_names = list(disabled_names)
        enabled, disabled = [], []
        for child in sorted(plugins.iterdir()):
            if not child.is_dir():
                continue
            if self.is_disabled(child.name, disabled_names):
                disabled.append(child.name)
            else:
                enabled.append(child.name)
        return enabled, disabled

    def find_loader_payload(self, plugins_dir: Path) -> Optional[Path]:
        """
        Breadth-first search of the plugin area for the directory holding the
        loader marker file, down to payload_search_depth levels.
        """
        if not plugins_dir.is_dir():
            return None
        marker = self.settings.loader_marker_file.lower()
        queue = deque([(plugins_dir, 0)])
        while queue:
            current, depth = queue.popleft()
            try:
                children = sorted(current.iterdir())
            except OSError as e:
                logger.debug(f"Skipping unreadable directory {current}: {e}")
                continue
            if any(c.is_file() and c.name.lower() == marker for c in children):
                return current
            if depth < self.settings.payload_search_depth:
                queue.extend((c, depth + 1) for c in children if c.is_dir() and not c.is_symlink())
        return None

    # ========================================================================
    # Deployment
    # ========================================================================

    def deploy(
        self,
        profile_dir: Path,
        target_dir: Path,
        disabled_names: Iterable[str],
    ) -> DeploymentReport:
        """
        Make target_dir's mod folders equal the profile's enabled mod folders.

        Raises DeploymentError (with the failed step and partial report) when
        any filesystem operation fails.
        """
        profile_dir = Path(profile_dir)
        target_dir = Path(target_dir)
        disabled_names = [n for n in disabled_names if isinstance(n, str)]
        report = DeploymentReport(profile_dir=str(profile_dir), target_dir=str(target_dir))

        logger.info(f"Deploying profile {profile_dir} to {target_dir} ({len(disabled_names)} disabled names)")
        try:
            self._start(profile_dir, target_dir)

            self._enter(report, DeploymentStep.NORMALIZING_PAYLOAD)
            self._normalize_payload(profile_dir, report)

            self._enter(report, DeploymentStep.CLEANING_ORPHANS)
            enabled = self._clean_orphans(profile_dir, target_dir, disabled_names, report)

            self._enter(report, DeploymentStep.COPYING_ENABLED)
            self._copy_enabled(profile_dir, target_dir, enabled, report)

            self._enter(report, DeploymentStep.SYNCING_ROOT_FILES)
            self._sync_root_files(profile_dir, target_dir, report)
        except (FilesystemError, OSError) as e:
            failed_step = report.state
            report.failed_step = failed_step
            report.state = DeploymentStep.FAILED
            report.error = str(e)
            logger.error(f"Deployment of {profile_dir} failed during {failed_step.value}: {e}")
            raise DeploymentError(failed_step, str(e), report) from e

        report.state = DeploymentStep.DONE
        logger.info(
            f"Deployment finished: {len(report.enabled_mods)} enabled, {len(report.folders_removed)} removed, "
            f"{report.mirror.files_copied} files copied, {report.mirror.files_skipped} unchanged"
        )
        return report

    @staticmethod
    def _enter(report: DeploymentReport, step: DeploymentStep) -> None:
        logger.debug(f"Deployment step: {step.value}")
        report.state = step

    def _start(self, profile_dir: Path, target_dir: Path) -> None:
        if not profile_dir.is_dir():
            raise FilesystemError("read", profile_dir, "profile directory does not exist")
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError("create", target_dir, str(e)) from e

    def _normalize_payload(self, profile_dir: Path, report: DeploymentReport) -> None:
        payload = self.find_loader_payload(self.plugins_dir(profile_dir))
        if payload is None:
            logger.debug("No loader payload found in profile")
            return

        report.payload_dir = str(payload)
        logger.info(f"Found loader payload at {payload}")

        for item in sorted(payload.iterdir()):
            destination = profile_dir / item.name
            if item.is_file() and not destination.exists():
                copy_file(item, destination)
                report.companion_files_normalized.append(item.name)
                report.mirror.files_copied += 1

        payload_runtime = self.runtime_dir(payload)
        if payload_runtime.is_dir():
            stats = self.mirror.mirror(payload_runtime, self.runtime_dir(profile_dir))
            report.mirror.merge(stats)

    def _clean_orphans(
        self,
        profile_dir: Path,
        target_dir: Path,
        disabled_names: List[str],
        report: DeploymentReport,
    ) -> List[str]:
        enabled, disabled = self.partition_mod_folders(profile_dir, disabled_names)
        report.enabled_mods = enabled
        report.disabled_mods = disabled

        target_plugins = self.plugins_dir(target_dir)
        if not target_plugins.is_dir():
            return enabled

        enabled_set = set(enabled)
        for existing in sorted(target_plugins.iterdir()):
            if not existing.is_dir():
                continue
            if existing.name in enabled_set and not self.is_disabled(existing.name, disabled_names):
                continue
            remove_path(existing)
            report.folders_removed.append(existing.name)
            report.mirror.entries_removed += 1

        if report.folders_removed:
            logger.info(f"Removed {len(report.folders_removed)} disabled or orphaned mod folders from target")
        return enabled

    def _copy_enabled(
        self,
        profile_dir: Path,
        target_dir: Path,
        enabled: List[str],
        report: DeploymentReport,
    ) -> None:
        profile_plugins = self.plugins_dir(profile_dir)
        target_plugins = self.plugins_dir(target_dir)
        try:
            target_plugins.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError("create", target_plugins, str(e)) from e

        for name in enabled:
            report.mirror.merge(self.mirror.mirror(profile_plugins / name, target_plugins / name))

        # Loose files directly in the plugin area are not mod folders; copy them as-is.
        if profile_plugins.is_dir():
            for item in sorted(profile_plugins.iterdir()):
                if item.is_file():
                    self._copy_if_changed(item, target_plugins / item.name, report)

        # Everything else under the runtime directory (core, config, patchers...) goes across in full.
        profile_runtime = self.runtime_dir(profile_dir)
        target_runtime = self.runtime_dir(target_dir)
        if not profile_runtime.is_dir():
            return
        for child in sorted(profile_runtime.iterdir()):
            if child.name == self.settings.plugins_dir_name:
                continue
            if child.is_dir():
                report.mirror.merge(self.mirror.mirror(child, target_runtime / child.name))
            elif child.is_file():
                self._copy_if_changed(child, target_runtime / child.name, report)

    @staticmethod
    def _copy_if_changed(source: Path, destination: Path, report: DeploymentReport) -> None:
        if needs_copy(source, destination):
            copy_file(source, destination)
            report.mirror.files_copied += 1
        else:
            report.mirror.files_skipped += 1

    def _sync_root_files(self, profile_dir: Path, target_dir: Path, report: DeploymentReport) -> None:
        for name in self.settings.loader_companion_files:
            source = profile_dir / name
            if source.is_file():
                copy_file(source, target_dir / name)
                report.root_files_synced.append(name)
        if report.root_files_synced:
            logger.debug(f"Synced root files: {', '.join(report.root_files_synced)}")
