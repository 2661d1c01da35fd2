"""
Recursive directory mirroring.

A file is copied only when the destination copy is missing or its byte length
differs from the source. Same-size content changes are not detected; that is
the price of never reading file contents during a sync.

Symlinks inside the source are recreated as links in the destination and
never descended into.
"""
from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from modmanager.core.errors import FilesystemError
from modmanager.domain.models import MirrorStats

logger = logging.getLogger(__name__)


@dataclass
class MirrorOptions:
    """
    prune: also delete destination entries that have no source counterpart.
    ignore: predicate on a source entry name; matching entries are neither
        copied nor (when pruning) protected from removal.
    """

    prune: bool = False
    ignore: Optional[Callable[[str], bool]] = None


def remove_path(path: Path) -> None:
    """Delete a file, symlink or directory tree, raising FilesystemError on failure."""
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as e:
        raise FilesystemError("delete", path, str(e)) from e


def copy_file(source: Path, destination: Path) -> None:
    """Copy one file, replacing any existing destination file."""
    try:
        if destination.exists() or destination.is_symlink():
            destination.unlink()
        shutil.copy2(source, destination)
    except OSError as e:
        raise FilesystemError("copy", destination, str(e)) from e


def copy_symlink(source: Path, destination: Path) -> bool:
    """
    Recreate a symlink at destination with the same link text.

    The link is never followed. Returns False when an identical link is already there.
    """
    try:
        link_text = os.readlink(source)
        if destination.is_symlink() and os.readlink(destination) == link_text:
            return False
        if destination.is_symlink() or destination.exists():
            remove_path(destination)
        os.symlink(link_text, destination, target_is_directory=source.is_dir())
    except OSError as e:
        raise FilesystemError("link", destination, str(e)) from e
    return True


def needs_copy(source: Path, destination: Path) -> bool:
    if destination.is_symlink() or not destination.is_file():
        return True
    try:
        return source.stat().st_size != destination.stat().st_size
    except OSError as e:
        raise FilesystemError("stat", destination, str(e)) from e


class DirectoryMirror:
    """Mirrors a source tree into a destination tree with minimal copying."""

    def mirror(
        self,
        source: Path,
        destination: Path,
        options: Optional[MirrorOptions] = None,
    ) -> MirrorStats:
        options = options or MirrorOptions()
        if not source.is_dir():
            raise FilesystemError("read", source, "source directory does not exist")

        stats = MirrorStats()
        if destination.is_symlink() or not destination.is_dir():
            if destination.exists() or destination.is_symlink():
                remove_path(destination)
            self._make_dir(destination)
            stats.directories_created += 1

        self._mirror_dir(source, destination, options, stats)
        logger.debug(
            f"Mirrored {source} -> {destination}: {stats.files_copied} copied, "
            f"{stats.files_skipped} skipped, {stats.directories_created} dirs created, "
            f"{stats.entries_removed} removed"
        )
        return stats

    def _mirror_dir(self, source: Path, destination: Path, options: MirrorOptions, stats: MirrorStats) -> None:
        try:
            children = sorted(source.iterdir())
        except OSError as e:
            raise FilesystemError("list", source, str(e)) from e

        kept = set()
        for child in children:
            if options.ignore is not None and options.ignore(child.name):
                continue
            kept.add(child.name)
            target = destination / child.name

            if child.is_symlink():
                # recreated as a link, never followed
                if copy_symlink(child, target):
                    stats.files_copied += 1
                else:
                    stats.files_skipped += 1
            elif child.is_dir():
                if target.is_symlink() or not target.is_dir():
                    if target.exists() or target.is_symlink():
                        # a file or link where the source has a directory
                        remove_path(target)
                        stats.entries_removed += 1
                    self._make_dir(target)
                    stats.directories_created += 1
                self._mirror_dir(child, target, options, stats)
            elif child.is_file():
                if target.is_dir() and not target.is_symlink():
                    remove_path(target)
                    stats.entries_removed += 1
                if needs_copy(child, target):
                    copy_file(child, target)
                    stats.files_copied += 1
                else:
                    stats.files_skipped += 1

        if options.prune:
            try:
                existing_entries = sorted(destination.iterdir())
            except OSError as e:
                raise FilesystemError("list", destination, str(e)) from e
            for existing in existing_entries:
                if existing.name not in kept:
                    remove_path(existing)
                    stats.entries_removed += 1

    @staticmethod
    def _make_dir(path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError("create", path, str(e)) from e
