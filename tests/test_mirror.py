import os
from pathlib import Path

import pytest

from modmanager.core.errors import FilesystemError
from modmanager.services.deployment.mirror import DirectoryMirror, MirrorOptions


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def source(tmp_path: Path) -> Path:
    root = tmp_path / "source"
    write(root / "plugin.dll", "binary")
    write(root / "config" / "settings.cfg", "a=1")
    write(root / "config" / "nested" / "deep.txt", "deep")
    return root


def test_mirror_copies_everything_into_new_destination(tmp_path: Path, source: Path):
    destination = tmp_path / "destination"
    stats = DirectoryMirror().mirror(source, destination)

    assert stats.files_copied == 3
    assert stats.files_skipped == 0
    assert (destination / "config" / "nested" / "deep.txt").read_text(encoding="utf-8") == "deep"


def test_second_mirror_copies_nothing(tmp_path: Path, source: Path):
    destination = tmp_path / "destination"
    mirror = DirectoryMirror()
    mirror.mirror(source, destination)

    stats = mirror.mirror(source, destination)
    assert stats.files_copied == 0
    assert stats.files_skipped == 3
    assert stats.directories_created == 0


def test_size_change_is_copied(tmp_path: Path, source: Path):
    destination = tmp_path / "destination"
    mirror = DirectoryMirror()
    mirror.mirror(source, destination)

    write(source / "config" / "settings.cfg", "a=100")
    stats = mirror.mirror(source, destination)
    assert stats.files_copied == 1
    assert (destination / "config" / "settings.cfg").read_text(encoding="utf-8") == "a=100"


def test_same_size_change_is_not_detected(tmp_path: Path, source: Path):
    destination = tmp_path / "destination"
    mirror = DirectoryMirror()
    mirror.mirror(source, destination)

    write(source / "config" / "settings.cfg", "a=2")
    stats = mirror.mirror(source, destination)
    assert stats.files_copied == 0
    assert (destination / "config" / "settings.cfg").read_text(encoding="utf-8") == "a=1"


def test_extra_destination_files_survive_without_prune(tmp_path: Path, source: Path):
    destination = tmp_path / "destination"
    write(destination / "user_notes.txt", "keep me")

    DirectoryMirror().mirror(source, destination)
    assert (destination / "user_notes.txt").exists()


def test_prune_removes_extra_destination_entries(tmp_path: Path, source: Path):
    destination = tmp_path / "destination"
    write(destination / "stale.dll", "old")
    write(destination / "config" / "old_dir" / "x.txt", "old")

    stats = DirectoryMirror().mirror(source, destination, MirrorOptions(prune=True))
    assert not (destination / "stale.dll").exists()
    assert not (destination / "config" / "old_dir").exists()
    assert stats.entries_removed == 2


def test_ignored_entries_are_not_copied(tmp_path: Path, source: Path):
    destination = tmp_path / "destination"
    DirectoryMirror().mirror(source, destination, MirrorOptions(ignore=lambda name: name == "config"))
    assert (destination / "plugin.dll").exists()
    assert not (destination / "config").exists()


def test_type_conflicts_are_replaced(tmp_path: Path, source: Path):
    destination = tmp_path / "destination"
    write(destination / "config", "a file where a directory belongs")
    write(destination / "plugin.dll" / "inner.txt", "a directory where a file belongs")

    DirectoryMirror().mirror(source, destination)
    assert (destination / "config" / "settings.cfg").is_file()
    assert (destination / "plugin.dll").is_file()


def test_missing_source_raises(tmp_path: Path):
    with pytest.raises(FilesystemError) as exc:
        DirectoryMirror().mirror(tmp_path / "nope", tmp_path / "destination")
    assert exc.value.operation == "read"


def test_self_referencing_directory_symlink_is_not_unrolled(tmp_path: Path, source: Path):
    (source / "config" / "loop").symlink_to(".", target_is_directory=True)
    destination = tmp_path / "destination"

    mirror = DirectoryMirror()
    stats = mirror.mirror(source, destination)

    link = destination / "config" / "loop"
    assert link.is_symlink()
    assert os.readlink(link) == "."
    real_files = [name for _, _, files in os.walk(destination) for name in files]
    assert sorted(real_files) == ["deep.txt", "plugin.dll", "settings.cfg"]
    assert stats.files_copied == 4

    again = mirror.mirror(source, destination)
    assert again.files_copied == 0
    assert again.files_skipped == 4


def test_file_symlinks_are_recreated(tmp_path: Path, source: Path):
    (source / "alias.dll").symlink_to("plugin.dll")
    destination = tmp_path / "destination"
    DirectoryMirror().mirror(source, destination)

    assert (destination / "alias.dll").is_symlink()
    assert os.readlink(destination / "alias.dll") == "plugin.dll"
