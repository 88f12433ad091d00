from __future__ import annotations

from pathlib import Path

import pytest

from capa.errors import DirectoryCreationError
from capa.state_dir import ensure_state_dir


def test_creates_state_dir_under_home(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    created = ensure_state_dir()
    assert created == tmp_path / ".capa"
    assert created.is_dir()


def test_creates_missing_ancestors(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b" / "state"
    assert ensure_state_dir(target) == target
    assert target.is_dir()


def test_is_idempotent(tmp_path: Path) -> None:
    target = tmp_path / "state"
    ensure_state_dir(target)
    (target / "keep.txt").write_text("x", encoding="utf-8")

    ensure_state_dir(target)

    assert target.is_dir()
    assert [item.name for item in target.iterdir()] == ["keep.txt"]


def test_rejects_file_in_place_of_directory(tmp_path: Path) -> None:
    target = tmp_path / "state"
    target.write_text("not a directory", encoding="utf-8")
    with pytest.raises(DirectoryCreationError):
        ensure_state_dir(target)


def test_rejects_file_as_ancestor(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    with pytest.raises(DirectoryCreationError):
        ensure_state_dir(blocker / "state")


def test_wraps_permission_errors(monkeypatch, tmp_path: Path) -> None:
    def denied(self: Path, *args: object, **kwargs: object) -> None:
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "mkdir", denied)
    with pytest.raises(DirectoryCreationError, match="Permission denied"):
        ensure_state_dir(tmp_path / "state")


def test_wraps_errors_while_checking_existing_path(monkeypatch, tmp_path: Path) -> None:
    def unreadable(self: Path) -> bool:
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "is_dir", unreadable)
    with pytest.raises(DirectoryCreationError, match="Permission denied"):
        ensure_state_dir(tmp_path / "state")
