from __future__ import annotations

from pathlib import Path

import pytest

from capa.models import DEFAULT_SETTINGS
from capa.server_status import (
    PidRecord,
    get_server_status,
    is_pid_alive,
    read_pid_file,
    remove_pid_file,
    write_pid_file,
)
from capa.settings_store import SettingsStore


def alive_kill(pid: int, sig: int) -> None:
    return None


def dead_kill(pid: int, sig: int) -> None:
    raise ProcessLookupError


def test_pid_record_parse() -> None:
    assert PidRecord.parse("1234") == PidRecord(1234, None)
    assert PidRecord.parse("1234:1.2.0\n") == PidRecord(1234, "1.2.0")
    with pytest.raises(ValueError):
        PidRecord.parse("abc")
    with pytest.raises(ValueError):
        PidRecord.parse("0")


def test_write_read_remove_pid_file(tmp_path: Path) -> None:
    pid_file = tmp_path / "state" / "server.pid"
    write_pid_file(4321, "1.0.0", path=pid_file)

    assert pid_file.read_text(encoding="utf-8") == "4321:1.0.0"
    assert read_pid_file(pid_file) == PidRecord(4321, "1.0.0")

    remove_pid_file(pid_file)
    remove_pid_file(pid_file)
    assert read_pid_file(pid_file) is None


def test_pid_file_defaults_to_state_dir(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    write_pid_file(99)
    assert (tmp_path / ".capa" / "server.pid").read_text(encoding="utf-8") == "99"


def test_is_pid_alive() -> None:
    def denied(pid: int, sig: int) -> None:
        raise PermissionError

    assert is_pid_alive(10, kill_fn=alive_kill)
    assert is_pid_alive(10, kill_fn=denied)
    assert not is_pid_alive(10, kill_fn=dead_kill)
    assert not is_pid_alive(0, kill_fn=alive_kill)


def test_status_without_pid_file(tmp_path: Path) -> None:
    status = get_server_status(path=tmp_path / "server.pid", settings=DEFAULT_SETTINGS)
    assert status.running is False
    assert status.pid is None


def test_status_clears_stale_pid_file(tmp_path: Path) -> None:
    pid_file = tmp_path / "server.pid"
    write_pid_file(1234, path=pid_file)

    status = get_server_status(path=pid_file, settings=DEFAULT_SETTINGS, kill_fn=dead_kill)

    assert status.running is False
    assert not pid_file.exists()


def test_status_ignores_garbage_pid_file(tmp_path: Path) -> None:
    pid_file = tmp_path / "server.pid"
    pid_file.write_text("garbage", encoding="utf-8")

    status = get_server_status(path=pid_file, settings=DEFAULT_SETTINGS, kill_fn=alive_kill)

    assert status.running is False
    assert pid_file.exists()


def test_status_running_uses_loaded_settings(tmp_path: Path) -> None:
    pid_file = tmp_path / "server.pid"
    write_pid_file(1234, "1.0.0", path=pid_file)
    store = SettingsStore(tmp_path / "settings.json")
    store.save(DEFAULT_SETTINGS.with_value("server.port", "9000"))

    status = get_server_status(path=pid_file, store=store, kill_fn=alive_kill)

    assert status.running is True
    assert status.pid == 1234
    assert status.version == "1.0.0"
    assert status.port == 9000
    assert status.url == "http://127.0.0.1:9000"


def test_status_survives_undeletable_stale_pid_file(monkeypatch, tmp_path: Path) -> None:
    pid_file = tmp_path / "server.pid"
    write_pid_file(1234, path=pid_file)

    def denied(self: Path, missing_ok: bool = False) -> None:
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "unlink", denied)
    status = get_server_status(path=pid_file, settings=DEFAULT_SETTINGS, kill_fn=dead_kill)

    assert status.running is False
    assert pid_file.exists()


def test_pid_probe_skipped_where_signal_zero_is_unsafe(monkeypatch) -> None:
    sent: list[tuple[int, int]] = []

    def recording_kill(pid: int, sig: int) -> None:
        sent.append((pid, sig))

    monkeypatch.setattr("capa.server_status._CAN_PROBE", False)
    assert is_pid_alive(10, kill_fn=recording_kill)
    assert sent == []
