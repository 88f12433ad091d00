from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from capa.models import ServerSettings
from capa.paths import pid_file_path
from capa.settings_store import SettingsStore, write_atomic
from capa.state_dir import ensure_state_dir

log = logging.getLogger(__name__)


@dataclass(slots=True)
class PidRecord:
    pid: int
    version: str | None = None

    @classmethod
    def parse(cls, text: str) -> "PidRecord":
        pid_text, _, version = text.strip().partition(":")
        try:
            pid = int(pid_text)
        except ValueError as exc:
            raise ValueError(f"Invalid pid file content: {text.strip()!r}") from exc
        if pid <= 0:
            raise ValueError(f"Invalid pid in pid file: {pid}")
        return cls(pid=pid, version=version or None)

    def to_text(self) -> str:
        if self.version:
            return f"{self.pid}:{self.version}"
        return str(self.pid)


@dataclass(slots=True)
class ServerStatus:
    running: bool
    pid: int | None = None
    version: str | None = None
    port: int | None = None
    url: str | None = None


def read_pid_file(path: Path | None = None) -> PidRecord | None:
    pid_file = path or pid_file_path()
    if not pid_file.exists():
        return None
    return PidRecord.parse(pid_file.read_text(encoding="utf-8"))


def write_pid_file(
    pid: int,
    version: str | None = None,
    *,
    path: Path | None = None,
) -> PidRecord:
    pid_file = path or pid_file_path()
    ensure_state_dir(pid_file.parent)
    record = PidRecord(pid=pid, version=version)
    write_atomic(pid_file, record.to_text())
    return record


def remove_pid_file(path: Path | None = None) -> None:
    (path or pid_file_path()).unlink(missing_ok=True)


# Signal 0 is a liveness probe on POSIX only; on Windows os.kill(pid, 0)
# delivers CTRL_C_EVENT, so the pid file is trusted there instead.
_CAN_PROBE = os.name != "nt"


def is_pid_alive(pid: int, kill_fn: Callable[[int, int], None] = os.kill) -> bool:
    if pid <= 0:
        return False
    if not _CAN_PROBE:
        return True

    try:
        kill_fn(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def get_server_status(
    *,
    settings: ServerSettings | None = None,
    path: Path | None = None,
    store: SettingsStore | None = None,
    kill_fn: Callable[[int, int], None] = os.kill,
) -> ServerStatus:
    pid_file = path or pid_file_path()
    try:
        record = read_pid_file(pid_file)
    except (OSError, ValueError) as exc:
        log.warning("unreadable pid file path=%s error=%s", pid_file, exc)
        return ServerStatus(running=False)

    if record is None:
        return ServerStatus(running=False)

    if not is_pid_alive(record.pid, kill_fn=kill_fn):
        # Stale pid file; clear it.
        log.info("removing stale pid file path=%s pid=%d", pid_file, record.pid)
        try:
            remove_pid_file(pid_file)
        except OSError as exc:
            log.warning("could not remove stale pid file path=%s error=%s", pid_file, exc)
        return ServerStatus(running=False)

    current = settings or (store or SettingsStore()).load()
    return ServerStatus(
        running=True,
        pid=record.pid,
        version=record.version,
        port=current.server.port,
        url=f"http://{current.server.host}:{current.server.port}",
    )
