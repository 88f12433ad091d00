from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from capa.errors import ResolutionError

if TYPE_CHECKING:
    from capa.models import ServerSettings

STATE_DIR_NAME = ".capa"
SETTINGS_FILE_NAME = "settings.json"
DATABASE_FILE_NAME = "capa.db"
PID_FILE_NAME = "server.pid"


def home_dir() -> Path:
    try:
        home = Path.home()
    except (KeyError, RuntimeError) as exc:
        raise ResolutionError("Could not determine the home directory") from exc
    if str(home) in {"", "."}:
        raise ResolutionError("Could not determine the home directory")
    return home


def expand_home(value: str) -> Path:
    """Replace a leading ``~`` with the home directory.

    Only ``~`` on its own or followed by a path separator is a home reference;
    ``~user`` forms and ``~`` anywhere else are left untouched.
    """
    if value == "~":
        return home_dir()
    separators = {"/", os.sep}
    if value.startswith("~") and len(value) > 1 and value[1] in separators:
        return home_dir() / value[2:]
    return Path(value)


def state_dir() -> Path:
    return home_dir() / STATE_DIR_NAME


def settings_path() -> Path:
    return state_dir() / SETTINGS_FILE_NAME


def pid_file_path() -> Path:
    return state_dir() / PID_FILE_NAME


def database_path(settings: ServerSettings | None = None) -> Path:
    if settings is None:
        return state_dir() / DATABASE_FILE_NAME
    return expand_home(settings.database.path)
