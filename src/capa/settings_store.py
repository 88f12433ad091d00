from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from capa.errors import SettingsParseError, SettingsWriteError
from capa.models import DEFAULT_SETTINGS, ServerSettings
from capa.paths import settings_path
from capa.state_dir import ensure_state_dir

log = logging.getLogger(__name__)


def write_atomic(path: Path, text: str) -> None:
    """Write ``text`` to a sibling temp file, then rename it over ``path``.

    Readers see either the previous file or the new one, never a partial
    write. Raises ``OSError`` and leaves no temp file behind on failure.
    """
    tmp = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    try:
        with tmp.open("w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


class SettingsStore:
    def __init__(self, path: Path | None = None) -> None:
        self.path = path or settings_path()

    def load(self) -> ServerSettings:
        ensure_state_dir(self.path.parent)
        if not self.path.exists():
            log.debug("settings file missing, using defaults path=%s", self.path)
            return DEFAULT_SETTINGS

        try:
            with self.path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as exc:
            raise SettingsParseError(
                f"Settings file is not valid JSON: {self.path}: {exc}"
            ) from exc

        if not isinstance(payload, dict):
            raise SettingsParseError(
                f"Settings file must contain an object at root: {self.path}"
            )

        try:
            settings = ServerSettings.from_dict(payload)
        except ValueError as exc:
            raise SettingsParseError(f"Invalid settings in {self.path}: {exc}") from exc

        unknown = settings.unknown_keys()
        if unknown:
            log.warning(
                "settings file has unrecognized keys, keeping them path=%s keys=%s",
                self.path,
                ",".join(unknown),
            )
        return settings

    def save(self, settings: ServerSettings) -> None:
        ensure_state_dir(self.path.parent)
        try:
            text = json.dumps(settings.to_dict(), indent=2, allow_nan=False) + "\n"
        except (TypeError, ValueError) as exc:
            raise SettingsWriteError(f"Settings cannot be serialized: {exc}") from exc
        try:
            write_atomic(self.path, text)
        except OSError as exc:
            raise SettingsWriteError(
                f"Could not write settings file {self.path}: {exc}"
            ) from exc
        log.info("settings saved path=%s version=%s", self.path, settings.version)


def load_settings() -> ServerSettings:
    return SettingsStore().load()


def save_settings(settings: ServerSettings) -> None:
    SettingsStore().save(settings)
