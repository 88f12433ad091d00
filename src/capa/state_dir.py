from __future__ import annotations

import logging
from pathlib import Path

from capa.errors import DirectoryCreationError
from capa.paths import state_dir

log = logging.getLogger(__name__)


def ensure_state_dir(path: Path | None = None) -> Path:
    """Create the state directory and any missing parents.

    Safe to call any number of times. Returns the directory path.
    """
    target = path or state_dir()
    try:
        if target.is_dir():
            return target
        target.mkdir(parents=True, exist_ok=True)
    except FileExistsError as exc:
        raise DirectoryCreationError(
            f"State directory path exists but is not a directory: {target}"
        ) from exc
    except OSError as exc:
        raise DirectoryCreationError(
            f"Could not create state directory {target}: {exc}"
        ) from exc

    log.debug("state dir created path=%s", target)
    return target
