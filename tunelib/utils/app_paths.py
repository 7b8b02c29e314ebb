"""App path helpers (cross-platform).

SSOT for tunelib data paths.

Environment overrides (useful for portable/dev launches):
- TUNELIB_DIR: explicit directory holding .tun files
"""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_data_dir

from tunelib.config import APP_NAME, TUNINGS_DIR_ENV


def _env_path(name: str) -> Path | None:
    v = os.environ.get(name)
    if not v:
        return None
    return Path(os.path.expanduser(v)).resolve()


def get_app_data_dir() -> Path:
    """Base app data dir."""
    return Path(user_data_dir(APP_NAME, appauthor=False, roaming=True)).resolve()


def get_tunings_dir() -> Path:
    """Directory holding .tun files (created on demand)."""
    tunings_dir = _env_path(TUNINGS_DIR_ENV)
    if tunings_dir is None:
        tunings_dir = get_app_data_dir() / "tunings"
    tunings_dir.mkdir(parents=True, exist_ok=True)
    return tunings_dir
