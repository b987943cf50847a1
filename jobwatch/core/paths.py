from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from jobwatch.config import PROJECT_ROOT

logger = logging.getLogger(__name__)

APP_NAME = "jobwatch"
STATE_DIR_ENV = "JOBWATCH_STATE_DIR"


def _is_checkout(root: Path) -> bool:
    # An installed package sits in site-packages without the project metadata.
    return (root / "pyproject.toml").is_file()


def _user_data_dir() -> Path:
    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA") or Path.home() / "AppData" / "Roaming")
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        xdg = os.environ.get("XDG_DATA_HOME")
        base = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return (base / APP_NAME).resolve()


def _writable(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
        probe = path / ".write_test"
        probe.write_text("ok", encoding="utf-8")
        probe.unlink(missing_ok=True)
    except OSError:
        logger.debug("State dir %s is not writable", path, exc_info=True)
        return False
    return True


def get_app_state_dir(app_folder_name: str = ".jobwatch", root: Path | None = None) -> Path:
    """Return the directory for monitor state (log files).

    ``JOBWATCH_STATE_DIR`` wins when set. A source checkout keeps state in
    ``<checkout>/.jobwatch`` if writable; an installed package always uses the
    OS user data dir (``~/.local/share/jobwatch``, ``%APPDATA%\\jobwatch``...).
    """
    override = os.environ.get(STATE_DIR_ENV)
    if override:
        return Path(override).expanduser().resolve()
    project = root or PROJECT_ROOT
    if _is_checkout(project):
        local = project / app_folder_name
        if _writable(local):
            return local
    return _user_data_dir()
