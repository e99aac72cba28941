# repoviewer/config/paths.py
import os
import sys
from pathlib import Path


def _get_app_name() -> str:
    return "RepoViewer"


def get_user_data_dir() -> Path:
    """
    Per-user directory for config and logs. ``REPOVIEWER_HOME`` wins, then
    %APPDATA% on Windows, then $XDG_CONFIG_HOME (default ~/.config).
    """
    override = os.environ.get("REPOVIEWER_HOME")
    if override:
        path = Path(override)
    elif sys.platform == "win32":
        appdata_path = os.environ.get("APPDATA")
        path = Path(appdata_path) / _get_app_name() if appdata_path else Path.home() / "AppData/Roaming" / _get_app_name()
    else:
        xdg_config = os.environ.get("XDG_CONFIG_HOME")
        base = Path(xdg_config) if xdg_config else Path.home() / ".config"
        path = base / _get_app_name().lower()

    path.mkdir(parents=True, exist_ok=True)
    return path


def get_user_config_file() -> Path:
    """Get the path to the user's config.json file."""
    return get_user_data_dir() / "config.json"


def get_user_log_dir() -> Path:
    path = get_user_data_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path
