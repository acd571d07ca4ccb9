"""Platform detection and path utilities."""

from __future__ import annotations

import os
import sys
from pathlib import Path


def get_platform() -> str:
    if sys.platform == "win32":
        return "windows"
    if sys.platform == "darwin":
        return "macos"
    return "linux"


def get_config_dir() -> Path:
    env = os.environ.get("STEPWISE_CONFIG_DIR")
    if env:
        return Path(env)

    platform = get_platform()
    if platform == "windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "stepwise"
    if platform == "macos":
        return Path.home() / "Library" / "Application Support" / "stepwise"
    # Linux / XDG
    xdg = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
    return Path(xdg) / "stepwise"


def get_default_shell() -> str:
    if get_platform() == "windows":
        return "powershell"
    return os.environ.get("SHELL", "/bin/bash")


def normalize_path(path: str | Path, root: Path | None = None) -> Path:
    """Expand and resolve ``path``; relative paths are taken from ``root`` when given."""
    candidate = Path(path).expanduser()
    if root is not None and not candidate.is_absolute():
        candidate = root / candidate
    return candidate.resolve()
