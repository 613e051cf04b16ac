"""Project and storage path helpers for OpenCat."""

from __future__ import annotations

from pathlib import Path


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from start directory to find the workspace root.

    The workspace root is identified by an .opencat/ directory,
    falling back to the nearest .git/ directory.
    """
    current = (start or Path.cwd()).resolve()
    for directory in [current, *current.parents]:
        if (directory / ".opencat").is_dir():
            return directory
    for directory in [current, *current.parents]:
        if (directory / ".git").exists():
            return directory
    return None


def get_user_dir() -> Path:
    """Get the user-level ~/.opencat directory path."""
    return Path.home() / ".opencat"


def get_default_storage_dir() -> Path:
    """Get the default knowledge base storage root (one per installation)."""
    return get_user_dir() / "kb"


def get_opencat_dir(project_root: Path) -> Path:
    """Get .opencat/ directory, creating if needed."""
    d = project_root / ".opencat"
    d.mkdir(exist_ok=True)
    return d


def get_user_settings_path() -> Path:
    """Get user-level settings.json path."""
    return get_user_dir() / "settings.json"


def get_project_settings_path(project_root: Path) -> Path:
    """Get project-level settings.json path."""
    return project_root / ".opencat" / "settings.json"
