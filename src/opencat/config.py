"""OpenCat configuration management.

Loads and merges settings from project and user-level settings.json files.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from opencat.utils.paths import (
    get_default_storage_dir,
    get_project_settings_path,
    get_user_settings_path,
)


DEFAULT_INCLUDE_PATTERNS = [
    "**/*.java",
    "**/*.ts",
    "**/*.tsx",
    "**/*.js",
    "**/*.jsx",
    "**/*.py",
    "**/*.kt",
]

DEFAULT_EXCLUDE_GLOBS = [
    "**/node_modules/**",
    "**/.git/**",
    "**/dist/**",
    "**/build/**",
]

MAX_PATTERN_LIMIT = 3
MAX_STRUCTURAL_LIMIT = 2

DEFAULT_SETTINGS: dict[str, Any] = {
    "storage_dir": None,
    "include_patterns": DEFAULT_INCLUDE_PATTERNS,
    "exclude_globs": DEFAULT_EXCLUDE_GLOBS,
    "max_files": 200,
    "pattern_limit": MAX_PATTERN_LIMIT,
    "structural_limit": MAX_STRUCTURAL_LIMIT,
}


@dataclass
class OpenCatSettings:
    """Merged OpenCat settings."""

    storage_dir: str | None = None
    include_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE_PATTERNS))
    exclude_globs: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_GLOBS))
    max_files: int = 200
    pattern_limit: int = MAX_PATTERN_LIMIT
    structural_limit: int = MAX_STRUCTURAL_LIMIT

    @property
    def storage_path(self) -> Path:
        """Resolved storage root, falling back to ~/.opencat/kb."""
        if self.storage_dir:
            return Path(self.storage_dir).expanduser()
        return get_default_storage_dir()

    def to_dict(self) -> dict[str, Any]:
        return {
            "storage_dir": self.storage_dir,
            "include_patterns": self.include_patterns,
            "exclude_globs": self.exclude_globs,
            "max_files": self.max_files,
            "pattern_limit": self.pattern_limit,
            "structural_limit": self.structural_limit,
        }


def load_json_file(path: Path) -> dict[str, Any]:
    """Load a JSON file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base, returning new dict.

    - Dicts are recursively merged
    - Lists are replaced (not appended)
    - Scalars are replaced
    """
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_settings(project_root: Path | None = None) -> OpenCatSettings:
    """Load and merge settings from user + project levels.

    Precedence: project settings override user settings override defaults.
    """
    merged = dict(DEFAULT_SETTINGS)

    user_settings = load_json_file(get_user_settings_path())
    if user_settings:
        merged = deep_merge(merged, user_settings)

    if project_root is not None:
        project_settings = load_json_file(get_project_settings_path(project_root))
        if project_settings:
            merged = deep_merge(merged, project_settings)

    return OpenCatSettings(
        storage_dir=merged.get("storage_dir"),
        include_patterns=list(merged.get("include_patterns", DEFAULT_INCLUDE_PATTERNS)),
        exclude_globs=list(merged.get("exclude_globs", DEFAULT_EXCLUDE_GLOBS)),
        max_files=merged.get("max_files", 200),
        pattern_limit=merged.get("pattern_limit", MAX_PATTERN_LIMIT),
        structural_limit=merged.get("structural_limit", MAX_STRUCTURAL_LIMIT),
    )


def save_settings(settings: OpenCatSettings, path: Path) -> None:
    """Save settings to a JSON file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(settings.to_dict(), indent=2) + "\n",
        encoding="utf-8",
    )


def validate_settings(settings: OpenCatSettings) -> list[str]:
    """Validate settings, returning list of error messages (empty if valid)."""
    errors = []

    if settings.storage_dir is not None and not isinstance(settings.storage_dir, str):
        errors.append("storage_dir must be a string or null")

    for key in ("include_patterns", "exclude_globs"):
        value = getattr(settings, key)
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            errors.append(f"{key} must be a list of strings")

    if not isinstance(settings.max_files, int) or settings.max_files < 1:
        errors.append("max_files must be a positive integer")

    if not isinstance(settings.pattern_limit, int) or not (1 <= settings.pattern_limit <= MAX_PATTERN_LIMIT):
        errors.append(f"pattern_limit must be an integer between 1 and {MAX_PATTERN_LIMIT}")

    if not isinstance(settings.structural_limit, int) or not (
        1 <= settings.structural_limit <= MAX_STRUCTURAL_LIMIT
    ):
        errors.append(f"structural_limit must be an integer between 1 and {MAX_STRUCTURAL_LIMIT}")

    return errors
