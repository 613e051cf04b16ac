"""Filesystem workspace: enumerate source files and read their text.

This is the host-side collaborator the indexer consumes. Anything that
offers ``list_files()`` and ``read_text(path)`` can stand in for it.
"""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Protocol

from opencat.errors import ReadError


class Workspace(Protocol):
    def list_files(self) -> list[str]: ...

    def read_text(self, path: str) -> str: ...


def _is_excluded(rel_path: str, exclude_globs: list[str]) -> bool:
    # "**/x/**" should also match "x/..." at the workspace root
    candidates = (rel_path, f"./{rel_path}", f"/{rel_path}")
    return any(
        fnmatch.fnmatch(candidate, glob)
        for glob in exclude_globs
        for candidate in candidates
    )


def _is_excluded_dir(rel_dir: str, exclude_globs: list[str]) -> bool:
    # a directory is pruned when anything directly inside it would be excluded
    return _is_excluded(f"{rel_dir}/_", exclude_globs)


def _matches_pattern(rel_path: str, pattern: str) -> bool:
    # rglob semantics: a pattern without "/" matches the basename at any depth
    glob = pattern[3:] if pattern.startswith("**/") else pattern
    if "/" in glob:
        # "**/" may also stand for no directory at all
        variants = {glob, pattern, glob.replace("/**/", "/")}
        return any(fnmatch.fnmatch(rel_path, v) for v in variants)
    return fnmatch.fnmatch(rel_path.rpartition("/")[2], glob)


def _walk_files(root: Path, exclude_globs: list[str]) -> list[str]:
    """Root-relative POSIX paths of all non-excluded files, sorted."""
    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else f"{rel_dir}/"
        dirnames[:] = [
            d for d in dirnames if not _is_excluded_dir(prefix + d, exclude_globs)
        ]
        for name in filenames:
            rel = prefix + name
            if not _is_excluded(rel, exclude_globs):
                found.append(rel)
    return sorted(found)


def enumerate_workspace_files(
    root: Path,
    patterns: list[str],
    exclude_globs: list[str],
    max_count: int,
) -> list[Path]:
    """Files under root matching any pattern, minus exclusions.

    Excluded directories are pruned during the walk and never listed.
    At most max_count files are returned per pattern, in sorted order.
    Raises OSError if root cannot be traversed.
    """
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")

    candidates = _walk_files(root, exclude_globs)
    seen: dict[str, None] = {}
    for pattern in patterns:
        count = 0
        for rel in candidates:
            if count >= max_count:
                break
            if rel in seen or not _matches_pattern(rel, pattern):
                continue
            seen[rel] = None
            count += 1
    return [root / rel for rel in seen]


def read_file_text(path: Path) -> str:
    """Read a file as UTF-8, raising ReadError on any failure."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ReadError(str(path), str(e)) from e


class FileSystemWorkspace:
    """A workspace rooted at a directory on the local filesystem."""

    def __init__(
        self,
        root: Path,
        patterns: list[str],
        exclude_globs: list[str],
        max_files: int = 200,
    ) -> None:
        self.root = Path(root)
        self.patterns = patterns
        self.exclude_globs = exclude_globs
        self.max_files = max_files

    def list_files(self) -> list[str]:
        """Matching files as POSIX paths relative to the root."""
        return [
            p.relative_to(self.root).as_posix()
            for p in enumerate_workspace_files(
                self.root, self.patterns, self.exclude_globs, self.max_files
            )
        ]

    def read_text(self, path: str) -> str:
        return read_file_text(self.root / path)
