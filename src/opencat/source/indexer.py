"""Best-effort structural index of a workspace's source files.

Classifies each file into a component kind and extracts its declared
type name and referenced dependencies using line-oriented probes.
The resulting map is rebuilt on every pass and never persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Iterable, Iterator, Mapping

from opencat.errors import ReadError
from opencat.source.probes import (
    BODY_MARKERS,
    FILENAME_RULES,
    extract_declared_name,
    extract_dependencies,
)
from opencat.source.workspace import Workspace

logger = logging.getLogger(__name__)


LANGUAGE_BY_EXTENSION = {
    ".java": "java",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".py": "python",
    ".kt": "kotlin",
}

UNKNOWN_LANGUAGE = "unknown"

# basename substrings marking tests, specs and the host entry file
EXCLUDED_NAME_MARKERS = (".test.", ".spec.", "extension.")


class ComponentKind(str, Enum):
    CONTROLLER = "controller"
    SERVICE = "service"
    REPOSITORY = "repository"
    COMPONENT = "component"
    CONFIG = "config"


@dataclass(frozen=True)
class StructuralRecord:
    """One indexed source file."""
    file_path: str
    declared_name: str
    kind: ComponentKind
    language: str
    raw_text: str
    dependencies: tuple[str, ...] = ()


def detect_language(file_path: str) -> str:
    return LANGUAGE_BY_EXTENSION.get(PurePath(file_path).suffix.lower(), UNKNOWN_LANGUAGE)


def is_excluded(file_path: str) -> bool:
    name = PurePath(file_path).name
    return any(marker in name for marker in EXCLUDED_NAME_MARKERS)


def classify_kind(file_path: str, text: str) -> ComponentKind:
    """Filename rules first, then body markers, then component."""
    name = PurePath(file_path).name.lower()
    for kind, needles in FILENAME_RULES:
        if any(needle in name for needle in needles):
            return ComponentKind(kind)
    for kind, markers in BODY_MARKERS:
        if any(marker(text) for marker in markers):
            return ComponentKind(kind)
    return ComponentKind.COMPONENT


def parse_file(file_path: str, text: str) -> StructuralRecord | None:
    """Build a record for one file, or None if it is excluded or declares nothing."""
    if is_excluded(file_path):
        return None

    declared_name = extract_declared_name(text)
    if not declared_name:
        return None

    return StructuralRecord(
        file_path=file_path,
        declared_name=declared_name,
        kind=classify_kind(file_path, text),
        language=detect_language(file_path),
        raw_text=text,
        dependencies=extract_dependencies(text),
    )


class SourceIndexer:
    """Map of declared name -> StructuralRecord. Later files overwrite earlier ones."""

    def __init__(self) -> None:
        self._records: dict[str, StructuralRecord] = {}

    @property
    def records(self) -> Mapping[str, StructuralRecord]:
        return self._records

    def get(self, declared_name: str) -> StructuralRecord | None:
        return self._records.get(declared_name)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[StructuralRecord]:
        return iter(self._records.values())

    def __contains__(self, declared_name: object) -> bool:
        return declared_name in self._records

    def _add(self, file_path: str, text: str) -> None:
        try:
            record = parse_file(file_path, text)
        except Exception as e:
            logger.warning("Failed to parse %s: %s", file_path, e)
            return
        if record is None:
            logger.debug("Skipped %s", file_path)
            return
        self._records[record.declared_name] = record

    def index(self, files: Iterable[tuple[str, str]]) -> Mapping[str, StructuralRecord]:
        """Index (path, text) pairs."""
        for file_path, text in files:
            self._add(file_path, text)
        logger.debug("Built class map with %d classes", len(self._records))
        return self._records

    def index_workspace(self, workspace: Workspace) -> Mapping[str, StructuralRecord]:
        """Enumerate and read files through the workspace.

        Unreadable files are logged and skipped; a failure to enumerate
        propagates to the caller.
        """
        for file_path in workspace.list_files():
            if is_excluded(file_path):
                continue
            try:
                text = workspace.read_text(file_path)
            except ReadError as e:
                logger.warning("%s", e)
                continue
            self._add(file_path, text)
        logger.debug("Built class map with %d classes", len(self._records))
        return self._records
