"""File-backed pattern store.

Layout under the storage root:

    index.json           KnowledgeBaseMetadata, with every pattern inline
    patterns/{id}.json   one Pattern per file, kept for redundancy

Writes happen in two phases: the individual record first, then the index.
A crash between the two leaves an orphan record file, never a listed
pattern without its record. The index is authoritative for all reads;
``reconcile()`` reports drift between the two without repairing it.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from opencat.errors import CorruptIndex, StorageUnavailable
from opencat.kb.models import (
    KBStats,
    KnowledgeBaseMetadata,
    Pattern,
    PatternDraft,
    utc_now,
)

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"
PATTERNS_DIR = "patterns"


@dataclass
class ReconcileReport:
    """Ids present on one side of the index/record pair but not the other."""
    missing_records: list[str] = field(default_factory=list)
    orphan_records: list[str] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.missing_records and not self.orphan_records


class PatternStore:
    """Durable CRUD over Pattern records at {root}/index.json + {root}/patterns/."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._patterns_dir = self._root / PATTERNS_DIR
        self._index_path = self._root / INDEX_FILE
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._root

    def _record_path(self, pattern_id: str) -> Path:
        return self._patterns_dir / f"{pattern_id}.json"

    def initialize(self) -> None:
        """Create the storage directories and an empty index if none exists."""
        try:
            self._patterns_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Cannot create storage at {self._root}: {e}") from e

        with self._lock:
            if self._index_path.exists():
                logger.debug("Knowledge base already initialized at %s", self._root)
                self.reconcile()
                return
            self._write_metadata(KnowledgeBaseMetadata())
            logger.info("Knowledge base initialized at %s", self._root)

    def get_metadata(self) -> KnowledgeBaseMetadata:
        """Load and parse index.json.

        Absent fields from older schema versions fall back to their
        empty defaults; anything unparseable raises CorruptIndex.
        """
        try:
            raw = self._index_path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise StorageUnavailable(
                f"Knowledge base not initialized at {self._root}"
            ) from e
        except OSError as e:
            raise StorageUnavailable(f"Cannot read {self._index_path}: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptIndex(f"{self._index_path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise CorruptIndex(f"{self._index_path} does not contain a JSON object")

        try:
            return KnowledgeBaseMetadata.model_validate(data)
        except ValidationError as e:
            raise CorruptIndex(f"{self._index_path} does not match the index schema: {e}") from e

    def _write_metadata(self, metadata: KnowledgeBaseMetadata) -> None:
        """Atomically replace index.json."""
        metadata = metadata.model_copy(
            update={"last_updated": utc_now(), "pattern_count": len(metadata.patterns)}
        )
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=".index-", suffix=".json", dir=self._root
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(metadata.to_json())
                os.replace(tmp_name, self._index_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageUnavailable(f"Cannot write {self._index_path}: {e}") from e

    def save(self, draft: PatternDraft) -> Pattern:
        """Stamp a new id and savedAt, write the record, then append it to the index."""
        pattern = Pattern.from_draft(draft)

        with self._lock:
            metadata = self.get_metadata()
            try:
                self._record_path(pattern.id).write_text(pattern.to_json(), encoding="utf-8")
            except OSError as e:
                raise StorageUnavailable(f"Cannot write pattern {pattern.id}: {e}") from e

            metadata.patterns.append(pattern)
            self._write_metadata(metadata)

        logger.info("Saved pattern %s (%s)", pattern.id, pattern.name)
        return pattern

    def get_all(self) -> list[Pattern]:
        """All patterns in insertion order."""
        return list(self.get_metadata().patterns)

    def get(self, pattern_id: str) -> Pattern | None:
        """Look up a pattern by id, or None if it is not listed."""
        for pattern in self.get_metadata().patterns:
            if pattern.id == pattern_id:
                return pattern
        return None

    def search(self, query: str) -> list[Pattern]:
        """Patterns whose name, description, kind or a tag contains query.

        Empty query lists everything. Never raises.
        """
        try:
            patterns = self.get_metadata().patterns
        except (StorageUnavailable, CorruptIndex) as e:
            logger.warning("Pattern search unavailable: %s", e)
            return []
        return [p for p in patterns if p.matches(query)]

    def delete(self, pattern_id: str) -> bool:
        """Remove a pattern from the index, then best-effort remove its record.

        Returns True if the pattern was listed, False if the id was unknown.
        """
        with self._lock:
            metadata = self.get_metadata()
            remaining = [p for p in metadata.patterns if p.id != pattern_id]
            if len(remaining) == len(metadata.patterns):
                logger.debug("Delete of unknown pattern %s ignored", pattern_id)
                return False
            metadata.patterns = remaining
            self._write_metadata(metadata)

        try:
            self._record_path(pattern_id).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to remove record file for %s: %s", pattern_id, e)

        logger.info("Deleted pattern %s", pattern_id)
        return True

    def get_stats(self) -> KBStats:
        metadata = self.get_metadata()
        return KBStats(
            pattern_count=metadata.pattern_count,
            path=str(self._root),
            last_updated=metadata.last_updated,
        )

    def reconcile(self) -> ReconcileReport:
        """Compare index ids with record files, logging any drift."""
        listed = set(self.get_metadata().ids())
        on_disk = {p.stem for p in self._patterns_dir.glob("*.json")}

        report = ReconcileReport(
            missing_records=sorted(listed - on_disk),
            orphan_records=sorted(on_disk - listed),
        )
        for pattern_id in report.missing_records:
            logger.warning("Pattern %s is indexed but has no record file", pattern_id)
        for pattern_id in report.orphan_records:
            logger.warning("Record file for %s is not listed in the index", pattern_id)
        return report
