"""Error taxonomy for OpenCat.

Store errors propagate to the caller of explicit mutations. Read errors
are contained by the indexer at file granularity, and the context
assembler never lets any of these escape.
"""

from __future__ import annotations


class OpenCatError(Exception):
    """Base class for all OpenCat errors."""


class StorageUnavailable(OpenCatError):
    """Raised when the storage root cannot be created or accessed."""


class CorruptIndex(OpenCatError):
    """Raised when index.json cannot be parsed into knowledge base metadata."""


class ReadError(OpenCatError):
    """Raised when a single workspace file cannot be read as text."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class PatternNotFound(OpenCatError):
    """Raised when a pattern id is looked up but not listed in the index."""

    def __init__(self, pattern_id: str) -> None:
        super().__init__(f"Pattern {pattern_id} not found")
        self.pattern_id = pattern_id
