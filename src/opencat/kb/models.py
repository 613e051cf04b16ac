"""Pattern and knowledge base metadata models.

Python attributes are snake_case; the JSON written to disk uses camelCase
keys (``savedAt``, ``originQuery``, ``patternCount``...). Both spellings
are accepted when loading.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


SCHEMA_VERSION = "1.0.0"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_pattern_id() -> str:
    """Millisecond timestamp plus a random suffix."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class PatternKind(str, Enum):
    """Architectural role of a saved pattern."""
    CONTROLLER = "controller"
    SERVICE = "service"
    REPOSITORY = "repository"
    COMPONENT = "component"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PatternDraft(_CamelModel):
    """A pattern as submitted by the user, before the store stamps it."""
    name: str
    language: str = "unknown"
    kind: PatternKind = PatternKind.COMPONENT
    code: str = ""
    description: str = ""
    origin_query: str = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be empty")
        return value


class Pattern(PatternDraft):
    """A saved, reusable snippet. Never mutated once persisted."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    saved_at: str = ""

    @classmethod
    def from_draft(cls, draft: PatternDraft) -> Pattern:
        return cls(
            id=new_pattern_id(),
            saved_at=utc_now(),
            **draft.model_dump(),
        )

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on name, description, kind and tags."""
        needle = query.lower()
        if not needle:
            return True
        haystacks = [self.name, self.description, self.kind.value, *self.tags]
        return any(needle in h.lower() for h in haystacks)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2) + "\n"


class KnowledgeBaseMetadata(_CamelModel):
    """The index.json document. pattern_count always mirrors len(patterns)."""
    version: str = SCHEMA_VERSION
    created_at: str = Field(default_factory=utc_now)
    last_updated: str = Field(default_factory=utc_now)
    pattern_count: int = 0
    patterns: list[Pattern] = Field(default_factory=list)

    @model_validator(mode="after")
    def _sync_count(self) -> KnowledgeBaseMetadata:
        self.pattern_count = len(self.patterns)
        return self

    def ids(self) -> list[str]:
        return [p.id for p in self.patterns]

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2) + "\n"


class KBStats(BaseModel):
    """Summary shown by the stats command."""
    pattern_count: int
    path: str
    last_updated: str
