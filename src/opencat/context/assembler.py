"""Assemble an enriched prompt from saved patterns and workspace code.

Given a free-text request, picks at most a few saved patterns and a
couple of structurally matching workspace files, distills each file to a
short skeleton, and renders a fixed template. When nothing relevant is
found, or anything fails along the way, the request is returned as-is.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from opencat.config import MAX_PATTERN_LIMIT, MAX_STRUCTURAL_LIMIT
from opencat.kb.models import Pattern
from opencat.kb.store import PatternStore
from opencat.source.indexer import SourceIndexer, StructuralRecord
from opencat.source.workspace import Workspace

logger = logging.getLogger(__name__)


STOP_WORDS = frozenset({
    "a", "an", "the",
    "how", "do", "does", "i", "me", "my", "you", "can", "please", "what",
    "is", "are", "be", "it", "this", "that", "and", "or",
    "create", "make", "write", "add", "new", "build", "implement", "generate", "need", "want",
    "to", "in", "for", "of", "on", "with", "from", "into", "by", "at", "about",
})

MAX_METHODS = 3

PREAMBLE = (
    "You are answering a question about the user's codebase.\n"
    "Rules:\n"
    "- Use only the context provided below.\n"
    "- Never invent classes, methods, fields or imports that do not appear in the context.\n"
    "- If the context is not enough to answer, say so."
)

CLOSING = "Answer using only the context blocks above."


def extract_keywords(query: str) -> list[str]:
    """Lowercased, punctuation-free tokens longer than 2 chars, minus stop words."""
    words = re.sub(r"[^\w\s]", " ", query.lower()).split()
    keywords: dict[str, None] = {}
    for word in words:
        if len(word) > 2 and word not in STOP_WORDS:
            keywords.setdefault(word, None)
    return list(keywords)


def is_relevant(record: StructuralRecord, keywords: list[str]) -> bool:
    name = record.declared_name.lower()
    path = record.file_path.lower()
    return (
        any(k in name for k in keywords)
        or any(k in path for k in keywords)
        or record.kind.value in keywords
    )


# ── Distillation ──


_METHOD_NAME_RE = re.compile(r"\b(\w+)\s*\(")


def _cut_at_brace(line: str) -> str:
    if "{" in line:
        line = line[: line.index("{")]
    return line.strip()


def _find_declaration(lines: list[str], name: str) -> int:
    regex = re.compile(rf"\b(?:class|interface|function|const)\s+{re.escape(name)}\b")
    for i, line in enumerate(lines):
        if regex.search(line):
            return i
    return -1


def _is_constructor(line: str, name: str) -> bool:
    return (
        "constructor(" in line
        or "def __init__(" in line
        or re.search(rf"\b(?:public|protected|private)\s+{re.escape(name)}\s*\(", line) is not None
    )


def distill_snippet(record: StructuralRecord) -> str:
    """Reduce a file to package line, declaration, constructor and a few method signatures.

    Lossy by design: the result is a display aid and always ends with "}".
    """
    lines = [line.strip() for line in record.raw_text.splitlines() if line.strip()]
    name = record.declared_name
    essential: list[str] = []

    header = next((l for l in lines if l.startswith("package ")), None)
    if header is None:
        header = next((l for l in lines if l.startswith("import ")), None)
    if header:
        essential.append(header)

    decl_idx = _find_declaration(lines, name)
    if decl_idx != -1:
        start = decl_idx
        while start > 0 and lines[start - 1].startswith("@"):
            start -= 1
        for line in lines[start:decl_idx + 1]:
            if line not in essential:
                essential.append(line)

    constructor = next(
        (l for i, l in enumerate(lines) if i != decl_idx and _is_constructor(l, name)),
        None,
    )
    if constructor:
        essential.append("")
        essential.append(_cut_at_brace(constructor))

    methods: list[str] = []
    seen: set[str] = set()
    for line in lines:
        if len(methods) >= MAX_METHODS:
            break
        if not line.startswith(("public ", "async ", "def ")) or "(" not in line:
            continue
        if _is_constructor(line, name):
            continue
        signature = _cut_at_brace(line)
        match = _METHOD_NAME_RE.search(signature)
        if match and match.group(1) not in seen:
            seen.add(match.group(1))
            methods.append(signature)
    if methods:
        essential.append("")
        essential.extend(methods)

    essential.append("}")
    return "\n".join(essential)


# ── Rendering ──


def _render_pattern(pattern: Pattern) -> str:
    parts = [f"### {pattern.name} ({pattern.kind.value}, {pattern.language})"]
    if pattern.description:
        parts.append(f"Description: {pattern.description}")
    if pattern.tags:
        parts.append(f"Tags: {', '.join(pattern.tags)}")
    parts.append(f"```{pattern.language}\n{pattern.code}\n```")
    return "\n".join(parts)


def _render_record(record: StructuralRecord) -> str:
    parts = [f"### {record.declared_name} ({record.kind.value}) - {record.file_path}"]
    if record.dependencies:
        parts.append(f"Dependencies: {', '.join(record.dependencies)}")
    parts.append(f"```{record.language}\n{distill_snippet(record)}\n```")
    return "\n".join(parts)


def render_prompt(
    query: str,
    patterns: list[Pattern],
    records: list[StructuralRecord],
) -> str:
    """Render the context block. Sections with no candidates are omitted."""
    sections = [PREAMBLE]
    if patterns:
        sections.append("=== SAVED KNOWLEDGE BASE PATTERNS ===")
        sections.extend(_render_pattern(p) for p in patterns)
    if records:
        sections.append("=== RELEVANT WORKSPACE CODE ===")
        sections.extend(_render_record(r) for r in records)
    sections.append("---")
    sections.append(f"User Request: {query}")
    sections.append(CLOSING)
    return "\n\n".join(sections)


class ContextAssembler:
    """Builds the enriched prompt for a query.

    Both collaborators are optional; a missing store or workspace simply
    contributes no candidates. Each call indexes the workspace afresh.
    """

    def __init__(
        self,
        store: PatternStore | None = None,
        workspace: Workspace | None = None,
        pattern_limit: int = MAX_PATTERN_LIMIT,
        structural_limit: int = MAX_STRUCTURAL_LIMIT,
    ) -> None:
        self.store = store
        self.workspace = workspace
        self.pattern_limit = min(pattern_limit, MAX_PATTERN_LIMIT)
        self.structural_limit = min(structural_limit, MAX_STRUCTURAL_LIMIT)

    def find_patterns(self, query: str, keywords: list[str]) -> list[Pattern]:
        """Raw query matches widened by per-keyword matches, in index order."""
        if self.store is None:
            return []
        matched = {p.id for p in self.store.search(query)}
        for keyword in keywords:
            matched.update(p.id for p in self.store.search(keyword))
        if not matched:
            return []
        ordered = [p for p in self.store.get_all() if p.id in matched]
        return ordered[: self.pattern_limit]

    def find_records(self, keywords: list[str]) -> list[StructuralRecord]:
        if self.workspace is None or not keywords:
            return []
        indexer = SourceIndexer()
        indexer.index_workspace(self.workspace)
        return select_records(indexer, keywords, self.structural_limit)

    def build_context(self, query: str) -> str:
        """Return the rendered context block, or query unchanged if nothing applies."""
        if not query.strip():
            return query

        keywords = extract_keywords(query)
        try:
            patterns = self.find_patterns(query, keywords)
            records = self.find_records(keywords)
        except Exception as e:
            logger.warning("Failed to build context: %s", e)
            return query

        if not patterns and not records:
            return query
        return render_prompt(query, patterns, records)


def select_records(
    records: Iterable[StructuralRecord],
    keywords: list[str],
    limit: int = MAX_STRUCTURAL_LIMIT,
) -> list[StructuralRecord]:
    """Relevant records in iteration order, capped at limit."""
    selected = []
    for record in records:
        if len(selected) >= limit:
            break
        if is_relevant(record, keywords):
            selected.append(record)
    return selected


def build_context_for_query(
    query: str,
    store: PatternStore | None = None,
    workspace: Workspace | None = None,
) -> str:
    """Entry point for the chat layer."""
    return ContextAssembler(store=store, workspace=workspace).build_context(query)
