"""Ordered line-pattern probes used by the source indexer.

Each list is evaluated in order and the first probe that answers wins.
These are heuristics over raw text; nothing here parses a language.
"""

from __future__ import annotations

import re
from typing import Callable

# Probe signatures
NameProbe = Callable[[str], "str | None"]
MarkerProbe = Callable[[str], bool]
DependencyProbe = Callable[[list[str]], list[str]]


def _regex_name_probe(pattern: str) -> NameProbe:
    regex = re.compile(pattern, re.MULTILINE)

    def probe(text: str) -> str | None:
        match = regex.search(text)
        return match.group(1) if match else None

    return probe


_MODIFIERS = r"(?:(?:public|protected|private|internal|abstract|final|static|sealed|open|data|export|default)\s+)*"

# declared name: class declaration, exported class/function, exported const
NAME_PROBES: list[NameProbe] = [
    _regex_name_probe(r"^\s*" + _MODIFIERS + r"class\s+(\w+)"),
    _regex_name_probe(r"^\s*export\s+(?:default\s+)?(?:async\s+)?(?:class|function)\s+(\w+)"),
    _regex_name_probe(r"^\s*export\s+const\s+(\w+)\s*[:=]"),
]


def extract_declared_name(text: str) -> str | None:
    for probe in NAME_PROBES:
        name = probe(text)
        if name:
            return name
    return None


# (kind, filename substrings), checked against the lowercased basename
FILENAME_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("controller", ("controller", "router")),
    ("service", ("service",)),
    ("repository", ("repository", "dao")),
    ("config", ("config",)),
]


def _marker(pattern: str) -> MarkerProbe:
    regex = re.compile(pattern)
    return lambda text: bool(regex.search(text))


# framework markers in the body, used only when no filename rule fired
BODY_MARKERS: list[tuple[str, list[MarkerProbe]]] = [
    ("controller", [_marker(r"@RestController\b"), _marker(r"@Controller\b"), _marker(r"\bRouter\(\)")]),
    ("service", [_marker(r"@Service\b"), _marker(r"@Injectable\b")]),
    ("repository", [_marker(r"@Repository\b"), _marker(r"\bextends\s+\w*Repository\b")]),
]


def _is_type_name(name: str) -> bool:
    return len(name) > 1 and name[0].isupper()


_FIELD_RE = re.compile(r"^\s*private\s+final\s+(\w+)(?:<[^>]*>)?\s+\w+")
_AUTOWIRED_FIELD_RE = re.compile(r"(?:private|protected|public)\s+(?:final\s+)?(\w+)(?:<[^>]*>)?\s+\w+")
_CONSTRUCTOR_RE = re.compile(r"(?:\bconstructor|\bdef\s+__init__)\s*\(([^)]*)")
_TYPED_PARAM_RE = re.compile(r"(\w+)\s*:\s*(\w+)")


def _final_fields(lines: list[str]) -> list[str]:
    found = []
    for line in lines:
        match = _FIELD_RE.match(line)
        if match:
            found.append(match.group(1))
    return found


def _autowired_fields(lines: list[str]) -> list[str]:
    found = []
    for i, line in enumerate(lines):
        if "@Autowired" not in line:
            continue
        # the annotation may sit on the field line or the one above it
        for candidate in (line, lines[i + 1] if i + 1 < len(lines) else ""):
            match = _AUTOWIRED_FIELD_RE.search(candidate)
            if match:
                found.append(match.group(1))
                break
    return found


def _constructor_params(lines: list[str]) -> list[str]:
    found = []
    for i, line in enumerate(lines):
        match = _CONSTRUCTOR_RE.search(line)
        if not match:
            continue
        params = match.group(1)
        # parameter lists may run over several lines up to the closing ")"
        rest = line[match.end():]
        j = i + 1
        while not rest.startswith(")") and j < len(lines):
            head, sep, _ = lines[j].partition(")")
            params += " " + head
            rest = sep
            j += 1
        found.extend(m.group(2) for m in _TYPED_PARAM_RE.finditer(params))
    return found


DEPENDENCY_PROBES: list[DependencyProbe] = [
    _autowired_fields,
    _final_fields,
    _constructor_params,
]


def extract_dependencies(text: str) -> tuple[str, ...]:
    """Referenced type names, deduplicated in first-seen order."""
    lines = text.splitlines()
    seen: dict[str, None] = {}
    for probe in DEPENDENCY_PROBES:
        for name in probe(lines):
            if _is_type_name(name):
                seen.setdefault(name, None)
    return tuple(seen)
