"""Workspace file discovery and reading."""

from __future__ import annotations

import fnmatch
import logging
import re
from pathlib import Path
from typing import Iterable, List, Sequence, Union

from .errors import ConfigError

logger = logging.getLogger(__name__)

GlobSpec = Union[str, Sequence[str]]

# Maximum file size to read (skip bundles and generated blobs)
MAX_FILE_SIZE = 2 * 1024 * 1024

_BRACE_RE = re.compile(r"\{([^{}]*)\}")


def expand_braces(pattern: str) -> List[str]:
    """Expand ``{a,b}`` alternatives into separate glob patterns."""
    match = _BRACE_RE.search(pattern)
    if match is None:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end():]
    expanded: List[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(f"{head}{option.strip()}{tail}"))
    return expanded


def compile_globs(spec: GlobSpec | None) -> List[str]:
    if not spec:
        return []
    if isinstance(spec, str):
        raw = [spec]
    elif isinstance(spec, (list, tuple)):
        raw = list(spec)
    else:
        raise ConfigError(f"glob patterns must be a string or a list, got {spec!r}")
    patterns: List[str] = []
    for item in raw:
        if not isinstance(item, str):
            raise ConfigError(f"glob patterns must be strings, got {item!r}")
        patterns.extend(p for p in expand_braces(item) if p)
    return patterns


def glob_match(rel_path: str, pattern: str) -> bool:
    """Match a POSIX relative path against a ``**``-style glob.

    Matching is per path segment: ``*`` and ``?`` stay inside one segment and
    only a ``**`` segment spans zero or more directories.
    """
    return _match_segments(rel_path.split("/"), [p for p in pattern.split("/") if p])


def _match_segments(parts: Sequence[str], patterns: Sequence[str]) -> bool:
    if not patterns:
        return not parts
    head, rest = patterns[0], patterns[1:]
    if head == "**":
        return any(_match_segments(parts[i:], rest) for i in range(len(parts) + 1))
    if not parts:
        return False
    return fnmatch.fnmatchcase(parts[0], head) and _match_segments(parts[1:], rest)


def matches_any(rel_path: str, patterns: Iterable[str]) -> bool:
    return any(glob_match(rel_path, p) for p in patterns)


class LocalFileSystemReader:
    """File-system collaborator backed by the local disk."""

    def list_files(
        self,
        root: Path,
        include: GlobSpec,
        exclude: GlobSpec | None = None,
    ) -> List[str]:
        include_patterns = compile_globs(include)
        exclude_patterns = compile_globs(exclude)
        found: List[str] = []
        for item in root.rglob("*"):
            if not item.is_file():
                continue
            rel = item.relative_to(root).as_posix()
            if not matches_any(rel, include_patterns):
                continue
            if matches_any(rel, exclude_patterns):
                continue
            try:
                if item.stat().st_size > MAX_FILE_SIZE:
                    logger.debug("Skipping oversized file %s", rel)
                    continue
            except OSError:
                continue
            found.append(rel)
        return sorted(found)

    def read_file(self, root: Path, rel_path: str) -> str:
        return (root / rel_path).read_text(encoding="utf-8", errors="replace")
