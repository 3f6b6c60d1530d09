"""Ignore-pattern matching.

Patterns come in four shapes:

- ``path/to/file``  exact path
- ``dir/**``        everything below ``dir/``
- ``**/*.ext``      anything ending in ``.ext`` (suffix match)
- ``a/*/b*.txt``    general wildcard; ``*`` stays inside one path segment,
                    ``**`` crosses segments

A pattern matches when any rule that applies to its shape holds. Patterns
are evaluated in order and the first match wins, so duplicated patterns never
change the answer.
"""

import re
from functools import lru_cache
from typing import Iterable, List, Optional, Pattern, Tuple


def normalize_path(path: str) -> str:
    """Normalise a candidate or pattern path: POSIX separators, no leading ./"""
    path = path.strip().replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


def glob_to_regex(pattern: str) -> str:
    """Translate a wildcard pattern into an anchored regular expression.

    ``**/`` at a segment start becomes "zero or more directories", any other
    ``**`` becomes ``.*``, a single ``*`` becomes ``[^/]*``. Every other
    character is literal.
    """
    parts: List[str] = ["^"]
    i = 0
    n = len(pattern)
    while i < n:
        if pattern.startswith("**", i):
            end = i + 2
            while end < n and pattern[end] == "*":
                end += 1
            at_segment_start = i == 0 or pattern[i - 1] == "/"
            if at_segment_start and end < n and pattern[end] == "/":
                parts.append("(?:.*/)?")
                i = end + 1
            else:
                parts.append(".*")
                i = end
            continue

        char = pattern[i]
        parts.append("[^/]*" if char == "*" else re.escape(char))
        i += 1

    parts.append("$")
    return "".join(parts)


@lru_cache(maxsize=1024)
def _compile(pattern: str) -> Pattern[str]:
    return re.compile(glob_to_regex(pattern))


def pattern_matches(path: str, pattern: str) -> bool:
    """Test a single normalised path against a single pattern."""
    if path == pattern:
        return True

    if pattern.endswith("/**") and path.startswith(pattern[:-2]):
        return True

    if pattern.startswith("**/"):
        # "**/*.log" is a suffix match on ".log"
        suffix = pattern[3:].lstrip("*")
        if suffix and "*" not in suffix and path.endswith(suffix):
            return True

    if "*" in pattern:
        return _compile(pattern).match(path) is not None

    return False


def matches(path: str, patterns: Iterable[str]) -> bool:
    """Return True if path matches any of patterns (first match wins)."""
    candidate = normalize_path(path)
    for pattern in patterns:
        pattern = normalize_path(pattern)
        if pattern and pattern_matches(candidate, pattern):
            return True
    return False


class PatternMatcher:
    """Ordered, immutable set of ignore patterns for one run."""

    def __init__(self, patterns: Iterable[str]) -> None:
        """Initialize the matcher.

        Args:
            patterns: Patterns in evaluation order; blanks are dropped
        """
        normalised = (normalize_path(p) for p in patterns)
        self._patterns: Tuple[str, ...] = tuple(p for p in normalised if p)

    @property
    def patterns(self) -> Tuple[str, ...]:
        return self._patterns

    def first_match(self, path: str) -> Optional[str]:
        """Return the first pattern that matches path, or None."""
        candidate = normalize_path(path)
        for pattern in self._patterns:
            if pattern_matches(candidate, pattern):
                return pattern
        return None

    def matches(self, path: str) -> bool:
        return self.first_match(path) is not None

    def matches_dir(self, path: str) -> bool:
        """Test a directory path.

        The directory itself is also tried with a trailing slash so that
        ``dir/**`` prunes ``dir`` before it is descended into.
        """
        candidate = normalize_path(path).rstrip("/")
        if not candidate:
            return False
        return self.matches(candidate) or self.matches(candidate + "/")

    def __len__(self) -> int:
        return len(self._patterns)

    def __repr__(self) -> str:
        return f"PatternMatcher({len(self._patterns)} patterns)"
