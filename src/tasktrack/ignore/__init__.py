"""Ignore-pattern language used to exclude paths from change tracking."""

from tasktrack.ignore.matcher import PatternMatcher, glob_to_regex, matches, normalize_path
from tasktrack.ignore.patterns import (
    DEFAULT_IGNORE_PATTERNS,
    IgnoreFile,
    build_matcher,
    load_ignore_patterns,
    read_user_patterns,
)

__all__ = [
    "PatternMatcher",
    "glob_to_regex",
    "matches",
    "normalize_path",
    "DEFAULT_IGNORE_PATTERNS",
    "IgnoreFile",
    "build_matcher",
    "load_ignore_patterns",
    "read_user_patterns",
]
