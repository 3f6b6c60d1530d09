"""Change detection for TaskTracker.

This module determines which files changed since the last check, keeps the
fingerprint store up to date, and correlates changed files with tasks.
"""

from tasktrack.incremental.association import TaskFileMatcher, paths_match, related_directories
from tasktrack.incremental.manager import ChangeDetector
from tasktrack.incremental.state import FingerprintMap, FingerprintStore

__all__ = [
    "ChangeDetector",
    "FingerprintMap",
    "FingerprintStore",
    "TaskFileMatcher",
    "paths_match",
    "related_directories",
]
