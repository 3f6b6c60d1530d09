"""Exception hierarchy for change detection.

Only InvalidTargetPathError is meant to reach the caller. The other kinds are
recovered inside the subsystem and degrade to the next-best strategy or a
smaller result set.
"""

from pathlib import Path
from typing import Optional, Union


class TaskTrackError(Exception):
    """Base exception for tasktrack errors"""
    pass


class StrategyUnavailableError(TaskTrackError):
    """Raised when a change-detection strategy cannot run (e.g. git status fails)"""

    def __init__(self, strategy: str, reason: str):
        self.strategy = strategy
        self.reason = reason
        super().__init__(f"{strategy} strategy unavailable: {reason}")


class PathUnreadableError(TaskTrackError):
    """Raised when a single file cannot be stat'ed or read"""

    def __init__(self, path: Union[str, Path], cause: Optional[BaseException] = None):
        self.path = str(path)
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Cannot read {self.path}{detail}")


class StoreCorruptError(TaskTrackError):
    """Raised when the fingerprint file does not hold a valid path -> fingerprint map"""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Fingerprint store {self.path} is corrupt: {reason}")


class InvalidTargetPathError(TaskTrackError):
    """Raised when the directory to scan does not exist"""

    def __init__(self, path: Union[str, Path]):
        self.path = str(path)
        super().__init__(f"Path not found: {self.path}")


class IgnoreFileError(TaskTrackError):
    """Raised when the ignore-pattern file cannot be changed as requested"""
    pass
