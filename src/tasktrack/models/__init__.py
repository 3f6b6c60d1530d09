"""Data models for change detection and task association."""

from tasktrack.models.changes import (
    AffectedTask,
    ChangeKind,
    ChangeReport,
    ChangeSet,
    DetectionResult,
    DetectionStrategy,
    Fingerprint,
)
from tasktrack.models.config import DetectionConfig, FingerprintMode, Settings
from tasktrack.models.task import Task

__all__ = [
    "AffectedTask",
    "ChangeKind",
    "ChangeReport",
    "ChangeSet",
    "DetectionResult",
    "DetectionStrategy",
    "Fingerprint",
    "DetectionConfig",
    "FingerprintMode",
    "Settings",
    "Task",
]
