"""Data models for change detection results."""

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ChangeKind(str, Enum):
    """Classification of a changed path."""

    NEW = "new"
    MODIFIED = "modified"
    DELETED = "deleted"


class DetectionStrategy(str, Enum):
    """Change-detection strategy actually used for an invocation."""

    GIT = "git"
    FILESYSTEM = "filesystem"


class Fingerprint(BaseModel):
    """Snapshot of a file used to decide whether it changed since the last check."""

    size: int = Field(..., ge=0, description="File size in bytes")
    mtime_ns: int = Field(..., description="Modification time in nanoseconds")
    content_hash: Optional[str] = Field(None, description="SHA-256 of the file content (hash mode only)")
    last_checked: Optional[datetime] = Field(None, description="When this fingerprint was recorded")

    def same_content(self, other: "Fingerprint") -> bool:
        """Compare two fingerprints.

        Content hashes win when both sides carry one, so a touch that only
        bumps the mtime is not a change. Otherwise size and mtime decide.
        """
        if self.content_hash and other.content_hash:
            return self.content_hash == other.content_hash
        return self.size == other.size and self.mtime_ns == other.mtime_ns


class ChangeSet(BaseModel):
    """Three-way classification of paths produced by one detection run.

    Paths are relative to the scan root with POSIX separators. A path is in at
    most one of the three lists.
    """

    new: List[str] = Field(default_factory=list, description="Paths not seen before")
    modified: List[str] = Field(default_factory=list, description="Paths whose content changed")
    deleted: List[str] = Field(default_factory=list, description="Tracked paths that no longer exist")

    @model_validator(mode="after")
    def check_disjoint(self) -> "ChangeSet":
        seen: set = set()
        for kind in ChangeKind:
            for path in getattr(self, kind.value):
                if path in seen:
                    raise ValueError(f"Path classified more than once: {path}")
                seen.add(path)
        return self

    def __contains__(self, path: object) -> bool:
        return path in self.new or path in self.modified or path in self.deleted

    def __len__(self) -> int:
        return len(self.new) + len(self.modified) + len(self.deleted)

    def add(self, kind: ChangeKind, path: str) -> bool:
        """Record path under kind unless it is already classified.

        Returns:
            True if the path was added
        """
        if path in self:
            return False
        getattr(self, kind.value).append(path)
        return True

    def kind_of(self, path: str) -> Optional[ChangeKind]:
        for kind in ChangeKind:
            if path in getattr(self, kind.value):
                return kind
        return None

    def all_paths(self) -> List[str]:
        """Union of new, modified and deleted, in that order."""
        return [*self.new, *self.modified, *self.deleted]

    def is_empty(self) -> bool:
        return len(self) == 0

    def filter(self, keep: Callable[[str], bool]) -> "ChangeSet":
        """Return a new ChangeSet holding only the paths for which keep() is true."""
        return ChangeSet(
            new=[p for p in self.new if keep(p)],
            modified=[p for p in self.modified if keep(p)],
            deleted=[p for p in self.deleted if keep(p)],
        )


class AffectedTask(BaseModel):
    """A task whose related files overlap the current ChangeSet."""

    model_config = ConfigDict(populate_by_name=True)

    id: Union[int, str] = Field(..., description="Task identifier")
    title: str = Field("", description="Task title")
    status: Optional[str] = Field(None, description="Task status")
    matched_files: List[str] = Field(
        default_factory=list,
        alias="matchedFiles",
        description="Related files of the task that matched a changed path",
    )


class DetectionResult(BaseModel):
    """Outcome of one change-detection invocation."""

    root: str = Field(..., description="Absolute scan root")
    changes: ChangeSet = Field(default_factory=ChangeSet)
    strategy: DetectionStrategy = Field(..., description="Strategy actually used")
    fallback_reason: Optional[str] = Field(
        None, description="Why git was abandoned for the filesystem scanner, if it was"
    )
    truncated: bool = Field(False, description="Traversal ceiling reached; results are partial")
    files_inspected: int = Field(0, description="Files fingerprinted by the scanner")
    pruned: int = Field(0, description="Stale store entries removed this invocation")


class ChangeReport(BaseModel):
    """Detection result plus the tasks it affects."""

    result: DetectionResult
    affected_tasks: List[AffectedTask] = Field(default_factory=list)

    def to_json_dict(self) -> Dict[str, Any]:
        """Flat document for machine-readable CLI output."""
        return {
            "new": list(self.result.changes.new),
            "modified": list(self.result.changes.modified),
            "deleted": list(self.result.changes.deleted),
            "strategy": self.result.strategy.value,
            "fallback_reason": self.result.fallback_reason,
            "truncated": self.result.truncated,
            "files_inspected": self.result.files_inspected,
            "affected_tasks": [
                task.model_dump(mode="json", by_alias=True) for task in self.affected_tasks
            ],
        }
