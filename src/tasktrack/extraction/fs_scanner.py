"""Filesystem change scanning for projects without usable version control.

Walks the project depth-first, fingerprints every non-ignored file and
compares it with the fingerprint store. The walk is bounded by a hard file
count so a pathological tree (e.g. an un-ignored dependency directory) cannot
make a scan run away.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Mapping, Optional, Set

import structlog

from tasktrack.errors import PathUnreadableError
from tasktrack.extraction.fingerprint import compute_fingerprint
from tasktrack.ignore.matcher import PatternMatcher, normalize_path
from tasktrack.models.changes import ChangeSet, Fingerprint
from tasktrack.models.config import CONVENTIONAL_SOURCE_DIRS, FingerprintMode

logger = structlog.get_logger(__name__)


def relative_to_root(root: Path, path: str) -> Optional[str]:
    """Root-relative POSIX form of path, or None if it lies outside root.

    Relative paths are taken as already relative to root. "" denotes root
    itself.
    """
    candidate = Path(path)
    if candidate.is_absolute():
        try:
            candidate = candidate.resolve().relative_to(Path(root).resolve())
        except ValueError:
            return None
    relative = normalize_path(candidate.as_posix()).rstrip("/")
    if relative in ("", "."):
        return ""
    if relative == ".." or relative.startswith("../"):
        return None
    return relative


@dataclass
class ScanResult:
    """Outcome of a filesystem scan."""

    changes: ChangeSet
    fingerprints: Dict[str, Fingerprint]
    files_inspected: int
    truncated: bool
    visited: Set[str] = field(default_factory=set)


@dataclass
class _ScanState:
    """Accumulator owned by one scan() call and threaded through the walk."""

    changes: ChangeSet = field(default_factory=ChangeSet)
    fingerprints: Dict[str, Fingerprint] = field(default_factory=dict)
    visited_files: Set[str] = field(default_factory=set)
    visited_dirs: Set[str] = field(default_factory=set)
    files_inspected: int = 0
    truncated: bool = False


class FilesystemScanner:
    """Detects new, modified and deleted files by fingerprint comparison."""

    def __init__(
        self,
        root: Path,
        matcher: PatternMatcher,
        max_files: int = 1000,
        mode: FingerprintMode = FingerprintMode.HASH,
        source_dirs: Iterable[str] = CONVENTIONAL_SOURCE_DIRS,
    ) -> None:
        """Initialize the scanner.

        Args:
            root: Directory to scan; results are relative to it
            matcher: Active ignore patterns
            max_files: Hard ceiling on files fingerprinted per scan
            mode: Fingerprint mode
            source_dirs: Conventional source directories tried early when a
                path filter is given
        """
        if max_files < 1:
            raise ValueError("max_files must be at least 1")

        self.root = Path(root)
        self.matcher = matcher
        self.max_files = max_files
        self.mode = mode
        self.source_dirs = tuple(source_dirs)

    def scan(
        self,
        store: Mapping[str, Fingerprint],
        path_filter: Optional[str] = None,
        priority_dirs: Iterable[str] = (),
    ) -> ScanResult:
        """Scan the tree and classify files against the stored fingerprints.

        Args:
            store: Fingerprints from the previous invocation (not modified)
            path_filter: Sub-tree of interest; when given, its directory, the
                priority_dirs and the conventional source directories are
                walked before the rest of the tree
            priority_dirs: Root-relative directories referenced by tasks

        Returns:
            ScanResult with the ChangeSet and fresh fingerprints of every new
            or modified file
        """
        state = _ScanState()

        for start in self.walk_order(path_filter, priority_dirs):
            if state.truncated:
                break
            self._walk(start, store, state)

        if state.truncated:
            logger.warning(
                "traversal_ceiling_reached",
                max_files=self.max_files,
                root=str(self.root),
            )

        self._classify_deleted(store, state)

        logger.debug(
            "filesystem_scan_complete",
            files_inspected=state.files_inspected,
            new=len(state.changes.new),
            modified=len(state.changes.modified),
            deleted=len(state.changes.deleted),
            truncated=state.truncated,
        )
        return ScanResult(
            changes=state.changes,
            fingerprints=state.fingerprints,
            files_inspected=state.files_inspected,
            truncated=state.truncated,
            visited=state.visited_files,
        )

    def walk_order(self, path_filter: Optional[str], priority_dirs: Iterable[str]) -> List[str]:
        """Directories to start walking from, in order. "" is the root."""
        if not path_filter:
            return [""]

        candidates: List[str] = []
        filter_rel = relative_to_root(self.root, path_filter)
        if filter_rel is not None:
            if filter_rel and not (self.root / filter_rel).is_dir():
                filter_rel = PurePosixPath(filter_rel).parent.as_posix()
            candidates.append("" if filter_rel == "." else filter_rel)
        for directory in priority_dirs:
            relative = relative_to_root(self.root, directory)
            if relative is not None:
                candidates.append(relative)
        candidates.extend(self.source_dirs)

        order: List[str] = []
        for candidate in candidates:
            if candidate in order or candidate in ("", "."):
                continue
            if self._pruned(candidate):
                continue
            if (self.root / candidate).is_dir():
                order.append(candidate)

        # Fall back to the full tree; directories already walked are skipped
        order.append("")
        return order

    def _pruned(self, directory: str) -> bool:
        """Whether the full walk would skip directory or one of its parents."""
        parts = directory.split("/")
        return any(self.matcher.matches_dir("/".join(parts[: i + 1])) for i in range(len(parts)))

    def _walk(self, start: str, store: Mapping[str, Fingerprint], state: _ScanState) -> None:
        stack = [start]
        while stack:
            rel_dir = stack.pop()
            if rel_dir in state.visited_dirs:
                continue
            state.visited_dirs.add(rel_dir)

            abs_dir = self.root / rel_dir if rel_dir else self.root
            try:
                with os.scandir(abs_dir) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                logger.debug("directory_unreadable", path=str(abs_dir), error=str(e))
                continue

            subdirs = []
            for entry in entries:
                rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
                try:
                    if entry.is_dir(follow_symlinks=False):
                        if not self.matcher.matches_dir(rel):
                            subdirs.append(rel)
                        continue
                    if entry.is_symlink() and entry.is_dir():
                        # Symlinked directories are not followed
                        continue
                except OSError:
                    continue

                if self.matcher.matches(rel):
                    continue

                if state.files_inspected >= self.max_files:
                    state.truncated = True
                    return

                self._inspect(rel, Path(entry.path), store, state)

            stack.extend(reversed(subdirs))

    def _inspect(
        self,
        rel: str,
        path: Path,
        store: Mapping[str, Fingerprint],
        state: _ScanState,
    ) -> None:
        state.files_inspected += 1
        state.visited_files.add(rel)

        try:
            fingerprint = compute_fingerprint(path, self.mode)
        except PathUnreadableError as e:
            logger.debug("path_unreadable", path=rel, error=str(e.cause))
            return

        previous = store.get(rel)
        if previous is None:
            state.changes.new.append(rel)
        elif not previous.same_content(fingerprint):
            state.changes.modified.append(rel)
        else:
            return
        state.fingerprints[rel] = fingerprint

    def _classify_deleted(self, store: Mapping[str, Fingerprint], state: _ScanState) -> None:
        for rel in store:
            if rel in state.visited_files:
                continue
            if not (self.root / rel).exists():
                state.changes.deleted.append(rel)
