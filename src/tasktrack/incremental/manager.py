"""Change detection manager - orchestrates one detection run."""

import random
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

import structlog

from tasktrack.errors import InvalidTargetPathError, PathUnreadableError, StrategyUnavailableError
from tasktrack.extraction.fingerprint import compute_fingerprint
from tasktrack.extraction.fs_scanner import FilesystemScanner, relative_to_root
from tasktrack.extraction.git_extractor import ChangeExtractor, GitChangeExtractor
from tasktrack.ignore.matcher import PatternMatcher
from tasktrack.ignore.patterns import IgnoreFile, load_ignore_patterns
from tasktrack.incremental.association import TaskFileMatcher, related_directories
from tasktrack.incremental.state import FingerprintMap, FingerprintStore
from tasktrack.integrations.tasks import JsonTaskStore, TaskSource
from tasktrack.models.changes import (
    ChangeKind,
    ChangeReport,
    ChangeSet,
    DetectionResult,
    DetectionStrategy,
    Fingerprint,
)
from tasktrack.models.config import DetectionConfig
from tasktrack.models.task import Task

logger = structlog.get_logger(__name__)


class ChangeDetector:
    """Determines which files changed since the previous invocation.

    Uses the Git working tree when the root is inside a repository and falls
    back to a fingerprint scan otherwise. Either way the result is filtered
    through the ignore patterns and the fingerprint store is brought up to
    date, so a second run without edits reports nothing.

    Example:
        >>> detector = ChangeDetector(DetectionConfig.for_root(Path(".")))
        >>> result = detector.detect()
        >>> result.strategy
        <DetectionStrategy.GIT: 'git'>
    """

    def __init__(
        self,
        config: DetectionConfig,
        git_extractor: Optional[ChangeExtractor] = None,
        rng: Optional[random.Random] = None,
        task_source: Optional[TaskSource] = None,
    ):
        """Initialize the change detector.

        Args:
            config: Detection configuration
            git_extractor: Version-control strategy (defaults to
                GitChangeExtractor on config.root)
            rng: Random source deciding when stale entries are pruned
            task_source: Where track() reads tasks from (defaults to the
                JSON task file in the data directory)
        """
        self.config = config
        self._git_extractor = git_extractor
        self.rng = rng or random.Random()
        self.task_source = task_source or JsonTaskStore(config.tasks_file)

    @property
    def git_extractor(self) -> ChangeExtractor:
        if self._git_extractor is None:
            self._git_extractor = GitChangeExtractor(self.config.root)
        return self._git_extractor

    def build_matcher(self) -> PatternMatcher:
        """Active ignore patterns: defaults, user patterns, and the data directory."""
        patterns = load_ignore_patterns(self.config.ignore_file)

        data_dir = relative_to_root(self.config.root, str(self.config.data_dir))
        if data_dir:
            pattern = f"{data_dir}/**"
            if pattern not in patterns:
                patterns.append(pattern)

        return PatternMatcher(patterns)

    def detect(
        self,
        path_filter: Optional[str] = None,
        priority_dirs: Iterable[str] = (),
    ) -> DetectionResult:
        """Run change detection and update the fingerprint store.

        Args:
            path_filter: Only report changes inside this file or directory
                (absolute or relative to the root)
            priority_dirs: Directories the scanner should walk early

        Returns:
            DetectionResult with the filtered ChangeSet and the strategy used

        Raises:
            InvalidTargetPathError: If the root is not an existing directory.
                Nothing is read or written in that case.
        """
        root = self._check_root()
        matcher = self.build_matcher()
        store = FingerprintStore(self.config.fingerprint_file, root, matcher)
        entries = store.load()

        strategy = DetectionStrategy.FILESYSTEM
        files_inspected = 0
        truncated = False

        git_changes, fallback_reason = self._extract_git_changes()

        if git_changes is not None:
            strategy = DetectionStrategy.GIT
            changes, fresh = self._reconcile(git_changes, entries, matcher)
        else:
            scanner = FilesystemScanner(
                root,
                matcher,
                max_files=self.config.max_files,
                mode=self.config.fingerprint_mode,
                source_dirs=self.config.source_dirs,
            )
            scan = scanner.scan(entries, path_filter=path_filter, priority_dirs=priority_dirs)
            changes, fresh = scan.changes, scan.fingerprints
            files_inspected = scan.files_inspected
            truncated = scan.truncated

        changes = changes.filter(lambda path: not matcher.matches(path))
        if path_filter:
            changes = self._restrict_to(changes, path_filter)

        self._apply(entries, changes, fresh)

        pruned = 0
        if self.rng.random() < self.config.prune_probability:
            pruned = store.prune(entries)

        store.save(entries)

        logger.info(
            "changes_detected",
            strategy=strategy.value,
            new=len(changes.new),
            modified=len(changes.modified),
            deleted=len(changes.deleted),
            truncated=truncated,
        )
        return DetectionResult(
            root=str(root),
            changes=changes,
            strategy=strategy,
            fallback_reason=fallback_reason,
            truncated=truncated,
            files_inspected=files_inspected,
            pruned=pruned,
        )

    def track(
        self,
        tasks: Optional[Sequence[Task]] = None,
        path_filter: Optional[str] = None,
    ) -> ChangeReport:
        """Detect changes and report the tasks they affect.

        Args:
            tasks: Tasks to correlate (defaults to the configured task source)
            path_filter: Only consider changes inside this file or directory

        Returns:
            ChangeReport
        """
        if tasks is None:
            tasks = self.task_source.load_tasks()

        priority_dirs = related_directories(tasks) if path_filter else []
        result = self.detect(path_filter=path_filter, priority_dirs=priority_dirs)

        matcher = TaskFileMatcher(segment_aligned=self.config.segment_aligned_match)
        affected = matcher.match(tasks, result.changes)
        return ChangeReport(result=result, affected_tasks=affected)

    def prune(self) -> int:
        """Remove store entries for files that no longer exist.

        Returns:
            Number of entries removed
        """
        root = self._check_root()
        store = FingerprintStore(self.config.fingerprint_file, root, self.build_matcher())
        entries = store.load()
        removed = store.prune(entries)
        store.save(entries)
        return removed

    def get_status(self) -> Dict[str, Any]:
        """Summarise the tracker's state for the project.

        Returns:
            Dictionary with store, ignore-file and git information
        """
        root = self._check_root()
        store = FingerprintStore(self.config.fingerprint_file, root)
        ignore_file = IgnoreFile(self.config.ignore_file)

        return {
            "root": str(root),
            "data_dir": str(self.config.data_dir),
            "fingerprint_file": str(self.config.fingerprint_file),
            "store_exists": store.exists(),
            "tracked_files": len(store.load()),
            "ignore_file": str(self.config.ignore_file),
            "ignore_file_exists": ignore_file.exists(),
            "user_patterns": len(ignore_file.user_patterns()),
            "git_available": self.config.use_git and self.git_extractor.is_repository(),
            "fingerprint_mode": self.config.fingerprint_mode.value,
            "max_files": self.config.max_files,
        }

    def _check_root(self) -> Path:
        root = Path(self.config.root)
        if not root.is_dir():
            raise InvalidTargetPathError(root)
        return root

    def _extract_git_changes(self) -> Tuple[Optional[ChangeSet], Optional[str]]:
        """Git's ChangeSet, or None plus the reason git failed when it did."""
        if not self.config.use_git:
            return None, None

        extractor = self.git_extractor
        if not extractor.is_repository():
            logger.debug("git_repository_not_found", root=str(self.config.root))
            return None, None

        try:
            return extractor.extract(), None
        except StrategyUnavailableError as e:
            logger.info("git_strategy_unavailable", reason=e.reason)
            return None, e.reason

    def _reconcile(
        self,
        git_changes: ChangeSet,
        entries: FingerprintMap,
        matcher: PatternMatcher,
    ) -> Tuple[ChangeSet, Dict[str, Fingerprint]]:
        """Turn git's view (changed since HEAD) into changed since the last check.

        With an empty store this is the first run and git's classification is
        taken as is.
        """
        changes = ChangeSet()
        fresh: Dict[str, Fingerprint] = {}
        first_run = not entries

        for kind, paths in ((ChangeKind.NEW, git_changes.new), (ChangeKind.MODIFIED, git_changes.modified)):
            for path in paths:
                if matcher.matches(path):
                    continue
                try:
                    fingerprint = compute_fingerprint(self.config.root / path, self.config.fingerprint_mode)
                except PathUnreadableError as e:
                    logger.debug("path_unreadable", path=path, error=str(e.cause))
                    continue

                previous = entries.get(path)
                if previous is not None and previous.same_content(fingerprint):
                    continue
                path_kind = kind if previous is None else ChangeKind.MODIFIED
                if changes.add(path_kind, path):
                    fresh[path] = fingerprint

        for path in git_changes.deleted:
            if first_run or path in entries:
                changes.add(ChangeKind.DELETED, path)

        # Tracked paths git no longer lists: untracked files removed before a
        # commit, or deletions committed since the last check
        for path in sorted(entries):
            if path in changes or matcher.matches(path):
                continue
            if not (self.config.root / path).exists():
                changes.add(ChangeKind.DELETED, path)

        return changes, fresh

    def _restrict_to(self, changes: ChangeSet, path_filter: str) -> ChangeSet:
        subtree = relative_to_root(self.config.root, path_filter)
        if subtree is None:
            logger.warning("path_filter_outside_root", path_filter=path_filter, root=str(self.config.root))
            return ChangeSet()
        if not subtree:
            return changes
        prefix = subtree + "/"
        return changes.filter(lambda path: path == subtree or path.startswith(prefix))

    def _apply(
        self,
        entries: FingerprintMap,
        changes: ChangeSet,
        fresh: Dict[str, Fingerprint],
    ) -> None:
        """Bring the in-memory store up to date with the reported changes."""
        for path in [*changes.new, *changes.modified]:
            fingerprint = fresh.get(path)
            if fingerprint is None:
                try:
                    fingerprint = compute_fingerprint(self.config.root / path, self.config.fingerprint_mode)
                except PathUnreadableError as e:
                    logger.debug("path_unreadable", path=path, error=str(e.cause))
                    continue
            entries[path] = fingerprint

        for path in changes.deleted:
            entries.pop(path, None)

