"""Correlation of changed files with tasks' related files.

Task-declared paths are typed by people and may be absolute, relative,
prefixed with ``./`` or truncated; scanner paths are root-relative. Two paths
are considered the same file when they are equal or one is a suffix of the
other.
"""

from posixpath import dirname
from typing import Dict, Iterable, List, Mapping, Union

from tasktrack.ignore.matcher import normalize_path
from tasktrack.models.changes import AffectedTask, ChangeSet
from tasktrack.models.task import Task

TaskLike = Union[Task, Mapping]


def _normalise(path: str) -> str:
    return path.strip().replace("\\", "/")


def _segment_suffix(longer: str, shorter: str) -> bool:
    if not longer.endswith(shorter):
        return False
    boundary = len(longer) - len(shorter)
    return boundary == 0 or longer[boundary - 1] == "/" or shorter.startswith("/")


def paths_match(related: str, changed: str, segment_aligned: bool = False) -> bool:
    """Decide whether a task's related file and a changed path are the same file.

    Args:
        related: Path as declared on the task
        changed: Path reported by change detection
        segment_aligned: Only accept suffixes that start at a path separator,
            so "b.js" no longer matches "web.js"

    Returns:
        True if the paths are equal or one ends with the other
    """
    a = _normalise(related)
    b = _normalise(changed)
    if not a or not b:
        return False
    if a == b:
        return True
    if segment_aligned:
        return _segment_suffix(a, b) or _segment_suffix(b, a)
    return a.endswith(b) or b.endswith(a)


def _as_task(task: TaskLike) -> Task:
    if isinstance(task, Task):
        return task
    return Task.model_validate(task)


def related_directories(tasks: Iterable[TaskLike]) -> List[str]:
    """Directories referenced by tasks' related files, in first-seen order."""
    directories: List[str] = []
    for task in tasks:
        for related in _as_task(task).related_files:
            directory = dirname(normalize_path(related))
            if directory and directory != "." and directory not in directories:
                directories.append(directory)
    return directories


class TaskFileMatcher:
    """Finds the tasks affected by a ChangeSet.

    Example:
        >>> matcher = TaskFileMatcher()
        >>> changes = ChangeSet(modified=["./src/app.js"])
        >>> task = Task(id=1, title="Fix app", relatedFiles=["src/app.js"])
        >>> [t.matched_files for t in matcher.match([task], changes)]
        [['src/app.js']]
    """

    def __init__(self, segment_aligned: bool = False) -> None:
        self.segment_aligned = segment_aligned

    def match(self, tasks: Iterable[TaskLike], changes: ChangeSet) -> List[AffectedTask]:
        """Correlate tasks with changed paths.

        Args:
            tasks: Tasks in the order they should be reported
            changes: Current ChangeSet

        Returns:
            AffectedTask for every task with at least one matching related
            file, carrying only the matched files, in input order
        """
        changed_paths = changes.all_paths()
        affected: List[AffectedTask] = []
        if not changed_paths:
            return affected

        for item in tasks:
            task = _as_task(item)
            if not task.related_files:
                continue

            matched = [
                related
                for related in task.related_files
                if any(paths_match(related, changed, self.segment_aligned) for changed in changed_paths)
            ]
            if matched:
                affected.append(
                    AffectedTask(
                        id=task.id,
                        title=task.title,
                        status=task.status or None,
                        matched_files=matched,
                    )
                )

        return affected

    def group_by_file(
        self, affected: Iterable[AffectedTask], changes: ChangeSet
    ) -> Dict[str, List[AffectedTask]]:
        """Map every changed path to the affected tasks that reference it."""
        affected = list(affected)
        grouped: Dict[str, List[AffectedTask]] = {}
        for changed in changes.all_paths():
            grouped[changed] = [
                task
                for task in affected
                if any(paths_match(related, changed, self.segment_aligned) for related in task.matched_files)
            ]
        return grouped
