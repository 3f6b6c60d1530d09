"""
Task Store Integration

Read-only access to the task tracker's tasks.json. Only what change
association needs is loaded; creating and editing tasks belongs to the
tracker itself.
"""

import json
from pathlib import Path
from typing import Any, List, Protocol

import structlog
from pydantic import TypeAdapter, ValidationError

from tasktrack.models.task import Task

logger = structlog.get_logger(__name__)

_TASK_LIST = TypeAdapter(List[Task])


class TaskSource(Protocol):
    """Anything that can list the current tasks."""

    def load_tasks(self) -> List[Task]:
        ...


class JsonTaskStore:
    """Reads tasks from the tracker's JSON file.

    The file normally holds ``{"tasks": [...], "lastId": N}``; a bare list of
    tasks is accepted too.

    Example:
        >>> store = JsonTaskStore(Path(".tasktracker/tasks.json"))
        >>> [task.id for task in store.load_tasks()]
        [1, 2, 3]
    """

    def __init__(self, tasks_file: Path):
        self.tasks_file = Path(tasks_file)

    def load_tasks(self) -> List[Task]:
        """Load all tasks in file order.

        A missing file means no tasks yet. An unreadable or malformed file is
        logged and also yields no tasks, so change detection still works.
        """
        if not self.tasks_file.is_file():
            logger.debug("tasks_file_missing", path=str(self.tasks_file))
            return []

        try:
            with open(self.tasks_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("tasks_file_unreadable", path=str(self.tasks_file), error=str(e))
            return []

        records = self._extract_records(data)
        if records is None:
            logger.warning(
                "tasks_file_invalid",
                path=str(self.tasks_file),
                error="expected a list of tasks or an object with a 'tasks' list",
            )
            return []

        try:
            return _TASK_LIST.validate_python(records)
        except ValidationError as e:
            logger.warning(
                "tasks_file_invalid",
                path=str(self.tasks_file),
                error=f"{e.error_count()} invalid task records",
            )
            return []

    @staticmethod
    def _extract_records(data: Any):
        if isinstance(data, dict):
            data = data.get("tasks", [])
        if isinstance(data, list):
            return data
        return None
