"""Unit tests for the JSON task store."""

import json

from tasktrack.integrations.tasks import JsonTaskStore


def test_missing_file(tmp_path):
    assert JsonTaskStore(tmp_path / "tasks.json").load_tasks() == []


def test_tracker_document(tmp_path):
    """Test the tracker's {"tasks": [...], "lastId": N} layout."""
    tasks_file = tmp_path / "tasks.json"
    tasks_file.write_text(
        json.dumps(
            {
                "tasks": [
                    {"id": 1, "title": "First", "status": "todo", "relatedFiles": ["src/a.js"]},
                    {"id": 2, "title": "Second", "status": "done", "priority": "low"},
                ],
                "lastId": 2,
            }
        )
    )

    tasks = JsonTaskStore(tasks_file).load_tasks()

    assert [task.id for task in tasks] == [1, 2]
    assert tasks[0].related_files == ["src/a.js"]
    assert tasks[1].related_files == []


def test_bare_list(tmp_path):
    tasks_file = tmp_path / "tasks.json"
    tasks_file.write_text(json.dumps([{"id": "a", "relatedFiles": None}]))

    tasks = JsonTaskStore(tasks_file).load_tasks()
    assert tasks[0].id == "a"
    assert tasks[0].related_files == []


def test_corrupt_file(tmp_path):
    """Test invalid JSON yields no tasks instead of failing."""
    tasks_file = tmp_path / "tasks.json"
    tasks_file.write_text("{ not json")
    assert JsonTaskStore(tasks_file).load_tasks() == []


def test_wrong_shape(tmp_path):
    tasks_file = tmp_path / "tasks.json"
    tasks_file.write_text(json.dumps({"tasks": "nope"}))
    assert JsonTaskStore(tasks_file).load_tasks() == []


def test_invalid_records(tmp_path):
    tasks_file = tmp_path / "tasks.json"
    tasks_file.write_text(json.dumps({"tasks": [{"title": "no id"}]}))
    assert JsonTaskStore(tasks_file).load_tasks() == []
