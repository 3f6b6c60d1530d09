"""Unit tests for the change detection orchestrator."""

import json
import random

import git
import pytest

from tasktrack.errors import InvalidTargetPathError, StrategyUnavailableError
from tasktrack.incremental import ChangeDetector, FingerprintStore
from tasktrack.models import ChangeSet, DetectionConfig, DetectionStrategy, Task


class FakeGitExtractor:
    """Stands in for GitChangeExtractor."""

    def __init__(self, changes=None, available=True, error=None):
        self.changes = changes or ChangeSet()
        self.available = available
        self.error = error
        self.extract_calls = 0

    def is_repository(self):
        return self.available

    def extract(self):
        self.extract_calls += 1
        if self.error:
            raise StrategyUnavailableError("git", self.error)
        return ChangeSet(**self.changes.model_dump())


def make_detector(root, git_extractor=None, **overrides):
    values = {"use_git": git_extractor is not None, "prune_probability": 0.0}
    values.update(overrides)
    config = DetectionConfig.for_root(root, **values)
    return ChangeDetector(config, git_extractor=git_extractor, rng=random.Random(0))


def stored_paths(root):
    store_file = root / ".tasktracker" / "file-hashes.json"
    return set(json.loads(store_file.read_text()))


@pytest.fixture
def empty_project(tmp_path):
    root = tmp_path / "empty"
    root.mkdir()
    return root


class TestFilesystemMode:
    """Change detection without version control."""

    def test_file_lifecycle(self, empty_project):
        """Test a file is reported new, then nothing, then modified, then deleted."""
        detector = make_detector(empty_project)
        target = empty_project / "a.txt"

        target.write_text("one")
        result = detector.detect()
        assert result.strategy == DetectionStrategy.FILESYSTEM
        assert result.changes.new == ["a.txt"]

        assert detector.detect().changes.is_empty()

        target.write_text("two, longer")
        assert detector.detect().changes.modified == ["a.txt"]

        target.unlink()
        result = detector.detect()
        assert result.changes.deleted == ["a.txt"]
        assert "a.txt" not in stored_paths(empty_project)

        assert detector.detect().changes.is_empty()

    def test_first_run_reports_all_files(self, project):
        result = make_detector(project).detect()
        assert result.changes.new == ["README.md", "src/app.js", "src/lib/util.js"]
        assert result.files_inspected == 3

    def test_ignored_paths_never_reported_or_stored(self, project):
        """Test build/** is neither reported nor persisted."""
        detector = make_detector(project)
        detector.detect()
        (project / "build" / "bundle.js").write_text("rebuilt\n")
        (project / "build" / "extra.js").write_text("extra\n")

        result = detector.detect()
        assert not any(path.startswith("build/") for path in result.changes.all_paths())
        assert not any(path.startswith("build/") for path in stored_paths(project))

    def test_user_ignore_file_applies(self, project):
        (project / ".taskignore").write_text("src/lib/**\n")
        result = make_detector(project).detect()
        assert "src/lib/util.js" not in result.changes.new
        assert ".taskignore" in result.changes.new

    def test_no_repeated_new(self, project):
        """Test a file reported new is not reported new again."""
        detector = make_detector(project)
        first = detector.detect()
        second = detector.detect()
        assert not set(first.changes.new) & set(second.changes.new)

    def test_ceiling_then_raised_ceiling(self, empty_project, write_tree):
        """Test a truncated run is completed by a run with a higher ceiling."""
        limit = 10
        write_tree(empty_project, {f"files/f{i:03d}.txt": str(i) for i in range(limit + 50)})

        result = make_detector(empty_project, max_files=limit).detect()
        assert result.truncated
        assert len(result.changes.new) == limit
        assert len(stored_paths(empty_project)) == limit

        result = make_detector(empty_project, max_files=limit + 100).detect()
        assert not result.truncated
        assert len(result.changes.new) == 50
        assert result.changes.modified == []
        assert len(stored_paths(empty_project)) == limit + 50

    def test_corrupt_store_treated_as_first_run(self, project):
        """Test an unparseable store degrades to an empty one."""
        store_file = project / ".tasktracker" / "file-hashes.json"
        store_file.parent.mkdir(parents=True)
        store_file.write_text("not json")

        result = make_detector(project).detect()
        assert len(result.changes.new) == 3
        assert stored_paths(project) == set(result.changes.new)

    def test_invalid_target_path(self, tmp_path):
        """Test a missing root raises before any store write."""
        missing = tmp_path / "missing"
        detector = make_detector(missing)

        with pytest.raises(InvalidTargetPathError, match="Path not found"):
            detector.detect()
        assert not missing.exists()

    def test_file_as_target_path(self, tmp_path):
        target = tmp_path / "file.txt"
        target.write_text("x")
        with pytest.raises(InvalidTargetPathError):
            make_detector(target).detect()

    def test_path_filter_restricts_results(self, project):
        """Test changes outside the filter are neither reported nor stored."""
        detector = make_detector(project)
        result = detector.detect(path_filter="src/lib")

        assert result.changes.new == ["src/lib/util.js"]
        assert stored_paths(project) == {"src/lib/util.js"}

        assert make_detector(project).detect().changes.new == ["README.md", "src/app.js"]

    def test_path_filter_single_file(self, project):
        result = make_detector(project).detect(path_filter="./src/app.js")
        assert result.changes.new == ["src/app.js"]

    def test_path_filter_outside_root(self, project, tmp_path):
        result = make_detector(project).detect(path_filter=str(tmp_path / "elsewhere"))
        assert result.changes.is_empty()

    def test_probabilistic_prune(self, project):
        """Test stale entries are pruned when the random draw allows it."""
        # ghost.txt lies outside the filter, so only pruning can drop it
        fake = FakeGitExtractor(ChangeSet(new=["README.md"]))
        detector = make_detector(project, fake)
        detector.detect()

        store = FingerprintStore(detector.config.fingerprint_file, project)
        entries = store.load()
        entries["ghost.txt"] = entries["README.md"]
        store.save(entries)

        result = make_detector(project, fake, prune_probability=1.0).detect(path_filter="src")
        assert result.changes.deleted == []
        assert result.pruned == 1
        assert "ghost.txt" not in stored_paths(project)

    def test_no_prune_at_zero_probability(self, project):
        fake = FakeGitExtractor(ChangeSet(new=["README.md"]))
        detector = make_detector(project, fake)
        detector.detect()

        store = FingerprintStore(detector.config.fingerprint_file, project)
        entries = store.load()
        entries["ghost.txt"] = entries["README.md"]
        store.save(entries)

        assert detector.detect(path_filter="src").pruned == 0
        assert "ghost.txt" in stored_paths(project)

    def test_forced_prune(self, project):
        detector = make_detector(project)
        detector.detect()
        (project / "README.md").unlink()

        # Not yet observed by a detection run, so still tracked
        assert detector.prune() == 1
        assert "README.md" not in stored_paths(project)

    def test_custom_data_dir_is_ignored(self, project):
        """Test a data directory inside the root is never scanned."""
        config = DetectionConfig.for_root(
            project, data_dir=project / "state", use_git=False, prune_probability=0.0
        )
        detector = ChangeDetector(config, rng=random.Random(0))
        detector.detect()

        result = detector.detect()
        assert result.changes.is_empty()
        assert (project / "state" / "file-hashes.json").exists()


class TestGitMode:
    """Change detection driven by the Git working tree."""

    def test_git_strategy_used(self, project):
        fake = FakeGitExtractor(ChangeSet(new=["README.md"], modified=["src/app.js"]))
        result = make_detector(project, fake).detect()

        assert result.strategy == DetectionStrategy.GIT
        assert result.changes.new == ["README.md"]
        assert result.changes.modified == ["src/app.js"]
        assert result.fallback_reason is None
        assert stored_paths(project) == {"README.md", "src/app.js"}

    def test_unchanged_since_last_check_dropped(self, project):
        """Test git-reported files are not reported twice without edits."""
        fake = FakeGitExtractor(ChangeSet(modified=["src/app.js"]))
        detector = make_detector(project, fake)

        assert detector.detect().changes.modified == ["src/app.js"]
        assert detector.detect().changes.is_empty()

        (project / "src" / "app.js").write_text("edited again\n")
        assert detector.detect().changes.modified == ["src/app.js"]

    def test_tracked_new_becomes_modified(self, project):
        fake = FakeGitExtractor(ChangeSet(new=["README.md"]))
        detector = make_detector(project, fake)
        detector.detect()

        (project / "README.md").write_text("# Changed\n")
        result = detector.detect()
        assert result.changes.new == []
        assert result.changes.modified == ["README.md"]

    def test_deleted_reported_once(self, project):
        """Test a git deletion is reported only while tracked."""
        fake = FakeGitExtractor(ChangeSet(new=["README.md"]))
        detector = make_detector(project, fake)
        detector.detect()

        (project / "README.md").unlink()
        fake.changes = ChangeSet(deleted=["README.md"], new=["src/app.js"])
        assert detector.detect().changes.deleted == ["README.md"]
        assert detector.detect().changes.deleted == []

    def test_first_run_takes_git_deletions_verbatim(self, project):
        fake = FakeGitExtractor(ChangeSet(deleted=["old.txt"]))
        assert make_detector(project, fake).detect().changes.deleted == ["old.txt"]

    def test_git_paths_filtered_by_ignore_patterns(self, project):
        fake = FakeGitExtractor(ChangeSet(new=["build/bundle.js", "logs/server.log", "src/app.js"]))
        result = make_detector(project, fake).detect()

        assert result.changes.new == ["src/app.js"]
        assert stored_paths(project) == {"src/app.js"}

    def test_fallback_when_git_fails(self, project):
        """Test a failing git status falls back to scanning."""
        fake = FakeGitExtractor(error="git status failed: boom")
        result = make_detector(project, fake).detect()

        assert fake.extract_calls == 1
        assert result.strategy == DetectionStrategy.FILESYSTEM
        assert result.fallback_reason == "git status failed: boom"
        assert len(result.changes.new) == 3

    def test_not_a_repository(self, project):
        fake = FakeGitExtractor(available=False)
        result = make_detector(project, fake).detect()

        assert fake.extract_calls == 0
        assert result.strategy == DetectionStrategy.FILESYSTEM
        assert result.fallback_reason is None

    def test_real_repository(self, git_repo):
        """Test detection against an actual Git working tree."""
        config = DetectionConfig.for_root(git_repo, prune_probability=0.0)
        detector = ChangeDetector(config, rng=random.Random(0))

        (git_repo / "src" / "main.py").write_text("print('changed')\n")
        result = detector.detect()

        assert result.strategy == DetectionStrategy.GIT
        assert result.changes.modified == ["src/main.py"]
        assert detector.detect().changes.is_empty()

    def test_untracked_file_removed_before_commit(self, git_repo):
        """Test a file git stops listing is still reported deleted once."""
        config = DetectionConfig.for_root(git_repo, prune_probability=0.0)
        detector = ChangeDetector(config, rng=random.Random(0))

        (git_repo / "a.txt").write_text("draft\n")
        assert detector.detect().changes.new == ["a.txt"]

        (git_repo / "a.txt").unlink()
        result = detector.detect()
        assert result.strategy == DetectionStrategy.GIT
        assert result.changes.deleted == ["a.txt"]
        assert "a.txt" not in stored_paths(git_repo)

        assert detector.detect().changes.is_empty()

    def test_committed_deletion(self, git_repo):
        """Test a deletion committed between two checks is reported."""
        config = DetectionConfig.for_root(git_repo, prune_probability=0.0)
        detector = ChangeDetector(config, rng=random.Random(0))
        repo = git.Repo(git_repo)

        (git_repo / "b.txt").write_text("b\n")
        assert detector.detect().changes.new == ["b.txt"]
        repo.index.add(["b.txt"])
        repo.index.commit("Add b")
        assert detector.detect().changes.is_empty()

        repo.index.remove(["b.txt"], working_tree=True)
        repo.index.commit("Remove b")

        assert detector.detect().changes.deleted == ["b.txt"]
        assert detector.detect().changes.deleted == []

    def test_tracked_path_git_omits_is_deleted(self, project):
        """Test a stored path missing from disk is deleted even when git is silent."""
        fake = FakeGitExtractor(ChangeSet(new=["README.md"]))
        detector = make_detector(project, fake)
        detector.detect()

        (project / "README.md").unlink()
        fake.changes = ChangeSet()
        assert detector.detect().changes.deleted == ["README.md"]


class TestTrack:
    """Detection plus task association."""

    def test_track_reports_affected_tasks(self, project):
        tasks = [
            Task(id=1, title="App", status="todo", relatedFiles=["./src/app.js"]),
            Task(id=2, title="Docs", relatedFiles=["docs/index.md"]),
            Task(id=3, title="Util", relatedFiles=["src\\lib\\util.js", "other.js"]),
        ]
        report = make_detector(project).track(tasks)

        assert [task.id for task in report.affected_tasks] == [1, 3]
        assert report.affected_tasks[1].matched_files == ["src\\lib\\util.js"]

    def test_filter_does_not_reach_ignored_task_dirs(self, empty_project, write_tree):
        """Test a filtered run reports the same files as an unfiltered one."""
        write_tree(empty_project, {".taskignore": "gen*\n", "generated/api/x.ts": "x", "main.ts": "m"})
        tasks = [Task(id=1, title="Api", relatedFiles=["generated/api/x.ts"])]

        report = make_detector(empty_project).track(tasks, path_filter=".")

        assert report.result.changes.new == [".taskignore", "main.ts"]
        assert report.affected_tasks == []
        assert stored_paths(empty_project) == {".taskignore", "main.ts"}

    def test_track_loads_task_file(self, project):
        tasks_file = project / ".tasktracker" / "tasks.json"
        tasks_file.parent.mkdir(parents=True)
        tasks_file.write_text(
            json.dumps({"tasks": [{"id": 7, "title": "Readme", "relatedFiles": ["README.md"]}], "lastId": 7})
        )

        report = make_detector(project).track()
        assert [task.id for task in report.affected_tasks] == [7]

    def test_json_document(self, project):
        report = make_detector(project).track([Task(id=1, relatedFiles=["README.md"])])
        data = report.to_json_dict()

        assert data["strategy"] == "filesystem"
        assert data["new"] == ["README.md", "src/app.js", "src/lib/util.js"]
        assert data["affected_tasks"][0]["matchedFiles"] == ["README.md"]
        assert data["truncated"] is False


class TestStatus:
    def test_status_before_and_after(self, project):
        detector = make_detector(project)
        info = detector.get_status()
        assert info["store_exists"] is False
        assert info["tracked_files"] == 0
        assert info["git_available"] is False

        detector.detect()
        info = detector.get_status()
        assert info["store_exists"] is True
        assert info["tracked_files"] == 3
