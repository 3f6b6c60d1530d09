"""Shared fixtures for the test suite."""

import random
from pathlib import Path
from typing import Dict

import git
import pytest

from tasktrack.models.config import DetectionConfig


def write_files(root: Path, files: Dict[str, str]) -> None:
    """Create files (and parent directories) under root."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


@pytest.fixture
def project(tmp_path):
    """A small project tree without version control."""
    root = tmp_path / "project"
    write_files(
        root,
        {
            "README.md": "# Project\n",
            "src/app.js": "console.log('app');\n",
            "src/lib/util.js": "module.exports = {};\n",
            "build/bundle.js": "bundled\n",
            "node_modules/pkg/index.js": "dep\n",
            "logs/server.log": "log line\n",
        },
    )
    return root


@pytest.fixture
def fs_config(project):
    """Detection config for the project that never prunes and never uses git."""
    return DetectionConfig.for_root(project, use_git=False, prune_probability=0.0)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def git_repo(tmp_path):
    """A Git repository with one commit."""
    repo_path = tmp_path / "repo"
    repo_path.mkdir()
    repo = git.Repo.init(repo_path)

    # Configure git
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    write_files(repo_path, {"README.md": "# Test Project\n", "src/main.py": "print('hello')\n"})
    repo.index.add(["README.md", "src/main.py"])
    repo.index.commit("Initial commit")

    return repo_path


@pytest.fixture
def write_tree():
    """The write_files helper, for tests that build their own trees."""
    return write_files
