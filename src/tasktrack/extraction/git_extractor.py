"""Working-tree change extraction from a Git repository."""

from pathlib import Path
from typing import Any, List, Optional, Protocol, Tuple

import structlog

from tasktrack.errors import StrategyUnavailableError
from tasktrack.models.changes import ChangeKind, ChangeSet

logger = structlog.get_logger(__name__)

# Porcelain status code -> change classification. "!" (ignored) is dropped.
STATUS_KINDS = {
    "A": ChangeKind.NEW,
    "?": ChangeKind.NEW,
    "C": ChangeKind.NEW,
    "M": ChangeKind.MODIFIED,
    "R": ChangeKind.MODIFIED,
    "T": ChangeKind.MODIFIED,
    "U": ChangeKind.MODIFIED,
    "D": ChangeKind.DELETED,
}

_ESCAPES = {
    "\\": "\\",
    '"': '"',
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
}


class ChangeExtractor(Protocol):
    """Anything that can report working-tree changes for a directory."""

    def is_repository(self) -> bool:
        ...

    def extract(self) -> ChangeSet:
        ...


def unquote_path(path: str) -> str:
    """Undo git's C-style quoting of a path in status output."""
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path

    raw = bytearray()
    i, end = 1, len(path) - 1
    while i < end:
        char = path[i]
        if char == "\\" and i + 1 < end:
            octal = path[i + 1 : i + 4]
            if len(octal) == 3 and all(c in "01234567" for c in octal):
                raw.append(int(octal, 8))
                i += 4
                continue
            raw.extend(_ESCAPES.get(path[i + 1], path[i + 1]).encode("utf-8"))
            i += 2
            continue
        raw.extend(char.encode("utf-8"))
        i += 1

    return raw.decode("utf-8", errors="replace")


def parse_porcelain_status(output: str) -> List[Tuple[ChangeKind, str]]:
    """Parse ``git status --porcelain`` output.

    The first status column decides unless it is a space, in which case the
    second does. For renames and copies the destination path is kept.

    Args:
        output: Raw porcelain output

    Returns:
        List of (kind, repository-relative path) in output order
    """
    changes = []
    for line in output.splitlines():
        if len(line) < 4:
            continue

        code = line[0] if line[0] != " " else line[1]
        kind = STATUS_KINDS.get(code)
        if kind is None:
            continue

        path = line[3:]
        if code in ("R", "C") and " -> " in path:
            path = path.split(" -> ", 1)[1]
        path = unquote_path(path)
        if path.endswith("/"):
            # Untracked directory summary; only shown without -uall
            continue

        changes.append((kind, path))

    return changes


def _import_git() -> Any:
    try:
        import git
    except ImportError as e:
        # GitPython refuses to import when no git executable can be found
        raise StrategyUnavailableError("git", f"GitPython unavailable: {e}") from e
    return git


class GitChangeExtractor:
    """Extracts uncommitted changes from the Git working tree containing root.

    Paths are reported relative to root, not to the repository top level.
    Ignore patterns are not applied here; the orchestrator filters both
    strategies in one place.
    """

    def __init__(self, root: Path) -> None:
        """Initialize the GitChangeExtractor.

        Args:
            root: Directory whose changes are wanted
        """
        self.root = Path(root)
        self._repo: Optional[Any] = None

    def is_repository(self) -> bool:
        """Check whether root is inside a non-bare working tree.

        Any failure (no repository, no git binary, unreadable path) is
        reported as False.
        """
        try:
            self._repo = self._open_repo()
            return True
        except StrategyUnavailableError as e:
            logger.debug("git_probe_failed", root=str(self.root), reason=e.reason)
            self._repo = None
            return False

    def extract(self) -> ChangeSet:
        """Classify working-tree changes as new, modified or deleted.

        Returns:
            ChangeSet with root-relative paths

        Raises:
            StrategyUnavailableError: If the repository cannot be read or
                git status fails
        """
        git = _import_git()
        repo = self._repo or self._open_repo()

        try:
            output = repo.git(c="core.quotepath=off").status(
                "--porcelain", "--untracked-files=all"
            )
        except (git.exc.GitError, OSError) as e:
            raise StrategyUnavailableError("git", f"git status failed: {e}") from e

        prefix = self._root_prefix(repo)
        changes = ChangeSet()
        for kind, repo_path in parse_porcelain_status(output):
            path = self._to_root_relative(repo_path, prefix)
            if path is not None:
                changes.add(kind, path)

        logger.debug(
            "git_changes_extracted",
            new=len(changes.new),
            modified=len(changes.modified),
            deleted=len(changes.deleted),
        )
        return changes

    def _open_repo(self) -> Any:
        git = _import_git()
        try:
            repo = git.Repo(self.root, search_parent_directories=True)
            if repo.bare or repo.working_tree_dir is None:
                raise StrategyUnavailableError("git", "bare repository")
            repo.git.rev_parse("--is-inside-work-tree")
        except (git.exc.GitError, OSError, ValueError) as e:
            raise StrategyUnavailableError("git", str(e) or type(e).__name__) from e
        return repo

    def _root_prefix(self, repo: Any) -> str:
        """Root's location inside the working tree, "" when root is the top level."""
        top = Path(repo.working_tree_dir).resolve()
        try:
            relative = self.root.resolve().relative_to(top)
        except ValueError as e:
            raise StrategyUnavailableError("git", f"{self.root} is outside {top}") from e
        prefix = relative.as_posix()
        return "" if prefix == "." else prefix + "/"

    @staticmethod
    def _to_root_relative(repo_path: str, prefix: str) -> Optional[str]:
        if not prefix:
            return repo_path
        if repo_path.startswith(prefix):
            return repo_path[len(prefix):]
        return None
