"""Built-in ignore patterns and the project-local .taskignore file."""

from pathlib import Path
from typing import List, Tuple

import structlog

from tasktrack.errors import IgnoreFileError
from tasktrack.ignore.matcher import PatternMatcher, normalize_path

logger = structlog.get_logger(__name__)

# Always active; a .taskignore file can only add to these
DEFAULT_IGNORE_PATTERNS: Tuple[str, ...] = (
    # Version control
    ".git/**",
    ".svn/**",
    ".hg/**",
    # Dependencies
    "node_modules/**",
    "**/node_modules/**",
    ".venv/**",
    "venv/**",
    # Build output
    "dist/**",
    "build/**",
    "coverage/**",
    ".next/**",
    # Caches
    ".cache/**",
    "**/__pycache__/**",
    ".pytest_cache/**",
    ".mypy_cache/**",
    # Tracker data
    ".tasktracker/**",
    # Generated files
    "**/*.log",
    "**/*.lock",
    "**/*.map",
    "**/*.pyc",
)

IGNORE_FILE_HEADER = (
    "# TaskTracker ignore patterns",
    "# Files and directories matching these patterns are not tracked for changes.",
    "# Built-in defaults always apply; patterns here are added to them.",
    "# Lines starting with # are comments.",
    "#",
    "#   dir/**      everything under dir/",
    "#   **/*.ext    any file ending in .ext",
    "#   a/*.txt     * matches inside one path segment, ** across segments",
    "",
)


def parse_ignore_lines(content: str) -> List[str]:
    """Extract patterns from ignore-file content, skipping comments and blanks."""
    patterns = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        patterns.append(normalize_path(line))
    return patterns


def read_user_patterns(ignore_file: Path) -> List[str]:
    """Read user patterns from ignore_file.

    A missing file is normal and yields no patterns. An unreadable file is
    logged and also yields no patterns, so the defaults still apply.
    """
    ignore_file = Path(ignore_file)
    if not ignore_file.is_file():
        return []

    try:
        content = ignore_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("ignore_file_unreadable", path=str(ignore_file), error=str(e))
        return []

    patterns = parse_ignore_lines(content)
    logger.debug("ignore_file_loaded", path=str(ignore_file), patterns=len(patterns))
    return patterns


def load_ignore_patterns(ignore_file: Path) -> List[str]:
    """Active pattern list: defaults first, then the user's additions."""
    return [*DEFAULT_IGNORE_PATTERNS, *read_user_patterns(ignore_file)]


def build_matcher(ignore_file: Path) -> PatternMatcher:
    return PatternMatcher(load_ignore_patterns(ignore_file))


class IgnoreFile:
    """Manages the patterns stored in a project's .taskignore file.

    Example:
        >>> ignore = IgnoreFile(Path("/path/to/project/.taskignore"))
        >>> ignore.add("generated/**")
        True
        >>> ignore.user_patterns()
        ['generated/**']
    """

    def __init__(self, path: Path):
        """Initialize the ignore file manager.

        Args:
            path: Location of the .taskignore file (it may not exist yet)
        """
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def user_patterns(self) -> List[str]:
        return read_user_patterns(self.path)

    def list_patterns(self) -> List[Tuple[str, str]]:
        """List every active pattern with its origin ("default" or "user")."""
        listed = [(pattern, "default") for pattern in DEFAULT_IGNORE_PATTERNS]
        listed.extend((pattern, "user") for pattern in self.user_patterns())
        return listed

    def init(self, force: bool = False) -> Path:
        """Create the file with a commented header.

        Args:
            force: Overwrite an existing file

        Returns:
            Path of the written file

        Raises:
            IgnoreFileError: If the file exists and force is False
        """
        if self.exists() and not force:
            raise IgnoreFileError(f"{self.path} already exists. Use --force to overwrite.")

        self._write_lines(list(IGNORE_FILE_HEADER))
        logger.info("ignore_file_initialized", path=str(self.path))
        return self.path

    def add(self, pattern: str) -> bool:
        """Append a pattern.

        Returns:
            True if added, False if it was already present (user or default)

        Raises:
            IgnoreFileError: If the pattern is empty
        """
        pattern = normalize_path(pattern)
        if not pattern or pattern.startswith("#"):
            raise IgnoreFileError("Pattern required")

        if pattern in DEFAULT_IGNORE_PATTERNS or pattern in self.user_patterns():
            return False

        lines = self._read_lines() if self.exists() else list(IGNORE_FILE_HEADER)
        while lines and not lines[-1].strip():
            lines.pop()
        lines.append(pattern)
        self._write_lines(lines)
        logger.info("ignore_pattern_added", pattern=pattern, path=str(self.path))
        return True

    def remove(self, pattern: str) -> None:
        """Remove a user pattern.

        Raises:
            IgnoreFileError: If the pattern is a built-in default, the file is
                missing, or the pattern is not in the file
        """
        pattern = normalize_path(pattern)
        if not pattern:
            raise IgnoreFileError("Pattern required")
        if pattern in DEFAULT_IGNORE_PATTERNS:
            raise IgnoreFileError(f"'{pattern}' is a built-in default and cannot be removed")
        if not self.exists():
            raise IgnoreFileError(f"No ignore file found at {self.path}")

        lines = self._read_lines()
        kept = [line for line in lines if normalize_path(line) != pattern or line.strip().startswith("#")]
        if len(kept) == len(lines):
            raise IgnoreFileError(f"Pattern '{pattern}' not found")

        self._write_lines(kept)
        logger.info("ignore_pattern_removed", pattern=pattern, path=str(self.path))

    def _read_lines(self) -> List[str]:
        try:
            return self.path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise IgnoreFileError(f"Cannot read {self.path}: {e}") from e

    def _write_lines(self, lines: List[str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        except OSError as e:
            raise IgnoreFileError(f"Cannot write {self.path}: {e}") from e
