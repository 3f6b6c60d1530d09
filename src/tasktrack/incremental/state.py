"""Fingerprint store for change detection.

Persists the last observed fingerprint of every tracked file so the next
invocation can tell what changed. The store is a single JSON object mapping a
root-relative path to its fingerprint, read fully, mutated in memory and
written back atomically.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

import structlog
from pydantic import TypeAdapter, ValidationError

from tasktrack.errors import StoreCorruptError
from tasktrack.ignore.matcher import PatternMatcher
from tasktrack.models.changes import Fingerprint

logger = structlog.get_logger(__name__)

FingerprintMap = Dict[str, Fingerprint]

_FINGERPRINT_MAP = TypeAdapter(Dict[str, Fingerprint])


class FingerprintStore:
    """Loads, saves and prunes the persisted fingerprint map.

    The store lives at <data_dir>/file-hashes.json. Keys are paths relative
    to the scan root with POSIX separators.
    """

    def __init__(
        self,
        store_file: Path,
        root: Path,
        matcher: Optional[PatternMatcher] = None,
    ):
        """Initialize the fingerprint store.

        Args:
            store_file: JSON file holding the fingerprint map
            root: Scan root the stored paths are relative to
            matcher: Active ignore patterns; matching entries are never written
        """
        self.store_file = Path(store_file)
        self.root = Path(root)
        self.matcher = matcher

    def exists(self) -> bool:
        return self.store_file.is_file()

    def load(self) -> FingerprintMap:
        """Load the fingerprint map.

        Returns an empty map when the file does not exist yet. A corrupt file
        is logged and treated the same way, as if this were the first run.
        """
        try:
            return self.load_strict()
        except StoreCorruptError as e:
            logger.warning("fingerprint_store_corrupt", path=e.path, reason=e.reason)
            return {}

    def load_strict(self) -> FingerprintMap:
        """Load the fingerprint map, raising on invalid content.

        Raises:
            StoreCorruptError: If the file is unreadable or not a valid map
        """
        if not self.store_file.exists():
            return {}

        try:
            with open(self.store_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StoreCorruptError(self.store_file, f"invalid JSON ({e})") from e
        except OSError as e:
            raise StoreCorruptError(self.store_file, f"unreadable ({e})") from e

        if not isinstance(data, dict):
            raise StoreCorruptError(self.store_file, "top-level value is not an object")

        try:
            return _FINGERPRINT_MAP.validate_python(data)
        except ValidationError as e:
            raise StoreCorruptError(
                self.store_file, f"{e.error_count()} invalid entries"
            ) from e

    def save(self, entries: FingerprintMap) -> None:
        """Write the fingerprint map using an atomic replace.

        Entries excluded by the active ignore patterns are dropped first so
        the persisted store never tracks an ignored path.
        """
        self.purge_ignored(entries)
        self.store_file.parent.mkdir(parents=True, exist_ok=True)

        payload = {
            path: entries[path].model_dump(mode="json", exclude_none=True)
            for path in sorted(entries)
        }

        # Write to temporary file first
        fd, temp_path = tempfile.mkstemp(
            dir=self.store_file.parent, prefix=".file-hashes_", suffix=".json.tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
                f.write("\n")

            # Atomic rename
            os.replace(temp_path, self.store_file)
        except Exception:
            # Clean up temp file on error
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

        logger.debug("fingerprint_store_saved", path=str(self.store_file), entries=len(payload))

    def prune(self, entries: FingerprintMap) -> int:
        """Remove entries whose file no longer exists under the root.

        Returns:
            Number of entries removed
        """
        stale = [path for path in entries if not (self.root / path).exists()]
        for path in stale:
            del entries[path]

        if stale:
            logger.info("fingerprint_store_pruned", removed=len(stale))
        return len(stale)

    def purge_ignored(self, entries: FingerprintMap) -> int:
        """Remove entries matched by the ignore patterns.

        Returns:
            Number of entries removed
        """
        if self.matcher is None:
            return 0

        ignored = [path for path in entries if self.matcher.matches(path)]
        for path in ignored:
            del entries[path]
        return len(ignored)
