"""File fingerprinting."""

import hashlib
import os
import stat
from datetime import datetime, timezone
from pathlib import Path

from tasktrack.errors import PathUnreadableError
from tasktrack.models.changes import Fingerprint
from tasktrack.models.config import FingerprintMode

_HASH_CHUNK_SIZE = 1024 * 1024


def compute_fingerprint(path: Path, mode: FingerprintMode = FingerprintMode.HASH) -> Fingerprint:
    """Fingerprint a regular file.

    Args:
        path: Absolute path to the file
        mode: HASH also digests the content; STAT records size and mtime only

    Returns:
        Fingerprint

    Raises:
        PathUnreadableError: If the file vanished, is not a regular file, or
            cannot be read
    """
    try:
        st = os.stat(path)
        if not stat.S_ISREG(st.st_mode):
            raise PathUnreadableError(path, ValueError("not a regular file"))

        content_hash = None
        if mode is FingerprintMode.HASH:
            digest = hashlib.sha256()
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
                    digest.update(chunk)
            content_hash = digest.hexdigest()
    except OSError as e:
        raise PathUnreadableError(path, e) from e

    return Fingerprint(
        size=st.st_size,
        mtime_ns=st.st_mtime_ns,
        content_hash=content_hash,
        last_checked=datetime.now(timezone.utc),
    )
