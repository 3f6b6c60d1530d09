"""Change extraction strategies: Git working tree and filesystem scan."""

from tasktrack.extraction.fs_scanner import FilesystemScanner, ScanResult
from tasktrack.extraction.git_extractor import (
    ChangeExtractor,
    GitChangeExtractor,
    parse_porcelain_status,
)

__all__ = [
    "ChangeExtractor",
    "FilesystemScanner",
    "GitChangeExtractor",
    "ScanResult",
    "parse_porcelain_status",
]
