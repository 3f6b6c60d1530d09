"""Configuration models."""

from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Directory names tried first when a path filter narrows the scan
CONVENTIONAL_SOURCE_DIRS = ("src", "lib", "bin", "app", "components", "util", "utils", "scripts")


class FingerprintMode(str, Enum):
    """How file fingerprints are computed."""

    HASH = "hash"
    STAT = "stat"


class DetectionConfig(BaseModel):
    """Explicit configuration for one change-detection run.

    Built once at the edge (CLI or caller) and passed down; nothing below
    the orchestrator reads the environment or the working directory.
    """

    root: Path = Field(..., description="Directory to scan; paths are reported relative to it")
    data_dir: Path = Field(..., description="Directory holding the fingerprint and task files")
    ignore_file: Path = Field(..., description="Project-local ignore-pattern file")
    fingerprint_file: Path = Field(..., description="Persisted fingerprint map")
    tasks_file: Path = Field(..., description="Task tracker's tasks.json")
    max_files: int = Field(1000, ge=1, description="Hard ceiling on files inspected per scan")
    prune_probability: float = Field(
        0.1, ge=0.0, le=1.0, description="Chance per invocation of pruning stale store entries"
    )
    fingerprint_mode: FingerprintMode = Field(
        FingerprintMode.HASH, description="hash: content digest; stat: size + mtime"
    )
    use_git: bool = Field(True, description="Try the git strategy before scanning")
    segment_aligned_match: bool = Field(
        False, description="Only match task files on whole path segments"
    )
    source_dirs: Tuple[str, ...] = Field(
        CONVENTIONAL_SOURCE_DIRS, description="Directories prioritised when a path filter is given"
    )

    @classmethod
    def for_root(
        cls,
        root: Path,
        data_dir: Optional[Path] = None,
        **overrides,
    ) -> "DetectionConfig":
        """Build a config with the standard file layout under root.

        Args:
            root: Project root to scan
            data_dir: Data directory (defaults to <root>/.tasktracker)
            **overrides: Any other DetectionConfig field

        Returns:
            DetectionConfig
        """
        root = Path(root).resolve()
        data_dir = Path(data_dir) if data_dir is not None else root / ".tasktracker"
        if not data_dir.is_absolute():
            data_dir = root / data_dir
        values = {
            "root": root,
            "data_dir": data_dir,
            "ignore_file": root / ".taskignore",
            "fingerprint_file": data_dir / "file-hashes.json",
            "tasks_file": data_dir / "tasks.json",
        }
        values.update(overrides)
        return cls(**values)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings are prefixed with TASKTRACK_ (e.g. TASKTRACK_MAX_FILES).
    """

    model_config = SettingsConfigDict(
        env_prefix="TASKTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage layout
    data_dir: str = ".tasktracker"
    ignore_file: str = ".taskignore"
    fingerprint_file: str = "file-hashes.json"
    tasks_file: str = "tasks.json"

    # Detection
    max_files: int = 1000
    prune_probability: float = 0.1
    fingerprint_mode: FingerprintMode = FingerprintMode.HASH
    use_git: bool = True
    segment_aligned_match: bool = False

    # Logging
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def normalise_log_level(cls, value: str) -> str:
        level = value.upper().strip()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level

    def to_detection_config(self, root: Path, **overrides) -> DetectionConfig:
        """Resolve these settings against a project root.

        Relative data_dir and ignore_file are taken relative to root; the
        fingerprint and tasks files live inside data_dir.
        """
        root = Path(root).resolve()
        data_dir = Path(self.data_dir)
        if not data_dir.is_absolute():
            data_dir = root / data_dir
        ignore_file = Path(self.ignore_file)
        if not ignore_file.is_absolute():
            ignore_file = root / ignore_file

        values = {
            "root": root,
            "data_dir": data_dir,
            "ignore_file": ignore_file,
            "fingerprint_file": data_dir / self.fingerprint_file,
            "tasks_file": data_dir / self.tasks_file,
            "max_files": self.max_files,
            "prune_probability": self.prune_probability,
            "fingerprint_mode": self.fingerprint_mode,
            "use_git": self.use_git,
            "segment_aligned_match": self.segment_aligned_match,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return DetectionConfig(**values)
