# === NAVMAP v1 ===
# {
#   "module": "SafeExtract.settings",
#   "purpose": "Configuration models and environment overrides for the extraction engine",
#   "sections": [
#     {"id": "extraction", "name": "ExtractionSettings", "anchor": "EXT", "kind": "pydantic"},
#     {"id": "logging", "name": "LoggingConfiguration", "anchor": "LOG", "kind": "pydantic"},
#     {"id": "env", "name": "Environment Overrides", "anchor": "ENV", "kind": "helpers"},
#     {"id": "defaults", "name": "Defaults & Cache", "anchor": "DEF", "kind": "factory"}
#   ]
# }
# === /NAVMAP ===

"""Configuration for the safe-extraction engine.

The engine itself is policy-free: path safety, the two-phase link protocol and
cancellation checkpoints are always on.  What remains tunable is I/O sizing
and the permission bits applied to objects the archive does not describe
explicitly (implicit parent directories, single-file payloads).

``SAFEEXTRACT_COPY_BUFFER_SIZE`` and ``SAFEEXTRACT_SNIFF_BYTES`` override the
defaults returned by :func:`get_default_settings`.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "ExtractionSettings",
    "LoggingConfiguration",
    "get_default_settings",
    "invalidate_default_settings_cache",
]

_TAR_MAGIC_END = 262  # "ustar" ends at offset 262


class ExtractionSettings(BaseModel):
    """Tunable knobs for a single :class:`~SafeExtract.extractor.Extractor`."""

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
    )

    copy_buffer_size: int = Field(
        default=32 * 1024,
        ge=1024,
        le=16 * 1024 * 1024,
        description="Chunk size for the cancelable copy loop",
    )

    sniff_bytes: int = Field(
        default=512,
        ge=_TAR_MAGIC_END + 3,
        le=4096,
        description="Bytes peeked from the head of a stream to classify it",
    )

    dir_mode: int = Field(
        default=0o755,
        description="Mode for parent directories created implicitly by file entries",
    )

    single_file_mode: int = Field(
        default=0o666,
        description="Mode for a decompressed single-file payload",
    )

    strip_special_bits: bool = Field(
        default=True,
        description="Drop setuid/setgid/sticky bits from archive entry modes",
    )

    @field_validator("dir_mode", "single_file_mode", mode="before")
    @classmethod
    def validate_mode(cls, v: int | str) -> int:
        """Accept octal strings or int file modes."""
        if isinstance(v, str):
            v = int(v, 8)
        if not isinstance(v, int):
            raise ValueError(f"Mode must be int or octal string, got {type(v)}")
        if v <= 0 or v > 0o777:
            raise ValueError(f"Mode must be in range [0o001, 0o777], got {oct(v)}")
        return v

    def entry_mode(self, mode: int) -> int:
        """Return the permission bits to apply for an archive-declared ``mode``."""

        return mode & (0o777 if self.strip_special_bits else 0o7777)


class LoggingConfiguration(BaseModel):
    """Logging-related configuration for the CLI and embedding applications."""

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    json_format: bool = Field(default=False, description="Emit JSON lines on the console")
    log_file: Optional[Path] = Field(default=None, description="Optional rotating JSONL log file")
    max_log_size_mb: int = Field(default=10, gt=0, description="Maximum size of rotated log files")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        """Normalise logging levels and ensure they match the supported set."""

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        upper = value.upper()
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")
        return upper

    model_config = {"validate_assignment": True}


def _read_env_value(name: str) -> Optional[str]:
    """Fetch and normalise an environment variable, treating empty values as absent."""

    raw = os.environ.get(name)
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _read_env_int(name: str) -> Optional[int]:
    value = _read_env_value(name)
    if value is None:
        return None
    return int(value)


_DEFAULT_SETTINGS_LOCK = threading.RLock()
_DEFAULT_SETTINGS: Optional[ExtractionSettings] = None


def get_default_settings(*, copy: bool = False) -> ExtractionSettings:
    """Return memoised :class:`ExtractionSettings` built from defaults and environment."""

    global _DEFAULT_SETTINGS  # noqa: PLW0603

    with _DEFAULT_SETTINGS_LOCK:
        if _DEFAULT_SETTINGS is None:
            overrides = {}
            buffer_size = _read_env_int("SAFEEXTRACT_COPY_BUFFER_SIZE")
            if buffer_size is not None:
                overrides["copy_buffer_size"] = buffer_size
            sniff_bytes = _read_env_int("SAFEEXTRACT_SNIFF_BYTES")
            if sniff_bytes is not None:
                overrides["sniff_bytes"] = sniff_bytes
            _DEFAULT_SETTINGS = ExtractionSettings(**overrides)
        cached = _DEFAULT_SETTINGS
    if copy:
        return cached.model_copy(deep=True)
    return cached


def invalidate_default_settings_cache() -> None:
    """Drop the memoised defaults so the next lookup re-reads the environment."""

    global _DEFAULT_SETTINGS  # noqa: PLW0603

    with _DEFAULT_SETTINGS_LOCK:
        _DEFAULT_SETTINGS = None
