# === NAVMAP v1 ===
# {
#   "module": "SafeExtract.entries",
#   "purpose": "Transient records produced while walking an archive",
#   "sections": [
#     {"id": "entry", "name": "ArchiveEntry", "anchor": "ENT", "kind": "dataclass"},
#     {"id": "link", "name": "PendingLink", "anchor": "LNK", "kind": "dataclass"},
#     {"id": "summary", "name": "ExtractionSummary", "anchor": "SUM", "kind": "dataclass"}
#   ]
# }
# === /NAVMAP ===

"""Transient records produced while walking an archive.

Nothing here outlives a single extraction call.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

__all__ = [
    "EntryKind",
    "LinkKind",
    "ArchiveEntry",
    "PendingLink",
    "ExtractionSummary",
    "Renamer",
]

Renamer = Callable[[str], str]


class EntryKind(str, Enum):
    DIRECTORY = "directory"
    REGULAR_FILE = "file"
    HARD_LINK = "hardlink"
    SYMLINK = "symlink"


class LinkKind(str, Enum):
    HARD = "hard"
    SYMBOLIC = "symbolic"


@dataclass
class ArchiveEntry:
    """One logical item of an archive manifest.

    ``output_path`` is only set once the renamed name has passed
    :func:`~SafeExtract.io.paths.safe_join`.  ``link_target`` is the raw text
    stored in the archive.
    """

    kind: EntryKind
    raw_name: str
    mode: int
    link_target: Optional[str] = None
    output_path: Optional[str] = None


@dataclass(frozen=True)
class PendingLink:
    """A hard or symbolic link deferred until the entry pass is exhausted."""

    output_path: str
    target_path: str
    kind: LinkKind


@dataclass
class ExtractionSummary:
    """Counters for one extraction call."""

    kind: str = ""
    entries_seen: int = 0
    entries_skipped: int = 0
    files_written: int = 0
    directories_created: int = 0
    links_created: int = 0
    bytes_written: int = 0
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None

    @property
    def duration_ms(self) -> float:
        """Duration in milliseconds."""
        end = self.end_time or time.time()
        return (end - self.start_time) * 1000

    def finalize(self) -> "ExtractionSummary":
        """Mark the summary as complete and return it."""
        self.end_time = time.time()
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary for structured logging."""
        return {
            "kind": self.kind,
            "entries_seen": self.entries_seen,
            "entries_skipped": self.entries_skipped,
            "files_written": self.files_written,
            "directories_created": self.directories_created,
            "links_created": self.links_created,
            "bytes_written": self.bytes_written,
            "duration_ms": round(self.duration_ms, 2),
        }
