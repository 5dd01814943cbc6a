# === NAVMAP v1 ===
# {
#   "module": "SafeExtract.io.sniff",
#   "purpose": "Classify a stream by its leading magic bytes without losing them",
#   "sections": [
#     {"id": "kinds", "name": "ArchiveKind", "anchor": "KND", "kind": "constants"},
#     {"id": "classify", "name": "Signature Matching", "anchor": "SIG", "kind": "helpers"},
#     {"id": "replay", "name": "Replay Stream", "anchor": "RPL", "kind": "helpers"},
#     {"id": "sniff", "name": "sniff", "anchor": "SNF", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Magic-byte format detection with a peek-without-consume contract.

:func:`sniff` reads up to ``size`` bytes from the head of a stream, classifies
them and hands back a stream that still yields the full content.  Seekable
sources are rewound; forward-only sources (pipes, HTTP bodies, decompressors)
get the already-read bytes replayed in front of the unread remainder.

An unrecognised head is reported as :attr:`ArchiveKind.UNKNOWN`, not as an
error; the dispatcher decides whether that is fatal.
"""

from __future__ import annotations

import io
from enum import Enum
from typing import BinaryIO, Tuple

__all__ = ["ArchiveKind", "classify", "sniff", "is_seekable"]


class ArchiveKind(str, Enum):
    """Container and compression kinds, valued by their file extension."""

    TAR = "tar"
    ZIP = "zip"
    GZIP = "gz"
    BZIP2 = "bz2"
    XZ = "xz"
    ZSTD = "zst"
    # Recognised only so UnsupportedFormat can name them.
    SEVEN_ZIP = "7z"
    RAR = "rar"
    UNKNOWN = "unknown"

    @property
    def extension(self) -> str:
        return self.value


_SIGNATURES: Tuple[Tuple[bytes, ArchiveKind], ...] = (
    (b"PK\x03\x04", ArchiveKind.ZIP),
    (b"PK\x05\x06", ArchiveKind.ZIP),  # empty archive
    (b"PK\x07\x08", ArchiveKind.ZIP),  # spanned archive marker
    (b"\x1f\x8b", ArchiveKind.GZIP),
    (b"BZh", ArchiveKind.BZIP2),
    (b"\xfd7zXZ\x00", ArchiveKind.XZ),
    (b"\x28\xb5\x2f\xfd", ArchiveKind.ZSTD),
    (b"7z\xbc\xaf\x27\x1c", ArchiveKind.SEVEN_ZIP),
    (b"Rar!\x1a\x07", ArchiveKind.RAR),
)

_TAR_MAGIC_OFFSET = 257
_TAR_MAGIC = b"ustar"


def classify(head: bytes) -> ArchiveKind:
    """Return the :class:`ArchiveKind` matching the leading bytes ``head``."""

    for magic, kind in _SIGNATURES:
        if head.startswith(magic):
            return kind
    if head[_TAR_MAGIC_OFFSET : _TAR_MAGIC_OFFSET + len(_TAR_MAGIC)] == _TAR_MAGIC:
        return ArchiveKind.TAR
    return ArchiveKind.UNKNOWN


def is_seekable(stream: BinaryIO) -> bool:
    """Return ``True`` when ``stream`` reports random access support."""

    seekable = getattr(stream, "seekable", None)
    if not callable(seekable):
        return False
    try:
        return bool(seekable())
    except (OSError, ValueError):
        return False


class _ReplayRaw(io.RawIOBase):
    """Raw stream yielding ``prefix`` and then whatever ``source`` still holds."""

    def __init__(self, prefix: bytes, source: BinaryIO) -> None:
        super().__init__()
        self._prefix = prefix
        self._offset = 0
        self._source = source

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[override]
        remaining = len(self._prefix) - self._offset
        if remaining > 0:
            n = min(len(buffer), remaining)
            buffer[:n] = self._prefix[self._offset : self._offset + n]
            self._offset += n
            return n
        data = self._source.read(len(buffer))
        if not data:
            return 0
        n = len(data)
        buffer[:n] = data
        return n


def _read_head(stream: BinaryIO, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def sniff(stream: BinaryIO, size: int = 512) -> Tuple[BinaryIO, ArchiveKind]:
    """Peek at ``stream`` and classify it.

    Args:
        stream: Binary stream positioned at the start of the payload.
        size: Maximum number of bytes to inspect.

    Returns:
        ``(stream, kind)`` where ``stream`` yields the complete original
        content from the position ``stream`` had on entry.
    """

    if is_seekable(stream):
        start = stream.tell()
        head = _read_head(stream, size)
        stream.seek(start)
        return stream, classify(head)

    head = _read_head(stream, size)
    replay = io.BufferedReader(_ReplayRaw(head, stream))
    return replay, classify(head)
