"""Exception hierarchy shared across archive detection, decoding, and extraction.

Extraction spans format sniffing, decompression, container parsing, path
validation, and filesystem materialisation.  This module groups the failure
modes into a tidy hierarchy so callers can react to high-level categories
(for example, hostile input vs. a cancelled run) while still having access to
the specialised attributes each failure carries.

Only :class:`UnsafePath` is absorbed by the engine itself; every other error
unwinds the extraction call immediately without rollback.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

__all__ = [
    "ExtractionErrorCode",
    "error_message",
    "SafeExtractError",
    "UnsupportedFormat",
    "DecodeError",
    "MalformedContainer",
    "UnsafePath",
    "LinkResolutionError",
    "Interrupted",
    "FilesystemError",
]


class ExtractionErrorCode(str, Enum):
    """Error codes attached to every extraction failure."""

    UNSUPPORTED = "E_UNSUPPORTED"  # No known signature / kind
    DECODE = "E_DECODE"  # Compressed wrapper is malformed
    CORRUPT = "E_CORRUPT"  # Truncated or corrupt tar/zip structure
    TRAVERSAL = "E_TRAVERSAL"  # Path escapes the extraction root
    LINK = "E_LINK"  # Deferred link could not be materialised
    INTERRUPTED = "E_INTERRUPTED"  # Cancellation observed
    IO = "E_IO"  # Filesystem capability failure


_MESSAGES = {
    ExtractionErrorCode.UNSUPPORTED: "Not a supported archive",
    ExtractionErrorCode.DECODE: "Compressed stream could not be decoded",
    ExtractionErrorCode.CORRUPT: "Archive is corrupted or truncated",
    ExtractionErrorCode.TRAVERSAL: "Path traversal detected",
    ExtractionErrorCode.LINK: "Link could not be created",
    ExtractionErrorCode.INTERRUPTED: "interrupted",
    ExtractionErrorCode.IO: "I/O error during extraction",
}


def error_message(code: ExtractionErrorCode, detail: str = "") -> str:
    """Generate a descriptive error message for an error code.

    Args:
        code: The error code
        detail: Additional detail to append

    Returns:
        Human-readable error message
    """
    msg = _MESSAGES.get(code, str(code))
    if detail:
        msg += f": {detail}"
    return msg


class SafeExtractError(RuntimeError):
    """Base exception for archive extraction failures."""

    code: ExtractionErrorCode = ExtractionErrorCode.IO


class UnsupportedFormat(SafeExtractError):
    """Raised when the stream does not carry a supported archive signature."""

    code = ExtractionErrorCode.UNSUPPORTED

    def __init__(self, kind: str) -> None:
        super().__init__(error_message(self.code, kind))
        self.kind = kind


class DecodeError(SafeExtractError):
    """Raised when a gzip/bzip2/xz/zstd wrapper cannot be decoded."""

    code = ExtractionErrorCode.DECODE

    def __init__(self, codec: str, reason: str) -> None:
        super().__init__(error_message(self.code, f"{codec}: {reason}"))
        self.codec = codec


class MalformedContainer(SafeExtractError):
    """Raised when the tar or zip structure itself is truncated or corrupt."""

    code = ExtractionErrorCode.CORRUPT

    def __init__(self, container: str, reason: str) -> None:
        super().__init__(error_message(self.code, f"{container}: {reason}"))
        self.container = container


class UnsafePath(SafeExtractError):
    """Raised when a joined entry path escapes the extraction root."""

    code = ExtractionErrorCode.TRAVERSAL

    def __init__(self, root: str, candidate: str) -> None:
        super().__init__(
            error_message(self.code, f"unsafe path join: '{root}' with '{candidate}'")
        )
        self.root = root
        self.candidate = candidate


class LinkResolutionError(SafeExtractError):
    """Raised when a queued hard or symbolic link cannot be materialised."""

    code = ExtractionErrorCode.LINK

    def __init__(self, path: str, target: str, kind: str, reason: str) -> None:
        super().__init__(error_message(self.code, f"{kind} link {path} -> {target}: {reason}"))
        self.path = path
        self.target = target
        self.kind = kind


class Interrupted(SafeExtractError):
    """Raised when the cancellation signal is observed at a checkpoint."""

    code = ExtractionErrorCode.INTERRUPTED

    def __init__(self) -> None:
        super().__init__(error_message(self.code))


class FilesystemError(SafeExtractError):
    """Raised when a filesystem capability call fails.

    The originating :class:`OSError` is chained as ``__cause__``.
    """

    code = ExtractionErrorCode.IO

    def __init__(self, operation: str, path: str, reason: Optional[str] = None) -> None:
        detail = f"{operation} {path}"
        if reason:
            detail += f": {reason}"
        super().__init__(error_message(self.code, detail))
        self.operation = operation
        self.path = path


# === NAVMAP v1 ===
# {
#   "module": "SafeExtract.errors",
#   "purpose": "Define the exception hierarchy and error codes used across archive extraction",
#   "sections": [
#     {"id": "codes", "name": "Error Codes", "anchor": "COD", "kind": "constants"},
#     {"id": "base", "name": "Base Exception", "anchor": "BAS", "kind": "api"},
#     {"id": "input", "name": "Input Format Errors", "anchor": "INP", "kind": "api"},
#     {"id": "safety", "name": "Path & Link Safety Errors", "anchor": "SAF", "kind": "api"},
#     {"id": "runtime", "name": "Cancellation & I/O Errors", "anchor": "RUN", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
