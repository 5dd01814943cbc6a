"""Aggregated IO helpers for the safe-extraction engine.

This subpackage bundles the leaf components the extractor is built from:
lexical path containment, cancelable streaming copy, magic-byte sniffing,
decompression wrappers, and the filesystem capability adapters.  Re-exporting
the most common symbols keeps importing ergonomics simple for the rest of the
codebase.
"""

from .codecs import SUPPORTED_CODECS, DecodedStream, open_decoder
from .filesystem import (
    WRITE_FLAGS,
    ChrootFilesystem,
    FilesystemCapability,
    OSFilesystem,
    remove_if_exists,
)
from .paths import safe_join
from .sniff import ArchiveKind, classify, is_seekable, sniff
from .streams import ArchiveSource, BlockReader, CancelableReader, copy_cancelable

__all__ = [
    "ArchiveKind",
    "ArchiveSource",
    "BlockReader",
    "CancelableReader",
    "ChrootFilesystem",
    "DecodedStream",
    "FilesystemCapability",
    "OSFilesystem",
    "SUPPORTED_CODECS",
    "WRITE_FLAGS",
    "classify",
    "copy_cancelable",
    "is_seekable",
    "open_decoder",
    "remove_if_exists",
    "safe_join",
    "sniff",
]
