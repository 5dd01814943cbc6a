"""Safe extraction of tar and zip archives from untrusted byte streams.

The package exposes one :class:`Extractor` per filesystem capability plus
module level shortcuts bound to the host filesystem::

    from SafeExtract import archive, CancellationToken

    token = CancellationToken()
    with open("bundle.tar.gz", "rb") as stream:
        summary = archive(stream, "/srv/unpacked", cancel=token)

Every entry path is confined to the destination, links are created only after
all regular entries, and cancellation is honoured between entries and chunk
reads.
"""

from __future__ import annotations

from typing import BinaryIO, Optional, Union

from .cancellation import Cancellable, CancellationToken
from .entries import ExtractionSummary, Renamer
from .errors import (
    DecodeError,
    ExtractionErrorCode,
    FilesystemError,
    Interrupted,
    LinkResolutionError,
    MalformedContainer,
    SafeExtractError,
    UnsafePath,
    UnsupportedFormat,
)
from .extractor import Extractor
from .io import ArchiveKind, ChrootFilesystem, FilesystemCapability, OSFilesystem, safe_join
from .settings import ExtractionSettings

__all__ = [
    "ArchiveKind",
    "Cancellable",
    "CancellationToken",
    "ChrootFilesystem",
    "DecodeError",
    "ExtractionErrorCode",
    "ExtractionSettings",
    "ExtractionSummary",
    "Extractor",
    "FilesystemCapability",
    "FilesystemError",
    "Interrupted",
    "LinkResolutionError",
    "MalformedContainer",
    "OSFilesystem",
    "Renamer",
    "SafeExtractError",
    "UnsafePath",
    "UnsupportedFormat",
    "archive",
    "bz2",
    "extract",
    "gz",
    "safe_join",
    "tar",
    "xz",
    "zip",
    "zstd",
]

__version__ = "0.1.0"


def _default_extractor() -> Extractor:
    # Built per call so settings picked up from the environment stay current.
    return Extractor(OSFilesystem())


def extract(
    kind: Union[str, ArchiveKind, None],
    stream: BinaryIO,
    location: str,
    renamer: Optional[Renamer] = None,
    cancel: Optional[Cancellable] = None,
) -> ExtractionSummary:
    """Extract ``stream`` as ``kind`` on the host filesystem; see :meth:`Extractor.extract`."""

    return _default_extractor().extract(kind, stream, location, renamer, cancel)


def archive(
    stream: BinaryIO,
    location: str,
    renamer: Optional[Renamer] = None,
    cancel: Optional[Cancellable] = None,
) -> ExtractionSummary:
    """Detect the format of ``stream`` and extract it on the host filesystem."""

    return _default_extractor().archive(stream, location, renamer, cancel)


def tar(
    stream: BinaryIO,
    location: str,
    renamer: Optional[Renamer] = None,
    cancel: Optional[Cancellable] = None,
) -> ExtractionSummary:
    return _default_extractor().tar(stream, location, renamer, cancel)


def zip(
    stream: BinaryIO,
    location: str,
    renamer: Optional[Renamer] = None,
    cancel: Optional[Cancellable] = None,
) -> ExtractionSummary:
    return _default_extractor().zip(stream, location, renamer, cancel)


def gz(
    stream: BinaryIO,
    location: str,
    renamer: Optional[Renamer] = None,
    cancel: Optional[Cancellable] = None,
) -> ExtractionSummary:
    return _default_extractor().gz(stream, location, renamer, cancel)


def bz2(
    stream: BinaryIO,
    location: str,
    renamer: Optional[Renamer] = None,
    cancel: Optional[Cancellable] = None,
) -> ExtractionSummary:
    return _default_extractor().bz2(stream, location, renamer, cancel)


def xz(
    stream: BinaryIO,
    location: str,
    renamer: Optional[Renamer] = None,
    cancel: Optional[Cancellable] = None,
) -> ExtractionSummary:
    return _default_extractor().xz(stream, location, renamer, cancel)


def zstd(
    stream: BinaryIO,
    location: str,
    renamer: Optional[Renamer] = None,
    cancel: Optional[Cancellable] = None,
) -> ExtractionSummary:
    return _default_extractor().zstd(stream, location, renamer, cancel)
