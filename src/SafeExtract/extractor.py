# === NAVMAP v1 ===
# {
#   "module": "SafeExtract.extractor",
#   "purpose": "Detect, unwrap and extract archives through an injectable filesystem",
#   "sections": [
#     {"id": "kinds", "name": "Kind Aliases", "anchor": "ALI", "kind": "constants"},
#     {"id": "extractor", "name": "Extractor", "anchor": "EXT", "kind": "api"},
#     {"id": "dispatch", "name": "Dispatch & Wrappers", "anchor": "DSP", "kind": "helpers"},
#     {"id": "tar", "name": "Tar Entry Pass", "anchor": "TAR", "kind": "helpers"},
#     {"id": "zip", "name": "Zip Entry Pass", "anchor": "ZIP", "kind": "helpers"},
#     {"id": "materialise", "name": "Directory & File Creation", "anchor": "MAT", "kind": "helpers"}
#   ]
# }
# === /NAVMAP ===

"""Archive extraction engine.

:class:`Extractor` walks tar and zip archives entry by entry with libarchive,
optionally behind a gzip, bzip2, xz or zstd wrapper, and materialises them
below a destination directory through a :class:`~SafeExtract.io.filesystem.FilesystemCapability`.

Each entry goes through the same steps:

1. the cancellation token is polled;
2. the caller's renamer maps the raw name (an empty result skips the entry);
3. :func:`~SafeExtract.io.paths.safe_join` confines the result to the
   destination, and entries that escape are logged and skipped;
4. directories and regular files are written immediately while hard and
   symbolic links are queued on a :class:`~SafeExtract.links.LinkResolver`.

Links are materialised once the archive is exhausted.  Nothing is rolled
back on failure; a partially extracted tree stays on disk.
"""

from __future__ import annotations

import io
import logging
import os
import stat
from typing import BinaryIO, Callable, Dict, Optional, Union

import libarchive

from .cancellation import Cancellable, raise_if_cancelled
from .entries import ArchiveEntry, EntryKind, ExtractionSummary, Renamer
from .errors import (
    FilesystemError,
    MalformedContainer,
    UnsafePath,
    UnsupportedFormat,
)
from .io.codecs import open_decoder
from .io.filesystem import WRITE_FLAGS, FilesystemCapability, OSFilesystem, remove_if_exists
from .io.paths import safe_join
from .io.sniff import ArchiveKind, sniff
from .io.streams import ArchiveSource, BlockReader, copy_cancelable
from .links import LinkResolver
from .logging_config import get_logger
from .settings import ExtractionSettings, get_default_settings

__all__ = ["Extractor", "KIND_ALIASES", "resolve_kind"]

# "auto" maps to None: sniff the stream.
KIND_ALIASES: Dict[str, Optional[ArchiveKind]] = {
    "auto": None,
    "tar": ArchiveKind.TAR,
    "zip": ArchiveKind.ZIP,
    "gzip": ArchiveKind.GZIP,
    "gz": ArchiveKind.GZIP,
    "bzip2": ArchiveKind.BZIP2,
    "bz2": ArchiveKind.BZIP2,
    "xz": ArchiveKind.XZ,
    "zstd": ArchiveKind.ZSTD,
    "zst": ArchiveKind.ZSTD,
}

# Permission bits used when a zip entry carries none at all.
_ZIP_DEFAULT_DIR_MODE = 0o777
_ZIP_DEFAULT_FILE_MODE = 0o666

Handler = Callable[..., ExtractionSummary]


def resolve_kind(kind: Union[str, ArchiveKind, None]) -> Optional[ArchiveKind]:
    """Map a user supplied kind name to an :class:`ArchiveKind`.

    ``None`` and ``"auto"`` resolve to ``None`` (auto-detect).

    Raises:
        UnsupportedFormat: If ``kind`` names nothing the engine extracts.
    """

    if kind is None:
        return None
    if isinstance(kind, ArchiveKind):
        if kind in (ArchiveKind.SEVEN_ZIP, ArchiveKind.RAR, ArchiveKind.UNKNOWN):
            raise UnsupportedFormat(kind.extension)
        return kind
    try:
        return KIND_ALIASES[kind.strip().lower()]
    except KeyError:
        raise UnsupportedFormat(kind) from None


def _entry_kind(entry) -> Optional[EntryKind]:
    """Classify a ``libarchive`` entry; ``None`` for types that are not materialised."""

    # libarchive reports tar hard links as regular files carrying a link name.
    if entry.islnk:
        return EntryKind.HARD_LINK
    if entry.issym:
        return EntryKind.SYMLINK
    if entry.isdir:
        return EntryKind.DIRECTORY
    if entry.isfifo or entry.isblk or entry.ischr or entry.issock:
        return None
    return EntryKind.REGULAR_FILE


class Extractor:
    """Archive extractor bound to a filesystem capability.

    Args:
        fs: Filesystem capability every write goes through. Defaults to the
            host filesystem.
        settings: I/O sizing and default modes. Defaults to
            :func:`~SafeExtract.settings.get_default_settings`.
        logger: Logger for structured extraction events.

    Each public method takes ``(stream, location, renamer=None, cancel=None)``
    and returns an :class:`~SafeExtract.entries.ExtractionSummary`.  For the
    compression wrappers ``location`` is a file path when the payload turns
    out not to be a tar archive.

    Examples:
        >>> import io, tempfile
        >>> extractor = Extractor()
        >>> with tempfile.TemporaryDirectory() as tmp:
        ...     extractor.archive(io.BytesIO(b"plain text"), tmp)
        Traceback (most recent call last):
        ...
        SafeExtract.errors.UnsupportedFormat: Not a supported archive: unknown
    """

    def __init__(
        self,
        fs: Optional[FilesystemCapability] = None,
        settings: Optional[ExtractionSettings] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.fs = fs if fs is not None else OSFilesystem()
        self.settings = settings or get_default_settings(copy=True)
        self.logger = logger or get_logger("extractor")

    # --- Public surface -------------------------------------------------

    def extract(
        self,
        kind: Union[str, ArchiveKind, None],
        stream: BinaryIO,
        location: str,
        renamer: Optional[Renamer] = None,
        cancel: Optional[Cancellable] = None,
    ) -> ExtractionSummary:
        """Extract ``stream`` as ``kind`` (``"auto"`` sniffs the format first)."""

        resolved = resolve_kind(kind)
        if resolved is None:
            return self.archive(stream, location, renamer, cancel)
        return self._handlers()[resolved](stream, location, renamer, cancel)

    def archive(
        self,
        stream: BinaryIO,
        location: str,
        renamer: Optional[Renamer] = None,
        cancel: Optional[Cancellable] = None,
    ) -> ExtractionSummary:
        """Detect the format of ``stream`` and extract it.

        Raises:
            UnsupportedFormat: If the leading bytes match no extractable kind.
        """

        stream, kind = sniff(stream, self.settings.sniff_bytes)
        self.logger.debug(
            "detected archive kind",
            extra={"stage": "sniff", "kind": kind.value, "root": location},
        )
        handler = self._handlers().get(kind)
        if handler is None:
            raise UnsupportedFormat(kind.extension)
        return handler(stream, location, renamer, cancel)

    def tar(
        self,
        stream: BinaryIO,
        location: str,
        renamer: Optional[Renamer] = None,
        cancel: Optional[Cancellable] = None,
    ) -> ExtractionSummary:
        """Extract an uncompressed tar stream below ``location``."""

        summary = ExtractionSummary(kind=ArchiveKind.TAR.value)
        self._extract_tar(stream, location, renamer, cancel, summary)
        return self._finish(summary, location)

    def zip(
        self,
        stream: BinaryIO,
        location: str,
        renamer: Optional[Renamer] = None,
        cancel: Optional[Cancellable] = None,
    ) -> ExtractionSummary:
        """Extract a zip archive below ``location``.

        The stream is buffered in memory first since the central directory
        sits at the end of the archive.
        """

        summary = ExtractionSummary(kind=ArchiveKind.ZIP.value)
        self._extract_zip(stream, location, renamer, cancel, summary)
        return self._finish(summary, location)

    def gz(
        self,
        stream: BinaryIO,
        location: str,
        renamer: Optional[Renamer] = None,
        cancel: Optional[Cancellable] = None,
    ) -> ExtractionSummary:
        """Extract a ``.tar.gz`` below ``location`` or a ``.gz`` payload to it."""

        return self._unwrap(ArchiveKind.GZIP, stream, location, renamer, cancel)

    def bz2(
        self,
        stream: BinaryIO,
        location: str,
        renamer: Optional[Renamer] = None,
        cancel: Optional[Cancellable] = None,
    ) -> ExtractionSummary:
        """Extract a ``.tar.bz2`` below ``location`` or a ``.bz2`` payload to it."""

        return self._unwrap(ArchiveKind.BZIP2, stream, location, renamer, cancel)

    def xz(
        self,
        stream: BinaryIO,
        location: str,
        renamer: Optional[Renamer] = None,
        cancel: Optional[Cancellable] = None,
    ) -> ExtractionSummary:
        """Extract a ``.tar.xz`` below ``location`` or a ``.xz`` payload to it."""

        return self._unwrap(ArchiveKind.XZ, stream, location, renamer, cancel)

    def zstd(
        self,
        stream: BinaryIO,
        location: str,
        renamer: Optional[Renamer] = None,
        cancel: Optional[Cancellable] = None,
    ) -> ExtractionSummary:
        """Extract a ``.tar.zst`` below ``location`` or a ``.zst`` payload to it."""

        return self._unwrap(ArchiveKind.ZSTD, stream, location, renamer, cancel)

    # --- Dispatch & wrappers ---------------------------------------------

    def _handlers(self) -> Dict[ArchiveKind, Handler]:
        return {
            ArchiveKind.TAR: self.tar,
            ArchiveKind.ZIP: self.zip,
            ArchiveKind.GZIP: self.gz,
            ArchiveKind.BZIP2: self.bz2,
            ArchiveKind.XZ: self.xz,
            ArchiveKind.ZSTD: self.zstd,
        }

    def _unwrap(
        self,
        kind: ArchiveKind,
        stream: BinaryIO,
        location: str,
        renamer: Optional[Renamer],
        cancel: Optional[Cancellable],
    ) -> ExtractionSummary:
        summary = ExtractionSummary(kind=kind.value)
        with open_decoder(kind, stream) as decoded:
            inner, inner_kind = sniff(decoded, self.settings.sniff_bytes)
            self.logger.debug(
                "detected wrapped payload",
                extra={"stage": "sniff", "kind": f"{inner_kind.value}.{kind.value}"},
            )
            if inner_kind is ArchiveKind.TAR:
                summary.kind = f"tar.{kind.value}"
                self._extract_tar(inner, location, renamer, cancel, summary)
            else:
                summary.bytes_written += self._copy(
                    location, self.settings.single_file_mode, inner, cancel
                )
                summary.files_written += 1
        return self._finish(summary, location)

    def _finish(self, summary: ExtractionSummary, location: str) -> ExtractionSummary:
        summary.finalize()
        self.logger.info(
            "extracted archive",
            extra={
                "stage": "extract",
                "kind": summary.kind,
                "root": location,
                "files": summary.files_written,
                "directories": summary.directories_created,
                "links": summary.links_created,
                "skipped": summary.entries_skipped,
                "bytes_written": summary.bytes_written,
                "duration_ms": round(summary.duration_ms, 2),
            },
        )
        return summary

    def _new_resolver(self, cancel: Optional[Cancellable]) -> LinkResolver:
        return LinkResolver(
            self.fs, cancel, self.logger, parent_mode=self.settings.dir_mode
        )

    # --- Shared entry handling -------------------------------------------

    def _place(
        self,
        entry: ArchiveEntry,
        location: str,
        renamer: Optional[Renamer],
        summary: ExtractionSummary,
    ) -> bool:
        """Rename and confine ``entry``; return ``False`` when it must be skipped."""

        name = renamer(entry.raw_name) if renamer is not None else entry.raw_name
        if not name:
            summary.entries_skipped += 1
            return False
        try:
            entry.output_path = safe_join(location, name)
        except UnsafePath as exc:
            self._skip_unsafe(exc, entry.raw_name, summary)
            return False
        return True

    def _skip_unsafe(self, exc: UnsafePath, raw_name: str, summary: ExtractionSummary) -> None:
        summary.entries_skipped += 1
        self.logger.warning(
            "skipping entry outside extraction root",
            extra={
                "stage": "extract",
                "entry": raw_name,
                "root": exc.root,
                "path": exc.candidate,
                "error_code": exc.code.value,
            },
        )

    def _walk(
        self,
        archive,
        container: ArchiveKind,
        location: str,
        renamer: Optional[Renamer],
        cancel: Optional[Cancellable],
        summary: ExtractionSummary,
    ) -> None:
        """Run the entry pass over an open libarchive reader, then resolve links."""

        resolver = self._new_resolver(cancel)
        for item in archive:
            raise_if_cancelled(cancel)
            summary.entries_seen += 1
            self._member(item, container, location, renamer, cancel, resolver, summary)
        summary.links_created += resolver.resolve()

    def _member(
        self,
        item,
        container: ArchiveKind,
        location: str,
        renamer: Optional[Renamer],
        cancel: Optional[Cancellable],
        resolver: LinkResolver,
        summary: ExtractionSummary,
    ) -> None:
        raw_name = item.pathname or ""
        kind = _entry_kind(item)
        mode = stat.S_IMODE(item.mode)

        if container is ArchiveKind.ZIP:
            # Some compressors write backslash separators; a trailing one marks a directory.
            if raw_name.endswith("\\"):
                kind = EntryKind.DIRECTORY
            raw_name = raw_name.replace("\\", "/")
            if not mode & 0o777:
                is_dir = kind is EntryKind.DIRECTORY
                mode = _ZIP_DEFAULT_DIR_MODE if is_dir else _ZIP_DEFAULT_FILE_MODE

        if kind is None:
            # Devices, FIFOs and the like are not materialised.
            summary.entries_skipped += 1
            self.logger.debug(
                "ignoring unsupported entry type",
                extra={"stage": "extract", "entry": raw_name, "kind": container.value},
            )
            return

        entry = ArchiveEntry(kind, raw_name, mode, item.linkpath or None)
        if not self._place(entry, location, renamer, summary):
            return
        path = entry.output_path
        assert path is not None

        if kind is EntryKind.DIRECTORY:
            self._make_directory(path, mode, summary)
        elif kind is EntryKind.REGULAR_FILE:
            blocks = item.get_blocks(self.settings.copy_buffer_size)
            summary.bytes_written += self._copy(
                path, self.settings.entry_mode(mode), BlockReader(blocks, item.size), cancel
            )
            summary.files_written += 1
        elif kind is EntryKind.HARD_LINK:
            target_name = entry.link_target or ""
            if renamer is not None:
                target_name = renamer(target_name)
            try:
                target = safe_join(location, target_name)
            except UnsafePath as exc:
                self._skip_unsafe(exc, entry.raw_name, summary)
                return
            resolver.add_hard_link(path, target)
        else:
            resolver.add_symlink(path, entry.link_target or "")

    # --- Tar --------------------------------------------------------------

    def _extract_tar(
        self,
        stream: BinaryIO,
        location: str,
        renamer: Optional[Renamer],
        cancel: Optional[Cancellable],
        summary: ExtractionSummary,
    ) -> None:
        raise_if_cancelled(cancel)
        source = ArchiveSource(stream, cancel)
        try:
            with libarchive.stream_reader(
                source, format_name="tar", filter_name="none"
            ) as archive:
                self._walk(archive, ArchiveKind.TAR, location, renamer, cancel, summary)
        except libarchive.ArchiveError as exc:
            if source.error is not None:
                # Codec failure or cancellation seen while libarchive was reading.
                raise source.error
            raise MalformedContainer("tar", str(exc)) from exc

    # --- Zip --------------------------------------------------------------

    def _extract_zip(
        self,
        stream: BinaryIO,
        location: str,
        renamer: Optional[Renamer],
        cancel: Optional[Cancellable],
        summary: ExtractionSummary,
    ) -> None:
        # The central directory sits at the end, so the whole archive is buffered.
        buffer = io.BytesIO()
        copy_cancelable(buffer, stream, cancel, self.settings.copy_buffer_size)

        try:
            with libarchive.memory_reader(
                buffer.getvalue(), format_name="zip", filter_name="none"
            ) as archive:
                self._walk(archive, ArchiveKind.ZIP, location, renamer, cancel, summary)
        except libarchive.ArchiveError as exc:
            raise MalformedContainer("zip", str(exc)) from exc

    # --- Directory & file creation ---------------------------------------

    def _make_directory(self, path: str, mode: int, summary: ExtractionSummary) -> None:
        # Owner execute is always added so the directory can be entered.
        dir_mode = self.settings.entry_mode(mode) | 0o100
        try:
            try:
                existing = self.fs.stat(path)
            except FileNotFoundError:
                self.fs.mkdir_all(path, dir_mode)
                summary.directories_created += 1
                return
            if not stat.S_ISDIR(existing.st_mode):
                raise FilesystemError("mkdir", path, "not a directory")
            # Created earlier as the implicit parent of a file entry.
            self.fs.chmod(path, dir_mode)
        except OSError as exc:
            raise FilesystemError("mkdir", path, str(exc)) from exc

    def _copy(
        self,
        path: str,
        mode: int,
        source: BinaryIO,
        cancel: Optional[Cancellable],
    ) -> int:
        try:
            self.fs.mkdir_all(os.path.dirname(path), self.settings.dir_mode)
            remove_if_exists(self.fs, path)
            handle = self.fs.open_file(path, WRITE_FLAGS, mode)
        except OSError as exc:
            raise FilesystemError("create", path, str(exc)) from exc

        with handle:
            try:
                return copy_cancelable(handle, source, cancel, self.settings.copy_buffer_size)
            except OSError as exc:
                raise FilesystemError("write", path, str(exc)) from exc
