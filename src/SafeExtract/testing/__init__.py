"""Testing utilities for exercising the extraction engine.

Provides a journaling filesystem capability, a forward-only stream wrapper,
and builders for the hostile and benign archives the test-suite extracts.
Archives are built in memory with :mod:`tarfile` and :mod:`zipfile`, so no
binary fixtures need to be checked in.
"""

from __future__ import annotations

import bz2
import gzip
import io
import lzma
import os
import stat
import tarfile
import zipfile
from dataclasses import dataclass
from typing import BinaryIO, Dict, List, Optional, Union

import zstandard

from ..io.filesystem import FilesystemCapability, OSFilesystem
from ..io.sniff import ArchiveKind

__all__ = [
    "LoggedOp",
    "LoggingFilesystem",
    "ForwardOnlyStream",
    "EVIL_PATHS",
    "WINDOWS_EVIL_PATHS",
    "SAMPLE_CONTENT",
    "add_tar_directory",
    "add_tar_file",
    "add_tar_hardlink",
    "add_tar_symlink",
    "add_zip_directory",
    "add_zip_file",
    "add_zip_symlink",
    "build_zip_slip_zip",
    "build_zip_slip_tar",
    "build_link_traversal_tar",
    "build_sample_tar",
    "build_sample_zip",
    "compress",
    "snapshot_tree",
]

_ESCAPE = "../" * 20

EVIL_PATHS = (
    "..",
    f"{_ESCAPE}tmp/evil.txt",
    f"some/path/{_ESCAPE}tmp/evil.txt",
    f"/{_ESCAPE}tmp/evil.txt",
    f"/some/path/{_ESCAPE}tmp/evil.txt",
)

WINDOWS_EVIL_PATHS = tuple(
    name.replace("/", "\\") for name in EVIL_PATHS[1:]
) + EVIL_PATHS

# Logical entries of the sample archive, relative to its prefix.
SAMPLE_CONTENT = {
    "file1.txt": b"File1",
    "file2.txt": b"File2",
}


# --- Journaling filesystem ----------------------------------------------


@dataclass
class LoggedOp:
    """One call recorded by :class:`LoggingFilesystem`."""

    op: str
    path: str
    old_path: str = ""
    mode: int = 0
    flags: int = 0

    def __str__(self) -> str:
        if self.op in ("link", "symlink"):
            return f"{self.op:<8} {self.path} -> {self.old_path}"
        if self.op == "open":
            return f"open     {oct(self.mode)} {self.path} (flags={self.flags:04x})"
        if self.op in ("mkdirall", "chmod"):
            return f"{self.op:<8} {oct(self.mode)} {self.path}"
        return f"{self.op:<8} {self.path}"


class LoggingFilesystem:
    """Filesystem capability that journals every call before forwarding it.

    With ``discard_writes`` (the default) file contents go to the null device
    while every other operation reaches ``backend``; this is enough to prove
    that hostile entries never trigger *any* filesystem call.  Pass
    ``discard_writes=False`` when a test needs a faithful tree on disk.
    """

    def __init__(
        self,
        backend: Optional[FilesystemCapability] = None,
        *,
        discard_writes: bool = True,
    ) -> None:
        self.backend = backend if backend is not None else OSFilesystem()
        self.discard_writes = discard_writes
        self.journal: List[LoggedOp] = []

    def mkdir_all(self, path: str, mode: int) -> None:
        self.journal.append(LoggedOp("mkdirall", path, mode=mode))
        self.backend.mkdir_all(path, mode)

    def open_file(self, path: str, flags: int, mode: int) -> BinaryIO:
        self.journal.append(LoggedOp("open", path, mode=mode, flags=flags))
        if self.discard_writes:
            return open(os.devnull, "wb")
        return self.backend.open_file(path, flags, mode)

    def link(self, old: str, new: str) -> None:
        self.journal.append(LoggedOp("link", new, old_path=old))
        self.backend.link(old, new)

    def symlink(self, target: str, new: str) -> None:
        self.journal.append(LoggedOp("symlink", new, old_path=target))
        self.backend.symlink(target, new)

    def remove(self, path: str) -> None:
        self.journal.append(LoggedOp("remove", path))
        self.backend.remove(path)

    def stat(self, path: str) -> os.stat_result:
        self.journal.append(LoggedOp("stat", path))
        return self.backend.stat(path)

    def chmod(self, path: str, mode: int) -> None:
        self.journal.append(LoggedOp("chmod", path, mode=mode))
        self.backend.chmod(path, mode)

    def ops(self, name: str) -> List[LoggedOp]:
        """Return the journaled calls of one kind, in call order."""

        return [op for op in self.journal if op.op == name]

    def __str__(self) -> str:
        return "".join(f"{op}\n" for op in self.journal)


class ForwardOnlyStream(io.RawIOBase):
    """Readable, non-seekable view of ``data``, like a socket or pipe."""

    def __init__(self, data: bytes) -> None:
        super().__init__()
        self._buffer = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def readinto(self, buffer) -> int:  # type: ignore[override]
        data = self._buffer.read(len(buffer))
        buffer[: len(data)] = data
        return len(data)


# --- Archive builders ---------------------------------------------------


def add_tar_directory(archive: tarfile.TarFile, name: str, mode: int = 0o755) -> None:
    info = tarfile.TarInfo(name)
    info.type = tarfile.DIRTYPE
    info.mode = mode
    archive.addfile(info)


def add_tar_file(
    archive: tarfile.TarFile, name: str, data: bytes, mode: int = 0o644
) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = mode
    archive.addfile(info, io.BytesIO(data))


def add_tar_hardlink(archive: tarfile.TarFile, name: str, target: str) -> None:
    info = tarfile.TarInfo(name)
    info.type = tarfile.LNKTYPE
    info.linkname = target
    info.mode = 0o777
    archive.addfile(info)


def add_tar_symlink(archive: tarfile.TarFile, name: str, target: str) -> None:
    info = tarfile.TarInfo(name)
    info.type = tarfile.SYMTYPE
    info.linkname = target
    info.mode = 0o777
    archive.addfile(info)


def _unix_zip_info(name: str, mode: int) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=(2020, 1, 1, 0, 0, 0))
    info.create_system = 3
    info.external_attr = mode << 16
    info.compress_type = zipfile.ZIP_DEFLATED
    return info


def add_zip_directory(archive: zipfile.ZipFile, name: str, mode: int = 0o755) -> None:
    if not name.endswith("/"):
        name += "/"
    info = _unix_zip_info(name, stat.S_IFDIR | mode)
    info.external_attr |= 0x10  # MS-DOS directory attribute
    archive.writestr(info, b"")


def add_zip_file(
    archive: zipfile.ZipFile, name: str, data: bytes, mode: int = 0o644
) -> None:
    archive.writestr(_unix_zip_info(name, stat.S_IFREG | mode), data)


def add_zip_symlink(archive: zipfile.ZipFile, name: str, target: str) -> None:
    info = _unix_zip_info(name, stat.S_IFLNK | 0o777)
    info.compress_type = zipfile.ZIP_STORED
    archive.writestr(info, target.encode("utf-8"))


def build_zip_slip_zip() -> bytes:
    """Zip whose every entry escapes the destination, in Unix and Windows spelling."""

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name in WINDOWS_EVIL_PATHS:
            archive.writestr(name, b"TEST")
    return buffer.getvalue()


def build_zip_slip_tar(windows: bool = False) -> bytes:
    """Tar whose every regular file entry escapes the destination."""

    names = WINDOWS_EVIL_PATHS if windows else EVIL_PATHS
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as archive:
        for name in names:
            add_tar_file(archive, name, b"TEST", mode=0o666)
    return buffer.getvalue()


def build_link_traversal_tar() -> bytes:
    """Tar holding a single hard link whose target escapes the destination."""

    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as archive:
        add_tar_hardlink(archive, "leak", "../" * 15 + "tmp/something-important")
    return buffer.getvalue()


def _prefixed(prefix: str, name: str) -> str:
    return f"{prefix}/{name}" if prefix else name


def build_sample_tar(prefix: str = "") -> bytes:
    """Tar with two files, one subdirectory, one hard link and one symlink.

    Layout below ``prefix``::

        file1.txt           "File1"
        file2.txt           "File2"
        folder/             directory
        link.txt            hard link to file1.txt
        folderlink -> folder
    """

    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as archive:
        if prefix:
            add_tar_directory(archive, prefix)
        add_tar_directory(archive, _prefixed(prefix, "folder"))
        for name, data in SAMPLE_CONTENT.items():
            add_tar_file(archive, _prefixed(prefix, name), data)
        add_tar_hardlink(archive, _prefixed(prefix, "link.txt"), _prefixed(prefix, "file1.txt"))
        add_tar_symlink(archive, _prefixed(prefix, "folderlink"), "folder")
    return buffer.getvalue()


def build_sample_zip(prefix: str = "") -> bytes:
    """Zip counterpart of :func:`build_sample_tar`.

    Zip has no hard links, so ``link.txt`` is stored as a copy of file1.txt.
    """

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        if prefix:
            add_zip_directory(archive, prefix)
        add_zip_directory(archive, _prefixed(prefix, "folder"))
        for name, data in SAMPLE_CONTENT.items():
            add_zip_file(archive, _prefixed(prefix, name), data)
        add_zip_file(archive, _prefixed(prefix, "link.txt"), SAMPLE_CONTENT["file1.txt"])
        add_zip_symlink(archive, _prefixed(prefix, "folderlink"), "folder")
    return buffer.getvalue()


def compress(kind: ArchiveKind, data: bytes) -> bytes:
    """Wrap ``data`` in the compression format named by ``kind``."""

    if kind is ArchiveKind.GZIP:
        return gzip.compress(data)
    if kind is ArchiveKind.BZIP2:
        return bz2.compress(data)
    if kind is ArchiveKind.XZ:
        return lzma.compress(data, format=lzma.FORMAT_XZ)
    if kind is ArchiveKind.ZSTD:
        return zstandard.ZstdCompressor().compress(data)
    raise ValueError(f"{kind.value} is not a compression wrapper")


def snapshot_tree(root: Union[str, "os.PathLike[str]"]) -> Dict[str, str]:
    """Describe the tree below ``root`` as ``{relative path: kind or content}``.

    Directories map to ``"dir"``, symlinks to ``"link"`` (never followed) and
    regular files to their decoded content.
    """

    base = os.fspath(root)
    snapshot: Dict[str, str] = {}
    for dirpath, dirnames, filenames in os.walk(base):
        for name in dirnames + filenames:
            full = os.path.join(dirpath, name)
            relative = os.path.relpath(full, base).replace(os.sep, "/")
            if os.path.islink(full):
                snapshot[relative] = "link"
            elif os.path.isdir(full):
                snapshot[relative] = "dir"
            else:
                with open(full, "rb") as handle:
                    snapshot[relative] = handle.read().decode("utf-8", "replace")
    return snapshot
