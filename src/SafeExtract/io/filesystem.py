# === NAVMAP v1 ===
# {
#   "module": "SafeExtract.io.filesystem",
#   "purpose": "Filesystem capability interface and its real and chrooted adapters",
#   "sections": [
#     {"id": "protocol", "name": "FilesystemCapability", "anchor": "CAP", "kind": "api"},
#     {"id": "os", "name": "OSFilesystem", "anchor": "OSF", "kind": "api"},
#     {"id": "chroot", "name": "ChrootFilesystem", "anchor": "CHR", "kind": "api"},
#     {"id": "flags", "name": "Open Flags", "anchor": "FLG", "kind": "constants"}
#   ]
# }
# === /NAVMAP ===

"""Filesystem capability used by the extraction engine.

The engine never calls :mod:`os` directly.  It talks to a
:class:`FilesystemCapability`, so tests can journal or virtualise every
operation and embedders can confine an extraction under an arbitrary base
directory (:class:`ChrootFilesystem`).  The engine inspects filesystem state
only through :meth:`FilesystemCapability.stat`'s existence check.
"""

from __future__ import annotations

import os
from typing import BinaryIO, Protocol, runtime_checkable

__all__ = [
    "FilesystemCapability",
    "OSFilesystem",
    "ChrootFilesystem",
    "WRITE_FLAGS",
    "remove_if_exists",
]

WRITE_FLAGS = (
    os.O_CREAT
    | os.O_TRUNC
    | os.O_WRONLY
    | getattr(os, "O_BINARY", 0)
    | getattr(os, "O_NOFOLLOW", 0)
)


@runtime_checkable
class FilesystemCapability(Protocol):
    """Operations the engine needs from a filesystem.

    Every method raises :class:`OSError` (``FileNotFoundError`` for
    :meth:`stat` on a missing path) on failure.
    """

    def mkdir_all(self, path: str, mode: int) -> None:
        """Create ``path`` and any missing parents; existing directories are fine."""

    def open_file(self, path: str, flags: int, mode: int) -> BinaryIO:
        """Open ``path`` with ``os.open`` style ``flags`` for binary writing."""

    def link(self, old: str, new: str) -> None:
        """Create ``new`` as a hard link to ``old``."""

    def symlink(self, target: str, new: str) -> None:
        """Create ``new`` as a symbolic link whose content is ``target``."""

    def remove(self, path: str) -> None:
        """Remove a file, link or empty directory."""

    def stat(self, path: str) -> os.stat_result:
        """Return status for ``path``."""

    def chmod(self, path: str, mode: int) -> None:
        """Change the permission bits of ``path``."""


def remove_if_exists(fs: FilesystemCapability, path: str) -> None:
    """Remove whatever sits at ``path``; a missing path is not an error."""

    try:
        fs.remove(path)
    except FileNotFoundError:
        pass


class OSFilesystem:
    """Capability adapter backed by the host filesystem."""

    def mkdir_all(self, path: str, mode: int) -> None:
        # Unlike os.makedirs, every directory created gets ``mode``.
        if os.path.isdir(path):
            return
        parent = os.path.dirname(path)
        if parent and parent != path:
            self.mkdir_all(parent, mode)
        try:
            os.mkdir(path, mode)
        except FileExistsError:
            if not os.path.isdir(path):
                raise

    def open_file(self, path: str, flags: int, mode: int) -> BinaryIO:
        fd = os.open(path, flags, mode)
        return os.fdopen(fd, "wb")

    def link(self, old: str, new: str) -> None:
        os.link(old, new)

    def symlink(self, target: str, new: str) -> None:
        os.symlink(target, new)

    def remove(self, path: str) -> None:
        if os.path.isdir(path) and not os.path.islink(path):
            os.rmdir(path)
        else:
            os.remove(path)

    def stat(self, path: str) -> os.stat_result:
        return os.stat(path)

    def chmod(self, path: str, mode: int) -> None:
        os.chmod(path, mode)


class ChrootFilesystem(OSFilesystem):
    """Host filesystem confined under ``base``.

    Every path the engine passes in is re-rooted under ``base``, so extracting
    to ``/`` writes into ``base``.  Absolute symlink targets are re-rooted the
    same way; relative targets are written verbatim.
    """

    def __init__(self, base: str) -> None:
        self.base = os.fspath(base)

    def _rebase(self, path: str) -> str:
        seps = os.sep + (os.altsep or "")
        return os.path.join(self.base, path.lstrip(seps))

    def mkdir_all(self, path: str, mode: int) -> None:
        super().mkdir_all(self._rebase(path), mode)

    def open_file(self, path: str, flags: int, mode: int) -> BinaryIO:
        return super().open_file(self._rebase(path), flags, mode)

    def link(self, old: str, new: str) -> None:
        super().link(self._rebase(old), self._rebase(new))

    def symlink(self, target: str, new: str) -> None:
        if os.path.isabs(target):
            target = self._rebase(target)
        super().symlink(target, self._rebase(new))

    def remove(self, path: str) -> None:
        super().remove(self._rebase(path))

    def stat(self, path: str) -> os.stat_result:
        return super().stat(self._rebase(path))

    def chmod(self, path: str, mode: int) -> None:
        super().chmod(self._rebase(path), mode)
