# === NAVMAP v1 ===
# {
#   "module": "SafeExtract.links",
#   "purpose": "Defer hard and symbolic links until every regular entry is on disk",
#   "sections": [
#     {"id": "resolver", "name": "LinkResolver", "anchor": "RES", "kind": "api"},
#     {"id": "placeholder", "name": "Placeholders", "anchor": "PLH", "kind": "helpers"},
#     {"id": "materialise", "name": "Materialisation", "anchor": "MAT", "kind": "helpers"}
#   ]
# }
# === /NAVMAP ===

"""Two-phase link creation.

A symlink created while entries are still being written lets a later entry
path (``aaa/sym`` after ``aaa -> /tmp``) pass the lexical containment check
and still land outside the extraction root.  Links are therefore queued while
the archive is walked and only materialised after the last entry.

Each queued symlink immediately gets an empty regular file at its output
path.  Any later entry that tries to traverse that path hits a file instead of
a directory and fails, which aborts the extraction before anything escapes.
Hard links need no placeholder since a hard link to a directory is refused by
the operating system.

Resolution runs hard links first, then symlinks, so a hard link can never be
attached to a freshly created symlink.  A hard link whose target is itself a
queued symlink is refused outright.
"""

from __future__ import annotations

import logging
import os
from typing import List, Optional, Tuple

from .cancellation import Cancellable, raise_if_cancelled
from .entries import LinkKind, PendingLink
from .errors import LinkResolutionError
from .io.filesystem import WRITE_FLAGS, FilesystemCapability, remove_if_exists
from .logging_config import get_logger

__all__ = ["LinkResolver", "PLACEHOLDER_MODE"]

PLACEHOLDER_MODE = 0o666


class LinkResolver:
    """Queue of deferred links for one extraction call.

    Attributes:
        fs: Filesystem capability that receives placeholders and links.
        cancel: Optional token polled before every link is materialised.
        parent_mode: Mode for missing parent directories of a placeholder.
    """

    def __init__(
        self,
        fs: FilesystemCapability,
        cancel: Optional[Cancellable] = None,
        logger: Optional[logging.Logger] = None,
        *,
        parent_mode: int = 0o755,
    ) -> None:
        self.fs = fs
        self.parent_mode = parent_mode
        self.cancel = cancel
        self._logger = logger or get_logger("links")
        self._hard: List[PendingLink] = []
        self._symbolic: List[PendingLink] = []

    @property
    def pending(self) -> Tuple[PendingLink, ...]:
        """Queued links in resolution order."""

        return tuple(self._hard) + tuple(self._symbolic)

    def __len__(self) -> int:
        return len(self._hard) + len(self._symbolic)

    def add_hard_link(self, path: str, target: str) -> None:
        """Queue ``path`` as a hard link to the already validated ``target``."""

        self._hard.append(PendingLink(path, target, LinkKind.HARD))

    def add_symlink(self, path: str, target: str) -> None:
        """Queue ``path -> target`` and occupy ``path`` with a placeholder file.

        ``target`` is stored verbatim; it is never validated or resolved.

        Raises:
            LinkResolutionError: If the placeholder cannot be created.
        """

        link = PendingLink(path, target, LinkKind.SYMBOLIC)
        self._place_holder(link)
        self._symbolic.append(link)

    def _place_holder(self, link: PendingLink) -> None:
        try:
            self.fs.mkdir_all(os.path.dirname(link.output_path), self.parent_mode)
            remove_if_exists(self.fs, link.output_path)
            handle = self.fs.open_file(link.output_path, WRITE_FLAGS, PLACEHOLDER_MODE)
            handle.close()
        except OSError as exc:
            raise LinkResolutionError(
                link.output_path,
                link.target_path,
                link.kind.value,
                f"creating placeholder: {exc}",
            ) from exc

    def resolve(self) -> int:
        """Materialise every queued link and return how many were created.

        Raises:
            Interrupted: If cancellation is observed before a link.
            LinkResolutionError: When a hard link targets a queued symlink
                (before anything is created), or on the first link that
                cannot be created; later links are left unresolved.
        """

        self._check_hard_link_targets()
        created = 0
        raise_if_cancelled(self.cancel)
        for link in self.pending:
            raise_if_cancelled(self.cancel)
            self._materialise(link)
            created += 1
        self._hard.clear()
        self._symbolic.clear()
        return created

    def _check_hard_link_targets(self) -> None:
        # A symlink's output path only holds its placeholder until the symlink
        # pass, so a hard link to it would silently capture an empty file.
        symlink_paths = {os.path.normpath(link.output_path) for link in self._symbolic}
        for link in self._hard:
            if os.path.normpath(link.target_path) in symlink_paths:
                raise LinkResolutionError(
                    link.output_path,
                    link.target_path,
                    link.kind.value,
                    "target is a symbolic link entry",
                )

    def _materialise(self, link: PendingLink) -> None:
        try:
            remove_if_exists(self.fs, link.output_path)
            if link.kind is LinkKind.HARD:
                self.fs.link(link.target_path, link.output_path)
            else:
                self.fs.symlink(link.target_path, link.output_path)
        except OSError as exc:
            raise LinkResolutionError(
                link.output_path, link.target_path, link.kind.value, str(exc)
            ) from exc
        self._logger.debug(
            "created link",
            extra={
                "stage": "links",
                "path": link.output_path,
                "target": link.target_path,
                "link_kind": link.kind.value,
            },
        )
