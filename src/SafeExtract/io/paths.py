# === NAVMAP v1 ===
# {
#   "module": "SafeExtract.io.paths",
#   "purpose": "Lexical containment check for archive entry paths",
#   "sections": [
#     {"id": "join", "name": "safe_join", "anchor": "JOI", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Lexical path containment for archive entries.

``safe_join`` never touches the filesystem: ``..`` segments are collapsed
before the containment check, so ``root/a/../../etc`` is rejected before any
directory exists for it.  Leading separators on the candidate are dropped so
an absolute entry name lands *under* the root, the same way ``tar`` strips a
leading ``/``.

When the root is the filesystem root itself, ``..`` collapses back onto it and
is accepted; callers extracting to ``/`` inherit that looser containment.
"""

from __future__ import annotations

import os

from ..errors import UnsafePath

__all__ = ["safe_join"]


def _separators() -> str:
    return os.sep + (os.altsep or "")


def safe_join(root: str, candidate: str) -> str:
    """Join ``candidate`` onto ``root`` and fail if the result leaves ``root``.

    Args:
        root: Extraction root as supplied by the caller.
        candidate: Entry path, already passed through the renamer.

    Returns:
        The cleaned joined path.

    Raises:
        UnsafePath: If the cleaned path does not start with the cleaned
            ``root`` plus a trailing separator.

    Examples:
        >>> safe_join("/path", "more/path")
        '/path/more/path'
        >>> safe_join("/", "..")
        '/'
    """

    seps = _separators()
    base = os.path.normpath(root) if root else os.curdir
    joined = os.path.normpath(os.path.join(base, candidate.lstrip(seps)))

    if base == os.curdir:
        # A relative "." root normalises away, so containment is "not upward".
        inside = (
            joined not in (os.curdir, os.pardir)
            and not joined.startswith(os.pardir + os.sep)
            and not os.path.isabs(joined)
        )
    else:
        prefix = base if base.endswith(tuple(seps)) else base + os.sep
        inside = joined.startswith(prefix)

    if not inside:
        raise UnsafePath(root, candidate)
    return joined
