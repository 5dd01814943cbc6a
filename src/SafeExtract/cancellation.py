"""Cooperative cancellation primitives shared by extraction calls.

An extraction observes cancellation only at well-defined checkpoints: before
each archive entry, before each deferred link, and before every chunk read in
the streaming copy.  This module offers the light-weight
:class:`CancellationToken` used to signal those checkpoints.  The
implementation intentionally avoids thread interruption in favour of explicit
checks; callers compose it with their own deadlines (for example a
``threading.Timer`` that calls :meth:`CancellationToken.cancel`).
"""

from __future__ import annotations

import threading
from typing import Optional, Protocol, runtime_checkable

from .errors import Interrupted

__all__ = ["Cancellable", "CancellationToken", "raise_if_cancelled"]


@runtime_checkable
class Cancellable(Protocol):
    """Anything that can report whether cancellation was requested."""

    def is_cancelled(self) -> bool:  # pragma: no cover - protocol
        ...


class CancellationToken:
    """Thread-safe cancellation token for cooperative extraction cancellation.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(self) -> None:
        """Initialize a new cancellation token."""
        self._is_cancelled = threading.Event()
        self._lock = threading.Lock()

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        with self._lock:
            self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._is_cancelled.is_set()

    def reset(self) -> None:
        """Reset the cancellation token to its initial state.

        This should only be used for testing or when reusing tokens
        in controlled scenarios.
        """
        with self._lock:
            self._is_cancelled.clear()


def raise_if_cancelled(token: Optional[Cancellable]) -> None:
    """Raise :class:`Interrupted` when ``token`` has been cancelled."""

    if token is not None and token.is_cancelled():
        raise Interrupted()


# === NAVMAP v1 ===
# {
#   "module": "SafeExtract.cancellation",
#   "purpose": "Provide cooperative cancellation tokens polled at extraction checkpoints",
#   "sections": [
#     {"id": "token", "name": "CancellationToken", "anchor": "TOK", "kind": "api"},
#     {"id": "check", "name": "Checkpoint Helper", "anchor": "CHK", "kind": "helpers"}
#   ]
# }
# === /NAVMAP ===
