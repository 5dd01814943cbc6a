"""Cancelable streaming copy and the byte-stream adapters around libarchive.

Every read goes through :class:`CancelableReader`, which polls the
cancellation token first.  An extraction therefore overshoots a cancellation
by at most one chunk; the partially written destination is left in place.

:class:`ArchiveSource` feeds a Python stream to ``libarchive.stream_reader``
and :class:`BlockReader` turns ``entry.get_blocks()`` back into a readable
stream for the copy loop.
"""

from __future__ import annotations

from typing import BinaryIO, Iterable, Optional

from ..cancellation import Cancellable, raise_if_cancelled

__all__ = [
    "ArchiveSource",
    "BlockReader",
    "CancelableReader",
    "copy_cancelable",
    "DEFAULT_CHUNK_SIZE",
]

DEFAULT_CHUNK_SIZE = 32 * 1024


class CancelableReader:
    """Wrap ``src`` so each :meth:`read` raises ``Interrupted`` once cancelled."""

    def __init__(self, src: BinaryIO, cancel: Optional[Cancellable]) -> None:
        self._src = src
        self._cancel = cancel

    def read(self, size: int = -1) -> bytes:
        raise_if_cancelled(self._cancel)
        return self._src.read(size)


def copy_cancelable(
    dst: BinaryIO,
    src: BinaryIO,
    cancel: Optional[Cancellable],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Copy ``src`` into ``dst`` until end-of-data and return the bytes written.

    Raises:
        Interrupted: If ``cancel`` is signalled before any chunk read.
    """

    reader = CancelableReader(src, cancel)
    written = 0
    for chunk in iter(lambda: reader.read(chunk_size), b""):
        dst.write(chunk)
        written += len(chunk)
    return written


class ArchiveSource:
    """Forward-only ``readinto`` view of ``stream`` for ``libarchive.stream_reader``.

    libarchive pulls data through a C callback, and an exception raised there
    never reaches the caller.  The first failure (a codec error, a cancelled
    token) is kept in :attr:`error` and reported to libarchive as a failed
    read; the extractor re-raises it once libarchive gives up.
    """

    def __init__(self, stream: BinaryIO, cancel: Optional[Cancellable] = None) -> None:
        self._stream = stream
        self._cancel = cancel
        self.error: Optional[BaseException] = None

    def seekable(self) -> bool:
        return False

    def readinto(self, buffer) -> int:
        if self.error is not None:
            return -1
        try:
            raise_if_cancelled(self._cancel)
            data = self._stream.read(len(buffer))
        except Exception as exc:  # noqa: BLE001 - surfaced through self.error
            self.error = exc
            return -1
        size = len(data)
        buffer[:size] = data
        return size


class BlockReader:
    """Readable stream over ``blocks``, ending after ``limit`` bytes when given.

    The limit keeps trailing bytes that libarchive emits alongside a warning
    (a zip CRC mismatch, for instance) out of the extracted file.
    """

    def __init__(self, blocks: Iterable[bytes], limit: Optional[int] = None) -> None:
        self._blocks = iter(blocks)
        self._pending = b""
        self._remaining = limit

    def _next_block(self) -> bytes:
        if self._remaining is not None and self._remaining <= 0:
            return b""
        # Empty blocks can appear mid-entry; only exhaustion ends the data.
        block = b""
        for block in self._blocks:
            if block:
                break
        if self._remaining is not None:
            block = block[: self._remaining]
            self._remaining -= len(block)
        return block

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            chunks = [self._pending]
            self._pending = b""
            for block in iter(self._next_block, b""):
                chunks.append(block)
            return b"".join(chunks)
        while len(self._pending) < size:
            block = self._next_block()
            if not block:
                break
            self._pending += block
        data, self._pending = self._pending[:size], self._pending[size:]
        return data
