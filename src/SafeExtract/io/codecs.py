"""Decompression capability for gzip, bzip2, xz and zstd wrappers.

The bit-level algorithms live in :mod:`gzip`, :mod:`bz2`, :mod:`lzma` and
``zstandard``; this module only opens them over a caller-supplied stream and
normalises their assorted failure types into :class:`DecodeError`.  Decoding
is lazy, so a malformed header surfaces on the first read (usually the
sniffer's read-ahead) rather than when the decoder is opened.
"""

from __future__ import annotations

import bz2
import gzip
import lzma
import zlib
from typing import BinaryIO, Callable, Dict, Optional

import zstandard

from ..errors import DecodeError
from .sniff import ArchiveKind

__all__ = ["DecodedStream", "open_decoder", "SUPPORTED_CODECS"]

_CODEC_ERRORS = (OSError, EOFError, zlib.error, lzma.LZMAError, zstandard.ZstdError)


def _open_gzip(stream: BinaryIO) -> BinaryIO:
    return gzip.GzipFile(fileobj=stream, mode="rb")


def _open_bzip2(stream: BinaryIO) -> BinaryIO:
    return bz2.BZ2File(stream, mode="rb")


def _open_xz(stream: BinaryIO) -> BinaryIO:
    return lzma.LZMAFile(stream, mode="rb", format=lzma.FORMAT_XZ)


def _open_zstd(stream: BinaryIO) -> BinaryIO:
    dctx = zstandard.ZstdDecompressor()
    return dctx.stream_reader(stream, read_across_frames=True, closefd=False)


_OPENERS: Dict[ArchiveKind, Callable[[BinaryIO], BinaryIO]] = {
    ArchiveKind.GZIP: _open_gzip,
    ArchiveKind.BZIP2: _open_bzip2,
    ArchiveKind.XZ: _open_xz,
    ArchiveKind.ZSTD: _open_zstd,
}

SUPPORTED_CODECS = tuple(_OPENERS)


class DecodedStream:
    """Forward-only decompressed view of a compressed stream.

    Always reports itself as non-seekable: some decoders claim seek support
    but implement it by rewinding the source, which a forward-only source
    cannot do.
    """

    def __init__(self, kind: ArchiveKind, decoder: BinaryIO) -> None:
        self.kind = kind
        self._decoder = decoder

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def read(self, size: Optional[int] = -1) -> bytes:
        try:
            return self._decoder.read(-1 if size is None else size)
        except _CODEC_ERRORS as exc:
            raise DecodeError(self.kind.extension, str(exc) or type(exc).__name__) from exc

    def close(self) -> None:
        self._decoder.close()

    def __enter__(self) -> "DecodedStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def open_decoder(kind: ArchiveKind, stream: BinaryIO) -> DecodedStream:
    """Return a :class:`DecodedStream` decompressing ``stream`` as ``kind``.

    Raises:
        DecodeError: If the decoder rejects the stream outright.
        ValueError: If ``kind`` is not a compression wrapper.
    """

    try:
        opener = _OPENERS[kind]
    except KeyError:
        raise ValueError(f"{kind.extension} is not a compression wrapper") from None
    try:
        decoder = opener(stream)
    except _CODEC_ERRORS as exc:
        raise DecodeError(kind.extension, str(exc) or type(exc).__name__) from exc
    return DecodedStream(kind, decoder)
