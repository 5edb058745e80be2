"""Chunk manifest codec.

A manifest lists the stored chunks that make up one logical file, in order,
as ``identifier:size`` pairs joined with commas. Long manifests are sent in a
compressed form: the same text, raw-deflated and encoded as URL-safe base64
without padding. The decoder tells the two apart by the presence of ``:``,
which never occurs in the base64 alphabet.
"""

from __future__ import annotations

import base64
import binascii
import zlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import ManifestError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

FIELD_SEPARATOR = ":"
ENTRY_SEPARATOR = ","
COMPRESSION_THRESHOLD = 5

_RAW_DEFLATE_WBITS = -zlib.MAX_WBITS


@dataclass(frozen=True, slots=True)
class ChunkDescriptor:
    identifier: str
    declared_size: int


@dataclass(frozen=True, slots=True)
class Manifest:
    """Ordered chunks forming one logical byte stream."""

    chunks: tuple[ChunkDescriptor, ...]

    @classmethod
    def of(cls, pairs: Iterable[tuple[str, int]]) -> Manifest:
        return cls(tuple(ChunkDescriptor(ident, size) for ident, size in pairs))

    @property
    def total_size(self) -> int:
        return sum(chunk.declared_size for chunk in self.chunks)

    def __iter__(self) -> Iterator[ChunkDescriptor]:
        return iter(self.chunks)

    def __len__(self) -> int:
        return len(self.chunks)


def decode(raw: str) -> Manifest:
    """Parse a plain or compressed manifest.

    Raises:
        ManifestError: If the payload cannot be decompressed or any entry is
            malformed.
    """
    if not raw:
        msg = "invalid chunk format"
        raise ManifestError(msg)
    text = raw if FIELD_SEPARATOR in raw else _decompress(raw)
    return _parse_plain(text)


def encode(manifest: Manifest, compress: bool | None = None) -> str:
    """Serialise a manifest, compressing it when it has many chunks.

    ``compress=None`` compresses manifests longer than
    ``COMPRESSION_THRESHOLD`` chunks.
    """
    text = ENTRY_SEPARATOR.join(
        f"{chunk.identifier}{FIELD_SEPARATOR}{chunk.declared_size}"
        for chunk in manifest
    )
    if compress is None:
        compress = len(manifest) > COMPRESSION_THRESHOLD
    if not compress:
        return text
    return _compress(text)


def _compress(text: str) -> str:
    deflater = zlib.compressobj(9, zlib.DEFLATED, _RAW_DEFLATE_WBITS)
    payload = deflater.compress(text.encode("utf-8")) + deflater.flush()
    return base64.urlsafe_b64encode(payload).decode("ascii").rstrip("=")


def _decompress(raw: str) -> str:
    padded = raw + "=" * (-len(raw) % 4)
    try:
        payload = base64.b64decode(padded, altchars=b"-_", validate=True)
        inflater = zlib.decompressobj(_RAW_DEFLATE_WBITS)
        data = inflater.decompress(payload) + inflater.flush()
        if not inflater.eof:
            msg = "truncated deflate stream"
            raise zlib.error(msg)
        return data.decode("utf-8")
    except (binascii.Error, zlib.error, UnicodeDecodeError, ValueError) as exc:
        msg = "decompression failed"
        raise ManifestError(msg) from exc


def _parse_plain(text: str) -> Manifest:
    if not text:
        msg = "invalid chunk format"
        raise ManifestError(msg)

    chunks: list[ChunkDescriptor] = []
    for entry in text.split(ENTRY_SEPARATOR):
        identifier, separator, size_text = entry.strip().partition(FIELD_SEPARATOR)
        size_text = size_text.strip()
        if (
            not separator
            or not identifier
            or not size_text.isascii()
            or not size_text.isdigit()
        ):
            msg = "invalid chunk format"
            raise ManifestError(msg)
        size = int(size_text)
        if size <= 0:
            msg = "invalid chunk format"
            raise ManifestError(msg)
        chunks.append(ChunkDescriptor(identifier, size))

    return Manifest(tuple(chunks))
