from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .manifest import Manifest


@dataclass(frozen=True, slots=True)
class RangeRequest:
    """Inclusive absolute byte range over the concatenated stream."""

    start: int
    end: int

    @classmethod
    def full(cls, total_size: int) -> RangeRequest:
        return cls(0, total_size - 1)

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass(frozen=True, slots=True)
class ChunkTask:
    """Fetch one chunk and emit bytes ``[slice_start, slice_end)`` of it."""

    identifier: str
    slice_start: int
    slice_end: int
    passthrough: bool

    @property
    def length(self) -> int:
        return self.slice_end - self.slice_start


def plan(manifest: Manifest, byte_range: RangeRequest) -> list[ChunkTask]:
    """Translate an absolute byte range into ordered per-chunk tasks.

    Only the first and last task can be partial; every chunk in between is
    forwarded whole. An empty result means the range is not satisfiable.
    """
    start, end = byte_range.start, byte_range.end
    if start < 0 or start > end or start >= manifest.total_size:
        return []

    tasks: list[ChunkTask] = []
    chunk_start = 0
    for chunk in manifest:
        size = chunk.declared_size
        chunk_end = chunk_start + size - 1
        if chunk_start > end:
            break
        if chunk_end >= start:
            slice_start = max(0, start - chunk_start)
            slice_end = min(size, end - chunk_start + 1)
            if slice_end > slice_start:
                tasks.append(
                    ChunkTask(
                        identifier=chunk.identifier,
                        slice_start=slice_start,
                        slice_end=slice_end,
                        passthrough=slice_start == 0 and slice_end == size,
                    )
                )
        chunk_start += size
    return tasks
