from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import anyio

from .errors import AssemblyError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    import httpx

    from .planner import ChunkTask
    from .resolver import PathResolver
    from .telegram import FileStore

LOG = logging.getLogger("tg_stream.assembler")


class StreamAssembler:
    """Async byte iterator concatenating the slices described by a plan.

    Tasks run strictly in order: a chunk is only fetched once every byte of
    the previous one has been handed out. Whole chunks are forwarded as they
    arrive; partial chunks are read into memory and sliced. The iterator is
    single-use and stops for good after the last task or the first error.
    """

    def __init__(
        self,
        tasks: Sequence[ChunkTask],
        resolver: PathResolver,
        store: FileStore,
        read_size: int = 64 * 1024,
    ):
        self._tasks = tasks
        self._resolver = resolver
        self._store = store
        self._read_size = read_size
        self._index = 0
        self._response: httpx.Response | None = None
        self._body: AsyncIterator[bytes] | None = None
        self._current: ChunkTask | None = None
        self._forwarded = 0
        self._finished = False

    def __aiter__(self) -> StreamAssembler:
        return self

    async def __anext__(self) -> bytes:
        if self._finished:
            raise StopAsyncIteration
        try:
            return await self._next_piece()
        except StopAsyncIteration:
            self._finished = True
            raise
        except Exception:
            LOG.exception(
                "stream aborted at task %d/%d (%s)",
                self._index,
                len(self._tasks),
                self._current.identifier if self._current else "-",
            )
            await self.aclose()
            raise
        except BaseException:
            # cancelled, usually because the client went away
            await self.aclose()
            raise

    async def aclose(self) -> None:
        """Abandon the in-flight download and start no further tasks."""
        self._finished = True
        with anyio.CancelScope(shield=True):
            await self._release()

    async def _next_piece(self) -> bytes:
        while True:
            if self._body is not None:
                try:
                    piece = await anext(self._body)
                except StopAsyncIteration:
                    self._check_forwarded()
                    await self._release()
                    continue
                self._forwarded += len(piece)
                return piece

            if self._index >= len(self._tasks):
                raise StopAsyncIteration

            task = self._tasks[self._index]
            self._index += 1
            self._current = task
            location = await self._resolver.resolve(task.identifier)
            response = await self._store.open_file(location)

            if task.passthrough:
                self._response = response
                self._body = response.aiter_bytes(self._read_size)
                self._forwarded = 0
                continue

            try:
                data = await response.aread()
            finally:
                await response.aclose()
            if task.slice_end > len(data):
                msg = "slice exceeds object length"
                raise AssemblyError(msg)
            return data[task.slice_start : task.slice_end]

    def _check_forwarded(self) -> None:
        # Declared sizes are trusted for offsets; a whole chunk that is not the
        # declared size shifts every later byte but cannot be detected earlier.
        task = self._current
        if task is not None and self._forwarded != task.slice_end:
            LOG.warning(
                "chunk %s forwarded %d bytes but declared %d",
                task.identifier,
                self._forwarded,
                task.slice_end,
            )

    async def _release(self) -> None:
        response, self._response, self._body = self._response, None, None
        if response is not None:
            await response.aclose()
