from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from litestar.background_tasks import BackgroundTask
from litestar.response import Response, Stream

from . import manifest as manifest_codec
from .assembler import StreamAssembler
from .errors import (
    FetchError,
    ManifestError,
    RangeNotSatisfiableError,
    ResolutionError,
)
from .planner import ChunkTask, RangeRequest, plan
from .resolver import PathCache, PathResolver
from .settings import StreamSettings, load_settings_from_env
from .telegram import TelegramFileStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

    from .telegram import FileStore

LOG = logging.getLogger("tg_stream.gateway")

RANGE_PATTERN = re.compile(r"bytes=(\d*)-(\d*)")

MISSING_CHUNKS_MESSAGE = "Missing chunks parameter"
INVALID_CHUNKS_MESSAGE = (
    "Invalid chunks format. "
    "Expected: file_id:size,file_id:size,... or compressed base64url"
)


def parse_range(
    range_header: str | None, total_size: int
) -> tuple[RangeRequest, bool]:
    """Turn a ``Range`` header into an absolute range.

    Returns the range and whether the response is partial. Only
    ``bytes=<start>-<end>`` with either bound optional is understood; a header
    of any other shape is ignored and the whole resource is served. The result
    is not bounds-checked against ``total_size`` beyond clamping the end.
    """
    full = RangeRequest.full(total_size)
    if not range_header:
        return full, False

    match = RANGE_PATTERN.search(range_header)
    if match is None:
        return full, False

    start_str, end_str = match.groups()
    start = int(start_str) if start_str else 0
    end = min(int(end_str), total_size - 1) if end_str else total_size - 1
    return RangeRequest(start, end), True


class VideoStreamGateway:
    def __init__(
        self,
        settings: StreamSettings,
        store: FileStore | None = None,
        cache: PathCache | None = None,
    ):
        self._settings = settings
        self._telegram = store if store is not None else TelegramFileStore(settings)
        self._cache = (
            cache
            if cache is not None
            else PathCache(
                maxsize=settings.path_cache_size, ttl=settings.path_cache_ttl
            )
        )
        self._resolver = PathResolver(self._telegram, self._cache)

    @property
    def settings(self) -> StreamSettings:
        return self._settings

    @property
    def cache(self) -> PathCache:
        return self._cache

    async def startup(self) -> None:
        startup = getattr(self._telegram, "startup", None)
        if startup is not None:
            await startup()
        LOG.info(
            "stream gateway ready (api=%s, path cache ttl=%ss, size=%d)",
            self._settings.api_base_url,
            self._settings.path_cache_ttl,
            self._settings.path_cache_size,
        )

    async def shutdown(self) -> None:
        shutdown = getattr(self._telegram, "shutdown", None)
        if shutdown is not None:
            await shutdown()

    def prepare(
        self, raw_manifest: str, range_header: str | None
    ) -> tuple[list[ChunkTask], RangeRequest, bool, int]:
        """Validate a stream request before any byte is fetched.

        Raises:
            ManifestError: If the manifest cannot be decoded.
            RangeNotSatisfiableError: If the range selects no bytes.
        """
        chunks = manifest_codec.decode(raw_manifest)
        total_size = chunks.total_size
        byte_range, partial = parse_range(range_header, total_size)
        if byte_range.start >= total_size or byte_range.start > byte_range.end:
            raise RangeNotSatisfiableError(total_size)

        tasks = plan(chunks, byte_range)
        if not tasks:
            raise RangeNotSatisfiableError(total_size)
        return tasks, byte_range, partial, total_size

    async def stream_video(
        self, raw_manifest: str | None, range_header: str | None
    ) -> Response[Any]:
        LOG.debug("stream_video range=%s", range_header)
        if not raw_manifest:
            return self._error(MISSING_CHUNKS_MESSAGE, 400)

        try:
            tasks, byte_range, partial, total_size = self.prepare(
                raw_manifest, range_header
            )
        except ManifestError as error:
            LOG.debug("rejecting manifest: %s", error)
            return self._error(INVALID_CHUNKS_MESSAGE, 400)
        except RangeNotSatisfiableError as error:
            LOG.debug(
                "unsatisfiable range %r for %d bytes", range_header, error.total_size
            )
            return Response(
                content=b"",
                status_code=416,
                headers={"Content-Range": f"bytes */{error.total_size}"},
                media_type="text/plain",
            )

        # The emitted length is what the plan yields, which is authoritative
        # over the nominal span of the range.
        content_length = sum(task.length for task in tasks)
        headers = {
            "Accept-Ranges": "bytes",
            "Content-Length": str(content_length),
            "Cache-Control": self._settings.video_cache_control,
        }
        status_code = 200
        if partial:
            status_code = 206
            headers["Content-Range"] = (
                f"bytes {byte_range.start}-{byte_range.end}/{total_size}"
            )

        LOG.debug(
            "streaming %d bytes from %d chunk(s) status=%s",
            content_length,
            len(tasks),
            status_code,
        )
        assembler = StreamAssembler(
            tasks,
            self._resolver,
            self._telegram,
            read_size=self._settings.read_chunk_size,
        )
        return Stream(
            content=assembler,
            status_code=status_code,
            headers=headers,
            media_type=self._settings.video_content_type,
        )

    async def download_file(self, file_id: str) -> Response[Any]:
        """Stream a single stored file unmodified."""
        try:
            location = await self._resolver.resolve(file_id)
            response = await self._telegram.open_file(location)
        except ResolutionError as error:
            LOG.info("download lookup failed for %s: %s", file_id, error.description)
            return self._error(error.description, 400)
        except FetchError as error:
            LOG.warning("download failed for %s: %s", file_id, error)
            return self._error(str(error), 502)

        headers: dict[str, str] = {}
        for header in ("Content-Length", "Content-Encoding"):
            value = response.headers.get(header)
            if value:
                headers[header] = value
        media_type = response.headers.get("content-type", "application/octet-stream")
        # released even if the body is never iterated
        return Stream(
            content=self._iterate_file(response),
            status_code=200,
            headers=headers,
            media_type=media_type,
            background=BackgroundTask(response.aclose),
        )

    async def _iterate_file(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_raw(self._settings.read_chunk_size):
                yield chunk
        finally:
            await response.aclose()

    @staticmethod
    def _error(message: str, status_code: int) -> Response[Any]:
        return Response(
            content={"success": False, "error": message}, status_code=status_code
        )

    @classmethod
    def from_env(cls) -> VideoStreamGateway:
        """Create a VideoStreamGateway instance from environment variables.

        Returns:
            VideoStreamGateway configured from environment variables.
        """
        return cls(settings=load_settings_from_env())
