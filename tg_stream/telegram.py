from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import httpx
from pydantic import BaseModel, ValidationError

from .errors import FetchError

if TYPE_CHECKING:
    from .settings import StreamSettings

LOG = logging.getLogger("tg_stream.telegram")


@dataclass(frozen=True, slots=True)
class LocationResolved:
    file_path: str
    file_size: int | None = None


@dataclass(frozen=True, slots=True)
class LocationFailed:
    description: str
    error_code: int | None = None


ResolveResult = LocationResolved | LocationFailed


class FileStore(Protocol):
    """Remote blob storage the stream is assembled from."""

    async def resolve_location(self, identifier: str) -> ResolveResult: ...

    async def open_file(self, location: str) -> httpx.Response: ...


class _TelegramFile(BaseModel):
    file_id: str
    file_path: str | None = None
    file_size: int | None = None


class _GetFileEnvelope(BaseModel):
    ok: bool
    result: _TelegramFile | None = None
    description: str | None = None
    error_code: int | None = None


class TelegramFileStore:
    """Bot API client for ``getFile`` lookups and file downloads."""

    def __init__(self, settings: StreamSettings):
        self._settings = settings
        self._http_client: httpx.AsyncClient | None = None

    async def startup(self) -> None:
        if self._http_client is not None:
            return
        self._http_client = httpx.AsyncClient(
            base_url=self._settings.api_base_url,
            timeout=httpx.Timeout(
                self._settings.connect_timeout, read=self._settings.read_timeout
            ),
            trust_env=False,
        )
        if not self._settings.configured:
            LOG.warning("no bot token configured, every file lookup will fail")

    async def shutdown(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            message = "telegram client not initialised"
            raise RuntimeError(message)
        return self._http_client

    async def resolve_location(self, identifier: str) -> ResolveResult:
        url = f"/bot{self._settings.bot_token}/getFile"
        try:
            response = await self.client.get(url, params={"file_id": identifier})
        except httpx.HTTPError as error:
            LOG.warning("getFile request failed for %s: %s", identifier, error)
            return LocationFailed(description=str(error) or type(error).__name__)

        try:
            envelope = _GetFileEnvelope.model_validate_json(response.content)
        except ValidationError:
            LOG.warning(
                "unexpected getFile response for %s (status=%s)",
                identifier,
                response.status_code,
            )
            return LocationFailed(
                description=f"unexpected response ({response.status_code})",
                error_code=response.status_code,
            )

        if not envelope.ok or envelope.result is None:
            return LocationFailed(
                description=envelope.description or "unknown error",
                error_code=envelope.error_code,
            )
        if not envelope.result.file_path:
            return LocationFailed(description="file is not available for download")
        return LocationResolved(
            file_path=envelope.result.file_path,
            file_size=envelope.result.file_size,
        )

    async def open_file(self, location: str) -> httpx.Response:
        """Start downloading a file; the caller must close the response.

        Raises:
            FetchError: On transport errors or a non-success status.
        """
        request = self.client.build_request(
            "GET", f"/file/bot{self._settings.bot_token}/{location}"
        )
        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as error:
            msg = f"failed to download chunk: {error}"
            raise FetchError(msg) from error

        if not response.is_success:
            await response.aclose()
            msg = f"failed to download chunk: {response.reason_phrase}"
            raise FetchError(msg)
        return response
