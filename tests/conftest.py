from __future__ import annotations

import os
from typing import TYPE_CHECKING

import httpx
import pytest
import respx
from tg_stream.settings import StreamSettings
from tg_stream.telegram import LocationFailed, LocationResolved

if TYPE_CHECKING:
    from collections.abc import Generator

API_BASE_URL = "https://api.telegram.org"
BOT_TOKEN = "123456-test-token"


class FakeFileStore:
    """In-memory stand-in for the Bot API keyed by file identifier."""

    def __init__(self, blobs: dict[str, bytes]):
        self.blobs = blobs
        self.resolve_calls: list[str] = []
        self.opened: list[str] = []

    async def resolve_location(self, identifier: str):
        self.resolve_calls.append(identifier)
        if identifier not in self.blobs:
            return LocationFailed("Bad Request: invalid file_id", error_code=400)
        return LocationResolved(
            file_path=f"videos/{identifier}.mp4",
            file_size=len(self.blobs[identifier]),
        )

    async def open_file(self, location: str) -> httpx.Response:
        identifier = location.removeprefix("videos/").removesuffix(".mp4")
        self.opened.append(identifier)
        return httpx.Response(200, content=self.blobs[identifier])


@pytest.fixture
def blobs() -> dict[str, bytes]:
    """Three chunks of distinct bytes so misordering shows up in comparisons."""
    return {
        "a": bytes(range(10)),
        "b": bytes(range(100, 120)),
        "c": bytes(range(200, 235)),
    }


@pytest.fixture
def full_content(blobs: dict[str, bytes]) -> bytes:
    return blobs["a"] + blobs["b"] + blobs["c"]


@pytest.fixture
def fake_store(blobs: dict[str, bytes]) -> FakeFileStore:
    return FakeFileStore(blobs)


@pytest.fixture
def settings() -> StreamSettings:
    return StreamSettings(
        bot_token=BOT_TOKEN,
        api_base_url=API_BASE_URL,
        read_chunk_size=4,
    )


@pytest.fixture
def stream_env_vars() -> Generator[dict[str, str]]:
    """Set up environment variables for the gateway."""
    env_vars = {
        "TG_STREAM_BOT_TOKEN": BOT_TOKEN,
        "TG_STREAM_API_BASE_URL": "https://bot-api.internal/",
        "TG_STREAM_PATH_CACHE_TTL": "600",
        "TG_STREAM_READ_CHUNK_SIZE": "8192",
        "TG_STREAM_LOG_LEVEL": "debug",
    }

    original_values = {}
    for key, value in env_vars.items():
        original_values[key] = os.environ.get(key)
        os.environ[key] = value

    yield env_vars

    for key, original_value in original_values.items():
        if original_value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original_value


@pytest.fixture
def telegram_api(blobs: dict[str, bytes]) -> Generator[respx.MockRouter]:
    """Mock the Bot API ``getFile`` and file download endpoints."""

    def get_file(request: httpx.Request) -> httpx.Response:
        file_id = request.url.params["file_id"]
        if file_id not in blobs:
            return httpx.Response(
                400,
                json={
                    "ok": False,
                    "error_code": 400,
                    "description": "Bad Request: invalid file_id",
                },
            )
        return httpx.Response(
            200,
            json={
                "ok": True,
                "result": {
                    "file_id": file_id,
                    "file_unique_id": f"u-{file_id}",
                    "file_size": len(blobs[file_id]),
                    "file_path": f"documents/{file_id}.mp4",
                },
            },
        )

    def download(request: httpx.Request, file_id: str) -> httpx.Response:
        if file_id not in blobs:
            return httpx.Response(404, text="Not Found")
        return httpx.Response(
            200,
            content=blobs[file_id],
            headers={"Content-Type": "video/mp4"},
        )

    with respx.mock(base_url=API_BASE_URL, assert_all_called=False) as router:
        router.get(path=f"/bot{BOT_TOKEN}/getFile", name="get_file").mock(
            side_effect=get_file
        )
        router.get(
            path__regex=rf"^/file/bot{BOT_TOKEN}/documents/(?P<file_id>[^/]+)\.mp4$",
            name="download",
        ).mock(side_effect=download)
        yield router
