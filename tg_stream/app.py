from __future__ import annotations

from typing import Annotated, Any

from litestar import Litestar, Request, Response, get
from litestar.config.cors import CORSConfig
from litestar.logging.config import LoggingConfig
from litestar.params import Parameter
from litestar.plugins.prometheus import PrometheusConfig, PrometheusController

from .gateway import VideoStreamGateway

prometheus_config = PrometheusConfig(app_name="tg_stream", prefix="tg_stream")


def create_app(gateway: VideoStreamGateway | None = None) -> Litestar:
    """Create the stream gateway ASGI application."""
    if gateway is None:
        gateway = VideoStreamGateway.from_env()
    settings = gateway.settings

    @get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @get("/stream/video")
    async def stream_video(
        request: Request,
        chunks: Annotated[str | None, Parameter(query="chunks")] = None,
    ) -> Response[Any]:
        return await gateway.stream_video(chunks, request.headers.get("range"))

    @get("/file/{file_id:str}")
    async def download_file(file_id: str) -> Response[Any]:
        return await gateway.download_file(file_id)

    async def startup(app: Litestar) -> None:
        await gateway.startup()

    async def shutdown(app: Litestar) -> None:
        await gateway.shutdown()

    cors_config = CORSConfig(
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Accept-Ranges", "Content-Range", "Content-Length"],
    )

    logging_config = LoggingConfig(
        root={"level": settings.log_level, "handlers": ["queue_listener"]},
        log_exceptions="always",
    )

    return Litestar(
        route_handlers=[health, stream_video, download_file, PrometheusController],
        on_startup=[startup],
        on_shutdown=[shutdown],
        cors_config=cors_config,
        logging_config=logging_config,
        middleware=[prometheus_config.middleware],
    )


app = create_app()
