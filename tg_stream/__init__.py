"""Seekable video streams assembled from chunks stored via the Telegram Bot API."""

from .app import create_app
from .gateway import VideoStreamGateway
from .settings import StreamSettings

__all__ = ["StreamSettings", "VideoStreamGateway", "create_app"]
