"""Exception types raised while serving chunked video streams."""

from __future__ import annotations


class StreamError(Exception):
    """Base class for all tg_stream errors."""


class ManifestError(StreamError):
    """The chunk manifest could not be decoded."""


class RangeNotSatisfiableError(StreamError):
    """The requested byte range does not intersect the resource."""

    def __init__(self, total_size: int):
        super().__init__(f"range not satisfiable for {total_size} bytes")
        self.total_size = total_size


class ResolutionError(StreamError):
    """The storage backend could not resolve a file identifier."""

    def __init__(self, identifier: str, description: str):
        super().__init__(f"failed to get file info for {identifier}: {description}")
        self.identifier = identifier
        self.description = description


class FetchError(StreamError):
    """Downloading a resolved file failed."""


class AssemblyError(StreamError):
    """A fetched chunk could not be sliced as planned."""
