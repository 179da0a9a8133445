"""Read API: service facade and aiohttp routes."""

from gripp_mirror.api.routes import MirrorRoutes, create_app
from gripp_mirror.api.service import ReadService, describe_error

__all__ = ["ReadService", "MirrorRoutes", "create_app", "describe_error"]
