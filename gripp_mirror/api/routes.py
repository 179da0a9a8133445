"""
aiohttp routes.

Thin handlers: parse the request, call the ReadService, wrap the result in
``{"success", "data", "meta"}``. Entity lists and hours overviews go through
the response cache; ``?refresh=true`` bypasses it.
"""

import logging
from datetime import date
from typing import Any, Optional

from aiohttp import web
from aiohttp.web import Request, Response

from gripp_mirror import __version__
from gripp_mirror.api.service import ReadService, describe_error
from gripp_mirror.cache import TieredCache, keys
from gripp_mirror.errors import (
    MirrorError,
    SyncInProgressError,
    ValidationError,
)
from gripp_mirror.hours import MonthPeriod, WeekPeriod
from gripp_mirror.store import DateWindow, EntityType

logger = logging.getLogger(__name__)


def _flag(request: Request, name: str) -> bool:
    return request.query.get(name, "").lower() in ("1", "true", "yes")


def _int_param(request: Request, name: str) -> int:
    value = request.query.get(name)
    if value is None:
        raise ValueError(f"Missing query parameter: {name}")
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Query parameter {name} must be an integer") from None


def _window_param(request: Request) -> Optional[DateWindow]:
    start = request.query.get("start")
    end = request.query.get("end")
    if not start and not end:
        return None
    if not start or not end:
        raise ValueError("Both start and end are required for a windowed sync")
    return DateWindow(date.fromisoformat(start), date.fromisoformat(end))


def _status_for(error: Exception) -> int:
    if isinstance(error, (ValidationError, ValueError)):
        return 400
    if isinstance(error, SyncInProgressError):
        return 409
    if isinstance(error, MirrorError):
        return 502
    return 500


def ok(data: Any, **meta: Any) -> Response:
    return web.json_response({"success": True, "data": data, "meta": meta})


@web.middleware
async def error_middleware(request: Request, handler) -> Response:
    """Turn domain errors into JSON error responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except (MirrorError, ValueError) as e:
        status = _status_for(e)
        logger.warning(f"{request.method} {request.path} failed ({status}): {e}")
        return web.json_response(
            {"success": False, "error": describe_error(e)}, status=status
        )


class MirrorRoutes:
    """HTTP handlers bound to one ReadService."""

    def __init__(self, service: ReadService, response_cache: Optional[TieredCache] = None):
        self.service = service
        self.response_cache = response_cache

    async def _cached(self, key: str, refresh: bool, produce) -> tuple[Any, dict[str, Any]]:
        if self.response_cache is not None and not refresh:
            hit = self.response_cache.get(key)
            if hit is not None and not hit.stale:
                return hit.value, {"response_cached": True}
        data, meta = await produce()
        if self.response_cache is not None and not meta.get("stale"):
            self.response_cache.set(key, data)
        return data, {"response_cached": False, **meta}

    async def health_handler(self, request: Request) -> Response:
        """Health check endpoint."""
        return web.json_response(
            {"status": "healthy", "service": "gripp-mirror", "version": __version__}
        )

    async def list_handler(self, request: Request) -> Response:
        entity = EntityType.parse(request.match_info["entity"])
        refresh = _flag(request, "refresh")

        async def produce():
            rows = await self.service.list_entities(entity, bypass_cache=refresh)
            return rows, {}

        rows, meta = await self._cached(keys.entity_list(entity), refresh, produce)
        return ok(rows, count=len(rows), **meta)

    async def item_handler(self, request: Request) -> Response:
        entity = EntityType.parse(request.match_info["entity"])
        row = await self.service.get_entity(entity, request.match_info["id"])
        if row is None:
            return web.json_response(
                {"success": False, "error": {"message": f"{entity.value} not found", "type": "NotFound"}},
                status=404,
            )
        return ok(row)

    async def _hours(self, request: Request, period) -> Response:
        refresh = _flag(request, "refresh")

        async def produce():
            result = await self.service.employee_hours(period, bypass_cache=refresh)
            return result["data"], result["meta"]

        data, meta = await self._cached(period.cache_key, refresh, produce)
        return ok(data, **meta)

    async def week_handler(self, request: Request) -> Response:
        period = WeekPeriod(_int_param(request, "year"), _int_param(request, "week"))
        return await self._hours(request, period)

    async def month_handler(self, request: Request) -> Response:
        period = MonthPeriod(_int_param(request, "year"), _int_param(request, "month"))
        return await self._hours(request, period)

    async def sync_all_handler(self, request: Request) -> Response:
        entities = [e for e in request.query.get("entities", "").split(",") if e]
        results = await self.service.sync_all(
            incremental=_flag(request, "incremental"),
            force=_flag(request, "force"),
            entities=entities or None,
        )
        failed = [name for name, outcome in results.items() if not outcome["success"]]
        return web.json_response(
            {"success": not failed, "data": results, "meta": {"failed": failed}},
            status=200 if not failed else 207,
        )

    async def sync_handler(self, request: Request) -> Response:
        entity = EntityType.parse(request.match_info["entity"])
        result = await self.service.sync(
            entity,
            incremental=_flag(request, "incremental"),
            force=_flag(request, "force"),
            window=_window_param(request),
        )
        return ok(result.as_dict())

    async def sync_status_handler(self, request: Request) -> Response:
        return ok(await self.service.sync_status())

    async def cache_status_handler(self, request: Request) -> Response:
        return ok(self.service.cache_status())

    async def cache_clear_handler(self, request: Request) -> Response:
        return ok({"cleared": self.service.clear_cache()})

    async def cache_clear_entity_handler(self, request: Request) -> Response:
        entity = EntityType.parse(request.match_info["entity"])
        return ok({"entity": entity.value, "cleared": self.service.clear_cache_for(entity)})

    def register(self, app: web.Application) -> None:
        """Add routes; fixed paths first so they win over /api/{entity}."""
        app.router.add_get("/health", self.health_handler)
        app.router.add_get("/", self.health_handler)
        app.router.add_get("/api/hours/week", self.week_handler)
        app.router.add_get("/api/hours/month", self.month_handler)
        app.router.add_get("/api/sync/status", self.sync_status_handler)
        app.router.add_post("/api/sync", self.sync_all_handler)
        app.router.add_post("/api/sync/{entity}", self.sync_handler)
        app.router.add_get("/api/cache/status", self.cache_status_handler)
        app.router.add_post("/api/cache/clear", self.cache_clear_handler)
        app.router.add_post("/api/cache/clear/{entity}", self.cache_clear_entity_handler)
        app.router.add_get("/api/{entity}", self.list_handler)
        app.router.add_get("/api/{entity}/{id}", self.item_handler)


def create_app(service: ReadService, response_cache: Optional[TieredCache] = None) -> web.Application:
    """Create the aiohttp web application."""
    app = web.Application(middlewares=[error_middleware])
    MirrorRoutes(service, response_cache).register(app)
    return app
