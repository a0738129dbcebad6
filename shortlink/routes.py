"""FastAPI route definitions for the shortlink REST API.

API Endpoint Overview
=====================
::
    GET    /health
        └─ HealthResponse (200)

    POST   /api/urls                         (user)
        ├─ URLCreate (request body)
        └─ URLCreated (201) or 400/422/500

    GET    /api/urls?limit=&offset=          (user)
        └─ list[URLResponse] (200)

    PATCH  /api/urls/{url_id}                (owner)
        ├─ URLUpdate (request body)
        └─ URLResponse (200) or 400/403/404

    DELETE /api/urls/{url_id}                (owner)
        └─ MessageResponse (200) or 403/404

    GET    /api/urls/{short_code}/analytics  (owner)
        └─ AnalyticsResponse (200) or 403/404

    GET    /api/resolve/{short_code}
        └─ ResolveResponse (200) or 404

    GET    /{short_code}
        └─ 302 Redirect or 404

Key Behaviours
===============
- Routes are thin: they read the caller's identity, call the service and
  serialize. Domain errors are mapped to HTTP by the app's exception handler.
- Routes marked (user)/(owner) require the user id header set by the
  upstream authentication layer; without it they return 401.
- The catch-all redirect route is registered last so it never shadows
  ``/health`` or ``/api/...``.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from shortlink.dependencies import RequestContext, get_current_user_id, get_request_context, get_url_service
from shortlink.enums import HealthStatus
from shortlink.errors import ShortLinkError
from shortlink.schemas import (
    AnalyticsResponse,
    HealthResponse,
    MessageResponse,
    ResolveResponse,
    URLCreate,
    URLCreated,
    URLResponse,
    URLUpdate,
)
from shortlink.service import URLShorteningService

__all__ = ["router"]

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    manager = ctx.service_manager
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.HEALTHY if ctx.settings.CACHE_ENABLED else HealthStatus.DISABLED

    try:
        await manager.store.ping()
    except ShortLinkError as exc:
        ctx.logger.error(f"Database health check failed: {exc}")
        db_status = HealthStatus.UNHEALTHY

    if cache_status is HealthStatus.HEALTHY:
        try:
            await manager.cache.ping()
        except ShortLinkError as exc:
            ctx.logger.error(f"Cache health check failed: {exc}")
            cache_status = HealthStatus.UNHEALTHY

    overall = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is not HealthStatus.UNHEALTHY
        else HealthStatus.UNHEALTHY
    )
    return HealthResponse(status=overall, database=db_status, cache=cache_status)


@router.post("/api/urls", response_model=URLCreated, status_code=status.HTTP_201_CREATED, tags=["urls"])
async def create_short_url(
    payload: URLCreate,
    user_id: str = Depends(get_current_user_id),
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> URLCreated:
    ctx.add_tag("url_creation")
    record = await service.create_short_url(user_id, payload.long_url)
    ctx.logger.info(
        f"Short URL creation request completed: {record.short_code}",
        extra={"url_id": record.id, "duration_ms": ctx.get_duration()},
    )
    return URLCreated(
        id=record.id,
        short_code=record.short_code,
        short_url=f"{ctx.settings.BASE_URL}/{record.short_code}",
    )


@router.get("/api/urls", response_model=list[URLResponse], tags=["urls"])
async def list_urls(
    limit: int | None = Query(None, description="Page size, clamped to the configured maximum"),
    offset: int = Query(0, description="Number of records to skip"),
    user_id: str = Depends(get_current_user_id),
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> list[URLResponse]:
    records = await service.get_paginated_urls(user_id, limit, offset)
    return [URLResponse.from_model(record, ctx.settings.BASE_URL) for record in records]


@router.patch("/api/urls/{url_id}", response_model=URLResponse, tags=["urls"])
async def update_url(
    url_id: str,
    payload: URLUpdate,
    user_id: str = Depends(get_current_user_id),
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> URLResponse:
    record = await service.update_url(url_id, user_id, payload.long_url)
    return URLResponse.from_model(record, ctx.settings.BASE_URL)


@router.delete("/api/urls/{url_id}", response_model=MessageResponse, tags=["urls"])
async def delete_url(
    url_id: str,
    user_id: str = Depends(get_current_user_id),
    service: URLShorteningService = Depends(get_url_service),
) -> MessageResponse:
    await service.delete_url(url_id, user_id)
    return MessageResponse(message="URL deleted")


@router.get("/api/urls/{short_code}/analytics", response_model=AnalyticsResponse, tags=["urls"])
async def get_analytics(
    short_code: str,
    user_id: str = Depends(get_current_user_id),
    service: URLShorteningService = Depends(get_url_service),
) -> AnalyticsResponse:
    count = await service.get_analytics(short_code, user_id)
    return AnalyticsResponse(short_code=short_code, redirect_count=count)


@router.get("/api/resolve/{short_code}", response_model=ResolveResponse, tags=["redirect"])
async def resolve_url(
    short_code: str,
    service: URLShorteningService = Depends(get_url_service),
) -> ResolveResponse:
    long_url = await service.get_original_url(short_code)
    return ResolveResponse(short_code=short_code, long_url=long_url)


@router.get("/{short_code}", tags=["redirect"])
async def redirect_to_url(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> RedirectResponse:
    if short_code == "favicon.ico":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    ctx.add_tag("redirect")
    long_url = await service.get_original_url(short_code)
    ctx.logger.info(
        f"Redirect successful: {short_code} -> {long_url}",
        extra={"short_code": short_code, "duration_ms": ctx.get_duration()},
    )
    return RedirectResponse(url=long_url, status_code=status.HTTP_302_FOUND)
