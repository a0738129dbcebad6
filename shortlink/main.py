"""FastAPI application entry point for the shortlink service.

Application Lifecycle Diagram
=============================
::
    ┌──────────────┐
    │  uvicorn     │
    │  startup     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ create_app() │
    │ settings →   │
    │ ServiceMgr   │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Middleware,  │
    │ handlers,    │
    │ routes       │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ startup:     │
    │ initialize() │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Serve HTTP   │
    │ requests     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ shutdown:    │
    │ cleanup()    │
    └──────────────┘

How to Use
===========
**Step 1: Run with uvicorn**::
    uvicorn shortlink.main:app --host 0.0.0.0 --port 8080

**Step 2: Make API calls**::
    curl -X POST http://localhost:8080/api/urls \
         -H "Content-Type: application/json" -H "X-User-ID: user-1" \
         -d '{"long_url": "https://example.com"}'

Key Behaviours
===============
- Settings are read once here and passed down; nothing below reads them
  globally.
- Tables are created on startup.
- Domain errors map to status codes in one handler; internal errors are
  logged with full context and answered with a generic message.
- Prometheus metrics are exposed at /metrics.
"""

__all__ = ["app", "create_app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from shortlink import __version__
from shortlink.config import Settings, get_settings
from shortlink.dependencies import ServiceManager
from shortlink.enums import ErrorKind
from shortlink.errors import ShortLinkError
from shortlink.middleware import add_middleware
from shortlink.routes import router

ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


async def shortlink_error_handler(request: Request, exc: ShortLinkError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(exc.kind, 500)
    manager: ServiceManager = request.app.state.service_manager
    if status_code >= 500:
        manager.logger.error(
            f"Internal error on {request.method} {request.url.path}: {exc}",
            exc_info=exc,
            extra={"request_id": getattr(request.state, "request_id", None)},
        )
    return JSONResponse(status_code=status_code, content={"detail": exc.public_message, "kind": exc.kind.value})


def create_app(settings: Settings | None = None, manager: ServiceManager | None = None) -> FastAPI:
    settings = settings or get_settings()
    manager = manager or ServiceManager(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        await manager.initialize()
        yield
        # Shutdown
        await manager.cleanup()

    app = FastAPI(
        title=settings.APP_NAME,
        version=__version__,
        description="URL shortener with owner-gated links and redirect analytics",
        lifespan=lifespan,
    )
    app.state.service_manager = manager

    app.add_exception_handler(ShortLinkError, shortlink_error_handler)
    add_middleware(app, settings.REQUEST_TIMEOUT_SECONDS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=False,
        should_respect_env_var=False,
    ).instrument(app).expose(app)

    app.include_router(router)
    return app


app = create_app()
