"""Dependency injection with an explicitly constructed service manager.

The service manager owns every long-lived resource (engine, session factory,
Redis client, store, cache, generator, service). It is built once by the
application factory from a ``Settings`` instance and stored on
``app.state``; request dependencies read it from there instead of from a
module-level global.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncEngine

from shortlink.cache import URLCache, build_cache
from shortlink.config import Settings
from shortlink.database import create_engine, create_session_factory, init_db
from shortlink.generator import ShortCodeGenerator
from shortlink.service import URLShorteningService
from shortlink.store import SQLAlchemyURLStore, URLStore

__all__ = [
    "RequestContext",
    "ServiceManager",
    "get_current_user_id",
    "get_request_context",
    "get_service_manager",
    "get_url_service",
]


# ============================================================================
# SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Owner of the shared resources, built once per process.

    ``store`` and ``cache`` may be passed in to replace the defaults, which is
    how tests run the app against a scratch database and an in-memory cache.
    """

    def __init__(self, settings: Settings, store: URLStore | None = None, cache: URLCache | None = None):
        self.settings = settings
        self.logger = self._setup_logger()
        self.engine: AsyncEngine | None = None
        self.redis_client: redis.Redis | None = None
        self.store = store
        self.cache = cache
        self.generator = ShortCodeGenerator(settings.SHORT_CODE_LENGTH)
        self.service: URLShorteningService | None = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self, create_tables: bool = True) -> None:
        """Initialize shared resources once at startup."""
        if self._initialized:
            return

        if self.store is None:
            self.engine = create_engine(self.settings)
            if create_tables:
                await init_db(self.engine)
            self.store = SQLAlchemyURLStore(create_session_factory(self.engine), self.logger)

        if self.cache is None:
            if self.settings.CACHE_ENABLED:
                self.redis_client = redis.from_url(self.settings.REDIS_URL, encoding="utf-8", decode_responses=True)
            self.cache = build_cache(self.settings, self.redis_client)

        self.service = URLShorteningService(self.generator, self.store, self.cache, self.settings, self.logger)
        self._initialized = True
        self.logger.info(
            f"Service manager initialized (cache={type(self.cache).__name__}, "
            f"code_length={self.generator.length}, max_retries={self.service.max_retries})"
        )

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("shortlink")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL.upper())
        return logger

    async def cleanup(self) -> None:
        """Cleanup shared resources at shutdown."""
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
        self._initialized = False


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking information plus access to shared resources.

    Attributes:
        service_manager: Service manager with shared resources
        request_id: Unique identifier for this request
        user_agent: Client user agent string
        client_ip: Client IP address
        user_id: Authenticated user id, when the route requires one
        start_time: Request start timestamp
        tags: Request tags for categorization
    """

    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    user_id: Optional[str] = None
    start_time: float = field(default_factory=lambda: time.time())
    tags: list[str] = field(default_factory=list)

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Get shared logger with request context."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
                "user_id": self.user_id,
                "tags": ",".join(self.tags),
            },
        )

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager(request: Request) -> ServiceManager:
    manager: ServiceManager = request.app.state.service_manager
    if not manager.initialized:
        await manager.initialize()
    return manager


async def get_request_context(
    request: Request,
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    client_ip = request.client.host if request.client else None
    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())

    return RequestContext(
        service_manager=manager,
        request_id=request_id,
        user_agent=request.headers.get("user-agent"),
        client_ip=client_ip,
    )


async def get_current_user_id(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
) -> str:
    """Return the user id set by the upstream authentication layer.

    Raises:
        HTTPException 401: If the header is missing or blank
    """
    user_id = (request.headers.get(ctx.settings.USER_ID_HEADER) or "").strip()
    if not user_id:
        ctx.logger.warning(f"Missing {ctx.settings.USER_ID_HEADER} header on {request.url.path}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    ctx.user_id = user_id
    return user_id


def get_url_service(ctx: RequestContext = Depends(get_request_context)) -> URLShorteningService:
    """Service bound to the request's logger; collaborators are shared."""
    return ctx.service_manager.service.with_logger(ctx.logger)
