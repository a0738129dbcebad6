"""Shared pytest fixtures for store, cache, service and API tests.

Every test gets its own SQLite database file under ``tmp_path``, so tests
never share rows. The cache is an in-memory ``URLCache`` that can be switched
into a failing mode to exercise degradation paths.
"""

from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine

from shortlink.cache import URLCache
from shortlink.config import Settings
from shortlink.database import create_engine, create_session_factory, init_db
from shortlink.dependencies import ServiceManager
from shortlink.errors import CacheError
from shortlink.generator import ShortCodeGenerator
from shortlink.main import create_app
from shortlink.service import URLShorteningService
from shortlink.store import SQLAlchemyURLStore, URLStore

# ============================================================================
# TEST DOUBLES
# ============================================================================


class InMemoryURLCache(URLCache):
    """Dict-backed cache. Set ``fail = True`` to make every call raise."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail = False

    def _check(self, operation: str) -> None:
        if self.fail:
            raise CacheError(f"cache {operation} failed")

    async def set(self, short_code: str, long_url: str, ttl: int) -> None:
        self._check("set")
        self.data[short_code] = long_url
        self.ttls[short_code] = ttl

    async def get(self, short_code: str) -> str | None:
        self._check("get")
        return self.data.get(short_code)

    async def delete(self, short_code: str) -> None:
        self._check("delete")
        self.data.pop(short_code, None)
        self.ttls.pop(short_code, None)

    async def ping(self) -> bool:
        self._check("ping")
        return True


class SequenceGenerator(ShortCodeGenerator):
    """Emits the given codes in order, then repeats the last one."""

    def __init__(self, codes: list[str]):
        super().__init__(len(codes[0]))
        self._codes = list(codes)
        self.calls = 0

    def generate(self) -> str:
        index = min(self.calls, len(self._codes) - 1)
        self.calls += 1
        return self._codes[index]


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def make_settings(tmp_path) -> Callable[..., Settings]:
    def _make(**overrides) -> Settings:
        values = {
            "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'shortlink.db'}",
            "BASE_URL": "http://sho.rt",
            "CACHE_ENABLED": True,
            "SHORT_CODE_LENGTH": 7,
            "MAX_COLLISION_RETRIES": 5,
            "LOG_LEVEL": "DEBUG",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine: AsyncEngine) -> SQLAlchemyURLStore:
    return SQLAlchemyURLStore(create_session_factory(engine))


@pytest.fixture
def cache() -> InMemoryURLCache:
    return InMemoryURLCache()


@pytest.fixture
def make_service(make_settings, store, cache) -> Callable[..., URLShorteningService]:
    def _make(
        generator: ShortCodeGenerator | None = None,
        store_override: URLStore | None = None,
        cache_override: URLCache | None = None,
        **overrides,
    ) -> URLShorteningService:
        service_settings = make_settings(**overrides)
        return URLShorteningService(
            generator or ShortCodeGenerator(service_settings.SHORT_CODE_LENGTH),
            store_override or store,
            cache_override or cache,
            service_settings,
        )

    return _make


@pytest.fixture
def service(make_service) -> URLShorteningService:
    return make_service()


@pytest_asyncio.fixture
async def client(settings, store, cache) -> AsyncGenerator[AsyncClient, None]:
    manager = ServiceManager(settings, store=store, cache=cache)
    app = create_app(settings, manager)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await manager.cleanup()
