"""URL Shortening Service - Core Business Logic

This module orchestrates short-code issuance, cache-aside resolution,
ownership-gated mutation and analytics. It holds no mutable shared state:
everything shared lives in the store and the cache, which are injected.

Request Flow Diagrams
=====================

URL Creation Flow
-----------------
::
    ┌─────────────┐
    │ Validate    │──invalid──▶ ValidationError
    │ long URL    │
    └──────┬──────┘
           ▼
    ┌─────────────┐◀──────────────────────────┐
    │ attempt <   │──no──▶ RetriesExhausted   │
    │ max_retries?│                           │
    └──────┬──────┘                           │
           ▼                                  │
    ┌─────────────┐                           │
    │ Generate    │                           │
    │ candidate   │                           │
    └──────┬──────┘                           │
           ▼                                  │
    ┌─────────────┐                           │
    │ Exists in   │──yes (collision)──────────┤
    │ store?      │                           │
    └──────┬──────┘                           │
           ▼ no                               │
    ┌─────────────┐                           │
    │ INSERT      │──UniquenessViolation──────┘
    └──────┬──────┘
           ▼ ok
    ┌─────────────┐
    │ Return      │
    │ record      │
    └─────────────┘

URL Resolution Flow (cache-aside)
---------------------------------
::
    ┌─────────────┐
    │ Cache GET   │
    └──────┬──────┘
    HIT?   │ (errors count as a miss)
    ┌──────┴──────┐
    │ NO          │ YES
    ▼             ▼
┌──────────┐  ┌──────────┐
│ Store    │  │ Return   │
│ lookup   │  │ cached   │
└────┬─────┘  └────┬─────┘
     │ found       │
     ▼             │
┌──────────┐       │
│ Cache SET│       │
│ (TTL)    │       │
└────┬─────┘       │
     ▼             ▼
    ┌─────────────┐
    │ Increment   │
    │ redirects   │
    │ best-effort │
    └─────────────┘

Key Behaviours
===============
- The existence pre-check only saves round-trips; the store's unique index
  decides. A uniqueness violation on insert consumes one attempt, exactly
  like a pre-check collision.
- ``MAX_COLLISION_RETRIES <= 0`` is treated as a single attempt.
- Cancellation propagates out of every await, including mid-retry.
- The cache never fails a request: cache errors are logged and treated as
  misses (reads) or skipped (writes and invalidations).
- Redirect-count increments are awaited but best-effort: a failure is logged
  at WARNING and the resolved URL is still returned.
- Updates and deletes check ownership before touching the cache or store,
  and invalidate the cache entry before returning success.
- Analytics always read the store.
"""

import logging
import time

from prometheus_client import Counter, Histogram

from shortlink.cache import URLCache
from shortlink.config import Settings
from shortlink.enums import CacheStatus, RequestStatus
from shortlink.errors import (
    CacheError,
    NotFoundError,
    RetriesExhaustedError,
    ShortLinkError,
    UnauthorizedError,
    UniquenessViolation,
    ValidationError,
)
from shortlink.generator import ShortCodeGenerator
from shortlink.models import ShortURL
from shortlink.store import URLStore
from shortlink.validators import validate_long_url, validate_short_code, validate_user_id

__all__ = ["URLShorteningService"]


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

URL_CREATION_REQUESTS_TOTAL = Counter(
    "shortlink_creation_requests_total",
    "Total short URL creation requests",
    ["status"],
)
SHORT_CODE_COLLISIONS_TOTAL = Counter(
    "shortlink_short_code_collisions_total",
    "Generated short codes that were already taken",
    ["stage"],
)
URL_LOOKUP_REQUESTS_TOTAL = Counter(
    "shortlink_lookup_requests_total",
    "Total short code resolutions",
    ["status", "cache"],
)
REDIRECT_INCREMENT_FAILURES_TOTAL = Counter(
    "shortlink_redirect_increment_failures_total",
    "Redirect counter increments that failed",
)
CACHE_ERRORS_TOTAL = Counter(
    "shortlink_cache_errors_total",
    "Cache operations that failed and were degraded",
    ["operation"],
)
URL_CREATION_DURATION = Histogram(
    "shortlink_creation_duration_seconds",
    "Time taken to create short URLs",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)
URL_LOOKUP_DURATION = Histogram(
    "shortlink_lookup_duration_seconds",
    "Time taken to resolve short codes",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)


# ============================================================================
# CORE SERVICE CLASS
# ============================================================================


class URLShorteningService:
    """Core service class for short URL issuance, resolution and management.

    All collaborators are passed in by the caller, so tests can swap the
    generator, store or cache without patching module globals.

    Example:
        >>> service = URLShorteningService(generator, store, cache, settings, logger)
        >>> record = await service.create_short_url("user-1", "https://example.com/a")
        >>> await service.get_original_url(record.short_code)
        'https://example.com/a'
    """

    def __init__(
        self,
        generator: ShortCodeGenerator,
        store: URLStore,
        cache: URLCache,
        settings: Settings,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self._generator = generator
        self._store = store
        self._cache = cache
        self._settings = settings
        self._logger = logger or logging.getLogger("shortlink")
        self._max_retries = max(1, settings.MAX_COLLISION_RETRIES)
        self._cache_ttl = settings.CACHE_TTL_SECONDS

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def with_logger(self, logger: logging.Logger | logging.LoggerAdapter) -> "URLShorteningService":
        """Return a service sharing every collaborator but logging through ``logger``."""
        return URLShorteningService(self._generator, self._store, self._cache, self._settings, logger)

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def create_short_url(self, owner_id: str, long_url: str) -> ShortURL:
        """Create a new short URL for ``owner_id``.

        Args:
            owner_id: Identifier of the creating user
            long_url: Absolute http/https URL to shorten

        Returns:
            ShortURL: The persisted record, with its id and short code

        Raises:
            ValidationError: If the owner id or long URL is invalid
            RetriesExhaustedError: If every attempt hit a taken code
            CodeGenerationError: If the random source failed
            StoreError: On any storage failure other than a collision
        """
        start_time = time.perf_counter()
        try:
            owner_id = validate_user_id(owner_id)
            long_url = validate_long_url(long_url, self._settings.MAX_URL_LENGTH)
            self._logger.info(f"Creating short URL for owner {owner_id}: {long_url}")

            record = await self._create_with_retries(owner_id, long_url)

            URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
            self._logger.info(
                f"Short URL created: {record.short_code}",
                extra={"short_code": record.short_code, "url_id": record.id},
            )
            return record

        except ValidationError as exc:
            URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.VALIDATION_ERROR).inc()
            self._logger.warning(f"Short URL creation rejected: {exc.message}")
            raise
        except RetriesExhaustedError as exc:
            URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.EXHAUSTED).inc()
            self._logger.error(f"Short URL creation failed: {exc.message}")
            raise
        except ShortLinkError as exc:
            URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            self._logger.error(f"Short URL creation error: {exc}", exc_info=exc.original_error)
            raise
        finally:
            URL_CREATION_DURATION.observe(time.perf_counter() - start_time)

    async def get_original_url(self, short_code: str) -> str:
        """Resolve ``short_code`` to its long URL and count the redirect.

        Raises:
            ValidationError: If the short code is malformed
            NotFoundError: If no record exists for the code
            StoreError: If the store lookup itself fails on a cache miss
        """
        start_time = time.perf_counter()
        try:
            short_code = validate_short_code(short_code)

            cached_url = await self._get_from_cache(short_code)
            if cached_url:
                URL_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache=CacheStatus.HIT).inc()
                self._logger.debug(f"Cache hit for {short_code}")
                await self._increment_redirects(short_code)
                return cached_url

            try:
                record = await self._store.find_by_code(short_code)
            except NotFoundError:
                URL_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND, cache=CacheStatus.MISS).inc()
                self._logger.warning(f"URL not found for short code: {short_code}")
                raise

            await self._set_in_cache(short_code, record.long_url)
            await self._increment_redirects(short_code)

            URL_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache=CacheStatus.MISS).inc()
            self._logger.info(f"URL resolved from store: {short_code}")
            return record.long_url
        finally:
            URL_LOOKUP_DURATION.observe(time.perf_counter() - start_time)

    async def get_analytics(self, short_code: str, requester_id: str) -> int:
        """Return the redirect count for ``short_code`` if ``requester_id`` owns it."""
        short_code = validate_short_code(short_code)
        requester_id = validate_user_id(requester_id)
        record = await self._store.find_by_code(short_code)
        if not record.is_owned_by(requester_id):
            self._logger.warning(f"Analytics denied for {short_code}: requester is not the owner")
            raise UnauthorizedError("not authorized to view analytics")
        return record.redirect_count

    async def get_paginated_urls(self, owner_id: str, limit: int | None = None, offset: int = 0) -> list[ShortURL]:
        """List the URLs created by ``owner_id``, newest first.

        ``limit`` is clamped to ``[1, MAX_PAGE_SIZE]``; a missing limit uses
        ``DEFAULT_PAGE_SIZE``. A negative offset is a validation error.
        """
        owner_id = validate_user_id(owner_id)
        if limit is None:
            limit = self._settings.DEFAULT_PAGE_SIZE
        if offset < 0:
            raise ValidationError("offset cannot be negative")
        limit = min(max(limit, 1), self._settings.MAX_PAGE_SIZE)
        return await self._store.find_by_owner(owner_id, limit, offset)

    async def update_url(self, url_id: str, owner_id: str, new_long_url: str) -> ShortURL:
        """Point an existing short code at a new long URL.

        The ownership check runs before validation, invalidation or persistence.

        Raises:
            NotFoundError: If no record has ``url_id``
            UnauthorizedError: If ``owner_id`` is not the record's owner
            ValidationError: If ``new_long_url`` is invalid
        """
        record = await self._load_owned(url_id, owner_id, "update")
        new_long_url = validate_long_url(new_long_url, self._settings.MAX_URL_LENGTH)

        record.long_url = new_long_url
        await self._invalidate(record.short_code)
        updated = await self._store.update(record)

        self._logger.info(f"URL updated: {record.short_code}", extra={"url_id": record.id})
        return updated

    async def delete_url(self, url_id: str, owner_id: str) -> None:
        record = await self._load_owned(url_id, owner_id, "delete")

        await self._invalidate(record.short_code)
        await self._store.delete(record.id, record.owner_id)

        self._logger.info(f"URL deleted: {record.short_code}", extra={"url_id": record.id})

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _create_with_retries(self, owner_id: str, long_url: str) -> ShortURL:
        for attempt in range(1, self._max_retries + 1):
            short_code = self._generator.generate()

            if await self._store.exists_by_code(short_code):
                SHORT_CODE_COLLISIONS_TOTAL.labels(stage="precheck").inc()
                self._logger.debug(f"Short code {short_code} taken (attempt {attempt}/{self._max_retries})")
                continue

            try:
                return await self._store.save(ShortURL.new(owner_id, short_code, long_url))
            except UniquenessViolation:
                SHORT_CODE_COLLISIONS_TOTAL.labels(stage="insert").inc()
                self._logger.debug(f"Short code {short_code} lost insert race (attempt {attempt}/{self._max_retries})")

        raise RetriesExhaustedError(self._max_retries)

    async def _load_owned(self, url_id: str, owner_id: str, operation: str) -> ShortURL:
        owner_id = validate_user_id(owner_id)
        record = await self._store.find_by_id(url_id)
        if not record.is_owned_by(owner_id):
            self._logger.warning(f"{operation} denied for URL {url_id}: requester is not the owner")
            raise UnauthorizedError(f"not authorized to {operation} this URL")
        return record

    async def _get_from_cache(self, short_code: str) -> str | None:
        try:
            return await self._cache.get(short_code)
        except CacheError as exc:
            CACHE_ERRORS_TOTAL.labels(operation="get").inc()
            self._logger.warning(f"Cache read failed for {short_code}, falling back to store: {exc}")
            return None

    async def _set_in_cache(self, short_code: str, long_url: str) -> None:
        try:
            await self._cache.set(short_code, long_url, self._cache_ttl)
        except CacheError as exc:
            CACHE_ERRORS_TOTAL.labels(operation="set").inc()
            self._logger.warning(f"Cache populate failed for {short_code}: {exc}")

    async def _invalidate(self, short_code: str) -> None:
        try:
            await self._cache.delete(short_code)
        except CacheError as exc:
            CACHE_ERRORS_TOTAL.labels(operation="delete").inc()
            self._logger.error(f"Cache invalidation failed for {short_code}; stale for up to {self._cache_ttl}s: {exc}")

    async def _increment_redirects(self, short_code: str) -> None:
        try:
            await self._store.increment_redirects(short_code)
        except ShortLinkError as exc:
            REDIRECT_INCREMENT_FAILURES_TOTAL.inc()
            self._logger.warning(f"Redirect count increment failed for {short_code}: {exc}")
