"""Persistent, authoritative storage for short URLs.

The store is the system of record. It enforces short-code uniqueness with a
unique index and classifies its own failures, so the service can retry on a
uniqueness violation without ever looking at driver exceptions.

Flow Diagram: save()
=====================
::
    ┌─────────────┐
    │ INSERT row  │
    └──────┬──────┘
    OK?    │
    ┌──────┴──────┐
    │ YES         │ NO (IntegrityError)
    ▼             ▼
┌─────────┐  ┌──────────────┐
│ Return  │  │ Code exists  │
│ record  │  │ now?         │
└─────────┘  └──────┬───────┘
             ┌──────┴──────┐
             │ YES         │ NO
             ▼             ▼
      ┌─────────────┐ ┌───────────┐
      │ Uniqueness- │ │ StoreError│
      │ Violation   │ │           │
      └─────────────┘ └───────────┘

Key Behaviours
===============
- Every operation opens its own session from the shared factory, so one
  store instance is safe to share across concurrent requests.
- ``find_*`` raise ``NotFoundError``; they never return None.
- ``increment_redirects`` is a single relative UPDATE
  (``redirect_count = redirect_count + 1``), never read-modify-write.
- Any other SQLAlchemy failure becomes ``StoreError``.

Classes:
    URLStore:  Abstract store contract.
    SQLAlchemyURLStore:  Async SQLAlchemy implementation.
"""

import logging
from abc import ABC, abstractmethod

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlink.errors import NotFoundError, StoreError, UniquenessViolation
from shortlink.models import ShortURL, utcnow

__all__ = ["SQLAlchemyURLStore", "URLStore"]


class URLStore(ABC):
    """
    Contract every store backend must follow.

    To add a new backend:
    1. Create a class inheriting from URLStore
    2. Implement all abstract methods
    3. Raise UniquenessViolation (not a driver error) on duplicate short codes
    """

    @abstractmethod
    async def save(self, record: ShortURL) -> ShortURL:
        """
        Persist a new record.

        Raises:
            UniquenessViolation: If the short code is already taken
            StoreError: On any other storage failure
        """

    @abstractmethod
    async def exists_by_code(self, short_code: str) -> bool:
        pass

    @abstractmethod
    async def find_by_code(self, short_code: str) -> ShortURL:
        pass

    @abstractmethod
    async def find_by_id(self, url_id: str) -> ShortURL:
        pass

    @abstractmethod
    async def find_by_owner(self, owner_id: str, limit: int, offset: int) -> list[ShortURL]:
        pass

    @abstractmethod
    async def update(self, record: ShortURL) -> ShortURL:
        """Persist a changed long URL. Raises NotFoundError if the row is gone."""

    @abstractmethod
    async def delete(self, url_id: str, owner_id: str) -> None:
        pass

    @abstractmethod
    async def increment_redirects(self, short_code: str) -> None:
        pass

    @abstractmethod
    async def ping(self) -> None:
        pass


class SQLAlchemyURLStore(URLStore):
    """Store backed by an async SQLAlchemy engine (PostgreSQL or SQLite)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], logger: logging.Logger | None = None):
        self._session_factory = session_factory
        self._logger = logger or logging.getLogger("shortlink")

    async def save(self, record: ShortURL) -> ShortURL:
        assert record.short_code, "record.short_code must be set before save"
        async with self._session_factory() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                try:
                    taken = await self._code_taken(record.short_code)
                except SQLAlchemyError as check_exc:
                    self._logger.error(f"Error re-checking short code {record.short_code} after integrity error: {check_exc}")
                    raise StoreError("database operation failed", original_error=check_exc) from check_exc
                if taken:
                    self._logger.info(f"Short code collision on insert: {record.short_code}")
                    raise UniquenessViolation(record.short_code, original_error=exc) from exc
                self._logger.error(f"Integrity error saving URL {record.id}: {exc}")
                raise StoreError("database operation failed", original_error=exc) from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                self._logger.error(f"Error saving URL {record.id}: {exc}")
                raise StoreError("database operation failed", original_error=exc) from exc

        self._logger.debug(f"URL saved: id={record.id} short_code={record.short_code}")
        return record

    async def exists_by_code(self, short_code: str) -> bool:
        try:
            return await self._code_taken(short_code)
        except SQLAlchemyError as exc:
            self._logger.error(f"Error checking short code {short_code}: {exc}")
            raise StoreError("database operation failed", original_error=exc) from exc

    async def find_by_code(self, short_code: str) -> ShortURL:
        record = await self._fetch_one(select(ShortURL).where(ShortURL.short_code == short_code), short_code)
        if record is None:
            self._logger.debug(f"URL not found for short code: {short_code}")
            raise NotFoundError("URL not found")
        return record

    async def find_by_id(self, url_id: str) -> ShortURL:
        record = await self._fetch_one(select(ShortURL).where(ShortURL.id == url_id), url_id)
        if record is None:
            self._logger.debug(f"URL not found for id: {url_id}")
            raise NotFoundError("URL not found")
        return record

    async def find_by_owner(self, owner_id: str, limit: int, offset: int) -> list[ShortURL]:
        statement = (
            select(ShortURL)
            .where(ShortURL.owner_id == owner_id)
            .order_by(ShortURL.created_at.desc(), ShortURL.id)
            .limit(limit)
            .offset(offset)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                records = list(result.scalars().all())
        except SQLAlchemyError as exc:
            self._logger.error(f"Error listing URLs for owner {owner_id}: {exc}")
            raise StoreError("database operation failed", original_error=exc) from exc

        self._logger.debug(f"Found {len(records)} URLs for owner {owner_id}")
        return records

    async def update(self, record: ShortURL) -> ShortURL:
        now = utcnow()
        statement = update(ShortURL).where(ShortURL.id == record.id).values(long_url=record.long_url, updated_at=now)
        await self._execute_write(statement, record.id, "update")
        record.updated_at = now
        self._logger.info(f"URL updated: id={record.id}")
        return record

    async def delete(self, url_id: str, owner_id: str) -> None:
        statement = delete(ShortURL).where(ShortURL.id == url_id, ShortURL.owner_id == owner_id)
        await self._execute_write(statement, url_id, "delete")
        self._logger.info(f"URL deleted: id={url_id}")

    async def increment_redirects(self, short_code: str) -> None:
        statement = (
            update(ShortURL)
            .where(ShortURL.short_code == short_code)
            .values(redirect_count=ShortURL.redirect_count + 1, updated_at=utcnow())
        )
        await self._execute_write(statement, short_code, "increment_redirects")

    async def ping(self) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise StoreError("database unavailable", original_error=exc) from exc

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    async def _code_taken(self, short_code: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(select(ShortURL.id).where(ShortURL.short_code == short_code).limit(1))
            return result.scalar_one_or_none() is not None

    async def _fetch_one(self, statement, key: str) -> ShortURL | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            self._logger.error(f"Error loading URL {key}: {exc}")
            raise StoreError("database operation failed", original_error=exc) from exc

    async def _execute_write(self, statement, key: str, operation: str) -> None:
        async with self._session_factory() as session:
            try:
                result = await session.execute(statement)
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                self._logger.error(f"Error during {operation} for {key}: {exc}")
                raise StoreError("database operation failed", original_error=exc) from exc

        if result.rowcount == 0:
            self._logger.debug(f"No row matched {operation} for {key}")
            raise NotFoundError("URL not found")
