"""SQLAlchemy store tests against a scratch SQLite database."""

import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from shortlink.database import create_session_factory
from shortlink.errors import NotFoundError, StoreError, UniquenessViolation
from shortlink.models import ShortURL
from shortlink.store import SQLAlchemyURLStore


class FailingRecheckStore(SQLAlchemyURLStore):
    """Store whose short-code re-check loses its connection."""

    async def _code_taken(self, short_code: str) -> bool:
        raise OperationalError("SELECT short_urls.id", {}, Exception("connection lost"))


async def _seed(store: SQLAlchemyURLStore, short_code: str, owner_id: str = "user-1") -> ShortURL:
    return await store.save(ShortURL.new(owner_id, short_code, f"https://example.com/{short_code}"))


class TestSaveAndFind:
    @pytest.mark.asyncio
    async def test_save_then_find_by_code(self, store: SQLAlchemyURLStore) -> None:
        saved = await _seed(store, "abc1234")

        found = await store.find_by_code("abc1234")
        assert found.id == saved.id
        assert found.owner_id == "user-1"
        assert found.long_url == "https://example.com/abc1234"
        assert found.redirect_count == 0
        assert found.updated_at is None

    @pytest.mark.asyncio
    async def test_find_by_id(self, store: SQLAlchemyURLStore) -> None:
        saved = await _seed(store, "abc1234")
        found = await store.find_by_id(saved.id)
        assert found.short_code == "abc1234"

    @pytest.mark.asyncio
    async def test_duplicate_code_raises_uniqueness_violation(self, store: SQLAlchemyURLStore) -> None:
        await _seed(store, "dup0001")

        with pytest.raises(UniquenessViolation) as exc_info:
            await _seed(store, "dup0001", owner_id="user-2")

        assert exc_info.value.short_code == "dup0001"
        assert isinstance(exc_info.value, StoreError)
        assert (await store.find_by_code("dup0001")).owner_id == "user-1"

    @pytest.mark.asyncio
    async def test_failed_recheck_after_integrity_error_is_store_error(self, engine, store: SQLAlchemyURLStore) -> None:
        await _seed(store, "dup0001")
        flaky_store = FailingRecheckStore(create_session_factory(engine))

        with pytest.raises(StoreError) as exc_info:
            await _seed(flaky_store, "dup0001", owner_id="user-2")

        assert not isinstance(exc_info.value, UniquenessViolation)
        assert exc_info.value.message == "database operation failed"
        assert isinstance(exc_info.value.original_error, OperationalError)

    @pytest.mark.asyncio
    async def test_exists_by_code(self, store: SQLAlchemyURLStore) -> None:
        await _seed(store, "here001")
        assert await store.exists_by_code("here001") is True
        assert await store.exists_by_code("gone001") is False

    @pytest.mark.asyncio
    async def test_missing_records_raise_not_found(self, store: SQLAlchemyURLStore) -> None:
        with pytest.raises(NotFoundError):
            await store.find_by_code("nope123")
        with pytest.raises(NotFoundError):
            await store.find_by_id("00000000-0000-0000-0000-000000000000")

    @pytest.mark.asyncio
    async def test_ping(self, store: SQLAlchemyURLStore) -> None:
        await store.ping()


class TestFindByOwner:
    @pytest.mark.asyncio
    async def test_newest_first_with_pagination(self, store: SQLAlchemyURLStore) -> None:
        for index in range(5):
            await _seed(store, f"own{index:04d}")
        await _seed(store, "other01", owner_id="user-2")

        first_page = await store.find_by_owner("user-1", limit=2, offset=0)
        second_page = await store.find_by_owner("user-1", limit=2, offset=2)
        last_page = await store.find_by_owner("user-1", limit=2, offset=4)

        assert [r.short_code for r in first_page] == ["own0004", "own0003"]
        assert [r.short_code for r in second_page] == ["own0002", "own0001"]
        assert [r.short_code for r in last_page] == ["own0000"]

    @pytest.mark.asyncio
    async def test_unknown_owner_gets_empty_list(self, store: SQLAlchemyURLStore) -> None:
        await _seed(store, "abc1234")
        assert await store.find_by_owner("nobody", limit=10, offset=0) == []


class TestUpdateAndDelete:
    @pytest.mark.asyncio
    async def test_update_changes_long_url(self, store: SQLAlchemyURLStore) -> None:
        record = await _seed(store, "upd0001")
        record.long_url = "https://example.org/new"

        updated = await store.update(record)

        assert updated.updated_at is not None
        found = await store.find_by_code("upd0001")
        assert found.long_url == "https://example.org/new"
        assert found.updated_at is not None

    @pytest.mark.asyncio
    async def test_update_missing_record(self, store: SQLAlchemyURLStore) -> None:
        ghost = ShortURL.new("user-1", "ghost01", "https://example.com")
        with pytest.raises(NotFoundError):
            await store.update(ghost)

    @pytest.mark.asyncio
    async def test_delete_requires_matching_owner(self, store: SQLAlchemyURLStore) -> None:
        record = await _seed(store, "del0001")

        with pytest.raises(NotFoundError):
            await store.delete(record.id, "user-2")
        assert await store.exists_by_code("del0001")

        await store.delete(record.id, "user-1")
        assert not await store.exists_by_code("del0001")


class TestIncrementRedirects:
    @pytest.mark.asyncio
    async def test_increment_counts_each_call(self, store: SQLAlchemyURLStore) -> None:
        await _seed(store, "cnt0001")
        for _ in range(3):
            await store.increment_redirects("cnt0001")

        found = await store.find_by_code("cnt0001")
        assert found.redirect_count == 3
        assert found.updated_at is not None

    @pytest.mark.asyncio
    async def test_increment_unknown_code(self, store: SQLAlchemyURLStore) -> None:
        with pytest.raises(NotFoundError):
            await store.increment_redirects("nope123")

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_not_lost(self, store: SQLAlchemyURLStore) -> None:
        await _seed(store, "hot0001")

        await asyncio.gather(*(store.increment_redirects("hot0001") for _ in range(20)))

        assert (await store.find_by_code("hot0001")).redirect_count == 20
