"""Unit tests for PostgresRecordStore.

The session factory is replaced by an in-process fake that records the
statements it receives, so these tests need no database.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest
from sqlalchemy.exc import OperationalError, ProgrammingError

from content_moderator.domain.errors import (
    RecordNotFoundError,
    StoreInvalidQueryError,
    StoreUnavailableError,
)
from content_moderator.domain.models.content_record import RecordFilter
from content_moderator.infrastructure.adapters.persistence import (
    PostgresRecordStore,
    decode_token,
    encode_token,
)


class _FakeResult:
    def __init__(self, rows: list[dict[str, Any]]) -> None:
        self._rows = rows

    def mappings(self) -> _FakeResult:
        return self

    def all(self) -> list[dict[str, Any]]:
        return self._rows


class _FakeSession:
    def __init__(self, factory: _FakeSessionFactory) -> None:
        self._factory = factory

    async def __aenter__(self) -> _FakeSession:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._factory.closed += 1

    async def execute(self, statement: Any, params: dict[str, Any]) -> _FakeResult:
        self._factory.statements.append((str(statement), dict(params)))
        if self._factory.error is not None:
            raise self._factory.error
        return _FakeResult(self._factory.rows)


class _FakeSessionFactory:
    def __init__(self, rows: list[dict[str, Any]] | None = None) -> None:
        self.rows = rows or []
        self.error: Exception | None = None
        self.statements: list[tuple[str, dict[str, Any]]] = []
        self.closed = 0

    def __call__(self) -> _FakeSession:
        return _FakeSession(self)


def _row(record_id: str, content: str = "hello", owner: str = "u-1") -> dict[str, Any]:
    return {
        "id": record_id,
        "content": content,
        "owner": owner,
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        "updated_at": None,
    }


@pytest.fixture
def factory() -> _FakeSessionFactory:
    return _FakeSessionFactory()


@pytest.fixture
def store(factory: _FakeSessionFactory) -> PostgresRecordStore:
    return PostgresRecordStore(factory, table_name="content_records")


class TestConstruction:
    """Tests for table name validation."""

    @pytest.mark.parametrize(
        "table_name", ["", "1records", "records; DROP TABLE x", "a.b", "x" * 64]
    )
    def test_rejects_unsafe_table_names(
        self, factory: _FakeSessionFactory, table_name: str
    ) -> None:
        """Only plain identifiers can be interpolated into SQL."""
        with pytest.raises(ValueError, match="Invalid table name"):
            PostgresRecordStore(factory, table_name=table_name)

    def test_table_name_property(self, store: PostgresRecordStore) -> None:
        """The validated table name is exposed."""
        assert store.table_name == "content_records"


class TestGetById:
    """Tests for point lookups."""

    @pytest.mark.asyncio
    async def test_found(
        self, store: PostgresRecordStore, factory: _FakeSessionFactory
    ) -> None:
        """A row is mapped to a ContentRecord."""
        factory.rows = [_row("r1", "some text", "u-9")]

        record = await store.get_by_id("r1")

        assert record.id == "r1"
        assert record.content == "some text"
        assert record.owner == "u-9"
        assert record.created_at == datetime(2026, 1, 1, tzinfo=timezone.utc)
        statement, params = factory.statements[0]
        assert "FROM content_records WHERE id = :record_id" in statement
        assert params == {"record_id": "r1"}
        assert factory.closed == 1

    @pytest.mark.asyncio
    async def test_not_found(self, store: PostgresRecordStore) -> None:
        """No row means RecordNotFoundError."""
        with pytest.raises(RecordNotFoundError):
            await store.get_by_id("missing")


class TestPaging:
    """Tests for keyset pages."""

    @pytest.mark.asyncio
    async def test_scan_fetches_one_extra_row(
        self, store: PostgresRecordStore, factory: _FakeSessionFactory
    ) -> None:
        """limit + 1 rows are requested to detect a following page."""
        factory.rows = [_row("r1"), _row("r2"), _row("r3")]

        page = await store.scan_all(limit=2)

        assert [r.id for r in page.records] == ["r1", "r2"]
        assert decode_token(page.next_token) == "r2"
        statement, params = factory.statements[0]
        assert "ORDER BY id ASC LIMIT :fetch_limit" in statement
        assert "WHERE" not in statement
        assert params == {"fetch_limit": 3}

    @pytest.mark.asyncio
    async def test_last_page_has_no_token(
        self, store: PostgresRecordStore, factory: _FakeSessionFactory
    ) -> None:
        """A short page ends the scan."""
        factory.rows = [_row("r1")]

        page = await store.scan_all(limit=2)

        assert page.is_last

    @pytest.mark.asyncio
    async def test_token_becomes_keyset_condition(
        self, store: PostgresRecordStore, factory: _FakeSessionFactory
    ) -> None:
        """A continuation token resumes strictly after its ID."""
        await store.scan_all(encode_token("r7"), limit=5)

        statement, params = factory.statements[0]
        assert "WHERE id > :after" in statement
        assert params["after"] == "r7"

    @pytest.mark.asyncio
    async def test_limit_capped(
        self, store: PostgresRecordStore, factory: _FakeSessionFactory
    ) -> None:
        """Oversized limits are capped."""
        await store.scan_all(limit=50_000)

        assert factory.statements[0][1]["fetch_limit"] == 1001

    @pytest.mark.asyncio
    async def test_default_limit(self, factory: _FakeSessionFactory) -> None:
        """The default page size applies without a limit."""
        store = PostgresRecordStore(factory, "content_records", default_page_size=7)

        await store.scan_all()

        assert factory.statements[0][1]["fetch_limit"] == 8

    @pytest.mark.asyncio
    async def test_non_positive_limit(self, store: PostgresRecordStore) -> None:
        """A zero limit is rejected before querying."""
        with pytest.raises(StoreInvalidQueryError):
            await store.scan_all(limit=0)

    @pytest.mark.asyncio
    async def test_bad_token(
        self, store: PostgresRecordStore, factory: _FakeSessionFactory
    ) -> None:
        """A malformed token never reaches the database."""
        with pytest.raises(StoreInvalidQueryError):
            await store.scan_all("garbage!")

        assert factory.statements == []


class TestQueryByOwnerOrFilter:
    """Tests for filtered queries."""

    @pytest.mark.asyncio
    async def test_owner_and_contains(
        self, store: PostgresRecordStore, factory: _FakeSessionFactory
    ) -> None:
        """Both criteria are combined and LIKE wildcards escaped."""
        await store.query_by_owner_or_filter(
            RecordFilter(owner="u-1", contains="100%_off"),
            continuation_token=encode_token("r2"),
            limit=10,
        )

        statement, params = factory.statements[0]
        assert "owner = :owner AND content ILIKE :pattern" in statement
        assert "AND id > :after" in statement
        assert params["owner"] == "u-1"
        assert params["pattern"] == "%100\\%\\_off%"
        assert params["after"] == "r2"

    @pytest.mark.asyncio
    async def test_owner_only(
        self, store: PostgresRecordStore, factory: _FakeSessionFactory
    ) -> None:
        """An owner filter does not add a content condition."""
        await store.query_by_owner_or_filter(RecordFilter(owner="u-2"))

        statement, params = factory.statements[0]
        assert "ILIKE" not in statement
        assert "pattern" not in params


class TestErrorMapping:
    """Tests for driver error translation."""

    @pytest.mark.asyncio
    async def test_programming_error_is_invalid_query(
        self, store: PostgresRecordStore, factory: _FakeSessionFactory
    ) -> None:
        """Rejected statements are not retried."""
        factory.error = ProgrammingError(
            "SELECT", {}, Exception('relation "content_records" does not exist')
        )

        with pytest.raises(StoreInvalidQueryError, match="does not exist"):
            await store.get_by_id("r1")

    @pytest.mark.asyncio
    async def test_operational_error_is_unavailable(
        self, store: PostgresRecordStore, factory: _FakeSessionFactory
    ) -> None:
        """Connection failures are transient."""
        factory.error = OperationalError("SELECT", {}, Exception("connection refused"))

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.scan_all()

        assert exc_info.value.operation == "scan_all"

    @pytest.mark.asyncio
    async def test_os_error_is_unavailable(
        self, store: PostgresRecordStore, factory: _FakeSessionFactory
    ) -> None:
        """Socket errors are transient."""
        factory.error = ConnectionRefusedError("refused")

        with pytest.raises(StoreUnavailableError, match="refused"):
            await store.get_by_id("r1")
