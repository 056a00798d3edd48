"""PostgreSQL record store adapter.

Read-only implementation of RecordStoreProtocol over a single content
table. Each call opens its own session from the shared async session
factory, so the adapter holds no connection state between calls.

Table layout:
    CREATE TABLE content_records (
        id          TEXT PRIMARY KEY,
        content     TEXT,
        owner       TEXT,
        created_at  TIMESTAMPTZ,
        updated_at  TIMESTAMPTZ
    );

Pages use keyset pagination on ``id`` (``WHERE id > :after ORDER BY id``)
and fetch ``limit + 1`` rows to learn whether another page exists
without a COUNT query.
"""

from __future__ import annotations

import re
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import ProgrammingError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from content_moderator.application.ports.record_store import (
    RecordPage,
    RecordStoreProtocol,
)
from content_moderator.domain.errors import (
    RecordNotFoundError,
    StoreInvalidQueryError,
    StoreUnavailableError,
)
from content_moderator.domain.models.content_record import (
    ContentRecord,
    RecordFilter,
)
from content_moderator.infrastructure.adapters.persistence.continuation_token import (
    decode_token,
    encode_token,
)

logger = get_logger()

DEFAULT_PAGE_SIZE: int = 25
MAX_PAGE_SIZE: int = 1000

_TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")
_COLUMNS = "id, content, owner, created_at, updated_at"


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresRecordStore(RecordStoreProtocol):
    """PostgreSQL implementation of the record store port.

    Attributes:
        _session_factory: SQLAlchemy async session factory.
        _table: Validated table name (interpolated into SQL).
        _default_page_size: Page size used when callers pass no limit.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        table_name: str,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        """Initialize the store.

        Args:
            session_factory: SQLAlchemy async session factory.
            table_name: Name of the content table.
            default_page_size: Page size when no limit is given.

        Raises:
            ValueError: If the table name is not a plain SQL identifier.
        """
        if not _TABLE_NAME_PATTERN.match(table_name):
            raise ValueError(f"Invalid table name: {table_name!r}")
        self._session_factory = session_factory
        self._table = table_name
        self._default_page_size = default_page_size

    @property
    def table_name(self) -> str:
        """Name of the backing table."""
        return self._table

    async def get_by_id(self, record_id: str) -> ContentRecord:
        """Fetch one record by primary key."""
        rows = await self._fetch(
            "get_by_id",
            f"SELECT {_COLUMNS} FROM {self._table} WHERE id = :record_id",
            {"record_id": record_id},
        )
        if not rows:
            raise RecordNotFoundError(record_id)
        return ContentRecord.from_mapping(rows[0])

    async def query_by_owner_or_filter(
        self,
        record_filter: RecordFilter,
        continuation_token: str | None = None,
        limit: int | None = None,
    ) -> RecordPage:
        """Fetch one page of records matching an owner and/or substring filter."""
        if record_filter.owner is None and not record_filter.contains:
            raise StoreInvalidQueryError("filter needs an owner or a content match")

        conditions: list[str] = []
        params: dict[str, Any] = {}
        if record_filter.owner is not None:
            conditions.append("owner = :owner")
            params["owner"] = record_filter.owner
        if record_filter.contains:
            conditions.append("content ILIKE :pattern ESCAPE '\\'")
            params["pattern"] = f"%{_escape_like(record_filter.contains)}%"

        return await self._fetch_page(
            "query_by_owner_or_filter", conditions, params, continuation_token, limit
        )

    async def scan_all(
        self,
        continuation_token: str | None = None,
        limit: int | None = None,
    ) -> RecordPage:
        """Fetch one page of a full-table scan in ID order."""
        return await self._fetch_page("scan_all", [], {}, continuation_token, limit)

    async def _fetch_page(
        self,
        operation: str,
        conditions: list[str],
        params: dict[str, Any],
        continuation_token: str | None,
        limit: int | None,
    ) -> RecordPage:
        page_size = self._page_size(limit)
        conditions = list(conditions)
        params = dict(params)

        if continuation_token is not None:
            conditions.append("id > :after")
            params["after"] = decode_token(continuation_token)

        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        params["fetch_limit"] = page_size + 1
        rows = await self._fetch(
            operation,
            f"SELECT {_COLUMNS} FROM {self._table}{where} "
            "ORDER BY id ASC LIMIT :fetch_limit",
            params,
        )

        has_more = len(rows) > page_size
        records = tuple(ContentRecord.from_mapping(row) for row in rows[:page_size])
        next_token = encode_token(records[-1].id) if has_more and records else None

        logger.debug(
            "record_page_fetched",
            operation=operation,
            table=self._table,
            record_count=len(records),
            has_more=has_more,
        )
        return RecordPage(records=records, next_token=next_token)

    def _page_size(self, limit: int | None) -> int:
        if limit is None:
            return self._default_page_size
        if limit < 1:
            raise StoreInvalidQueryError(f"limit must be positive, got {limit}")
        return min(limit, MAX_PAGE_SIZE)

    async def _fetch(
        self, operation: str, statement: str, params: dict[str, Any]
    ) -> list[Any]:
        """Run a read-only statement and return its rows as mappings.

        Raises:
            StoreInvalidQueryError: If the database rejects the statement.
            StoreUnavailableError: On connection, pool or driver failures.
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(text(statement), params)
                return list(result.mappings().all())
        except ProgrammingError as exc:
            logger.error(
                "record_store_query_rejected",
                operation=operation,
                table=self._table,
                error=str(exc.orig) if exc.orig is not None else str(exc),
            )
            raise StoreInvalidQueryError(str(exc.orig or exc)) from exc
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailableError(operation, str(exc)) from exc
