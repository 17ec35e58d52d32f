"""Generic record store interface.

The engine only depends on this shape: filtered, ordered, paginated reads
plus insert/update/delete by table name. Rows travel as plain dicts so the
engine never touches a specific storage engine.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

# Table names understood by every store implementation
SEASONS = "seasons"
CONFERENCES = "conferences"
TEAMS = "teams"
TEAM_CONFERENCE_ROSTERS = "team_conference_rosters"
MATCHUPS = "matchups"
TEAM_RECORDS = "team_records"

FILTER_OPS = ("eq", "ne", "lt", "lte", "gt", "gte", "in")

Row = dict[str, Any]


@dataclass(frozen=True)
class Filter:
    """A single column filter, e.g. Filter("status", "eq", "pending")."""

    name: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in FILTER_OPS:
            raise ValueError(f"Unsupported filter op: {self.op}")

    def matches(self, row: Row) -> bool:
        """Evaluate against a dict row (used by in-process stores)."""
        actual = row.get(self.name)
        if self.op == "eq":
            return actual == self.value
        if self.op == "ne":
            return actual != self.value
        if self.op == "in":
            return actual in self.value
        if actual is None:
            return False
        if self.op == "lt":
            return actual < self.value
        if self.op == "lte":
            return actual <= self.value
        if self.op == "gt":
            return actual > self.value
        return actual >= self.value


def eq(name: str, value: Any) -> Filter:
    return Filter(name, "eq", value)


@dataclass(frozen=True)
class OrderBy:
    """Sort clause."""

    name: str
    ascending: bool = True


@dataclass
class Page:
    """One page of query results."""

    rows: list[Row] = field(default_factory=list)
    page: int = 1
    page_size: int = 100
    total: int = 0

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total


class RecordStore(ABC):
    """Filtered paginated read and write access over league tables."""

    @abstractmethod
    async def query(
        self,
        table: str,
        filters: list[Filter] | None = None,
        order_by: OrderBy | None = None,
        page: int = 1,
        page_size: int = 100,
    ) -> Page:
        """Read one page of rows. Pages are 1-based."""

    @abstractmethod
    async def insert(self, table: str, values: Row) -> Row:
        """Insert a row and return it as stored."""

    @abstractmethod
    async def update(self, table: str, row_id: Any, values: Row) -> Row:
        """Update the row with the given id and return it as stored."""

    @abstractmethod
    async def update_where(self, table: str, filters: list[Filter], values: Row) -> int:
        """Update every matching row, returning how many were changed."""

    @abstractmethod
    async def delete(self, table: str, filters: list[Filter]) -> int:
        """Delete matching rows, returning how many were removed."""

    @abstractmethod
    async def commit(self) -> None:
        """Make pending writes durable."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard pending writes."""

    async def query_all(
        self,
        table: str,
        filters: list[Filter] | None = None,
        order_by: OrderBy | None = None,
        page_size: int = 500,
    ) -> list[Row]:
        """Walk every page of a query."""
        rows: list[Row] = []
        page_no = 1
        while True:
            page = await self.query(
                table, filters=filters, order_by=order_by, page=page_no, page_size=page_size
            )
            rows.extend(page.rows)
            if not page.has_next or not page.rows:
                return rows
            page_no += 1

    async def first(
        self,
        table: str,
        filters: list[Filter] | None = None,
        order_by: OrderBy | None = None,
    ) -> Row | None:
        page = await self.query(table, filters=filters, order_by=order_by, page=1, page_size=1)
        return page.rows[0] if page.rows else None

    async def get(self, table: str, row_id: Any) -> Row | None:
        return await self.first(table, [eq("id", row_id)])

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator["RecordStore"]:
        """
        Transaction scope.

        Commits when the block exits cleanly, rolls back and re-raises
        otherwise. Callers get all-or-nothing semantics for a group of
        writes.
        """
        try:
            yield self
            await self.commit()
        except BaseException:
            await self.rollback()
            raise
