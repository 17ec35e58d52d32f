"""SQLAlchemy implementation of the record store."""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leaguesync.models.domain import (
    Conference,
    Matchup,
    Season,
    Team,
    TeamConferenceRoster,
    TeamRecord,
)
from leaguesync.services.errors import StoreError
from leaguesync.services.store.base import (
    CONFERENCES,
    MATCHUPS,
    SEASONS,
    TEAM_CONFERENCE_ROSTERS,
    TEAM_RECORDS,
    TEAMS,
    Filter,
    OrderBy,
    Page,
    RecordStore,
    Row,
)

logger = structlog.get_logger(__name__)

TABLE_MODELS = {
    SEASONS: Season,
    CONFERENCES: Conference,
    TEAMS: Team,
    TEAM_CONFERENCE_ROSTERS: TeamConferenceRoster,
    MATCHUPS: Matchup,
    TEAM_RECORDS: TeamRecord,
}


def _to_row(instance: Any) -> Row:
    mapper = instance.__mapper__
    return {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}


class SqlAlchemyStore(RecordStore):
    """
    Record store backed by an AsyncSession.

    Writes are flushed immediately and become durable on commit(). Every
    SQLAlchemy failure is re-raised as StoreError.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _model(self, table: str):
        try:
            return TABLE_MODELS[table]
        except KeyError:
            raise StoreError(f"Unknown table: {table}") from None

    def _clause(self, model, flt: Filter):
        column = getattr(model, flt.name)
        if flt.op == "eq":
            return column.is_(None) if flt.value is None else column == flt.value
        if flt.op == "ne":
            return column.is_not(None) if flt.value is None else column != flt.value
        if flt.op == "in":
            return column.in_(list(flt.value))
        if flt.op == "lt":
            return column < flt.value
        if flt.op == "lte":
            return column <= flt.value
        if flt.op == "gt":
            return column > flt.value
        return column >= flt.value

    async def query(
        self,
        table: str,
        filters: list[Filter] | None = None,
        order_by: OrderBy | None = None,
        page: int = 1,
        page_size: int = 100,
    ) -> Page:
        model = self._model(table)
        clauses = [self._clause(model, f) for f in filters or []]

        query = select(model).where(*clauses)
        if order_by is not None:
            column = getattr(model, order_by.name)
            query = query.order_by(column.asc() if order_by.ascending else column.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)

        try:
            total = await self.session.scalar(
                select(func.count()).select_from(model).where(*clauses)
            )
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            logger.error("store_query_failed", table=table, error=str(e))
            raise StoreError(f"Query on {table} failed: {e}") from e

        return Page(
            rows=[_to_row(obj) for obj in result.scalars().all()],
            page=page,
            page_size=page_size,
            total=total or 0,
        )

    async def insert(self, table: str, values: Row) -> Row:
        model = self._model(table)
        instance = model(**values)
        try:
            self.session.add(instance)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("store_insert_failed", table=table, error=str(e))
            raise StoreError(f"Insert into {table} failed: {e}") from e
        return _to_row(instance)

    async def update(self, table: str, row_id: Any, values: Row) -> Row:
        model = self._model(table)
        try:
            instance = await self.session.get(model, row_id)
            if instance is None:
                raise StoreError(f"{table} row {row_id} not found")
            for key, value in values.items():
                setattr(instance, key, value)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("store_update_failed", table=table, row_id=row_id, error=str(e))
            raise StoreError(f"Update of {table} row {row_id} failed: {e}") from e
        return _to_row(instance)

    async def update_where(self, table: str, filters: list[Filter], values: Row) -> int:
        """Update every row matching the filters."""
        model = self._model(table)
        try:
            result = await self.session.execute(
                select(model).where(*[self._clause(model, f) for f in filters])
            )
            instances = result.scalars().all()
            for instance in instances:
                for key, value in values.items():
                    setattr(instance, key, value)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("store_update_failed", table=table, error=str(e))
            raise StoreError(f"Update of {table} failed: {e}") from e
        return len(instances)

    async def delete(self, table: str, filters: list[Filter]) -> int:
        model = self._model(table)
        try:
            result = await self.session.execute(
                delete(model).where(*[self._clause(model, f) for f in filters])
            )
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("store_delete_failed", table=table, error=str(e))
            raise StoreError(f"Delete from {table} failed: {e}") from e
        return result.rowcount or 0

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.error("store_commit_failed", error=str(e))
            raise StoreError(f"Commit failed: {e}") from e

    async def rollback(self) -> None:
        await self.session.rollback()


def sql_store_factory(
    session_factory: Callable[[], AsyncSession],
) -> Callable[[], Any]:
    """
    Build a store factory that opens one session per store.

    The sync pipeline processes conferences concurrently and an AsyncSession
    must not be shared between tasks, so each conference gets its own.
    """

    @asynccontextmanager
    async def open_store() -> AsyncIterator[SqlAlchemyStore]:
        async with session_factory() as session:
            try:
                yield SqlAlchemyStore(session)
            finally:
                await session.close()

    return open_store
