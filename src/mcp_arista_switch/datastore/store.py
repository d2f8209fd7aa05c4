"""Async relational store used by every core component.

A thin CRUD layer over SQLAlchemy Core: callers name a table and pass simple
column/value conditions. There is no relationship mapping; joins the core
needs are exposed as explicit helper queries.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import Table, and_, delete, event, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from ..errors import PersistenceError
from . import tables

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    """Turn on FK enforcement so member rows cascade with their channel."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite DateTime columns drop tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Datastore:
    """Parameterized CRUD over the console schema."""

    def __init__(self, url: str = DEFAULT_DATABASE_URL, echo: bool = False):
        self.url = url
        self.engine: AsyncEngine = self._create_engine(url, echo)

    @staticmethod
    def _create_engine(url: str, echo: bool) -> AsyncEngine:
        is_sqlite = url.startswith("sqlite")
        kwargs: dict[str, Any] = {"echo": echo}
        if is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in url or url.rstrip("/").endswith(":"):
                # One shared connection, otherwise each checkout sees an empty db
                kwargs["poolclass"] = StaticPool

        engine = create_async_engine(url, **kwargs)
        if is_sqlite:
            event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    async def create_schema(self) -> None:
        """Create all tables and record the schema version."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(tables.metadata.create_all)
                current = (await conn.execute(
                    select(func.max(tables.schema_version.c.version))
                )).scalar()
                if current is None:
                    await conn.execute(insert(tables.schema_version).values(
                        version=tables.SCHEMA_VERSION, applied_at=utcnow()
                    ))
                elif current != tables.SCHEMA_VERSION:
                    raise PersistenceError(
                        f"Database schema version {current} does not match "
                        f"expected version {tables.SCHEMA_VERSION}"
                    )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create schema: {e}") from e
        logger.info(f"Datastore ready: {self.url} (schema v{tables.SCHEMA_VERSION})")

    async def close(self) -> None:
        await self.engine.dispose()

    # === Helpers ===

    def _table(self, name: str) -> Table:
        table = tables.metadata.tables.get(name)
        if table is None:
            raise PersistenceError(f"Unknown table: {name}")
        return table

    def _column(self, table: Table, name: str):
        try:
            return table.c[name]
        except KeyError:
            raise PersistenceError(f"Unknown column {table.name}.{name}") from None

    def _conditions(self, table: Table, where: Optional[Mapping[str, Any]]):
        clauses = []
        for name, value in (where or {}).items():
            column = self._column(table, name)
            if isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(column.in_(list(value)))
            elif value is None:
                clauses.append(column.is_(None))
            else:
                clauses.append(column == value)
        return clauses

    def _order(self, table: Table, order_by: Sequence[str]):
        ordering = []
        for name in order_by:
            if name.startswith("-"):
                ordering.append(self._column(table, name[1:]).desc())
            else:
                ordering.append(self._column(table, name).asc())
        return ordering

    def _values(self, table: Table, values: Mapping[str, Any]) -> dict[str, Any]:
        for name in values:
            self._column(table, name)
        return dict(values)

    # === CRUD ===

    async def query(
        self,
        table: str,
        where: Optional[Mapping[str, Any]] = None,
        order_by: Sequence[str] = (),
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Select rows matching all conditions."""
        tbl = self._table(table)
        stmt = select(tbl)
        clauses = self._conditions(tbl, where)
        if clauses:
            stmt = stmt.where(and_(*clauses))
        if order_by:
            stmt = stmt.order_by(*self._order(tbl, order_by))
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(stmt)
                return [dict(row._mapping) for row in result]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Query on {table} failed: {e}") from e

    async def query_one(
        self,
        table: str,
        where: Optional[Mapping[str, Any]] = None,
        order_by: Sequence[str] = (),
    ) -> Optional[dict[str, Any]]:
        """Return the first matching row or None."""
        rows = await self.query(table, where, order_by, limit=1)
        return rows[0] if rows else None

    async def insert(self, table: str, values: Mapping[str, Any]) -> int:
        """Insert one row and return its primary key."""
        tbl = self._table(table)
        data = self._values(tbl, values)
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(insert(tbl).values(**data))
                return int(result.inserted_primary_key[0])
        except SQLAlchemyError as e:
            raise PersistenceError(f"Insert into {table} failed: {e}") from e

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        where: Mapping[str, Any],
    ) -> int:
        """Update matching rows and return the number affected."""
        tbl = self._table(table)
        data = self._values(tbl, values)
        if not where:
            raise PersistenceError(f"Refusing unconditional update of {table}")
        stmt = update(tbl).where(and_(*self._conditions(tbl, where))).values(**data)
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
                return result.rowcount
        except SQLAlchemyError as e:
            raise PersistenceError(f"Update of {table} failed: {e}") from e

    async def delete(self, table: str, where: Mapping[str, Any]) -> int:
        """Delete matching rows and return the number affected."""
        tbl = self._table(table)
        if not where:
            raise PersistenceError(f"Refusing unconditional delete from {table}")
        stmt = delete(tbl).where(and_(*self._conditions(tbl, where)))
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
                return result.rowcount
        except SQLAlchemyError as e:
            raise PersistenceError(f"Delete from {table} failed: {e}") from e

    # === Joins ===

    async def port_channel_members(self, switch_id: int) -> list[dict[str, Any]]:
        """Members of every port-channel on a switch.

        Returns dicts with port_channel_id, port_channel_name, interface_name,
        ordered by channel name then interface name.
        """
        pc = tables.port_channels
        pcm = tables.port_channel_members
        stmt = (
            select(pcm.c.port_channel_id, pc.c.port_channel_name, pcm.c.interface_name)
            .select_from(pcm.join(pc, pcm.c.port_channel_id == pc.c.id))
            .where(pc.c.switch_id == switch_id)
            .order_by(pc.c.port_channel_name.asc(), pcm.c.interface_name.asc())
        )
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(stmt)
                return [dict(row._mapping) for row in result]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Port-channel member query failed: {e}") from e

    async def port_channel_member_names(self, switch_id: int) -> set[str]:
        """Set of interface names that belong to any port-channel on a switch."""
        return {row["interface_name"] for row in await self.port_channel_members(switch_id)}
