#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Backing Store Adapter
=====================
Thin wrapper around an AsyncEngine that gives the services:

  - statement helpers (execute / scalars / scalar / add / get)
  - next_id() for backends that cannot allocate keys on INSERT
  - run_in_transaction() with join-the-outer-transaction semantics
  - after_commit() hooks that fire only once the outermost transaction
    has committed
  - schema_exists() as the "has setup run yet?" probe

The current transaction lives in a ContextVar, so nested service calls made
while a transaction is open share its session without passing it around.
An exception escaping a nested call marks the whole transaction
rollback-only; the outermost call then rolls back even if an intermediate
caller swallowed the exception.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import inspect
import logging
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy import Column, Sequence, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from wikistore.backend.dialects import DialectStrategy, select_strategy
from wikistore.core.database import Base, build_session_factory
from wikistore.core.errors import BackingStoreError
from wikistore.models import TenantRow


logger = logging.getLogger(__name__)

T = TypeVar("T")


# -----------------------------------------------------------------------------

@dataclass
class _Transaction:
    session: AsyncSession
    rollback_only: bool = False
    callbacks: list[Callable[[], Any]] = field(default_factory=list)


# -----------------------------------------------------------------------------

class BackingStore:

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        dialect: Optional[DialectStrategy] = None,
    ) -> None:
        self.engine = engine
        self.session_factory = session_factory or build_session_factory(engine)
        self.dialect = dialect or select_strategy(str(engine.url))
        # one variable per store so independent stores never share a transaction
        self._current: ContextVar[Optional[_Transaction]] = ContextVar(
            f"wikistore_tx_{id(self)}", default=None
        )

    # ── Transactions ───────────────────────────────────────────────────────

    @property
    def in_transaction(self) -> bool:
        return self._current.get() is not None

    async def run_in_transaction(self, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """
        Run ``await fn(session)`` atomically.

        Nested calls join the enclosing transaction.  Database errors are
        raised as BackingStoreError; any other exception propagates
        unchanged after the rollback.
        """
        tx = self._current.get()
        if tx is not None:
            try:
                return await fn(tx.session)
            except BaseException:
                tx.rollback_only = True
                raise

        async with self.session_factory() as session:
            tx = _Transaction(session)
            token = self._current.set(tx)
            try:
                async with session.begin():
                    result = await fn(session)
                    if tx.rollback_only:
                        raise BackingStoreError(
                            "Transaction rolled back: a nested operation failed"
                        )
            except SQLAlchemyError as exc:
                raise BackingStoreError(str(exc)) from exc
            finally:
                self._current.reset(token)

        for callback in tx.callbacks:
            outcome = callback()
            if inspect.isawaitable(outcome):
                await outcome
        return result

    def after_commit(self, callback: Callable[[], Any]) -> None:
        """
        Queue *callback* to run once the current transaction commits.
        Outside a transaction there is nothing to wait for, so the callback
        is expected to be awaited by the caller; we refuse rather than guess.
        """
        tx = self._current.get()
        if tx is None:
            raise RuntimeError("after_commit() called outside a transaction")
        tx.callbacks.append(callback)

    # ── Statement helpers ──────────────────────────────────────────────────

    async def _run(self, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        tx = self._current.get()
        if tx is not None:
            return await fn(tx.session)
        try:
            async with self.session_factory() as session:
                result = await fn(session)
                await session.commit()
                return result
        except SQLAlchemyError as exc:
            raise BackingStoreError(str(exc)) from exc

    async def execute(self, stmt) -> int:
        """Run a DML statement and return the affected row count."""
        async def _go(session: AsyncSession) -> int:
            result = await session.execute(stmt)
            return result.rowcount
        return await self._run(_go)

    async def fetch_all(self, stmt) -> list:
        async def _go(session: AsyncSession) -> list:
            result = await session.execute(stmt)
            return list(result.all())
        return await self._run(_go)

    async def scalars(self, stmt) -> list:
        stmt = stmt.execution_options(populate_existing=True)

        async def _go(session: AsyncSession) -> list:
            result = await session.execute(stmt)
            return list(result.scalars().all())
        return await self._run(_go)

    async def scalar(self, stmt) -> Any:
        async def _go(session: AsyncSession) -> Any:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
        return await self._run(_go)

    async def get(self, model: type[T], pk: Any) -> Optional[T]:
        async def _go(session: AsyncSession) -> Optional[T]:
            return await session.get(model, pk, populate_existing=True)
        return await self._run(_go)

    async def add(self, row: T) -> T:
        """
        Insert *row* and flush so generated keys are populated.  Backends
        without auto-increment keys get theirs from next_id() first.
        """
        mapper = row.__mapper__  # type: ignore[attr-defined]
        pk = mapper.primary_key[0] if len(mapper.primary_key) == 1 else None
        if (
            pk is not None
            and not self.dialect.auto_increment_keys
            and pk.autoincrement is not False
            and getattr(row, pk.key) is None
        ):
            setattr(row, pk.key, await self.next_id(pk))

        async def _go(session: AsyncSession) -> T:
            session.add(row)
            await session.flush()
            # keep the identity map free of rows later changed through Core
            session.expunge(row)
            return row
        return await self._run(_go)

    async def add_all(self, rows: list) -> list:
        for row in rows:
            await self.add(row)
        return rows

    # ── Key allocation ─────────────────────────────────────────────────────

    async def next_id(self, column: Column) -> int:
        """Allocate the next key for *column* using the dialect's sequence style."""
        if self.dialect.sequence_style == "native":
            seq = Sequence(self.dialect.sequence_name(column.table.name, column.name))
            stmt = select(seq.next_value())
        else:
            stmt = select(func.coalesce(func.max(column), 0) + 1)
        return int(await self.scalar(stmt))

    # ── Schema ─────────────────────────────────────────────────────────────

    async def schema_exists(self) -> bool:
        """Existence probe: True once the tenant table can be queried."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(select(TenantRow.tenant_id).limit(1))
            return True
        except SQLAlchemyError:
            return False

    async def create_schema(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as exc:
            raise BackingStoreError(str(exc)) from exc
        logger.info("Created database schema (%s)", self.dialect.name)

    async def drop_schema(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
        except SQLAlchemyError as exc:
            raise BackingStoreError(str(exc)) from exc
        logger.info("Dropped database schema (%s)", self.dialect.name)

    async def dispose(self) -> None:
        await self.engine.dispose()


# -----------------------------------------------------------------------------
