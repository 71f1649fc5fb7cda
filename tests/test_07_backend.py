#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Backing Store Tests
===================
  - transaction atomicity, nesting and rollback-only marking
  - after-commit callbacks
  - database errors surface as BackingStoreError
  - dialect strategy selection and key allocation
  - schema probe, setup idempotency and store isolation
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from wikistore import WikiStore, create_store
from wikistore.backend import select_strategy
from wikistore.core.config import Settings
from wikistore.core.errors import BackingStoreError
from wikistore.models import NamespaceRow, TenantRow, UserRow
from wikistore.services import setup_database

from tests.conftest import create_topic


# -----------------------------------------------------------------------------

pytestmark = pytest.mark.asyncio


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 1. Transactions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestTransactions:
    async def test_commit(self, store: WikiStore):
        async def _write(session):
            await store.backend.add(UserRow(username="kept"))
            return "done"

        assert await store.backend.run_in_transaction(_write) == "done"
        assert await store.users.lookup_wiki_user_by_name("kept") is not None

    async def test_exception_rolls_back(self, store: WikiStore):
        async def _write(session):
            await store.backend.add(UserRow(username="ghost"))
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await store.backend.run_in_transaction(_write)
        assert await store.users.lookup_wiki_user_by_name("ghost") is None
        assert not store.backend.in_transaction

    async def test_nested_call_joins_outer(self, store: WikiStore):
        sessions = []

        async def _inner(session):
            sessions.append(session)
            await store.backend.add(UserRow(username="inner"))

        async def _outer(session):
            sessions.append(session)
            await store.backend.run_in_transaction(_inner)
            raise RuntimeError("outer failed")

        with pytest.raises(RuntimeError):
            await store.backend.run_in_transaction(_outer)
        assert sessions[0] is sessions[1]
        assert await store.users.lookup_wiki_user_by_name("inner") is None

    async def test_swallowed_nested_failure_still_rolls_back(self, store: WikiStore):
        async def _inner(session):
            raise RuntimeError("inner failed")

        async def _outer(session):
            await store.backend.add(UserRow(username="outer"))
            try:
                await store.backend.run_in_transaction(_inner)
            except RuntimeError:
                pass

        with pytest.raises(BackingStoreError):
            await store.backend.run_in_transaction(_outer)
        assert await store.users.lookup_wiki_user_by_name("outer") is None

    async def test_database_error_is_wrapped(self, store: WikiStore):
        await store.backend.add(UserRow(username="dup"))
        with pytest.raises(BackingStoreError):
            await store.backend.add(UserRow(username="dup"))

        async def _write(session):
            await store.backend.add(UserRow(username="dup"))

        with pytest.raises(BackingStoreError):
            await store.backend.run_in_transaction(_write)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 2. After-commit callbacks
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestAfterCommit:
    async def test_runs_after_commit_only(self, store: WikiStore):
        calls = []

        async def _ok(session):
            store.backend.after_commit(lambda: calls.append(store.backend.in_transaction))

        async def _fail(session):
            store.backend.after_commit(lambda: calls.append("never"))
            raise RuntimeError("boom")

        await store.backend.run_in_transaction(_ok)
        with pytest.raises(RuntimeError):
            await store.backend.run_in_transaction(_fail)
        # the transaction is already closed when the callback runs
        assert calls == [False]

    async def test_async_callbacks_are_awaited(self, store: WikiStore):
        calls = []

        async def _callback():
            calls.append("async")

        async def _write(session):
            store.backend.after_commit(_callback)

        await store.backend.run_in_transaction(_write)
        assert calls == ["async"]

    async def test_nested_callbacks_wait_for_outer_commit(self, store: WikiStore):
        calls = []

        async def _inner(session):
            store.backend.after_commit(lambda: calls.append("inner"))

        async def _outer(session):
            await store.backend.run_in_transaction(_inner)
            assert calls == []
            store.backend.after_commit(lambda: calls.append("outer"))

        await store.backend.run_in_transaction(_outer)
        assert calls == ["inner", "outer"]

    async def test_outside_transaction(self, store: WikiStore):
        with pytest.raises(RuntimeError):
            store.backend.after_commit(lambda: None)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 3. Dialects and keys
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestDialects:
    @pytest.mark.parametrize("url, override, name, style", [
        ("sqlite+aiosqlite://", None, "sqlite", "max"),
        ("postgresql+asyncpg://u:p@localhost/wiki", None, "postgresql", "native"),
        ("mariadb+aiomysql://u:p@localhost/wiki", None, "mysql", "max"),
        ("sqlite+aiosqlite://", "oracle", "oracle", "native"),
        ("sqlite+aiosqlite://", "DB2", "db2", "native"),
    ])
    async def test_select_strategy(self, url, override, name, style):
        strategy = select_strategy(url, override)
        assert strategy.name == name
        assert strategy.sequence_style == style

    async def test_keys_allocated_by_backend(self):
        assert not select_strategy("sqlite+aiosqlite://", "oracle").auto_increment_keys
        assert select_strategy("sqlite+aiosqlite://").auto_increment_keys

    async def test_unknown_backend(self):
        with pytest.raises(ValueError):
            select_strategy("firebird://localhost/wiki")

    async def test_sequence_name(self):
        assert select_strategy("postgresql+asyncpg://h/db").sequence_name("topics", "topic_id") == "topics_topic_id_seq"

    async def test_next_id(self, store: WikiStore):
        # the default and shared tenants exist
        assert await store.backend.next_id(TenantRow.__table__.c.tenant_id) == 3
        assert await store.backend.next_id(UserRow.__table__.c.user_id) == 1


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 4. Schema and setup
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestSetup:
    async def test_setup_is_idempotent(self, store: WikiStore):
        assert await store.backend.schema_exists()
        assert await setup_database(store) is False
        assert await store.backend.scalar(select(func.count()).select_from(TenantRow)) == 2
        assert await store.backend.scalar(select(func.count()).select_from(NamespaceRow)) == 18
        tenant = await store.tenants.lookup_tenant("en")
        assert tenant.root_topic_name == "StartingPoints"

    async def test_fresh_database(self, settings: Settings):
        wiki = create_store(settings)
        await wiki.init(setup=False)
        try:
            assert not await wiki.backend.schema_exists()
            assert await setup_database(wiki) is True
            assert await wiki.backend.schema_exists()
            assert [t.name for t in await wiki.tenants.get_tenants()] == ["en", "shared"]
        finally:
            await wiki.shutdown()

    async def test_without_shared_tenant(self, settings: Settings):
        wiki = create_store(settings.model_copy(update={"shared_upload_tenant": ""}))
        await wiki.init()
        try:
            assert [t.name for t in await wiki.tenants.get_tenants()] == ["en"]
        finally:
            await wiki.shutdown()

    async def test_drop_schema(self, store: WikiStore):
        await store.backend.drop_schema()
        assert not await store.backend.schema_exists()

    async def test_stores_are_isolated(self, store: WikiStore, settings: Settings):
        other = create_store(settings)
        await other.init()
        try:
            await create_topic(store, "Only here", "text")
            assert await store.topics.lookup_topic("en", "Only here") is not None
            assert await other.topics.lookup_topic("en", "Only here") is None
            assert len(other.cache.topic_ids_by_name) == 1
        finally:
            await other.shutdown()


# -----------------------------------------------------------------------------
