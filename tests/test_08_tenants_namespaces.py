#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Tenant / Namespace / User Tests
===============================
  - tenant creation, metadata updates and name rules
  - namespace lookups, new namespaces and label validation
  - per-tenant label translations
  - wiki users and author crediting
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest

from wikistore import WikiStore
from wikistore.core.errors import DataValidationError
from wikistore.schemas import Namespace, NamespaceId, Tenant, WikiUser

from tests.conftest import create_topic


# -----------------------------------------------------------------------------

pytestmark = pytest.mark.asyncio


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 1. Tenants
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestTenants:
    async def test_seeded_tenants(self, store: WikiStore):
        assert [t.name for t in await store.tenants.get_tenants()] == ["en", "shared"]
        assert await store.tenants.lookup_tenant("missing") is None
        assert await store.tenants.lookup_tenant(None) is None

    async def test_create_tenant(self, store: WikiStore):
        tenant = await store.tenants.write_tenant(Tenant(name="fr", site_name="Wiki FR"))
        assert tenant.tenant_id > 0
        found = await store.tenants.lookup_tenant("fr")
        assert found.tenant_id == tenant.tenant_id
        assert found.site_name == "Wiki FR"
        assert (await store.tenants.lookup_tenant_by_id(tenant.tenant_id)).name == "fr"
        assert (await store.tenants.tenant_names_by_id())[tenant.tenant_id] == "fr"

    async def test_duplicate_name(self, store: WikiStore):
        with pytest.raises(DataValidationError) as exc:
            await store.tenants.write_tenant(Tenant(name="en"))
        assert exc.value.key == "admin.vwiki.error.exists"

    @pytest.mark.parametrize("name, key", [
        ("   ", "admin.vwiki.error.name.blank"),
        ("two words", "admin.vwiki.error.name.invalid"),
        ("a/b", "admin.vwiki.error.name.invalid"),
        ("-leading", "admin.vwiki.error.name.invalid"),
    ])
    async def test_invalid_names(self, store: WikiStore, name: str, key: str):
        tenant = Tenant(name="placeholder")
        tenant.name = name
        with pytest.raises(DataValidationError) as exc:
            await store.tenants.write_tenant(tenant)
        assert exc.value.key == key

    async def test_update_metadata(self, store: WikiStore):
        tenant = await store.tenants.lookup_tenant("en")
        tenant.site_name = "English Wiki"
        tenant.root_topic_name = "Main Page"
        await store.tenants.write_tenant(tenant)

        found = await store.tenants.lookup_tenant("en")
        assert found.site_name == "English Wiki"
        assert found.root_topic_name == "Main Page"

    async def test_name_is_immutable(self, store: WikiStore):
        tenant = await store.tenants.lookup_tenant("en")
        tenant.name = "english"
        with pytest.raises(DataValidationError) as exc:
            await store.tenants.write_tenant(tenant)
        assert exc.value.key == "admin.vwiki.error.name.immutable"

    async def test_unknown_tenant(self, store: WikiStore):
        with pytest.raises(DataValidationError) as exc:
            await store.tenants.lookup_tenant_id("nowhere")
        assert exc.value.key == "common.exception.novirtualwiki"
        with pytest.raises(DataValidationError):
            await create_topic(store, "Alpha", "text", tenant="nowhere")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 2. Namespaces
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestNamespaces:
    async def test_defaults(self, store: WikiStore):
        namespaces = await store.namespaces.lookup_namespaces()
        assert len(namespaces) == 18
        main = await store.namespaces.main_namespace()
        assert main.label == ""
        assert main.case_sensitive

        user = await store.namespaces.lookup_namespace("en", "user")
        assert user.namespace_id == NamespaceId.USER
        assert not user.case_sensitive
        comments = await store.namespaces.lookup_namespace_by_id(NamespaceId.USER_COMMENTS)
        assert comments.main_namespace_id == NamespaceId.USER
        assert comments.is_comments
        assert await store.namespaces.lookup_namespace_by_id(999) is None
        assert await store.namespaces.next_namespace_id() == 16

    async def test_seed_is_idempotent(self, store: WikiStore):
        assert await store.namespaces.seed_defaults() == 0

    async def test_add_namespace(self, store: WikiStore):
        portal = Namespace(namespace_id=16, label="Portal", case_sensitive=True)
        await store.namespaces.write_namespace(portal)

        namespace, page = await store.names.split_topic_name("en", "Portal:Birds")
        assert namespace.namespace_id == 16
        assert page == "Birds"
        topic = await create_topic(store, "Portal:Birds", "all about birds")
        assert (await store.topics.lookup_topic("en", "Portal:Birds")).topic_id == topic.topic_id

    async def test_rename_namespace(self, store: WikiStore):
        project = await store.namespaces.lookup_namespace_by_id(NamespaceId.PROJECT)
        project.label = "Wiki"
        await store.namespaces.write_namespace(project)
        assert (await store.namespaces.lookup_namespace(None, "Wiki")).namespace_id == NamespaceId.PROJECT
        assert await store.namespaces.lookup_namespace(None, "Project") is None

    @pytest.mark.parametrize("label, key", [
        ("user", "admin.vwiki.error.namespace.unique"),
        (" Portal", "admin.vwiki.error.namespace.whitespace"),
        ("Por:tal", "admin.vwiki.error.namespace.characters"),
    ])
    async def test_invalid_labels(self, store: WikiStore, label: str, key: str):
        with pytest.raises(DataValidationError) as exc:
            await store.namespaces.write_namespace(Namespace(namespace_id=16, label=label))
        assert exc.value.key == key
        assert await store.namespaces.lookup_namespace_by_id(16) is None


class TestTranslations:
    async def test_translation_is_per_tenant(self, store: WikiStore):
        user = await store.namespaces.lookup_namespace_by_id(NamespaceId.USER)
        user.translations["en"] = "Benutzer"
        await store.namespaces.write_namespace_translations([user], "en")

        found = await store.namespaces.lookup_namespace_by_id(NamespaceId.USER)
        assert found.translations == {"en": "Benutzer"}
        assert found.label_for("en") == "Benutzer"
        assert found.label_for("shared") == "User"

        topic = await create_topic(store, "Benutzer:Alice", "hallo")
        assert topic.name == "Benutzer:Alice"
        assert await store.topics.lookup_topic_name("en", "User:Alice") == "Benutzer:Alice"

    async def test_translations_are_replaced(self, store: WikiStore):
        user = await store.namespaces.lookup_namespace_by_id(NamespaceId.USER)
        user.translations["en"] = "Benutzer"
        await store.namespaces.write_namespace_translations([user], "en")
        user.translations["en"] = "User"
        await store.namespaces.write_namespace_translations([user], "en")

        found = await store.namespaces.lookup_namespace_by_id(NamespaceId.USER)
        assert found.translations == {}

    async def test_colliding_translation(self, store: WikiStore):
        user = await store.namespaces.lookup_namespace_by_id(NamespaceId.USER)
        user.translations["en"] = "Help"
        with pytest.raises(DataValidationError) as exc:
            await store.namespaces.write_namespace_translations([user], "en")
        assert exc.value.key == "admin.vwiki.error.namespace.unique"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 3. Users
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestUsers:
    async def test_create_and_lookup(self, store: WikiStore):
        user = await store.users.write_wiki_user(WikiUser(username="alice", display_name="Alice"))
        assert user.user_id > 0
        assert (await store.users.lookup_wiki_user(user.user_id)).username == "alice"
        assert (await store.users.lookup_wiki_user_by_name("alice")).user_id == user.user_id
        assert await store.users.lookup_wiki_user(9999) is None

    async def test_duplicate_username(self, store: WikiStore):
        await store.users.write_wiki_user(WikiUser(username="alice"))
        with pytest.raises(DataValidationError) as exc:
            await store.users.write_wiki_user(WikiUser(username="alice"))
        assert exc.value.key == "register.error.logininvalid"

    async def test_update(self, store: WikiStore):
        user = await store.users.write_wiki_user(WikiUser(username="alice"))
        await store.users.lookup_wiki_user(user.user_id)
        user.display_name = "Alice A."
        await store.users.write_wiki_user(user)
        assert (await store.users.lookup_wiki_user(user.user_id)).display_name == "Alice A."

    async def test_update_unknown_user(self, store: WikiStore):
        with pytest.raises(DataValidationError) as exc:
            await store.users.write_wiki_user(WikiUser(user_id=4242, username="ghost"))
        assert exc.value.key == "common.exception.nouser"

    async def test_author_name(self, store: WikiStore):
        user = await store.users.write_wiki_user(WikiUser(username="alice"))
        assert await store.users.author_name(user.user_id, "10.0.0.1") == "alice"
        assert await store.users.author_name(None, "10.0.0.1") == "10.0.0.1"
        assert await store.users.author_name(4242, "10.0.0.1") == "10.0.0.1"


# -----------------------------------------------------------------------------
