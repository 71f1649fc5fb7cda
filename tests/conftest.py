#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Test fixtures
=============
Every test gets its own WikiStore on a private in-memory SQLite database
(aiosqlite + StaticPool), with the schema created and the default
namespaces and tenants seeded.  Nothing is shared between tests: not the
engine, not the caches.

Tenants available after setup:
  en      the default tenant
  shared  the shared upload tenant (File / Media fallback)
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio

from wikistore import WikiStore, create_store
from wikistore.core.config import Settings
from wikistore.schemas import Topic, TopicVersion

# -----------------------------------------------------------------------------

TEST_URL = "sqlite+aiosqlite://"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="testing",
        database_url=TEST_URL,
        default_tenant="en",
        shared_upload_tenant="shared",
    )


# ── One store per test ────────────────────────────────────────────────────────
@pytest_asyncio.fixture
async def store(settings: Settings) -> AsyncGenerator[WikiStore, None]:
    wiki = create_store(settings)
    await wiki.init()
    yield wiki
    await wiki.shutdown()


# ── Helpers ───────────────────────────────────────────────────────────────────

async def create_topic(
    store: WikiStore,
    name: str,
    content: str,
    tenant: str = "en",
    author: str = "127.0.0.1",
    comment: Optional[str] = None,
) -> Topic:
    """Write a brand new topic with one revision, indexing its categories and links."""
    namespace, page_name = await store.names.split_topic_name(tenant, name)
    topic = Topic(tenant=tenant, namespace=namespace, page_name=page_name)
    version = TopicVersion(version_content=content, author_display=author, edit_comment=comment)
    output = store.parser.parse(tenant, name, content)
    return await store.topics.write_topic(topic, version, output.categories, output.links)


async def edit_topic(
    store: WikiStore,
    topic: Topic,
    content: str,
    author: str = "127.0.0.1",
    comment: Optional[str] = None,
) -> TopicVersion:
    """Add a revision to *topic*; returns the revision as written."""
    version = TopicVersion(version_content=content, author_display=author, edit_comment=comment)
    output = store.parser.parse(topic.tenant, topic.name, content)
    await store.topics.write_topic(topic, version, output.categories, output.links)
    return version


# -----------------------------------------------------------------------------
