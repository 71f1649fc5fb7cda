#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
WikiStore
=========
Composition root.  Builds one backing store, one cache manager and the
services on top of them; nothing is shared between two WikiStore
instances.

    store = create_store(Settings(database_url="sqlite+aiosqlite://"))
    await store.init()
    ...
    await store.shutdown()
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from wikistore.backend import BackingStore, select_strategy
from wikistore.core.config import Settings, get_settings
from wikistore.core.database import build_engine
from wikistore.services import (
    CacheManager, ChangeLog, ContentParser, NameResolver, NamespaceService,
    NullSearchIndexer, SearchIndexer, TenantService, TopicStore, UserService,
    WikiLinkParser, setup_database,
)


logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

class WikiStore:

    def __init__(
        self,
        settings: Settings,
        engine: AsyncEngine,
        parser: Optional[ContentParser] = None,
        search: Optional[SearchIndexer] = None,
    ) -> None:
        self.settings = settings
        self.backend = BackingStore(
            engine, dialect=select_strategy(str(engine.url), settings.db_dialect)
        )
        self.cache = CacheManager(settings)
        self.tenants = TenantService(self.backend, self.cache, settings)
        self.namespaces = NamespaceService(self.backend, self.cache, self.tenants, settings)
        self.names = NameResolver(self.namespaces, settings)
        self.users = UserService(self.backend, self.cache)
        self.changelog = ChangeLog(self.backend, self.tenants, self.namespaces, self.users, settings)
        self.parser = parser or WikiLinkParser()
        self.search = search or NullSearchIndexer()
        self.topics = TopicStore(
            self.backend,
            self.cache,
            self.tenants,
            self.namespaces,
            self.names,
            self.users,
            self.changelog,
            self.parser,
            self.search,
            settings,
        )

    async def init(self, setup: bool = True) -> None:
        """Start the caches and, unless *setup* is False, run database setup."""
        self.cache.init()
        if setup:
            await setup_database(self)
        logger.info(
            "%s %s ready (%s, %s)",
            self.settings.app_name, self.settings.app_version,
            self.backend.dialect.name, self.settings.environment,
        )

    async def shutdown(self) -> None:
        self.cache.shutdown()
        await self.backend.dispose()


# -----------------------------------------------------------------------------

def create_store(
    settings: Optional[Settings] = None,
    parser: Optional[ContentParser] = None,
    search: Optional[SearchIndexer] = None,
) -> WikiStore:
    settings = settings or get_settings()
    return WikiStore(settings, build_engine(settings=settings), parser, search)


# -----------------------------------------------------------------------------
