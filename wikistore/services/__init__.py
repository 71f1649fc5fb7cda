#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------

from .cache import CacheManager, CacheRegion
from .tenants import TenantService
from .namespaces import NamespaceService
from .names import NameResolver
from .users import UserService
from .queries import QueryHandler
from .changelog import ChangeLog
from .parser import ContentParser, WikiLinkParser
from .search import NullSearchIndexer, SearchIndexer
from .lookup import TopicLookup
from .topics import TopicStore
from .setup import setup_database

__all__ = [
    "CacheManager", "CacheRegion", "TenantService", "NamespaceService",
    "NameResolver", "UserService", "QueryHandler", "ChangeLog",
    "ContentParser", "WikiLinkParser", "NullSearchIndexer", "SearchIndexer",
    "TopicLookup", "TopicStore", "setup_database",
]
