#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Topic lookup
============
Read side of the topic store and the cache protocol it shares with the
write side.

Caches used here:

  topic_ids_by_name     cache key -> topic id, or None for a confirmed miss
  topic_names_by_name   cache key -> full topic name of a live topic, or None
  topics_by_id          topic id  -> Topic
  topic_versions        revision id -> TopicVersion
  parsed_topic_content  cache key -> ParserOutput of the current content

Nothing is read from or written to a cache while a write transaction is
open on the current task; the caller sees the backing store directly.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import difflib
import logging
import time
from typing import Iterable, Optional

from wikistore.backend import BackingStore
from wikistore.core.config import Settings
from wikistore.models import TopicRow
from wikistore.schemas import (
    Category, Namespace, Pagination, ParserOutput, Topic, TopicDiff,
    TopicType, TopicVersion,
)
from wikistore.services.cache import CacheManager
from wikistore.services.changelog import ChangeLog
from wikistore.services.names import NameResolver, capitalize
from wikistore.services.namespaces import NamespaceService
from wikistore.services.parser import ContentParser
from wikistore.services.queries import QueryHandler, topic_version_from_row
from wikistore.services.search import SearchIndexer
from wikistore.services.tenants import TenantService
from wikistore.services.users import UserService


logger = logging.getLogger(__name__)

# seconds; slower lookups are logged at debug level
SLOW_LOOKUP_THRESHOLD = 0.020


# -----------------------------------------------------------------------------

class TopicLookup:

    def __init__(
        self,
        backend: BackingStore,
        cache: CacheManager,
        tenants: TenantService,
        namespaces: NamespaceService,
        names: NameResolver,
        users: UserService,
        changelog: ChangeLog,
        parser: ContentParser,
        search: SearchIndexer,
        settings: Settings,
    ) -> None:
        self.backend = backend
        self.cache = cache
        self.tenants = tenants
        self.namespaces = namespaces
        self.names = names
        self.users = users
        self.changelog = changelog
        self.parser = parser
        self.search = search
        self.settings = settings
        self.queries = QueryHandler(backend)

    # ━━ Cache protocol ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def _use_cache(self) -> bool:
        return not self.backend.in_transaction

    def cache_topic_refresh(self, topic: Topic, remove_existing: bool, alt_key: Optional[str]) -> None:
        """
        Re-seed the name and id caches for *topic*.  With *remove_existing*
        every case variant of its key (and of *alt_key*) is dropped first.
        """
        key = NameResolver.cache_key(topic.tenant, topic.namespace, topic.page_name)
        use_alt_key = alt_key is not None and alt_key != key
        if remove_existing:
            self._invalidate_name(key)
            # keys differing only by case were dropped by the first pass
            if use_alt_key and key.casefold() != alt_key.casefold():
                self._invalidate_name(alt_key)
        if not topic.is_deleted:
            # the name cache holds live topics only
            self.cache.topic_names_by_name.put(key, topic.name)
            if use_alt_key:
                self.cache.topic_names_by_name.put(alt_key, topic.name)
        self.cache.topic_ids_by_name.put(key, topic.topic_id)
        if use_alt_key:
            self.cache.topic_ids_by_name.put(alt_key, topic.topic_id)
        self.cache.topics_by_id.put(topic.topic_id, topic.model_copy(deep=True))

    def _invalidate_name(self, key: str) -> None:
        self.cache.parsed_topic_content.invalidate_case_insensitive(key)
        self.cache.topic_names_by_name.invalidate_case_insensitive(key)
        self.cache.topic_ids_by_name.invalidate_case_insensitive(key)

    def _log_if_slow(self, what: str, tenant: str, namespace: Namespace, page_name: str, start: float) -> None:
        elapsed = time.perf_counter() - start
        if elapsed > SLOW_LOOKUP_THRESHOLD:
            logger.debug(
                "Slow %s for: %s (%.3f s)",
                what, NameResolver.cache_key(tenant, namespace, page_name), elapsed,
            )

    # ── Row conversion ─────────────────────────────────────────────────────

    async def _to_topic(self, row: TopicRow) -> Optional[Topic]:
        tenant = await self.tenants.lookup_tenant_by_id(row.tenant_id)
        namespace = await self.namespaces.lookup_namespace_by_id(row.namespace_id)
        if tenant is None or namespace is None:
            logger.warning(
                "Topic %s references unknown tenant %s or namespace %s",
                row.topic_id, row.tenant_id, row.namespace_id,
            )
            return None
        return Topic(
            topic_id=row.topic_id,
            tenant=tenant.name,
            namespace=namespace,
            page_name=row.page_name,
            topic_type=TopicType(row.topic_type),
            read_only=row.read_only,
            admin_only=row.admin_only,
            current_version_id=row.current_version_id,
            delete_date=row.delete_date,
            redirect_to=row.redirect_to,
            topic_content=row.topic_content,
        )

    async def _topic_names(self, tenant: str, rows: Iterable[TopicRow]) -> list[str]:
        namespaces = {ns.namespace_id: ns for ns in await self.namespaces.lookup_namespaces()}
        names = []
        for row in rows:
            namespace = namespaces.get(row.namespace_id)
            if namespace is not None:
                names.append(NameResolver.build_topic_name(tenant, namespace, row.page_name))
        return names

    async def _tenant_id(self, tenant: Optional[str]) -> Optional[int]:
        found = await self.tenants.lookup_tenant(tenant)
        return None if found is None else found.tenant_id

    def _link_page_name(self, page_name: str) -> str:
        """Link targets are stored first-letter capitalised when capitalisation is on."""
        return capitalize(page_name) if self.settings.allow_capitalization else page_name

    async def _max_namespace_id(self) -> int:
        return max((ns.namespace_id for ns in await self.namespaces.lookup_namespaces()), default=0)

    # ━━ Topics ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    async def lookup_topic(
        self, tenant: Optional[str], topic_name: Optional[str], include_deleted: bool = False
    ) -> Optional[Topic]:
        if not tenant or not topic_name or not topic_name.strip():
            return None
        namespace, page_name = await self.names.split_topic_name(tenant, topic_name)
        return await self.lookup_topic_in_namespace(tenant, namespace, page_name, include_deleted)

    async def lookup_topic_in_namespace(
        self,
        tenant: str,
        namespace: Namespace,
        page_name: str,
        include_deleted: bool = False,
    ) -> Optional[Topic]:
        """
        Resolve a topic by (tenant, namespace, page name).

        Deleted topics are fetched and cached like any other; the
        *include_deleted* filter is applied to the result only.
        """
        if namespace.is_special or not page_name:
            return None
        topic = await self._lookup_topic(tenant, namespace, page_name)
        if topic is None or (topic.is_deleted and not include_deleted):
            return None
        return topic

    async def _lookup_topic(self, tenant: str, namespace: Namespace, page_name: str) -> Optional[Topic]:
        start = time.perf_counter()
        key = NameResolver.cache_key(tenant, namespace, page_name)
        use_cache = self._use_cache()
        if use_cache:
            topic_id, present = self.cache.topic_ids_by_name.get(key)
            if present:
                return None if topic_id is None else await self.lookup_topic_by_id(topic_id)
        shared = self.names.shared_tenant_for(tenant, namespace)
        if use_cache and shared is not None:
            shared_key = NameResolver.cache_key(shared, namespace, page_name)
            topic_id, present = self.cache.topic_ids_by_name.get(shared_key)
            if present:
                return None if topic_id is None else await self.lookup_topic_by_id(topic_id)

        topic = None
        tenant_id = await self._tenant_id(tenant)
        if tenant_id is not None:
            row = await self.queries.lookup_topic(tenant_id, namespace, page_name)
            if row is None:
                alternate = self.names.alternate_page_name(page_name)
                if alternate is not None:
                    row = await self.queries.lookup_topic(tenant_id, namespace, alternate)
            if row is not None:
                topic = await self._to_topic(row)
        if topic is None and shared is not None:
            # one level only; the shared tenant never falls back further
            topic = await self._lookup_topic(shared, namespace, page_name)

        if use_cache:
            if topic is None:
                self.cache.topic_ids_by_name.put(key, None)
                self.cache.topic_names_by_name.put(key, None)
            else:
                self.cache_topic_refresh(topic, False, key)
        self._log_if_slow("topic lookup", tenant, namespace, page_name, start)
        return topic

    async def lookup_topic_by_id(self, topic_id: int) -> Optional[Topic]:
        use_cache = self._use_cache()
        if use_cache:
            topic, present = self.cache.topics_by_id.get(topic_id)
            if present:
                return None if topic is None else topic.model_copy(deep=True)
        row = await self.queries.lookup_topic_by_id(topic_id)
        if row is None:
            logger.info("Attempt to look up topic with non-existent id %s", topic_id)
            return None
        topic = await self._to_topic(row)
        if use_cache and topic is not None:
            self.cache.topics_by_id.put(topic_id, topic.model_copy(deep=True))
        return topic

    async def lookup_topic_name(self, tenant: Optional[str], topic_name: Optional[str]) -> Optional[str]:
        """
        Existence probe: the stored name of a live topic matching
        *topic_name*, or None.  Backed by its own name cache.
        """
        if not tenant or not topic_name or not topic_name.strip():
            return None
        namespace, page_name = await self.names.split_topic_name(tenant, topic_name)
        if namespace.is_special or not page_name:
            return None
        return await self._lookup_topic_name(tenant, namespace, page_name)

    async def _lookup_topic_name(self, tenant: str, namespace: Namespace, page_name: str) -> Optional[str]:
        start = time.perf_counter()
        key = NameResolver.cache_key(tenant, namespace, page_name)
        use_cache = self._use_cache()
        if use_cache:
            name, present = self.cache.topic_names_by_name.get(key)
            if present:
                return name
        shared = self.names.shared_tenant_for(tenant, namespace)
        if use_cache and shared is not None:
            name, present = self.cache.topic_names_by_name.get(
                NameResolver.cache_key(shared, namespace, page_name)
            )
            if present:
                return name

        name = None
        tenant_id = await self._tenant_id(tenant)
        if tenant_id is not None:
            row = await self.queries.lookup_topic(tenant_id, namespace, page_name)
            if row is not None and row.delete_date is None:
                name = NameResolver.build_topic_name(tenant, namespace, row.page_name)
        if name is None and shared is not None:
            name = await self._lookup_topic_name(shared, namespace, page_name)
        if use_cache:
            self.cache.topic_names_by_name.put(key, name)
        self._log_if_slow("topic existence lookup", tenant, namespace, page_name, start)
        return name

    async def lookup_parsed_content(self, tenant: str, topic_name: str) -> Optional[ParserOutput]:
        """Categories, links and redirect target of a live topic's current content."""
        topic = await self.lookup_topic(tenant, topic_name)
        if topic is None:
            return None
        key = NameResolver.cache_key(topic.tenant, topic.namespace, topic.page_name)
        use_cache = self._use_cache()
        if use_cache:
            output, present = self.cache.parsed_topic_content.get(key)
            if present:
                return output.model_copy(deep=True)
        output = self.parser.parse(topic.tenant, topic.name, topic.topic_content)
        if use_cache:
            self.cache.parsed_topic_content.put(key, output.model_copy(deep=True))
        return output

    # ── Listings ───────────────────────────────────────────────────────────

    async def get_all_topic_names(self, tenant: str, include_deleted: bool = False) -> list[str]:
        tenant_id = await self._tenant_id(tenant)
        if tenant_id is None:
            return []
        return await self._topic_names(tenant, await self.queries.lookup_topic_rows(tenant_id, include_deleted))

    async def lookup_topic_count(self, tenant: str, namespace_id: Optional[int] = None) -> int:
        """Live topics, redirects included, in one namespace or all non-negative ones."""
        tenant_id = await self._tenant_id(tenant)
        if tenant_id is None:
            return 0
        start = namespace_id if namespace_id is not None else 0
        end = namespace_id if namespace_id is not None else await self._max_namespace_id()
        return await self.queries.lookup_topic_count(tenant_id, start, end)

    async def lookup_topic_by_type(
        self,
        tenant: str,
        topic_types: Iterable[TopicType],
        namespace_id: Optional[int] = None,
        pagination: Optional[Pagination] = None,
    ) -> list[str]:
        tenant_id = await self._tenant_id(tenant)
        if tenant_id is None:
            return []
        start = namespace_id if namespace_id is not None else 0
        end = namespace_id if namespace_id is not None else await self._max_namespace_id()
        rows = await self.queries.lookup_topic_by_type(tenant_id, topic_types, start, end, pagination)
        return await self._topic_names(tenant, rows)

    async def get_topics_admin(self, tenant: str, pagination: Optional[Pagination] = None) -> list[str]:
        tenant_id = await self._tenant_id(tenant)
        if tenant_id is None:
            return []
        return await self._topic_names(tenant, await self.queries.get_topics_admin(tenant_id, pagination))

    # ━━ Revisions ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    async def lookup_topic_version(self, topic_version_id: int) -> Optional[TopicVersion]:
        use_cache = self._use_cache()
        if use_cache:
            version, present = self.cache.topic_versions.get(topic_version_id)
            if present:
                return None if version is None else version.model_copy()
        row = await self.queries.lookup_topic_version(topic_version_id)
        version = None if row is None else topic_version_from_row(row)
        if use_cache:
            self.cache.topic_versions.put(topic_version_id, version)
        return None if version is None else version.model_copy()

    async def lookup_topic_version_next_id(self, topic_version_id: int) -> Optional[int]:
        return await self.queries.lookup_topic_version_next_id(topic_version_id)

    async def get_topic_versions(self, topic: Topic) -> list[TopicVersion]:
        """
        Revisions reachable from the current version through the previous
        pointers, newest first.
        """
        versions: list[TopicVersion] = []
        seen: set[int] = set()
        version_id = topic.current_version_id
        while version_id is not None:
            if version_id in seen:
                logger.warning("Revision chain for topic %s loops at %s", topic.topic_id, version_id)
                break
            seen.add(version_id)
            version = await self.lookup_topic_version(version_id)
            if version is None:
                break
            versions.append(version)
            version_id = version.previous_topic_version_id
        return versions

    async def diff_topic_versions(
        self, tenant: str, topic_name: str, from_version_id: int, to_version_id: int
    ) -> Optional[TopicDiff]:
        """Unified diff between two revisions of the same topic."""
        topic = await self.lookup_topic(tenant, topic_name, include_deleted=True)
        if topic is None:
            return None
        old = await self.lookup_topic_version(from_version_id)
        new = await self.lookup_topic_version(to_version_id)
        if old is None or new is None:
            return None
        if old.topic_id != topic.topic_id or new.topic_id != topic.topic_id:
            return None

        diff_lines = list(difflib.unified_diff(
            old.version_content.splitlines(keepends=True),
            new.version_content.splitlines(keepends=True),
            fromfile=f"{topic.name} r{from_version_id}",
            tofile=f"{topic.name} r{to_version_id}",
            lineterm="",
        ))
        added = sum(1 for line in diff_lines if line.startswith("+") and not line.startswith("+++"))
        removed = sum(1 for line in diff_lines if line.startswith("-") and not line.startswith("---"))
        return TopicDiff(
            topic_name=topic.name,
            from_version_id=from_version_id,
            to_version_id=to_version_id,
            unified_diff="\n".join(line.rstrip("\n") for line in diff_lines),
            lines_added=added,
            lines_removed=removed,
        )

    # ━━ Categories and links ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    async def get_all_categories(self, tenant: str, pagination: Optional[Pagination] = None) -> list[Category]:
        tenant_id = await self._tenant_id(tenant)
        if tenant_id is None:
            return []
        names = await self.queries.get_categories(tenant_id, pagination)
        return [Category(tenant=tenant, name=name) for name in names]

    async def lookup_category_topics(self, tenant: str, category_name: str) -> list[Category]:
        """Members of *category_name* (e.g. ``Category:Birds``), ordered by sort key."""
        tenant_id = await self._tenant_id(tenant)
        if tenant_id is None:
            return []
        namespaces = {ns.namespace_id: ns for ns in await self.namespaces.lookup_namespaces()}
        members = []
        for category_row, topic_row in await self.queries.lookup_category_topics(tenant_id, category_name):
            namespace = namespaces.get(topic_row.namespace_id)
            if namespace is None:
                continue
            members.append(Category(
                tenant=tenant,
                name=category_row.category_name,
                sort_key=category_row.sort_key,
                child_topic_name=NameResolver.build_topic_name(tenant, namespace, topic_row.page_name),
                topic_type=TopicType(topic_row.topic_type),
            ))
        return members

    async def lookup_topic_links(self, tenant: str, topic_name: str) -> list[str]:
        """Names of live topics that link to *topic_name*."""
        tenant_id = await self._tenant_id(tenant)
        if tenant_id is None or not topic_name:
            return []
        namespace, page_name = await self.names.split_topic_name(tenant, topic_name)
        rows = await self.queries.lookup_topic_links(tenant_id, namespace.namespace_id, self._link_page_name(page_name))
        return await self._topic_names(tenant, rows)

    async def lookup_topic_link_orphans(self, tenant: str, namespace_id: int) -> list[str]:
        """Live, non-redirect topics in a namespace that nothing links to."""
        tenant_id = await self._tenant_id(tenant)
        if tenant_id is None:
            return []
        return await self._topic_names(
            tenant, await self.queries.lookup_topic_link_orphans(tenant_id, namespace_id)
        )


# -----------------------------------------------------------------------------
