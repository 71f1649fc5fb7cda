#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Cache Coordinator
=================
A CacheManager owns a set of named CacheRegions.  Each region is a bounded
LRU map with time-to-live and time-to-idle expiry.

Regions are never the system of record.  A region can hold an explicit
``None`` for a key (a confirmed miss), so ``get`` reports presence
separately from the value:

    value, present = region.get(key)
    if present:
        return value          # may be None = "known not to exist"

All region methods are safe to call from several threads at once.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Hashable, Iterable, Optional

from wikistore.core.config import Settings


logger = logging.getLogger(__name__)

TOPIC_IDS_BY_NAME = "topic_ids_by_name"
TOPIC_NAMES_BY_NAME = "topic_names_by_name"
TOPICS_BY_ID = "topics_by_id"
TOPIC_VERSIONS = "topic_versions"
PARSED_TOPIC_CONTENT = "parsed_topic_content"
NAMESPACE_LIST = "namespace_list"
TENANT_LIST = "tenant_list"
USERS_BY_ID = "users_by_id"

DEFAULT_REGIONS = (
    TOPIC_IDS_BY_NAME,
    TOPIC_NAMES_BY_NAME,
    TOPICS_BY_ID,
    TOPIC_VERSIONS,
    PARSED_TOPIC_CONTENT,
    NAMESPACE_LIST,
    TENANT_LIST,
    USERS_BY_ID,
)


# -----------------------------------------------------------------------------

class CacheRegion:

    def __init__(
        self,
        name: str,
        max_entries: int = 1000,
        max_age: float = 300.0,
        max_idle: float = 150.0,
    ) -> None:
        self.name = name
        self.max_entries = max_entries
        self.max_age = max_age
        self.max_idle = max_idle
        # key -> [value, created, last_access]
        self._entries: OrderedDict[Hashable, list] = OrderedDict()
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key)[1]

    def _expired(self, entry: list, now: float) -> bool:
        if self.max_age > 0 and now - entry[1] > self.max_age:
            return True
        if self.max_idle > 0 and now - entry[2] > self.max_idle:
            return True
        return False

    def get(self, key: Hashable) -> tuple[Any, bool]:
        """Return ``(value, present)``; an expired entry counts as absent."""
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            if self._expired(entry, now):
                del self._entries[key]
                return None, False
            entry[2] = now
            self._entries.move_to_end(key)
            return entry[0], True

    def put(self, key: Hashable, value: Any) -> None:
        now = time.monotonic()
        with self._lock:
            self._entries[key] = [value, now, now]
            self._entries.move_to_end(key)
            while self.max_entries > 0 and len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_case_insensitive(self, key: str) -> None:
        """Drop every string key equal to *key* ignoring case."""
        folded = key.casefold()
        with self._lock:
            stale = [
                k for k in self._entries
                if isinstance(k, str) and k.casefold() == folded
            ]
            for k in stale:
                del self._entries[k]

    def invalidate_all(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[Hashable]:
        with self._lock:
            return list(self._entries)


# -----------------------------------------------------------------------------

class CacheManager:
    """
    Registry of cache regions with an explicit lifecycle.  One manager per
    store; nothing here is process-global.
    """

    def __init__(self, settings: Settings, regions: Iterable[str] = DEFAULT_REGIONS) -> None:
        self.settings = settings
        self._region_names = tuple(regions)
        self._regions: dict[str, CacheRegion] = {}
        self._lock = threading.RLock()
        self.active = False

    def init(self) -> None:
        with self._lock:
            for name in self._region_names:
                self._create(name)
            self.active = True
        logger.info("Cache manager initialised with %d regions", len(self._regions))

    def shutdown(self) -> None:
        with self._lock:
            for region in self._regions.values():
                region.invalidate_all()
            self._regions.clear()
            self.active = False
        logger.info("Cache manager shut down")

    def _create(self, name: str) -> CacheRegion:
        region = CacheRegion(
            name,
            max_entries=self.settings.cache_max_entries,
            max_age=self.settings.cache_max_age_seconds,
            max_idle=self.settings.cache_max_idle_seconds,
        )
        self._regions[name] = region
        logger.debug("Created cache region %s", name)
        return region

    def region(self, name: str) -> CacheRegion:
        """Return region *name*, creating it on first use."""
        with self._lock:
            region = self._regions.get(name)
            if region is None:
                region = self._create(name)
            return region

    def invalidate_all(self, name: Optional[str] = None) -> None:
        """Flush one region, or every region when *name* is None."""
        with self._lock:
            if name is None:
                targets = list(self._regions.values())
            else:
                targets = [self._regions[name]] if name in self._regions else []
        for region in targets:
            region.invalidate_all()

    # ── Named accessors ────────────────────────────────────────────────────

    @property
    def topic_ids_by_name(self) -> CacheRegion:
        return self.region(TOPIC_IDS_BY_NAME)

    @property
    def topic_names_by_name(self) -> CacheRegion:
        return self.region(TOPIC_NAMES_BY_NAME)

    @property
    def topics_by_id(self) -> CacheRegion:
        return self.region(TOPICS_BY_ID)

    @property
    def topic_versions(self) -> CacheRegion:
        return self.region(TOPIC_VERSIONS)

    @property
    def parsed_topic_content(self) -> CacheRegion:
        return self.region(PARSED_TOPIC_CONTENT)

    @property
    def namespace_list(self) -> CacheRegion:
        return self.region(NAMESPACE_LIST)

    @property
    def tenant_list(self) -> CacheRegion:
        return self.region(TENANT_LIST)

    @property
    def users_by_id(self) -> CacheRegion:
        return self.region(USERS_BY_ID)


# -----------------------------------------------------------------------------
