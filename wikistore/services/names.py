#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Name Resolver
=============
Splits raw topic names into (namespace, page name), builds cache keys, and
answers the two fallback questions the lookup path asks:

  - which alternate spelling should be tried after an exact miss?
  - should a miss be retried against the shared upload tenant?

Name rules
----------
``Label:Page`` selects the namespace whose label (tenant translation first)
matches ``Label``; an unrecognised prefix leaves the whole string as a page
name in the main namespace.

Cache keys are ``tenant/Label:Page``, or ``tenant/Page`` in the main
namespace.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re
from typing import Optional

from wikistore.core.config import Settings
from wikistore.core.errors import DataValidationError
from wikistore.schemas import (
    BINARY_ASSET_NAMESPACES, NAMESPACE_SEPARATOR, Namespace,
)
from wikistore.services.namespaces import NamespaceService


MAX_PAGE_NAME_LENGTH = 200

_INVALID_PAGE_NAME_RE = re.compile(r"[\[\]{}|<>#?+%\n\r\t]")


# -----------------------------------------------------------------------------

def capitalize(page_name: str) -> str:
    """Upper-case the first character only."""
    return page_name[:1].upper() + page_name[1:]


def validate_page_name(page_name: str) -> None:
    if not page_name or not page_name.strip():
        raise DataValidationError("common.exception.notopic")
    if (
        page_name.startswith("/")
        or _INVALID_PAGE_NAME_RE.search(page_name)
        or len(page_name) > MAX_PAGE_NAME_LENGTH
    ):
        raise DataValidationError("common.exception.name", page_name)


# -----------------------------------------------------------------------------

class NameResolver:

    def __init__(self, namespaces: NamespaceService, settings: Settings) -> None:
        self.namespaces = namespaces
        self.settings = settings

    async def split_topic_name(self, tenant: str, topic_name: str) -> tuple[Namespace, str]:
        name = topic_name.strip()
        if name.startswith(NAMESPACE_SEPARATOR):
            # ":Category:Foo" is a plain link to Category:Foo
            name = name[1:].lstrip()
        if NAMESPACE_SEPARATOR in name:
            prefix, rest = name.split(NAMESPACE_SEPARATOR, 1)
            if prefix.strip():
                namespace = await self.namespaces.lookup_namespace(tenant, prefix)
                if namespace is not None:
                    return namespace, rest.strip()
        return await self.namespaces.main_namespace(), name

    @staticmethod
    def cache_key(tenant: str, namespace: Namespace, page_name: str) -> str:
        label = namespace.label_for(tenant)
        if label:
            return f"{tenant}/{label}{NAMESPACE_SEPARATOR}{page_name}"
        return f"{tenant}/{page_name}"

    @staticmethod
    def build_topic_name(tenant: str, namespace: Namespace, page_name: str) -> str:
        label = namespace.label_for(tenant)
        return f"{label}{NAMESPACE_SEPARATOR}{page_name}" if label else page_name

    def shared_tenant_for(self, tenant: str, namespace: Namespace) -> Optional[str]:
        """
        The shared upload tenant to fall back to, or None when no fallback
        applies (no shared tenant configured, we already are it, or the
        namespace does not hold binary assets).
        """
        if not self.settings.uses_shared_upload_tenant:
            return None
        shared = self.settings.shared_upload_tenant.strip()
        if shared == tenant:
            return None
        if namespace.namespace_id not in BINARY_ASSET_NAMESPACES:
            return None
        return shared

    def alternate_page_name(self, page_name: str) -> Optional[str]:
        """
        The spelling to try after an exact-name miss: lower-cased if the name
        is already capitalised, capitalised otherwise.
        """
        if not self.settings.allow_capitalization:
            return None
        capitalized = capitalize(page_name)
        alternate = page_name.lower() if page_name == capitalized else capitalized
        return alternate if alternate != page_name else None

    async def validate_topic_name(self, tenant: str, topic_name: Optional[str]) -> None:
        """Reject names that can never be stored, before any transaction opens."""
        if not topic_name or not topic_name.strip():
            raise DataValidationError("common.exception.notopic")
        namespace, page_name = await self.split_topic_name(tenant, topic_name)
        if namespace.is_special:
            raise DataValidationError("common.exception.name", topic_name)
        validate_page_name(page_name)


# -----------------------------------------------------------------------------
