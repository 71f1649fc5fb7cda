#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Namespace service
=================
Namespaces are global (ids are fixed by convention) but their labels can be
translated per tenant.  The complete list, translations included, is cached
as a single entry.

Default set (id, label, main namespace for comments namespaces):

    -2 Media          -1 Special          0 (Main, empty label)
     1 Comments   -> 0
     2 User            3 User comments     -> 2
     4 Project         5 Project comments  -> 4
     6 File            7 File comments     -> 6
     8 System          9 System comments   -> 8
    10 Template       11 Template comments -> 10
    12 Help           13 Help comments     -> 12
    14 Category       15 Category comments -> 14
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, select, update

from wikistore.backend import BackingStore
from wikistore.core.config import Settings
from wikistore.core.errors import DataValidationError
from wikistore.models import NamespaceRow, NamespaceTranslationRow
from wikistore.schemas import Namespace, NamespaceId, validate_model
from wikistore.services.cache import CacheManager
from wikistore.services.tenants import TenantService


logger = logging.getLogger(__name__)

_NAMESPACE_LIST_KEY = "namespaces"
_INVALID_LABEL_CHARS = set("/\\:[]{}|<>#?+%\n\r\t")

# (id, label, main namespace id, case sensitive)
DEFAULT_NAMESPACES: tuple[tuple[int, str, Optional[int], bool], ...] = (
    (NamespaceId.MEDIA, "Media", None, False),
    (NamespaceId.SPECIAL, "Special", None, True),
    (NamespaceId.MAIN, "", None, True),
    (NamespaceId.COMMENTS, "Comments", NamespaceId.MAIN, True),
    (NamespaceId.USER, "User", None, False),
    (NamespaceId.USER_COMMENTS, "User comments", NamespaceId.USER, False),
    (NamespaceId.PROJECT, "Project", None, True),
    (NamespaceId.PROJECT_COMMENTS, "Project comments", NamespaceId.PROJECT, True),
    (NamespaceId.FILE, "File", None, False),
    (NamespaceId.FILE_COMMENTS, "File comments", NamespaceId.FILE, False),
    (NamespaceId.SYSTEM, "System", None, True),
    (NamespaceId.SYSTEM_COMMENTS, "System comments", NamespaceId.SYSTEM, True),
    (NamespaceId.TEMPLATE, "Template", None, True),
    (NamespaceId.TEMPLATE_COMMENTS, "Template comments", NamespaceId.TEMPLATE, True),
    (NamespaceId.HELP, "Help", None, True),
    (NamespaceId.HELP_COMMENTS, "Help comments", NamespaceId.HELP, True),
    (NamespaceId.CATEGORY, "Category", None, False),
    (NamespaceId.CATEGORY_COMMENTS, "Category comments", NamespaceId.CATEGORY, False),
)


# -----------------------------------------------------------------------------

def validate_namespace_name(
    label: str,
    existing: list[Namespace],
    namespace_id: Optional[int] = None,
    tenant: Optional[str] = None,
) -> None:
    """
    A label must not carry surrounding whitespace, must avoid characters that
    break name parsing, and must not collide with any other namespace label.
    """
    if label != label.strip():
        raise DataValidationError("admin.vwiki.error.namespace.whitespace", label)
    if any(c in _INVALID_LABEL_CHARS for c in label):
        raise DataValidationError("admin.vwiki.error.namespace.characters", label)
    folded = label.casefold()
    for other in existing:
        if other.namespace_id == namespace_id:
            continue
        if folded in (other.label.casefold(), other.label_for(tenant).casefold()):
            raise DataValidationError("admin.vwiki.error.namespace.unique", label)


# -----------------------------------------------------------------------------

class NamespaceService:

    def __init__(
        self,
        backend: BackingStore,
        cache: CacheManager,
        tenants: TenantService,
        settings: Settings,
    ) -> None:
        self.backend = backend
        self.cache = cache
        self.tenants = tenants
        self.settings = settings

    # ── Reads ──────────────────────────────────────────────────────────────

    async def lookup_namespaces(self) -> list[Namespace]:
        use_cache = not self.backend.in_transaction
        if use_cache:
            namespaces, present = self.cache.namespace_list.get(_NAMESPACE_LIST_KEY)
            if present:
                return [ns.model_copy(deep=True) for ns in namespaces]

        rows = await self.backend.scalars(select(NamespaceRow).order_by(NamespaceRow.namespace_id))
        translations = await self.backend.fetch_all(
            select(
                NamespaceTranslationRow.namespace_id,
                NamespaceTranslationRow.tenant_id,
                NamespaceTranslationRow.label,
            )
        )
        tenant_names = await self.tenants.tenant_names_by_id()
        by_namespace: dict[int, dict[str, str]] = {}
        for namespace_id, tenant_id, label in translations:
            tenant_name = tenant_names.get(tenant_id)
            if tenant_name is None:
                logger.warning("Namespace translation for unknown tenant id %s", tenant_id)
                continue
            by_namespace.setdefault(namespace_id, {})[tenant_name] = label

        namespaces = [
            Namespace(
                namespace_id=row.namespace_id,
                label=row.label,
                main_namespace_id=row.main_namespace_id,
                case_sensitive=row.case_sensitive,
                translations=by_namespace.get(row.namespace_id, {}),
            )
            for row in rows
        ]
        if use_cache:
            self.cache.namespace_list.put(_NAMESPACE_LIST_KEY, namespaces)
        return [ns.model_copy(deep=True) for ns in namespaces]

    async def lookup_namespace_by_id(self, namespace_id: int) -> Optional[Namespace]:
        for namespace in await self.lookup_namespaces():
            if namespace.namespace_id == namespace_id:
                return namespace
        return None

    async def lookup_namespace(self, tenant: Optional[str], label: str) -> Optional[Namespace]:
        """
        Find a namespace by label.  The tenant's translated label wins over
        the default label; comparison ignores case.
        """
        if label is None:
            return None
        folded = label.strip().casefold()
        namespaces = await self.lookup_namespaces()
        for namespace in namespaces:
            if namespace.label_for(tenant).casefold() == folded:
                return namespace
        for namespace in namespaces:
            if namespace.label.casefold() == folded:
                return namespace
        return None

    async def main_namespace(self) -> Namespace:
        namespace = await self.lookup_namespace_by_id(NamespaceId.MAIN)
        if namespace is None:
            raise DataValidationError("common.exception.nonamespace", NamespaceId.MAIN)
        return namespace

    async def next_namespace_id(self) -> int:
        namespaces = await self.lookup_namespaces()
        return max((ns.namespace_id for ns in namespaces), default=0) + 1

    # ── Writes ─────────────────────────────────────────────────────────────

    def _flush(self) -> None:
        self.cache.namespace_list.invalidate_all()
        # topic cache keys embed namespace labels
        self.cache.topic_ids_by_name.invalidate_all()
        self.cache.topic_names_by_name.invalidate_all()

    async def write_namespace(self, namespace: Namespace) -> Namespace:
        """Insert *namespace* if its id is unknown, otherwise update it."""
        validate_model(namespace)

        async def _write(session) -> Namespace:
            existing = await self.lookup_namespaces()
            validate_namespace_name(namespace.label, existing, namespace.namespace_id)
            stored = await self.backend.get(NamespaceRow, namespace.namespace_id)
            if stored is None:
                await self.backend.add(NamespaceRow(
                    namespace_id=namespace.namespace_id,
                    label=namespace.label,
                    main_namespace_id=namespace.main_namespace_id,
                    case_sensitive=namespace.case_sensitive,
                ))
            else:
                await self.backend.execute(
                    update(NamespaceRow)
                    .where(NamespaceRow.namespace_id == namespace.namespace_id)
                    .values(
                        label=namespace.label,
                        main_namespace_id=namespace.main_namespace_id,
                        case_sensitive=namespace.case_sensitive,
                    )
                )
            self.backend.after_commit(self._flush)
            return namespace

        return await self.backend.run_in_transaction(_write)

    async def write_namespace_translations(self, namespaces: list[Namespace], tenant: str) -> None:
        """
        Replace all label translations for *tenant*.  A translation that is
        blank or equal to the default label is simply not stored.
        """
        async def _write(session) -> None:
            tenant_id = await self.tenants.lookup_tenant_id(tenant)
            existing = await self.lookup_namespaces()
            await self.backend.execute(
                delete(NamespaceTranslationRow).where(NamespaceTranslationRow.tenant_id == tenant_id)
            )
            for namespace in namespaces:
                label = namespace.translations.get(tenant)
                if not label or label == namespace.label:
                    continue
                validate_namespace_name(label, existing, namespace.namespace_id, tenant)
                await self.backend.add(NamespaceTranslationRow(
                    namespace_id=namespace.namespace_id,
                    tenant_id=tenant_id,
                    label=label,
                ))
            self.backend.after_commit(self._flush)

        await self.backend.run_in_transaction(_write)

    async def seed_defaults(self) -> int:
        """Insert any default namespace that is missing; returns the count added."""
        async def _seed(session) -> int:
            present = set(await self.backend.scalars(select(NamespaceRow.namespace_id)))
            added = 0
            # main namespaces first so the self-reference is satisfied
            for namespace_id, label, main_id, case_sensitive in sorted(
                DEFAULT_NAMESPACES, key=lambda d: d[2] is not None
            ):
                if namespace_id in present:
                    continue
                await self.backend.add(NamespaceRow(
                    namespace_id=int(namespace_id),
                    label=label,
                    main_namespace_id=None if main_id is None else int(main_id),
                    case_sensitive=case_sensitive,
                ))
                added += 1
            self.backend.after_commit(self._flush)
            return added

        added = await self.backend.run_in_transaction(_seed)
        if added:
            logger.info("Seeded %d default namespaces", added)
        return added


# -----------------------------------------------------------------------------
