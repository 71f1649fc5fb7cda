#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Tenant service: create, update and look up tenants ("virtual wikis").

The full tenant list is small and read on nearly every operation, so it is
cached as one entry and flushed whenever a tenant is written.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import re
from typing import Optional

from sqlalchemy import select, update

from wikistore.backend import BackingStore
from wikistore.core.config import Settings
from wikistore.core.errors import DataValidationError
from wikistore.models import TenantRow
from wikistore.schemas import Tenant, validate_model
from wikistore.services.cache import CacheManager


logger = logging.getLogger(__name__)

_TENANT_LIST_KEY = "tenants"
_TENANT_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


# -----------------------------------------------------------------------------

def validate_tenant_name(name: str) -> None:
    """Tenant names appear in cache keys and URLs: letters, digits, - and _."""
    if not name or not name.strip():
        raise DataValidationError("admin.vwiki.error.name.blank")
    if not _TENANT_NAME_RE.match(name):
        raise DataValidationError("admin.vwiki.error.name.invalid", name)


# -----------------------------------------------------------------------------

class TenantService:

    def __init__(self, backend: BackingStore, cache: CacheManager, settings: Settings) -> None:
        self.backend = backend
        self.cache = cache
        self.settings = settings

    # ── Reads ──────────────────────────────────────────────────────────────

    async def get_tenants(self) -> list[Tenant]:
        use_cache = not self.backend.in_transaction
        if use_cache:
            tenants, present = self.cache.tenant_list.get(_TENANT_LIST_KEY)
            if present:
                return [t.model_copy() for t in tenants]
        rows = await self.backend.scalars(select(TenantRow).order_by(TenantRow.tenant_id))
        tenants = [Tenant.model_validate(row) for row in rows]
        if use_cache:
            self.cache.tenant_list.put(_TENANT_LIST_KEY, tenants)
        return [t.model_copy() for t in tenants]

    async def lookup_tenant(self, name: Optional[str]) -> Optional[Tenant]:
        if not name:
            return None
        for tenant in await self.get_tenants():
            if tenant.name == name:
                return tenant
        return None

    async def lookup_tenant_by_id(self, tenant_id: int) -> Optional[Tenant]:
        for tenant in await self.get_tenants():
            if tenant.tenant_id == tenant_id:
                return tenant
        return None

    async def lookup_tenant_id(self, name: str) -> int:
        """Return the id for *name*; writing to an unknown tenant is an input error."""
        tenant = await self.lookup_tenant(name)
        if tenant is None:
            raise DataValidationError("common.exception.novirtualwiki", name)
        return tenant.tenant_id

    async def tenant_names_by_id(self) -> dict[int, str]:
        return {t.tenant_id: t.name for t in await self.get_tenants()}

    # ── Writes ─────────────────────────────────────────────────────────────

    async def write_tenant(self, tenant: Tenant) -> Tenant:
        """
        Insert *tenant* when it has no id, otherwise update its display
        metadata.  The name of an existing tenant cannot change.
        """
        validate_tenant_name(tenant.name)
        validate_model(tenant)

        async def _write(session) -> Tenant:
            if tenant.tenant_id <= 0:
                existing = await self.backend.scalar(
                    select(TenantRow.tenant_id).where(TenantRow.name == tenant.name)
                )
                if existing is not None:
                    raise DataValidationError("admin.vwiki.error.exists", tenant.name)
                row = TenantRow(
                    name=tenant.name,
                    root_topic_name=tenant.root_topic_name,
                    site_name=tenant.site_name,
                    logo_image_url=tenant.logo_image_url,
                    meta_description=tenant.meta_description,
                )
                await self.backend.add(row)
                tenant.tenant_id = row.tenant_id
                tenant.create_date = row.create_date
            else:
                stored = await self.backend.get(TenantRow, tenant.tenant_id)
                if stored is None:
                    raise DataValidationError("common.exception.novirtualwiki", tenant.name)
                if stored.name != tenant.name:
                    raise DataValidationError("admin.vwiki.error.name.immutable", stored.name)
                await self.backend.execute(
                    update(TenantRow)
                    .where(TenantRow.tenant_id == tenant.tenant_id)
                    .values(
                        root_topic_name=tenant.root_topic_name,
                        site_name=tenant.site_name,
                        logo_image_url=tenant.logo_image_url,
                        meta_description=tenant.meta_description,
                    )
                )
            # flush only once the write is durable
            self.backend.after_commit(lambda: self.cache.tenant_list.invalidate_all())
            return tenant

        return await self.backend.run_in_transaction(_write)


# -----------------------------------------------------------------------------
