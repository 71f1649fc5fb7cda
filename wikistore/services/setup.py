#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Database setup: create the schema on first start and seed the rows every
store needs (default namespaces, the default tenant and, when configured,
the shared upload tenant).  Safe to run on every start.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from wikistore.schemas import Tenant

if TYPE_CHECKING:
    from wikistore.main import WikiStore


logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

async def setup_database(store: "WikiStore") -> bool:
    """Returns True when the schema had to be created."""
    created = False
    if not await store.backend.schema_exists():
        logger.info("No schema found; creating it")
        await store.backend.create_schema()
        created = True

    await store.namespaces.seed_defaults()

    names = [store.settings.default_tenant]
    if store.settings.uses_shared_upload_tenant:
        names.append(store.settings.shared_upload_tenant.strip())
    for name in names:
        if await store.tenants.lookup_tenant(name) is None:
            await store.tenants.write_tenant(Tenant(name=name, root_topic_name="StartingPoints"))
            logger.info("Created tenant %s", name)
    return created


# -----------------------------------------------------------------------------
