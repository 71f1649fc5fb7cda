#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Change / audit log
==================
Two side tables written inside the same transaction as the content change
that caused them:

  log_items       append-only audit trail, one row per revision plus one
                  per purge
  recent_changes  display projection; can be thrown away and rebuilt from
                  revisions and log items at any time

Revision edit types map onto log types as follows:

  NORMAL / MINOR / REVERT  -> EDIT
  DELETE                   -> DELETE / DELETE_DELETE
  UNDELETE                 -> DELETE / DELETE_UNDELETE
  MOVE                     -> MOVE / MOVE_MOVE
  PERMISSION               -> PERMISSION / PERMISSION_PERMISSION
  IMPORT                   -> IMPORT / IMPORT_IMPORT
  UPLOAD                   -> UPLOAD / UPLOAD_UPLOAD
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, or_, select, update

from wikistore.backend import BackingStore
from wikistore.core.config import Settings
from wikistore.models import LogItemRow, RecentChangeRow, TopicRow, TopicVersionRow
from wikistore.schemas import (
    EditType, LogItem, LogSubType, LogType, Namespace, Pagination,
    RecentChange, Topic, TopicVersion, validate_model,
)
from wikistore.services.names import NameResolver
from wikistore.services.namespaces import NamespaceService
from wikistore.services.queries import topic_version_from_row
from wikistore.services.tenants import TenantService
from wikistore.services.users import UserService


logger = logging.getLogger(__name__)

_LOG_TYPES: dict[EditType, tuple[LogType, Optional[LogSubType]]] = {
    EditType.NORMAL: (LogType.EDIT, None),
    EditType.MINOR: (LogType.EDIT, None),
    EditType.REVERT: (LogType.EDIT, None),
    EditType.DELETE: (LogType.DELETE, LogSubType.DELETE_DELETE),
    EditType.UNDELETE: (LogType.DELETE, LogSubType.DELETE_UNDELETE),
    EditType.MOVE: (LogType.MOVE, LogSubType.MOVE_MOVE),
    EditType.PERMISSION: (LogType.PERMISSION, LogSubType.PERMISSION_PERMISSION),
    EditType.IMPORT: (LogType.IMPORT, LogSubType.IMPORT_IMPORT),
    EditType.UPLOAD: (LogType.UPLOAD, LogSubType.UPLOAD_UPLOAD),
}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Builders
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def log_item_for_revision(topic: Topic, version: TopicVersion, author_name: Optional[str]) -> LogItem:
    return _revision_log_item(topic.tenant, topic.topic_id, topic.name, version, author_name)


def _revision_log_item(
    tenant: str,
    topic_id: int,
    topic_name: str,
    version: TopicVersion,
    author_name: Optional[str],
) -> LogItem:
    log_type, sub_type = _LOG_TYPES[EditType(version.edit_type)]
    return LogItem(
        tenant=tenant,
        log_date=version.edit_date,
        log_comment=version.edit_comment,
        log_params=version.version_params or topic_name,
        log_type=log_type,
        log_sub_type=sub_type,
        user_id=version.author_id,
        user_display=author_name,
        topic_id=topic_id,
        topic_version_id=version.topic_version_id,
    )


def log_item_for_purge(
    topic: Topic, version: TopicVersion, user_id: Optional[int], author_name: Optional[str]
) -> LogItem:
    return LogItem(
        tenant=topic.tenant,
        log_params=f"{topic.name}|{version.topic_version_id}",
        log_type=LogType.DELETE,
        log_sub_type=LogSubType.DELETE_PURGE,
        user_id=user_id,
        user_display=author_name,
        topic_id=topic.topic_id,
        topic_version_id=version.topic_version_id,
    )


def recent_change_for_log_item(
    item: LogItem, topic_name: Optional[str], version: Optional[TopicVersion] = None
) -> RecentChange:
    change = RecentChange(
        tenant=item.tenant,
        topic_id=item.topic_id,
        topic_name=topic_name,
        topic_version_id=item.topic_version_id,
        author_id=item.user_id,
        author_name=item.user_display,
        change_date=item.log_date,
        change_comment=item.log_comment,
    )
    if item.log_type != LogType.EDIT:
        change.log_type = item.log_type
        change.log_sub_type = item.log_sub_type
        change.log_params = item.log_params
    if version is not None:
        change.previous_topic_version_id = version.previous_topic_version_id
        change.characters_changed = version.characters_changed
        change.edit_type = version.edit_type
    return change


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Service
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ChangeLog:

    def __init__(
        self,
        backend: BackingStore,
        tenants: TenantService,
        namespaces: NamespaceService,
        users: UserService,
        settings: Settings,
    ) -> None:
        self.backend = backend
        self.tenants = tenants
        self.namespaces = namespaces
        self.users = users
        self.settings = settings

    # ── Writes (called inside the caller's transaction) ───────────────────

    async def insert_log_item(self, item: LogItem) -> LogItem:
        validate_model(item)
        tenant_id = await self.tenants.lookup_tenant_id(item.tenant)
        row = LogItemRow(
            tenant_id=tenant_id,
            log_date=item.log_date,
            log_comment=item.log_comment,
            log_params=item.log_params,
            log_type=int(item.log_type),
            log_sub_type=None if item.log_sub_type is None else int(item.log_sub_type),
            user_id=item.user_id,
            user_display=item.user_display,
            topic_id=item.topic_id,
            topic_version_id=item.topic_version_id,
        )
        await self.backend.add(row)
        item.log_id = row.log_id
        return item

    async def insert_recent_change(self, change: RecentChange) -> RecentChange:
        validate_model(change)
        tenant_id = await self.tenants.lookup_tenant_id(change.tenant)
        row = RecentChangeRow(
            tenant_id=tenant_id,
            topic_id=change.topic_id,
            topic_name=change.topic_name,
            topic_version_id=change.topic_version_id,
            previous_topic_version_id=change.previous_topic_version_id,
            author_id=change.author_id,
            author_name=change.author_name,
            change_date=change.change_date,
            change_comment=change.change_comment,
            characters_changed=change.characters_changed,
            edit_type=None if change.edit_type is None else int(change.edit_type),
            log_type=None if change.log_type is None else int(change.log_type),
            log_sub_type=None if change.log_sub_type is None else int(change.log_sub_type),
            log_params=change.log_params,
        )
        await self.backend.add(row)
        change.change_id = row.change_id
        return change

    async def record_revision(
        self, topic: Topic, version: TopicVersion, author_name: Optional[str]
    ) -> tuple[LogItem, Optional[RecentChange]]:
        """One log item per revision; a recent change unless the revision opts out."""
        item = await self.insert_log_item(log_item_for_revision(topic, version, author_name))
        change = None
        if version.recent_change_allowed:
            change = await self.insert_recent_change(
                recent_change_for_log_item(item, topic.name, version)
            )
        return item, change

    async def record_purge(
        self,
        topic: Topic,
        version: TopicVersion,
        user_id: Optional[int],
        author_name: Optional[str],
    ) -> LogItem:
        item = await self.insert_log_item(log_item_for_purge(topic, version, user_id, author_name))
        await self.insert_recent_change(recent_change_for_log_item(item, topic.name))
        return item

    async def delete_recent_changes(self, topic_id: int) -> None:
        await self.backend.execute(delete(RecentChangeRow).where(RecentChangeRow.topic_id == topic_id))

    async def delete_version_references(
        self, topic_version_id: int, previous_topic_version_id: Optional[int]
    ) -> None:
        """Drop every row pointing at a purged revision and splice recent-change back-links."""
        await self.backend.execute(
            update(RecentChangeRow)
            .where(RecentChangeRow.previous_topic_version_id == topic_version_id)
            .values(previous_topic_version_id=previous_topic_version_id)
        )
        await self.backend.execute(
            delete(RecentChangeRow).where(RecentChangeRow.topic_version_id == topic_version_id)
        )
        await self.backend.execute(
            delete(LogItemRow).where(LogItemRow.topic_version_id == topic_version_id)
        )

    # ── Reads ──────────────────────────────────────────────────────────────

    @staticmethod
    def _order(column, descending: bool):
        return column.desc() if descending else column.asc()

    async def get_recent_changes(
        self,
        tenant: str,
        pagination: Optional[Pagination] = None,
        descending: bool = True,
    ) -> list[RecentChange]:
        pagination = pagination or Pagination()
        tenant_id = await self.tenants.lookup_tenant_id(tenant)
        rows = await self.backend.scalars(
            select(RecentChangeRow)
            .where(RecentChangeRow.tenant_id == tenant_id)
            .order_by(
                self._order(RecentChangeRow.change_date, descending),
                self._order(RecentChangeRow.change_id, descending),
            )
            .offset(pagination.offset)
            .limit(pagination.num_results)
        )
        return [self._recent_change(row, tenant) for row in rows]

    async def get_log_items(
        self,
        tenant: str,
        log_type: Optional[LogType] = None,
        pagination: Optional[Pagination] = None,
        descending: bool = True,
    ) -> list[LogItem]:
        pagination = pagination or Pagination()
        tenant_id = await self.tenants.lookup_tenant_id(tenant)
        stmt = select(LogItemRow).where(LogItemRow.tenant_id == tenant_id)
        if log_type is not None:
            stmt = stmt.where(LogItemRow.log_type == int(log_type))
        rows = await self.backend.scalars(
            stmt.order_by(
                self._order(LogItemRow.log_date, descending),
                self._order(LogItemRow.log_id, descending),
            )
            .offset(pagination.offset)
            .limit(pagination.num_results)
        )
        return [
            LogItem(
                log_id=row.log_id,
                tenant=tenant,
                log_date=row.log_date,
                log_comment=row.log_comment,
                log_params=row.log_params,
                log_type=LogType(row.log_type),
                log_sub_type=None if row.log_sub_type is None else LogSubType(row.log_sub_type),
                user_id=row.user_id,
                user_display=row.user_display,
                topic_id=row.topic_id,
                topic_version_id=row.topic_version_id,
            )
            for row in rows
        ]

    async def get_topic_history(
        self,
        topic: Topic,
        pagination: Optional[Pagination] = None,
        descending: bool = True,
    ) -> list[RecentChange]:
        """Every revision of *topic*, as display rows."""
        pagination = pagination or Pagination()
        rows = await self.backend.scalars(
            select(TopicVersionRow)
            .where(TopicVersionRow.topic_id == topic.topic_id)
            .order_by(
                self._order(TopicVersionRow.edit_date, descending),
                self._order(TopicVersionRow.topic_version_id, descending),
            )
            .offset(pagination.offset)
            .limit(pagination.num_results)
        )
        return [await self._version_change(row, topic.tenant, topic.name) for row in rows]

    async def get_user_contributions(
        self,
        tenant: str,
        user: str,
        pagination: Optional[Pagination] = None,
        descending: bool = True,
    ) -> list[RecentChange]:
        """
        Revisions by *user*: a registered username matches on author id,
        anything else on the anonymous display string.
        """
        pagination = pagination or Pagination()
        tenant_id = await self.tenants.lookup_tenant_id(tenant)
        wiki_user = await self.users.lookup_wiki_user_by_name(user)
        if wiki_user is not None:
            author_filter = TopicVersionRow.author_id == wiki_user.user_id
        else:
            author_filter = TopicVersionRow.author_display == user
        rows = await self.backend.fetch_all(
            select(TopicVersionRow, TopicRow)
            .join(TopicRow, TopicRow.topic_id == TopicVersionRow.topic_id)
            .where(TopicRow.tenant_id == tenant_id)
            .where(author_filter)
            .order_by(
                self._order(TopicVersionRow.edit_date, descending),
                self._order(TopicVersionRow.topic_version_id, descending),
            )
            .offset(pagination.offset)
            .limit(pagination.num_results)
        )
        namespaces = await self._namespaces_by_id()
        return [
            await self._version_change(
                version_row,
                tenant,
                self._topic_name(tenant, namespaces, topic_row),
            )
            for version_row, topic_row in rows
        ]

    # ── Rebuilds ───────────────────────────────────────────────────────────

    async def reload_recent_changes(self) -> int:
        """
        Rebuild the recent-change table from the newest revisions (bounded
        by ``max_recent_changes``) plus log items with no surviving revision.
        """
        limit = self.settings.max_recent_changes

        async def _reload(session) -> int:
            await self.backend.execute(delete(RecentChangeRow))
            tenant_names = await self.tenants.tenant_names_by_id()
            namespaces = await self._namespaces_by_id()
            rows = await self.backend.fetch_all(
                select(TopicVersionRow, TopicRow)
                .join(TopicRow, TopicRow.topic_id == TopicVersionRow.topic_id)
                .order_by(TopicVersionRow.edit_date.desc(), TopicVersionRow.topic_version_id.desc())
                .limit(limit)
            )
            count = 0
            for version_row, topic_row in reversed(rows):
                tenant = tenant_names[topic_row.tenant_id]
                change = await self._version_change(
                    version_row, tenant, self._topic_name(tenant, namespaces, topic_row)
                )
                await self.insert_recent_change(change)
                count += 1

            surviving = select(TopicVersionRow.topic_version_id)
            orphans = await self.backend.scalars(
                select(LogItemRow)
                .where(or_(
                    LogItemRow.topic_version_id.is_(None),
                    LogItemRow.topic_version_id.not_in(surviving),
                ))
                .order_by(LogItemRow.log_date, LogItemRow.log_id)
            )
            for row in orphans:
                tenant = tenant_names[row.tenant_id]
                await self.insert_recent_change(RecentChange(
                    tenant=tenant,
                    topic_id=row.topic_id,
                    topic_name=(row.log_params or "").split("|", 1)[0] or None,
                    topic_version_id=row.topic_version_id,
                    author_id=row.user_id,
                    author_name=row.user_display,
                    change_date=row.log_date,
                    change_comment=row.log_comment,
                    log_type=LogType(row.log_type),
                    log_sub_type=None if row.log_sub_type is None else LogSubType(row.log_sub_type),
                    log_params=row.log_params,
                ))
                count += 1
            return count

        count = await self.backend.run_in_transaction(_reload)
        logger.info("Reloaded %d recent changes", count)
        return count

    async def reload_log_items(self) -> int:
        """
        Rebuild every tenant's log from its revisions.  Purge entries have no
        revision left to rebuild from, so they are kept as they are.
        """
        async def _reload(session) -> int:
            count = 0
            namespaces = await self._namespaces_by_id()
            for tenant in await self.tenants.get_tenants():
                await self.backend.execute(
                    delete(LogItemRow)
                    .where(LogItemRow.tenant_id == tenant.tenant_id)
                    .where(or_(
                        LogItemRow.log_sub_type.is_(None),
                        LogItemRow.log_sub_type != int(LogSubType.DELETE_PURGE),
                    ))
                )
                rows = await self.backend.fetch_all(
                    select(TopicVersionRow, TopicRow)
                    .join(TopicRow, TopicRow.topic_id == TopicVersionRow.topic_id)
                    .where(TopicRow.tenant_id == tenant.tenant_id)
                    .order_by(TopicVersionRow.edit_date, TopicVersionRow.topic_version_id)
                )
                for version_row, topic_row in rows:
                    version = topic_version_from_row(version_row)
                    author = await self.users.author_name(version.author_id, version.author_display)
                    await self.insert_log_item(_revision_log_item(
                        tenant.name,
                        topic_row.topic_id,
                        self._topic_name(tenant.name, namespaces, topic_row),
                        version,
                        author,
                    ))
                    count += 1
            return count

        count = await self.backend.run_in_transaction(_reload)
        logger.info("Reloaded %d log items", count)
        return count

    # ── Helpers ────────────────────────────────────────────────────────────

    async def _namespaces_by_id(self) -> dict[int, Namespace]:
        return {ns.namespace_id: ns for ns in await self.namespaces.lookup_namespaces()}

    @staticmethod
    def _topic_name(tenant: str, namespaces: dict[int, Namespace], row: TopicRow) -> str:
        namespace = namespaces.get(row.namespace_id)
        if namespace is None:
            return row.page_name
        return NameResolver.build_topic_name(tenant, namespace, row.page_name)

    async def _version_change(self, row: TopicVersionRow, tenant: str, topic_name: str) -> RecentChange:
        version = topic_version_from_row(row)
        author = await self.users.author_name(version.author_id, version.author_display)
        item = _revision_log_item(tenant, row.topic_id, topic_name, version, author)
        return recent_change_for_log_item(item, topic_name, version)

    @staticmethod
    def _recent_change(row: RecentChangeRow, tenant: str) -> RecentChange:
        return RecentChange(
            change_id=row.change_id,
            tenant=tenant,
            topic_id=row.topic_id,
            topic_name=row.topic_name,
            topic_version_id=row.topic_version_id,
            previous_topic_version_id=row.previous_topic_version_id,
            author_id=row.author_id,
            author_name=row.author_name,
            change_date=row.change_date,
            change_comment=row.change_comment,
            characters_changed=row.characters_changed,
            edit_type=None if row.edit_type is None else EditType(row.edit_type),
            log_type=None if row.log_type is None else LogType(row.log_type),
            log_sub_type=None if row.log_sub_type is None else LogSubType(row.log_sub_type),
            log_params=row.log_params,
        )


# -----------------------------------------------------------------------------
