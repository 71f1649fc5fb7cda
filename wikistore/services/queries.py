#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Query handler
=============
Statement-level access to the topic, revision, category and link tables.
Every method works on ORM rows and plain ids; converting rows to domain
objects, caching and transaction boundaries belong to the callers.

Topic names are not unique at the database level: a soft-deleted topic can
share its name with a live one (after a move or a re-create).  Name lookups
therefore prefer a live row and fall back to the newest deleted one.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import aliased

from wikistore.backend import BackingStore
from wikistore.models import CategoryRow, TopicLinkRow, TopicRow, TopicVersionRow
from wikistore.schemas import (
    EditType, Namespace, Pagination, Topic, TopicType, TopicVersion,
)


# -----------------------------------------------------------------------------

def _pick(rows: list[TopicRow]) -> Optional[TopicRow]:
    if not rows:
        return None
    live = [row for row in rows if row.delete_date is None]
    return live[-1] if live else rows[-1]


def topic_version_from_row(row: TopicVersionRow) -> TopicVersion:
    return TopicVersion(
        topic_version_id=row.topic_version_id,
        topic_id=row.topic_id,
        edit_comment=row.edit_comment,
        version_content=row.version_content,
        author_id=row.author_id,
        author_display=row.author_display,
        edit_type=EditType(row.edit_type),
        edit_date=row.edit_date,
        previous_topic_version_id=row.previous_topic_version_id,
        characters_changed=row.characters_changed,
        version_params=row.version_params,
    )


def _paginate(stmt, pagination: Optional[Pagination]):
    if pagination is None:
        return stmt
    return stmt.offset(pagination.offset).limit(pagination.num_results)


# -----------------------------------------------------------------------------

class QueryHandler:

    def __init__(self, backend: BackingStore) -> None:
        self.backend = backend

    # ━━ Topics ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    @staticmethod
    def _topic_values(topic: Topic, tenant_id: int) -> dict:
        return dict(
            tenant_id=tenant_id,
            namespace_id=topic.namespace.namespace_id,
            page_name=topic.page_name,
            page_name_lower=topic.page_name.lower(),
            topic_type=int(topic.topic_type),
            read_only=topic.read_only,
            admin_only=topic.admin_only,
            current_version_id=topic.current_version_id,
            delete_date=topic.delete_date,
            redirect_to=topic.redirect_to,
            topic_content=topic.topic_content,
        )

    async def insert_topic(self, topic: Topic, tenant_id: int) -> int:
        row = TopicRow(**self._topic_values(topic, tenant_id))
        await self.backend.add(row)
        return row.topic_id

    async def update_topic(self, topic: Topic, tenant_id: int) -> None:
        await self.backend.execute(
            update(TopicRow)
            .where(TopicRow.topic_id == topic.topic_id)
            .values(**self._topic_values(topic, tenant_id))
        )

    async def lookup_topic(
        self, tenant_id: int, namespace: Namespace, page_name: str
    ) -> Optional[TopicRow]:
        """
        Exact match first; in a case-insensitive namespace a miss is retried
        against the lower-cased name.
        """
        base = (
            select(TopicRow)
            .where(TopicRow.tenant_id == tenant_id)
            .where(TopicRow.namespace_id == namespace.namespace_id)
            .order_by(TopicRow.topic_id)
        )
        row = _pick(await self.backend.scalars(base.where(TopicRow.page_name == page_name)))
        if row is None and not namespace.case_sensitive:
            row = _pick(await self.backend.scalars(
                base.where(TopicRow.page_name_lower == page_name.lower())
            ))
        return row

    async def lookup_topic_by_id(self, topic_id: int) -> Optional[TopicRow]:
        return await self.backend.get(TopicRow, topic_id)

    async def lookup_topic_rows(self, tenant_id: int, include_deleted: bool = False) -> list[TopicRow]:
        stmt = select(TopicRow).where(TopicRow.tenant_id == tenant_id)
        if not include_deleted:
            stmt = stmt.where(TopicRow.delete_date.is_(None))
        return await self.backend.scalars(stmt.order_by(TopicRow.namespace_id, TopicRow.page_name))

    async def lookup_topic_count(self, tenant_id: int, namespace_start: int, namespace_end: int) -> int:
        count = await self.backend.scalar(
            select(func.count())
            .select_from(TopicRow)
            .where(TopicRow.tenant_id == tenant_id)
            .where(TopicRow.delete_date.is_(None))
            .where(TopicRow.namespace_id.between(namespace_start, namespace_end))
        )
        return int(count or 0)

    async def lookup_topic_by_type(
        self,
        tenant_id: int,
        topic_types: Iterable[TopicType],
        namespace_start: int,
        namespace_end: int,
        pagination: Optional[Pagination] = None,
    ) -> list[TopicRow]:
        stmt = (
            select(TopicRow)
            .where(TopicRow.tenant_id == tenant_id)
            .where(TopicRow.delete_date.is_(None))
            .where(TopicRow.topic_type.in_([int(t) for t in topic_types]))
            .where(TopicRow.namespace_id.between(namespace_start, namespace_end))
            .order_by(TopicRow.page_name)
        )
        return await self.backend.scalars(_paginate(stmt, pagination))

    async def get_topics_admin(self, tenant_id: int, pagination: Optional[Pagination] = None) -> list[TopicRow]:
        stmt = (
            select(TopicRow)
            .where(TopicRow.tenant_id == tenant_id)
            .where(TopicRow.delete_date.is_(None))
            .where(TopicRow.admin_only.is_(True))
            .order_by(TopicRow.page_name)
        )
        return await self.backend.scalars(_paginate(stmt, pagination))

    # ━━ Revisions ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    async def insert_topic_version(self, version: TopicVersion) -> int:
        row = TopicVersionRow(
            topic_id=version.topic_id,
            edit_comment=version.edit_comment,
            version_content=version.version_content,
            author_id=version.author_id,
            edit_type=int(version.edit_type),
            author_display=version.author_display,
            edit_date=version.edit_date,
            previous_topic_version_id=version.previous_topic_version_id,
            characters_changed=version.characters_changed or 0,
            version_params=version.version_params,
        )
        await self.backend.add(row)
        return row.topic_version_id

    async def lookup_topic_version(self, topic_version_id: int) -> Optional[TopicVersionRow]:
        return await self.backend.get(TopicVersionRow, topic_version_id)

    async def lookup_topic_version_next_id(self, topic_version_id: int) -> Optional[int]:
        ids = await self.backend.scalars(
            select(TopicVersionRow.topic_version_id)
            .where(TopicVersionRow.previous_topic_version_id == topic_version_id)
            .order_by(TopicVersionRow.topic_version_id)
        )
        return ids[0] if ids else None

    async def lookup_topic_versions(self, topic_id: int) -> list[TopicVersionRow]:
        return await self.backend.scalars(
            select(TopicVersionRow)
            .where(TopicVersionRow.topic_id == topic_id)
            .order_by(TopicVersionRow.topic_version_id)
        )

    async def update_previous_topic_version_id(
        self, topic_version_id: int, previous_topic_version_id: Optional[int]
    ) -> None:
        await self.backend.execute(
            update(TopicVersionRow)
            .where(TopicVersionRow.topic_version_id == topic_version_id)
            .values(previous_topic_version_id=previous_topic_version_id)
        )

    async def delete_topic_version(self, topic_version_id: int) -> None:
        await self.backend.execute(
            delete(TopicVersionRow).where(TopicVersionRow.topic_version_id == topic_version_id)
        )

    # ━━ Categories ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    async def delete_topic_categories(self, topic_id: int) -> None:
        await self.backend.execute(delete(CategoryRow).where(CategoryRow.topic_id == topic_id))

    async def insert_categories(self, topic_id: int, categories: dict[str, Optional[str]]) -> None:
        for name, sort_key in categories.items():
            await self.backend.add(CategoryRow(topic_id=topic_id, category_name=name, sort_key=sort_key))

    async def get_categories(self, tenant_id: int, pagination: Optional[Pagination] = None) -> list[str]:
        stmt = (
            select(CategoryRow.category_name)
            .join(TopicRow, TopicRow.topic_id == CategoryRow.topic_id)
            .where(TopicRow.tenant_id == tenant_id)
            .where(TopicRow.delete_date.is_(None))
            .distinct()
            .order_by(CategoryRow.category_name)
        )
        return await self.backend.scalars(_paginate(stmt, pagination))

    async def lookup_category_topics(self, tenant_id: int, category_name: str) -> list:
        """(CategoryRow, TopicRow) pairs for every live member, case-insensitive on the name."""
        return await self.backend.fetch_all(
            select(CategoryRow, TopicRow)
            .join(TopicRow, TopicRow.topic_id == CategoryRow.topic_id)
            .where(TopicRow.tenant_id == tenant_id)
            .where(TopicRow.delete_date.is_(None))
            .where(func.lower(CategoryRow.category_name) == category_name.lower())
            .order_by(CategoryRow.sort_key, TopicRow.page_name)
        )

    # ━━ Links ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    async def delete_topic_links(self, topic_id: int) -> None:
        await self.backend.execute(delete(TopicLinkRow).where(TopicLinkRow.topic_id == topic_id))

    async def insert_topic_links(self, topic_id: int, targets: Iterable[tuple[int, str]]) -> None:
        for namespace_id, page_name in targets:
            await self.backend.add(TopicLinkRow(
                topic_id=topic_id,
                link_to_namespace_id=namespace_id,
                link_to_page_name=page_name,
            ))

    async def lookup_topic_links(self, tenant_id: int, namespace_id: int, page_name: str) -> list[TopicRow]:
        """Live topics of the tenant that link to the given name."""
        return await self.backend.scalars(
            select(TopicRow)
            .join(TopicLinkRow, TopicLinkRow.topic_id == TopicRow.topic_id)
            .where(TopicRow.tenant_id == tenant_id)
            .where(TopicRow.delete_date.is_(None))
            .where(TopicLinkRow.link_to_namespace_id == namespace_id)
            .where(TopicLinkRow.link_to_page_name == page_name)
            .order_by(TopicRow.namespace_id, TopicRow.page_name)
        )

    async def lookup_topic_link_orphans(self, tenant_id: int, namespace_id: int) -> list[TopicRow]:
        """Live, non-redirect topics in a namespace that nothing in the tenant links to."""
        source = aliased(TopicRow)
        linked = (
            select(TopicLinkRow.topic_id)
            .join(source, source.topic_id == TopicLinkRow.topic_id)
            .where(source.tenant_id == tenant_id)
            .where(TopicLinkRow.link_to_namespace_id == TopicRow.namespace_id)
            .where(TopicLinkRow.link_to_page_name == TopicRow.page_name)
            .exists()
        )
        return await self.backend.scalars(
            select(TopicRow)
            .where(TopicRow.tenant_id == tenant_id)
            .where(TopicRow.namespace_id == namespace_id)
            .where(TopicRow.delete_date.is_(None))
            .where(TopicRow.topic_type != int(TopicType.REDIRECT))
            .where(~linked)
            .order_by(TopicRow.page_name)
        )


# -----------------------------------------------------------------------------
