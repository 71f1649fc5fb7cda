#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Topic store
===========
Write side of the versioned content store.  Every public operation runs in
one backing-store transaction; operations built from other operations
(delete, undelete, move) join the enclosing transaction, so a failure at
any step rolls back every row written by the whole operation.

Revision ordering
-----------------
A new revision is inserted *before* the topic row is pointed at it.  The
topic's ``current_version_id`` is a foreign key into ``topic_versions``,
so the reverse order would fail on any backend that checks constraints.

Denormalised content
--------------------
``Topic.topic_content`` mirrors the content of the current revision.  It
is only ever changed here, in the same transaction that moves the current
pointer.

Caches are touched only from after-commit callbacks; a rolled back write
leaves them exactly as they were.  The same holds for the caller's Topic
and TopicVersion objects: each operation works on copies and hands the
new ids and content back only after its transaction has succeeded.  Inside
a transaction the caller opened, that is when the operation returns.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import time
from typing import Optional

from wikistore.core.errors import DataValidationError
from wikistore.schemas import (
    Category, EditType, Namespace, Topic, TopicType, TopicVersion, WikiUser,
    build_model, copy_model_state, utcnow, validate_model,
)
from wikistore.services.lookup import TopicLookup
from wikistore.services.names import MAX_PAGE_NAME_LENGTH, NameResolver


logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

class TopicStore(TopicLookup):

    # ━━ Create / update ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    async def write_topic(
        self,
        topic: Topic,
        version: Optional[TopicVersion] = None,
        categories: Optional[dict[str, Optional[str]]] = None,
        links: Optional[list[str]] = None,
    ) -> Topic:
        """
        Insert or update *topic*.

        With *version* the revision is chained onto the current one, the
        topic is pointed at it and the change log is written.  Without it
        the topic row is updated in place and no audit trail is created.

        *categories* and *links* replace the stored associations; None
        leaves them untouched.  A deleted topic never keeps associations.

        The transaction works on copies; *topic* and *version* receive the
        new ids only once it has succeeded.
        """
        start = time.perf_counter()
        await self.names.validate_topic_name(topic.tenant, topic.name)
        draft = topic.model_copy(deep=True)
        draft_version = None if version is None else version.model_copy(deep=True)

        async def _write(session) -> Topic:
            tenant_id = await self.tenants.lookup_tenant_id(draft.tenant)
            previous_content = ""
            old_name = None
            if draft.topic_id > 0:
                stored = await self.queries.lookup_topic_by_id(draft.topic_id)
                if stored is None:
                    raise DataValidationError("common.exception.notopic", draft.name)
                previous_content = stored.topic_content
                old_name = await self._stored_name(stored.namespace_id, stored.page_name)

            if draft_version is not None:
                draft.topic_content = draft_version.version_content
            if draft.topic_id <= 0:
                validate_model(draft)
                draft.topic_id = await self.queries.insert_topic(draft, tenant_id)
            elif draft_version is None:
                validate_model(draft)
                await self.queries.update_topic(draft, tenant_id)

            if draft_version is not None:
                if draft_version.previous_topic_version_id is None and draft.current_version_id is not None:
                    draft_version.previous_topic_version_id = draft.current_version_id
                draft_version.topic_id = draft.topic_id
                if draft_version.characters_changed is None:
                    draft_version.characters_changed = len(draft_version.version_content) - len(previous_content)
                validate_model(draft_version)
                draft_version.topic_version_id = await self.queries.insert_topic_version(draft_version)
                # only now may the topic point at the revision
                draft.current_version_id = draft_version.topic_version_id
                validate_model(draft)
                await self.queries.update_topic(draft, tenant_id)
                author_name = await self.users.author_name(draft_version.author_id, draft_version.author_display)
                await self.changelog.record_revision(draft, draft_version, author_name)

            if categories is not None:
                await self.queries.delete_topic_categories(draft.topic_id)
                if not draft.is_deleted and categories:
                    for name, sort_key in categories.items():
                        build_model(
                            Category, tenant=draft.tenant, name=name, sort_key=sort_key,
                            child_topic_name=draft.name,
                        )
                    await self.queries.insert_categories(draft.topic_id, categories)
            if links is not None:
                await self.queries.delete_topic_links(draft.topic_id)
                if not draft.is_deleted and links:
                    await self.queries.insert_topic_links(draft.topic_id, await self._link_targets(draft.tenant, links))

            snapshot = draft.model_copy(deep=True)
            indexed = draft_version is not None
            self.backend.after_commit(lambda: self._after_write(snapshot, old_name, indexed))
            return draft

        await self.backend.run_in_transaction(_write)
        copy_model_state(topic, draft)
        if version is not None:
            copy_model_state(version, draft_version)
        logger.debug(
            "Wrote topic %s/%s [categories: %s, links: %s] in %.3f s",
            topic.tenant, topic.name, categories is not None, links is not None,
            time.perf_counter() - start,
        )
        return topic

    async def _stored_name(self, namespace_id: int, page_name: str) -> Optional[tuple[Namespace, str]]:
        namespace = await self.namespaces.lookup_namespace_by_id(namespace_id)
        return None if namespace is None else (namespace, page_name)

    async def _link_targets(self, tenant: str, links: list[str]) -> list[tuple[int, str]]:
        """(namespace id, page name) per distinct link; over-long targets are dropped."""
        targets: list[tuple[int, str]] = []
        seen: set[tuple[int, str]] = set()
        for link in links:
            if not link or not link.strip() or len(link) > MAX_PAGE_NAME_LENGTH:
                continue
            namespace, page_name = await self.names.split_topic_name(tenant, link)
            if not page_name:
                continue
            target = (namespace.namespace_id, self._link_page_name(page_name))
            if target not in seen:
                seen.add(target)
                targets.append(target)
        return targets

    async def _after_write(
        self, topic: Topic, old_name: Optional[tuple[Namespace, str]], indexed: bool,
    ) -> None:
        if old_name is not None:
            self._invalidate_name(NameResolver.cache_key(topic.tenant, *old_name))
            await self._invalidate_fallback_names(topic.tenant, *old_name)
        self.cache_topic_refresh(topic, True, None)
        await self._invalidate_fallback_names(topic.tenant, topic.namespace, topic.page_name)
        if not indexed:
            return
        try:
            if topic.is_deleted:
                await self.search.delete_from_index(topic)
            else:
                await self.search.update_in_index(topic)
        except Exception:
            logger.exception("Search index update failed for %s/%s", topic.tenant, topic.name)

    async def _invalidate_fallback_names(self, shared: str, namespace: Namespace, page_name: str) -> None:
        """
        Tenants that fall back to *shared* may hold this name, or a
        confirmed miss for it, under their own keys.
        """
        for tenant in await self.tenants.get_tenants():
            if self.names.shared_tenant_for(tenant.name, namespace) == shared:
                self._invalidate_name(NameResolver.cache_key(tenant.name, namespace, page_name))

    async def write_topic_versions(self, topic: Topic, versions: list[TopicVersion]) -> list[TopicVersion]:
        """
        Bulk-insert revisions for an existing topic without touching the
        topic row.  Import only; callers fix the chain with
        ``order_topic_versions`` afterwards.
        """
        if topic is None or not versions:
            logger.warning("write_topic_versions called without a topic or revisions")
            return []
        drafts = [version.model_copy(deep=True) for version in versions]

        async def _write(session) -> None:
            for draft in drafts:
                draft.topic_id = topic.topic_id
                validate_model(draft)
                draft.topic_version_id = await self.queries.insert_topic_version(draft)

        await self.backend.run_in_transaction(_write)
        for version, draft in zip(versions, drafts):
            copy_model_state(version, draft)
        return versions

    # ━━ Delete / undelete ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    async def delete_topic(self, topic: Topic, version: Optional[TopicVersion] = None) -> Topic:
        """
        Soft-delete *topic*: empty content, no associations, delete date set.
        Without *version* nothing is logged (internal cleanup).
        """
        draft = topic.model_copy(deep=True)
        draft_version = None if version is None else version.model_copy(deep=True)

        async def _delete(session) -> None:
            if draft_version is not None:
                # the live projection goes; the audit trail stays
                await self.changelog.delete_recent_changes(draft.topic_id)
                draft_version.edit_type = EditType.DELETE
                draft_version.version_content = ""
            draft.topic_content = ""
            draft.delete_date = utcnow()
            await self.write_topic(draft, draft_version, {}, [])

        await self.backend.run_in_transaction(_delete)
        copy_model_state(topic, draft)
        if version is not None:
            copy_model_state(version, draft_version)
        return topic

    async def undelete_topic(self, topic: Topic, version: Optional[TopicVersion] = None) -> Topic:
        """
        Restore a deleted topic.  The caller puts the restored content on
        *topic*; categories and links are re-derived from it.
        """
        draft = topic.model_copy(deep=True)
        draft_version = None if version is None else version.model_copy(deep=True)
        if draft_version is not None:
            draft_version.edit_type = EditType.UNDELETE
            if not draft_version.version_content:
                draft_version.version_content = draft.topic_content
        output = self.parser.parse(draft.tenant, draft.name, draft.topic_content)
        draft.delete_date = None
        await self.write_topic(draft, draft_version, output.categories, output.links)
        copy_model_state(topic, draft)
        if version is not None:
            copy_model_state(version, draft_version)
        return topic

    # ━━ Move ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    async def can_move_topic(self, from_topic: Topic, destination: str) -> bool:
        """
        True when *destination* is free, soft-deleted, or a redirect back to
        *from_topic*.  A destination served from another tenant never is.
        """
        to_topic = await self.lookup_topic(from_topic.tenant, destination)
        if to_topic is None:
            return True
        if to_topic.tenant != from_topic.tenant:
            return False
        if to_topic.is_deleted:
            return True
        if not to_topic.redirect_to:
            return False
        return to_topic.redirect_to == from_topic.name

    async def move_topic(
        self,
        from_topic: Topic,
        destination: str,
        user: Optional[WikiUser] = None,
        author_display: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> Topic:
        """
        Rename *from_topic* to *destination* and leave a redirect at the old
        name.  Two revisions are written; only the redirect's shows up in
        recent changes.  *from_topic* is renamed once the move has committed.
        """
        await self.names.validate_topic_name(from_topic.tenant, destination)
        move_version = build_model(
            TopicVersion,
            author_id=None if user is None else user.user_id,
            author_display=author_display,
            edit_comment=comment,
            version_content=from_topic.topic_content,
            edit_type=EditType.MOVE,
            characters_changed=0,
        )
        draft = from_topic.model_copy(deep=True)

        async def _move(session) -> None:
            if not await self.can_move_topic(draft, destination):
                raise DataValidationError("move.exception.destinationexists", destination)
            to_topic = await self.lookup_topic(draft.tenant, destination)
            destination_exists = to_topic is not None
            if destination_exists:
                # a redirect back to the source; it is resurrected below
                await self.delete_topic(to_topic, None)

            old_name = draft.name
            old_namespace, old_page_name = draft.namespace, draft.page_name
            draft.namespace, draft.page_name = await self.names.split_topic_name(draft.tenant, destination)
            from_version = move_version.model_copy(update={
                "recent_change_allowed": False,
                "version_params": f"{old_name}|{draft.name}",
            })
            output = self.parser.parse(draft.tenant, draft.name, draft.topic_content)
            await self.write_topic(draft, from_version, output.categories, output.links)

            if destination_exists:
                to_topic.namespace, to_topic.page_name = old_namespace, old_page_name
                await self.write_topic(to_topic, None)
                await self.undelete_topic(to_topic, None)
            else:
                to_topic = draft.model_copy(deep=True, update={
                    "topic_id": 0,
                    "current_version_id": None,
                    "namespace": old_namespace,
                    "page_name": old_page_name,
                })
            content = self.parser.redirect_content(draft.name)
            to_topic.redirect_to = draft.name
            to_topic.topic_type = TopicType.REDIRECT
            to_topic.topic_content = content
            to_version = from_version.model_copy(update={
                "topic_version_id": 0,
                "previous_topic_version_id": None,
                "version_content": content,
                "characters_changed": None,
                "recent_change_allowed": True,
            })
            output = self.parser.parse(to_topic.tenant, to_topic.name, content)
            await self.write_topic(to_topic, to_version, output.categories, output.links)

        await self.backend.run_in_transaction(_move)
        return copy_model_state(from_topic, draft)

    # ━━ Purge ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    async def purge_topic_version(
        self,
        topic: Topic,
        topic_version_id: int,
        user: Optional[WikiUser] = None,
        author_display: Optional[str] = None,
    ) -> None:
        """
        Permanently remove one revision and splice the chain around it.  The
        only revision of a topic can never be purged.
        """
        version = await self.lookup_topic_version(topic_version_id)
        if version is None or version.topic_id != topic.topic_id:
            raise DataValidationError("purge.error.noversion", topic_version_id)
        previous_id = version.previous_topic_version_id
        next_id = await self.lookup_topic_version_next_id(topic_version_id)
        if previous_id is None and next_id is None:
            raise DataValidationError("purge.error.onlyversion", topic_version_id, topic.name)
        replacement_id = previous_id if previous_id is not None else next_id
        user_id = None if user is None else user.user_id
        draft = topic.model_copy(deep=True)

        async def _purge(session) -> None:
            stored = await self.queries.lookup_topic_by_id(draft.topic_id)
            if stored is not None and stored.current_version_id == topic_version_id:
                replacement = await self.queries.lookup_topic_version(replacement_id)
                draft.current_version_id = replacement_id
                draft.topic_content = replacement.version_content
                validate_model(draft)
                tenant_id = await self.tenants.lookup_tenant_id(draft.tenant)
                await self.queries.update_topic(draft, tenant_id)
            if next_id is not None:
                await self.queries.update_previous_topic_version_id(next_id, previous_id)
            await self.changelog.delete_version_references(topic_version_id, previous_id)
            await self.queries.delete_topic_version(topic_version_id)
            author_name = await self.users.author_name(user_id, author_display)
            await self.changelog.record_purge(draft, version, user_id, author_name)
            snapshot = draft.model_copy(deep=True)
            self.backend.after_commit(lambda: self._after_purge(snapshot, topic_version_id, next_id))

        await self.backend.run_in_transaction(_purge)
        copy_model_state(topic, draft)
        logger.info("Purged revision %s of %s/%s", topic_version_id, topic.tenant, topic.name)

    def _after_purge(self, topic: Topic, topic_version_id: int, next_id: Optional[int]) -> None:
        self.cache.topic_versions.invalidate(topic_version_id)
        if next_id is not None:
            self.cache.topic_versions.invalidate(next_id)
        self.cache.topics_by_id.invalidate(topic.topic_id)
        self.cache.parsed_topic_content.invalidate_case_insensitive(
            NameResolver.cache_key(topic.tenant, topic.namespace, topic.page_name)
        )

    # ━━ Import utilities ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    async def order_topic_versions(self, topic: Topic, topic_version_ids: list[int]) -> Topic:
        """
        Relink the revisions of *topic* in the given oldest-to-newest order
        and make the last one current.
        """
        if not topic_version_ids:
            logger.warning("order_topic_versions called with no revision ids for %s", topic.name)
            return topic
        if len(set(topic_version_ids)) != len(topic_version_ids):
            raise DataValidationError("import.error.versionorder", topic.name)
        draft = topic.model_copy(deep=True)

        async def _order(session) -> None:
            rows = {row.topic_version_id: row for row in await self.queries.lookup_topic_versions(draft.topic_id)}
            for topic_version_id in topic_version_ids:
                if topic_version_id not in rows:
                    raise DataValidationError("purge.error.noversion", topic_version_id)
            previous_id = None
            for topic_version_id in topic_version_ids:
                await self.queries.update_previous_topic_version_id(topic_version_id, previous_id)
                previous_id = topic_version_id
            current = rows[topic_version_ids[-1]]
            draft.current_version_id = current.topic_version_id
            draft.topic_content = current.version_content
            validate_model(draft)
            tenant_id = await self.tenants.lookup_tenant_id(draft.tenant)
            await self.queries.update_topic(draft, tenant_id)
            snapshot = draft.model_copy(deep=True)
            ids = list(topic_version_ids)
            self.backend.after_commit(lambda: self._after_order(snapshot, ids))

        await self.backend.run_in_transaction(_order)
        return copy_model_state(topic, draft)

    def _after_order(self, topic: Topic, topic_version_ids: list[int]) -> None:
        for topic_version_id in topic_version_ids:
            self.cache.topic_versions.invalidate(topic_version_id)
        self.cache_topic_refresh(topic, True, None)

    async def rebuild_topic_metadata(self) -> int:
        """Re-derive categories and links of every live topic; returns the count."""
        count = 0
        for tenant in await self.tenants.get_tenants():
            for row in await self.queries.lookup_topic_rows(tenant.tenant_id):
                topic = await self._to_topic(row)
                if topic is None:
                    continue
                output = self.parser.parse(topic.tenant, topic.name, topic.topic_content)
                await self.write_topic(topic, None, output.categories, output.links)
                count += 1
        logger.info("Rebuilt categories and links for %d topics", count)
        return count


# -----------------------------------------------------------------------------
