#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Change Log Tests
================
  - every revision writes a log item; recent changes follow the rules
    for moves, deletes and purges
  - topic history and user contributions
  - rebuilding recent changes and log items from revisions
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest

from wikistore import WikiStore
from wikistore.schemas import (
    EditType, LogSubType, LogType, Pagination, Topic, TopicVersion, WikiUser,
)

from tests.conftest import create_topic, edit_topic


# -----------------------------------------------------------------------------

pytestmark = pytest.mark.asyncio


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 1. Writes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestRecording:
    async def test_edits(self, store: WikiStore):
        topic = await create_topic(store, "Alpha", "one", comment="first")
        second = await edit_topic(store, topic, "one two", comment="second")

        changes = await store.changelog.get_recent_changes("en")
        assert len(changes) == 2
        newest = changes[0]
        assert newest.topic_name == "Alpha"
        assert newest.topic_version_id == second.topic_version_id
        assert newest.previous_topic_version_id == second.previous_topic_version_id
        assert newest.change_comment == "second"
        assert newest.author_name == "127.0.0.1"
        assert newest.characters_changed == 4
        assert newest.edit_type == EditType.NORMAL
        # plain edits carry no log type on the display row
        assert newest.log_type is None

        items = await store.changelog.get_log_items("en")
        assert len(items) == 2
        assert {item.log_type for item in items} == {LogType.EDIT}
        assert items[0].log_params == "Alpha"

    async def test_tenants_are_separate(self, store: WikiStore):
        await create_topic(store, "Alpha", "one")
        await create_topic(store, "Beta", "two", tenant="shared")
        assert [c.topic_name for c in await store.changelog.get_recent_changes("en")] == ["Alpha"]
        assert [c.topic_name for c in await store.changelog.get_recent_changes("shared")] == ["Beta"]

    async def test_move(self, store: WikiStore):
        topic = await create_topic(store, "Alpha", "text")
        await store.topics.move_topic(topic, "Gamma", author_display="127.0.0.1")

        moves = await store.changelog.get_log_items("en", log_type=LogType.MOVE)
        assert len(moves) == 2
        assert all(item.log_sub_type == LogSubType.MOVE_MOVE for item in moves)
        assert all(item.log_params == "Alpha|Gamma" for item in moves)

        changes = await store.changelog.get_recent_changes("en")
        assert len(changes) == 2
        move_change = changes[0]
        assert move_change.topic_name == "Alpha"
        assert move_change.log_type == LogType.MOVE
        assert move_change.log_params == "Alpha|Gamma"

    async def test_delete(self, store: WikiStore):
        topic = await create_topic(store, "Alpha", "one")
        await edit_topic(store, topic, "one two")
        await create_topic(store, "Beta", "other")
        await store.topics.delete_topic(topic, TopicVersion(author_display="admin"))

        changes = await store.changelog.get_recent_changes("en")
        alpha = [c for c in changes if c.topic_id == topic.topic_id]
        assert len(alpha) == 1
        assert alpha[0].log_type == LogType.DELETE
        assert alpha[0].log_sub_type == LogSubType.DELETE_DELETE
        assert alpha[0].edit_type == EditType.DELETE
        assert len(changes) == 2
        # the audit trail keeps everything
        assert len(await store.changelog.get_log_items("en")) == 4

    async def test_purge(self, store: WikiStore):
        topic = await create_topic(store, "Alpha", "one")
        v1_id = topic.current_version_id
        v2 = await edit_topic(store, topic, "one two")
        v3 = await edit_topic(store, topic, "one two three")
        await store.topics.purge_topic_version(topic, v2.topic_version_id, author_display="admin")

        items = await store.changelog.get_log_items("en")
        assert len(items) == 3
        purge = items[0]
        assert purge.log_type == LogType.DELETE
        assert purge.log_sub_type == LogSubType.DELETE_PURGE
        assert purge.log_params == f"Alpha|{v2.topic_version_id}"
        assert purge.user_display == "admin"
        assert v2.topic_version_id not in [i.topic_version_id for i in items[1:]]

        changes = await store.changelog.get_recent_changes("en")
        assert len(changes) == 3
        assert changes[0].log_sub_type == LogSubType.DELETE_PURGE
        latest_edit = [c for c in changes if c.topic_version_id == v3.topic_version_id][0]
        # back-link spliced past the purged revision
        assert latest_edit.previous_topic_version_id == v1_id

    async def test_registered_author(self, store: WikiStore):
        user = await store.users.write_wiki_user(WikiUser(username="alice", display_name="Alice"))
        main = await store.namespaces.main_namespace()
        topic = Topic(tenant="en", namespace=main, page_name="Alpha")
        await store.topics.write_topic(topic, TopicVersion(version_content="x", author_id=user.user_id))

        change = (await store.changelog.get_recent_changes("en"))[0]
        assert change.author_id == user.user_id
        assert change.author_name == "alice"

    async def test_pagination(self, store: WikiStore):
        topic = await create_topic(store, "Alpha", "one")
        await edit_topic(store, topic, "two")
        await edit_topic(store, topic, "three")

        page = await store.changelog.get_recent_changes("en", Pagination(num_results=2, offset=1))
        assert len(page) == 2
        oldest_first = await store.changelog.get_recent_changes("en", descending=False)
        assert oldest_first[0].characters_changed == 3


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 2. History and contributions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestHistory:
    async def test_topic_history(self, store: WikiStore):
        topic = await create_topic(store, "Alpha", "one")
        await edit_topic(store, topic, "one two", author="10.0.0.1")

        history = await store.changelog.get_topic_history(topic)
        assert [h.author_name for h in history] == ["10.0.0.1", "127.0.0.1"]
        assert all(h.topic_name == "Alpha" for h in history)

    async def test_user_contributions(self, store: WikiStore):
        user = await store.users.write_wiki_user(WikiUser(username="alice"))
        topic = await create_topic(store, "Alpha", "one")
        await store.topics.write_topic(
            topic, TopicVersion(version_content="by alice", author_id=user.user_id)
        )
        await create_topic(store, "User:Bob", "anonymous", author="10.0.0.9")

        mine = await store.changelog.get_user_contributions("en", "alice")
        assert [c.topic_name for c in mine] == ["Alpha"]
        anonymous = await store.changelog.get_user_contributions("en", "10.0.0.9")
        assert [c.topic_name for c in anonymous] == ["User:Bob"]
        assert await store.changelog.get_user_contributions("shared", "alice") == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 3. Rebuilds
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestReload:
    async def test_reload_recent_changes(self, store: WikiStore):
        topic = await create_topic(store, "Alpha", "one")
        v2 = await edit_topic(store, topic, "one two")
        await edit_topic(store, topic, "one two three")
        await store.topics.purge_topic_version(topic, v2.topic_version_id)

        # two surviving revisions plus the purge entry
        assert await store.changelog.reload_recent_changes() == 3
        changes = await store.changelog.get_recent_changes("en")
        assert len(changes) == 3
        purge = [c for c in changes if c.log_sub_type == LogSubType.DELETE_PURGE]
        assert len(purge) == 1
        assert purge[0].topic_name == "Alpha"

    async def test_reload_respects_limit(self, store: WikiStore):
        store.changelog.settings = store.settings.model_copy(update={"max_recent_changes": 2})
        topic = await create_topic(store, "Alpha", "one")
        for content in ("two", "three", "four"):
            await edit_topic(store, topic, content)
        assert await store.changelog.reload_recent_changes() == 2

    async def test_reload_log_items(self, store: WikiStore):
        topic = await create_topic(store, "Alpha", "one")
        v2 = await edit_topic(store, topic, "one two")
        await edit_topic(store, topic, "one two three")
        await store.topics.purge_topic_version(topic, v2.topic_version_id)

        assert await store.changelog.reload_log_items() == 2
        items = await store.changelog.get_log_items("en")
        assert len(items) == 3
        assert len([i for i in items if i.log_sub_type == LogSubType.DELETE_PURGE]) == 1


# -----------------------------------------------------------------------------
