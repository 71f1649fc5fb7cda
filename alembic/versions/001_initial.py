#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Initial schema: tenants, namespaces, users, topics, revisions, change log

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


# -----------------------------------------------------------------------------

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


# -----------------------------------------------------------------------------

def upgrade() -> None:
    # ── tenants ────────────────────────────────────────────────────────────────
    op.create_table(
        "tenants",
        sa.Column("tenant_id",        sa.Integer(),     primary_key=True, autoincrement=True),
        sa.Column("name",             sa.String(100),   nullable=False),
        sa.Column("root_topic_name",  sa.String(200),   nullable=True),
        sa.Column("site_name",        sa.String(200),   nullable=True),
        sa.Column("logo_image_url",   sa.String(200),   nullable=True),
        sa.Column("meta_description", sa.String(500),   nullable=True),
        sa.Column("create_date",      sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_tenants_name", "tenants", ["name"], unique=True)

    # ── namespaces ─────────────────────────────────────────────────────────────
    op.create_table(
        "namespaces",
        sa.Column("namespace_id",      sa.Integer(),   primary_key=True, autoincrement=False),
        sa.Column("label",             sa.String(200), nullable=False, unique=True),
        sa.Column("main_namespace_id", sa.Integer(),   sa.ForeignKey("namespaces.namespace_id"), nullable=True),
        sa.Column("case_sensitive",    sa.Boolean(),   nullable=False),
    )
    op.create_table(
        "namespace_translations",
        sa.Column("namespace_id", sa.Integer(), sa.ForeignKey("namespaces.namespace_id", ondelete="CASCADE"), primary_key=True),
        sa.Column("tenant_id",    sa.Integer(), sa.ForeignKey("tenants.tenant_id", ondelete="CASCADE"), primary_key=True),
        sa.Column("label",        sa.String(200), nullable=False),
    )

    # ── users ──────────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("user_id",      sa.Integer(),   primary_key=True, autoincrement=True),
        sa.Column("username",     sa.String(100), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("create_date",  sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # ── topics ─────────────────────────────────────────────────────────────────
    # current_version_id gets its foreign key once topic_versions exists
    op.create_table(
        "topics",
        sa.Column("topic_id",           sa.Integer(),   primary_key=True, autoincrement=True),
        sa.Column("tenant_id",          sa.Integer(),   sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("namespace_id",       sa.Integer(),   sa.ForeignKey("namespaces.namespace_id"), nullable=False),
        sa.Column("page_name",          sa.String(200), nullable=False),
        sa.Column("page_name_lower",    sa.String(200), nullable=False),
        sa.Column("topic_type",         sa.Integer(),   nullable=False),
        sa.Column("read_only",          sa.Boolean(),   nullable=False),
        sa.Column("admin_only",         sa.Boolean(),   nullable=False),
        sa.Column("current_version_id", sa.Integer(),   nullable=True),
        sa.Column("delete_date",        sa.DateTime(timezone=True), nullable=True),
        sa.Column("redirect_to",        sa.String(200), nullable=True),
        sa.Column("topic_content",      sa.Text(),      nullable=False),
    )
    op.create_index("ix_topics_tenant_id", "topics", ["tenant_id"])
    op.create_index("ix_topics_tenant_ns_page", "topics", ["tenant_id", "namespace_id", "page_name"])
    op.create_index("ix_topics_tenant_ns_page_lower", "topics", ["tenant_id", "namespace_id", "page_name_lower"])

    # ── topic_versions ─────────────────────────────────────────────────────────
    op.create_table(
        "topic_versions",
        sa.Column("topic_version_id",          sa.Integer(),   primary_key=True, autoincrement=True),
        sa.Column("topic_id",                  sa.Integer(),   sa.ForeignKey("topics.topic_id"), nullable=False),
        sa.Column("edit_comment",              sa.String(200), nullable=True),
        sa.Column("version_content",           sa.Text(),      nullable=False),
        sa.Column("author_id",                 sa.Integer(),   sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("edit_type",                 sa.Integer(),   nullable=False),
        sa.Column("author_display",            sa.String(100), nullable=True),
        sa.Column("edit_date",                 sa.DateTime(timezone=True), nullable=False),
        sa.Column("previous_topic_version_id", sa.Integer(),   sa.ForeignKey("topic_versions.topic_version_id"), nullable=True),
        sa.Column("characters_changed",        sa.Integer(),   nullable=False),
        sa.Column("version_params",            sa.String(500), nullable=True),
    )
    op.create_index("ix_topic_versions_topic_id", "topic_versions", ["topic_id"])
    op.create_index("ix_topic_versions_previous_topic_version_id", "topic_versions", ["previous_topic_version_id"])
    op.create_foreign_key(
        "fk_topics_current_version", "topics", "topic_versions",
        ["current_version_id"], ["topic_version_id"],
    )

    # ── categories / links ─────────────────────────────────────────────────────
    op.create_table(
        "categories",
        sa.Column("topic_id",      sa.Integer(),   sa.ForeignKey("topics.topic_id"), primary_key=True),
        sa.Column("category_name", sa.String(200), primary_key=True),
        sa.Column("sort_key",      sa.String(200), nullable=True),
    )
    op.create_index("ix_categories_category_name", "categories", ["category_name"])
    op.create_table(
        "topic_links",
        sa.Column("topic_id",             sa.Integer(),   sa.ForeignKey("topics.topic_id"), primary_key=True),
        sa.Column("link_to_namespace_id", sa.Integer(),   primary_key=True),
        sa.Column("link_to_page_name",    sa.String(200), primary_key=True),
    )
    op.create_index("ix_topic_links_link_to_page_name", "topic_links", ["link_to_page_name"])

    # ── change log ─────────────────────────────────────────────────────────────
    op.create_table(
        "log_items",
        sa.Column("log_id",           sa.Integer(),   primary_key=True, autoincrement=True),
        sa.Column("tenant_id",        sa.Integer(),   sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("log_date",         sa.DateTime(timezone=True), nullable=False),
        sa.Column("log_comment",      sa.String(200), nullable=True),
        sa.Column("log_params",       sa.String(500), nullable=True),
        sa.Column("log_type",         sa.Integer(),   nullable=False),
        sa.Column("log_sub_type",     sa.Integer(),   nullable=True),
        sa.Column("user_id",          sa.Integer(),   nullable=True),
        sa.Column("user_display",     sa.String(100), nullable=True),
        sa.Column("topic_id",         sa.Integer(),   nullable=True),
        sa.Column("topic_version_id", sa.Integer(),   nullable=True),
    )
    op.create_index("ix_log_items_tenant_id",        "log_items", ["tenant_id"])
    op.create_index("ix_log_items_topic_id",         "log_items", ["topic_id"])
    op.create_index("ix_log_items_topic_version_id", "log_items", ["topic_version_id"])

    op.create_table(
        "recent_changes",
        sa.Column("change_id",                 sa.Integer(),   primary_key=True, autoincrement=True),
        sa.Column("tenant_id",                 sa.Integer(),   sa.ForeignKey("tenants.tenant_id"), nullable=False),
        sa.Column("topic_id",                  sa.Integer(),   nullable=True),
        sa.Column("topic_name",                sa.String(200), nullable=True),
        sa.Column("topic_version_id",          sa.Integer(),   nullable=True),
        sa.Column("previous_topic_version_id", sa.Integer(),   nullable=True),
        sa.Column("author_id",                 sa.Integer(),   nullable=True),
        sa.Column("author_name",               sa.String(100), nullable=True),
        sa.Column("change_date",               sa.DateTime(timezone=True), nullable=False),
        sa.Column("change_comment",            sa.String(200), nullable=True),
        sa.Column("characters_changed",        sa.Integer(),   nullable=True),
        sa.Column("edit_type",                 sa.Integer(),   nullable=True),
        sa.Column("log_type",                  sa.Integer(),   nullable=True),
        sa.Column("log_sub_type",              sa.Integer(),   nullable=True),
        sa.Column("log_params",                sa.String(500), nullable=True),
    )
    op.create_index("ix_recent_changes_tenant_id",        "recent_changes", ["tenant_id"])
    op.create_index("ix_recent_changes_topic_id",         "recent_changes", ["topic_id"])
    op.create_index("ix_recent_changes_topic_version_id", "recent_changes", ["topic_version_id"])


# -----------------------------------------------------------------------------

def downgrade() -> None:
    op.drop_table("recent_changes")
    op.drop_table("log_items")
    op.drop_table("topic_links")
    op.drop_table("categories")
    op.drop_constraint("fk_topics_current_version", "topics", type_="foreignkey")
    op.drop_table("topic_versions")
    op.drop_table("topics")
    op.drop_table("users")
    op.drop_table("namespace_translations")
    op.drop_table("namespaces")
    op.drop_table("tenants")


# -----------------------------------------------------------------------------
