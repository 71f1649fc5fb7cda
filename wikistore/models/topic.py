#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Topic / TopicVersion models
===========================
TopicRow:         mutable head record: name, flags, soft-delete marker and a
                  pointer at the authoritative revision
TopicVersionRow:  immutable revision; revisions form a singly linked list
                  from newest to oldest through previous_topic_version_id

topics.current_version_id and topic_versions.topic_id reference each other,
so a revision must be inserted before the topic row can point at it.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, Index, Integer, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from wikistore.core.database import Base


# -----------------------------------------------------------------------------

class TopicRow(Base):
    __tablename__ = "topics"
    __table_args__ = (
        Index("ix_topics_tenant_ns_page", "tenant_id", "namespace_id", "page_name"),
        Index("ix_topics_tenant_ns_page_lower", "tenant_id", "namespace_id", "page_name_lower"),
    )

    topic_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.tenant_id"), nullable=False, index=True
    )
    namespace_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("namespaces.namespace_id"), nullable=False
    )
    page_name: Mapped[str] = mapped_column(String(200), nullable=False)
    page_name_lower: Mapped[str] = mapped_column(String(200), nullable=False)
    topic_type: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    read_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    admin_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    current_version_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey(
            "topic_versions.topic_version_id",
            use_alter=True,
            name="fk_topics_current_version",
        ),
        nullable=True,
    )
    delete_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    redirect_to: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    # denormalized copy of the current revision's content
    topic_content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<Topic {self.topic_id} {self.page_name!r}>"


# -----------------------------------------------------------------------------

class TopicVersionRow(Base):
    __tablename__ = "topic_versions"

    topic_version_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("topics.topic_id"), nullable=False, index=True
    )
    edit_comment: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    version_content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    author_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id"), nullable=True
    )
    edit_type: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    author_display: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    edit_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    previous_topic_version_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("topic_versions.topic_version_id"), nullable=True, index=True
    )
    characters_changed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version_params: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<TopicVersion {self.topic_version_id} topic={self.topic_id}>"
