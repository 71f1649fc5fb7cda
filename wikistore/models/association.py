#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Category and link association rows.

Both are derived from the current content only and are replaced wholesale on
every content-affecting write.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from wikistore.core.database import Base


# -----------------------------------------------------------------------------

class CategoryRow(Base):
    __tablename__ = "categories"

    topic_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("topics.topic_id"), primary_key=True
    )
    category_name: Mapped[str] = mapped_column(String(200), primary_key=True, index=True)
    sort_key: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)


# -----------------------------------------------------------------------------

class TopicLinkRow(Base):
    __tablename__ = "topic_links"

    topic_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("topics.topic_id"), primary_key=True
    )
    link_to_namespace_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    link_to_page_name: Mapped[str] = mapped_column(String(200), primary_key=True, index=True)
