#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Change log models
=================
LogItemRow:       append-only audit trail (deletes, moves, purges, imports ...)
RecentChangeRow:  denormalized projection used for "recent changes" display;
                  may be rebuilt from revisions and log items at any time
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from wikistore.core.database import Base


# -----------------------------------------------------------------------------

class LogItemRow(Base):
    __tablename__ = "log_items"

    log_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.tenant_id"), nullable=False, index=True
    )
    log_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    log_comment: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    log_params: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    log_type: Mapped[int] = mapped_column(Integer, nullable=False)
    log_sub_type: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    user_display: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    topic_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    topic_version_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)


# -----------------------------------------------------------------------------

class RecentChangeRow(Base):
    __tablename__ = "recent_changes"

    change_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.tenant_id"), nullable=False, index=True
    )
    topic_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    topic_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    topic_version_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    previous_topic_version_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    author_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    author_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    change_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    change_comment: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    characters_changed: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    edit_type: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    log_type: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    log_sub_type: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    log_params: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
