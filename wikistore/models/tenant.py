#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Tenant model
============
A tenant ("virtual wiki") is an isolated set of topics sharing one schema.
The name is immutable once created; the remaining columns are display
metadata only.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from wikistore.core.database import Base


# -----------------------------------------------------------------------------

class TenantRow(Base):
    __tablename__ = "tenants"

    tenant_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    root_topic_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    site_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    logo_image_url: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    meta_description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    create_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Tenant {self.name!r}>"
