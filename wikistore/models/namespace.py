#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Namespace models
================
NamespaceRow:             global namespace identity (id, default label,
                          comments-companion link, case rule)
NamespaceTranslationRow:  per-tenant label override
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from wikistore.core.database import Base


# -----------------------------------------------------------------------------

class NamespaceRow(Base):
    __tablename__ = "namespaces"

    # ids are fixed by convention (Main=0, Special=-1, ...) and never generated
    namespace_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    main_namespace_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("namespaces.namespace_id"), nullable=True
    )
    case_sensitive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Namespace {self.namespace_id} {self.label!r}>"


# -----------------------------------------------------------------------------

class NamespaceTranslationRow(Base):
    __tablename__ = "namespace_translations"

    namespace_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("namespaces.namespace_id", ondelete="CASCADE"), primary_key=True
    )
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.tenant_id", ondelete="CASCADE"), primary_key=True
    )
    label: Mapped[str] = mapped_column(String(200), nullable=False)
