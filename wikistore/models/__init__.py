#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------

"""ORM models package: import all to register with Base.metadata."""

from .tenant import TenantRow
from .namespace import NamespaceRow, NamespaceTranslationRow
from .user import UserRow
from .topic import TopicRow, TopicVersionRow
from .association import CategoryRow, TopicLinkRow
from .changelog import LogItemRow, RecentChangeRow

__all__ = [
    "TenantRow", "NamespaceRow", "NamespaceTranslationRow", "UserRow",
    "TopicRow", "TopicVersionRow", "CategoryRow", "TopicLinkRow",
    "LogItemRow", "RecentChangeRow",
]
