#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------

from .adapter import BackingStore
from .dialects import DialectStrategy, select_strategy

__all__ = ["BackingStore", "DialectStrategy", "select_strategy"]
