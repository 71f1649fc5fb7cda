#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
wikistore: a multi-tenant, versioned wiki content store.
"""

from .main import WikiStore, create_store

__all__ = ["WikiStore", "create_store"]
