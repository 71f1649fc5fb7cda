#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Exception taxonomy
==================
DataValidationError:  the caller's input was wrong (bad name, bad field,
                      move target exists, purge of the only revision).
BackingStoreError:    the database is unavailable or refused the statement.

Lookups never raise for a missing row; they return None.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Any, Optional


# -----------------------------------------------------------------------------

class WikiStoreError(Exception):
    """Base class for all store errors."""


# -----------------------------------------------------------------------------

class DataValidationError(WikiStoreError):
    """
    Raised when data supplied by the caller violates a naming rule, a field
    constraint or a state-transition precondition.

    ``key`` is a stable message key suitable for translation; ``args`` holds
    the values interpolated into the message.
    """

    def __init__(self, key: str, *params: Any, message: Optional[str] = None) -> None:
        self.key = key
        self.params = params
        text = message or key
        if params and message is None:
            text = f"{key}: {', '.join(str(p) for p in params)}"
        super().__init__(text)


# -----------------------------------------------------------------------------

class BackingStoreError(WikiStoreError):
    """Raised when the backing database fails or a transaction is aborted."""


# -----------------------------------------------------------------------------
