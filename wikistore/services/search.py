#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Search indexing collaborator.

The store hands every topic written with a revision to ``update_in_index``
after the transaction commits.  Indexer failures are logged by the caller
and never undo a content write.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Protocol

from wikistore.schemas import Topic


logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

class SearchIndexer(Protocol):

    async def update_in_index(self, topic: Topic) -> None:
        ...

    async def delete_from_index(self, topic: Topic) -> None:
        ...


# -----------------------------------------------------------------------------

class NullSearchIndexer:
    """Indexer used when no search engine is configured."""

    async def update_in_index(self, topic: Topic) -> None:
        logger.debug("No search indexer configured; skipping %s", topic.name)

    async def delete_from_index(self, topic: Topic) -> None:
        logger.debug("No search indexer configured; skipping %s", topic.name)


# -----------------------------------------------------------------------------
