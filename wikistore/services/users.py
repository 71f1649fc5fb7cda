#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
User service: the minimal author registry used to credit revisions and
log rows.  Credentials and sessions are handled elsewhere.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update

from wikistore.backend import BackingStore
from wikistore.core.errors import DataValidationError
from wikistore.models import UserRow
from wikistore.schemas import WikiUser, validate_model
from wikistore.services.cache import CacheManager


logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------

class UserService:

    def __init__(self, backend: BackingStore, cache: CacheManager) -> None:
        self.backend = backend
        self.cache = cache

    async def lookup_wiki_user(self, user_id: int) -> Optional[WikiUser]:
        use_cache = not self.backend.in_transaction
        if use_cache:
            user, present = self.cache.users_by_id.get(user_id)
            if present:
                return None if user is None else user.model_copy()
        row = await self.backend.get(UserRow, user_id)
        user = None if row is None else WikiUser.model_validate(row)
        if use_cache:
            self.cache.users_by_id.put(user_id, user)
        return None if user is None else user.model_copy()

    async def lookup_wiki_user_by_name(self, username: str) -> Optional[WikiUser]:
        rows = await self.backend.scalars(select(UserRow).where(UserRow.username == username))
        return WikiUser.model_validate(rows[0]) if rows else None

    async def author_name(self, author_id: Optional[int], author_display: Optional[str]) -> Optional[str]:
        """Registered authors are credited by username, anonymous ones by display string."""
        if author_id is not None:
            user = await self.lookup_wiki_user(author_id)
            if user is not None:
                return user.username
        return author_display

    async def write_wiki_user(self, user: WikiUser) -> WikiUser:
        validate_model(user)

        async def _write(session) -> WikiUser:
            if user.user_id <= 0:
                existing = await self.lookup_wiki_user_by_name(user.username)
                if existing is not None:
                    raise DataValidationError("register.error.logininvalid", user.username)
                row = UserRow(username=user.username, display_name=user.display_name)
                await self.backend.add(row)
                user.user_id = row.user_id
                user.create_date = row.create_date
            else:
                count = await self.backend.execute(
                    update(UserRow)
                    .where(UserRow.user_id == user.user_id)
                    .values(username=user.username, display_name=user.display_name)
                )
                if not count:
                    raise DataValidationError("common.exception.nouser", user.user_id)
            user_id = user.user_id
            self.backend.after_commit(lambda: self.cache.users_by_id.invalidate(user_id))
            return user

        return await self.backend.run_in_transaction(_write)


# -----------------------------------------------------------------------------
