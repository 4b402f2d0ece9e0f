"""In-memory repositories for tests and embedded use.

Rows are the same SQLModel classes the SQL repositories use, held in
plain dicts.  Check-and-increment on the access counter runs under an
``asyncio.Lock`` so it stays atomic even if a subclass adds awaits.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import TYPE_CHECKING

from sharegate.models.links import LinkShare
from sharegate.models.shares import FileShare
from sharegate.models.users import User
from sharegate.utils import as_utc, utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from sharegate.models.links import LinkShareBase
    from sharegate.models.shares import FileShareBase
    from sharegate.models.users import UserBase


def _newest_first(rows: list) -> list:
    return sorted(rows, key=lambda r: (r.created_at, r.id), reverse=True)


class InMemoryShareRepository:
    """``ShareRepository`` backed by a dict keyed on share id."""

    def __init__(self) -> None:
        self._rows: dict[int, FileShareBase] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def get(self, share_id: int) -> FileShareBase | None:
        return self._rows.get(share_id)

    async def find_exact(self, item_path: str, grantee_id: str) -> list[FileShareBase]:
        return [
            s
            for s in self._rows.values()
            if s.item_path == item_path and s.shared_with_id == grantee_id
        ]

    async def list_folder_grants(self, grantee_id: str) -> list[FileShareBase]:
        return [s for s in self._rows.values() if s.shared_with_id == grantee_id and s.is_folder]

    async def upsert(
        self,
        *,
        item_path: str,
        item_name: str,
        is_folder: bool,
        owner_id: str,
        shared_with_id: str,
        permission_level: int,
        message: str | None,
    ) -> tuple[FileShareBase, bool]:
        async with self._lock:
            now = utcnow()
            for share in self._rows.values():
                if (
                    share.item_path == item_path
                    and share.owner_id == owner_id
                    and share.shared_with_id == shared_with_id
                ):
                    share.permission_level = permission_level
                    share.message = message
                    share.updated_at = now
                    return share, False

            share = FileShare(
                id=next(self._ids),
                item_path=item_path,
                item_name=item_name,
                is_folder=is_folder,
                owner_id=owner_id,
                shared_with_id=shared_with_id,
                permission_level=permission_level,
                message=message,
                created_at=now,
                updated_at=now,
            )
            self._rows[share.id] = share  # type: ignore[index]
            return share, True

    async def update_permission(self, share_id: int, permission_level: int) -> FileShareBase | None:
        share = self._rows.get(share_id)
        if share is None:
            return None
        share.permission_level = permission_level
        share.updated_at = utcnow()
        return share

    async def delete(self, share_id: int) -> bool:
        return self._rows.pop(share_id, None) is not None

    async def list_by_owner(self, owner_id: str) -> list[FileShareBase]:
        return _newest_first([s for s in self._rows.values() if s.owner_id == owner_id])

    async def list_by_grantee(self, grantee_id: str) -> list[FileShareBase]:
        return _newest_first([s for s in self._rows.values() if s.shared_with_id == grantee_id])

    async def list_for_path(self, owner_id: str, item_path: str) -> list[FileShareBase]:
        return _newest_first(
            [
                s
                for s in self._rows.values()
                if s.owner_id == owner_id and s.item_path == item_path
            ]
        )


class InMemoryLinkRepository:
    """``LinkRepository`` backed by a dict keyed on link id."""

    def __init__(self) -> None:
        self._rows: dict[int, LinkShareBase] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def get(self, link_id: int) -> LinkShareBase | None:
        return self._rows.get(link_id)

    async def get_by_token(self, token: str) -> LinkShareBase | None:
        for link in self._rows.values():
            if link.token == token:
                return link
        return None

    async def add(
        self,
        *,
        token: str,
        path: str,
        owner_id: str,
        password_hash: str | None,
        expires_at: datetime | None,
        max_access: int | None,
        require_login: bool,
    ) -> LinkShareBase:
        if await self.get_by_token(token) is not None:
            raise ValueError(f"Duplicate link token: {token!r}")
        link = LinkShare(
            id=next(self._ids),
            token=token,
            path=path,
            owner_id=owner_id,
            password_hash=password_hash,
            expires_at=expires_at,
            max_access=max_access,
            access_count=0,
            require_login=require_login,
            created_at=utcnow(),
        )
        self._rows[link.id] = link  # type: ignore[index]
        return link

    async def delete(self, link_id: int) -> bool:
        return self._rows.pop(link_id, None) is not None

    async def try_consume(self, link_id: int) -> bool:
        async with self._lock:
            link = self._rows.get(link_id)
            if link is None:
                return False
            if link.max_access is not None and link.access_count >= link.max_access:
                return False
            link.access_count += 1
            return True

    async def list_by_owner(self, owner_id: str) -> list[LinkShareBase]:
        return _newest_first([link for link in self._rows.values() if link.owner_id == owner_id])

    async def list_expiring(self, after: datetime, until: datetime) -> list[LinkShareBase]:
        return [
            link
            for link in self._rows.values()
            if link.expires_at is not None
            and link.expiration_notified_at is None
            and after < as_utc(link.expires_at) <= until
        ]

    async def mark_expiration_notified(self, link_id: int, at: datetime) -> bool:
        link = self._rows.get(link_id)
        if link is None or link.expiration_notified_at is not None:
            return False
        link.expiration_notified_at = at
        return True


class InMemoryUserDirectory:
    """``UserDirectory`` over a dict of users, seeded via ``add``."""

    def __init__(self, users: list[UserBase] | None = None) -> None:
        self._users: dict[str, UserBase] = {}
        for user in users or []:
            self.add(user)

    def add(self, user: UserBase) -> None:
        self._users[user.id] = user

    def add_user(
        self,
        user_id: str,
        username: str | None = None,
        email: str | None = None,
        *,
        is_active: bool = True,
    ) -> UserBase:
        """Create and register a user."""
        user = User(id=user_id, username=username or user_id, email=email, is_active=is_active)
        self.add(user)
        return user

    async def get(self, user_id: str) -> UserBase | None:
        return self._users.get(user_id)

    async def search(self, query: str, *, exclude_id: str, limit: int) -> list[UserBase]:
        q = query.lower()
        hits = [
            u
            for u in self._users.values()
            if u.id != exclude_id
            and u.is_active
            and (q in u.username.lower() or (u.email is not None and q in u.email.lower()))
        ]
        hits.sort(key=lambda u: u.username)
        return hits[:limit]
