"""Repository protocols — runtime-checkable storage interfaces.

The resolver, the validator and the managers only ever talk to these
interfaces.  ``sql.py`` implements them on SQLModel tables through
per-operation async sessions; ``memory.py`` implements them in-process
for tests and embedded use.

Implementations must never cache grants: every call reads current
state, so a deleted share or link stops working on the very next check.
Storage faults surface as ``StorageError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from sharegate.models.links import LinkShareBase
    from sharegate.models.shares import FileShareBase
    from sharegate.models.users import UserBase
    from sharegate.types import FileMetadata


@runtime_checkable
class ShareRepository(Protocol):
    """Storage for direct shares."""

    async def get(self, share_id: int) -> FileShareBase | None: ...

    async def find_exact(self, item_path: str, grantee_id: str) -> list[FileShareBase]:
        """Shares on exactly *item_path* granted to *grantee_id* (any owner)."""
        ...

    async def list_folder_grants(self, grantee_id: str) -> list[FileShareBase]:
        """Folder shares granted to *grantee_id*."""
        ...

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
        """Insert or update on ``(item_path, owner_id, shared_with_id)``.

        On conflict only permission, message and ``updated_at`` change.
        Returns ``(share, created)``.
        """
        ...

    async def update_permission(self, share_id: int, permission_level: int) -> FileShareBase | None:
        """Set the permission level and bump ``updated_at``."""
        ...

    async def delete(self, share_id: int) -> bool:
        """Remove a share. Returns True if it existed."""
        ...

    async def list_by_owner(self, owner_id: str) -> list[FileShareBase]:
        """Shares granted by *owner_id*, newest first."""
        ...

    async def list_by_grantee(self, grantee_id: str) -> list[FileShareBase]:
        """Shares granted to *grantee_id*, newest first."""
        ...

    async def list_for_path(self, owner_id: str, item_path: str) -> list[FileShareBase]:
        """Shares *owner_id* granted on exactly *item_path*, newest first."""
        ...


@runtime_checkable
class LinkRepository(Protocol):
    """Storage for public links and their access counters."""

    async def get(self, link_id: int) -> LinkShareBase | None: ...

    async def get_by_token(self, token: str) -> LinkShareBase | None: ...

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
        """Persist a new link and return it with its id assigned."""
        ...

    async def delete(self, link_id: int) -> bool: ...

    async def try_consume(self, link_id: int) -> bool:
        """Atomically increment ``access_count`` if below ``max_access``.

        Must be a single check-and-increment against the store, never a
        read followed by a write.  Returns False when the limit was
        already reached (or the link no longer exists).
        """
        ...

    async def list_by_owner(self, owner_id: str) -> list[LinkShareBase]:
        """Links created by *owner_id*, newest first."""
        ...

    async def list_expiring(self, after: datetime, until: datetime) -> list[LinkShareBase]:
        """Links with ``after < expires_at <= until`` not yet marked notified."""
        ...

    async def mark_expiration_notified(self, link_id: int, at: datetime) -> bool: ...


@runtime_checkable
class UserDirectory(Protocol):
    """Read access to user accounts."""

    async def get(self, user_id: str) -> UserBase | None: ...

    async def search(self, query: str, *, exclude_id: str, limit: int) -> list[UserBase]:
        """Active users whose username or email contains *query* (case-insensitive)."""
        ...


@runtime_checkable
class FileMetadataSource(Protocol):
    """Storage collaborator that can describe a path. Optional."""

    async def stat(self, path: str) -> FileMetadata | None:
        """Metadata for *path*, or None if nothing exists there."""
        ...
