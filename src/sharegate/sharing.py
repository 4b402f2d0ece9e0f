"""ShareManager — direct share commands and read projections.

Enforces the ownership and uniqueness rules for user-to-user shares.
Every successful command returns the audit records and notifications it
implies as ``effects``; dispatching them is the caller's job and happens
after the write is durable.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .config import EngineConfig
from .effects import AuditAction, AuditRecord, Notification, NotificationKind
from .exceptions import (
    NotFoundError,
    NotOwnerError,
    PathNotAllowedError,
    SelfShareError,
    UserNotFoundError,
    ValidationError,
)
from .permissions import Permission, coerce_permission
from .types import ListSharesResult, ShareInfo, ShareResult, UserInfo, UserSearchResult
from .utils import as_utc, base_name, is_shareable_path, normalize_path, validate_path

if TYPE_CHECKING:
    from .models.shares import FileShareBase
    from .repositories.protocol import ShareRepository, UserDirectory

logger = logging.getLogger(__name__)

SHARED_WITH_ME_LINK = "/shared-with-me"


def share_to_info(share: FileShareBase) -> ShareInfo:
    """Convert a share record to ShareInfo."""
    return ShareInfo(
        id=share.id,  # type: ignore[arg-type]
        item_path=share.item_path,
        item_name=share.item_name,
        is_folder=share.is_folder,
        owner_id=share.owner_id,
        shared_with_id=share.shared_with_id,
        permission=Permission(share.permission_level),
        message=share.message,
        created_at=as_utc(share.created_at) if share.created_at else None,
        updated_at=as_utc(share.updated_at) if share.updated_at else None,
    )


def check_shareable(item_path: str, config: EngineConfig) -> str:
    """Validate and normalize *item_path*; raise if it cannot carry a grant."""
    valid, error = validate_path(item_path)
    if not valid:
        raise ValidationError(error)
    path = normalize_path(item_path)
    if not is_shareable_path(path, config.allowed_roots):
        raise PathNotAllowedError(
            f"Only items under your home folder or a shared drive can be shared: {path}"
        )
    return path


class ShareManager:
    """Creates, updates and deletes direct shares.

    Receives the share repository and the user directory at construction;
    holds no per-request state.
    """

    def __init__(
        self,
        shares: ShareRepository,
        users: UserDirectory,
        config: EngineConfig | None = None,
    ) -> None:
        self._shares = shares
        self._users = users
        self._config = config or EngineConfig()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create(
        self,
        owner_id: str,
        item_path: str,
        shared_with_id: str,
        level: int | Permission = Permission.READ_ONLY,
        *,
        item_name: str | None = None,
        is_folder: bool = False,
        message: str | None = None,
    ) -> ShareResult:
        """Share *item_path* with *shared_with_id*, or update the existing grant.

        Re-sharing the same item with the same user updates permission and
        message of the existing share instead of adding a second one.
        """
        if not owner_id:
            raise ValidationError("Owner ID is required")
        if not shared_with_id:
            raise ValidationError("Shared with user ID is required")
        permission = coerce_permission(level)
        if shared_with_id == owner_id:
            raise SelfShareError("Cannot share with yourself")

        path = check_shareable(item_path, self._config)
        name = item_name or base_name(path)

        grantee = await self._users.get(shared_with_id)
        if grantee is None or not grantee.is_active:
            raise UserNotFoundError(f"User not found: {shared_with_id}")

        share, created = await self._shares.upsert(
            item_path=path,
            item_name=name,
            is_folder=is_folder,
            owner_id=owner_id,
            shared_with_id=shared_with_id,
            permission_level=int(permission),
            message=message,
        )
        info = share_to_info(share)
        logger.info(
            "%s share %s: %s -> %s (%s)",
            "Created" if created else "Updated",
            info.id,
            owner_id,
            shared_with_id,
            path,
        )

        item_type = "folder" if info.is_folder else "file"
        effects = [
            AuditRecord(
                actor_id=owner_id,
                action=AuditAction.FILE_SHARE_CREATE,
                target_path=path,
                metadata={
                    "sharedWithId": shared_with_id,
                    "permissionLevel": int(permission),
                    "isFolder": info.is_folder,
                },
            ),
            Notification(
                recipient_id=shared_with_id,
                kind=NotificationKind.SHARE_RECEIVED,
                title=f"{owner_id} shared a {item_type} with you",
                message=f"'{info.item_name}' ({permission.label} access)",
                link=SHARED_WITH_ME_LINK,
                actor_id=owner_id,
                metadata={
                    "itemPath": path,
                    "itemName": info.item_name,
                    "isFolder": info.is_folder,
                    "permissionLevel": int(permission),
                },
            ),
        ]
        return ShareResult(
            success=True,
            message="File shared successfully",
            share=info,
            created=created,
            effects=effects,
        )

    async def _owned(self, owner_id: str, share_id: int) -> FileShareBase:
        share = await self._shares.get(share_id)
        if share is None:
            raise NotFoundError(f"Share not found: {share_id}")
        if share.owner_id != owner_id:
            raise NotOwnerError(f"Share {share_id} is not owned by {owner_id}")
        return share

    async def update(
        self,
        owner_id: str,
        share_id: int,
        level: int | Permission,
    ) -> ShareResult:
        """Change the permission level of an owned share.

        Grantee and path are fixed at creation and cannot be changed here.
        """
        permission = coerce_permission(level)
        await self._owned(owner_id, share_id)

        share = await self._shares.update_permission(share_id, int(permission))
        if share is None:
            raise NotFoundError(f"Share not found: {share_id}")
        info = share_to_info(share)

        effects = [
            AuditRecord(
                actor_id=owner_id,
                action=AuditAction.FILE_SHARE_UPDATE,
                target_path=info.item_path,
                metadata={"shareId": info.id, "permissionLevel": int(permission)},
            ),
            Notification(
                recipient_id=info.shared_with_id,
                kind=NotificationKind.SHARE_PERMISSION_CHANGED,
                title="Share permission changed",
                message=(
                    f"{owner_id} changed your access to '{info.item_name}' "
                    f"to {permission.label}"
                ),
                link=SHARED_WITH_ME_LINK,
                actor_id=owner_id,
                metadata={
                    "itemName": info.item_name,
                    "isFolder": info.is_folder,
                    "newPermissionLevel": int(permission),
                },
            ),
        ]
        return ShareResult(
            success=True,
            message="Share updated successfully",
            share=info,
            effects=effects,
        )

    async def delete(self, owner_id: str, share_id: int) -> ShareResult:
        """Remove an owned share. Access ends with the next permission check."""
        info = share_to_info(await self._owned(owner_id, share_id))
        if not await self._shares.delete(share_id):
            raise NotFoundError(f"Share not found: {share_id}")
        logger.info("Deleted share %s on %s", share_id, info.item_path)

        item_type = "folder" if info.is_folder else "file"
        effects = [
            AuditRecord(
                actor_id=owner_id,
                action=AuditAction.FILE_SHARE_DELETE,
                target_path=info.item_path,
            ),
            Notification(
                recipient_id=info.shared_with_id,
                kind=NotificationKind.SHARE_REMOVED,
                title="A share was removed",
                message=f"{owner_id} stopped sharing the {item_type} '{info.item_name}'",
                actor_id=owner_id,
                metadata={"itemName": info.item_name, "isFolder": info.is_folder},
            ),
        ]
        return ShareResult(
            success=True,
            message="Share deleted successfully",
            share=info,
            effects=effects,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_by_owner(self, owner_id: str) -> ListSharesResult:
        shares = [share_to_info(s) for s in await self._shares.list_by_owner(owner_id)]
        return ListSharesResult(
            success=True, message=f"Found {len(shares)} share(s)", shares=shares
        )

    async def list_by_grantee(self, grantee_id: str) -> ListSharesResult:
        shares = [share_to_info(s) for s in await self._shares.list_by_grantee(grantee_id)]
        return ListSharesResult(
            success=True, message=f"Found {len(shares)} share(s)", shares=shares
        )

    async def list_for_path(self, owner_id: str, item_path: str) -> ListSharesResult:
        """Shares *owner_id* granted on exactly *item_path*."""
        path = normalize_path(item_path)
        if path == "/":
            raise ValidationError("Item path required")
        shares = [share_to_info(s) for s in await self._shares.list_for_path(owner_id, path)]
        return ListSharesResult(
            success=True,
            message=f"Found {len(shares)} share(s) on {path}",
            shares=shares,
            path=path,
        )

    async def search_candidate_users(
        self,
        actor_id: str,
        query: str,
        limit: int | None = None,
    ) -> UserSearchResult:
        """Find active users (other than *actor_id*) to share with."""
        query = (query or "").strip()
        config = self._config
        if len(query) < config.user_search_min_query:
            raise ValidationError(
                f"Search query must be at least {config.user_search_min_query} characters"
            )
        if limit is None or not 0 < limit <= config.user_search_max_limit:
            limit = config.user_search_default_limit

        users = await self._users.search(query, exclude_id=actor_id, limit=limit)
        found = [UserInfo(id=u.id, username=u.username, email=u.email) for u in users]
        return UserSearchResult(success=True, message=f"Found {len(found)} user(s)", users=found)
