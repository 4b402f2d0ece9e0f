"""PermissionResolver — allow/deny for authenticated in-app access.

Resolution for ``(actor, path, required)``:

1. Exact grants on *path* for the actor decide first.
2. Otherwise every folder grant to the actor whose path is *path* or an
   ancestor of it (segment-boundary prefix match) is considered.
3. Otherwise deny.

Overlapping grants are combined by taking the most permissive one, so
the answer never depends on the order rows come back from storage.

The resolver fails closed: a storage fault is logged and answered with
"deny", never propagated as something a caller could mistake for
"allow".
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from .exceptions import StorageError
from .permissions import Permission, coerce_permission
from .utils import is_within, normalize_path

if TYPE_CHECKING:
    from .models.shares import FileShareBase
    from .repositories.protocol import ShareRepository

logger = logging.getLogger(__name__)


def _best_level(shares: list[FileShareBase]) -> Permission | None:
    levels = [s.permission_level for s in shares]
    if not levels:
        return None
    return Permission(max(levels))


class PermissionResolver:
    """Decides whether an actor may access a path through direct shares.

    Stateless: every call re-reads the share repository, so revocation
    takes effect on the next call.
    """

    def __init__(self, shares: ShareRepository) -> None:
        self._shares = shares

    async def _effective(self, actor_id: str, path: str) -> Permission | None:
        exact = await self._shares.find_exact(path, actor_id)
        if exact:
            return _best_level(exact)

        covering = [
            s
            for s in await self._shares.list_folder_grants(actor_id)
            if is_within(path, normalize_path(s.item_path))
        ]
        return _best_level(covering)

    async def effective_permission(self, actor_id: str, item_path: str) -> Permission | None:
        """Return the strongest permission *actor_id* holds on *item_path*.

        ``None`` means no applicable grant (or a storage fault).
        """
        path = normalize_path(item_path)
        try:
            return await self._effective(actor_id, path)
        except (StorageError, SQLAlchemyError):
            logger.warning(
                "Share lookup failed for %s on %s; denying", actor_id, path, exc_info=True
            )
            return None

    async def resolve(
        self,
        actor_id: str,
        item_path: str,
        required: int | Permission = Permission.READ_ONLY,
    ) -> bool:
        """Return True if *actor_id* holds at least *required* on *item_path*."""
        required = coerce_permission(required)
        if not actor_id:
            return False
        granted = await self.effective_permission(actor_id, item_path)
        return granted is not None and granted >= required

    async def can_read(self, actor_id: str, item_path: str) -> bool:
        return await self.resolve(actor_id, item_path, Permission.READ_ONLY)

    async def can_write(self, actor_id: str, item_path: str) -> bool:
        return await self.resolve(actor_id, item_path, Permission.READ_WRITE)
