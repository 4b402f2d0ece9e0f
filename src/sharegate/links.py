"""LinkManager — public link commands and listings."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from .config import EngineConfig
from .effects import AuditAction, AuditRecord
from .exceptions import NotFoundError, NotOwnerError, ValidationError
from .security import generate_token, hash_password
from .sharing import check_shareable
from .types import LinkInfo, LinkResult, ListLinksResult
from .utils import as_utc, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from .models.links import LinkShareBase
    from .repositories.protocol import LinkRepository

logger = logging.getLogger(__name__)


def link_to_info(link: LinkShareBase, config: EngineConfig) -> LinkInfo:
    """Convert a link record to LinkInfo. The password hash is reduced to a flag."""
    return LinkInfo(
        id=link.id,  # type: ignore[arg-type]
        token=link.token,
        path=link.path,
        owner_id=link.owner_id,
        url=config.link_url(link.token),
        has_password=link.password_hash is not None,
        expires_at=as_utc(link.expires_at) if link.expires_at else None,
        max_access=link.max_access,
        access_count=link.access_count,
        require_login=link.require_login,
        created_at=as_utc(link.created_at) if link.created_at else None,
    )


class LinkManager:
    """Creates and revokes public links."""

    def __init__(
        self,
        links: LinkRepository,
        config: EngineConfig | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._links = links
        self._config = config or EngineConfig()
        self._clock = clock

    async def create(
        self,
        owner_id: str,
        path: str,
        *,
        password: str | None = None,
        expires_in_hours: int | None = None,
        max_access: int | None = None,
        require_login: bool = False,
    ) -> LinkResult:
        """Publish *path* under a fresh token.

        ``expires_in_hours`` and ``max_access`` of ``None`` or ``0`` mean
        unlimited.  An empty password means no password.
        """
        if not owner_id:
            raise ValidationError("Owner ID is required")
        if expires_in_hours is not None and expires_in_hours < 0:
            raise ValidationError("expires_in_hours must not be negative")
        if max_access is not None and max_access < 0:
            raise ValidationError("max_access must not be negative")
        target = check_shareable(path, self._config)

        expires_at = None
        if expires_in_hours:
            expires_at = self._clock() + timedelta(hours=expires_in_hours)

        password_hash = None
        if password:
            password_hash = hash_password(password, self._config.password_hash_method)

        link = await self._links.add(
            token=generate_token(self._config.token_bytes),
            path=target,
            owner_id=owner_id,
            password_hash=password_hash,
            expires_at=expires_at,
            max_access=max_access or None,
            require_login=require_login,
        )
        info = link_to_info(link, self._config)
        logger.info("Created link %s for %s on %s", info.id, owner_id, target)

        effects = [
            AuditRecord(
                actor_id=owner_id,
                action=AuditAction.SHARE_LINK_CREATE,
                target_path=target,
                metadata={
                    "linkId": info.id,
                    "hasPassword": info.has_password,
                    "expiresAt": info.expires_at.isoformat() if info.expires_at else None,
                    "maxAccess": info.max_access,
                    "requireLogin": require_login,
                },
            )
        ]
        return LinkResult(success=True, message="Share link created", link=info, effects=effects)

    async def delete(self, owner_id: str, link_id: int) -> LinkResult:
        """Revoke an owned link. The token stops working immediately."""
        link = await self._links.get(link_id)
        if link is None:
            raise NotFoundError(f"Share link not found: {link_id}")
        if link.owner_id != owner_id:
            raise NotOwnerError(f"Share link {link_id} is not owned by {owner_id}")
        info = link_to_info(link, self._config)

        if not await self._links.delete(link_id):
            raise NotFoundError(f"Share link not found: {link_id}")
        logger.info("Deleted link %s on %s", link_id, info.path)

        effects = [
            AuditRecord(
                actor_id=owner_id,
                action=AuditAction.SHARE_LINK_DELETE,
                target_path=info.path,
                metadata={"linkId": link_id},
            )
        ]
        return LinkResult(success=True, message="Share link deleted", link=info, effects=effects)

    async def list_by_owner(self, owner_id: str) -> ListLinksResult:
        links = [link_to_info(link, self._config) for link in await self._links.list_by_owner(owner_id)]
        return ListLinksResult(success=True, message=f"Found {len(links)} link(s)", links=links)
