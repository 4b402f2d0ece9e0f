"""LinkAccessValidator — the gate in front of token-based public access.

Checks run in a fixed order and the first one that objects decides the
outcome::

    lookup -> expiry -> exhaustion -> login -> password -> grant

Dead links (expired, exhausted) are reported before any credential is
looked at, so a dead link answers the same way whatever password or
login comes with the request.  Only the grant step consumes an access
slot, and it does so through a single conditional increment in the
link repository.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from .config import EngineConfig
from .effects import AuditAction, AuditRecord, Notification, NotificationKind
from .exceptions import StorageError
from .security import verify_password
from .types import LinkAccessResult, LinkStatus
from .utils import as_utc, base_name, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from .effects import Effect
    from .models.links import LinkShareBase
    from .repositories.protocol import FileMetadataSource, LinkRepository
    from .types import FileMetadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkAttempt:
    """Everything a check may look at for one validation call."""

    link: LinkShareBase | None
    password: str | None
    actor_id: str | None
    now: datetime


def check_lookup(attempt: LinkAttempt) -> LinkAccessResult | None:
    if attempt.link is None:
        return LinkAccessResult(LinkStatus.NOT_FOUND)
    return None


def check_expiry(attempt: LinkAttempt) -> LinkAccessResult | None:
    expires_at = attempt.link.expires_at  # type: ignore[union-attr]
    if expires_at is not None and attempt.now >= as_utc(expires_at):
        return LinkAccessResult(LinkStatus.EXPIRED)
    return None


def check_exhaustion(attempt: LinkAttempt) -> LinkAccessResult | None:
    link = attempt.link
    if link.max_access is not None and link.access_count >= link.max_access:  # type: ignore[union-attr]
        return LinkAccessResult(LinkStatus.EXHAUSTED)
    return None


def check_login(attempt: LinkAttempt) -> LinkAccessResult | None:
    if attempt.link.require_login and not attempt.actor_id:  # type: ignore[union-attr]
        return LinkAccessResult(LinkStatus.NEEDS_LOGIN)
    return None


def check_password(attempt: LinkAttempt) -> LinkAccessResult | None:
    password_hash = attempt.link.password_hash  # type: ignore[union-attr]
    if password_hash is None:
        return None
    if not attempt.password:
        return LinkAccessResult(LinkStatus.NEEDS_PASSWORD)
    if not verify_password(password_hash, attempt.password):
        return LinkAccessResult(LinkStatus.NEEDS_PASSWORD, password_incorrect=True)
    return None


DEFAULT_CHECKS: tuple[tuple[str, Callable[[LinkAttempt], LinkAccessResult | None]], ...] = (
    ("lookup", check_lookup),
    ("expiry", check_expiry),
    ("exhaustion", check_exhaustion),
    ("login", check_login),
    ("password", check_password),
)


class LinkAccessValidator:
    """Validates a link token and, when every check passes, records the access.

    *metadata* is an optional storage collaborator used to describe the
    target on a grant; without it the name is derived from the path and
    size / folder flag stay unknown.  *clock* returns the current UTC
    time and exists for tests.
    """

    def __init__(
        self,
        links: LinkRepository,
        *,
        metadata: FileMetadataSource | None = None,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._links = links
        self._metadata = metadata
        self._config = config or EngineConfig()
        self._clock = clock
        self._checks = DEFAULT_CHECKS

    @property
    def check_names(self) -> list[str]:
        """Names of the checks in evaluation order (grant excluded)."""
        return [name for name, _ in self._checks]

    async def validate(
        self,
        token: str,
        password: str | None = None,
        actor_id: str | None = None,
    ) -> LinkAccessResult:
        """Run the checks for *token* and return the first failing outcome or a grant."""
        try:
            link = await self._links.get_by_token(token) if token else None
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e

        attempt = LinkAttempt(link=link, password=password, actor_id=actor_id, now=self._clock())
        for name, check in self._checks:
            outcome = check(attempt)
            if outcome is not None:
                logger.debug(
                    "Link %s stopped at %s check: %s",
                    link.id if link is not None else "?",
                    name,
                    outcome.status.value,
                )
                return outcome

        assert link is not None
        return await self._grant(link, actor_id)

    async def _grant(self, link: LinkShareBase, actor_id: str | None) -> LinkAccessResult:
        info: FileMetadata | None = None
        if self._metadata is not None:
            try:
                info = await self._metadata.stat(link.path)
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Metadata lookup failed for {link.path}: {e}") from e
            if info is None:
                logger.info("Link %s points at missing path %s", link.id, link.path)
                return LinkAccessResult(LinkStatus.NOT_FOUND)

        if not await self._links.try_consume(link.id):  # type: ignore[arg-type]
            # Lost the race for the last slot, or the link was deleted meanwhile.
            if await self._links.get(link.id) is None:  # type: ignore[arg-type]
                return LinkAccessResult(LinkStatus.NOT_FOUND)
            return LinkAccessResult(LinkStatus.EXHAUSTED)

        name = info.name if info is not None else base_name(link.path)
        result = LinkAccessResult(
            LinkStatus.GRANTED,
            path=link.path,
            name=name,
            is_folder=info.is_folder if info is not None else None,
            size_bytes=info.size_bytes if info is not None else None,
            expires_at=as_utc(link.expires_at) if link.expires_at is not None else None,
        )
        result.effects.extend(self._grant_effects(link, name, actor_id))
        return result

    def _grant_effects(
        self, link: LinkShareBase, name: str, actor_id: str | None
    ) -> list[Effect]:
        effects: list[Effect] = [
            AuditRecord(
                actor_id=actor_id,
                action=AuditAction.SHARE_LINK_ACCESS,
                target_path=link.path,
                metadata={"linkId": link.id},
            )
        ]
        if self._config.notify_link_access and actor_id != link.owner_id:
            effects.append(
                Notification(
                    recipient_id=link.owner_id,
                    kind=NotificationKind.SHARE_LINK_ACCESSED,
                    title="Your share link was opened",
                    message=f"'{name}' was accessed through a share link",
                    link="/link-shares",
                    actor_id=actor_id,
                    metadata={"linkId": link.id, "path": link.path},
                )
            )
        return effects
