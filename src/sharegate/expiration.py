"""ExpiringLinkNotifier — warns owners about links that are about to expire."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from .config import EngineConfig
from .effects import Notification, NotificationKind
from .utils import as_utc, base_name, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from .effects import EffectDispatcher
    from .models.links import LinkShareBase
    from .repositories.protocol import LinkRepository

logger = logging.getLogger(__name__)


def format_remaining(hours: int) -> str:
    """Humanize a remaining duration given in whole hours."""
    if hours < 1:
        return "less than an hour"
    if hours < 24:
        return "1 hour" if hours == 1 else f"{hours} hours"
    days = hours // 24
    return "1 day" if days == 1 else f"{days} days"


class ExpiringLinkNotifier:
    """Notifies each link owner once when a link enters the expiry window.

    Meant to be driven periodically (e.g. hourly) by the host application.
    A link is only marked as notified after its notification was
    delivered, so a failed delivery is retried on the next run.
    """

    def __init__(
        self,
        links: LinkRepository,
        dispatcher: EffectDispatcher,
        config: EngineConfig | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._links = links
        self._dispatcher = dispatcher
        self._config = config or EngineConfig()
        self._clock = clock

    def _notification(self, link: LinkShareBase, now: datetime) -> Notification:
        expires_at = as_utc(link.expires_at)  # type: ignore[arg-type]
        hours = int((expires_at - now).total_seconds() // 3600)
        name = base_name(link.path)
        if hours < 1:
            message = f"Share link expires within an hour: {name}"
        else:
            message = f"Share link expires in about {format_remaining(hours)}: {name}"
        return Notification(
            recipient_id=link.owner_id,
            kind=NotificationKind.SHARE_LINK_EXPIRING,
            title="A share link is about to expire",
            message=message,
            link="/link-shares",
            metadata={
                "linkId": link.id,
                "path": link.path,
                "expiresAt": expires_at.isoformat(),
            },
        )

    async def check_expiring(self, now: datetime | None = None) -> int:
        """Notify owners of links expiring within the window. Returns the count notified."""
        now = as_utc(now) if now is not None else self._clock()
        if not self._dispatcher.notifier_count:
            logger.debug("No notifier registered; expiring links stay unmarked")
            return 0
        until = now + timedelta(hours=self._config.expiring_window_hours)
        notified = 0
        for link in await self._links.list_expiring(now, until):
            if not await self._dispatcher.dispatch(self._notification(link, now)):
                logger.warning("Expiry notification for link %s failed; will retry", link.id)
                continue
            if not await self._links.mark_expiration_notified(link.id, now):  # type: ignore[arg-type]
                logger.debug("Link %s already marked notified", link.id)
                continue
            notified += 1
            logger.info("Notified %s about expiring link %s", link.owner_id, link.id)

        if notified:
            logger.info("Sent %d expiration notification(s)", notified)
        return notified
