"""Post-commit effects and the dispatcher that delivers them.

Managers never call the audit log or the notifier themselves.  They
return the effects a committed write implies, and the caller hands them
to an ``EffectDispatcher`` once the transaction is durable.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    """Notification types emitted by the engine."""

    SHARE_RECEIVED = "share.received"
    SHARE_PERMISSION_CHANGED = "share.permission_changed"
    SHARE_REMOVED = "share.removed"
    SHARE_LINK_ACCESSED = "share_link.accessed"
    SHARE_LINK_EXPIRING = "share_link.expiring"


class AuditAction(str, Enum):
    """Audit event types emitted by the engine."""

    FILE_SHARE_CREATE = "file_share_create"
    FILE_SHARE_UPDATE = "file_share_update"
    FILE_SHARE_DELETE = "file_share_delete"
    SHARE_LINK_CREATE = "share_link_create"
    SHARE_LINK_DELETE = "share_link_delete"
    SHARE_LINK_ACCESS = "share_link_access"


@dataclass(frozen=True, slots=True)
class Notification:
    """A message for a single recipient."""

    recipient_id: str
    kind: NotificationKind
    title: str
    message: str = ""
    link: str = ""
    actor_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AuditRecord:
    """An audit trail entry."""

    actor_id: str | None
    action: AuditAction
    target_path: str
    metadata: dict[str, Any] = field(default_factory=dict)


Effect = Notification | AuditRecord

Notifier = Callable[[Notification], Awaitable[None]]
AuditLog = Callable[[AuditRecord], Awaitable[None]]


class EffectDispatcher:
    """Delivers effects to registered notifiers and audit sinks.

    Sinks are called sequentially in registration order.
    Exceptions are logged but never propagated; a failing sink loses
    one side effect, it never undoes the write that produced it.
    """

    def __init__(self) -> None:
        self._notifiers: list[Notifier] = []
        self._audit_logs: list[AuditLog] = []

    def add_notifier(self, notifier: Notifier) -> None:
        """Append *notifier* to the notification sinks."""
        self._notifiers.append(notifier)

    def add_audit_log(self, audit_log: AuditLog) -> None:
        """Append *audit_log* to the audit sinks."""
        self._audit_logs.append(audit_log)

    def remove(self, sink: Notifier | AuditLog) -> bool:
        """Remove first occurrence of *sink*. Return True if found."""
        for sinks in (self._notifiers, self._audit_logs):
            try:
                sinks.remove(sink)  # type: ignore[arg-type]
                return True
            except ValueError:
                continue
        return False

    async def dispatch(self, effect: Effect) -> bool:
        """Deliver one effect. Return True if every sink accepted it."""
        ok = True
        if isinstance(effect, Notification):
            for notifier in self._notifiers:
                try:
                    await notifier(effect)
                except Exception:
                    ok = False
                    logger.warning(
                        "Notifier %r failed for %s to %s",
                        notifier,
                        effect.kind.value,
                        effect.recipient_id,
                        exc_info=True,
                    )
        else:
            for audit_log in self._audit_logs:
                try:
                    await audit_log(effect)
                except Exception:
                    ok = False
                    logger.warning(
                        "Audit log %r failed for %s on %s",
                        audit_log,
                        effect.action.value,
                        effect.target_path,
                        exc_info=True,
                    )
        return ok

    async def dispatch_all(self, effects: Sequence[Effect]) -> int:
        """Deliver *effects* in order. Return the number that failed."""
        failed = 0
        for effect in effects:
            if not await self.dispatch(effect):
                failed += 1
        return failed

    @property
    def notifier_count(self) -> int:
        """Number of registered notification sinks."""
        return len(self._notifiers)

    @property
    def sink_count(self) -> int:
        """Total number of registered sinks."""
        return len(self._notifiers) + len(self._audit_logs)

    def clear(self) -> None:
        """Remove all registered sinks."""
        self._notifiers.clear()
        self._audit_logs.clear()
