"""Permission levels for direct shares."""

from __future__ import annotations

from enum import IntEnum

from .exceptions import ValidationError


class Permission(IntEnum):
    """Permission level granted by a share.

    Levels are ordered: a grant satisfies any requirement at or below it.
    """

    READ_ONLY = 1
    READ_WRITE = 2

    @property
    def label(self) -> str:
        return "read" if self is Permission.READ_ONLY else "read/write"


def coerce_permission(level: int | Permission) -> Permission:
    """Return *level* as a ``Permission`` or raise ``ValidationError``."""
    if isinstance(level, bool):
        raise ValidationError(f"Invalid permission level: {level!r}")
    try:
        return Permission(level)
    except ValueError:
        raise ValidationError(
            f"Invalid permission level: {level!r}. Must be 1 (read) or 2 (read/write)."
        ) from None
