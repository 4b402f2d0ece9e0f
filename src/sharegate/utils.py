"""Path utilities shared by the resolver and the managers, time helpers."""

from __future__ import annotations

import posixpath
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

HOME_ROOT = "/home"
SHARED_ROOT = "/shared"

MAX_PATH_LENGTH = 1024


def normalize_path(path: str) -> str:
    """Normalize a virtual path.

    - Ensures leading /
    - Resolves .. and . references
    - Removes double slashes
    - Removes trailing slash (except for root)

    Examples:
        normalize_path("home/a.txt") -> "/home/a.txt"
        normalize_path("/home//docs/") -> "/home/docs"
        normalize_path("/home/docs/../b.txt") -> "/home/b.txt"
        normalize_path("") -> "/"
    """
    if not path:
        return "/"

    path = path.strip()

    if not path.startswith("/"):
        path = "/" + path

    path = posixpath.normpath(path)

    # normpath keeps a leading "//" (POSIX allows it to be special)
    if path.startswith("//"):
        path = "/" + path.lstrip("/")

    if path != "/" and path.endswith("/"):
        path = path[:-1]

    return path


def base_name(path: str) -> str:
    """Return the last segment of *path* ("" for root)."""
    path = normalize_path(path)
    if path == "/":
        return ""
    return posixpath.basename(path)


def validate_path(path: str) -> tuple[bool, str]:
    """Validate a raw path for security issues.

    Returns:
        (is_valid, error_message) - error_message is empty if valid
    """
    if not path or not path.strip():
        return False, "Path is required"

    if "\x00" in path:
        return False, "Path contains null bytes"

    for ch in path:
        code = ord(ch)
        if 0x01 <= code <= 0x1F:
            return False, f"Path contains control character: 0x{code:02x}"

    if len(path) > MAX_PATH_LENGTH:
        return False, f"Path too long (max {MAX_PATH_LENGTH} characters)"

    return True, ""


def is_within(path: str, root: str) -> bool:
    """True if *path* equals *root* or is lexically nested under it.

    Both arguments must already be normalized.  The check is on segment
    boundaries: ``/home/docs2`` is not within ``/home/docs``.
    """
    if root == "/":
        return True
    return path == root or path.startswith(root + "/")


def is_shareable_path(path: str, roots: Iterable[str] = (HOME_ROOT, SHARED_ROOT)) -> bool:
    """True if normalized *path* may carry a share.

    ``/home`` itself and anything below it is shareable.  The shared-drive
    root only admits paths strictly below it (``/shared/<folder>/...``).
    """
    for root in roots:
        if root == SHARED_ROOT:
            if path.startswith(SHARED_ROOT + "/"):
                return True
        elif is_within(path, root):
            return True
    return False


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; everything the engine stores is UTC, so naive means UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
