"""Result types: ShareInfo, LinkInfo, ShareResult, LinkAccessResult, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import (
    LinkExhaustedError,
    LinkExpiredError,
    LoginRequiredError,
    NotFoundError,
    PasswordIncorrectError,
    PasswordRequiredError,
)

if TYPE_CHECKING:
    from datetime import datetime

    from .effects import Effect
    from .permissions import Permission


@dataclass
class FileMetadata:
    """Metadata of a link target, as reported by the storage collaborator."""

    path: str
    name: str
    is_folder: bool
    size_bytes: int | None = None


@dataclass
class ShareInfo:
    """Direct share metadata."""

    id: int
    item_path: str
    item_name: str
    is_folder: bool
    owner_id: str
    shared_with_id: str
    permission: Permission
    message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class LinkInfo:
    """Public link metadata. Never carries the password hash."""

    id: int
    token: str
    path: str
    owner_id: str
    url: str
    has_password: bool = False
    expires_at: datetime | None = None
    max_access: int | None = None
    access_count: int = 0
    require_login: bool = False
    created_at: datetime | None = None


@dataclass
class UserInfo:
    """Candidate grantee returned by user search."""

    id: str
    username: str
    email: str | None = None


@dataclass
class ShareResult:
    """Result of a share create/update/delete."""

    success: bool
    message: str
    share: ShareInfo | None = None
    created: bool = False
    effects: list[Effect] = field(default_factory=list)


@dataclass
class ListSharesResult:
    """Result of a share listing."""

    success: bool
    message: str
    shares: list[ShareInfo] = field(default_factory=list)
    path: str | None = None

    @property
    def total(self) -> int:
        return len(self.shares)


@dataclass
class LinkResult:
    """Result of a link create/delete."""

    success: bool
    message: str
    link: LinkInfo | None = None
    effects: list[Effect] = field(default_factory=list)


@dataclass
class ListLinksResult:
    """Result of a link listing."""

    success: bool
    message: str
    links: list[LinkInfo] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.links)


@dataclass
class UserSearchResult:
    """Result of a candidate-user search."""

    success: bool
    message: str
    users: list[UserInfo] = field(default_factory=list)


class LinkStatus(Enum):
    """Outcome of validating a link token."""

    GRANTED = "granted"
    NEEDS_PASSWORD = "needs_password"
    NEEDS_LOGIN = "needs_login"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    NOT_FOUND = "not_found"


@dataclass
class LinkAccessResult:
    """Tagged outcome of ``LinkAccessValidator.validate``.

    Only ``GRANTED`` results carry the target's path and metadata; every
    other status is deliberately bare so a gate never leaks what is behind it.
    """

    status: LinkStatus
    path: str | None = None
    name: str | None = None
    is_folder: bool | None = None
    size_bytes: int | None = None
    expires_at: datetime | None = None
    password_incorrect: bool = False
    effects: list[Effect] = field(default_factory=list)

    @property
    def granted(self) -> bool:
        return self.status is LinkStatus.GRANTED

    @property
    def recoverable(self) -> bool:
        """True when re-invoking with login or a password may succeed."""
        return self.status in (LinkStatus.NEEDS_LOGIN, LinkStatus.NEEDS_PASSWORD)

    def raise_for_status(self) -> None:
        """Raise the typed error matching a non-granted status."""
        status = self.status
        if status is LinkStatus.GRANTED:
            return
        if status is LinkStatus.NOT_FOUND:
            raise NotFoundError("Share link not found")
        if status is LinkStatus.EXPIRED:
            raise LinkExpiredError("Share link has expired")
        if status is LinkStatus.EXHAUSTED:
            raise LinkExhaustedError("Share link access limit reached")
        if status is LinkStatus.NEEDS_LOGIN:
            raise LoginRequiredError("Login is required to open this link")
        if self.password_incorrect:
            raise PasswordIncorrectError("Invalid password")
        raise PasswordRequiredError("Password is required to open this link")
