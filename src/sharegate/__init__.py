"""Sharegate: access control and share resolution for a file portal.

Direct user-to-user shares with folder inheritance, and token-based
public links gated by expiry, access limits, login and password.
"""

__version__ = "0.1.0"

from sharegate._engine import SharingEngine
from sharegate.config import EngineConfig
from sharegate.effects import (
    AuditAction,
    AuditRecord,
    EffectDispatcher,
    Notification,
    NotificationKind,
)
from sharegate.exceptions import (
    LinkExhaustedError,
    LinkExpiredError,
    LoginRequiredError,
    NotFoundError,
    NotOwnerError,
    PasswordIncorrectError,
    PasswordRequiredError,
    PathNotAllowedError,
    SelfShareError,
    SharegateError,
    StorageError,
    UserNotFoundError,
    ValidationError,
)
from sharegate.expiration import ExpiringLinkNotifier
from sharegate.links import LinkManager
from sharegate.permissions import Permission
from sharegate.resolver import PermissionResolver
from sharegate.sharing import ShareManager
from sharegate.types import (
    FileMetadata,
    LinkAccessResult,
    LinkInfo,
    LinkResult,
    LinkStatus,
    ListLinksResult,
    ListSharesResult,
    ShareInfo,
    ShareResult,
    UserInfo,
    UserSearchResult,
)
from sharegate.utils import normalize_path
from sharegate.validator import LinkAccessValidator

__all__ = [
    "AuditAction",
    "AuditRecord",
    "EffectDispatcher",
    "EngineConfig",
    "ExpiringLinkNotifier",
    "FileMetadata",
    "LinkAccessResult",
    "LinkAccessValidator",
    "LinkExhaustedError",
    "LinkExpiredError",
    "LinkInfo",
    "LinkManager",
    "LinkResult",
    "LinkStatus",
    "ListLinksResult",
    "ListSharesResult",
    "LoginRequiredError",
    "NotFoundError",
    "NotOwnerError",
    "Notification",
    "NotificationKind",
    "PasswordIncorrectError",
    "PasswordRequiredError",
    "PathNotAllowedError",
    "Permission",
    "PermissionResolver",
    "SelfShareError",
    "ShareInfo",
    "ShareManager",
    "ShareResult",
    "SharegateError",
    "SharingEngine",
    "StorageError",
    "UserInfo",
    "UserNotFoundError",
    "UserSearchResult",
    "ValidationError",
    "__version__",
    "normalize_path",
]
