"""Custom exception hierarchy for the sharing engine."""


class SharegateError(Exception):
    """Base exception for all sharing engine errors."""


class StorageError(SharegateError):
    """Raised on storage backend failures (DB connection, constraint, etc.)."""


class ValidationError(SharegateError):
    """Raised for malformed input: missing path, invalid permission level."""


class SelfShareError(SharegateError):
    """Raised when an owner tries to share an item with themselves."""


class UserNotFoundError(SharegateError):
    """Raised when the grantee does not exist or is not active."""


class PathNotAllowedError(SharegateError):
    """Raised when a path is outside the shareable roots (``/home``, ``/shared``)."""


class NotOwnerError(SharegateError):
    """Raised when a share or link is mutated by someone other than its owner."""


class NotFoundError(SharegateError):
    """Raised when a share id, link id, or token cannot be resolved."""


class PasswordRequiredError(SharegateError):
    """Raised when a password-protected link is opened without a password."""


class PasswordIncorrectError(SharegateError):
    """Raised when the password supplied for a link does not match."""


class LoginRequiredError(SharegateError):
    """Raised when a login-only link is opened anonymously."""


class LinkExpiredError(SharegateError):
    """Raised when a link is past its expiry time."""


class LinkExhaustedError(SharegateError):
    """Raised when a link has used up its access allowance."""
