"""EngineConfig — tunables for link creation, user search, and notifications."""

from __future__ import annotations

from dataclasses import dataclass

from .utils import HOME_ROOT, SHARED_ROOT, normalize_path


@dataclass
class EngineConfig:
    """Configuration shared by the managers, the validator and the notifier."""

    token_bytes: int = 32
    """Random bytes behind each link token (URL-safe base64 encoded)."""

    link_url_prefix: str = "/s/"
    """Prefix used to build the public URL of a link."""

    password_hash_method: str = "scrypt"
    """Method passed to ``werkzeug.security.generate_password_hash``."""

    expiring_window_hours: int = 24
    """Links expiring within this window trigger an owner notification."""

    user_search_min_query: int = 2
    """Minimum query length for candidate-user search."""

    user_search_default_limit: int = 10
    """Result limit when the caller does not pass one."""

    user_search_max_limit: int = 50
    """Upper bound for caller-supplied limits."""

    notify_link_access: bool = False
    """If True, every granted link access notifies the link owner."""

    allowed_roots: tuple[str, ...] = (HOME_ROOT, SHARED_ROOT)
    """Path roots under which items may be shared."""

    def __post_init__(self) -> None:
        if self.token_bytes < 16:
            raise ValueError(f"token_bytes must be at least 16, got {self.token_bytes}")
        if self.expiring_window_hours <= 0:
            raise ValueError("expiring_window_hours must be positive")
        if not 0 < self.user_search_default_limit <= self.user_search_max_limit:
            raise ValueError(
                "user_search_default_limit must be between 1 and user_search_max_limit"
            )
        if not self.link_url_prefix.endswith("/"):
            self.link_url_prefix += "/"
        self.allowed_roots = tuple(normalize_path(r) for r in self.allowed_roots)

    def link_url(self, token: str) -> str:
        """Public URL path for *token*, e.g. ``/s/<token>``."""
        return f"{self.link_url_prefix}{token}"
