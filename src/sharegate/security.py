"""Link tokens and password hashing."""

from __future__ import annotations

import secrets

from werkzeug.security import check_password_hash, generate_password_hash


def generate_token(nbytes: int = 32) -> str:
    """Return an unguessable URL-safe token with *nbytes* of entropy."""
    return secrets.token_urlsafe(nbytes)


def hash_password(password: str, method: str = "scrypt") -> str:
    """Hash *password* for storage. The plaintext is never persisted."""
    return generate_password_hash(password, method=method)


def verify_password(password_hash: str, password: str | None) -> bool:
    """Check *password* against a stored hash. ``None`` never matches."""
    if password is None:
        return False
    return check_password_hash(password_hash, password)
