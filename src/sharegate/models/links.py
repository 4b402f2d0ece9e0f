"""LinkShare model — token-addressed public links.

The token is the only identifier ever handed out; the integer id stays
internal.  ``access_count`` is only ever incremented, and only through
the conditional update in the link repository.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class LinkShareBase(SQLModel):
    """Base fields for a public link. Subclass with ``table=True`` for a concrete table."""

    id: int | None = Field(default=None, primary_key=True)
    token: str = Field(index=True, unique=True)
    path: str = Field(index=True)
    owner_id: str = Field(index=True)
    password_hash: str | None = Field(default=None)
    expires_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    max_access: int | None = Field(default=None)
    access_count: int = Field(default=0)
    require_login: bool = Field(default=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    expiration_notified_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class LinkShare(LinkShareBase, table=True):
    """Default public link table — ``sharegate_link_shares``."""

    __tablename__ = "sharegate_link_shares"
