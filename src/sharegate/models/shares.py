"""FileShare model — direct owner-to-user grants on a virtual path.

Provides ``FileShareBase`` (non-table) and ``FileShare`` (concrete table).
Subclass ``FileShareBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per backend.  Concrete subclasses must carry
the unique constraint on ``(item_path, owner_id, shared_with_id)``; the
upsert in ``ShareManager.create`` relies on it.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

SHARE_UNIQUE_KEY = ("item_path", "owner_id", "shared_with_id")


class FileShareBase(SQLModel):
    """Base fields for a direct share. Subclass with ``table=True`` for a concrete table."""

    id: int | None = Field(default=None, primary_key=True)
    item_path: str = Field(index=True)
    item_name: str = Field(default="")
    is_folder: bool = Field(default=False)
    owner_id: str = Field(index=True)
    shared_with_id: str = Field(index=True)
    permission_level: int = Field(default=1)
    message: str | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class FileShare(FileShareBase, table=True):
    """Default direct share table — ``sharegate_file_shares``."""

    __tablename__ = "sharegate_file_shares"
    __table_args__ = (UniqueConstraint(*SHARE_UNIQUE_KEY, name="uq_file_share_grant"),)
