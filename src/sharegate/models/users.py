"""User model — the subset of the account table the engine reads."""

from __future__ import annotations

from sqlmodel import Field, SQLModel


class UserBase(SQLModel):
    """Base fields for a user. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(primary_key=True)
    username: str = Field(index=True, unique=True)
    email: str | None = Field(default=None, index=True)
    is_active: bool = Field(default=True)


class User(UserBase, table=True):
    """Default user table — ``sharegate_users``."""

    __tablename__ = "sharegate_users"
