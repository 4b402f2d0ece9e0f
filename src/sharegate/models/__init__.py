"""SQLModel database models for the sharing engine."""

from sharegate.models.links import LinkShare, LinkShareBase
from sharegate.models.shares import SHARE_UNIQUE_KEY, FileShare, FileShareBase
from sharegate.models.users import User, UserBase

__all__ = [
    "SHARE_UNIQUE_KEY",
    "FileShare",
    "FileShareBase",
    "LinkShare",
    "LinkShareBase",
    "User",
    "UserBase",
]
