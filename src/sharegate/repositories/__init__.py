"""Repository interfaces and their SQL / in-memory implementations."""

from sharegate.repositories.memory import (
    InMemoryLinkRepository,
    InMemoryShareRepository,
    InMemoryUserDirectory,
)
from sharegate.repositories.protocol import (
    FileMetadataSource,
    LinkRepository,
    ShareRepository,
    UserDirectory,
)
from sharegate.repositories.sql import SQLLinkRepository, SQLShareRepository, SQLUserDirectory

__all__ = [
    "FileMetadataSource",
    "InMemoryLinkRepository",
    "InMemoryShareRepository",
    "InMemoryUserDirectory",
    "LinkRepository",
    "SQLLinkRepository",
    "SQLShareRepository",
    "SQLUserDirectory",
    "ShareRepository",
    "UserDirectory",
]
