"""Shared fixtures for sharegate tests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from sharegate.models.users import User
from sharegate.repositories.memory import (
    InMemoryLinkRepository,
    InMemoryShareRepository,
    InMemoryUserDirectory,
)
from sharegate.repositories.sql import SQLLinkRepository, SQLShareRepository, SQLUserDirectory

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

# (id, username, email, is_active)
USERS = [
    ("alice", "alice", "alice@example.com", True),
    ("bob", "bob", "bob@example.com", True),
    ("carol", "carol", "carol@corp.example", True),
    ("dave", "dave", "dave@example.com", False),
]


@dataclass
class Repos:
    """One backend's worth of repositories."""

    backend: str
    shares: Any
    links: Any
    users: Any


class FakeClock:
    """Settable clock; returns aware UTC datetimes."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


async def seed_users(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Insert the standard users into the SQL user table."""
    async with session_factory() as session:
        for user_id, username, email, active in USERS:
            session.add(User(id=user_id, username=username, email=email, is_active=active))
        await session.commit()


@pytest.fixture
async def sql_users(session_factory: async_sessionmaker[AsyncSession]) -> SQLUserDirectory:
    await seed_users(session_factory)
    return SQLUserDirectory(session_factory)


@pytest.fixture
def memory_users() -> InMemoryUserDirectory:
    users = InMemoryUserDirectory()
    for user_id, username, email, active in USERS:
        users.add_user(user_id, username, email, is_active=active)
    return users


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(params=["memory", "sql"])
async def repos(
    request: pytest.FixtureRequest,
    session_factory: async_sessionmaker[AsyncSession],
    memory_users: InMemoryUserDirectory,
) -> Repos:
    """Repositories for each backend; tests using this run once per backend."""
    if request.param == "memory":
        return Repos(
            backend="memory",
            shares=InMemoryShareRepository(),
            links=InMemoryLinkRepository(),
            users=memory_users,
        )

    await seed_users(session_factory)
    return Repos(
        backend="sql",
        shares=SQLShareRepository(session_factory),
        links=SQLLinkRepository(session_factory),
        users=SQLUserDirectory(session_factory),
    )
