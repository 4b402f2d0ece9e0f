"""SQL repositories — SQLModel tables behind per-operation async sessions.

Each public method opens its own session from the factory, commits on
success and rolls back on any failure, so no write ever partially
applies and no state outlives a call.  The factory must be created with
``expire_on_commit=False``; returned rows are read after the session
closes.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from sharegate.dialect import get_dialect, upsert_row
from sharegate.exceptions import StorageError
from sharegate.models.links import LinkShare
from sharegate.models.shares import SHARE_UNIQUE_KEY, FileShare
from sharegate.models.users import User
from sharegate.utils import as_utc, utcnow

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from sharegate.models.links import LinkShareBase
    from sharegate.models.shares import FileShareBase
    from sharegate.models.users import UserBase

logger = logging.getLogger(__name__)


def _escape_like(value: str) -> str:
    """Escape SQL LIKE wildcards in *value* (escape char ``\\``)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class _SQLRepository:
    """Session plumbing shared by the SQL repositories."""

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        *,
        dialect: str | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._dialect = dialect

    def _dialect_for(self, session: AsyncSession) -> str:
        if self._dialect is None:
            bind = session.bind
            self._dialect = get_dialect(bind) if bind is not None else "sqlite"
        return self._dialect

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession]:
        """Yield a session; commit on success, roll back on failure."""
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.warning("%s operation failed: %s", type(self).__name__, e)
            raise StorageError(str(e)) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


class SQLShareRepository(_SQLRepository):
    """``ShareRepository`` on a ``FileShareBase`` table.

    Receives the concrete share model so callers can use custom SQLModel
    subclasses with different table names.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        share_model: type[FileShareBase] = FileShare,
        *,
        dialect: str | None = None,
    ) -> None:
        super().__init__(session_factory, dialect=dialect)
        self._share_model = share_model

    async def get(self, share_id: int) -> FileShareBase | None:
        async with self._session() as session:
            return await session.get(self._share_model, share_id)

    async def find_exact(self, item_path: str, grantee_id: str) -> list[FileShareBase]:
        model = self._share_model
        async with self._session() as session:
            result = await session.execute(
                select(model).where(
                    model.item_path == item_path,
                    model.shared_with_id == grantee_id,
                )
            )
            return list(result.scalars().all())

    async def list_folder_grants(self, grantee_id: str) -> list[FileShareBase]:
        model = self._share_model
        async with self._session() as session:
            result = await session.execute(
                select(model).where(
                    model.shared_with_id == grantee_id,
                    model.is_folder == True,  # noqa: E712
                )
            )
            return list(result.scalars().all())

    async def _find_key(
        self,
        session: AsyncSession,
        item_path: str,
        owner_id: str,
        shared_with_id: str,
    ) -> FileShareBase | None:
        model = self._share_model
        result = await session.execute(
            select(model)
            .where(
                model.item_path == item_path,
                model.owner_id == owner_id,
                model.shared_with_id == shared_with_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        *,
        item_path: str,
        item_name: str,
        is_folder: bool,
        owner_id: str,
        shared_with_id: str,
        permission_level: int,
        message: str | None,
    ) -> tuple[FileShareBase, bool]:
        now = utcnow()
        values = {
            "item_path": item_path,
            "item_name": item_name,
            "is_folder": is_folder,
            "owner_id": owner_id,
            "shared_with_id": shared_with_id,
            "permission_level": permission_level,
            "message": message,
            "created_at": now,
            "updated_at": now,
        }
        async with self._session() as session:
            existing = await self._find_key(session, item_path, owner_id, shared_with_id)
            await upsert_row(
                session,
                self._dialect_for(session),
                self._share_model,
                values,
                conflict_keys=list(SHARE_UNIQUE_KEY),
                update_keys=["permission_level", "message", "updated_at"],
            )
            share = await self._find_key(session, item_path, owner_id, shared_with_id)
            if share is None:
                raise StorageError(f"Share on {item_path} vanished during upsert")
            # A concurrent first share may land between the two reads; only the
            # call whose insert stamped created_at reports the share as new.
            return share, existing is None and as_utc(share.created_at) == now

    async def update_permission(self, share_id: int, permission_level: int) -> FileShareBase | None:
        async with self._session() as session:
            share = await session.get(self._share_model, share_id)
            if share is None:
                return None
            share.permission_level = permission_level
            share.updated_at = utcnow()
            await session.flush()
            return share

    async def delete(self, share_id: int) -> bool:
        async with self._session() as session:
            share = await session.get(self._share_model, share_id)
            if share is None:
                return False
            await session.delete(share)
            await session.flush()
            return True

    async def _list_where(self, *conditions: object) -> list[FileShareBase]:
        model = self._share_model
        async with self._session() as session:
            result = await session.execute(
                select(model)
                .where(*conditions)  # type: ignore[arg-type]
                .order_by(model.created_at.desc(), model.id.desc())  # type: ignore[union-attr]
            )
            return list(result.scalars().all())

    async def list_by_owner(self, owner_id: str) -> list[FileShareBase]:
        return await self._list_where(self._share_model.owner_id == owner_id)

    async def list_by_grantee(self, grantee_id: str) -> list[FileShareBase]:
        return await self._list_where(self._share_model.shared_with_id == grantee_id)

    async def list_for_path(self, owner_id: str, item_path: str) -> list[FileShareBase]:
        model = self._share_model
        return await self._list_where(model.owner_id == owner_id, model.item_path == item_path)


class SQLLinkRepository(_SQLRepository):
    """``LinkRepository`` on a ``LinkShareBase`` table."""

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        link_model: type[LinkShareBase] = LinkShare,
        *,
        dialect: str | None = None,
    ) -> None:
        super().__init__(session_factory, dialect=dialect)
        self._link_model = link_model

    async def get(self, link_id: int) -> LinkShareBase | None:
        async with self._session() as session:
            return await session.get(self._link_model, link_id)

    async def get_by_token(self, token: str) -> LinkShareBase | None:
        model = self._link_model
        async with self._session() as session:
            result = await session.execute(select(model).where(model.token == token))
            return result.scalar_one_or_none()

    async def add(
        self,
        *,
        token: str,
        path: str,
        owner_id: str,
        password_hash: str | None,
        expires_at: datetime | None,
        max_access: int | None,
        require_login: bool,
    ) -> LinkShareBase:
        link = self._link_model(
            token=token,
            path=path,
            owner_id=owner_id,
            password_hash=password_hash,
            expires_at=expires_at,
            max_access=max_access,
            require_login=require_login,
        )
        async with self._session() as session:
            session.add(link)
            await session.flush()
            return link

    async def delete(self, link_id: int) -> bool:
        async with self._session() as session:
            link = await session.get(self._link_model, link_id)
            if link is None:
                return False
            await session.delete(link)
            await session.flush()
            return True

    async def try_consume(self, link_id: int) -> bool:
        model = self._link_model
        stmt = (
            update(model)
            .where(
                model.id == link_id,  # type: ignore[arg-type]
                or_(
                    model.max_access.is_(None),  # type: ignore[union-attr]
                    model.access_count < model.max_access,  # type: ignore[operator]
                ),
            )
            .values(access_count=model.access_count + 1)
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.rowcount == 1  # type: ignore[attr-defined]

    async def list_by_owner(self, owner_id: str) -> list[LinkShareBase]:
        model = self._link_model
        async with self._session() as session:
            result = await session.execute(
                select(model)
                .where(model.owner_id == owner_id)
                .order_by(model.created_at.desc(), model.id.desc())  # type: ignore[union-attr]
            )
            return list(result.scalars().all())

    async def list_expiring(self, after: datetime, until: datetime) -> list[LinkShareBase]:
        model = self._link_model
        async with self._session() as session:
            result = await session.execute(
                select(model).where(
                    model.expires_at.is_not(None),  # type: ignore[union-attr]
                    model.expires_at > after,  # type: ignore[operator]
                    model.expires_at <= until,  # type: ignore[operator]
                    model.expiration_notified_at.is_(None),  # type: ignore[union-attr]
                )
            )
            links = result.scalars().all()

        # Re-check in Python: SQLite compares the stored strings, not instants
        return [
            link
            for link in links
            if link.expires_at is not None and after < as_utc(link.expires_at) <= until
        ]

    async def mark_expiration_notified(self, link_id: int, at: datetime) -> bool:
        model = self._link_model
        stmt = (
            update(model)
            .where(
                model.id == link_id,  # type: ignore[arg-type]
                model.expiration_notified_at.is_(None),  # type: ignore[union-attr]
            )
            .values(expiration_notified_at=at)
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.rowcount == 1  # type: ignore[attr-defined]


class SQLUserDirectory(_SQLRepository):
    """``UserDirectory`` on a ``UserBase`` table."""

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        user_model: type[UserBase] = User,
        *,
        dialect: str | None = None,
    ) -> None:
        super().__init__(session_factory, dialect=dialect)
        self._user_model = user_model

    async def get(self, user_id: str) -> UserBase | None:
        async with self._session() as session:
            return await session.get(self._user_model, user_id)

    async def search(self, query: str, *, exclude_id: str, limit: int) -> list[UserBase]:
        model = self._user_model
        pattern = "%" + _escape_like(query.lower()) + "%"
        async with self._session() as session:
            result = await session.execute(
                select(model)
                .where(
                    model.id != exclude_id,
                    model.is_active == True,  # noqa: E712
                    or_(
                        func.lower(model.username).like(pattern, escape="\\"),
                        func.lower(model.email).like(pattern, escape="\\"),
                    ),
                )
                .order_by(model.username)
                .limit(limit)
            )
            return list(result.scalars().all())
