"""SharingEngine — async facade over resolver, validator, managers and effects."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import EngineConfig
from .dialect import get_dialect
from .effects import EffectDispatcher
from .expiration import ExpiringLinkNotifier
from .links import LinkManager
from .models.links import LinkShare
from .models.shares import FileShare
from .models.users import User
from .permissions import Permission
from .repositories.memory import (
    InMemoryLinkRepository,
    InMemoryShareRepository,
    InMemoryUserDirectory,
)
from .repositories.sql import SQLLinkRepository, SQLShareRepository, SQLUserDirectory
from .resolver import PermissionResolver
from .sharing import ShareManager
from .utils import utcnow
from .validator import LinkAccessValidator

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncEngine

    from .effects import AuditLog, Notifier
    from .models.links import LinkShareBase
    from .models.shares import FileShareBase
    from .models.users import UserBase
    from .repositories.protocol import (
        FileMetadataSource,
        LinkRepository,
        ShareRepository,
        UserDirectory,
    )
    from .types import (
        LinkAccessResult,
        LinkResult,
        ListLinksResult,
        ListSharesResult,
        ShareResult,
        UserSearchResult,
    )

logger = logging.getLogger(__name__)


class SharingEngine:
    """Async facade wiring repositories, access checks, commands and effects.

    Commands return their result after the write is committed and its
    effects (audit records, notifications) were handed to the registered
    sinks.  Sink failures are logged and never fail the command.

    Database-backed::

        engine = create_async_engine("postgresql+asyncpg://...")
        gate = await SharingEngine.from_engine(engine)
        gate.add_notifier(push_notification)
        await gate.create_share("alice", "/home/docs", "bob", Permission.READ_ONLY)
        assert await gate.check_permission("bob", "/home/docs/report.txt")

    In-process (tests, embedded use)::

        gate = SharingEngine.in_memory()
    """

    def __init__(
        self,
        *,
        shares: ShareRepository,
        links: LinkRepository,
        users: UserDirectory,
        metadata: FileMetadataSource | None = None,
        config: EngineConfig | None = None,
        dispatcher: EffectDispatcher | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._config = config or EngineConfig()
        self._dispatcher = dispatcher or EffectDispatcher()
        self._shares = shares
        self._links = links
        self._users = users

        self._resolver = PermissionResolver(shares)
        self._validator = LinkAccessValidator(
            links, metadata=metadata, config=self._config, clock=clock
        )
        self._share_manager = ShareManager(shares, users, self._config)
        self._link_manager = LinkManager(links, self._config, clock=clock)
        self._expiring = ExpiringLinkNotifier(
            links, self._dispatcher, self._config, clock=clock
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    async def from_engine(
        cls,
        engine: AsyncEngine,
        *,
        share_model: type[FileShareBase] = FileShare,
        link_model: type[LinkShareBase] = LinkShare,
        user_model: type[UserBase] = User,
        create_tables: bool = True,
        **kwargs: Any,
    ) -> SharingEngine:
        """Build an engine on SQL repositories bound to *engine*.

        Tables are created if missing unless *create_tables* is False
        (e.g. when migrations own the schema).
        """
        if create_tables:
            async with engine.begin() as conn:
                for model in (user_model, share_model, link_model):
                    await conn.run_sync(
                        lambda c, m=model: m.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
                    )

        sf = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        dialect = get_dialect(engine)
        logger.debug("SharingEngine bound to %s database", dialect)
        return cls(
            shares=SQLShareRepository(sf, share_model, dialect=dialect),
            links=SQLLinkRepository(sf, link_model, dialect=dialect),
            users=SQLUserDirectory(sf, user_model, dialect=dialect),
            **kwargs,
        )

    @classmethod
    def in_memory(
        cls,
        *,
        users: InMemoryUserDirectory | None = None,
        **kwargs: Any,
    ) -> SharingEngine:
        """Build an engine on in-memory repositories."""
        return cls(
            shares=InMemoryShareRepository(),
            links=InMemoryLinkRepository(),
            users=users or InMemoryUserDirectory(),
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def dispatcher(self) -> EffectDispatcher:
        return self._dispatcher

    @property
    def resolver(self) -> PermissionResolver:
        return self._resolver

    @property
    def validator(self) -> LinkAccessValidator:
        return self._validator

    @property
    def shares(self) -> ShareManager:
        return self._share_manager

    @property
    def links(self) -> LinkManager:
        return self._link_manager

    def add_notifier(self, notifier: Notifier) -> None:
        self._dispatcher.add_notifier(notifier)

    def add_audit_log(self, audit_log: AuditLog) -> None:
        self._dispatcher.add_audit_log(audit_log)

    async def _settle(self, result: Any) -> Any:
        failed = await self._dispatcher.dispatch_all(result.effects)
        if failed:
            logger.warning("%d of %d effect(s) could not be delivered", failed, len(result.effects))
        return result

    # ------------------------------------------------------------------
    # Direct shares
    # ------------------------------------------------------------------

    async def create_share(
        self,
        owner_id: str,
        item_path: str,
        shared_with_id: str,
        level: int | Permission = Permission.READ_ONLY,
        *,
        item_name: str | None = None,
        is_folder: bool = False,
        message: str | None = None,
    ) -> ShareResult:
        result = await self._share_manager.create(
            owner_id,
            item_path,
            shared_with_id,
            level,
            item_name=item_name,
            is_folder=is_folder,
            message=message,
        )
        return await self._settle(result)

    async def update_share(
        self, owner_id: str, share_id: int, level: int | Permission
    ) -> ShareResult:
        return await self._settle(await self._share_manager.update(owner_id, share_id, level))

    async def delete_share(self, owner_id: str, share_id: int) -> ShareResult:
        return await self._settle(await self._share_manager.delete(owner_id, share_id))

    async def list_shared_by_me(self, actor_id: str) -> ListSharesResult:
        return await self._share_manager.list_by_owner(actor_id)

    async def list_shared_with_me(self, actor_id: str) -> ListSharesResult:
        return await self._share_manager.list_by_grantee(actor_id)

    async def get_share_info_for_path(self, actor_id: str, item_path: str) -> ListSharesResult:
        return await self._share_manager.list_for_path(actor_id, item_path)

    async def search_candidate_users(
        self, actor_id: str, query: str, limit: int | None = None
    ) -> UserSearchResult:
        return await self._share_manager.search_candidate_users(actor_id, query, limit)

    async def check_permission(
        self,
        actor_id: str,
        item_path: str,
        required: int | Permission = Permission.READ_ONLY,
    ) -> bool:
        return await self._resolver.resolve(actor_id, item_path, required)

    # ------------------------------------------------------------------
    # Public links
    # ------------------------------------------------------------------

    async def create_link(
        self,
        owner_id: str,
        path: str,
        *,
        password: str | None = None,
        expires_in_hours: int | None = None,
        max_access: int | None = None,
        require_login: bool = False,
    ) -> LinkResult:
        result = await self._link_manager.create(
            owner_id,
            path,
            password=password,
            expires_in_hours=expires_in_hours,
            max_access=max_access,
            require_login=require_login,
        )
        return await self._settle(result)

    async def delete_link(self, owner_id: str, link_id: int) -> LinkResult:
        return await self._settle(await self._link_manager.delete(owner_id, link_id))

    async def list_my_links(self, owner_id: str) -> ListLinksResult:
        return await self._link_manager.list_by_owner(owner_id)

    async def resolve_link_token(
        self,
        token: str,
        password: str | None = None,
        actor_id: str | None = None,
    ) -> LinkAccessResult:
        return await self._settle(await self._validator.validate(token, password, actor_id))

    async def check_expiring_links(self, now: datetime | None = None) -> int:
        return await self._expiring.check_expiring(now)
