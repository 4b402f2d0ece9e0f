"""Tests for SharingEngine — end-to-end flows through the async facade."""

from __future__ import annotations

import logging
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

import sharegate
from sharegate import (
    AuditAction,
    AuditRecord,
    EngineConfig,
    LinkStatus,
    Notification,
    NotificationKind,
    Permission,
    PermissionResolver,
    SharingEngine,
)
from sharegate.exceptions import NotOwnerError, SelfShareError


class Sinks:
    """Collects everything the engine dispatches."""

    def __init__(self) -> None:
        self.notes: list[Notification] = []
        self.audits: list[AuditRecord] = []

    async def notify(self, note: Notification) -> None:
        self.notes.append(note)

    async def audit(self, record: AuditRecord) -> None:
        self.audits.append(record)

    def kinds(self) -> list[NotificationKind]:
        return [n.kind for n in self.notes]

    def actions(self) -> list[AuditAction]:
        return [a.action for a in self.audits]


@pytest.fixture(params=["memory", "sql"])
async def gate(request, async_engine, memory_users, sql_users, clock) -> SharingEngine:
    if request.param == "memory":
        return SharingEngine.in_memory(users=memory_users, clock=clock)
    return await SharingEngine.from_engine(async_engine, clock=clock)


@pytest.fixture
def sinks(gate: SharingEngine) -> Sinks:
    sinks = Sinks()
    gate.add_notifier(sinks.notify)
    gate.add_audit_log(sinks.audit)
    return sinks


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_package_exports(self):
        assert sharegate.SharingEngine is SharingEngine
        assert sharegate.__version__ == "0.1.0"

    async def test_components(self, gate: SharingEngine):
        assert isinstance(gate.resolver, PermissionResolver)
        assert isinstance(gate.config, EngineConfig)
        assert gate.validator.check_names[0] == "lookup"

    async def test_from_engine_creates_tables(self):
        engine = create_async_engine("sqlite+aiosqlite://", echo=False)
        try:
            gate = await SharingEngine.from_engine(engine)
            result = await gate.create_link("alice", "/home/alice/a.txt")
            assert result.success
            assert (await gate.list_my_links("alice")).total == 1
        finally:
            await engine.dispose()

    async def test_custom_config(self, memory_users):
        config = EngineConfig(link_url_prefix="https://f.example.com/s/")
        gate = SharingEngine.in_memory(users=memory_users, config=config)
        result = await gate.create_link("alice", "/home/alice/a.txt")
        assert result.link.url.startswith("https://f.example.com/s/")


# ---------------------------------------------------------------------------
# Direct shares
# ---------------------------------------------------------------------------


class TestShareFlow:
    async def test_folder_share_lifecycle(self, gate: SharingEngine, sinks: Sinks):
        created = await gate.create_share(
            "alice", "/home/alice/docs", "bob", Permission.READ_ONLY, is_folder=True
        )
        assert created.success
        assert await gate.check_permission("bob", "/home/alice/docs/report.txt")
        assert not await gate.check_permission(
            "bob", "/home/alice/docs/report.txt", Permission.READ_WRITE
        )
        assert not await gate.check_permission("bob", "/home/alice/other.txt")

        await gate.update_share("alice", created.share.id, Permission.READ_WRITE)
        assert await gate.check_permission(
            "bob", "/home/alice/docs/report.txt", Permission.READ_WRITE
        )

        await gate.delete_share("alice", created.share.id)
        assert not await gate.check_permission("bob", "/home/alice/docs/report.txt")

        assert sinks.kinds() == [
            NotificationKind.SHARE_RECEIVED,
            NotificationKind.SHARE_PERMISSION_CHANGED,
            NotificationKind.SHARE_REMOVED,
        ]
        assert all(n.recipient_id == "bob" for n in sinks.notes)
        assert sinks.actions() == [
            AuditAction.FILE_SHARE_CREATE,
            AuditAction.FILE_SHARE_UPDATE,
            AuditAction.FILE_SHARE_DELETE,
        ]

    async def test_listings(self, gate: SharingEngine):
        await gate.create_share("alice", "/home/alice/a.txt", "bob")
        await gate.create_share("alice", "/home/alice/a.txt", "carol")
        await gate.create_share("carol", "/shared/team/x.md", "bob")

        assert (await gate.list_shared_by_me("alice")).total == 2
        with_bob = await gate.list_shared_with_me("bob")
        assert {s.owner_id for s in with_bob.shares} == {"alice", "carol"}
        on_path = await gate.get_share_info_for_path("alice", "/home/alice/a.txt")
        assert {s.shared_with_id for s in on_path.shares} == {"bob", "carol"}

    async def test_search_candidate_users(self, gate: SharingEngine):
        result = await gate.search_candidate_users("bob", "example")
        assert [u.id for u in result.users] == ["alice", "carol"]

    async def test_rejected_commands_dispatch_nothing(self, gate: SharingEngine, sinks: Sinks):
        with pytest.raises(SelfShareError):
            await gate.create_share("alice", "/home/alice/a.txt", "alice")
        created = await gate.create_share("alice", "/home/alice/a.txt", "bob")
        sinks.notes.clear()
        sinks.audits.clear()

        with pytest.raises(NotOwnerError):
            await gate.delete_share("bob", created.share.id)
        assert sinks.notes == []
        assert sinks.audits == []
        assert await gate.check_permission("bob", "/home/alice/a.txt")

    async def test_failing_sink_does_not_fail_command(
        self, gate: SharingEngine, caplog: pytest.LogCaptureFixture
    ):
        async def broken(note: Notification) -> None:
            raise RuntimeError("push service down")

        gate.add_notifier(broken)
        with caplog.at_level(logging.WARNING, logger="sharegate"):
            result = await gate.create_share("alice", "/home/alice/a.txt", "bob")

        assert result.success
        assert await gate.check_permission("bob", "/home/alice/a.txt")
        assert "could not be delivered" in caplog.text


# ---------------------------------------------------------------------------
# Public links
# ---------------------------------------------------------------------------


class TestLinkFlow:
    async def test_password_link(self, gate: SharingEngine, sinks: Sinks):
        created = await gate.create_link(
            "alice", "/home/alice/report.pdf", password="s3cret", max_access=2
        )
        token = created.link.token

        missing = await gate.resolve_link_token(token)
        assert missing.status is LinkStatus.NEEDS_PASSWORD
        wrong = await gate.resolve_link_token(token, "guess")
        assert wrong.password_incorrect

        granted = await gate.resolve_link_token(token, "s3cret")
        assert granted.granted
        assert granted.path == "/home/alice/report.pdf"
        assert granted.name == "report.pdf"

        listed = await gate.list_my_links("alice")
        assert listed.links[0].access_count == 1
        assert sinks.actions() == [AuditAction.SHARE_LINK_CREATE, AuditAction.SHARE_LINK_ACCESS]

    async def test_single_use(self, gate: SharingEngine):
        created = await gate.create_link("alice", "/home/alice/a.txt", max_access=1)
        assert (await gate.resolve_link_token(created.link.token)).granted
        second = await gate.resolve_link_token(created.link.token)
        assert second.status is LinkStatus.EXHAUSTED

    async def test_expiring_link(self, gate: SharingEngine, clock):
        created = await gate.create_link("alice", "/home/alice/a.txt", expires_in_hours=2)
        assert (await gate.resolve_link_token(created.link.token)).granted

        clock.now += timedelta(hours=3)
        result = await gate.resolve_link_token(created.link.token, actor_id="bob")
        assert result.status is LinkStatus.EXPIRED

    async def test_login_link(self, gate: SharingEngine):
        created = await gate.create_link("alice", "/home/alice/a.txt", require_login=True)
        anon = await gate.resolve_link_token(created.link.token)
        assert anon.status is LinkStatus.NEEDS_LOGIN
        assert (await gate.resolve_link_token(created.link.token, actor_id="bob")).granted

    async def test_revoked_link(self, gate: SharingEngine, sinks: Sinks):
        created = await gate.create_link("alice", "/home/alice/a.txt")
        await gate.delete_link("alice", created.link.id)
        result = await gate.resolve_link_token(created.link.token)
        assert result.status is LinkStatus.NOT_FOUND
        assert AuditAction.SHARE_LINK_DELETE in sinks.actions()

    async def test_expiring_link_notification(self, gate: SharingEngine, sinks: Sinks):
        await gate.create_link("alice", "/home/alice/a.txt", expires_in_hours=6)
        await gate.create_link("alice", "/home/alice/b.txt", expires_in_hours=48)

        assert await gate.check_expiring_links() == 1
        assert sinks.kinds() == [NotificationKind.SHARE_LINK_EXPIRING]
        assert await gate.check_expiring_links() == 0
