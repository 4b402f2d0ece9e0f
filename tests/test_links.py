"""Tests for LinkManager — link creation, revocation and listing."""

from __future__ import annotations

from datetime import timedelta

import pytest

from sharegate.config import EngineConfig
from sharegate.effects import AuditAction, AuditRecord
from sharegate.exceptions import (
    NotFoundError,
    NotOwnerError,
    PathNotAllowedError,
    ValidationError,
)
from sharegate.links import LinkManager
from sharegate.security import verify_password


@pytest.fixture
def links(repos, clock) -> LinkManager:
    return LinkManager(repos.links, clock=clock)


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreateLink:
    async def test_create_link(self, links: LinkManager):
        result = await links.create("alice", "/home/alice/report.pdf")
        assert result.success
        assert result.message == "Share link created"

        link = result.link
        assert link.id
        assert link.path == "/home/alice/report.pdf"
        assert link.owner_id == "alice"
        assert len(link.token) == 43
        assert link.url == f"/s/{link.token}"
        assert link.has_password is False
        assert link.expires_at is None
        assert link.max_access is None
        assert link.access_count == 0
        assert link.require_login is False
        assert link.created_at is not None

    async def test_path_is_normalized(self, links: LinkManager):
        result = await links.create("alice", "home/alice//docs/")
        assert result.link.path == "/home/alice/docs"

    async def test_tokens_are_unique(self, links: LinkManager):
        tokens = {(await links.create("alice", "/home/alice/a.txt")).link.token for _ in range(10)}
        assert len(tokens) == 10

    async def test_password_is_hashed(self, links: LinkManager, repos):
        result = await links.create("alice", "/home/alice/a.txt", password="hunter2")
        assert result.link.has_password
        assert not hasattr(result.link, "password_hash")

        stored = await repos.links.get_by_token(result.link.token)
        assert stored.password_hash != "hunter2"
        assert verify_password(stored.password_hash, "hunter2")

    async def test_empty_password_means_none(self, links: LinkManager, repos):
        result = await links.create("alice", "/home/alice/a.txt", password="")
        assert not result.link.has_password
        stored = await repos.links.get_by_token(result.link.token)
        assert stored.password_hash is None

    async def test_expiry(self, links: LinkManager, clock):
        result = await links.create("alice", "/home/alice/a.txt", expires_in_hours=24)
        assert result.link.expires_at == clock.now + timedelta(hours=24)

    async def test_zero_expiry_means_never(self, links: LinkManager):
        result = await links.create("alice", "/home/alice/a.txt", expires_in_hours=0)
        assert result.link.expires_at is None

    async def test_max_access(self, links: LinkManager):
        result = await links.create("alice", "/home/alice/a.txt", max_access=5)
        assert result.link.max_access == 5

    async def test_zero_max_access_means_unlimited(self, links: LinkManager):
        result = await links.create("alice", "/home/alice/a.txt", max_access=0)
        assert result.link.max_access is None

    async def test_require_login(self, links: LinkManager):
        result = await links.create("alice", "/home/alice/a.txt", require_login=True)
        assert result.link.require_login

    async def test_missing_owner_rejected(self, links: LinkManager, repos):
        with pytest.raises(ValidationError, match="Owner ID"):
            await links.create("", "/home/alice/a.txt")
        assert await repos.links.list_by_owner("") == []

    async def test_negative_expiry_rejected(self, links: LinkManager):
        with pytest.raises(ValidationError, match="expires_in_hours"):
            await links.create("alice", "/home/alice/a.txt", expires_in_hours=-1)

    async def test_negative_max_access_rejected(self, links: LinkManager):
        with pytest.raises(ValidationError, match="max_access"):
            await links.create("alice", "/home/alice/a.txt", max_access=-3)

    async def test_path_outside_roots_rejected(self, links: LinkManager):
        with pytest.raises(PathNotAllowedError):
            await links.create("alice", "/etc/shadow")

    async def test_invalid_path_rejected(self, links: LinkManager):
        with pytest.raises(ValidationError):
            await links.create("alice", "")

    async def test_audit_effect(self, links: LinkManager, clock):
        result = await links.create(
            "alice", "/home/alice/a.txt", password="pw", expires_in_hours=1, max_access=3
        )
        assert len(result.effects) == 1
        record = result.effects[0]
        assert isinstance(record, AuditRecord)
        assert record.action is AuditAction.SHARE_LINK_CREATE
        assert record.actor_id == "alice"
        assert record.target_path == "/home/alice/a.txt"
        assert record.metadata == {
            "linkId": result.link.id,
            "hasPassword": True,
            "expiresAt": (clock.now + timedelta(hours=1)).isoformat(),
            "maxAccess": 3,
            "requireLogin": False,
        }

    async def test_custom_config(self, repos, clock):
        config = EngineConfig(token_bytes=16, link_url_prefix="https://files.example.com/s")
        manager = LinkManager(repos.links, config, clock=clock)
        result = await manager.create("alice", "/home/alice/a.txt")
        assert len(result.link.token) == 22
        assert result.link.url == f"https://files.example.com/s/{result.link.token}"


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDeleteLink:
    async def test_delete_link(self, links: LinkManager, repos):
        created = await links.create("alice", "/home/alice/a.txt")
        result = await links.delete("alice", created.link.id)
        assert result.success
        assert result.link.token == created.link.token
        assert await repos.links.get_by_token(created.link.token) is None

    async def test_delete_effect(self, links: LinkManager):
        created = await links.create("alice", "/home/alice/a.txt")
        result = await links.delete("alice", created.link.id)
        record = result.effects[0]
        assert record.action is AuditAction.SHARE_LINK_DELETE
        assert record.metadata == {"linkId": created.link.id}

    async def test_delete_by_non_owner(self, links: LinkManager, repos):
        created = await links.create("alice", "/home/alice/a.txt")
        with pytest.raises(NotOwnerError):
            await links.delete("bob", created.link.id)
        assert await repos.links.get_by_token(created.link.token) is not None

    async def test_delete_missing(self, links: LinkManager):
        with pytest.raises(NotFoundError):
            await links.delete("alice", 424242)


# ---------------------------------------------------------------------------
# list_by_owner
# ---------------------------------------------------------------------------


class TestListLinks:
    async def test_newest_first(self, links: LinkManager):
        ids = [(await links.create("alice", f"/home/alice/{n}.txt")).link.id for n in "abc"]
        listed = await links.list_by_owner("alice")
        assert listed.total == 3
        assert [link.id for link in listed.links] == list(reversed(ids))

    async def test_only_own_links(self, links: LinkManager):
        await links.create("alice", "/home/alice/a.txt")
        await links.create("bob", "/home/bob/b.txt")
        listed = await links.list_by_owner("bob")
        assert [link.path for link in listed.links] == ["/home/bob/b.txt"]

    async def test_listing_hides_password_hash(self, links: LinkManager):
        await links.create("alice", "/home/alice/a.txt", password="pw")
        listed = await links.list_by_owner("alice")
        assert listed.links[0].has_password
        assert not hasattr(listed.links[0], "password_hash")

    async def test_empty(self, links: LinkManager):
        listed = await links.list_by_owner("carol")
        assert listed.success
        assert listed.total == 0
