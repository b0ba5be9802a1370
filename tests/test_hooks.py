"""
Tests for the hook manager and the cascade handlers.
"""

import pytest

from polyacl.core.exceptions import PreconditionError
from polyacl.core.hooks import HOLDER_DELETED, RESOURCE_DELETED, HookManager, HookPriority, hooks
from polyacl.models import User
from polyacl.services import PermissionCatalog, PermissionGrants, ResourcePermissions, RoleAssignments

from sample_app import Article


class UnreachableArticle:
    """Resource whose id cannot be read, as when its session has gone away."""

    __acl_type__ = "Article"

    def get_acl_id(self):
        raise RuntimeError("db down")


@pytest.mark.asyncio
async def test_hooks_run_in_priority_order():
    manager = HookManager()
    calls = []

    @manager.on("thing.happened", priority=HookPriority.LAST)
    async def last():
        calls.append("last")

    @manager.on("thing.happened", priority=HookPriority.FIRST)
    async def first():
        calls.append("first")

    result = await manager.trigger("thing.happened")

    assert calls == ["first", "last"]
    assert result.ok


@pytest.mark.asyncio
async def test_handler_errors_are_collected():
    manager = HookManager()

    async def broken():
        raise RuntimeError("boom")

    async def fine():
        return "ran"

    manager.register("evt", broken, priority=HookPriority.FIRST)
    manager.register("evt", fine)

    result = await manager.trigger("evt")

    assert result.results == ["ran"]
    assert len(result.errors) == 1
    assert not result.ok


@pytest.mark.asyncio
async def test_critical_handler_errors_propagate():
    manager = HookManager()
    calls = []

    @manager.on("evt", priority=HookPriority.FIRST, critical=True)
    async def broken():
        raise RuntimeError("boom")

    @manager.on("evt")
    async def after():
        calls.append("after")

    with pytest.raises(RuntimeError, match="boom"):
        await manager.trigger("evt")
    assert calls == []


def test_cascade_hooks_are_registered():
    assert hooks.has_hooks(RESOURCE_DELETED)
    assert hooks.has_hooks(HOLDER_DELETED)
    assert not hooks.has_hooks("acl.unknown")


@pytest.mark.asyncio
async def test_failed_resource_purge_raises(db):
    with pytest.raises(RuntimeError, match="db down"):
        await hooks.trigger(RESOURCE_DELETED, db=db, resource=UnreachableArticle())


@pytest.mark.asyncio
async def test_failed_holder_purge_raises(db):
    with pytest.raises(PreconditionError):
        await hooks.trigger(HOLDER_DELETED, db=db, holder=User(email="x@example.com", name="X"))


@pytest.mark.asyncio
async def test_resource_deleted_purges_instance_permissions(db, editor, article_factory):
    article = await article_factory.create()
    keep = await article_factory.create()
    perms = ResourcePermissions(db, article)
    await perms.create_crud_permissions()
    await perms.grant_crud_permissions(editor)
    await ResourcePermissions(db, keep).create_crud_permissions()
    await ResourcePermissions(db, Article).create_crud_permissions()

    await db.delete(article)
    result = await hooks.trigger(RESOURCE_DELETED, db=db, resource=article)

    assert result.ok
    assert result.results == [3]
    assert len(await PermissionCatalog(db).all()) == 7
    assert await PermissionGrants(db, editor).count_permissions() == 0


@pytest.mark.asyncio
async def test_holder_deleted_purges_associations(db, alice, bob, editor, permissions):
    await PermissionGrants(db, alice).add_permissions(["post.create", "post.update"])
    await PermissionGrants(db, bob).add_permission("post.create")
    await RoleAssignments(db, alice).add_role(editor)

    result = await hooks.trigger(HOLDER_DELETED, db=db, holder=alice)

    assert result.results == [3]
    assert await PermissionGrants(db).store.count_where() == 1
    assert await RoleAssignments(db).store.count_where() == 0
