"""
Tests for the permission-grant engine.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from polyacl.core.config import AclSettings
from polyacl.core.exceptions import InvalidArgumentError, NotFoundError, PreconditionError
from polyacl.models import Permission, User
from polyacl.services import PermissionCatalog, PermissionGrants, RoleAssignments

from sample_app import Article


NAMES = ["post.create", "post.update", "post.delete", "post.publish"]


@pytest.mark.asyncio
async def test_add_then_has_and_count(db, editor, permissions):
    grants = PermissionGrants(db, editor)

    assert await grants.add_permissions(NAMES[:3]) == 3

    assert await grants.has_permissions(NAMES[:3])
    assert await grants.count_permissions() == 3
    assert not await grants.has_permission("post.publish")


@pytest.mark.asyncio
async def test_del_all_permissions(db, editor, permissions):
    grants = PermissionGrants(db, editor)
    await grants.add_permissions(NAMES)

    assert await grants.del_all_permissions() == 4
    assert await grants.count_permissions() == 0


@pytest.mark.asyncio
async def test_del_permissions(db, editor, permissions):
    grants = PermissionGrants(db, editor)
    await grants.add_permissions(NAMES)

    assert await grants.del_permissions(["post.create", "post.update"]) == 2
    assert await grants.get_permission_names() == ["post.delete", "post.publish"]
    assert await grants.del_permission("missing.permission") == 0


@pytest.mark.asyncio
async def test_set_permissions_replaces(db, editor, permissions):
    grants = PermissionGrants(db, editor)
    await grants.add_permissions(NAMES[:2])

    await grants.set_permissions(NAMES[2:])

    assert await grants.has_permissions(NAMES[2:])
    assert not await grants.has_any_permission(NAMES[:2])


@pytest.mark.asyncio
async def test_failed_set_permissions_keeps_current_grants(db, editor, permissions):
    grants = PermissionGrants(db, editor)
    await grants.add_permission("post.create")

    with pytest.raises(IntegrityError):
        await grants.set_permissions([Permission(id=9999, name="ghost")])
    await db.commit()

    assert await grants.get_permission_names() == ["post.create"]


@pytest.mark.asyncio
async def test_role_permissions_are_inherited(db, alice, editor, permissions):
    await PermissionGrants(db, editor).add_permission("post.publish")
    await RoleAssignments(db, alice).add_role(editor)

    grants = PermissionGrants(db, alice)

    assert await grants.has_permission("post.publish")
    assert await grants.get_direct_permissions() == []
    assert await grants.get_permission_names() == ["post.publish"]


@pytest.mark.asyncio
async def test_effective_permissions_are_distinct(db, alice, editor, permissions):
    await PermissionGrants(db, editor).add_permissions(["post.create", "post.update"])
    await RoleAssignments(db, alice).add_role(editor)
    grants = PermissionGrants(db, alice)
    await grants.add_permission("post.create")

    assert await grants.count_permissions() == 2
    assert await grants.get_permission_names() == ["post.create", "post.update"]
    assert [p.name for p in await grants.get_direct_permissions()] == ["post.create"]


@pytest.mark.asyncio
async def test_has_permissions_fails_on_unknown_permission(db, editor, permissions):
    grants = PermissionGrants(db, editor)
    await grants.add_permissions(NAMES)

    assert not await grants.has_permissions(["post.create", "does.not.exist"])
    assert await grants.has_any_permission(["post.create", "does.not.exist"])


@pytest.mark.asyncio
async def test_unknown_permission_next_to_multi_instance_name(db, editor):
    catalog = PermissionCatalog(db)
    grants = PermissionGrants(db, editor)
    await grants.add_permissions([
        await catalog.create_one("article.view", Article, 1),
        await catalog.create_one("article.view", Article, 2),
    ])

    assert await grants.has_permissions(["article.view"])
    assert not await grants.has_permissions(["article.view", "article.publish"])
    assert not await grants.has_permissions(
        ["article.view", "article.publish"], Article, [1, 1]
    )


@pytest.mark.asyncio
async def test_empty_candidate_sets(db, editor):
    grants = PermissionGrants(db, editor)

    assert await grants.has_permissions([])
    assert not await grants.has_any_permission([])


@pytest.mark.asyncio
async def test_has_any_permission_is_monotonic(db, editor, permissions):
    grants = PermissionGrants(db, editor)
    await grants.add_permission("post.update")

    assert await grants.has_any_permission(["post.update"])
    assert await grants.has_any_permission(["post.update", "post.create", "ghost"])
    assert not await grants.has_any_permission(["post.create", "ghost"])


@pytest.mark.asyncio
async def test_instance_and_type_scope(db, editor):
    catalog = PermissionCatalog(db)
    await catalog.create_one("article.view", Article, 42)
    await catalog.create_one("article.viewAny", Article)
    grants = PermissionGrants(db, editor)
    await grants.add_permission("article.view", Article, 42)

    assert await grants.has_permission("article.view", Article, 42)
    assert not await grants.has_permission("article.view", Article, 43)
    assert not await grants.has_permission("article.viewAny", Article)

    await grants.add_permission("article.viewAny", Article)
    assert await grants.has_any_permission(
        ["article.view", "article.viewAny"], Article, [43, None]
    )


@pytest.mark.asyncio
async def test_permission_entities_and_ids_are_accepted(db, editor, permissions):
    grants = PermissionGrants(db, editor)

    await grants.add_permissions(permissions[:2])
    await grants.add_permissions([permissions[2].id])

    assert await grants.has_permissions([p.id for p in permissions[:3]])
    assert await grants.has_permission(permissions[0])


@pytest.mark.asyncio
async def test_mixed_reference_kinds_are_rejected(db, editor, permissions):
    with pytest.raises(InvalidArgumentError):
        await PermissionGrants(db, editor).add_permissions(["post.create", permissions[1].id])


@pytest.mark.asyncio
async def test_duplicate_grant_raises(db, editor, permissions):
    grants = PermissionGrants(db, editor)
    await grants.add_permission("post.create")

    with pytest.raises(IntegrityError):
        await grants.add_permission("post.create")


@pytest.mark.asyncio
async def test_duplicate_grant_ignored_when_configured(db, editor, permissions):
    grants = PermissionGrants(db, editor, config=AclSettings(ignore_duplicate_grants=True))
    await grants.add_permissions(["post.create"])

    assert await grants.add_permissions(["post.create", "post.update"]) == 1
    assert await grants.count_permissions() == 2


@pytest.mark.asyncio
async def test_strict_grants(db, editor, permissions):
    lenient = PermissionGrants(db, editor)
    strict = PermissionGrants(db, editor, config=AclSettings(strict_permission_grants=True))

    assert await lenient.add_permissions(["ghost"]) == 0
    with pytest.raises(NotFoundError):
        await strict.add_permissions(["post.create", "ghost"])
    assert await strict.count_permissions() == 0


@pytest.mark.asyncio
async def test_unbound_engine_needs_a_holder(db, permissions):
    with pytest.raises(PreconditionError):
        await PermissionGrants(db).add_permission("post.create")


@pytest.mark.asyncio
async def test_unsaved_holder_is_rejected(db, permissions):
    with pytest.raises(PreconditionError):
        await PermissionGrants(db, User(email="new@example.com", name="New")).get_permissions()


@pytest.mark.asyncio
async def test_get_resources(db, alice, article_factory):
    first = await article_factory.create("first")
    second = await article_factory.create("second")
    await article_factory.create("third")
    catalog = PermissionCatalog(db)
    await catalog.create_one("article.view", Article, first.id)
    await catalog.create_one("article.update", Article, second.id)

    grants = PermissionGrants(db, alice)
    await grants.add_permission("article.view", Article, first.id)
    await grants.add_permission("article.update", Article, second.id)

    assert await grants.get_resources(Article) == [first, second]
    assert await grants.get_resources(Article, ["update"]) == [second]
    assert await grants.get_resources(Article, ["article.view"], add_prefix=False) == [first]


# ============ Bulk ============


@pytest.mark.asyncio
async def test_add_and_del_permissions_to_many(db, roles, permissions):
    engine = PermissionGrants(db)

    assert await engine.add_permissions_to_many(NAMES, roles) == 40
    for role in roles:
        assert await PermissionGrants(db, role).count_permissions() == 4

    assert await engine.del_permissions_from_many(NAMES[:2], roles) == 20
    assert await PermissionGrants(db, roles[0]).get_permission_names() == NAMES[2:]


@pytest.mark.asyncio
async def test_bulk_rejects_raw_holder_references(db, permissions):
    with pytest.raises(InvalidArgumentError):
        await PermissionGrants(db).add_permissions_to_many(NAMES, ["editor"])


@pytest.mark.asyncio
async def test_with_permission_names_matches_individual_lookup(
    db, roles, permissions, user_factory, statements
):
    users = await user_factory.create_many(20)
    await PermissionGrants(db).add_permission_to_many("post.publish", roles[:2])
    await RoleAssignments(db).add_roles_to_many(roles[:2], users[:10])
    await PermissionGrants(db).add_permissions_to_many(["post.create"], users[5:15])

    expected = [await PermissionGrants(db, u).get_permission_names() for u in users]

    statements.reset()
    await PermissionGrants(db).with_permission_names(users)
    assert statements.count <= 2

    assert [u.permissions for u in users] == expected
    assert users[0].permissions == ["post.publish"]
    assert users[7].permissions == ["post.create", "post.publish"]
    assert users[19].permissions == []


@pytest.mark.asyncio
async def test_with_permissions_on_roles(db, roles, permissions):
    await PermissionGrants(db, roles[0]).add_permissions(NAMES[:2])

    await PermissionGrants(db).with_permissions(roles[:2], attr="granted")

    assert [p.name for p in roles[0].granted] == NAMES[:2]
    assert roles[1].granted == []
