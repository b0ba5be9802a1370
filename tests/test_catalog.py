"""
Tests for the permission and role catalogs.
"""

import pytest
from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError

from polyacl.core.exceptions import InvalidArgumentError, NotFoundError
from polyacl.models import Permission, Role
from polyacl.services import PermissionCatalog, PermissionGrants, RoleAssignments, RoleCatalog

from sample_app import Article


@pytest.mark.asyncio
async def test_create_many_permissions(db):
    catalog = PermissionCatalog(db)

    created = await catalog.create_many(["post.create", "post.update"])

    assert [p.name for p in created] == ["post.create", "post.update"]
    assert all(p.is_global for p in created)


@pytest.mark.asyncio
async def test_create_many_keeps_existing_permissions(db):
    catalog = PermissionCatalog(db)
    first = await catalog.create_many(["post.create"])

    again = await catalog.create_many(["post.create", "post.update"])

    assert [p.name for p in again] == ["post.create", "post.update"]
    assert again[0].id == first[0].id
    assert len(await catalog.get_by_name(["post.create"])) == 1


@pytest.mark.asyncio
async def test_permission_triple_is_unique_with_null_scopes(db):
    catalog = PermissionCatalog(db)
    await catalog.create_one("post.create")
    await catalog.create_one("article.viewAny", Article)
    await catalog.create_one("article.view", Article, 1)

    for name, resource_type, resource_id in (
        ("post.create", None, None),
        ("article.viewAny", "Article", None),
        ("article.view", "Article", "1"),
    ):
        with pytest.raises(IntegrityError):
            async with db.begin_nested():
                await db.execute(
                    insert(Permission).values(
                        name=name, resource_type=resource_type, resource_id=resource_id
                    )
                )

    # Same name at another scope is a different permission.
    await catalog.create_one("article.view", Article, 2)
    await catalog.create_one("article.view", Article)
    assert len(await catalog.get_by_name(["article.view"])) == 3


@pytest.mark.asyncio
async def test_create_many_requires_a_list(db):
    with pytest.raises(InvalidArgumentError):
        await PermissionCatalog(db).create_many("post.create")


@pytest.mark.asyncio
async def test_get_by_name_drops_unknown_names(db, permissions):
    found = await PermissionCatalog(db).get_by_name(["post.create", "nope"])
    assert [p.name for p in found] == ["post.create"]


@pytest.mark.asyncio
async def test_get_by_name_pairs_names_with_resources(db):
    catalog = PermissionCatalog(db)
    on_five = await catalog.create_one("article.view", Article, 5)
    on_six = await catalog.create_one("article.view", Article, 6)
    any_ = await catalog.create_one("article.viewAny", Article)

    found = await catalog.get_by_name(["article.view", "article.viewAny"], Article, [5, None])

    assert {p.id for p in found} == {on_five.id, any_.id}
    assert on_six.id not in {p.id for p in found}


@pytest.mark.asyncio
async def test_get_by_name_rejects_mismatched_lengths(db):
    with pytest.raises(InvalidArgumentError):
        await PermissionCatalog(db).get_by_name(["a", "b"], Article, [1])


@pytest.mark.asyncio
async def test_first_or_create_returns_existing(db):
    catalog = PermissionCatalog(db)

    first = await catalog.first_or_create("article.update", Article, 1)
    second = await catalog.first_or_create("article.update", Article, 1)

    assert first.id == second.id
    assert first.is_instance_level
    assert len(await catalog.all()) == 1


@pytest.mark.asyncio
async def test_delete_removes_grants(db, editor, permissions):
    grants = PermissionGrants(db, editor)
    await grants.add_permissions(["post.create", "post.update"])

    deleted = await PermissionCatalog(db).delete("post.create")

    assert deleted == 1
    assert await grants.get_permission_names() == ["post.update"]


@pytest.mark.asyncio
async def test_delete_for_resource_and_type(db):
    catalog = PermissionCatalog(db)
    await catalog.create_one("article.view", Article, 1)
    await catalog.create_one("article.update", Article, 1)
    await catalog.create_one("article.view", Article, 2)
    await catalog.create_one("article.viewAny", Article)

    assert await catalog.delete_for_resource(Article, 1) == 2
    assert await catalog.delete_for_resource_type(Article, generic_only=True) == 1
    remaining = await catalog.all()
    assert [(p.name, p.resource_id) for p in remaining] == [("article.view", "2")]

    assert await catalog.delete_for_resource_type(Article) == 1
    assert await catalog.all() == []


@pytest.mark.asyncio
async def test_get_roles_holding_permission(db, roles, permissions):
    await PermissionGrants(db).add_permission_to_many("post.publish", roles[:3])

    catalog = PermissionCatalog(db)
    publish = await catalog.find("post.publish")

    assert await catalog.get_role_names(publish) == ["role-0", "role-1", "role-2"]


@pytest.mark.asyncio
async def test_get_holders_of_other_types(db, alice, bob, permissions):
    await PermissionGrants(db, bob).add_permission("post.create")

    catalog = PermissionCatalog(db)
    create = await catalog.find("post.create")

    assert await catalog.get_holders(create, type(bob)) == [bob]


@pytest.mark.asyncio
async def test_custom_permission_model_is_used(db):
    catalog = PermissionCatalog(db, permission_model=Permission, role_model=Role)
    assert catalog.model is Permission
    assert catalog.role_model is Role


# ============ Roles ============


@pytest.mark.asyncio
async def test_role_lookup_is_strict(db, editor):
    catalog = RoleCatalog(db)

    assert await catalog.get_by_name("editor") == [editor]
    with pytest.raises(NotFoundError):
        await catalog.get_by_name(["editor", "admin"])
    assert await catalog.find("admin") is None


@pytest.mark.asyncio
async def test_create_many_roles(db):
    created = await RoleCatalog(db).create_many(["a", "b", "a"])
    assert [r.name for r in created] == ["a", "b"]


@pytest.mark.asyncio
async def test_delete_role_purges_its_grants_and_assignments(db, alice, editor, permissions):
    await PermissionGrants(db, editor).add_permissions(["post.create"])
    await RoleAssignments(db, alice).add_role(editor)

    assert await RoleCatalog(db).delete("editor") == 1

    assert await RoleAssignments(db, alice).count_roles() == 0
    assert await PermissionGrants(db, editor).count_permissions() == 0
    assert not await PermissionGrants(db, alice).has_permission("post.create")
