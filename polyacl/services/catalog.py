"""
Permission and role catalogs.

CRUD and name-based lookup for the two entity kinds the association
tables point at.

Usage:
    catalog = PermissionCatalog(db)
    await catalog.create_many(["post.publish", "post.archive"])

    # type-level / group lookup
    perms = await catalog.get_by_name(["article.view", "article.update"])

    # instance-level lookup, names paired positionally with resources
    perms = await catalog.get_by_name(
        ["article.view", "article.viewAny"], Article, [article, None]
    )
"""

from typing import Any, Sequence

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from polyacl.core.exceptions import InvalidArgumentError, NotFoundError
from polyacl.models.mixins import type_tag
from polyacl.models.permission import Permission
from polyacl.models.role import Role
from polyacl.repositories.associations import HolderRoleStore, SubjectPermissionStore
from polyacl.repositories.base import BaseRepository

from .identity import (
    as_list,
    coerce_ids,
    normalize_permissions,
    normalize_roles,
    resource_ref,
    unique,
)

logger = structlog.get_logger()


def _require_names(names: Any, what: str) -> list[str]:
    names = as_list(names, what)
    if not names:
        raise InvalidArgumentError(f"No {what} provided")
    if not all(isinstance(n, str) for n in names):
        raise InvalidArgumentError(f"{what} must be strings")
    return names


class PermissionCatalog:
    """
    CRUD and lookup for Permission entities.

    The permission class is pluggable; the role class is only needed to
    answer "which roles hold this permission".
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        permission_model: type[Permission] = Permission,
        role_model: type[Role] = Role,
    ):
        self.db = db
        self.model = permission_model
        self.role_model = role_model
        self.repo: BaseRepository[Permission] = BaseRepository(db, model=permission_model)
        self.store = SubjectPermissionStore(db)

    # ============================================================
    # LOOKUP
    # ============================================================

    async def get_by_name(
        self,
        names: str | Sequence[str],
        resource_type: Any = None,
        resource_refs: Sequence[Any] | None = None,
    ) -> list[Permission]:
        """
        Get permissions by name.

        Without ``resource_refs`` every permission carrying one of the names
        is returned (optionally narrowed to ``resource_type``). With
        ``resource_refs`` the names and refs are paired positionally and a
        permission matches when both its name and its resource id match;
        a ``None`` ref matches type-level permissions (no resource id).

        Names that match nothing are silently left out.

        Raises:
            InvalidArgumentError: Empty names, non-string names, or a
                ``resource_refs`` length that differs from ``names``
        """
        names = _require_names(names, "permission names")
        model = self.model
        stmt = select(model)

        if resource_type is not None:
            stmt = stmt.where(model.resource_type == type_tag(resource_type))

        if resource_refs is None:
            stmt = stmt.where(model.name.in_(unique(names)))
        else:
            refs = as_list(resource_refs, "resource_refs")
            if len(refs) != len(names):
                raise InvalidArgumentError(
                    "Number of permission names and resources must match",
                    names=len(names),
                    resources=len(refs),
                )
            pairs = unique(zip(names, (resource_ref(r) for r in refs)))
            stmt = stmt.where(or_(*[
                and_(model.name == name, self._resource_id_is(ref))
                for name, ref in pairs
            ]))

        result = await self.db.execute(stmt.order_by(model.id))
        found = list(result.scalars().all())
        logger.debug("permissions_resolved", requested=len(names), found=len(found))
        return found

    async def get_by_ids(self, ids: Sequence[int]) -> list[Permission]:
        """Get permissions by primary key."""
        return await self.repo.get_by_ids(ids)

    async def find(
        self,
        name: str,
        resource_type: Any = None,
        resource_id: Any = None,
    ) -> Permission | None:
        """Get the permission matching exactly (name, resource_type, resource_id)."""
        return await self.repo.get_one(
            name=name,
            resource_type=None if resource_type is None else type_tag(resource_type),
            resource_id=resource_ref(resource_id),
        )

    async def all(self) -> list[Permission]:
        """List all permissions."""
        return await self.repo.all()

    # ============================================================
    # CREATION
    # ============================================================

    async def create_one(
        self,
        name: str,
        resource_type: Any = None,
        resource_id: Any = None,
        description: str | None = None,
    ) -> Permission:
        """Create one permission."""
        permission = await self.repo.create(
            name=name,
            resource_type=None if resource_type is None else type_tag(resource_type),
            resource_id=resource_ref(resource_id),
            description=description,
        )
        logger.info("permission_created", name=name, resource_type=permission.resource_type)
        return permission

    async def create_many(self, names: Sequence[str]) -> list[Permission]:
        """
        Create global permissions (only ``name`` set) in one insert.

        Names that already exist as global permissions are kept, not
        inserted again. Returns the rows for every name, re-read by name.
        """
        if isinstance(names, str) or not isinstance(names, (list, tuple)):
            raise InvalidArgumentError("Expected a list of permission names")
        if not names:
            return []
        names = unique(_require_names(names, "permission names"))

        existing = await self._global_named(names)
        have = {p.name for p in existing}
        missing = [n for n in names if n not in have]
        if not missing:
            return existing

        await self.repo.insert_many([{"name": n} for n in missing])
        logger.info("permissions_created", count=len(missing), existing=len(have))
        return await self._global_named(names)

    async def first_or_create(
        self,
        name: str,
        resource_type: Any = None,
        resource_id: Any = None,
    ) -> Permission:
        """Return the permission matching the triple, creating it if missing."""
        permission = await self.find(name, resource_type, resource_id)
        if permission is None:
            permission = await self.create_one(name, resource_type, resource_id)
        return permission

    # ============================================================
    # DELETION
    # ============================================================

    async def delete(self, permissions: Any) -> int:
        """
        Delete permissions and every grant of them.

        Returns the number of permissions deleted.
        """
        resolved = await normalize_permissions(self, permissions)
        return await self._delete_ids([p.id for p in resolved])

    async def delete_for_resource(self, resource_type: Any, resource_id: Any) -> int:
        """Delete the instance-level permissions of one resource instance."""
        ref = resource_ref(resource_id)
        if ref is None:
            raise InvalidArgumentError("A resource id is required")
        ids = await self._ids_where(
            self.model.resource_type == type_tag(resource_type),
            self.model.resource_id == ref,
        )
        return await self._delete_ids(ids)

    async def delete_for_resource_type(self, resource_type: Any, generic_only: bool = False) -> int:
        """
        Delete every permission of a resource type.

        With ``generic_only`` only type-level permissions go and
        instance-level ones stay.
        """
        where = [self.model.resource_type == type_tag(resource_type)]
        if generic_only:
            where.append(self.model.resource_id.is_(None))
        return await self._delete_ids(await self._ids_where(*where))

    # ============================================================
    # REVERSE LOOKUP
    # ============================================================

    async def get_holders(self, permission: Permission, holder_model: type) -> list[Any]:
        """Get the entities of ``holder_model`` holding ``permission`` directly."""
        rows = await self.store.query_where(
            self.store.targeting([permission.id]),
            SubjectPermissionStore.model.subject_type == type_tag(holder_model),
        )
        if not rows:
            return []
        ids = coerce_ids(holder_model, (r.subject_id for r in rows))
        stmt = select(holder_model).where(holder_model.id.in_(ids)).order_by(holder_model.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_roles(self, permission: Permission) -> list[Role]:
        """Get the roles holding ``permission``."""
        return await self.get_holders(permission, self.role_model)

    async def get_role_names(self, permission: Permission) -> list[str]:
        """Get the names of the roles holding ``permission``."""
        return [r.name for r in await self.get_roles(permission)]

    # ============================================================
    # INTERNALS
    # ============================================================

    def _resource_id_is(self, ref: str | None) -> Any:
        column = self.model.resource_id
        return column.is_(None) if ref is None else column == ref

    async def _global_named(self, names: list[str]) -> list[Permission]:
        return await self.repo.all(
            self.model.name.in_(names),
            resource_type=None,
            resource_id=None,
        )

    async def _ids_where(self, *where: Any) -> list[int]:
        result = await self.db.execute(select(self.model.id).where(*where))
        return list(result.scalars().all())

    async def _delete_ids(self, ids: list[int]) -> int:
        if not ids:
            return 0
        # Grants go first so no row ever points at a missing permission,
        # even on connections without FK enforcement.
        await self.store.delete_where(self.store.targeting(ids))
        deleted = await self.repo.delete_where(self.model.id.in_(ids))
        logger.info("permissions_deleted", count=deleted)
        return deleted


class RoleCatalog:
    """CRUD and strict name lookup for Role entities."""

    def __init__(self, db: AsyncSession, *, role_model: type[Role] = Role):
        self.db = db
        self.model = role_model
        self.repo: BaseRepository[Role] = BaseRepository(db, model=role_model)
        self.holder_store = HolderRoleStore(db)
        self.subject_store = SubjectPermissionStore(db)

    async def create(self, name: str, description: str | None = None) -> Role:
        """Create one role."""
        role = await self.repo.create(name=name, description=description)
        logger.info("role_created", name=name)
        return role

    async def create_many(self, names: Sequence[str]) -> list[Role]:
        """Create roles in one insert; returns them re-read by name."""
        names = unique(_require_names(names, "role names"))
        await self.repo.insert_many([{"name": n} for n in names])
        logger.info("roles_created", count=len(names))
        return await self.repo.all(self.model.name.in_(names))

    async def find(self, name: str) -> Role | None:
        """Get a role by name, or None."""
        return await self.repo.get_one(name=name)

    async def get_by_name(self, names: str | Sequence[str]) -> list[Role]:
        """
        Get roles by name. Every name must exist.

        Raises:
            InvalidArgumentError: Empty or non-string names
            NotFoundError: One or more names match no role
        """
        names = unique(_require_names(names, "role names"))
        roles = await self.repo.all(self.model.name.in_(names))
        if len(roles) != len(names):
            missing = sorted(set(names) - {r.name for r in roles})
            raise NotFoundError("One or more roles do not exist", missing=missing)
        return roles

    async def get_by_ids(self, ids: Sequence[int]) -> list[Role]:
        """Get roles by primary key."""
        return await self.repo.get_by_ids(ids)

    async def all(self) -> list[Role]:
        """List all roles."""
        return await self.repo.all()

    async def delete(self, roles: Any) -> int:
        """
        Delete roles, their assignments and their own permission grants.

        The grants are keyed by (role type, role id) and carry no foreign
        key to ``roles``, so they are removed explicitly.
        """
        resolved = await normalize_roles(self, roles)
        ids = [r.id for r in resolved]
        role_type = type_tag(self.model)

        await self.subject_store.delete_where(
            self.subject_store.owned_by((role_type, str(i)) for i in ids)
        )
        await self.holder_store.delete_where(self.holder_store.targeting(ids))
        deleted = await self.repo.delete_where(self.model.id.in_(ids))
        logger.info("roles_deleted", count=deleted)
        return deleted
