"""
Permission-grant engine.

Grants, revokes and queries the permissions of one holder (a role, a user,
any Identifiable), plus bulk operations across many holders.

A holder's effective permission set is its direct grants plus, when the
holder can be assigned roles, the grants of each of its roles. It is
always computed with a bounded number of statements: one to read the
holder's role ids, one over the association table for all owners at once.

Usage:
    grants = PermissionGrants(db, user)
    await grants.add_permissions(["post.create", "post.update"])
    await grants.has_permission("article.view", Article, 5)

    # cross-holder, no holder bound
    await PermissionGrants(db).add_permissions_to_many(perms, roles)
"""

from collections import defaultdict
from typing import Any, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from polyacl.core.config import AclSettings, settings
from polyacl.core.exceptions import InvalidArgumentError
from polyacl.models.associations import SubjectPermission
from polyacl.models.mixins import is_role_holder, permission_prefix, type_tag
from polyacl.models.permission import Permission
from polyacl.models.role import Role
from polyacl.repositories.associations import (
    HolderRoleStore,
    OwnerKey,
    SubjectPermissionStore,
)
from polyacl.repositories.base import atomic

from .catalog import PermissionCatalog
from .identity import (
    all_resolved,
    as_list,
    classify,
    coerce_ids,
    holder_key,
    normalize_permissions,
)

logger = structlog.get_logger()


class PermissionGrants:
    """
    Permission capability of a holder.

    Single-holder operations need ``holder``; the ``*_to_many`` /
    ``*_from_many`` / ``with_*`` operations work on the holders they are
    given and can run on an unbound instance.
    """

    def __init__(
        self,
        db: AsyncSession,
        holder: Any = None,
        *,
        permission_model: type[Permission] = Permission,
        role_model: type[Role] = Role,
        config: AclSettings | None = None,
    ):
        self.db = db
        self.holder = holder
        self.config = config or settings.acl
        self.catalog = PermissionCatalog(
            db, permission_model=permission_model, role_model=role_model
        )
        self.model = permission_model
        self.role_type = type_tag(role_model)
        self.store = SubjectPermissionStore(db)
        self.role_store = HolderRoleStore(db)

    @property
    def key(self) -> OwnerKey:
        """(type, id) of the bound holder."""
        return holder_key(self.holder)

    # ============================================================
    # MUTATIONS
    # ============================================================

    async def add_permission(
        self,
        permission: Any,
        resource_type: Any = None,
        resource_id: Any = None,
    ) -> int:
        """
        Grant one permission.

        A name is looked up together with ``resource_id``; a ``None`` id
        selects the type-level (or global) permission of that name.
        """
        return await self.add_permissions([permission], resource_type, [resource_id])

    async def add_permissions(
        self,
        permissions: Any,
        resource_type: Any = None,
        resource_ids: Sequence[Any] | None = None,
    ) -> int:
        """
        Grant permissions. Returns the number of grants inserted.

        Granting a permission the holder already has fails on the store's
        primary key unless ``ignore_duplicate_grants`` is configured.
        """
        key = self.key
        resolved = await self._resolve(
            permissions, resource_type, resource_ids,
            strict=self.config.strict_permission_grants,
        )
        inserted = await self._insert([self.store.row(key, p.id) for p in resolved])
        logger.info(
            "permissions_granted",
            holder_type=key[0],
            holder_id=key[1],
            count=inserted,
        )
        return inserted

    async def del_permission(
        self,
        permission: Any,
        resource_type: Any = None,
        resource_id: Any = None,
    ) -> int:
        """Revoke one permission."""
        return await self.del_permissions([permission], resource_type, [resource_id])

    async def del_permissions(
        self,
        permissions: Any,
        resource_type: Any = None,
        resource_ids: Sequence[Any] | None = None,
    ) -> int:
        """Revoke permissions. Returns the number of grants deleted."""
        key = self.key
        resolved = await self._resolve(permissions, resource_type, resource_ids)
        if not resolved:
            return 0
        deleted = await self.store.delete_where(
            self.store.owned_by([key]),
            self.store.targeting(p.id for p in resolved),
        )
        logger.info("permissions_revoked", holder_type=key[0], holder_id=key[1], count=deleted)
        return deleted

    async def del_all_permissions(self) -> int:
        """Revoke every direct grant of the holder."""
        key = self.key
        deleted = await self.store.delete_where(self.store.owned_by([key]))
        logger.info("permissions_cleared", holder_type=key[0], holder_id=key[1], count=deleted)
        return deleted

    async def set_permissions(
        self,
        permissions: Any,
        resource_type: Any = None,
        resource_ids: Sequence[Any] | None = None,
    ) -> int:
        """
        Replace the holder's direct grants with ``permissions``.

        The references are resolved before anything is deleted, and the
        delete and insert run in one transaction so no reader ever sees
        the holder without permissions.
        """
        key = self.key
        resolved = await self._resolve(
            permissions, resource_type, resource_ids,
            strict=self.config.strict_permission_grants,
        )
        rows = [self.store.row(key, p.id) for p in resolved]
        async with atomic(self.db):
            await self.store.delete_where(self.store.owned_by([key]))
            inserted = await self.store.insert_many(rows)
        logger.info("permissions_set", holder_type=key[0], holder_id=key[1], count=inserted)
        return inserted

    # ============================================================
    # QUERIES
    # ============================================================

    async def get_permissions(self) -> list[Permission]:
        """Get the effective permissions: direct grants plus role grants."""
        owners = await self._effective_owners()
        return await self._permissions_owned_by(owners)

    async def get_direct_permissions(self) -> list[Permission]:
        """Get the holder's own grants, ignoring its roles."""
        return await self._permissions_owned_by([self.key])

    async def get_permission_names(self) -> list[str]:
        """Get the names of the effective permissions."""
        return [p.name for p in await self.get_permissions()]

    async def count_permissions(self) -> int:
        """Size of the effective permission set."""
        owners = await self._effective_owners()
        return await self.store.count_where(self.store.owned_by(owners), distinct_targets=True)

    async def has_permission(
        self,
        permission: Any,
        resource_type: Any = None,
        resource_id: Any = None,
    ) -> bool:
        """
        Check one permission.

        ``has_permission("article.view", Article, 5)`` holds only for the
        permission bound to article 5; without an id only the type-level
        (or global) permission of that name counts.
        """
        return await self.has_permissions([permission], resource_type, [resource_id])

    async def has_permissions(
        self,
        permissions: Any,
        resource_type: Any = None,
        resource_ids: Sequence[Any] | None = None,
    ) -> bool:
        """
        Check that the holder has every requested permission.

        A requested permission that does not exist cannot be held, so it
        makes the check fail. Without ``resource_ids`` a name stands for
        every permission carrying it.
        """
        items = as_list(permissions, "permissions")
        if not items:
            return True
        kind = classify(items, self.model, "permissions")
        refs = None if resource_ids is None else as_list(resource_ids, "resource_ids")
        resolved = await self._resolve(items, resource_type, refs)
        if not all_resolved(items, kind, resolved, refs):
            return False
        return await self._count_held(resolved) == len(resolved)

    async def has_any_permission(
        self,
        permissions: Any,
        resource_type: Any = None,
        resource_ids: Sequence[Any] | None = None,
    ) -> bool:
        """Check that the holder has at least one requested permission."""
        resolved = await self._resolve(permissions, resource_type, resource_ids)
        if not resolved:
            return False
        return await self._count_held(resolved) > 0

    async def get_resources(
        self,
        resource_cls: type,
        actions: str | Sequence[str] | None = None,
        add_prefix: bool = True,
    ) -> list[Any]:
        """
        Get the instances of ``resource_cls`` the holder has instance-level
        permissions on, optionally only for some actions.

        Usage:
            editable = await grants.get_resources(Article, ["update"])
        """
        owners = await self._effective_owners()
        model = self.model
        stmt = (
            select(model.resource_id)
            .where(
                model.resource_type == type_tag(resource_cls),
                model.resource_id.is_not(None),
                model.id.in_(
                    select(SubjectPermission.permission_id).where(self.store.owned_by(owners))
                ),
            )
            .distinct()
        )
        if actions:
            names = as_list(actions, "actions")
            if add_prefix:
                prefix = permission_prefix(resource_cls)
                names = [f"{prefix}{self.config.separator}{n}" for n in names]
            stmt = stmt.where(model.name.in_(names))

        resource_ids = list((await self.db.execute(stmt)).scalars().all())
        if not resource_ids:
            return []
        ids = coerce_ids(resource_cls, resource_ids)
        result = await self.db.execute(
            select(resource_cls).where(resource_cls.id.in_(ids)).order_by(resource_cls.id)
        )
        return list(result.scalars().all())

    # ============================================================
    # BULK OPERATIONS
    # ============================================================

    async def add_permission_to_many(self, permission: Any, holders: Any) -> int:
        """Grant one permission to many holders."""
        return await self.add_permissions_to_many([permission], holders)

    async def add_permissions_to_many(self, permissions: Any, holders: Any) -> int:
        """
        Grant every permission to every holder in a single insert.

        Returns the number of grants inserted.
        """
        owners = self._holder_keys(holders)
        resolved = await self._resolve(
            permissions, strict=self.config.strict_permission_grants
        )
        rows = [self.store.row(owner, p.id) for owner in owners for p in resolved]
        inserted = await self._insert(rows)
        logger.info(
            "permissions_granted_to_many",
            holders=len(owners),
            permissions=len(resolved),
            count=inserted,
        )
        return inserted

    async def del_permission_from_many(self, permission: Any, holders: Any) -> int:
        """Revoke one permission from many holders."""
        return await self.del_permissions_from_many([permission], holders)

    async def del_permissions_from_many(self, permissions: Any, holders: Any) -> int:
        """Revoke every permission from every holder in a single delete."""
        owners = self._holder_keys(holders)
        resolved = await self._resolve(permissions)
        if not owners or not resolved:
            return 0
        deleted = await self.store.delete_where(
            self.store.owned_by(owners),
            self.store.targeting(p.id for p in resolved),
        )
        logger.info("permissions_revoked_from_many", holders=len(owners), count=deleted)
        return deleted

    async def with_permissions(self, holders: Any, attr: str = "permissions") -> list[Any]:
        """
        Attach each holder's effective permissions as ``holder.<attr>``.

        Uses one statement for the holders' roles and one for all grants
        joined to their permissions, whatever the number of holders.
        """
        holders = as_list(holders, "holders")
        if not holders:
            return []
        keys = [holder_key(h) for h in holders]

        role_owners: dict[OwnerKey, list[OwnerKey]] = defaultdict(list)
        role_holder_keys = [k for h, k in zip(holders, keys) if is_role_holder(h)]
        if role_holder_keys:
            for row in await self.role_store.query_where(self.role_store.owned_by(role_holder_keys)):
                role_owners[(row.holder_type, row.holder_id)].append(
                    (self.role_type, str(row.role_id))
                )

        owners = set(keys)
        for extra in role_owners.values():
            owners.update(extra)

        by_owner: dict[OwnerKey, list[Permission]] = defaultdict(list)
        stmt = (
            select(SubjectPermission.subject_type, SubjectPermission.subject_id, self.model)
            .join(self.model, self.model.id == SubjectPermission.permission_id)
            .where(self.store.owned_by(owners))
        )
        for subject_type, subject_id, permission in (await self.db.execute(stmt)).all():
            by_owner[(subject_type, subject_id)].append(permission)

        for holder, key in zip(holders, keys):
            merged: dict[int, Permission] = {}
            for owner in [key, *role_owners.get(key, [])]:
                for permission in by_owner.get(owner, []):
                    merged[permission.id] = permission
            setattr(holder, attr, [merged[i] for i in sorted(merged)])

        return holders

    async def with_permission_names(self, holders: Any, attr: str = "permissions") -> list[Any]:
        """Like ``with_permissions`` but attaches permission names."""
        holders = await self.with_permissions(holders, attr)
        for holder in holders:
            setattr(holder, attr, [p.name for p in getattr(holder, attr)])
        return holders

    # ============================================================
    # INTERNALS
    # ============================================================

    async def _resolve(
        self,
        permissions: Any,
        resource_type: Any = None,
        resource_ids: Sequence[Any] | None = None,
        *,
        strict: bool = False,
    ) -> list[Permission]:
        return await normalize_permissions(
            self.catalog, permissions, resource_type, resource_ids, strict=strict
        )

    async def _role_ids(self, key: OwnerKey) -> list[int]:
        return await self.role_store.target_ids_where(self.role_store.owned_by([key]))

    async def _effective_owners(self) -> list[OwnerKey]:
        """The holder itself plus, for role holders, each of its roles."""
        key = self.key
        owners = [key]
        if is_role_holder(self.holder):
            owners.extend((self.role_type, str(rid)) for rid in await self._role_ids(key))
        return owners

    async def _permissions_owned_by(self, owners: list[OwnerKey]) -> list[Permission]:
        held = select(SubjectPermission.permission_id).where(self.store.owned_by(owners))
        stmt = select(self.model).where(self.model.id.in_(held)).order_by(self.model.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _count_held(self, permissions: list[Permission]) -> int:
        owners = await self._effective_owners()
        return await self.store.count_where(
            self.store.owned_by(owners),
            self.store.targeting(p.id for p in permissions),
            distinct_targets=True,
        )

    def _holder_keys(self, holders: Any) -> list[OwnerKey]:
        holders = as_list(holders, "holders")
        if any(isinstance(h, (str, int)) for h in holders):
            raise InvalidArgumentError("Holders must be entities, not names or ids")
        return list(dict.fromkeys(holder_key(h) for h in holders))

    async def _insert(self, rows: list[dict[str, Any]]) -> int:
        if self.config.ignore_duplicate_grants and rows:
            existing = await self.store.existing_keys(rows)
            rows = [r for r in rows if self.store.key_of(r) not in existing]
        return await self.store.insert_many(rows)
