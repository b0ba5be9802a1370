"""
Role-assignment engine.

Same shape as the grant engine, over the holder-role table. Role
references are resolved strictly: an unknown role name is an error, not a
silent miss.

Usage:
    roles = RoleAssignments(db, user)
    await roles.add_roles(["editor", "reviewer"])
    await roles.has_any_role(["admin", "editor"])

    await RoleAssignments(db).add_roles_to_many(["editor"], users)
"""

from collections import defaultdict
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from polyacl.core.config import AclSettings, settings
from polyacl.core.exceptions import InvalidArgumentError, NotFoundError, PreconditionError
from polyacl.models.associations import HolderRole
from polyacl.models.mixins import is_role_holder, type_tag
from polyacl.models.role import Role
from polyacl.repositories.associations import HolderRoleStore, OwnerKey
from polyacl.repositories.base import atomic

from .catalog import RoleCatalog
from .identity import as_list, holder_key, normalize_roles

logger = structlog.get_logger()


def role_holder_key(holder: Any) -> OwnerKey:
    """Key of a holder that may be assigned roles."""
    if not is_role_holder(holder):
        raise PreconditionError(
            f"{type_tag(holder)} cannot be assigned roles",
            holder_type=type_tag(holder),
        )
    return holder_key(holder)


class RoleAssignments:
    """
    Role capability of a holder.

    Single-holder operations need ``holder`` to be a RoleHolder; bulk and
    ``with_*`` operations work on the holders they are given.
    """

    def __init__(
        self,
        db: AsyncSession,
        holder: Any = None,
        *,
        role_model: type[Role] = Role,
        config: AclSettings | None = None,
    ):
        self.db = db
        self.holder = holder
        self.config = config or settings.acl
        self.catalog = RoleCatalog(db, role_model=role_model)
        self.model = role_model
        self.store = HolderRoleStore(db)

    @property
    def key(self) -> OwnerKey:
        """(type, id) of the bound holder."""
        return role_holder_key(self.holder)

    # ============================================================
    # MUTATIONS
    # ============================================================

    async def add_role(self, role: Any) -> int:
        """Assign one role."""
        return await self.add_roles([role])

    async def add_roles(self, roles: Any) -> int:
        """Assign roles. Returns the number of assignments inserted."""
        key = self.key
        resolved = await normalize_roles(self.catalog, roles)
        inserted = await self._insert([self.store.row(key, r.id) for r in resolved])
        logger.info("roles_assigned", holder_type=key[0], holder_id=key[1], count=inserted)
        return inserted

    async def del_role(self, role: Any) -> int:
        """Revoke one role."""
        return await self.del_roles([role])

    async def del_roles(self, roles: Any) -> int:
        """Revoke roles. Returns the number of assignments deleted."""
        key = self.key
        resolved = await normalize_roles(self.catalog, roles)
        deleted = await self.store.delete_where(
            self.store.owned_by([key]),
            self.store.targeting(r.id for r in resolved),
        )
        logger.info("roles_revoked", holder_type=key[0], holder_id=key[1], count=deleted)
        return deleted

    async def del_all_roles(self) -> int:
        """Revoke every role of the holder."""
        key = self.key
        deleted = await self.store.delete_where(self.store.owned_by([key]))
        logger.info("roles_cleared", holder_type=key[0], holder_id=key[1], count=deleted)
        return deleted

    async def set_role(self, role: Any) -> int:
        """Make ``role`` the holder's only role."""
        return await self.set_roles([role])

    async def set_roles(self, roles: Any) -> int:
        """
        Replace the holder's roles.

        Roles are resolved first (an unknown name leaves the current roles
        untouched), then delete and insert run in one transaction.
        """
        key = self.key
        resolved = await normalize_roles(self.catalog, roles)
        rows = [self.store.row(key, r.id) for r in resolved]
        async with atomic(self.db):
            await self.store.delete_where(self.store.owned_by([key]))
            inserted = await self.store.insert_many(rows)
        logger.info("roles_set", holder_type=key[0], holder_id=key[1], count=inserted)
        return inserted

    # ============================================================
    # QUERIES
    # ============================================================

    async def get_roles(self) -> list[Role]:
        """Get the holder's roles, ordered by id."""
        assigned = select(HolderRole.role_id).where(self.store.owned_by([self.key]))
        stmt = select(self.model).where(self.model.id.in_(assigned)).order_by(self.model.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_role_ids(self) -> list[int]:
        """Get the ids of the holder's roles."""
        return await self.store.target_ids_where(self.store.owned_by([self.key]))

    async def get_role_names(self) -> list[str]:
        """Get the names of the holder's roles."""
        return [r.name for r in await self.get_roles()]

    async def count_roles(self) -> int:
        """Number of roles the holder has."""
        return await self.store.count_where(self.store.owned_by([self.key]))

    async def has_role(self, role: Any) -> bool:
        """
        Check a single role given by name, id or entity.

        Raises:
            NotFoundError: The name or id matches no role
            InvalidArgumentError: ``role`` is a collection or of another type
        """
        if isinstance(role, (list, tuple, set, frozenset)):
            raise InvalidArgumentError("has_role takes a single role; use has_roles")
        if isinstance(role, str):
            found = await self.catalog.find(role)
            if found is None:
                raise NotFoundError(f"Role '{role}' does not exist", missing=[role])
            role = found
        if isinstance(role, int) and not isinstance(role, bool):
            role_id = role
            if not await self.catalog.repo.exists(id=role_id):
                raise NotFoundError(f"Role {role_id} does not exist", missing=[role_id])
        elif isinstance(role, self.model):
            role_id = role.id
        else:
            raise InvalidArgumentError("Role must be a name, an id or a Role")

        return await self.store.exists_where(
            self.store.owned_by([self.key]),
            self.store.targeting([role_id]),
        )

    async def has_roles(self, roles: Any) -> bool:
        """Check that the holder has every given role."""
        resolved = await normalize_roles(self.catalog, roles)
        return await self._count_held(resolved) == len(resolved)

    async def has_any_role(self, roles: Any) -> bool:
        """Check that the holder has at least one of the given roles."""
        resolved = await normalize_roles(self.catalog, roles)
        return await self._count_held(resolved) > 0

    # ============================================================
    # BULK OPERATIONS
    # ============================================================

    async def add_role_to_many(self, role: Any, holders: Any) -> int:
        """Assign one role to many holders."""
        return await self.add_roles_to_many([role], holders)

    async def add_roles_to_many(self, roles: Any, holders: Any) -> int:
        """
        Assign every role to every holder in a single insert.

        Returns the number of assignments inserted.
        """
        owners = self._holder_keys(holders)
        resolved = await normalize_roles(self.catalog, roles)
        rows = [self.store.row(owner, r.id) for owner in owners for r in resolved]
        inserted = await self._insert(rows)
        logger.info(
            "roles_assigned_to_many",
            holders=len(owners),
            roles=len(resolved),
            count=inserted,
        )
        return inserted

    async def del_role_from_many(self, role: Any, holders: Any) -> int:
        """Revoke one role from many holders."""
        return await self.del_roles_from_many([role], holders)

    async def del_roles_from_many(self, roles: Any, holders: Any) -> int:
        """Revoke every role from every holder in a single delete."""
        owners = self._holder_keys(holders)
        resolved = await normalize_roles(self.catalog, roles)
        if not owners:
            return 0
        deleted = await self.store.delete_where(
            self.store.owned_by(owners),
            self.store.targeting(r.id for r in resolved),
        )
        logger.info("roles_revoked_from_many", holders=len(owners), count=deleted)
        return deleted

    async def with_roles(self, holders: Any, attr: str = "roles") -> list[Any]:
        """
        Attach each holder's roles as ``holder.<attr>``.

        One statement for the assignments, one for the roles.
        """
        holders = as_list(holders, "holders")
        if not holders:
            return []
        keys = self._holder_keys(holders)

        assignments = await self.store.query_where(self.store.owned_by(keys))
        roles = await self.catalog.get_by_ids(sorted({a.role_id for a in assignments}))
        id2role = {r.id: r for r in roles}

        by_owner: dict[OwnerKey, list[int]] = defaultdict(list)
        for a in assignments:
            by_owner[(a.holder_type, a.holder_id)].append(a.role_id)

        for holder in holders:
            role_ids = sorted(set(by_owner.get(holder_key(holder), [])))
            setattr(holder, attr, [id2role[i] for i in role_ids if i in id2role])

        return holders

    async def with_role_names(self, holders: Any, attr: str = "roles") -> list[Any]:
        """Like ``with_roles`` but attaches role names."""
        holders = await self.with_roles(holders, attr)
        for holder in holders:
            setattr(holder, attr, [r.name for r in getattr(holder, attr)])
        return holders

    # ============================================================
    # INTERNALS
    # ============================================================

    async def _count_held(self, roles: list[Role]) -> int:
        return await self.store.count_where(
            self.store.owned_by([self.key]),
            self.store.targeting(r.id for r in roles),
        )

    def _holder_keys(self, holders: Any) -> list[OwnerKey]:
        holders = as_list(holders, "holders")
        return list(dict.fromkeys(role_holder_key(h) for h in holders))

    async def _insert(self, rows: list[dict[str, Any]]) -> int:
        if self.config.ignore_duplicate_grants and rows:
            existing = await self.store.existing_keys(rows)
            rows = [r for r in rows if self.store.key_of(r) not in existing]
        return await self.store.insert_many(rows)
