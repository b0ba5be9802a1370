"""
Both capabilities of one holder behind a single object.

Usage:
    alice = AclSubject(db, user)
    await alice.roles.add_role("editor")
    await alice.permissions.has_permission("article.view", Article, 5)
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from polyacl.core.config import AclSettings, settings
from polyacl.models.mixins import is_role_holder
from polyacl.models.permission import Permission
from polyacl.models.role import Role

from .grants import PermissionGrants
from .roles import RoleAssignments


class AclSubject:
    """
    Permission and role capabilities of ``holder``.

    ``roles`` is None for holders that cannot be assigned roles (a Role
    itself, for instance).
    """

    def __init__(
        self,
        db: AsyncSession,
        holder: Any,
        *,
        permission_model: type[Permission] = Permission,
        role_model: type[Role] = Role,
        config: AclSettings | None = None,
    ):
        config = config or settings.acl
        self.holder = holder
        self.permissions = PermissionGrants(
            db,
            holder,
            permission_model=permission_model,
            role_model=role_model,
            config=config,
        )
        self.roles: RoleAssignments | None = None
        if is_role_holder(holder):
            self.roles = RoleAssignments(db, holder, role_model=role_model, config=config)
