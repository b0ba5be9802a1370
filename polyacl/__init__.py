"""
polyacl - role-based access control over polymorphic subjects.

Usage:
    from polyacl import PermissionGrants, RoleAssignments, ResourcePermissions, authorize

    await ResourcePermissions(db, article).create_crud_permissions()
    await RoleAssignments(db, user).add_role("editor")
    allowed = await authorize(db, user, "update", article)
"""

from polyacl.core import (
    AclError,
    AuthRegistry,
    InvalidArgumentError,
    NotFoundError,
    PolicyDecision,
    PolicyEngine,
    PreconditionError,
)
from polyacl.core.context import resource_type_scope
from polyacl.core.hooks import HOLDER_DELETED, RESOURCE_DELETED, hooks
from polyacl.models import (
    Identifiable,
    Permission,
    PermissionHolder,
    Resource,
    Role,
    RoleHolder,
)
from polyacl.services import (
    AclSubject,
    PermissionCatalog,
    PermissionGrants,
    ResourcePermissions,
    ResourcePolicy,
    RoleAssignments,
    RoleCatalog,
    authorize,
)

__version__ = "0.1.0"

__all__ = [
    "AclError",
    "InvalidArgumentError",
    "NotFoundError",
    "PreconditionError",
    "PolicyDecision",
    "PolicyEngine",
    "AuthRegistry",
    "resource_type_scope",
    "hooks",
    "RESOURCE_DELETED",
    "HOLDER_DELETED",
    "Identifiable",
    "PermissionHolder",
    "RoleHolder",
    "Resource",
    "Permission",
    "Role",
    "AclSubject",
    "PermissionCatalog",
    "RoleCatalog",
    "PermissionGrants",
    "RoleAssignments",
    "ResourcePermissions",
    "ResourcePolicy",
    "authorize",
]
