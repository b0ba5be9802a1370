"""
Business logic services.
"""

from .identity import normalize_permissions, normalize_roles
from .catalog import PermissionCatalog, RoleCatalog
from .grants import PermissionGrants
from .roles import RoleAssignments
from .resources import ResourcePermissions
from .policy import ResourcePolicy, authorize
from .subject import AclSubject
from . import cleanup  # noqa: F401  registers the cascade hooks

__all__ = [
    "normalize_permissions",
    "normalize_roles",
    "PermissionCatalog",
    "RoleCatalog",
    "PermissionGrants",
    "RoleAssignments",
    "ResourcePermissions",
    "ResourcePolicy",
    "authorize",
    "AclSubject",
]
