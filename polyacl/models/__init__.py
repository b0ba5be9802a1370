"""
Database models.
"""

from .base import Base, TimestampMixin
from .mixins import (
    Identifiable,
    PermissionHolder,
    RoleHolder,
    Resource,
    type_tag,
    acl_id,
    is_role_holder,
    permission_prefix,
)
from .permission import Permission
from .role import Role
from .associations import SubjectPermission, HolderRole
from .user import User

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Contracts
    "Identifiable",
    "PermissionHolder",
    "RoleHolder",
    "Resource",
    "type_tag",
    "acl_id",
    "is_role_holder",
    "permission_prefix",
    # Models
    "Permission",
    "Role",
    "SubjectPermission",
    "HolderRole",
    "User",
]
