"""
Repository layer.
"""

from .base import BaseRepository, atomic
from .associations import AssociationStore, SubjectPermissionStore, HolderRoleStore

__all__ = ["BaseRepository", "atomic", "AssociationStore", "SubjectPermissionStore", "HolderRoleStore"]
