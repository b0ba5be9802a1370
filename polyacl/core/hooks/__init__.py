"""
Hook system for access-control lifecycle events.
"""

from .manager import HookManager, Hook, HookPriority, HookResult, hooks

RESOURCE_DELETED = "acl.resource.deleted"
HOLDER_DELETED = "acl.holder.deleted"

__all__ = [
    "HookManager",
    "Hook",
    "HookPriority",
    "HookResult",
    "hooks",
    "RESOURCE_DELETED",
    "HOLDER_DELETED",
]
