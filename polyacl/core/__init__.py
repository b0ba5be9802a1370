"""
Core building blocks: configuration, errors, hooks, policy interfaces.
"""

from .exceptions import AclError, InvalidArgumentError, NotFoundError, PreconditionError
from .interfaces import PolicyDecision, PolicyEngine
from .registry import AuthRegistry

__all__ = [
    "AclError",
    "InvalidArgumentError",
    "NotFoundError",
    "PreconditionError",
    "PolicyDecision",
    "PolicyEngine",
    "AuthRegistry",
]
