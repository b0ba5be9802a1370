"""
Authorization interfaces - Core abstractions.

The HTTP gate and any other caller depend only on these; the concrete
engine is picked by name from the registry.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


# ============================================================
# POLICY DECISION
# ============================================================

@dataclass
class PolicyDecision:
    """
    Result of a policy evaluation.

    Attributes:
        allowed: Whether the action is permitted
        reason: Human-readable explanation, never names the missing permission
    """
    allowed: bool
    reason: str | None = None

    @classmethod
    def allow(cls, reason: str | None = None) -> "PolicyDecision":
        return cls(allowed=True, reason=reason)

    @classmethod
    def deny(cls, reason: str = "Permission denied") -> "PolicyDecision":
        return cls(allowed=False, reason=reason)

    def __bool__(self) -> bool:
        return self.allowed


# ============================================================
# POLICY ENGINE
# ============================================================

class PolicyEngine(ABC):
    """
    Abstract policy engine interface.

    Evaluates whether an actor can perform an action on a resource.

    Implementations:
    - ResourcePolicy: permission-name based CRUD checks (default)
    """

    @abstractmethod
    async def evaluate(
        self,
        actor: Any,
        action: str,
        resource: Any | None = None,
    ) -> PolicyDecision:
        """
        Evaluate if actor can perform action on resource.

        Args:
            actor: The user/role performing the action
            action: Action identifier (e.g., "view", "update")
            resource: Optional resource instance being acted upon

        Returns:
            PolicyDecision with allowed status and reason
        """
        pass

    @abstractmethod
    async def get_permissions(
        self,
        actor: Any,
        resource: Any | None = None,
    ) -> set[str]:
        """
        Get the names of all permissions actor has.

        Returns:
            Set of permission names
        """
        pass
