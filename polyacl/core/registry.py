"""
Policy engine registry.

Allows registering policy engines without modifying core code.
Implementations register themselves using a decorator.

Usage:
    @AuthRegistry.policy_engine("my_engine")
    class MyPolicyEngine(PolicyEngine):
        ...

    # Later, get by name:
    engine = AuthRegistry.get_policy_engine("my_engine", db=db)
"""

from typing import Type, Callable, Any
from .interfaces import PolicyEngine


class AuthRegistry:
    """
    Central registry for policy engines.

    Engines register themselves using decorators.
    """

    _policy_engines: dict[str, Type[PolicyEngine]] = {}

    @classmethod
    def policy_engine(cls, name: str) -> Callable[[Type[PolicyEngine]], Type[PolicyEngine]]:
        """
        Decorator to register a policy engine.

        Usage:
            @AuthRegistry.policy_engine("resource")
            class ResourcePolicy(PolicyEngine):
                ...
        """
        def decorator(engine_class: Type[PolicyEngine]) -> Type[PolicyEngine]:
            cls._policy_engines[name] = engine_class
            return engine_class
        return decorator

    @classmethod
    def get_policy_engine(cls, name: str, **kwargs: Any) -> PolicyEngine:
        """
        Get a policy engine by name.

        Args:
            name: Registered name of the engine
            **kwargs: Arguments to pass to engine constructor

        Raises:
            ValueError: If engine not found
        """
        engine_class = cls._policy_engines.get(name)
        if not engine_class:
            available = list(cls._policy_engines.keys())
            raise ValueError(
                f"Unknown policy engine: '{name}'. "
                f"Available: {available}"
            )
        return engine_class(**kwargs)

    @classmethod
    def list_policy_engines(cls) -> list[str]:
        """List all registered policy engine names."""
        return list(cls._policy_engines.keys())

    @classmethod
    def has_policy_engine(cls, name: str) -> bool:
        """Check if a policy engine is registered."""
        return name in cls._policy_engines
