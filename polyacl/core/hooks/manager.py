"""
Hook manager for access-control lifecycle events.
"""
from __future__ import annotations

from typing import Callable, Any, Awaitable, TypeVar, ParamSpec
from dataclasses import dataclass, field
from enum import IntEnum
from collections import defaultdict
import logging

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


class HookPriority(IntEnum):
    """Hook execution priority (lower runs first)."""
    FIRST = 0
    NORMAL = 50
    LAST = 100


@dataclass
class Hook:
    """Registered hook information."""
    name: str
    handler: Callable[..., Awaitable[Any]]
    priority: HookPriority = HookPriority.NORMAL
    critical: bool = False  # Failure propagates to the caller of trigger()
    source: str = ""


@dataclass
class HookResult:
    """Result from running hooks."""
    hook_name: str
    results: list[Any] = field(default_factory=list)
    errors: list[tuple[str, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class HookManager:
    """
    Manages access-control lifecycle hooks.

    Predefined hooks:
    - acl.resource.deleted: A resource instance was deleted; its
      instance-level permissions must go (kwargs: db, resource)
    - acl.holder.deleted: A permission/role holder was deleted; its
      association rows must go (kwargs: db, holder)

    Polymorphic ids cannot carry a foreign key, so these hooks are the only
    cascade for them. The application triggers them when it deletes the
    entity, before committing:

    ```python
    await db.delete(article)
    await hooks.trigger("acl.resource.deleted", db=db, resource=article)
    await db.commit()
    ```

    The purge handlers are registered as critical: if one fails, trigger()
    raises and the deletion must not be committed. Failures of other
    handlers are collected in the HookResult.
    """

    def __init__(self):
        self._hooks: dict[str, list[Hook]] = defaultdict(list)

    def register(
        self,
        name: str,
        handler: Callable[..., Awaitable[Any]],
        *,
        priority: HookPriority = HookPriority.NORMAL,
        critical: bool = False,
        source: str = "",
    ) -> Hook:
        """Register a hook handler."""
        hook = Hook(
            name=name,
            handler=handler,
            priority=priority,
            critical=critical,
            source=source or getattr(handler, "__module__", ""),
        )
        self._hooks[name].append(hook)
        self._hooks[name].sort(key=lambda h: h.priority)
        logger.debug(f"Registered hook: {name} (priority={priority}, critical={critical})")
        return hook

    def on(
        self,
        name: str,
        *,
        priority: HookPriority = HookPriority.NORMAL,
        critical: bool = False,
    ) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
        """Decorator to register a hook handler."""
        def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
            self.register(name, func, priority=priority, critical=critical)
            return func
        return decorator

    async def trigger(self, name: str, *args, **kwargs) -> HookResult:
        """
        Run every handler for a hook, in priority order.

        Raises:
            Exception: Whatever a critical handler raised; later handlers
                do not run
        """
        result = HookResult(hook_name=name)

        for hook in self._hooks.get(name, []):
            try:
                result.results.append(await hook.handler(*args, **kwargs))
            except Exception as e:
                logger.error(f"Hook {name} handler {hook.source} error: {e}")
                if hook.critical:
                    raise
                result.errors.append((hook.source, e))

        return result

    def has_hooks(self, name: str) -> bool:
        """Check if any hooks are registered for name."""
        return bool(self._hooks.get(name))


# Global hook manager instance
hooks = HookManager()
