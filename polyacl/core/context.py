"""
Ambient resource-type context.

Lets a request handler declare once which resource type it operates on;
authorization checks without an explicit resource type fall back to it.

Usage:
    with resource_type_scope(Article):
        allowed = await authorize(db, user, "viewAny")

    structlog.configure(processors=[add_resource_context, ...])
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

from polyacl.models.mixins import permission_prefix, type_tag


_resource_type: ContextVar[Optional[str]] = ContextVar("acl_resource_type", default=None)
_resource_prefix: ContextVar[Optional[str]] = ContextVar("acl_resource_prefix", default=None)


def get_current_resource_type() -> Optional[str]:
    """Get the resource type tag of the current context."""
    return _resource_type.get()


def get_current_permission_prefix() -> Optional[str]:
    """Get the permission prefix of the current context."""
    return _resource_prefix.get()


def set_current_resource_type(resource_type: Any) -> None:
    """Set the resource type for the rest of the current context."""
    _resource_type.set(type_tag(resource_type) if resource_type is not None else None)
    _resource_prefix.set(permission_prefix(resource_type) if resource_type is not None else None)


@contextmanager
def resource_type_scope(resource_type: Any) -> Iterator[str]:
    """Set the current resource type for the duration of a block."""
    tag = type_tag(resource_type)
    type_token = _resource_type.set(tag)
    prefix_token = _resource_prefix.set(permission_prefix(resource_type))
    try:
        yield tag
    finally:
        _resource_prefix.reset(prefix_token)
        _resource_type.reset(type_token)


def add_resource_context(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor that adds the current resource type to all logs."""
    resource_type = get_current_resource_type()
    if resource_type and "resource_type" not in event_dict:
        event_dict["resource_type"] = resource_type
    return event_dict
