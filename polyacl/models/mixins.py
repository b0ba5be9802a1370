"""
Collaborator contracts for entities taking part in access control.

Any class can hold permissions, be assigned roles or own resource-scoped
permissions by mixing in one of the classes below. The only thing the
engine ever reads from an entity is its type tag and its id.

Usage:
    class User(Base, TimestampMixin, RoleHolder, Resource):
        __tablename__ = "users"
        ...

    class Article(Base, Resource):
        __tablename__ = "articles"
        __acl_type__ = "blog.Article"   # optional, defaults to "Article"
"""

from typing import Any


class Identifiable:
    """
    Entity with a stable id and a type tag.

    The type tag is what ends up in ``subject_type`` / ``holder_type`` /
    ``resource_type`` columns, so renaming a class without pinning
    ``__acl_type__`` orphans its rows.
    """

    __acl_type__ = None

    def get_acl_id(self) -> Any:
        """Get the id used in association rows."""
        return self.id  # type: ignore[attr-defined]


class PermissionHolder(Identifiable):
    """Entity that can hold permissions directly."""

    __acl_role_holder__ = False


class RoleHolder(PermissionHolder):
    """Entity that can hold permissions and be assigned roles."""

    __acl_role_holder__ = True


class Resource(Identifiable):
    """Entity for which per-type and per-instance permissions are generated."""

    __permission_prefix__ = None

    @classmethod
    def get_permission_prefix(cls) -> str:
        """
        Prefix of the permission names of this resource type.

        The last dotted component of the type tag, lower-cased:
        ``Article`` -> ``article``, ``blog.BlogPost`` -> ``blogpost``.
        """
        if cls.__permission_prefix__:
            return cls.__permission_prefix__
        return type_tag(cls).rsplit(".", 1)[-1].lower()


def type_tag(entity: Any) -> str:
    """Get the type tag of an entity, an entity class, or a raw tag string."""
    if isinstance(entity, str):
        return entity
    cls = entity if isinstance(entity, type) else type(entity)
    return getattr(cls, "__acl_type__", None) or cls.__name__


def acl_id(entity: Any) -> Any:
    """Get the id of an entity honouring ``get_acl_id`` overrides."""
    getter = getattr(entity, "get_acl_id", None)
    if callable(getter):
        return getter()
    return getattr(entity, "id", None)


def is_role_holder(entity: Any) -> bool:
    """Check whether an entity (or class) may be assigned roles."""
    return bool(getattr(entity, "__acl_role_holder__", False))


def permission_prefix(resource: Any) -> str:
    """Get the permission prefix of a resource, resource class or raw tag."""
    getter = getattr(resource, "get_permission_prefix", None)
    if callable(getter):
        return getter()
    return type_tag(resource).rsplit(".", 1)[-1].lower()
