"""
Resource-permission helper.

Creates, fetches, deletes, grants and revokes the CRUD permissions of one
resource type or resource instance. Permission names are
``<prefix>.<action>``, where the prefix comes from the resource class
(``Article`` -> ``article``).

Instance-scoped actions (view, update, delete) need a resource id and are
bound to the helper's instance; type-scoped actions (create, viewAny,
updateAny, deleteAny) never carry an id.

Usage:
    perms = ResourcePermissions(db, article)
    await perms.create_crud_permissions()          # view/update/delete on article
    await perms.grant_view_permission(editor)

    articles = ResourcePermissions(db, Article)
    await articles.create_crud_permissions()       # create/viewAny/updateAny/deleteAny
    await articles.grant_view_any_permission(editor)
"""

from typing import Any, Callable, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from polyacl.core.config import AclSettings, settings
from polyacl.core.exceptions import InvalidArgumentError, NotFoundError, PreconditionError
from polyacl.models.mixins import acl_id, permission_prefix, type_tag
from polyacl.models.permission import Permission
from polyacl.models.role import Role

from .catalog import PermissionCatalog
from .grants import PermissionGrants
from .identity import as_list, resource_ref, unique

logger = structlog.get_logger()

INSTANCE = "instance"
TYPE = "type"

# The helper's own resource id, as opposed to an explicit one or None.
_BOUND = object()

# method stem -> (verb, scope, takes the "Any" suffix)
ACTIONS: dict[str, tuple[str, str, bool]] = {
    "view": ("view", INSTANCE, False),
    "update": ("update", INSTANCE, False),
    "delete": ("delete", INSTANCE, False),
    "create": ("create", TYPE, False),
    "view_any": ("view", TYPE, True),
    "update_any": ("update", TYPE, True),
    "delete_any": ("delete", TYPE, True),
}

INSTANCE_CRUD = ("view", "update", "delete")
TYPE_CRUD = ("create", "view_any", "update_any", "delete_any")


class ResourcePermissions:
    """
    CRUD permissions of a resource class or instance.

    Generic methods take the action name as it appears in the permission
    name (``"view"``, ``"viewAny"``, ``"publish"``...). The per-action
    methods (``create_view_permission``, ``grant_update_any_permission``...)
    are attached to the class below from ``ACTIONS``.
    """

    def __init__(
        self,
        db: AsyncSession,
        resource: Any,
        *,
        permission_model: type[Permission] = Permission,
        role_model: type[Role] = Role,
        config: AclSettings | None = None,
    ):
        if resource is None:
            raise InvalidArgumentError("A resource class or instance is required")
        self.db = db
        self.config = config or settings.acl
        self.permission_model = permission_model
        self.role_model = role_model
        self.catalog = PermissionCatalog(
            db, permission_model=permission_model, role_model=role_model
        )
        self.resource_type = type_tag(resource)
        self.prefix = permission_prefix(resource)
        if isinstance(resource, (type, str)):
            self.resource_id = None
        else:
            ident = acl_id(resource)
            if ident is None:
                raise PreconditionError(
                    f"{self.resource_type} has no id; persist it before creating permissions"
                )
            self.resource_id = resource_ref(ident)

    @property
    def is_instance(self) -> bool:
        return self.resource_id is not None

    def action_name(self, stem: str) -> str:
        """Action of a per-action method stem: ``view_any`` -> ``viewAny``."""
        verb, _, with_suffix = ACTIONS[stem]
        return verb + self.config.any_suffix if with_suffix else verb

    def permission_name(self, action: str) -> str:
        """Full permission name of an action: ``view`` -> ``article.view``."""
        return f"{self.prefix}{self.config.separator}{action}"

    # ============================================================
    # SINGLE PERMISSION
    # ============================================================

    async def create_permission(self, action: str, resource_id: Any = _BOUND) -> Permission:
        """Get the permission for ``action``, creating it if missing."""
        return await self.catalog.first_or_create(
            self.permission_name(action), self.resource_type, self._id(resource_id)
        )

    async def get_permission(self, action: str, resource_id: Any = _BOUND) -> Permission | None:
        """Get the permission for ``action``, or None if it was never created."""
        return await self.catalog.find(
            self.permission_name(action), self.resource_type, self._id(resource_id)
        )

    async def delete_permission(self, action: str, resource_id: Any = _BOUND) -> int:
        """Delete the permission for ``action`` and its grants."""
        permission = await self.get_permission(action, resource_id)
        if permission is None:
            return 0
        return await self.catalog.delete([permission])

    async def grant_permission(self, holder: Any, action: str, resource_id: Any = _BOUND) -> int:
        """
        Grant the permission for ``action`` to ``holder``.

        Raises:
            NotFoundError: The permission was never created
        """
        permission = await self.get_permission(action, resource_id)
        if permission is None:
            raise NotFoundError(
                f"Permission '{self.permission_name(action)}' does not exist",
                missing=[self.permission_name(action)],
            )
        return await self._grants(holder).add_permission(permission)

    async def revoke_permission(self, holder: Any, action: str, resource_id: Any = _BOUND) -> int:
        """Revoke the permission for ``action`` from ``holder``."""
        permission = await self.get_permission(action, resource_id)
        if permission is None:
            return 0
        return await self._grants(holder).del_permission(permission)

    # ============================================================
    # MANY PERMISSIONS
    # ============================================================

    async def create_many_permissions(
        self, actions: Sequence[str], resource_id: Any = _BOUND
    ) -> list[Permission]:
        """
        Get the permissions for ``actions``, creating the missing ones.

        One select, at most one insert, one re-select.
        """
        rid = self._id(resource_id)
        existing = await self.get_many_permissions(actions, rid)
        have = {p.name for p in existing}
        missing = [n for n in self._names(actions) if n not in have]
        if not missing:
            return existing

        await self.catalog.repo.insert_many([
            {"name": name, "resource_type": self.resource_type, "resource_id": rid}
            for name in missing
        ])
        logger.info(
            "resource_permissions_created",
            resource_type=self.resource_type,
            resource_id=rid,
            count=len(missing),
        )
        return await self.get_many_permissions(actions, rid)

    async def get_many_permissions(
        self, actions: Sequence[str], resource_id: Any = _BOUND
    ) -> list[Permission]:
        """Get the existing permissions for ``actions``."""
        names = self._names(actions)
        if not names:
            return []
        model = self.permission_model
        return await self.catalog.repo.all(
            model.name.in_(names),
            resource_type=self.resource_type,
            resource_id=self._id(resource_id),
        )

    async def delete_many_permissions(self, actions: Sequence[str], resource_id: Any = _BOUND) -> int:
        """Delete the permissions for ``actions`` and their grants."""
        permissions = await self.get_many_permissions(actions, resource_id)
        return await self.catalog.delete(permissions)

    async def grant_many_permissions(
        self, holder: Any, actions: Sequence[str], resource_id: Any = _BOUND
    ) -> int:
        """
        Grant the permissions for ``actions`` to ``holder``.

        Raises:
            NotFoundError: One or more permissions were never created
        """
        names = self._names(actions)
        permissions = await self.get_many_permissions(actions, resource_id)
        if len(permissions) < len(names):
            missing = sorted(set(names) - {p.name for p in permissions})
            raise NotFoundError("One or more permissions do not exist", missing=missing)
        return await self._grants(holder).add_permissions(permissions)

    async def revoke_many_permissions(
        self, holder: Any, actions: Sequence[str], resource_id: Any = _BOUND
    ) -> int:
        """Revoke the permissions for ``actions`` from ``holder``."""
        permissions = await self.get_many_permissions(actions, resource_id)
        if not permissions:
            return 0
        return await self._grants(holder).del_permissions(permissions)

    # ============================================================
    # CRUD BUNDLES
    # ============================================================

    def crud_actions(self) -> list[str]:
        """view/update/delete for an instance, create/viewAny/updateAny/deleteAny for a type."""
        stems = INSTANCE_CRUD if self.is_instance else TYPE_CRUD
        return [self.action_name(s) for s in stems]

    async def create_crud_permissions(self) -> list[Permission]:
        return await self.create_many_permissions(self.crud_actions(), self.resource_id)

    async def get_crud_permissions(self) -> list[Permission]:
        return await self.get_many_permissions(self.crud_actions(), self.resource_id)

    async def delete_crud_permissions(self) -> int:
        return await self.delete_many_permissions(self.crud_actions(), self.resource_id)

    async def grant_crud_permissions(self, holder: Any) -> int:
        return await self.grant_many_permissions(holder, self.crud_actions(), self.resource_id)

    async def attach_crud_permissions(self, holder: Any) -> int:
        return await self.grant_crud_permissions(holder)

    async def revoke_crud_permissions(self, holder: Any) -> int:
        return await self.revoke_many_permissions(holder, self.crud_actions(), self.resource_id)

    # ============================================================
    # CLEANUP
    # ============================================================

    async def delete_resource_permissions(self) -> int:
        """Delete every instance-level permission of the bound instance."""
        if not self.is_instance:
            raise PreconditionError("Deleting instance permissions requires a resource instance")
        return await self.catalog.delete_for_resource(self.resource_type, self.resource_id)

    async def delete_all_resource_permissions(self) -> int:
        """Delete every permission of the resource type."""
        return await self.catalog.delete_for_resource_type(self.resource_type)

    async def delete_generic_resource_permissions(self) -> int:
        """Delete the type-level permissions of the resource type."""
        return await self.catalog.delete_for_resource_type(self.resource_type, generic_only=True)

    # ============================================================
    # INTERNALS
    # ============================================================

    def _id(self, resource_id: Any) -> str | None:
        if resource_id is _BOUND:
            return self.resource_id
        return resource_ref(resource_id)

    def _names(self, actions: Sequence[str]) -> list[str]:
        return unique(self.permission_name(a) for a in as_list(actions, "actions"))

    def _grants(self, holder: Any) -> PermissionGrants:
        return PermissionGrants(
            self.db,
            holder,
            permission_model=self.permission_model,
            role_model=self.role_model,
            config=self.config,
        )

    def _scoped_id(self, stem: str) -> str | None:
        if ACTIONS[stem][1] == TYPE:
            return None
        if not self.is_instance:
            raise PreconditionError(
                f"'{stem}' permissions are instance-scoped; bind a resource instance",
                resource_type=self.resource_type,
            )
        return self.resource_id


# ============================================================
# PER-ACTION METHODS
# ============================================================

# op -> generic method it delegates to; attach is an alias of grant
ENTITY_OPS: dict[str, Callable[..., Any]] = {
    "create": ResourcePermissions.create_permission,
    "get": ResourcePermissions.get_permission,
    "delete": ResourcePermissions.delete_permission,
}
HOLDER_OPS: dict[str, Callable[..., Any]] = {
    "grant": ResourcePermissions.grant_permission,
    "attach": ResourcePermissions.grant_permission,
    "revoke": ResourcePermissions.revoke_permission,
}


def _entity_op(op: str, stem: str) -> Callable[..., Any]:
    generic = ENTITY_OPS[op]

    async def method(self: ResourcePermissions) -> Any:
        return await generic(self, self.action_name(stem), self._scoped_id(stem))

    return _named(method, op, stem)


def _holder_op(op: str, stem: str) -> Callable[..., Any]:
    generic = HOLDER_OPS[op]

    async def method(self: ResourcePermissions, holder: Any) -> Any:
        return await generic(self, holder, self.action_name(stem), self._scoped_id(stem))

    return _named(method, op, stem)


def _named(method: Callable[..., Any], op: str, stem: str) -> Callable[..., Any]:
    method.__name__ = f"{op}_{stem}_permission"
    method.__qualname__ = f"ResourcePermissions.{method.__name__}"
    method.__doc__ = f"{op.capitalize()} the '{stem}' permission."
    return method


# create_view_permission, grant_update_any_permission, ...
for _stem in ACTIONS:
    for _op in ENTITY_OPS:
        setattr(ResourcePermissions, f"{_op}_{_stem}_permission", _entity_op(_op, _stem))
    for _op in HOLDER_OPS:
        setattr(ResourcePermissions, f"{_op}_{_stem}_permission", _holder_op(_op, _stem))

del _stem, _op
