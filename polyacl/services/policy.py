"""
Authorization decision.

Answers "may this subject perform this action on this resource?" from
permission names alone. For an instance verb the subject needs either the
permission bound to that instance or the type-level ``<verb>Any``
permission:

    view(article 5)  ->  any of  article.view    @ 5
                                 article.viewAny @ (type)

Usage:
    policy = ResourcePolicy(db, Article)
    if await policy.update(user, article):
        ...

    # or through the registry / context
    with resource_type_scope(Article):
        allowed = await authorize(db, user, "viewAny")
"""

from typing import Any, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from polyacl.core.config import AclSettings, settings
from polyacl.core.context import get_current_permission_prefix, get_current_resource_type
from polyacl.core.exceptions import InvalidArgumentError, PreconditionError
from polyacl.core.interfaces import PolicyDecision, PolicyEngine
from polyacl.core.registry import AuthRegistry
from polyacl.models.mixins import acl_id, permission_prefix, type_tag
from polyacl.models.permission import Permission
from polyacl.models.role import Role

from .grants import PermissionGrants

logger = structlog.get_logger()


@AuthRegistry.policy_engine("resource")
class ResourcePolicy(PolicyEngine):
    """
    CRUD policy for one resource type.

    The resource type is given explicitly or taken from the current
    resource-type context.
    """

    def __init__(
        self,
        db: AsyncSession,
        resource_type: Any = None,
        *,
        permission_model: type[Permission] = Permission,
        role_model: type[Role] = Role,
        config: AclSettings | None = None,
    ):
        self.db = db
        self.config = config or settings.acl
        self.permission_model = permission_model
        self.role_model = role_model

        if resource_type is not None:
            self.resource_type = type_tag(resource_type)
            self.prefix = permission_prefix(resource_type)
        else:
            current = get_current_resource_type()
            if current is None:
                raise PreconditionError("No resource type given and none set in context")
            self.resource_type = current
            self.prefix = get_current_permission_prefix() or permission_prefix(current)

    async def user_has_permission(
        self,
        subject: Any,
        actions: Sequence[str],
        resource_ids: Sequence[Any],
    ) -> bool:
        """
        Check that ``subject`` holds any of the prefixed ``actions``, each
        paired with the resource id at the same position.
        """
        names = [f"{self.prefix}{self.config.separator}{a}" for a in actions]
        return await self._grants(subject).has_any_permission(
            names, self.resource_type, resource_ids
        )

    # ============================================================
    # VERBS
    # ============================================================

    async def view_any(self, subject: Any) -> bool:
        return await self.user_has_permission(subject, [self._any("view")], [None])

    async def view(self, subject: Any, resource: Any) -> bool:
        return await self._instance_check(subject, "view", resource)

    async def create(self, subject: Any) -> bool:
        return await self.user_has_permission(subject, ["create"], [None])

    async def update(self, subject: Any, resource: Any) -> bool:
        return await self._instance_check(subject, "update", resource)

    async def delete(self, subject: Any, resource: Any) -> bool:
        return await self._instance_check(subject, "delete", resource)

    async def restore(self, subject: Any, resource: Any) -> bool:
        return await self._instance_check(subject, "restore", resource)

    async def force_delete(self, subject: Any, resource: Any) -> bool:
        return await self._instance_check(subject, "forceDelete", resource)

    async def can(self, subject: Any, action: str, resource: Any = None) -> bool:
        """
        Check any action by name.

        ``viewAny`` and ``create`` (and any action without a resource) are
        checked against the type; other actions against the instance or
        the ``<action>Any`` permission.
        """
        if action in (self._any("view"), "create") or resource is None:
            return await self.user_has_permission(subject, [action], [None])
        return await self._instance_check(subject, action, resource)

    # ============================================================
    # POLICY ENGINE INTERFACE
    # ============================================================

    async def evaluate(
        self,
        actor: Any,
        action: str,
        resource: Any | None = None,
    ) -> PolicyDecision:
        if await self.can(actor, action, resource):
            return PolicyDecision.allow()
        return PolicyDecision.deny()

    async def get_permissions(self, actor: Any, resource: Any | None = None) -> set[str]:
        permissions = await self._grants(actor).get_permissions()
        prefix = f"{self.prefix}{self.config.separator}"
        rid = None if resource is None else str(acl_id(resource))
        return {
            p.name for p in permissions
            if p.name.startswith(prefix)
            and (p.resource_type in (None, self.resource_type))
            and (p.resource_id is None or p.resource_id == rid)
        }

    # ============================================================
    # INTERNALS
    # ============================================================

    def _any(self, verb: str) -> str:
        return verb + self.config.any_suffix

    async def _instance_check(self, subject: Any, verb: str, resource: Any) -> bool:
        if resource is None:
            raise InvalidArgumentError(f"'{verb}' needs a resource instance")
        return await self.user_has_permission(
            subject, [verb, self._any(verb)], [resource, None]
        )

    def _grants(self, subject: Any) -> PermissionGrants:
        return PermissionGrants(
            self.db,
            subject,
            permission_model=self.permission_model,
            role_model=self.role_model,
            config=self.config,
        )


async def authorize(
    db: AsyncSession,
    subject: Any,
    action: str,
    resource: Any = None,
    resource_type: Any = None,
) -> bool:
    """
    Decide whether ``subject`` may perform ``action``.

    The resource type is, in order: ``resource_type``, the type of
    ``resource``, the current resource-type context.
    """
    if resource_type is None and resource is not None:
        resource_type = type(resource)
    engine = AuthRegistry.get_policy_engine(
        settings.acl.policy_engine, db=db, resource_type=resource_type
    )
    decision = await engine.evaluate(subject, action, resource)
    logger.debug(
        "authorization_decided",
        action=action,
        resource_id=None if resource is None else acl_id(resource),
        allowed=decision.allowed,
    )
    return decision.allowed
