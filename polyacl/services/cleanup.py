"""
Cascade handlers for polymorphic rows.

Association rows keyed by (type, id) cannot reference their owner through
a foreign key, so deleting an owner leaves them behind. The application
triggers these hooks right after deleting the entity, in the same session
and before committing. Both handlers are critical: a failed purge raises
out of trigger(), so the deletion is not committed with orphaned grants.

    await db.delete(article)
    await hooks.trigger(RESOURCE_DELETED, db=db, resource=article)
    await db.commit()
"""

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from polyacl.core.hooks import HOLDER_DELETED, RESOURCE_DELETED, hooks
from polyacl.models.mixins import acl_id, type_tag
from polyacl.repositories.associations import HolderRoleStore, SubjectPermissionStore

from .catalog import PermissionCatalog
from .identity import holder_key

logger = structlog.get_logger()


@hooks.on(RESOURCE_DELETED, critical=True)
async def purge_resource_permissions(db: AsyncSession, resource: Any) -> int:
    """Delete the instance-level permissions (and their grants) of a resource."""
    deleted = await PermissionCatalog(db).delete_for_resource(type_tag(resource), acl_id(resource))
    logger.info(
        "resource_permissions_purged",
        resource_type=type_tag(resource),
        resource_id=acl_id(resource),
        count=deleted,
    )
    return deleted


@hooks.on(HOLDER_DELETED, critical=True)
async def purge_holder_associations(db: AsyncSession, holder: Any) -> int:
    """Delete the direct grants and role assignments of a holder."""
    key = holder_key(holder)
    permissions = SubjectPermissionStore(db)
    roles = HolderRoleStore(db)
    deleted = await permissions.delete_where(permissions.owned_by([key]))
    deleted += await roles.delete_where(roles.owned_by([key]))
    logger.info("holder_associations_purged", holder_type=key[0], holder_id=key[1], count=deleted)
    return deleted
