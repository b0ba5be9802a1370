"""
FastAPI dependencies for authorization.

Authentication is the application's job: it overrides
``get_current_subject`` with its own resolver. Everything here only
decides, and answers 403 with no hint about which permission was missing.

Usage:
    app.dependency_overrides[get_current_subject] = my_current_user

    @router.get("/articles")
    async def list_articles(_: None = Depends(require("viewAny", Article))):
        ...

    @router.put("/articles/{article_id}")
    async def update_article(
        article: Article = Depends(require("update", Article, load_resource=load_article)),
    ):
        ...

    @router.post("/articles/{article_id}/publish")
    async def publish(article_id: int, auth: Authorize):
        await auth.require("publish", await load(article_id))
"""

from typing import Annotated, Any, Awaitable, Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from polyacl.services.policy import authorize

from .database import get_db

ResourceLoader = Callable[[AsyncSession, Request], Awaitable[Any]]


# ============================================================
# SUBJECT DEPENDENCY
# ============================================================

async def get_current_subject() -> Any:
    """
    Get the acting subject.

    Applications replace this through ``app.dependency_overrides``.

    Raises:
        HTTPException 401: Always, until overridden
    """
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
    )


# ============================================================
# AUTHORIZER
# ============================================================

class Authorizer:
    """
    Authorization checks bound to one subject and session.

    Usage:
        auth = Authorizer(db, current_user)
        await auth.require("update", article)
    """

    def __init__(self, db: AsyncSession, subject: Any):
        self.db = db
        self.subject = subject

    async def can(self, action: str, resource: Any = None, resource_type: Any = None) -> bool:
        """Check without raising."""
        return await authorize(self.db, self.subject, action, resource, resource_type)

    async def require(self, action: str, resource: Any = None, resource_type: Any = None) -> None:
        """
        Check or raise.

        Raises:
            HTTPException 403: If not authorized
        """
        if not await self.can(action, resource, resource_type):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permission denied",
            )


async def get_authorizer(
    db: AsyncSession = Depends(get_db),
    subject: Any = Depends(get_current_subject),
) -> Authorizer:
    """Get an authorizer for the current subject."""
    return Authorizer(db, subject)


def require(
    action: str,
    resource_type: Any = None,
    load_resource: ResourceLoader | None = None,
) -> Callable[..., Awaitable[Any]]:
    """
    Dependency factory gating a route on one action.

    ``load_resource(db, request)`` fetches the target instance for
    instance actions; the dependency then returns it so the handler does
    not load it twice.

    Raises:
        HTTPException 404: The loader found no resource
        HTTPException 403: The subject may not perform the action
    """

    async def check(
        request: Request,
        auth: Authorizer = Depends(get_authorizer),
    ) -> Any:
        resource = None
        if load_resource is not None:
            resource = await load_resource(auth.db, request)
            if resource is None:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Not found",
                )
        await auth.require(action, resource, resource_type)
        return resource

    return check


# ============================================================
# TYPE ALIASES FOR CLEAN SIGNATURES
# ============================================================

CurrentSubject = Annotated[Any, Depends(get_current_subject)]

Authorize = Annotated[Authorizer, Depends(get_authorizer)]
