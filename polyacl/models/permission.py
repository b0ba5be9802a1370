"""
Permission model.
"""

from sqlalchemy import Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Permission(Base, TimestampMixin):
    """
    Permission definition.

    A permission is a name optionally scoped to a resource type and to one
    instance of it:

        Permission(name="user.ban")                                    # global
        Permission(name="article.viewAny", resource_type="Article")    # type-level
        Permission(name="article.view", resource_type="Article",
                   resource_id="42")                                   # instance-level
    """

    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    resource_type: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @property
    def is_global(self) -> bool:
        return self.resource_type is None

    @property
    def is_type_level(self) -> bool:
        return self.resource_type is not None and self.resource_id is None

    @property
    def is_instance_level(self) -> bool:
        return self.resource_id is not None

    def __repr__(self) -> str:
        scope = ""
        if self.resource_type:
            scope = f" ({self.resource_type}:{self.resource_id or '*'})"
        return f"<Permission {self.name}{scope}>"


# NULL scopes compare as distinct in a plain unique constraint, which would
# let global and type-level permissions be duplicated.
Index(
    "uq_permission_name_resource",
    Permission.name,
    func.coalesce(Permission.resource_type, ""),
    func.coalesce(Permission.resource_id, ""),
    unique=True,
)
