"""
Role model.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin
from .mixins import PermissionHolder


class Role(Base, TimestampMixin, PermissionHolder):
    """
    Role definition.

    A reusable permission bundle. Roles hold permissions through the same
    polymorphic table as any other subject; holders inherit them.
    """

    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<Role {self.name}>"
