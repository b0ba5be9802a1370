"""
Polymorphic association tables.

One table links any (subject_type, subject_id) to a permission, another
links any (holder_type, holder_id) to a role. The type/id pair cannot
reference a concrete table, so only the permission/role side carries a
foreign key; the polymorphic side is cleaned up by hooks.
"""

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class SubjectPermission(Base, TimestampMixin):
    """A subject (role, user, ...) holding one permission."""

    __tablename__ = "subject_permission"

    subject_type: Mapped[str] = mapped_column(String(255), primary_key=True)
    subject_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    permission_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<SubjectPermission {self.subject_type}:{self.subject_id} -> {self.permission_id}>"


class HolderRole(Base, TimestampMixin):
    """A holder (user, team, ...) having one role."""

    __tablename__ = "holder_role"

    holder_type: Mapped[str] = mapped_column(String(255), primary_key=True)
    holder_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    role_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<HolderRole {self.holder_type}:{self.holder_id} -> {self.role_id}>"
