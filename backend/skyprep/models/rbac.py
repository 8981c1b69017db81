# backend/skyprep/models/rbac.py
"""
Role models.

Roles are provisioned by the identity service; this backend only reads
them to decide who may drive which session transition.

Classes:
    Role: Named role (super_admin, admin, teacher, student)
    UserRole: Junction table for user-to-role mapping
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime

if TYPE_CHECKING:
    from .user import User


class Role(Base):
    """User role; ``name`` is one of ``RoleName``."""

    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, server_default=func.now())

    users: Mapped[List["User"]] = relationship(
        "User", secondary="user_roles", back_populates="roles"
    )

    def __repr__(self) -> str:
        return f"<Role {self.name}>"


class UserRole(Base):
    """Junction table for user-to-role mapping."""

    __tablename__ = "user_roles"

    user_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    )
    assigned_at: Mapped[datetime] = mapped_column(UTCDateTime, server_default=func.now())
