# backend/skyprep/models/user.py
"""
User model.

Students, teachers and admins are all users, differentiated by roles.
Authentication happens upstream; only identity and roles are kept here.
"""

from typing import Set

from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import PRIVILEGED_ROLES, RoleName
from ..database import Base
from .types import UTCDateTime


class User(Base):
    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(200), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, server_default=func.now())

    roles = relationship(
        "Role", secondary="user_roles", back_populates="users", lazy="selectin"
    )  # Eager load roles

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email}>"

    @property
    def role_names(self) -> Set[RoleName]:
        names: Set[RoleName] = set()
        for role in self.roles or []:
            try:
                names.add(RoleName(role.name))
            except ValueError:
                continue
        return names

    def has_role(self, role: RoleName) -> bool:
        return role in self.role_names

    @property
    def is_student(self) -> bool:
        return self.has_role(RoleName.STUDENT)

    @property
    def is_teacher(self) -> bool:
        return self.has_role(RoleName.TEACHER)

    @property
    def is_privileged(self) -> bool:
        """Admins and super admins."""
        return bool(self.role_names & PRIVILEGED_ROLES)
