# backend/skyprep/repositories/user_repository.py
"""
User Repository for the SkyPrep session backend.

Users are owned by the identity service; this module only reads them.
"""

import logging
from typing import Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(selectinload(User.roles))

    def get_active_user(self, user_id: str) -> Optional[User]:
        """User with roles loaded, or None when missing or deactivated."""
        try:
            return cast(
                Optional[User],
                self._apply_eager_loading(self.db.query(User))
                .filter(User.id == user_id, User.is_active.is_(True))
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load user: {str(e)}")
