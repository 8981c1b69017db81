# backend/skyprep/api/dependencies/auth.py
"""
Identity dependencies.

Authentication happens upstream: the gateway forwards the verified user id
in ``X-User-Id``. This module only resolves that id to an active user with
roles, so services can run their own authorization checks.
"""

import asyncio
import logging
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ...core.exceptions import UnauthorizedException
from ...core.request_context import set_actor_id
from ...models.user import User
from ...repositories import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


async def get_current_user(
    x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the acting user from the gateway header.

    Raises:
        HTTPException: 401 when the header is missing or names no active user
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise UnauthorizedException(
            "Missing user identity", code="MISSING_IDENTITY"
        ).to_http_exception()

    repository = RepositoryFactory.create_user_repository(db)
    user = await asyncio.to_thread(repository.get_active_user, user_id)
    if user is None:
        logger.info(f"Rejected request for unknown or inactive user {user_id}")
        raise UnauthorizedException(
            "Unknown or inactive user", code="UNKNOWN_IDENTITY"
        ).to_http_exception()

    set_actor_id(user.id)
    return user
