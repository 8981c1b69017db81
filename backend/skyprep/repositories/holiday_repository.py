# backend/skyprep/repositories/holiday_repository.py
"""
Public holiday lookups used by the calendar policy.
"""

from datetime import date
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.holiday import PublicHoliday
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class HolidayRepository(BaseRepository[PublicHoliday]):
    def __init__(self, db: Session):
        super().__init__(db, PublicHoliday)

    def is_holiday(self, check_date: date) -> bool:
        try:
            return (
                self.db.query(PublicHoliday.id)
                .filter(
                    PublicHoliday.holiday_date == check_date,
                    PublicHoliday.is_active.is_(True),
                )
                .first()
                is not None
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking holiday {check_date}: {str(e)}")
            raise RepositoryException(f"Failed to check holiday: {str(e)}")
