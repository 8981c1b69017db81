# backend/skyprep/repositories/participant_calendar_repository.py
"""
Participant calendar version rows.

``read_versions`` runs before the overlap check; ``compare_and_bump`` runs
after the session write. A bump that matches no row (someone else bumped
first) or an insert that collides with a concurrent insert reports False,
and the caller rolls back the whole unit and retries.
"""

from datetime import date, datetime
import logging
from typing import Dict, Iterable, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.participant_calendar import ParticipantCalendar
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

CalendarKey = Tuple[str, date]


class ParticipantCalendarRepository(BaseRepository[ParticipantCalendar]):
    def __init__(self, db: Session):
        super().__init__(db, ParticipantCalendar)

    def read_versions(self, keys: Iterable[CalendarKey]) -> Dict[CalendarKey, Optional[int]]:
        """
        Current version for each (participant, date); None where no row exists yet.
        """
        wanted = list(dict.fromkeys(keys))
        versions: Dict[CalendarKey, Optional[int]] = {key: None for key in wanted}
        if not wanted:
            return versions
        try:
            for participant_id, calendar_date in wanted:
                row = (
                    self.db.query(ParticipantCalendar.version)
                    .filter(
                        ParticipantCalendar.participant_id == participant_id,
                        ParticipantCalendar.calendar_date == calendar_date,
                    )
                    .first()
                )
                if row is not None:
                    versions[(participant_id, calendar_date)] = int(row[0])
        except SQLAlchemyError as e:
            self.logger.error(f"Error reading participant calendar versions: {str(e)}")
            raise RepositoryException(f"Failed to read calendar versions: {str(e)}")
        return versions

    def compare_and_bump(self, key: CalendarKey, expected: Optional[int], now: datetime) -> bool:
        """
        Advance the version of ``key`` if it still equals ``expected``.

        Returns:
            True when this writer owns the bump, False on a lost race.
            After False the unit of work must be rolled back.
        """
        participant_id, calendar_date = key
        if expected is None:
            self.db.add(
                ParticipantCalendar(
                    participant_id=participant_id,
                    calendar_date=calendar_date,
                    version=1,
                    updated_at=now,
                )
            )
            try:
                self.db.flush()
            except IntegrityError:
                logger.info(
                    "Calendar row %s/%s created concurrently", participant_id, calendar_date
                )
                return False
            return True

        result = self.db.execute(
            update(ParticipantCalendar)
            .where(
                ParticipantCalendar.participant_id == participant_id,
                ParticipantCalendar.calendar_date == calendar_date,
                ParticipantCalendar.version == expected,
            )
            .values(version=expected + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(
                "Calendar version for %s/%s moved past %s", participant_id, calendar_date, expected
            )
            return False
        return True
