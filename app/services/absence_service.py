"""Absence store operations and absence-coverage adjustment."""
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from dateutil.relativedelta import relativedelta
from datetime import date
import logging

from app.models.absence import UserAbsence


logger = logging.getLogger(__name__)

DateRange = Tuple[date, date]

ONE_DAY = relativedelta(days=1)


def remove_date_from_range(start: date, end: date, day: date) -> List[DateRange]:
    """
    Remove one day from a closed date range.

    Args:
        start: First day of the range (inclusive)
        end: Last day of the range (inclusive)
        day: Day to remove

    Returns:
        The remaining ranges: the input unchanged if ``day`` is outside it,
        nothing if the range was that single day, one range when an edge is
        trimmed, or two ranges when ``day`` is strictly inside.

    Raises:
        ValueError: If start is after end
    """
    if start > end:
        raise ValueError(f"Start date ({start}) must be before or equal to end date ({end})")

    if day < start or day > end:
        return [(start, end)]
    if start == end:
        return []
    if day == start:
        return [(start + ONE_DAY, end)]
    if day == end:
        return [(start, end - ONE_DAY)]
    return [(start, day - ONE_DAY), (day + ONE_DAY, end)]


class AbsenceService:
    """Service for reading and adjusting user absences."""

    def __init__(self, db: Session):
        """
        Initialize absence service.

        Args:
            db: Database session
        """
        self.db = db

    def _covering_query(self, user_id: str, day: date):
        return self.db.query(UserAbsence).filter(
            UserAbsence.user_id == user_id,
            UserAbsence.start_date <= day,
            UserAbsence.end_date >= day,
        )

    def get_covering_absences(self, user_id: str, day: date, lock: bool = False) -> List[UserAbsence]:
        query = self._covering_query(user_id, day).order_by(UserAbsence.start_date.asc())
        if lock:
            query = query.with_for_update()
        return query.all()

    def is_absent(self, user_id: str, day: date) -> bool:
        return self._covering_query(user_id, day).first() is not None

    def clear_coverage(self, user_id: str, day: date) -> int:
        """
        Make sure no absence row of the user covers ``day``.

        Each covering row is deleted, trimmed or split according to
        remove_date_from_range. Changes are flushed but not committed.

        Args:
            user_id: User who is going to work on ``day``
            day: Day that must become absence-free

        Returns:
            Number of absence rows that were adjusted
        """
        adjusted = 0
        for absence in self.get_covering_absences(user_id, day, lock=True):
            remaining = remove_date_from_range(absence.start_date, absence.end_date, day)
            adjusted += 1

            if not remaining:
                logger.info(f"Removing absence {absence.id} of user {user_id} on {day}")
                self.db.delete(absence)
                continue

            first_start, first_end = remaining[0]
            absence.start_date = first_start
            absence.end_date = first_end

            if len(remaining) == 2:
                second_start, second_end = remaining[1]
                self.db.add(UserAbsence(
                    user_id=absence.user_id,
                    absence_type=absence.absence_type,
                    start_date=second_start,
                    end_date=second_end,
                    created_by=absence.created_by,
                    comment=absence.comment,
                ))
                logger.info(f"Split absence {absence.id} of user {user_id} around {day}")
            else:
                logger.info(f"Trimmed absence {absence.id} of user {user_id} to {first_start}..{first_end}")

        if adjusted:
            self.db.flush()
        return adjusted

    def register_single_day(
        self,
        user_id: str,
        absence_type: str,
        day: date,
        created_by: Optional[str] = None,
        comment: Optional[str] = None
    ) -> Optional[UserAbsence]:
        """
        Insert a one-day absence unless the day is already covered.

        Returns:
            The new absence, or None if an existing row already covers the day
        """
        if self.is_absent(user_id, day):
            logger.info(f"User {user_id} already absent on {day}; no absence inserted")
            return None

        absence = UserAbsence(
            user_id=user_id,
            absence_type=absence_type,
            start_date=day,
            end_date=day,
            created_by=created_by,
            comment=comment,
        )
        absence.validate()
        self.db.add(absence)
        self.db.flush()
        return absence
