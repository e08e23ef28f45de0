"""Overlap detection between a candidate shift and a user's existing assignments."""
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date, time

from app.models.assignment import ShiftAssignment, AssignmentStatus
from app.models.shift_type import ShiftType
from app.exceptions import ResourceNotFoundError, OverlapError


def times_overlap(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    """True when the half-open ranges [a_start, a_end) and [b_start, b_end) intersect."""
    return not (a_end <= b_start or b_end <= a_start)


class OverlapValidator:
    """Checks whether a user already works a shift overlapping a candidate one."""

    def __init__(self, db: Session):
        self.db = db

    def has_overlap(
        self,
        user_id: str,
        shift_date: date,
        shift_type_id: str,
        exclude_assignment_id: Optional[str] = None
    ) -> bool:
        """
        Check for an active assignment overlapping the candidate shift.

        Only non-cancelled, non-absence rows of the same day are considered.

        Args:
            user_id: User who would work the candidate shift
            shift_date: Date of the candidate shift
            shift_type_id: Shift type of the candidate shift
            exclude_assignment_id: Assignment to ignore (the one being moved)

        Returns:
            True if an overlapping assignment exists

        Raises:
            ResourceNotFoundError: If the candidate shift type does not exist
        """
        candidate = self.db.query(ShiftType).filter(ShiftType.id == shift_type_id).first()
        if candidate is None:
            raise ResourceNotFoundError("shift_type", shift_type_id)

        query = (
            self.db.query(ShiftAssignment, ShiftType)
            .join(ShiftType, ShiftType.id == ShiftAssignment.shift_type_id)
            .filter(
                ShiftAssignment.user_id == user_id,
                ShiftAssignment.shift_date == shift_date,
                ShiftAssignment.is_absence.is_(False),
                ShiftAssignment.status != AssignmentStatus.CANCELLED,
            )
        )
        if exclude_assignment_id:
            query = query.filter(ShiftAssignment.id != exclude_assignment_id)

        for _, existing in query.all():
            if times_overlap(existing.start_time, existing.end_time, candidate.start_time, candidate.end_time):
                return True
        return False

    def ensure_no_overlap(
        self,
        user_id: str,
        shift_date: date,
        shift_type_id: str,
        exclude_assignment_id: Optional[str] = None,
        role: str = "user"
    ) -> None:
        """Raise OverlapError when has_overlap is true."""
        if self.has_overlap(user_id, shift_date, shift_type_id, exclude_assignment_id):
            raise OverlapError(user_id, shift_date, shift_type_id, role=role)
