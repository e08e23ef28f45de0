"""Assignment store operations outside the request workflow."""
from sqlalchemy.orm import Session
from typing import Optional, List
from datetime import date
import logging

from app.models.assignment import ShiftAssignment, AssignmentStatus, AssignmentSource
from app.models.shift_type import ShiftPeriod, ShiftType
from app.models.user import User
from app.services.overlap_service import OverlapValidator
from app.services.request_queries import ensure_no_pending_request
from app.services.slot_service import SlotConflictResolver
from app.services.absence_service import AbsenceService
from app.services.transaction import execute_transition, lock_row, get_row
from app.exceptions import (
    MissingFieldError,
    ValidationError,
    AbsenceConflictError,
    InvalidAssignmentStateError,
    PeriodLockedError,
)


logger = logging.getLogger(__name__)


class AssignmentService:
    """Service for manual assignment management."""

    def __init__(self, db: Session):
        """
        Initialize assignment service.

        Args:
            db: Database session
        """
        self.db = db
        self.overlaps = OverlapValidator(db)
        self.slots = SlotConflictResolver(db)
        self.absences = AbsenceService(db)

    def get_assignment(self, assignment_id: str) -> ShiftAssignment:
        return get_row(self.db, ShiftAssignment, assignment_id, "shift_assignment")

    def list_assignments(
        self,
        shift_period_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        user_id: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[ShiftAssignment]:
        query = self.db.query(ShiftAssignment)
        if shift_period_id:
            query = query.filter(ShiftAssignment.shift_period_id == shift_period_id)
        if start_date:
            query = query.filter(ShiftAssignment.shift_date >= start_date)
        if end_date:
            query = query.filter(ShiftAssignment.shift_date <= end_date)
        if user_id:
            query = query.filter(ShiftAssignment.user_id == user_id)
        query = query.order_by(ShiftAssignment.shift_date.asc(), ShiftAssignment.id.asc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def create_assignment(
        self,
        shift_period_id: str,
        shift_date: date,
        user_id: str,
        shift_type_id: str,
        department_id: str,
        staff_type_id: str,
        division_id: Optional[str] = None,
        status: AssignmentStatus = AssignmentStatus.APPROVED,
        status_comment: Optional[str] = None
    ) -> ShiftAssignment:
        """
        Create a manual assignment.

        Args:
            shift_period_id: Period the shift belongs to
            shift_date: Date of the shift
            user_id: Owner
            shift_type_id: Shift type
            department_id: Department
            staff_type_id: Staff type
            division_id: Optional division
            status: Initial status, GENERATED or APPROVED
            status_comment: Optional comment

        Returns:
            Created assignment

        Raises:
            MissingFieldError: If a required field is missing
            ValidationError: If the date is outside the period or the status is invalid
            ResourceNotFoundError: If the period, user or shift type does not exist
            AbsenceConflictError: If the user is absent on the date
            OverlapError: If the user already works an overlapping shift
            SlotConflictError: If the slot is already held
        """
        for name, value in (
            ("shift_period_id", shift_period_id),
            ("shift_date", shift_date),
            ("user_id", user_id),
            ("shift_type_id", shift_type_id),
            ("department_id", department_id),
            ("staff_type_id", staff_type_id),
        ):
            if not value:
                raise MissingFieldError(name)

        status = AssignmentStatus(status)
        if status not in (AssignmentStatus.GENERATED, AssignmentStatus.APPROVED):
            raise ValidationError(
                message=f"New assignments cannot start as {status.value}.",
                error_code="INVALID_ASSIGNMENT_STATUS",
                details={"status": status.value}
            )

        def transition() -> ShiftAssignment:
            period = get_row(self.db, ShiftPeriod, shift_period_id, "shift_period")
            get_row(self.db, User, user_id, "user")
            get_row(self.db, ShiftType, shift_type_id, "shift_type")

            if not (period.start_date <= shift_date <= period.end_date):
                raise ValidationError(
                    message=f"{shift_date} is outside the shift period.",
                    error_code="DATE_OUTSIDE_PERIOD",
                    details={
                        "shift_date": str(shift_date),
                        "period_start": str(period.start_date),
                        "period_end": str(period.end_date)
                    }
                )
            if self.absences.is_absent(user_id, shift_date):
                raise AbsenceConflictError(
                    f"User is absent on {shift_date}.",
                    details={"user_id": user_id, "shift_date": str(shift_date)}
                )

            self.overlaps.ensure_no_overlap(user_id, shift_date, shift_type_id)
            self.slots.reserve_slot(
                shift_period_id, shift_date, user_id, shift_type_id, department_id, division_id
            )

            assignment = ShiftAssignment(
                shift_period_id=shift_period_id,
                shift_date=shift_date,
                user_id=user_id,
                shift_type_id=shift_type_id,
                department_id=department_id,
                division_id=division_id,
                staff_type_id=staff_type_id,
                source_type=AssignmentSource.MANUAL,
                status=status,
                status_comment=status_comment,
            )
            assignment.validate()
            self.db.add(assignment)
            self.db.flush()
            return assignment

        assignment = execute_transition(self.db, "create_assignment", transition)
        logger.info(f"Created assignment {assignment.id} for user {user_id} on {shift_date}")
        return assignment

    def cancel_assignment(
        self,
        assignment_id: str,
        acting_user_id: str,
        comment: Optional[str] = None
    ) -> ShiftAssignment:
        """
        Mark an assignment CANCELLED. Its slot key can then be reclaimed.

        Raises:
            InvalidAssignmentStateError: If it is already cancelled or currently offered
            PendingRequestExistsError: If a pending request references it
        """
        if not acting_user_id:
            raise MissingFieldError("user_id")

        def transition() -> ShiftAssignment:
            assignment = lock_row(self.db, ShiftAssignment, assignment_id, "shift_assignment")
            if assignment.status == AssignmentStatus.CANCELLED:
                raise InvalidAssignmentStateError(assignment.id, "assignment is already cancelled")
            if assignment.status == AssignmentStatus.OFFERED:
                raise InvalidAssignmentStateError(assignment.id, "cancel the offer first")
            ensure_no_pending_request(self.db, [assignment.id])

            assignment.status = AssignmentStatus.CANCELLED
            assignment.status_comment = comment
            self.db.flush()
            return assignment

        assignment = execute_transition(self.db, "cancel_assignment", transition)
        logger.info(f"Assignment {assignment_id} cancelled by {acting_user_id}")
        return assignment

    def delete_assignment(self, assignment_id: str) -> None:
        """
        Hard-delete an assignment of an unlocked period.

        Raises:
            ResourceNotFoundError: If the assignment does not exist
            PeriodLockedError: If its period is APPROVED
            PendingRequestExistsError: If a pending request references it
        """
        def transition() -> None:
            assignment = lock_row(self.db, ShiftAssignment, assignment_id, "shift_assignment")
            period = get_row(self.db, ShiftPeriod, assignment.shift_period_id, "shift_period")
            if period.is_locked:
                raise PeriodLockedError(period.id)
            ensure_no_pending_request(self.db, [assignment.id])
            self.db.delete(assignment)

        execute_transition(self.db, "delete_assignment", transition)
        logger.info(f"Deleted assignment {assignment_id}")
