"""Append-only history of assignment ownership changes."""
from sqlalchemy.orm import Session
from typing import Optional, List
import logging

from app.models.assignment import ShiftAssignment
from app.models.history import AssignmentHistory
from app.models.request import RequestType


logger = logging.getLogger(__name__)


class HistoryRecorder:
    """Writes one history row per completed transition."""

    def __init__(self, db: Session):
        self.db = db

    def find(self, assignment_id: str, request_id: Optional[str], reason: RequestType) -> Optional[AssignmentHistory]:
        return self.db.query(AssignmentHistory).filter(
            AssignmentHistory.shift_assignment_id == assignment_id,
            AssignmentHistory.shift_request_id == request_id,
            AssignmentHistory.change_reason == reason,
        ).first()

    def record(
        self,
        assignment: ShiftAssignment,
        from_user_id: Optional[str],
        to_user_id: str,
        reason: RequestType,
        request_id: Optional[str],
        offer_id: Optional[str] = None,
        comment: Optional[str] = None
    ) -> AssignmentHistory:
        """
        Record a change, keyed on (assignment, request, reason).

        Recording the same key twice returns the existing row.

        Args:
            assignment: Assignment whose owner or status changed
            from_user_id: Previous owner (None for newly created rows)
            to_user_id: New owner
            reason: Request type that caused the change
            request_id: Originating request
            offer_id: Offer consumed by the change, if any
            comment: Free-text comment

        Returns:
            The history row
        """
        existing = self.find(assignment.id, request_id, reason)
        if existing is not None:
            logger.info(
                f"History for assignment {assignment.id}, request {request_id}, "
                f"reason {reason.value} already recorded"
            )
            return existing

        entry = AssignmentHistory(
            shift_assignment_id=assignment.id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            change_reason=reason,
            shift_request_id=request_id,
            shift_offer_id=offer_id,
            shift_date=assignment.shift_date,
            shift_type_id=assignment.shift_type_id,
            department_id=assignment.department_id,
            division_id=assignment.division_id,
            comment=comment,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def for_assignment(self, assignment_id: str) -> List[AssignmentHistory]:
        return (
            self.db.query(AssignmentHistory)
            .filter(AssignmentHistory.shift_assignment_id == assignment_id)
            .order_by(AssignmentHistory.created_at.asc())
            .all()
        )
