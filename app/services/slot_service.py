"""Slot-conflict resolution ahead of ownership changes.

The assignment slot key (period, date, user, shift type, department,
division) is unique in the store, including cancelled rows. Before an owner
is rewritten, the destination slot is checked here so a collision surfaces
as a SlotConflictError instead of an IntegrityError mid-transaction.
"""
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
import logging

from app.models.assignment import ShiftAssignment, AssignmentStatus
from app.models.offer import ShiftOffer
from app.models.request import ShiftRequest
from app.services.history_service import HistoryRecorder
from app.exceptions import SlotConflictError


logger = logging.getLogger(__name__)


class SlotConflictResolver:
    """Reserves a destination slot for a user before an owner update."""

    def __init__(self, db: Session):
        self.db = db

    def find_slot_holder(
        self,
        period_id: str,
        shift_date: date,
        user_id: str,
        shift_type_id: str,
        department_id: str,
        division_id: Optional[str],
        exclude_assignment_id: Optional[str] = None
    ) -> Optional[ShiftAssignment]:
        """Return the row occupying the slot key, locked, if any."""
        query = self.db.query(ShiftAssignment).filter(
            ShiftAssignment.shift_period_id == period_id,
            ShiftAssignment.shift_date == shift_date,
            ShiftAssignment.user_id == user_id,
            ShiftAssignment.shift_type_id == shift_type_id,
            ShiftAssignment.department_id == department_id,
            ShiftAssignment.division_id == division_id,
        )
        if exclude_assignment_id:
            query = query.filter(ShiftAssignment.id != exclude_assignment_id)
        return query.with_for_update().first()

    def reserve_slot(
        self,
        period_id: str,
        shift_date: date,
        user_id: str,
        shift_type_id: str,
        department_id: str,
        division_id: Optional[str],
        exclude_assignment_id: Optional[str] = None
    ) -> None:
        """
        Make sure ``user_id`` can take over the slot key.

        A cancelled holder nothing points at is deleted to free the key. An
        absence holder, a cancelled holder still referenced by offers,
        requests or history, or any other active holder is a conflict.

        Raises:
            SlotConflictError: If the slot cannot be freed
        """
        holder = self.find_slot_holder(
            period_id, shift_date, user_id, shift_type_id, department_id, division_id,
            exclude_assignment_id
        )
        if holder is None:
            return

        if holder.is_absence:
            raise SlotConflictError(holder.id, user_id, "slot is held by an absence")

        if holder.status == AssignmentStatus.CANCELLED:
            if self.is_referenced(holder.id):
                raise SlotConflictError(holder.id, user_id, "slot is held by a cancelled assignment with history")
            logger.info(f"Reclaiming slot from cancelled assignment {holder.id} for user {user_id}")
            self.db.delete(holder)
            self.db.flush()
            return

        raise SlotConflictError(holder.id, user_id, "slot is held by an active assignment")

    def is_referenced(self, assignment_id: str) -> bool:
        """True when an offer, request or history row points at the assignment."""
        if HistoryRecorder(self.db).for_assignment(assignment_id):
            return True

        offer = self.db.query(ShiftOffer.id).filter(ShiftOffer.shift_assignment_id == assignment_id).first()
        if offer is not None:
            return True

        request = (
            self.db.query(ShiftRequest.id)
            .filter(or_(
                ShiftRequest.shift_assignment_id == assignment_id,
                ShiftRequest.source_shift_assignment_id == assignment_id,
                ShiftRequest.target_shift_assignment_id == assignment_id,
            ))
            .first()
        )
        return request is not None

    def reserve_for(self, assignment: ShiftAssignment, new_user_id: str) -> None:
        """Reserve the slot of ``assignment`` for its prospective new owner."""
        self.reserve_slot(*assignment.slot_key(new_user_id), exclude_assignment_id=assignment.id)
