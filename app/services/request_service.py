"""Request lifecycle engine.

Creates shift change requests, routes them through their approval chain and
applies the final mutation (absence, ownership swap or transfer) when the
last approver signs off. Every public mutation runs as one transaction via
execute_transition; rows are locked in the order request, offer, assignments.
"""
from sqlalchemy.orm import Session
from sqlalchemy import or_, and_
from dateutil.relativedelta import relativedelta
from dateutil.parser import isoparse
from typing import Optional, List, Dict, Any, Tuple
from datetime import date, datetime
import logging

from app.models.assignment import ShiftAssignment, AssignmentStatus
from app.models.offer import ShiftOffer, OfferStatus
from app.models.request import ShiftRequest, RequestType, RequestStatus
from app.models.user import User
from app.services import workflow
from app.services.absence_service import AbsenceService
from app.services.history_service import HistoryRecorder
from app.services.manager_service import ManagerDirectory
from app.services.notification_service import NotificationOutbox
from app.services.offer_service import OfferService
from app.services.overlap_service import OverlapValidator
from app.services.request_queries import PENDING_STATUSES, ensure_no_pending_request
from app.services.slot_service import SlotConflictResolver
from app.services.transaction import execute_transition, lock_row, get_row
from app.exceptions import (
    MissingFieldError,
    UnsupportedRequestTypeError,
    ValidationError,
    NotCurrentApproverError,
    NotRequestOwnerError,
    NotAssignmentOwnerError,
    AbsenceConflictError,
    InvalidAssignmentStateError,
    InvalidStatusTransitionError,
    OfferNotActiveError,
    SameSlotSwitchError,
    SwitchMismatchError,
)


logger = logging.getLogger(__name__)


def same_calendar_month(a: date, b: date) -> bool:
    month_start = a.replace(day=1)
    month_end = month_start + relativedelta(months=1) - relativedelta(days=1)
    return month_start <= b <= month_end


def is_same_slot(a: ShiftAssignment, b: ShiftAssignment) -> bool:
    """True when two assignments describe the same slot, whoever owns them."""
    return (
        a.shift_period_id == b.shift_period_id
        and a.shift_date == b.shift_date
        and a.shift_type_id == b.shift_type_id
        and a.department_id == b.department_id
        and a.division_id == b.division_id
    )


def _parse_date(value: Any, field_name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return isoparse(str(value)).date()
    except ValueError as e:
        raise ValidationError(
            message=f"{field_name} must be an ISO date (YYYY-MM-DD).",
            error_code="INVALID_DATE",
            details={"field_name": field_name, "value": str(value)}
        ) from e


class RequestService:
    """Service for creating, routing and deciding shift change requests."""

    def __init__(self, db: Session):
        """
        Initialize request service.

        Args:
            db: Database session
        """
        self.db = db
        self.overlaps = OverlapValidator(db)
        self.managers = ManagerDirectory(db)
        self.slots = SlotConflictResolver(db)
        self.absences = AbsenceService(db)
        self.history = HistoryRecorder(db)
        self.outbox = NotificationOutbox(db)
        self.offers = OfferService(db)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_request(
        self,
        request_type: Any,
        requested_by_user_id: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> ShiftRequest:
        """
        Create a request in the initial status of its type.

        Args:
            request_type: NEW_SHIFT, SWITCH, OFFER or OFF_REQUEST (case-insensitive)
            requested_by_user_id: User making the request
            payload: Type-specific fields

        Returns:
            The created request

        Raises:
            MissingFieldError: If the type, requester or a required field is missing
            UnsupportedRequestTypeError: If the request type is unknown
        """
        if not request_type:
            raise MissingFieldError("request_type")
        if not requested_by_user_id:
            raise MissingFieldError("requested_by_user_id")

        try:
            request_type = RequestType(str(getattr(request_type, "value", request_type)).upper())
        except ValueError:
            raise UnsupportedRequestTypeError(request_type)

        handlers = {
            RequestType.NEW_SHIFT: self.create_new_shift_request,
            RequestType.OFF_REQUEST: self.create_off_request,
            RequestType.SWITCH: self.create_switch_request,
            RequestType.OFFER: self.create_offer_request,
        }
        return handlers[request_type](requested_by_user_id, payload or {})

    def _division_from(self, payload: Dict[str, Any]) -> Optional[str]:
        # Older clients send camelCase
        return payload.get("division_id") or payload.get("divisionId")

    def _open_request(self, request: ShiftRequest) -> ShiftRequest:
        """Persist a freshly built request and notify its first approver."""
        request.last_action_at = datetime.utcnow()
        request.last_action_by_user_id = request.requested_by_user_id
        request.validate()
        self.db.add(request)
        self.db.flush()
        self.outbox.request_awaiting_action(request)
        return request

    def create_new_shift_request(self, requested_by_user_id: str, payload: Dict[str, Any]) -> ShiftRequest:
        """
        Ask to work an additional shift.

        Required payload: requested_shift_date, requested_shift_type_id,
        requested_department_id. Optional: manager_user_id (explicit
        approver), division_id.
        """
        shift_date = _parse_date(payload.get("requested_shift_date"), "requested_shift_date")
        shift_type_id = payload.get("requested_shift_type_id")
        department_id = payload.get("requested_department_id")
        for name, value in (
            ("requested_shift_date", shift_date),
            ("requested_shift_type_id", shift_type_id),
            ("requested_department_id", department_id),
        ):
            if not value:
                raise MissingFieldError(name, "NEW_SHIFT")

        def transition() -> ShiftRequest:
            get_row(self.db, User, requested_by_user_id, "user")

            approver_id = payload.get("manager_user_id")
            if approver_id:
                get_row(self.db, User, approver_id, "user")
            else:
                approver_id = self.managers.require_primary_manager(requested_by_user_id)

            self.overlaps.ensure_no_overlap(requested_by_user_id, shift_date, shift_type_id)

            return self._open_request(ShiftRequest(
                request_type=RequestType.NEW_SHIFT,
                request_status=workflow.initial_status(RequestType.NEW_SHIFT),
                requested_by_user_id=requested_by_user_id,
                inbox_user_id=approver_id,
                division_id=self._division_from(payload),
                requested_department_id=department_id,
                requested_shift_type_id=shift_type_id,
                requested_shift_date=shift_date,
            ))

        request = execute_transition(self.db, "create_new_shift_request", transition)
        logger.info(f"NEW_SHIFT request {request.id} created by {requested_by_user_id} for {shift_date}")
        return request

    def create_off_request(self, requested_by_user_id: str, payload: Dict[str, Any]) -> ShiftRequest:
        """
        Ask for a day off on an owned assignment.

        Required payload: shift_assignment_id, requested_absence_type.
        """
        assignment_id = payload.get("shift_assignment_id")
        absence_type = payload.get("requested_absence_type") or payload.get("absence_type")
        if not assignment_id:
            raise MissingFieldError("shift_assignment_id", "OFF_REQUEST")
        if not absence_type:
            raise MissingFieldError("requested_absence_type", "OFF_REQUEST")

        def transition() -> ShiftRequest:
            assignment = lock_row(self.db, ShiftAssignment, assignment_id, "shift_assignment")
            self._ensure_owned(assignment, requested_by_user_id)
            self._ensure_workable(assignment)

            if self.absences.is_absent(requested_by_user_id, assignment.shift_date):
                raise AbsenceConflictError(
                    f"User is already absent on {assignment.shift_date}.",
                    details={"user_id": requested_by_user_id, "shift_date": str(assignment.shift_date)}
                )
            if self.offers.find_active_offer_for_assignment(assignment.id) is not None:
                raise InvalidAssignmentStateError(assignment.id, "shift is currently offered")
            ensure_no_pending_request(self.db, [assignment.id])

            approver_id = self.managers.require_primary_manager(requested_by_user_id)

            return self._open_request(ShiftRequest(
                request_type=RequestType.OFF_REQUEST,
                request_status=workflow.initial_status(RequestType.OFF_REQUEST),
                requested_by_user_id=requested_by_user_id,
                inbox_user_id=approver_id,
                shift_assignment_id=assignment.id,
                requested_absence_type=absence_type,
                **self._snapshot(assignment),
            ))

        request = execute_transition(self.db, "create_off_request", transition)
        logger.info(f"OFF_REQUEST {request.id} created by {requested_by_user_id} for assignment {assignment_id}")
        return request

    def create_switch_request(self, requested_by_user_id: str, payload: Dict[str, Any]) -> ShiftRequest:
        """
        Propose swapping one owned assignment with another user's.

        Required payload: source_shift_assignment_id,
        target_shift_assignment_id, target_user_id.
        """
        source_id = payload.get("source_shift_assignment_id")
        target_id = payload.get("target_shift_assignment_id")
        target_user_id = payload.get("target_user_id")
        for name, value in (
            ("source_shift_assignment_id", source_id),
            ("target_shift_assignment_id", target_id),
            ("target_user_id", target_user_id),
        ):
            if not value:
                raise MissingFieldError(name, "SWITCH")
        if source_id == target_id:
            raise SameSlotSwitchError(source_id, target_id)
        if target_user_id == requested_by_user_id:
            raise ValidationError(
                message="You cannot switch a shift with yourself.",
                error_code="INVALID_SWITCH_TARGET",
                details={"target_user_id": target_user_id}
            )

        def transition() -> ShiftRequest:
            get_row(self.db, User, target_user_id, "user")
            source, target = self._lock_pair(source_id, target_id)

            if is_same_slot(source, target):
                raise SameSlotSwitchError(source.id, target.id)
            if not same_calendar_month(source.shift_date, target.shift_date):
                raise SwitchMismatchError(
                    "switch is only allowed within the same month",
                    details={"source_date": str(source.shift_date), "target_date": str(target.shift_date)}
                )
            for field in ("division_id", "department_id", "staff_type_id", "shift_type_id"):
                if getattr(source, field) != getattr(target, field):
                    raise SwitchMismatchError(
                        "switch is only allowed for the same division/department/staff type/shift type",
                        details={"field": field, "source": getattr(source, field), "target": getattr(target, field)}
                    )

            self._validate_switch_parties(source, target, requested_by_user_id, target_user_id)
            ensure_no_pending_request(self.db, [source.id, target.id])

            return self._open_request(ShiftRequest(
                request_type=RequestType.SWITCH,
                request_status=workflow.initial_status(RequestType.SWITCH),
                requested_by_user_id=requested_by_user_id,
                target_user_id=target_user_id,
                inbox_user_id=target_user_id,
                shift_assignment_id=source.id,
                source_shift_assignment_id=source.id,
                target_shift_assignment_id=target.id,
                **self._snapshot(source),
            ))

        request = execute_transition(self.db, "create_switch_request", transition)
        logger.info(f"SWITCH request {request.id} created: {source_id} <-> {target_id}")
        return request

    def create_offer_request(self, requested_by_user_id: str, payload: Dict[str, Any]) -> ShiftRequest:
        """
        Ask to take an offered shift.

        Required payload: shift_offer_id, or shift_assignment_id of an
        assignment with an ACTIVE offer.
        """
        offer_id = payload.get("shift_offer_id")
        assignment_id = payload.get("shift_assignment_id")
        if not offer_id and not assignment_id:
            raise MissingFieldError("shift_offer_id or shift_assignment_id", "OFFER")

        def transition() -> ShiftRequest:
            requestor = get_row(self.db, User, requested_by_user_id, "user")
            offer = self.offers.locate_active_offer(offer_id, assignment_id)
            assignment = lock_row(self.db, ShiftAssignment, offer.shift_assignment_id, "shift_assignment")

            self._validate_offer_take(offer, assignment, requestor)
            approver_id = self.managers.require_primary_manager(offer.offered_by_user_id)
            ensure_no_pending_request(self.db, [assignment.id], offer_id=offer.id)

            return self._open_request(ShiftRequest(
                request_type=RequestType.OFFER,
                request_status=workflow.initial_status(RequestType.OFFER),
                requested_by_user_id=requested_by_user_id,
                inbox_user_id=approver_id,
                shift_assignment_id=assignment.id,
                shift_offer_id=offer.id,
                **self._snapshot(assignment),
            ))

        request = execute_transition(self.db, "create_offer_request", transition)
        logger.info(f"OFFER request {request.id} created by {requested_by_user_id} for offer {request.shift_offer_id}")
        return request

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def approve(self, request_id: str, acting_user_id: str, comment: Optional[str] = None) -> ShiftRequest:
        """
        Approve the current step of a request.

        Advances the request to its next approver, or finalizes it when the
        acting user is the last one in the chain.

        Args:
            request_id: Request to approve
            acting_user_id: Approving user; must be the current inbox user
            comment: Optional decision comment

        Returns:
            Updated request

        Raises:
            MissingFieldError: If acting_user_id is missing
            ResourceNotFoundError: If the request does not exist
            InvalidStatusTransitionError: If the request is no longer pending
            NotCurrentApproverError: If the actor is not the inbox user
            BusinessRuleViolation: If re-validation fails
        """
        if not acting_user_id:
            raise MissingFieldError("decision_by_user_id")

        handlers = {
            RequestType.NEW_SHIFT: self._approve_new_shift,
            RequestType.OFF_REQUEST: self._approve_off_request,
            RequestType.SWITCH: self._approve_switch,
            RequestType.OFFER: self._approve_offer,
        }

        def transition() -> ShiftRequest:
            request = self._lock_for_decision(request_id, acting_user_id, "approve")
            handlers[RequestType(request.request_type)](request, acting_user_id, comment)
            request.validate()
            self.db.flush()
            return request

        request = execute_transition(self.db, "approve_request", transition)
        logger.info(
            f"Request {request.id} ({request.request_type.value}) approved by {acting_user_id}; "
            f"now {request.request_status.value}"
        )
        return request

    def reject(self, request_id: str, acting_user_id: str, comment: Optional[str] = None) -> ShiftRequest:
        """
        Reject a pending request. Assignments, absences and offers are untouched.

        Raises:
            MissingFieldError: If acting_user_id is missing
            ResourceNotFoundError: If the request does not exist
            InvalidStatusTransitionError: If the request is no longer pending
            NotCurrentApproverError: If the actor is not the inbox user
        """
        if not acting_user_id:
            raise MissingFieldError("decision_by_user_id")

        def transition() -> ShiftRequest:
            request = self._lock_for_decision(request_id, acting_user_id, "reject")
            self._decide(request, RequestStatus.REJECTED, acting_user_id, comment)
            request.validate()
            self.db.flush()
            return request

        request = execute_transition(self.db, "reject_request", transition)
        logger.info(f"Request {request.id} ({request.request_type.value}) rejected by {acting_user_id}")
        return request

    def retract(self, request_id: str, acting_user_id: str) -> bool:
        """
        Delete a still-pending request owned by the actor.

        Returns:
            True if a row was deleted, False if it was already gone

        Raises:
            MissingFieldError: If acting_user_id is missing
            NotRequestOwnerError: If the actor did not create the request
            InvalidStatusTransitionError: If the request is already decided
        """
        if not acting_user_id:
            raise MissingFieldError("user_id")

        def transition() -> bool:
            request = (
                self.db.query(ShiftRequest)
                .filter(ShiftRequest.id == request_id)
                .with_for_update()
                .first()
            )
            if request is None:
                return False
            if request.requested_by_user_id != acting_user_id:
                raise NotRequestOwnerError(request.id, acting_user_id)
            if not request.is_pending:
                raise InvalidStatusTransitionError(request.request_type, request.request_status, "retract")
            self.db.delete(request)
            return True

        deleted = execute_transition(self.db, "retract_request", transition)
        if deleted:
            logger.info(f"Request {request_id} retracted by {acting_user_id}")
        else:
            logger.info(f"Request {request_id} already gone; nothing to retract")
        return deleted

    def _lock_for_decision(self, request_id: str, acting_user_id: str, action: str) -> ShiftRequest:
        request = lock_row(self.db, ShiftRequest, request_id, "shift_request")
        workflow.ensure_actionable(request.request_type, request.request_status, action)
        approver_id = request.current_approver_id
        if approver_id != acting_user_id:
            raise NotCurrentApproverError(request.id, acting_user_id, approver_id)
        return request

    def _touch(self, request: ShiftRequest, acting_user_id: str) -> None:
        request.last_action_at = datetime.utcnow()
        request.last_action_by_user_id = acting_user_id

    def _advance(self, request: ShiftRequest, status: RequestStatus, inbox_user_id: str, acting_user_id: str) -> None:
        """Move the request to the next approver in its chain."""
        request.request_status = status
        request.inbox_user_id = inbox_user_id
        self._touch(request, acting_user_id)
        self.outbox.request_awaiting_action(request)

    def _decide(self, request: ShiftRequest, status: RequestStatus, acting_user_id: str, comment: Optional[str]) -> None:
        """Put the request in a terminal status and clear its inbox."""
        request.request_status = status
        request.inbox_user_id = None
        request.decided_at = datetime.utcnow()
        request.decision_by_user_id = acting_user_id
        if comment is not None:
            request.decision_comment = comment
        self._touch(request, acting_user_id)
        self.outbox.request_decided(request)

    # NEW_SHIFT ----------------------------------------------------------

    def _approve_new_shift(self, request: ShiftRequest, acting_user_id: str, comment: Optional[str]) -> None:
        user_id = request.requested_by_user_id
        self.overlaps.ensure_no_overlap(user_id, request.requested_shift_date, request.requested_shift_type_id)
        self.absences.clear_coverage(user_id, request.requested_shift_date)
        self._decide(request, RequestStatus.APPROVED, acting_user_id, comment)

    # OFF_REQUEST --------------------------------------------------------

    def _approve_off_request(self, request: ShiftRequest, acting_user_id: str, comment: Optional[str]) -> None:
        assignment = lock_row(self.db, ShiftAssignment, request.shift_assignment_id, "shift_assignment")
        user_id = request.requested_by_user_id
        self._ensure_owned(assignment, user_id)
        if assignment.status == AssignmentStatus.CANCELLED:
            raise InvalidAssignmentStateError(assignment.id, "assignment is cancelled")

        absence_type = request.requested_absence_type
        self.absences.register_single_day(
            user_id, absence_type, assignment.shift_date, created_by=acting_user_id, comment=comment
        )
        assignment.is_absence = True
        assignment.absence_type = absence_type

        history_comment = absence_type if not comment else f"{absence_type}: {comment}"
        self.history.record(
            assignment, user_id, user_id, RequestType.OFF_REQUEST, request.id, comment=history_comment
        )
        self._decide(request, RequestStatus.APPROVED, acting_user_id, comment)

    # SWITCH -------------------------------------------------------------

    def _approve_switch(self, request: ShiftRequest, acting_user_id: str, comment: Optional[str]) -> None:
        source, target = self._lock_pair(request.source_shift_assignment_id, request.target_shift_assignment_id)
        self._validate_switch_parties(source, target, request.requested_by_user_id, request.target_user_id)

        status = workflow.next_status(request.request_type, request.request_status)

        if status == RequestStatus.PENDING_TARGET_MANAGER:
            manager_id = self.managers.require_primary_manager(request.target_user_id)
            self._advance(request, status, manager_id, acting_user_id)
            return

        if status == RequestStatus.PENDING_SOURCE_MANAGER:
            manager_id = self.managers.require_primary_manager(request.requested_by_user_id)
            if manager_id != acting_user_id:
                self._advance(request, status, manager_id, acting_user_id)
                return
            logger.info(f"Request {request.id}: target and source share manager {manager_id}; finalizing")

        self._finalize_switch(request, source, target, acting_user_id, comment)

    def _finalize_switch(
        self,
        request: ShiftRequest,
        source: ShiftAssignment,
        target: ShiftAssignment,
        acting_user_id: str,
        comment: Optional[str]
    ) -> None:
        requester_id = source.user_id
        target_user_id = target.user_id

        self.absences.clear_coverage(requester_id, target.shift_date)
        self.absences.clear_coverage(target_user_id, source.shift_date)

        self.slots.reserve_for(source, target_user_id)
        self.slots.reserve_for(target, requester_id)

        source.user_id = target_user_id
        target.user_id = requester_id
        self.db.flush()

        self.history.record(source, requester_id, target_user_id, RequestType.SWITCH, request.id, comment=comment)
        self.history.record(target, target_user_id, requester_id, RequestType.SWITCH, request.id, comment=comment)
        self._decide(request, RequestStatus.APPROVED, acting_user_id, comment)

    def _validate_switch_parties(
        self,
        source: ShiftAssignment,
        target: ShiftAssignment,
        requester_id: str,
        target_user_id: str
    ) -> None:
        self._ensure_owned(source, requester_id)
        self._ensure_owned(target, target_user_id)
        self._ensure_workable(source)
        self._ensure_workable(target)

        self.overlaps.ensure_no_overlap(
            requester_id, target.shift_date, target.shift_type_id,
            exclude_assignment_id=source.id, role="requester"
        )
        self.overlaps.ensure_no_overlap(
            target_user_id, source.shift_date, source.shift_type_id,
            exclude_assignment_id=target.id, role="target user"
        )

    # OFFER --------------------------------------------------------------

    def _approve_offer(self, request: ShiftRequest, acting_user_id: str, comment: Optional[str]) -> None:
        offer = lock_row(self.db, ShiftOffer, request.shift_offer_id, "shift_offer")
        assignment = lock_row(self.db, ShiftAssignment, offer.shift_assignment_id, "shift_assignment")
        requestor = get_row(self.db, User, request.requested_by_user_id, "user")
        self._validate_offer_take(offer, assignment, requestor)

        status = workflow.next_status(request.request_type, request.request_status)

        if status == RequestStatus.PENDING_REQUESTOR_MANAGER:
            manager_id = self.managers.require_primary_manager(requestor.id)
            if manager_id != acting_user_id:
                self._advance(request, status, manager_id, acting_user_id)
                return

        self._finalize_offer(request, offer, assignment, acting_user_id, comment)

    def _finalize_offer(
        self,
        request: ShiftRequest,
        offer: ShiftOffer,
        assignment: ShiftAssignment,
        acting_user_id: str,
        comment: Optional[str]
    ) -> None:
        previous_owner_id = assignment.user_id
        new_owner_id = request.requested_by_user_id

        self.absences.clear_coverage(new_owner_id, assignment.shift_date)
        self.slots.reserve_for(assignment, new_owner_id)

        assignment.user_id = new_owner_id
        assignment.status = AssignmentStatus.APPROVED
        offer.status = OfferStatus.TAKEN
        offer.taken_by_user_id = new_owner_id
        offer.taken_at = datetime.utcnow()
        self.db.flush()

        self.history.record(
            assignment, previous_owner_id, new_owner_id, RequestType.OFFER, request.id,
            offer_id=offer.id, comment=comment
        )
        self._decide(request, RequestStatus.APPROVED, acting_user_id, comment)

    def _validate_offer_take(self, offer: ShiftOffer, assignment: ShiftAssignment, requestor: User) -> None:
        if offer.status != OfferStatus.ACTIVE:
            raise OfferNotActiveError(offer.id, offer.status)
        if assignment.user_id != offer.offered_by_user_id:
            raise InvalidAssignmentStateError(assignment.id, "assignment no longer belongs to the offering user")
        if assignment.is_absence:
            raise InvalidAssignmentStateError(assignment.id, "absence assignments cannot be taken")
        self.offers.check_eligibility(offer, assignment, requestor)
        self.overlaps.ensure_no_overlap(
            requestor.id, assignment.shift_date, assignment.shift_type_id, role="requester"
        )

    # ------------------------------------------------------------------
    # Assignment helpers
    # ------------------------------------------------------------------

    def _lock_pair(self, first_id: str, second_id: str) -> Tuple[ShiftAssignment, ShiftAssignment]:
        """Lock two assignments in id order and return them in argument order."""
        locked = {}
        for assignment_id in sorted([first_id, second_id]):
            locked[assignment_id] = lock_row(self.db, ShiftAssignment, assignment_id, "shift_assignment")
        return locked[first_id], locked[second_id]

    def _ensure_owned(self, assignment: ShiftAssignment, user_id: str) -> None:
        if assignment.user_id != user_id:
            raise NotAssignmentOwnerError(assignment.id, user_id, assignment.user_id)

    def _ensure_workable(self, assignment: ShiftAssignment) -> None:
        if assignment.is_absence:
            raise InvalidAssignmentStateError(assignment.id, "assignment is an absence")
        if assignment.status == AssignmentStatus.CANCELLED:
            raise InvalidAssignmentStateError(assignment.id, "assignment is cancelled")
        if assignment.status == AssignmentStatus.OFFERED:
            raise InvalidAssignmentStateError(assignment.id, "shift is currently offered")

    def _snapshot(self, assignment: ShiftAssignment) -> Dict[str, Any]:
        return {
            "division_id": assignment.division_id,
            "requested_department_id": assignment.department_id,
            "requested_shift_type_id": assignment.shift_type_id,
            "requested_shift_date": assignment.shift_date,
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_request(self, request_id: str) -> ShiftRequest:
        return get_row(self.db, ShiftRequest, request_id, "shift_request")

    def list_inbox(
        self,
        acting_user_id: str,
        request_type: Optional[RequestType] = None,
        request_status: Optional[RequestStatus] = None,
        division_id: Optional[str] = None
    ) -> List[ShiftRequest]:
        """
        Get requests waiting for the acting user's decision.

        Rows with an inbox user match strictly. Unmigrated legacy rows
        (pending, no inbox user) match on manager_user_id.

        Args:
            acting_user_id: Approver whose inbox to list
            request_type: Optional type filter
            request_status: Optional status filter
            division_id: Optional division filter

        Returns:
            Requests, newest first
        """
        if not acting_user_id:
            raise MissingFieldError("user_id")

        query = self.db.query(ShiftRequest).filter(
            or_(
                ShiftRequest.inbox_user_id == acting_user_id,
                and_(
                    ShiftRequest.inbox_user_id.is_(None),
                    ShiftRequest.request_status.in_(PENDING_STATUSES),
                    ShiftRequest.manager_user_id == acting_user_id,
                ),
            )
        )
        if request_type:
            query = query.filter(ShiftRequest.request_type == RequestType(request_type))
        if request_status:
            query = query.filter(ShiftRequest.request_status == RequestStatus(request_status))
        if division_id:
            query = query.filter(ShiftRequest.division_id == division_id)

        requests = query.order_by(ShiftRequest.created_at.desc()).all()
        logger.info(f"Inbox for {acting_user_id}: {len(requests)} requests")
        return requests

    def list_requests(
        self,
        requested_by_user_id: Optional[str] = None,
        request_status: Optional[RequestStatus] = None,
        limit: int = 500
    ) -> List[ShiftRequest]:
        query = self.db.query(ShiftRequest)
        if requested_by_user_id:
            query = query.filter(ShiftRequest.requested_by_user_id == requested_by_user_id)
        if request_status:
            query = query.filter(ShiftRequest.request_status == RequestStatus(request_status))
        return query.order_by(ShiftRequest.created_at.desc()).limit(limit).all()

    # ------------------------------------------------------------------
    # Post-approval linkage and maintenance
    # ------------------------------------------------------------------

    def attach_assignment(self, request_id: str, assignment_id: str, acting_user_id: str) -> ShiftRequest:
        """
        Link an approved NEW_SHIFT request to the assignment created for it.

        Safe to repeat: the history row is only written once.

        Raises:
            MissingFieldError: If an id is missing
            InvalidStatusTransitionError: If the request is not an APPROVED NEW_SHIFT
            NotRequestOwnerError: If the actor is neither the requester nor the approver
            NotAssignmentOwnerError: If the assignment is not the requester's
            InvalidAssignmentStateError: If the dates differ or another assignment is linked
        """
        if not assignment_id:
            raise MissingFieldError("shift_assignment_id")
        if not acting_user_id:
            raise MissingFieldError("user_id")

        def transition() -> ShiftRequest:
            request = lock_row(self.db, ShiftRequest, request_id, "shift_request")
            if request.request_type != RequestType.NEW_SHIFT or request.request_status != RequestStatus.APPROVED:
                raise InvalidStatusTransitionError(
                    request.request_type, request.request_status, "attach an assignment to"
                )
            if acting_user_id not in (request.requested_by_user_id, request.decision_by_user_id):
                raise NotRequestOwnerError(request.id, acting_user_id)

            assignment = lock_row(self.db, ShiftAssignment, assignment_id, "shift_assignment")
            self._ensure_owned(assignment, request.requested_by_user_id)
            if assignment.shift_date != request.requested_shift_date:
                raise InvalidAssignmentStateError(
                    assignment.id, f"assignment date {assignment.shift_date} does not match the request"
                )
            if request.shift_assignment_id and request.shift_assignment_id != assignment.id:
                raise InvalidAssignmentStateError(
                    assignment.id, f"request is already linked to {request.shift_assignment_id}"
                )

            request.shift_assignment_id = assignment.id
            self._touch(request, acting_user_id)
            self.history.record(
                assignment, None, request.requested_by_user_id, RequestType.NEW_SHIFT, request.id
            )
            return request

        request = execute_transition(self.db, "attach_assignment", transition)
        logger.info(f"Request {request_id} linked to assignment {assignment_id}")
        return request

    def normalize_legacy_inboxes(self) -> int:
        """
        Copy manager_user_id into inbox_user_id for pending rows that lack one.

        Returns:
            Number of requests migrated
        """
        def transition() -> int:
            return (
                self.db.query(ShiftRequest)
                .filter(
                    ShiftRequest.request_status.in_(PENDING_STATUSES),
                    ShiftRequest.inbox_user_id.is_(None),
                    ShiftRequest.manager_user_id.isnot(None),
                )
                .update({ShiftRequest.inbox_user_id: ShiftRequest.manager_user_id}, synchronize_session=False)
            )

        migrated = execute_transition(self.db, "normalize_legacy_inboxes", transition)
        logger.info(f"Normalized {migrated} legacy request inboxes")
        return migrated
