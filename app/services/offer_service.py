"""Offer registry: owners relinquishing assignments for others to take."""
from sqlalchemy.orm import Session
from typing import Optional, List
from datetime import date, datetime
import logging

from app.models.assignment import ShiftAssignment, AssignmentStatus
from app.models.offer import ShiftOffer, OfferStatus, OfferVisibility
from app.models.user import User, UserDepartment, UserDivision
from app.services.manager_service import ManagerDirectory
from app.services.overlap_service import OverlapValidator
from app.services.request_queries import ensure_no_pending_request
from app.services.transaction import execute_transition, lock_row, get_row
from app.exceptions import (
    MissingFieldError,
    ValidationError,
    NotAssignmentOwnerError,
    OfferCancelNotAllowedError,
    InvalidAssignmentStateError,
    OfferAlreadyTakenError,
    OfferNotActiveError,
    OfferNotEligibleError,
    ResourceNotFoundError,
)


logger = logging.getLogger(__name__)


class OfferService:
    """Service for creating, cancelling and listing shift offers."""

    def __init__(self, db: Session):
        """
        Initialize offer service.

        Args:
            db: Database session
        """
        self.db = db
        self.managers = ManagerDirectory(db)
        self.overlaps = OverlapValidator(db)

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def allowed_department_ids(self, user_id: str) -> set:
        rows = self.db.query(UserDepartment.department_id).filter(UserDepartment.user_id == user_id).all()
        return {r[0] for r in rows}

    def allowed_division_ids(self, user_id: str) -> set:
        rows = self.db.query(UserDivision.division_id).filter(UserDivision.user_id == user_id).all()
        return {r[0] for r in rows}

    def check_eligibility(self, offer: ShiftOffer, assignment: ShiftAssignment, requestor: User) -> None:
        """
        Check that ``requestor`` may see and take ``offer``.

        Raises:
            OfferNotActiveError: If the offer is not ACTIVE
            OfferNotEligibleError: If any eligibility rule fails
        """
        if offer.status != OfferStatus.ACTIVE:
            raise OfferNotActiveError(offer.id, offer.status)
        if requestor.id == offer.offered_by_user_id:
            raise OfferNotEligibleError(offer.id, requestor.id, "you cannot take your own offered shift")
        if not offer.is_visible_to(requestor.id):
            raise OfferNotEligibleError(offer.id, requestor.id, "offer is reserved for another user")
        if requestor.staff_type_id != assignment.staff_type_id:
            raise OfferNotEligibleError(offer.id, requestor.id, "staff type does not match")
        if assignment.department_id not in self.allowed_department_ids(requestor.id):
            raise OfferNotEligibleError(offer.id, requestor.id, "department is not allowed")
        if assignment.division_id and assignment.division_id not in self.allowed_division_ids(requestor.id):
            raise OfferNotEligibleError(offer.id, requestor.id, "division is not allowed")

    def is_eligible(self, offer: ShiftOffer, assignment: ShiftAssignment, requestor: User) -> bool:
        try:
            self.check_eligibility(offer, assignment, requestor)
        except (OfferNotActiveError, OfferNotEligibleError):
            return False
        return True

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_offer(self, offer_id: str) -> ShiftOffer:
        return get_row(self.db, ShiftOffer, offer_id, "shift_offer")

    def find_active_offer_for_assignment(self, assignment_id: str) -> Optional[ShiftOffer]:
        return self.db.query(ShiftOffer).filter(
            ShiftOffer.shift_assignment_id == assignment_id,
            ShiftOffer.status == OfferStatus.ACTIVE,
        ).first()

    def list_eligible_offers(
        self,
        requestor_user_id: str,
        shift_date: Optional[date] = None,
        division_id: Optional[str] = None,
        department_id: Optional[str] = None,
        shift_type_id: Optional[str] = None
    ) -> List[ShiftOffer]:
        """
        List ACTIVE offers the requestor could take right now.

        Args:
            requestor_user_id: User browsing offers
            shift_date: Optional exact date filter
            division_id: Optional division filter
            department_id: Optional department filter
            shift_type_id: Optional shift type filter

        Returns:
            Offers sorted by shift date, newest offer first within a date
        """
        requestor = get_row(self.db, User, requestor_user_id, "user")

        query = (
            self.db.query(ShiftOffer, ShiftAssignment)
            .join(ShiftAssignment, ShiftAssignment.id == ShiftOffer.shift_assignment_id)
            .filter(
                ShiftOffer.status == OfferStatus.ACTIVE,
                ShiftOffer.offered_by_user_id != requestor.id,
                ShiftAssignment.is_absence.is_(False),
            )
        )
        if shift_date:
            query = query.filter(ShiftAssignment.shift_date == shift_date)
        if division_id:
            query = query.filter(ShiftAssignment.division_id == division_id)
        if department_id:
            query = query.filter(ShiftAssignment.department_id == department_id)
        if shift_type_id:
            query = query.filter(ShiftAssignment.shift_type_id == shift_type_id)

        query = query.order_by(ShiftAssignment.shift_date.asc(), ShiftOffer.offered_at.desc())

        offers = []
        for offer, assignment in query.all():
            if not self.is_eligible(offer, assignment, requestor):
                continue
            if self.overlaps.has_overlap(requestor.id, assignment.shift_date, assignment.shift_type_id):
                continue
            offers.append(offer)

        logger.info(f"Found {len(offers)} eligible offers for user {requestor_user_id}")
        return offers

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_offer(
        self,
        assignment_id: str,
        owner_user_id: str,
        visibility: OfferVisibility = OfferVisibility.ALL_ELIGIBLE,
        target_user_id: Optional[str] = None,
        note: Optional[str] = None
    ) -> ShiftOffer:
        """
        Offer an assignment (upsert by assignment id).

        Args:
            assignment_id: Assignment to give up
            owner_user_id: Current owner making the offer
            visibility: ALL_ELIGIBLE or TARGET_USER
            target_user_id: Required iff visibility is TARGET_USER
            note: Optional note for takers

        Returns:
            The ACTIVE offer

        Raises:
            MissingFieldError: If required fields are missing
            ResourceNotFoundError: If the assignment or target user does not exist
            NotAssignmentOwnerError: If the caller does not own the assignment
            InvalidAssignmentStateError: If the assignment is an absence or not APPROVED
            OfferAlreadyTakenError: If the assignment's offer was already taken
            PendingRequestExistsError: If a pending request claims the assignment
        """
        if not assignment_id:
            raise MissingFieldError("shift_assignment_id")
        if not owner_user_id:
            raise MissingFieldError("offered_by_user_id")
        visibility = OfferVisibility(visibility)

        def transition() -> ShiftOffer:
            assignment = lock_row(self.db, ShiftAssignment, assignment_id, "shift_assignment")

            if assignment.user_id != owner_user_id:
                raise NotAssignmentOwnerError(assignment.id, owner_user_id, assignment.user_id)
            if assignment.is_absence:
                raise InvalidAssignmentStateError(assignment.id, "absence assignments cannot be offered")
            if assignment.status != AssignmentStatus.APPROVED:
                raise InvalidAssignmentStateError(
                    assignment.id, f"only APPROVED shifts can be offered (current={assignment.status.value})"
                )

            if visibility == OfferVisibility.TARGET_USER:
                if not target_user_id:
                    raise MissingFieldError("target_user_id", "TARGET_USER offer")
                if target_user_id == owner_user_id:
                    raise ValidationError(
                        message="You cannot target your own offer at yourself.",
                        error_code="INVALID_OFFER_TARGET",
                        details={"target_user_id": target_user_id}
                    )
                get_row(self.db, User, target_user_id, "user")

            ensure_no_pending_request(self.db, [assignment.id])

            offer = (
                self.db.query(ShiftOffer)
                .filter(ShiftOffer.shift_assignment_id == assignment.id)
                .with_for_update()
                .first()
            )
            if offer is not None and offer.status == OfferStatus.TAKEN:
                raise OfferAlreadyTakenError(offer.id, assignment.id)
            if offer is not None and offer.status == OfferStatus.ACTIVE:
                raise InvalidAssignmentStateError(assignment.id, "shift is already offered")

            if offer is None:
                offer = ShiftOffer(shift_assignment_id=assignment.id)
                self.db.add(offer)

            offer.offered_by_user_id = owner_user_id
            offer.offered_at = datetime.utcnow()
            offer.status = OfferStatus.ACTIVE
            offer.visibility = visibility
            offer.target_user_id = target_user_id if visibility == OfferVisibility.TARGET_USER else None
            offer.note = note
            offer.original_assignment_status = assignment.status
            offer.taken_by_user_id = None
            offer.taken_at = None
            offer.cancelled_by_user_id = None
            offer.cancelled_at = None
            offer.validate()

            assignment.status = AssignmentStatus.OFFERED
            self.db.flush()
            return offer

        offer = execute_transition(self.db, "create_offer", transition)
        logger.info(f"Assignment {assignment_id} offered by {owner_user_id} ({visibility.value})")
        return offer

    def cancel_offer(self, offer_id: str, acting_user_id: str) -> ShiftOffer:
        """
        Cancel an ACTIVE offer and restore the assignment status.

        Raises:
            MissingFieldError: If acting_user_id is missing
            ResourceNotFoundError: If the offer does not exist
            OfferNotActiveError: If the offer is not ACTIVE
            OfferCancelNotAllowedError: If the actor is neither the offerer nor their primary manager
            PendingRequestExistsError: If a pending request still claims the offer or its assignment
        """
        if not acting_user_id:
            raise MissingFieldError("cancelled_by_user_id")

        def transition() -> ShiftOffer:
            offer = lock_row(self.db, ShiftOffer, offer_id, "shift_offer")
            if offer.status != OfferStatus.ACTIVE:
                raise OfferNotActiveError(offer.id, offer.status)

            is_owner = acting_user_id == offer.offered_by_user_id
            if not is_owner and not self.managers.is_primary_manager_of(acting_user_id, offer.offered_by_user_id):
                raise OfferCancelNotAllowedError(offer.id, acting_user_id)

            ensure_no_pending_request(self.db, [offer.shift_assignment_id], offer_id=offer.id)
            assignment = lock_row(self.db, ShiftAssignment, offer.shift_assignment_id, "shift_assignment")

            offer.status = OfferStatus.CANCELLED
            offer.cancelled_by_user_id = acting_user_id
            offer.cancelled_at = datetime.utcnow()
            assignment.status = offer.original_assignment_status or AssignmentStatus.APPROVED
            self.db.flush()
            return offer

        offer = execute_transition(self.db, "cancel_offer", transition)
        logger.info(f"Offer {offer_id} cancelled by {acting_user_id}")
        return offer

    def locate_active_offer(self, offer_id: Optional[str], assignment_id: Optional[str]) -> ShiftOffer:
        """
        Resolve an offer from its id, or the ACTIVE offer of an assignment.

        Raises:
            MissingFieldError: If neither id is provided
            ResourceNotFoundError: If nothing matches
        """
        if offer_id:
            return lock_row(self.db, ShiftOffer, offer_id, "shift_offer")
        if not assignment_id:
            raise MissingFieldError("shift_offer_id or shift_assignment_id", "OFFER")
        offer = (
            self.db.query(ShiftOffer)
            .filter(ShiftOffer.shift_assignment_id == assignment_id, ShiftOffer.status == OfferStatus.ACTIVE)
            .with_for_update()
            .first()
        )
        if offer is None:
            raise ResourceNotFoundError("active_shift_offer", assignment_id)
        return offer
