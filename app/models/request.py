"""Shift change request model."""
from sqlalchemy import Column, String, Date, Enum, DateTime, ForeignKey
from datetime import datetime
import enum
from typing import Optional
from app.database import Base, generate_id


class RequestType(str, enum.Enum):
    """Kind of change a request asks for."""
    NEW_SHIFT = "NEW_SHIFT"
    SWITCH = "SWITCH"
    OFFER = "OFFER"
    OFF_REQUEST = "OFF_REQUEST"


class RequestStatus(str, enum.Enum):
    """Request status enumeration.

    Each request type walks its own subset of the PENDING_* values; see
    app.services.workflow for the chains.
    """
    PENDING = "PENDING"
    PENDING_TARGET_USER = "PENDING_TARGET_USER"
    PENDING_TARGET_MANAGER = "PENDING_TARGET_MANAGER"
    PENDING_SOURCE_MANAGER = "PENDING_SOURCE_MANAGER"
    PENDING_OFFER_OWNER_MANAGER = "PENDING_OFFER_OWNER_MANAGER"
    PENDING_REQUESTOR_MANAGER = "PENDING_REQUESTOR_MANAGER"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_pending(self) -> bool:
        return self.value.startswith("PENDING")

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.APPROVED, RequestStatus.REJECTED)


class ShiftRequest(Base):
    """A change intent moving through an approval chain."""

    __tablename__ = "shift_requests"

    id = Column(String(36), primary_key=True, default=generate_id)
    request_type = Column(Enum(RequestType), nullable=False, index=True)
    request_status = Column(Enum(RequestStatus), nullable=False, index=True)
    requested_by_user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    target_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    inbox_user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    # Approver column written by older clients; see normalize_legacy_inboxes
    manager_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    division_id = Column(String(36), nullable=True, index=True)
    requested_department_id = Column(String(36), nullable=True)
    requested_shift_type_id = Column(String(36), nullable=True)
    requested_shift_date = Column(Date, nullable=True)
    requested_absence_type = Column(String(50), nullable=True)

    shift_assignment_id = Column(String(36), ForeignKey("shift_assignments.id"), nullable=True, index=True)
    source_shift_assignment_id = Column(String(36), ForeignKey("shift_assignments.id"), nullable=True)
    target_shift_assignment_id = Column(String(36), ForeignKey("shift_assignments.id"), nullable=True)
    shift_offer_id = Column(String(36), ForeignKey("shift_offers.id"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    decided_at = Column(DateTime, nullable=True)
    decision_by_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    decision_comment = Column(String(1000), nullable=True)
    last_action_at = Column(DateTime, nullable=True)
    last_action_by_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ShiftRequest(id={self.id}, type={self.request_type}, status={self.request_status}, "
            f"inbox={self.inbox_user_id})>"
        )

    @property
    def is_pending(self) -> bool:
        return self.request_status is not None and RequestStatus(self.request_status).is_pending

    @property
    def current_approver_id(self) -> Optional[str]:
        """The user allowed to act next, or None when terminal.

        Rows written before inbox routing existed only carry manager_user_id;
        they are honoured until normalize_legacy_inboxes has migrated them.
        """
        if not self.is_pending:
            return None
        return self.inbox_user_id or self.manager_user_id

    def referenced_assignment_ids(self) -> set:
        return {
            a for a in (
                self.shift_assignment_id,
                self.source_shift_assignment_id,
                self.target_shift_assignment_id,
            ) if a
        }

    def validate(self) -> None:
        """Validate request data."""
        if not self.request_type:
            raise ValueError("Request type is required")
        if not self.request_status:
            raise ValueError("Request status is required")
        if not self.requested_by_user_id:
            raise ValueError("Requesting user is required")

        status = RequestStatus(self.request_status)
        if status.is_pending and not self.inbox_user_id:
            raise ValueError("Pending requests must have an inbox user")
        if status.is_terminal:
            if self.inbox_user_id:
                raise ValueError("Terminal requests must not have an inbox user")
            if not self.decision_by_user_id or not self.decided_at:
                raise ValueError("Decided requests must have a decider and decided_at timestamp")
