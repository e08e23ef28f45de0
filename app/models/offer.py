"""Shift offer model."""
from sqlalchemy import Column, String, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from app.database import Base, generate_id
from app.models.assignment import AssignmentStatus


class OfferStatus(str, enum.Enum):
    """Offer status enumeration."""
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    TAKEN = "TAKEN"


class OfferVisibility(str, enum.Enum):
    """Who may see and take an offer."""
    ALL_ELIGIBLE = "ALL_ELIGIBLE"
    TARGET_USER = "TARGET_USER"


class ShiftOffer(Base):
    """An owner's declaration that they want to give up an assignment."""

    __tablename__ = "shift_offers"

    id = Column(String(36), primary_key=True, default=generate_id)
    # One row per assignment; re-offering overwrites a cancelled row
    shift_assignment_id = Column(String(36), ForeignKey("shift_assignments.id"), nullable=False, unique=True)
    offered_by_user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    offered_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    status = Column(Enum(OfferStatus), nullable=False, default=OfferStatus.ACTIVE, index=True)
    visibility = Column(Enum(OfferVisibility), nullable=False, default=OfferVisibility.ALL_ELIGIBLE)
    target_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    note = Column(String(1000), nullable=True)
    original_assignment_status = Column(Enum(AssignmentStatus), nullable=True)
    taken_by_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    taken_at = Column(DateTime, nullable=True)
    cancelled_by_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    # Relationships
    assignment = relationship("ShiftAssignment")

    def __repr__(self) -> str:
        return (
            f"<ShiftOffer(id={self.id}, assignment_id={self.shift_assignment_id}, "
            f"status={self.status}, visibility={self.visibility})>"
        )

    def is_visible_to(self, user_id: str) -> bool:
        if self.visibility == OfferVisibility.TARGET_USER:
            return self.target_user_id == user_id
        return True

    def validate(self) -> None:
        """Validate offer data."""
        if not self.shift_assignment_id:
            raise ValueError("Shift assignment ID is required")
        if not self.offered_by_user_id:
            raise ValueError("Offering user is required")
        if self.visibility == OfferVisibility.TARGET_USER and not self.target_user_id:
            raise ValueError("TARGET_USER offers must name a target user")
        if self.visibility == OfferVisibility.ALL_ELIGIBLE and self.target_user_id:
            raise ValueError("ALL_ELIGIBLE offers must not name a target user")
        if self.status == OfferStatus.TAKEN and not self.taken_by_user_id:
            raise ValueError("Taken offers must record who took them")
