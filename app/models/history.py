"""Assignment ownership/status history model."""
from sqlalchemy import Column, String, Date, DateTime, Enum, ForeignKey, UniqueConstraint
from datetime import datetime
from app.database import Base, generate_id
from app.models.request import RequestType


class AssignmentHistory(Base):
    """Append-only record of a completed ownership or status change."""

    __tablename__ = "shift_assignment_user_history"

    id = Column(String(36), primary_key=True, default=generate_id)
    shift_assignment_id = Column(String(36), ForeignKey("shift_assignments.id"), nullable=False, index=True)
    from_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    to_user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    change_reason = Column(Enum(RequestType), nullable=False)
    shift_request_id = Column(String(36), ForeignKey("shift_requests.id"), nullable=True, index=True)
    shift_offer_id = Column(String(36), ForeignKey("shift_offers.id"), nullable=True)

    # Snapshot of the shift at the time of the change
    shift_date = Column(Date, nullable=False)
    shift_type_id = Column(String(36), nullable=False)
    department_id = Column(String(36), nullable=False)
    division_id = Column(String(36), nullable=True)

    comment = Column(String(1000), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint(
            'shift_assignment_id', 'shift_request_id', 'change_reason',
            name='uq_history_assignment_request_reason'
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AssignmentHistory(assignment_id={self.shift_assignment_id}, "
            f"{self.from_user_id}->{self.to_user_id}, reason={self.change_reason})>"
        )
