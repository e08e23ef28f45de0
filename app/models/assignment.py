"""Shift assignment model: the authoritative schedule."""
from sqlalchemy import Column, String, Date, DateTime, Enum, Boolean, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, date
import enum
from app.database import Base, generate_id


class AssignmentSource(str, enum.Enum):
    """Where an assignment row came from."""
    TEMPLATE = "TEMPLATE"
    MANUAL = "MANUAL"


class AssignmentStatus(str, enum.Enum):
    """Assignment status enumeration."""
    GENERATED = "GENERATED"
    APPROVED = "APPROVED"
    OFFERED = "OFFERED"
    CANCELLED = "CANCELLED"


class ShiftAssignment(Base):
    """One scheduled work unit for a user on a date."""

    __tablename__ = "shift_assignments"

    id = Column(String(36), primary_key=True, default=generate_id)
    shift_period_id = Column(String(36), ForeignKey("shift_periods.id"), nullable=False, index=True)
    shift_date = Column(Date, nullable=False, index=True)
    division_id = Column(String(36), nullable=True, index=True)
    department_id = Column(String(36), nullable=False, index=True)
    staff_type_id = Column(String(36), nullable=False)
    shift_type_id = Column(String(36), ForeignKey("shift_types.id"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    source_type = Column(Enum(AssignmentSource), nullable=False, default=AssignmentSource.MANUAL)
    status = Column(Enum(AssignmentStatus), nullable=False, default=AssignmentStatus.GENERATED, index=True)
    is_absence = Column(Boolean, nullable=False, default=False)
    absence_type = Column(String(50), nullable=True)
    status_comment = Column(String(1000), nullable=True)
    staff_shift_rule_id = Column(String(36), nullable=True)
    required_staff_snapshot = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Slot key: one row per user/date/shift type/department/division in a period
    __table_args__ = (
        UniqueConstraint(
            'shift_period_id', 'shift_date', 'user_id', 'shift_type_id', 'department_id', 'division_id',
            name='uq_assignment_slot'
        ),
    )

    # Relationships
    shift_type = relationship("ShiftType")
    period = relationship("ShiftPeriod")

    def __repr__(self) -> str:
        return (
            f"<ShiftAssignment(id={self.id}, date={self.shift_date}, user_id={self.user_id}, "
            f"status={self.status})>"
        )

    def slot_key(self, user_id: str = None) -> tuple:
        """Slot key, optionally with a different owner substituted."""
        return (
            self.shift_period_id,
            self.shift_date,
            user_id if user_id is not None else self.user_id,
            self.shift_type_id,
            self.department_id,
            self.division_id,
        )

    def validate(self) -> None:
        """Validate assignment data."""
        if not self.shift_period_id:
            raise ValueError("Shift period ID is required")
        if not self.shift_date:
            raise ValueError("Shift date is required")
        if not isinstance(self.shift_date, date):
            raise ValueError("Shift date must be a date object")
        if not self.user_id:
            raise ValueError("User ID is required")
        if not self.shift_type_id:
            raise ValueError("Shift type ID is required")
        if not self.department_id:
            raise ValueError("Department ID is required")
        if self.is_absence and not self.absence_type:
            raise ValueError("Absence assignments must have an absence type")
