"""Shift type and shift period reference models."""
from sqlalchemy import Column, String, Date, Time, DateTime, Enum
from datetime import datetime
import enum
from app.database import Base, generate_id


class ShiftType(Base):
    """A named shift with a same-day [start, end) time range."""

    __tablename__ = "shift_types"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(100), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    def __repr__(self) -> str:
        return f"<ShiftType(id={self.id}, name={self.name}, {self.start_time}-{self.end_time})>"

    def validate(self) -> None:
        """Validate shift type data."""
        if not self.name:
            raise ValueError("Name is required")
        if self.start_time is None or self.end_time is None:
            raise ValueError("Start and end time are required")


class PeriodStatus(str, enum.Enum):
    """Shift period status enumeration."""
    DRAFT = "DRAFT"
    GENERATED = "GENERATED"
    APPROVED = "APPROVED"


class ShiftPeriod(Base):
    """A scheduling period; APPROVED periods are locked against deletion."""

    __tablename__ = "shift_periods"

    id = Column(String(36), primary_key=True, default=generate_id)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(Enum(PeriodStatus), nullable=False, default=PeriodStatus.DRAFT)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def is_locked(self) -> bool:
        return self.status == PeriodStatus.APPROVED

    def __repr__(self) -> str:
        return f"<ShiftPeriod(id={self.id}, {self.start_date}..{self.end_date}, status={self.status})>"
