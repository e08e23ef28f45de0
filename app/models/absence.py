"""User absence model."""
from sqlalchemy import Column, String, Date, DateTime, ForeignKey
from datetime import datetime, date
from app.database import Base, generate_id


class UserAbsence(Base):
    """A closed date range during which a user is unavailable."""

    __tablename__ = "user_absences"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    absence_type = Column(String(50), nullable=False)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    comment = Column(String(1000), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return (
            f"<UserAbsence(id={self.id}, user_id={self.user_id}, type={self.absence_type}, "
            f"{self.start_date}..{self.end_date})>"
        )

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def validate(self) -> None:
        """Validate absence data."""
        if not self.user_id:
            raise ValueError("User ID is required")
        if not self.absence_type:
            raise ValueError("Absence type is required")
        if not self.start_date or not self.end_date:
            raise ValueError("Start and end date are required")
        if self.start_date > self.end_date:
            raise ValueError("Start date must be before or equal to end date")
