"""Notification outbox model."""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, JSON, ForeignKey
from datetime import datetime
from app.database import Base, generate_id


class Notification(Base):
    """A message for a user, written in the same transaction as the change it reports.

    Push delivery happens later, out of band, and only updates the push_* columns.
    """

    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_id)
    recipient_user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    notification_type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(String(1000), nullable=False, default="")
    payload = Column(JSON, nullable=True)
    shift_request_id = Column(String(36), nullable=True, index=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    push_sent_at = Column(DateTime, nullable=True)
    push_attempts = Column(Integer, nullable=False, default=0)
    push_last_error = Column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, recipient={self.recipient_user_id}, "
            f"type={self.notification_type}, sent={self.push_sent_at is not None})>"
        )
