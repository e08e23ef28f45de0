"""Business logic services package."""
from app.services.request_service import RequestService
from app.services.offer_service import OfferService
from app.services.assignment_service import AssignmentService
from app.services.notification_service import (
    NotificationService,
    NotificationOutbox,
    NotificationDispatcher,
    notification_service
)

__all__ = [
    "RequestService",
    "OfferService",
    "AssignmentService",
    "NotificationService",
    "NotificationOutbox",
    "NotificationDispatcher",
    "notification_service"
]
