"""Database models package."""
from app.models.user import User, UserManager, UserDepartment, UserDivision
from app.models.shift_type import ShiftType, ShiftPeriod, PeriodStatus
from app.models.assignment import ShiftAssignment, AssignmentStatus, AssignmentSource
from app.models.absence import UserAbsence
from app.models.offer import ShiftOffer, OfferStatus, OfferVisibility
from app.models.request import ShiftRequest, RequestType, RequestStatus
from app.models.history import AssignmentHistory
from app.models.notification import Notification

__all__ = [
    "User",
    "UserManager",
    "UserDepartment",
    "UserDivision",
    "ShiftType",
    "ShiftPeriod",
    "PeriodStatus",
    "ShiftAssignment",
    "AssignmentStatus",
    "AssignmentSource",
    "UserAbsence",
    "ShiftOffer",
    "OfferStatus",
    "OfferVisibility",
    "ShiftRequest",
    "RequestType",
    "RequestStatus",
    "AssignmentHistory",
    "Notification",
]
