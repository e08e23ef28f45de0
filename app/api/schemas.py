"""Request and response bodies for the HTTP API."""
from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional, Dict, Any

from app.models.assignment import AssignmentStatus, AssignmentSource
from app.models.offer import OfferStatus, OfferVisibility
from app.models.request import RequestType, RequestStatus


class ShiftRequestCreate(BaseModel):
    request_type: str
    requested_by_user_id: str
    target_user_id: Optional[str] = None
    manager_user_id: Optional[str] = None
    division_id: Optional[str] = None
    requested_shift_date: Optional[date] = None
    requested_shift_type_id: Optional[str] = None
    requested_department_id: Optional[str] = None
    requested_absence_type: Optional[str] = None
    shift_assignment_id: Optional[str] = None
    source_shift_assignment_id: Optional[str] = None
    target_shift_assignment_id: Optional[str] = None
    shift_offer_id: Optional[str] = None


class DecisionBody(BaseModel):
    decision_by_user_id: str
    decision_comment: Optional[str] = None


class AttachAssignmentBody(BaseModel):
    shift_assignment_id: str
    user_id: str


class ShiftRequestResponse(BaseModel):
    id: str
    request_type: RequestType
    request_status: RequestStatus
    requested_by_user_id: str
    target_user_id: Optional[str] = None
    inbox_user_id: Optional[str] = None
    division_id: Optional[str] = None
    requested_department_id: Optional[str] = None
    requested_shift_type_id: Optional[str] = None
    requested_shift_date: Optional[date] = None
    requested_absence_type: Optional[str] = None
    shift_assignment_id: Optional[str] = None
    source_shift_assignment_id: Optional[str] = None
    target_shift_assignment_id: Optional[str] = None
    shift_offer_id: Optional[str] = None
    created_at: datetime
    decided_at: Optional[datetime] = None
    decision_by_user_id: Optional[str] = None
    decision_comment: Optional[str] = None
    last_action_at: Optional[datetime] = None
    last_action_by_user_id: Optional[str] = None

    class Config:
        from_attributes = True


class ShiftOfferCreate(BaseModel):
    shift_assignment_id: str
    offered_by_user_id: str
    visibility: OfferVisibility = OfferVisibility.ALL_ELIGIBLE
    target_user_id: Optional[str] = None
    note: Optional[str] = None


class ShiftOfferCancel(BaseModel):
    cancelled_by_user_id: str


class ShiftOfferResponse(BaseModel):
    id: str
    shift_assignment_id: str
    offered_by_user_id: str
    offered_at: datetime
    status: OfferStatus
    visibility: OfferVisibility
    target_user_id: Optional[str] = None
    note: Optional[str] = None
    original_assignment_status: Optional[AssignmentStatus] = None
    taken_by_user_id: Optional[str] = None
    taken_at: Optional[datetime] = None
    cancelled_by_user_id: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ShiftAssignmentCreate(BaseModel):
    shift_period_id: str
    shift_date: date
    user_id: str
    shift_type_id: str
    department_id: str
    staff_type_id: str
    division_id: Optional[str] = None
    status: AssignmentStatus = AssignmentStatus.APPROVED
    status_comment: Optional[str] = None


class ShiftAssignmentCancel(BaseModel):
    user_id: str
    status_comment: Optional[str] = None


class ShiftAssignmentResponse(BaseModel):
    id: str
    shift_period_id: str
    shift_date: date
    division_id: Optional[str] = None
    department_id: str
    staff_type_id: str
    shift_type_id: str
    user_id: str
    source_type: AssignmentSource
    status: AssignmentStatus
    is_absence: bool
    absence_type: Optional[str] = None
    status_comment: Optional[str] = None

    class Config:
        from_attributes = True


class NotificationResponse(BaseModel):
    id: str
    recipient_user_id: str
    notification_type: str
    title: str
    body: str
    payload: Optional[Dict[str, Any]] = None
    shift_request_id: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MarkAllReadBody(BaseModel):
    recipient_user_id: str
