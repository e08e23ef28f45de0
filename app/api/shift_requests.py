"""Shift change request routes."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List

from app.database import get_db
from app.services.request_service import RequestService
from app.models.request import RequestType, RequestStatus
from app.exceptions import ShiftChangeError
from app.api.responses import error_response
from app.api.schemas import (
    ShiftRequestCreate,
    ShiftRequestResponse,
    DecisionBody,
    AttachAssignmentBody,
)


# Create router
router = APIRouter(prefix="/shift-requests", tags=["shift-requests"])


@router.post("", response_model=ShiftRequestResponse, status_code=201)
def create_request(body: ShiftRequestCreate, db: Session = Depends(get_db)):
    """
    Create a request of any type.

    Returns:
        The created request in its initial pending status
    """
    payload = body.model_dump(exclude_none=True, exclude={"request_type", "requested_by_user_id"})
    try:
        return RequestService(db).create_request(body.request_type, body.requested_by_user_id, payload)
    except ShiftChangeError as e:
        return error_response(e)


@router.get("", response_model=List[ShiftRequestResponse])
def list_requests(
    requested_by_user_id: Optional[str] = Query(None),
    request_status: Optional[RequestStatus] = Query(None),
    db: Session = Depends(get_db)
):
    return RequestService(db).list_requests(requested_by_user_id, request_status)


@router.get("/inbox", response_model=List[ShiftRequestResponse])
def list_inbox(
    user_id: str = Query(...),
    request_type: Optional[RequestType] = Query(None),
    request_status: Optional[RequestStatus] = Query(None),
    division_id: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Requests waiting for ``user_id`` to approve or reject them."""
    try:
        return RequestService(db).list_inbox(user_id, request_type, request_status, division_id)
    except ShiftChangeError as e:
        return error_response(e)


@router.get("/{request_id}", response_model=ShiftRequestResponse)
def get_request(request_id: str, db: Session = Depends(get_db)):
    try:
        return RequestService(db).get_request(request_id)
    except ShiftChangeError as e:
        return error_response(e)


@router.post("/{request_id}/approve", response_model=ShiftRequestResponse)
def approve_request(request_id: str, body: DecisionBody, db: Session = Depends(get_db)):
    """
    Approve the current step of a request.

    Args:
        request_id: ID of the request to approve
        body: Acting approver and optional comment
        db: Database session

    Returns:
        The request, advanced to its next approver or APPROVED
    """
    try:
        return RequestService(db).approve(request_id, body.decision_by_user_id, body.decision_comment)
    except ShiftChangeError as e:
        return error_response(e)


@router.post("/{request_id}/reject", response_model=ShiftRequestResponse)
def reject_request(request_id: str, body: DecisionBody, db: Session = Depends(get_db)):
    try:
        return RequestService(db).reject(request_id, body.decision_by_user_id, body.decision_comment)
    except ShiftChangeError as e:
        return error_response(e)


@router.delete("/{request_id}")
def retract_request(request_id: str, user_id: str = Query(...), db: Session = Depends(get_db)):
    """Retract a pending request. Retracting a deleted request reports deleted=False."""
    try:
        deleted = RequestService(db).retract(request_id, user_id)
    except ShiftChangeError as e:
        return error_response(e)
    return {"id": request_id, "deleted": deleted}


@router.post("/{request_id}/attach-assignment", response_model=ShiftRequestResponse)
def attach_assignment(request_id: str, body: AttachAssignmentBody, db: Session = Depends(get_db)):
    try:
        return RequestService(db).attach_assignment(request_id, body.shift_assignment_id, body.user_id)
    except ShiftChangeError as e:
        return error_response(e)
