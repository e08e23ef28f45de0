"""Shift assignment routes."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List
from datetime import date

from app.database import get_db
from app.services.assignment_service import AssignmentService
from app.exceptions import ShiftChangeError
from app.api.responses import error_response
from app.api.schemas import ShiftAssignmentCreate, ShiftAssignmentCancel, ShiftAssignmentResponse


# Create router
router = APIRouter(prefix="/shift-assignments", tags=["shift-assignments"])


@router.get("", response_model=List[ShiftAssignmentResponse])
def list_assignments(
    shift_period_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db)
):
    return AssignmentService(db).list_assignments(shift_period_id, start_date, end_date, user_id, limit)


@router.post("", response_model=ShiftAssignmentResponse, status_code=201)
def create_assignment(body: ShiftAssignmentCreate, db: Session = Depends(get_db)):
    """Create a manual assignment."""
    try:
        return AssignmentService(db).create_assignment(**body.model_dump())
    except ShiftChangeError as e:
        return error_response(e)


@router.get("/{assignment_id}", response_model=ShiftAssignmentResponse)
def get_assignment(assignment_id: str, db: Session = Depends(get_db)):
    try:
        return AssignmentService(db).get_assignment(assignment_id)
    except ShiftChangeError as e:
        return error_response(e)


@router.post("/{assignment_id}/cancel", response_model=ShiftAssignmentResponse)
def cancel_assignment(assignment_id: str, body: ShiftAssignmentCancel, db: Session = Depends(get_db)):
    try:
        return AssignmentService(db).cancel_assignment(assignment_id, body.user_id, body.status_comment)
    except ShiftChangeError as e:
        return error_response(e)


@router.delete("/{assignment_id}")
def delete_assignment(assignment_id: str, db: Session = Depends(get_db)):
    """Delete an assignment; approved periods are locked."""
    try:
        AssignmentService(db).delete_assignment(assignment_id)
    except ShiftChangeError as e:
        return error_response(e)
    return {"id": assignment_id, "deleted": True}
