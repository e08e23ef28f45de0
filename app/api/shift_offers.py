"""Shift offer routes."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List
from datetime import date

from app.database import get_db
from app.services.offer_service import OfferService
from app.exceptions import ShiftChangeError
from app.api.responses import error_response
from app.api.schemas import ShiftOfferCreate, ShiftOfferCancel, ShiftOfferResponse


# Create router
router = APIRouter(prefix="/shift-offers", tags=["shift-offers"])


@router.post("", response_model=ShiftOfferResponse, status_code=201)
def create_offer(body: ShiftOfferCreate, db: Session = Depends(get_db)):
    """Offer an owned, APPROVED assignment."""
    try:
        return OfferService(db).create_offer(
            body.shift_assignment_id,
            body.offered_by_user_id,
            visibility=body.visibility,
            target_user_id=body.target_user_id,
            note=body.note
        )
    except ShiftChangeError as e:
        return error_response(e)


@router.post("/{offer_id}/cancel", response_model=ShiftOfferResponse)
def cancel_offer(offer_id: str, body: ShiftOfferCancel, db: Session = Depends(get_db)):
    try:
        return OfferService(db).cancel_offer(offer_id, body.cancelled_by_user_id)
    except ShiftChangeError as e:
        return error_response(e)


@router.get("", response_model=List[ShiftOfferResponse])
def list_offers(
    requestor_user_id: str = Query(...),
    shift_date: Optional[date] = Query(None),
    division_id: Optional[str] = Query(None),
    department_id: Optional[str] = Query(None),
    shift_type_id: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """
    List offers the requestor could take.

    Args:
        requestor_user_id: User browsing offers
        shift_date: Optional date filter
        division_id: Optional division filter
        department_id: Optional department filter
        shift_type_id: Optional shift type filter
        db: Database session
    """
    try:
        return OfferService(db).list_eligible_offers(
            requestor_user_id,
            shift_date=shift_date,
            division_id=division_id,
            department_id=department_id,
            shift_type_id=shift_type_id
        )
    except ShiftChangeError as e:
        return error_response(e)
