"""In-app notification routes."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from app.database import get_db
from app.services.notification_service import NotificationOutbox
from app.exceptions import ResourceNotFoundError
from app.api.responses import error_response
from app.api.schemas import NotificationResponse, MarkAllReadBody


# Create router
router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    recipient_user_id: str = Query(...),
    unread_only: bool = Query(False),
    db: Session = Depends(get_db)
):
    return NotificationOutbox(db).list_for_recipient(recipient_user_id, unread_only=unread_only)


@router.post("/mark-all-read")
def mark_all_read(body: MarkAllReadBody, db: Session = Depends(get_db)):
    updated = NotificationOutbox(db).mark_all_read(body.recipient_user_id)
    return {"recipient_user_id": body.recipient_user_id, "updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(notification_id: str, db: Session = Depends(get_db)):
    notification = NotificationOutbox(db).mark_read(notification_id)
    if notification is None:
        return error_response(ResourceNotFoundError("notification", notification_id))
    return notification
