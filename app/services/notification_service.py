"""Notification outbox and LINE push delivery.

The engine only ever writes Notification rows inside its own transaction
(NotificationOutbox). Push delivery (NotificationDispatcher) runs later,
out of band, so a LINE failure can never roll back a request transition.
"""
from linebot.v3.messaging import (
    Configuration,
    ApiClient,
    MessagingApi,
    PushMessageRequest,
    TextMessage
)
from linebot.v3.messaging.exceptions import ApiException
from sqlalchemy.orm import Session
from typing import Optional, Dict, Any, List
from datetime import datetime
import logging
import time

from app.config import settings
from app.models.notification import Notification
from app.models.request import ShiftRequest, RequestStatus
from app.models.user import User


# Configure logging
logger = logging.getLogger(__name__)


class NotificationService:
    """Service for sending LINE push messages with retry and backoff.

    A push that still fails after the retries is reported as False; the
    caller owns redelivery (NotificationDispatcher keeps the row pending).
    """

    def __init__(self):
        """Initialize notification service with LINE Messaging API."""
        self.configuration = Configuration(
            access_token=settings.line_channel_access_token
        )

        self.max_retries = settings.line_api_max_retries

        # Retry configuration
        self.retry_delays = [1, 2, 5]  # Exponential backoff in seconds

    def _send_message_with_retry(
        self,
        user_id: str,
        message: str,
        retry_count: int = 0
    ) -> bool:
        """
        Send a LINE message with retry logic.

        Args:
            user_id: LINE user ID
            message: Message text to send
            retry_count: Current retry attempt number

        Returns:
            True if message sent successfully, False otherwise
        """
        try:
            with ApiClient(self.configuration) as api_client:
                line_bot_api = MessagingApi(api_client)

                push_message_request = PushMessageRequest(
                    to=user_id,
                    messages=[TextMessage(text=message)]
                )

                line_bot_api.push_message(push_message_request)

                logger.info(f"Successfully sent message to user {user_id}")
                return True

        except ApiException as e:
            logger.error(
                f"LINE API error sending message to {user_id}: "
                f"Status {e.status}, Body: {e.body}"
            )

            if retry_count < self.max_retries:
                delay = self.retry_delays[min(retry_count, len(self.retry_delays) - 1)]
                logger.info(f"Retrying in {delay} seconds (attempt {retry_count + 1})")
                time.sleep(delay)

                return self._send_message_with_retry(user_id, message, retry_count + 1)

            logger.warning(f"Max retries reached for user {user_id}")
            return False

        except Exception as e:
            logger.error(f"Unexpected error sending message to {user_id}: {str(e)}")
            return False

    def send_message(self, user_id: str, message: str) -> bool:
        """
        Send a LINE message to a user.

        Args:
            user_id: LINE user ID
            message: Message text to send

        Returns:
            True if message sent successfully, False otherwise
        """
        if not user_id:
            logger.error("Cannot send message: user_id is required")
            return False

        if not message:
            logger.error("Cannot send message: message text is required")
            return False

        return self._send_message_with_retry(user_id, message)


_STATUS_TITLES = {
    RequestStatus.APPROVED: "Request approved",
    RequestStatus.REJECTED: "Request rejected",
}


class NotificationOutbox:
    """Writes notification rows as part of the caller's transaction."""

    def __init__(self, db: Session):
        self.db = db

    def add(
        self,
        recipient_user_id: str,
        notification_type: str,
        title: str,
        body: str = "",
        payload: Optional[Dict[str, Any]] = None,
        shift_request_id: Optional[str] = None
    ) -> Notification:
        notification = Notification(
            recipient_user_id=recipient_user_id,
            notification_type=notification_type,
            title=title,
            body=body,
            payload=payload or {},
            shift_request_id=shift_request_id,
        )
        self.db.add(notification)
        return notification

    def _payload(self, shift_request: ShiftRequest) -> Dict[str, Any]:
        return {
            "route": "/shift-requests",
            "requestId": shift_request.id,
            "requestType": shift_request.request_type.value,
            "requestStatus": shift_request.request_status.value,
        }

    def request_awaiting_action(self, shift_request: ShiftRequest) -> Optional[Notification]:
        """Tell the current inbox user a request needs their decision."""
        if not shift_request.inbox_user_id:
            return None
        date_text = shift_request.requested_shift_date.isoformat() if shift_request.requested_shift_date else ""
        return self.add(
            recipient_user_id=shift_request.inbox_user_id,
            notification_type="SHIFT_REQUEST_PENDING",
            title=f"{shift_request.request_type.value} request awaiting your approval",
            body=f"Shift date: {date_text}".strip(),
            payload=self._payload(shift_request),
            shift_request_id=shift_request.id,
        )

    def request_decided(self, shift_request: ShiftRequest) -> Optional[Notification]:
        """Tell the requester a request reached a terminal status."""
        title = _STATUS_TITLES.get(shift_request.request_status)
        if title is None:
            return None
        body = shift_request.decision_comment or ""
        return self.add(
            recipient_user_id=shift_request.requested_by_user_id,
            notification_type=f"SHIFT_REQUEST_{shift_request.request_status.value}",
            title=f"{title}: {shift_request.request_type.value}",
            body=body,
            payload=self._payload(shift_request),
            shift_request_id=shift_request.id,
        )

    def list_for_recipient(self, recipient_user_id: str, unread_only: bool = False, limit: int = 500) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.recipient_user_id == recipient_user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc()).limit(limit).all()

    def mark_read(self, notification_id: str) -> Optional[Notification]:
        notification = self.db.query(Notification).filter(Notification.id == notification_id).first()
        if notification is None:
            return None
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            self.db.commit()
        return notification

    def mark_all_read(self, recipient_user_id: str) -> int:
        count = (
            self.db.query(Notification)
            .filter(Notification.recipient_user_id == recipient_user_id, Notification.is_read.is_(False))
            .update({"is_read": True, "read_at": datetime.utcnow()}, synchronize_session=False)
        )
        self.db.commit()
        return count


class NotificationDispatcher:
    """Pushes unsent notification rows through LINE."""

    def __init__(self, db: Session, sender: Optional[NotificationService] = None):
        self.db = db
        self.sender = sender or notification_service
        self.max_attempts = settings.notification_max_attempts

    def pending(self, limit: int) -> List[Notification]:
        return (
            self.db.query(Notification)
            .filter(
                Notification.push_sent_at.is_(None),
                Notification.push_attempts < self.max_attempts,
            )
            .order_by(Notification.created_at.asc())
            .limit(limit)
            .all()
        )

    def dispatch_one(self, notification: Notification) -> bool:
        """
        Push one notification and record the outcome on its row.

        Returns:
            True if the push was delivered
        """
        recipient = self.db.query(User).filter(User.id == notification.recipient_user_id).first()
        if recipient is None or not recipient.line_id:
            notification.push_attempts = self.max_attempts
            notification.push_last_error = "recipient has no LINE account"
            self.db.commit()
            logger.info(f"Notification {notification.id} skipped: recipient has no LINE account")
            return False

        message = notification.title
        if notification.body:
            message = f"{notification.title}\n{notification.body}"

        sent = self.sender.send_message(recipient.line_id, message)
        notification.push_attempts = (notification.push_attempts or 0) + 1
        if sent:
            notification.push_sent_at = datetime.utcnow()
            notification.push_last_error = None
        else:
            notification.push_last_error = "LINE push failed"
        self.db.commit()
        return sent

    def dispatch_pending(self, limit: Optional[int] = None) -> int:
        """
        Push a batch of unsent notifications.

        Returns:
            Number of notifications delivered
        """
        batch = self.pending(limit or settings.notification_dispatch_batch_size)
        if not batch:
            return 0

        sent_count = 0
        for notification in batch:
            if self.dispatch_one(notification):
                sent_count += 1

        logger.info(f"Dispatched {sent_count}/{len(batch)} notifications")
        return sent_count


# Global notification service instance
notification_service = NotificationService()
