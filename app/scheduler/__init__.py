"""Scheduler and background tasks package."""
from app.scheduler.notification_scheduler import (
    start_scheduler,
    stop_scheduler,
    dispatch_pending_notifications
)

__all__ = [
    'start_scheduler',
    'stop_scheduler',
    'dispatch_pending_notifications'
]
