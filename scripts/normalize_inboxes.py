"""Script to move legacy approver routing onto inbox_user_id.

Pending requests written before inbox routing only carry manager_user_id.
Run once after deploying; afterwards every pending request has an inbox user.
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.database import SessionLocal
from app.exceptions import StoreError
from app.services.request_service import RequestService


def normalize_inboxes() -> int:
    """
    Normalize legacy request inboxes.

    Returns:
        Number of requests migrated
    """
    db = SessionLocal()
    try:
        migrated = RequestService(db).normalize_legacy_inboxes()
        print(f"Normalized {migrated} pending requests.")
        return migrated
    finally:
        db.close()


if __name__ == "__main__":
    try:
        normalize_inboxes()
    except StoreError as e:
        print(f"Error normalizing inboxes: {e.details}")
        sys.exit(1)
