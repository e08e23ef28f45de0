"""Manager directory: resolves each user's primary approver."""
from sqlalchemy.orm import Session
from typing import Optional

from app.models.user import UserManager
from app.exceptions import NoPrimaryManagerError


class ManagerDirectory:
    """Lookups against the user/manager mapping."""

    def __init__(self, db: Session):
        self.db = db

    def primary_manager_of(self, user_id: str) -> Optional[str]:
        """
        Get the primary manager of a user.

        Args:
            user_id: ID of the user

        Returns:
            Manager user ID, or None if the user has no primary manager
        """
        row = (
            self.db.query(UserManager)
            .filter(UserManager.user_id == user_id, UserManager.is_primary.is_(True))
            .order_by(UserManager.created_at.asc(), UserManager.id.asc())
            .first()
        )
        return row.manager_user_id if row else None

    def require_primary_manager(self, user_id: str) -> str:
        """Like primary_manager_of, but a missing manager stops routing."""
        manager_id = self.primary_manager_of(user_id)
        if manager_id is None:
            raise NoPrimaryManagerError(user_id)
        return manager_id

    def is_primary_manager_of(self, manager_user_id: str, user_id: str) -> bool:
        return manager_user_id is not None and self.primary_manager_of(user_id) == manager_user_id

