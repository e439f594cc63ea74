"""Repository for in-app notification rows."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..models.notification import Notification
from .base_repository import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Data access for notification inbox entries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, Notification)

    def create_notification(
        self,
        *,
        user_id: int,
        type: str,
        title: str,
        message: str,
        redirect_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        email: Optional[str] = None,
    ) -> Notification:
        return self.create(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            redirect_url=redirect_url,
            metadata_json=metadata,
            email=email,
        )

    def list_for_user(self, user_id: int, limit: int = 50) -> List[Notification]:
        query = (
            self._build_query()
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        return self._execute_query(query)

    def count_by_type(self, user_id: int, type: str) -> int:
        return self.count(user_id=user_id, type=type)
