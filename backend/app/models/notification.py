"""
In-app notification model.

Rows are written by NotificationService; delivery channels (socket,
email, push) read from here and are outside this service.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
import ulid

from ..database import Base


class Notification(Base):
    """Persisted notification for a user."""

    __tablename__ = "notifications"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(Integer, nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    redirect_url = Column(Text, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    email = Column(String(255), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("ix_notifications_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<Notification {self.id}: user={self.user_id} type={self.type}>"
