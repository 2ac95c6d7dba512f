"""
In-app notification model.

Notifications are written after an introduction transition commits. They
are informational; nothing in the introduction flow reads them back.
"""

import enum

from sqlalchemy import Column, String, Text, Boolean, Index

from nexus.db_base import Base
from nexus.models.base import TimestampMixin, generate_uuid


class NotificationType(str, enum.Enum):
    INTRO_REQUEST = "INTRO_REQUEST"
    INTRO_ACCEPTED = "INTRO_ACCEPTED"
    INTRO_DECLINED = "INTRO_DECLINED"


class Notification(Base, TimestampMixin):
    """A notification addressed to one user."""

    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    user_id = Column(
        String(255),
        nullable=False,
        comment="Clerk user ID of the recipient"
    )

    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    related_id = Column(
        String(36),
        nullable=True,
        comment="ID of the introduction request this notification is about"
    )

    is_read = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type})>"
