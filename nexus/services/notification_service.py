"""
Notification service for introduction events.

Writes in-app notifications after an introduction transition has
committed. Notifications are informational: a failure here is logged and
swallowed so it can never undo or fail the transition it describes.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nexus.models.introduction_request import IntroductionRequest
from nexus.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationService:
    """Creates notifications for introduction request events."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def notify(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        related_id: Optional[str] = None,
    ) -> Optional[Notification]:
        """
        Create a notification in its own transaction.

        Returns:
            The notification, or None if it could not be written
        """
        notification = Notification(
            user_id=user_id,
            type=notification_type.value,
            title=title,
            message=message,
            related_id=related_id,
        )
        try:
            self.db.add(notification)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                "Failed to write notification",
                extra={
                    "user_id": user_id,
                    "notification_type": notification_type.value,
                    "related_id": related_id,
                    "error": str(e),
                },
            )
            return None
        return notification

    def introduction_requested(
        self,
        request: IntroductionRequest,
        professional_user_id: str,
        job_title: str,
    ) -> Optional[Notification]:
        return self.notify(
            user_id=professional_user_id,
            notification_type=NotificationType.INTRO_REQUEST,
            title="New introduction request",
            message=f"A company would like to introduce you to their {job_title} role.",
            related_id=request.id,
        )

    def introduction_accepted(self, request: IntroductionRequest) -> Optional[Notification]:
        return self.notify(
            user_id=request.sent_by_user_id,
            notification_type=NotificationType.INTRO_ACCEPTED,
            title="Introduction accepted",
            message="Your introduction request was accepted.",
            related_id=request.id,
        )

    def introduction_declined(self, request: IntroductionRequest) -> Optional[Notification]:
        return self.notify(
            user_id=request.sent_by_user_id,
            notification_type=NotificationType.INTRO_DECLINED,
            title="Introduction declined",
            message="Your introduction request was declined.",
            related_id=request.id,
        )
