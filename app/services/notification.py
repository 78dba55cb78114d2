from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional
import logging

from app.crud.notification import notification as crud_notification
from app.models.notification import Notification
from app.schemas.notification import NotificationCreate

logger = logging.getLogger(__name__)

class NotificationService:
    def create_notification(self, db: Session, *, user_id: int, message: str, link: Optional[str] = None, notification_type: Optional[str] = None) -> Notification:
        notification_in = NotificationCreate(user_id=user_id, message=message, link=link, notification_type=notification_type)
        return crud_notification.create(db, obj_in=notification_in)

    def notify(self, db: Session, *, user_id: int, message: str, link: Optional[str] = None, notification_type: Optional[str] = None) -> Optional[Notification]:
        """Fire-and-forget: a failed notification never fails the action that triggered it."""
        try:
            return self.create_notification(db, user_id=user_id, message=message, link=link, notification_type=notification_type)
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Failed to record {notification_type} notification for user {user_id}")
            return None


notification_service = NotificationService()
