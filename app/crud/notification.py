from app.crud.base import CRUDBase
from app.models.notification import Notification
from app.schemas.notification import NotificationCreate

class CRUDNotification(CRUDBase[Notification, NotificationCreate, None]):
    pass

notification = CRUDNotification(Notification)
