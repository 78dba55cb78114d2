from pydantic import BaseModel
from typing import Optional

class NotificationCreate(BaseModel):
    user_id: int
    message: str
    link: Optional[str] = None
    notification_type: Optional[str] = None
