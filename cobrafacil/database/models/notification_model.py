from beanie import Document
from pydantic import Field
from datetime import datetime
from typing import Optional

from cobrafacil.schemas.notification_schema import NotificationTypeEnum


class Notification(Document):
    user_id: str
    title: str
    message: str
    type: NotificationTypeEnum = NotificationTypeEnum.info
    is_read: bool = False
    loan_id: Optional[str] = None
    client_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "notifications"
