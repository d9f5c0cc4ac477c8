from pydantic import BaseModel, Field
from enum import Enum
from typing import Optional


class NotificationTypeEnum(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"
    success = "success"


class NotificationCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    type: NotificationTypeEnum = NotificationTypeEnum.info
    loan_id: Optional[str] = None
    client_id: Optional[str] = None
