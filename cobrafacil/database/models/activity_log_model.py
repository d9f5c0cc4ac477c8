from beanie import Document
from pydantic import Field
from datetime import datetime
from typing import Any, Dict, Optional


class ActivityLog(Document):
    owner_id: str = Field(..., description="Owner account the action belongs to")
    actor_id: Optional[str] = Field(None, description="User id of whoever performed the action")
    actor_name: Optional[str] = None
    is_employee: bool = False
    action: str = Field(..., description="Action performed (e.g. 'create_loan', 'register_payment')")
    entity_type: Optional[str] = Field(None, description="Kind of record acted upon (loan, client, ...)")
    entity_id: Optional[str] = Field(None, description="Identifier of the record acted upon")
    details: Optional[Dict[str, Any]] = None
    status: str = Field(default="successful", description="Result status: 'successful' or 'failed'")
    timestamp: datetime = Field(default_factory=datetime.now, description="When the action occurred")

    class Settings:
        name = "activity_logs"

    class Config:
        json_encoders = {datetime: lambda v: v.isoformat()}
