from beanie import Document
from pydantic import Field
from datetime import date, datetime
from typing import Optional

from cobrafacil.schemas.bill_schema import BillStatusEnum


class Bill(Document):
    user_id: str = Field(..., description="Owner account id")
    description: str
    payee_name: Optional[str] = None
    amount: float = Field(..., gt=0)
    due_date: date
    status: BillStatusEnum = BillStatusEnum.pending
    paid_date: Optional[date] = None
    notes: Optional[str] = None
    category: Optional[str] = None
    is_recurring: bool = False
    recurrence_months: Optional[int] = None
    recurrence_day: Optional[int] = Field(None, ge=1, le=31, description="Day of month a recurring bill falls on")
    pix_key: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Settings:
        name = "bills"
