from pydantic import BaseModel, Field
from enum import Enum
from datetime import date
from typing import Optional


class BillStatusEnum(str, Enum):
    pending = "pending"
    paid = "paid"
    overdue = "overdue"


class BillCreateRequest(BaseModel):
    description: str = Field(..., min_length=1)
    payee_name: Optional[str] = None
    amount: float = Field(..., gt=0)
    due_date: date
    notes: Optional[str] = None
    category: Optional[str] = None
    is_recurring: bool = False
    recurrence_months: Optional[int] = Field(None, ge=1, le=12)
    pix_key: Optional[str] = None


class BillUpdateRequest(BaseModel):
    description: Optional[str] = Field(None, min_length=1)
    payee_name: Optional[str] = None
    amount: Optional[float] = Field(None, gt=0)
    due_date: Optional[date] = None
    status: Optional[BillStatusEnum] = None
    notes: Optional[str] = None
    category: Optional[str] = None
    is_recurring: Optional[bool] = None
    recurrence_months: Optional[int] = Field(None, ge=1, le=12)
    pix_key: Optional[str] = None


class BillPayRequest(BaseModel):
    paid_date: date = Field(default_factory=date.today)
