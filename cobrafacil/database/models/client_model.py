from beanie import Document
from pydantic import Field
from datetime import datetime
from typing import Optional

from cobrafacil.schemas.client_schema import ClientTypeEnum


class Client(Document):
    user_id: str = Field(..., description="Owner account id")
    full_name: str = Field(..., description="Full name of the client")
    phone: Optional[str] = None
    email: Optional[str] = None
    cpf: Optional[str] = None
    rg: Optional[str] = None
    cep: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    avatar_url: Optional[str] = None
    client_type: ClientTypeEnum = ClientTypeEnum.loan

    score: int = Field(default=100, ge=0, le=150, description="Derived payment reputation")
    total_loans: int = 0
    total_paid: float = 0
    on_time_payments: int = 0
    late_payments: int = 0
    score_updated_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Settings:
        name = "clients"

    class Config:
        json_encoders = {datetime: lambda v: v.isoformat()}
