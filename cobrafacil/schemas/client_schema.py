from pydantic import BaseModel, EmailStr, Field
from enum import Enum
from typing import Optional


class ClientTypeEnum(str, Enum):
    loan = "loan"
    monthly = "monthly"
    both = "both"


class ClientBase(BaseModel):
    full_name: str = Field(..., min_length=1, description="Full name of the client")
    phone: Optional[str] = Field(None, description="Phone number, used for WhatsApp contact")
    email: Optional[EmailStr] = None
    cpf: Optional[str] = Field(None, description="Brazilian individual taxpayer id")
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


class ClientCreateRequest(ClientBase):
    pass


class ClientUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
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
    client_type: Optional[ClientTypeEnum] = None
