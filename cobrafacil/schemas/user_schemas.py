from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List


class UserCreate(BaseModel):
    email: EmailStr = Field(..., description="Email address of the account owner")
    full_name: str = Field(..., min_length=1, description="Full name of the account owner")
    password: str = Field(..., min_length=6, description="Password for the account")
    phone: Optional[str] = Field(None, description="WhatsApp phone number used for alerts")
    company_name: Optional[str] = None


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    pix_key: Optional[str] = None
    whatsapp_instance_token: Optional[str] = None


class UserResponse(BaseModel):
    id: str = Field(..., description="Unique identifier for the user")
    email: EmailStr = Field(..., description="Email address of the user")
    full_name: str = Field(..., description="Full name of the user")
    phone: Optional[str] = None
    company_name: Optional[str] = None
    is_employee: bool = False
    owner_id: Optional[str] = None
    permissions: List[str] = []
    message: Optional[str] = None


class Token(BaseModel):
    access_token: str = Field(..., description="Access token for the user")
    token_type: str = Field(default="bearer", description="Type of the token")
    user: Optional[UserResponse] = Field(None, description="Profile of the logged in user")


class TokenData(BaseModel):
    email: Optional[EmailStr] = None
