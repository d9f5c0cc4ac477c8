from beanie import Document
from pydantic import EmailStr, Field
from datetime import datetime
from typing import Optional
from bson import ObjectId


class User(Document):
    email: EmailStr = Field(..., description="Login email, unique across owners and employees")
    full_name: str = Field(..., description="Full name of the user")
    hashed_password: str = Field(..., description="Hashed password for the user account")
    phone: Optional[str] = Field(None, description="WhatsApp number that receives owner alerts")
    company_name: Optional[str] = None
    is_active: bool = Field(default=True, description="Indicates if the user account is active")
    employees_feature_enabled: bool = Field(default=False, description="Whether the owner may delegate to employees")
    max_employees: Optional[int] = Field(None, description="Employee slots; falls back to DEFAULT_MAX_EMPLOYEES")
    whatsapp_instance_token: Optional[str] = Field(None, description="Token of the owner's WhatsApp gateway instance")
    pix_key: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Timestamp when the user was created")
    updated_at: Optional[datetime] = Field(None, description="Timestamp when the user was last updated")

    class Settings:
        name = "users"

    class Config:
        populate_by_name = True
        arbitrary_types_allowed = True
        json_encoders = {
            ObjectId: str,
            datetime: lambda v: v.isoformat()
        }
