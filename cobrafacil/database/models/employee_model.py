from beanie import Document
from pydantic import Field
from datetime import datetime
from typing import List, Optional

from cobrafacil.schemas.employee_schema import EmployeePermission


class Employee(Document):
    owner_id: str = Field(..., description="Owner account the employee works for")
    employee_user_id: str = Field(..., description="Login user of the employee")
    name: str
    email: str
    phone: Optional[str] = None
    is_active: bool = True
    permissions: List[EmployeePermission] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Settings:
        name = "employees"
