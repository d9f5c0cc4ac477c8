from pydantic import BaseModel, EmailStr, Field
from enum import Enum
from typing import List, Optional


class EmployeePermission(str, Enum):
    view_loans = "view_loans"
    create_loans = "create_loans"
    register_payments = "register_payments"
    adjust_dates = "adjust_dates"
    delete_loans = "delete_loans"
    view_clients = "view_clients"
    create_clients = "create_clients"
    edit_clients = "edit_clients"
    delete_clients = "delete_clients"
    view_reports = "view_reports"
    manage_bills = "manage_bills"
    manage_vehicles = "manage_vehicles"
    manage_products = "manage_products"
    view_settings = "view_settings"


class EmployeeCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Display name of the employee")
    email: EmailStr = Field(..., description="Login email of the employee")
    password: str = Field(..., description="Initial password, at least 6 characters")
    phone: Optional[str] = None
    permissions: List[EmployeePermission] = []


class EmployeeUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    is_active: Optional[bool] = None
    permissions: Optional[List[EmployeePermission]] = None
