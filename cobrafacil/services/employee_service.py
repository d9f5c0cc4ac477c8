import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from cobrafacil.core.config import settings
from cobrafacil.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError
from cobrafacil.core.security import MIN_PASSWORD_LENGTH, hash_password, is_valid_password
from cobrafacil.database.models import Employee, User
from cobrafacil.helpers.object_id import parse_object_id
from cobrafacil.schemas.employee_schema import EmployeeCreateRequest, EmployeeUpdateRequest

logger = logging.getLogger(__name__)


def employee_to_dict(employee: Employee) -> Dict[str, Any]:
    return {
        "id": str(employee.id),
        "owner_id": employee.owner_id,
        "employee_user_id": employee.employee_user_id,
        "name": employee.name,
        "email": employee.email,
        "phone": employee.phone,
        "is_active": employee.is_active,
        "permissions": [getattr(p, "value", p) for p in employee.permissions],
        "created_at": employee.created_at.isoformat() if employee.created_at else None,
    }


def employee_slots(owner: User) -> int:
    return owner.max_employees if owner.max_employees is not None else settings.DEFAULT_MAX_EMPLOYEES


class EmployeeService:
    """Sub-accounts that act on an owner's data with a restricted permission set."""

    async def get_employee_by_user_id(self, user_id: str) -> Optional[Employee]:
        return await Employee.find_one({"employee_user_id": user_id})

    async def _get_owned(self, owner_id: str, employee_id: str) -> Employee:
        employee = await Employee.get(parse_object_id(employee_id, "Employee"))
        if employee is None or employee.owner_id != owner_id:
            raise NotFoundError("Employee not found")
        return employee

    async def list_employees(self, owner_id: str) -> Dict[str, Any]:
        owner = await User.get(parse_object_id(owner_id, "User"))
        employees = await Employee.find({"owner_id": owner_id}).sort("name").to_list()
        return {
            "data": [employee_to_dict(e) for e in employees],
            "total": len(employees),
            "max_employees": employee_slots(owner) if owner else settings.DEFAULT_MAX_EMPLOYEES,
            "feature_enabled": bool(owner and owner.employees_feature_enabled),
        }

    # Creates the employee record and its login user
    async def create_employee(self, owner_id: str, data: EmployeeCreateRequest) -> Dict[str, Any]:
        owner = await User.get(parse_object_id(owner_id, "User"))
        if owner is None:
            raise NotFoundError("Owner not found")
        if not owner.employees_feature_enabled:
            raise PermissionDeniedError("The employees feature is not enabled for this account")

        used = await Employee.find({"owner_id": owner_id}).count()
        if used >= employee_slots(owner):
            raise ConflictError(f"Employee limit reached ({employee_slots(owner)})")

        if not is_valid_password(data.password):
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

        email = data.email.lower()
        if await User.find_one({"email": email}):
            raise ConflictError("Email already registered")

        user = User(
            email=email,
            full_name=data.name,
            hashed_password=hash_password(data.password),
            phone=data.phone,
            created_at=datetime.utcnow(),
        )
        await user.insert()

        employee = Employee(
            owner_id=owner_id,
            employee_user_id=str(user.id),
            name=data.name,
            email=email,
            phone=data.phone,
            permissions=list(dict.fromkeys(data.permissions)),
        )
        try:
            await employee.insert()
        except Exception as e:
            logger.error(f"Failed to create employee record, removing login user {user.id}: {e}")
            await user.delete()
            raise RuntimeError(f"Failed to create employee: {str(e)}")

        logger.info(f"Employee {employee.id} created for owner {owner_id} ({used + 1}/{employee_slots(owner)})")
        return employee_to_dict(employee)

    async def update_employee(self, owner_id: str, employee_id: str, data: EmployeeUpdateRequest) -> Dict[str, Any]:
        employee = await self._get_owned(owner_id, employee_id)

        if data.name is not None:
            employee.name = data.name
        if data.phone is not None:
            employee.phone = data.phone
        if data.is_active is not None:
            employee.is_active = data.is_active
        if data.permissions is not None:
            employee.permissions = list(dict.fromkeys(data.permissions))
        employee.updated_at = datetime.utcnow()
        await employee.save()

        user = await User.get(parse_object_id(employee.employee_user_id, "User"))
        if user is not None:
            user.full_name = employee.name
            user.phone = employee.phone
            user.is_active = employee.is_active
            user.updated_at = employee.updated_at
            await user.save()

        logger.info(f"Employee {employee_id} updated (active={employee.is_active})")
        return employee_to_dict(employee)

    async def delete_employee(self, owner_id: str, employee_id: str) -> None:
        employee = await self._get_owned(owner_id, employee_id)
        user = await User.get(parse_object_id(employee.employee_user_id, "User"))
        if user is not None:
            await user.delete()
        await employee.delete()
        logger.info(f"Employee {employee_id} and its login removed")


employee_service = EmployeeService()
