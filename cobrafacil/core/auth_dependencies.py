from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from typing import Dict, Optional, Set
import logging

from cobrafacil.core.security import decode_token
from cobrafacil.schemas.employee_schema import EmployeePermission
from cobrafacil.services.auth_service import auth_service
from cobrafacil.services.employee_service import employee_service

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

logger = logging.getLogger(__name__)


class AccessContext(BaseModel):
    """Who is calling and on whose behalf.

    Employees act on their owner's data: `effective_user_id` is the owner id
    for them and the caller's own id for owners.
    """
    user_id: str
    effective_user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    is_employee: bool = False
    employee_id: Optional[str] = None
    employee_name: Optional[str] = None
    permissions: Set[EmployeePermission] = set()

    @property
    def is_owner(self) -> bool:
        return not self.is_employee

    @property
    def actor_name(self) -> Optional[str]:
        return self.employee_name if self.is_employee else self.full_name

    def has_permission(self, permission: EmployeePermission) -> bool:
        if not self.is_employee:
            return True
        return EmployeePermission(permission) in self.permissions


# Extracts and validates JWT token to retrieve current authenticated user
async def get_current_user(token: str = Depends(oauth2_scheme)) -> Dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(token)
    if payload is None:
        logger.debug("Token payload is None after decoding.")
        raise credentials_exception

    email: str = payload.get("sub")
    if email is None:
        logger.debug("No 'sub' field in token payload.")
        raise credentials_exception

    user = await auth_service.get_user_by_email(email)
    if user is None:
        raise credentials_exception

    if not user.get("is_active", True):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive account")

    return user


# Resolves the caller into an owner or employee access context
async def get_access_context(current_user: Dict = Depends(get_current_user)) -> AccessContext:
    employee = await employee_service.get_employee_by_user_id(current_user["id"])
    if employee is None:
        return AccessContext(
            user_id=current_user["id"],
            effective_user_id=current_user["id"],
            email=current_user.get("email"),
            full_name=current_user.get("full_name"),
        )

    if not employee.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Employee access is disabled")

    return AccessContext(
        user_id=current_user["id"],
        effective_user_id=employee.owner_id,
        email=current_user.get("email"),
        full_name=current_user.get("full_name"),
        is_employee=True,
        employee_id=str(employee.id),
        employee_name=employee.name,
        permissions=set(employee.permissions or []),
    )


def require_permission(permission: EmployeePermission):
    """Dependency factory gating a route on one employee permission."""

    async def _check(ctx: AccessContext = Depends(get_access_context)) -> AccessContext:
        if not ctx.has_permission(permission):
            logger.info("Denied %s to employee %s", permission.value, ctx.user_id)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission.value}",
            )
        return ctx

    return _check


# Validates that the caller is an account owner, not an employee
async def require_owner(ctx: AccessContext = Depends(get_access_context)) -> AccessContext:
    if ctx.is_employee:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the account owner can do this")
    return ctx
