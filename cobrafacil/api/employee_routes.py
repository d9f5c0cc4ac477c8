from fastapi import APIRouter, HTTPException, Depends
from fastapi import status
from typing import Dict, Any
import logging

from cobrafacil.core.auth_dependencies import AccessContext, get_access_context, require_owner
from cobrafacil.core.exceptions import SERVICE_ERRORS, http_error
from cobrafacil.schemas.employee_schema import EmployeeCreateRequest, EmployeePermission, EmployeeUpdateRequest
from cobrafacil.services.activity_service import activity_service
from cobrafacil.services.employee_service import employee_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees", tags=["Employees"])


# Permissions of the caller, used by the frontend to hide actions
@router.get("/me/permissions", response_model=Dict[str, Any])
async def my_permissions(ctx: AccessContext = Depends(get_access_context)):
    granted = [p.value for p in EmployeePermission if ctx.has_permission(p)]
    return {
        "is_owner": ctx.is_owner,
        "is_employee": ctx.is_employee,
        "owner_id": ctx.effective_user_id,
        "employee_name": ctx.employee_name,
        "permissions": granted,
    }


@router.get("/", response_model=Dict[str, Any])
async def list_employees(ctx: AccessContext = Depends(require_owner)):
    try:
        return await employee_service.list_employees(ctx.user_id)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error listing employees: {e}")
        raise HTTPException(status_code=500, detail="Failed to list employees")


@router.post("/", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_employee(data: EmployeeCreateRequest, ctx: AccessContext = Depends(require_owner)):
    try:
        employee = await employee_service.create_employee(ctx.user_id, data)
        await activity_service.record(ctx, "employee_created", "employee", employee["id"], {"name": employee["name"]})
        return employee
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error creating employee: {e}")
        raise HTTPException(status_code=500, detail="Failed to create employee")


@router.put("/{employee_id}", response_model=Dict[str, Any])
async def update_employee(employee_id: str, data: EmployeeUpdateRequest, ctx: AccessContext = Depends(require_owner)):
    try:
        employee = await employee_service.update_employee(ctx.user_id, employee_id, data)
        await activity_service.record(ctx, "employee_updated", "employee", employee_id,
                                      {"is_active": employee["is_active"], "permissions": employee["permissions"]})
        return employee
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error updating employee {employee_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update employee")


@router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_employee(employee_id: str, ctx: AccessContext = Depends(require_owner)):
    try:
        await employee_service.delete_employee(ctx.user_id, employee_id)
        await activity_service.record(ctx, "employee_deleted", "employee", employee_id)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error deleting employee {employee_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete employee")
