from fastapi import APIRouter, HTTPException, Depends, Query
from fastapi import status
from typing import Dict, Any, Optional
from datetime import date
import logging

from cobrafacil.core.auth_dependencies import AccessContext, require_permission
from cobrafacil.core.exceptions import SERVICE_ERRORS, http_error
from cobrafacil.schemas.bill_schema import BillCreateRequest, BillPayRequest, BillUpdateRequest
from cobrafacil.schemas.employee_schema import EmployeePermission
from cobrafacil.services.bill_service import bill_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bills", tags=["Bills"])

manage_bills = require_permission(EmployeePermission.manage_bills)


@router.get("/", response_model=Dict[str, Any])
async def list_bills(
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(all|pending|paid|overdue)$"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    ctx: AccessContext = Depends(manage_bills),
):
    try:
        return await bill_service.get_bills(ctx.effective_user_id, status_filter, start_date, end_date)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error listing bills: {e}")
        raise HTTPException(status_code=500, detail="Failed to list bills")


@router.post("/", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_bill(data: BillCreateRequest, ctx: AccessContext = Depends(manage_bills)):
    try:
        return await bill_service.create_bill(ctx.effective_user_id, data)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error creating bill: {e}")
        raise HTTPException(status_code=500, detail="Failed to create bill")


@router.put("/{bill_id}", response_model=Dict[str, Any])
async def update_bill(bill_id: str, data: BillUpdateRequest, ctx: AccessContext = Depends(manage_bills)):
    try:
        return await bill_service.update_bill(ctx.effective_user_id, bill_id, data)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error updating bill {bill_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update bill")


@router.post("/{bill_id}/pay", response_model=Dict[str, Any])
async def pay_bill(bill_id: str, data: BillPayRequest, ctx: AccessContext = Depends(manage_bills)):
    try:
        return await bill_service.mark_paid(ctx.effective_user_id, bill_id, data)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error paying bill {bill_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to pay bill")


@router.delete("/{bill_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bill(bill_id: str, ctx: AccessContext = Depends(manage_bills)):
    try:
        await bill_service.delete_bill(ctx.effective_user_id, bill_id)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error deleting bill {bill_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete bill")
