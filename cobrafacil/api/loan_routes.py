from fastapi import APIRouter, HTTPException, Depends, Header, Query
from fastapi import status
from typing import Dict, Any, List, Optional
import logging

from cobrafacil.core.auth_dependencies import AccessContext, require_permission
from cobrafacil.core.exceptions import SERVICE_ERRORS, http_error
from cobrafacil.schemas.employee_schema import EmployeePermission
from cobrafacil.schemas.loan_schema import (
    ExtraInstallmentsRequest,
    LoanCreateRequest,
    LoanRenegotiateRequest,
    LoanSimulationRequest,
    LoanSimulationResponse,
    LoanUpdateRequest,
    PaymentCreateRequest,
    PaymentDateUpdateRequest,
)
from cobrafacil.services.loan_service import loan_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/loans", tags=["Loans"])


# Previews a loan's schedule and compares the interest modes
@router.post("/simulate", response_model=LoanSimulationResponse)
async def simulate_loan(data: LoanSimulationRequest):
    try:
        return loan_service.simulate(data)
    except ValueError as e:
        raise http_error(e)


@router.get("/", response_model=Dict[str, Any])
async def list_loans(
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(all|pending|paid|overdue)$"),
    client_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    is_third_party: Optional[bool] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ctx: AccessContext = Depends(require_permission(EmployeePermission.view_loans)),
):
    try:
        return await loan_service.get_loans(
            ctx.effective_user_id,
            status=status_filter,
            client_id=client_id,
            search=search,
            is_third_party=is_third_party,
            skip=skip,
            limit=limit,
        )
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error listing loans: {e}")
        raise HTTPException(status_code=500, detail="Failed to list loans")


@router.post("/", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_loan(
    data: LoanCreateRequest,
    ctx: AccessContext = Depends(require_permission(EmployeePermission.create_loans)),
):
    try:
        return await loan_service.create_loan(ctx, data)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error creating loan: {e}")
        raise HTTPException(status_code=500, detail="Failed to create loan")


@router.get("/{loan_id}", response_model=Dict[str, Any])
async def get_loan(loan_id: str, ctx: AccessContext = Depends(require_permission(EmployeePermission.view_loans))):
    try:
        return await loan_service.get_loan(ctx.effective_user_id, loan_id)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error retrieving loan {loan_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve loan")


@router.put("/{loan_id}", response_model=Dict[str, Any])
async def update_loan(
    loan_id: str,
    data: LoanUpdateRequest,
    ctx: AccessContext = Depends(require_permission(EmployeePermission.create_loans)),
):
    try:
        return await loan_service.update_loan(ctx, loan_id, data)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error updating loan {loan_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update loan")


@router.delete("/{loan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_loan(loan_id: str, ctx: AccessContext = Depends(require_permission(EmployeePermission.delete_loans))):
    try:
        await loan_service.delete_loan(ctx, loan_id)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error deleting loan {loan_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete loan")


@router.post("/{loan_id}/renegotiate", response_model=Dict[str, Any])
async def renegotiate_loan(
    loan_id: str,
    data: LoanRenegotiateRequest,
    ctx: AccessContext = Depends(require_permission(EmployeePermission.adjust_dates)),
):
    try:
        return await loan_service.renegotiate_loan(ctx, loan_id, data)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error renegotiating loan {loan_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to renegotiate loan")


@router.post("/{loan_id}/extra-installments", response_model=Dict[str, Any])
async def add_extra_installments(
    loan_id: str,
    data: ExtraInstallmentsRequest,
    ctx: AccessContext = Depends(require_permission(EmployeePermission.adjust_dates)),
):
    try:
        return await loan_service.add_extra_installments(ctx, loan_id, data)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error adding installments to loan {loan_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to add installments")


@router.get("/{loan_id}/payments", response_model=List[Dict[str, Any]])
async def list_loan_payments(loan_id: str, ctx: AccessContext = Depends(require_permission(EmployeePermission.view_loans))):
    try:
        return await loan_service.get_loan_payments(ctx.effective_user_id, loan_id)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error listing payments of loan {loan_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to list payments")


# Registers a payment; retries with the same Idempotency-Key return the first result
@router.post("/{loan_id}/payments", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def register_payment(
    loan_id: str,
    data: PaymentCreateRequest,
    ctx: AccessContext = Depends(require_permission(EmployeePermission.register_payments)),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    try:
        return await loan_service.register_payment(ctx, loan_id, data, idempotency_key)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error registering payment on loan {loan_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to register payment")


@router.delete("/payments/{payment_id}", response_model=Dict[str, Any])
async def delete_payment(
    payment_id: str,
    ctx: AccessContext = Depends(require_permission(EmployeePermission.register_payments)),
):
    try:
        return await loan_service.delete_payment(ctx, payment_id)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error deleting payment {payment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete payment")


@router.patch("/payments/{payment_id}/date", response_model=Dict[str, Any])
async def update_payment_date(
    payment_id: str,
    data: PaymentDateUpdateRequest,
    ctx: AccessContext = Depends(require_permission(EmployeePermission.adjust_dates)),
):
    try:
        return await loan_service.update_payment_date(ctx, payment_id, data)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error updating date of payment {payment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update payment date")
