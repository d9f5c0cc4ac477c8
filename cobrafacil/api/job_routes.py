from fastapi import APIRouter, HTTPException, Depends
from typing import Dict, Any
import logging

from cobrafacil.core.auth_dependencies import AccessContext, require_owner
from cobrafacil.services.overdue_service import overdue_service
from cobrafacil.services.reminder_service import reminder_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


# Manual triggers for the scheduled jobs; they run over every owner
@router.post("/overdue-check", response_model=Dict[str, Any])
async def run_overdue_check(ctx: AccessContext = Depends(require_owner)):
    try:
        return await overdue_service.check_overdue_loans()
    except Exception as e:
        logger.error(f"Overdue check triggered by {ctx.user_id} failed: {e}")
        raise HTTPException(status_code=500, detail="Overdue check failed")


@router.post("/loan-reminders", response_model=Dict[str, Any])
async def run_loan_reminders(ctx: AccessContext = Depends(require_owner)):
    try:
        return await reminder_service.check_loan_reminders()
    except Exception as e:
        logger.error(f"Loan reminders triggered by {ctx.user_id} failed: {e}")
        raise HTTPException(status_code=500, detail="Loan reminders failed")


@router.post("/bills-due", response_model=Dict[str, Any])
async def run_bills_due(ctx: AccessContext = Depends(require_owner)):
    try:
        return await reminder_service.check_bills_due()
    except Exception as e:
        logger.error(f"Bills due check triggered by {ctx.user_id} failed: {e}")
        raise HTTPException(status_code=500, detail="Bills due check failed")
