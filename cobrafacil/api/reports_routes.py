from fastapi import APIRouter, Query, Depends, HTTPException
from fastapi.responses import StreamingResponse
from typing import Optional
from datetime import date, timedelta
import io
import csv
import logging

from cobrafacil.core.auth_dependencies import AccessContext, require_permission
from cobrafacil.core.exceptions import SERVICE_ERRORS, http_error
from cobrafacil.helpers.pdf_report import build_payments_report_pdf
from cobrafacil.schemas.employee_schema import EmployeePermission
from cobrafacil.services.report_service import report_service

router = APIRouter(prefix="/reports", tags=["Reports"])

logger = logging.getLogger(__name__)

view_reports = require_permission(EmployeePermission.view_reports)


def _date_range(start_date: Optional[date], end_date: Optional[date]):
    """
    Default to the last 30 days when a bound is missing.
    """
    end = end_date or date.today()
    start = start_date or end - timedelta(days=30)
    return start, end


@router.get("/dashboard")
async def dashboard(ctx: AccessContext = Depends(view_reports)):
    try:
        return await report_service.dashboard_stats(ctx.effective_user_id)
    except Exception as e:
        logger.exception("Error generating dashboard stats: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate dashboard")


@router.get("/third-party")
async def third_party(ctx: AccessContext = Depends(view_reports)):
    try:
        return await report_service.third_party_stats(ctx.effective_user_id)
    except Exception as e:
        logger.exception("Error generating third-party stats: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate report")


@router.get("/loans-over-time")
async def loans_over_time(
    start_date: Optional[date] = Query(None, description="ISO start date, e.g. 2025-11-01"),
    end_date: Optional[date] = Query(None, description="ISO end date, e.g. 2025-11-30"),
    group_by: str = Query('day', pattern="^(day|month|year)$"),
    ctx: AccessContext = Depends(view_reports),
):
    sd, ed = _date_range(start_date, end_date)
    try:
        return await report_service.loans_over_time(ctx.effective_user_id, sd, ed, group_by=group_by)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception("Error generating loans report: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate report")


@router.get("/payments")
async def payments(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    ctx: AccessContext = Depends(view_reports),
):
    sd, ed = _date_range(start_date, end_date)
    try:
        return await report_service.payments_report(ctx.effective_user_id, sd, ed)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception("Error generating payments report: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate report")


@router.get("/payments/export")
async def payments_export(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    format: str = Query('csv', pattern="^(csv|pdf)$"),
    ctx: AccessContext = Depends(view_reports),
):
    sd, ed = _date_range(start_date, end_date)
    try:
        report = await report_service.payments_report(ctx.effective_user_id, sd, ed)
        filename = f"payments-report-{sd.isoformat()}_{ed.isoformat()}"

        if format == 'pdf':
            pdf = build_payments_report_pdf(report, sd, ed, ctx.full_name)
            return StreamingResponse(io.BytesIO(pdf), media_type='application/pdf', headers={
                'Content-Disposition': f'attachment; filename="{filename}.pdf"'
            })

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(["payment_date", "client", "loan_id", "amount", "principal", "interest", "interest_only"])
        for row in report["data"]:
            writer.writerow([
                row["payment_date"], row["client_name"] or "", row["loan_id"],
                f"{row['amount']:.2f}", f"{row['principal_paid']:.2f}", f"{row['interest_paid']:.2f}",
                "yes" if row["is_interest_only"] else "no",
            ])

        buffer.seek(0)
        return StreamingResponse(buffer, media_type='text/csv', headers={
            'Content-Disposition': f'attachment; filename="{filename}.csv"'
        })
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.exception("Payments export (%s) failed: %s", format, e)
        raise HTTPException(status_code=500, detail="Failed to export payments")


@router.get("/health")
async def health(ctx: AccessContext = Depends(view_reports)):
    try:
        return await report_service.dashboard_health(ctx.effective_user_id)
    except Exception as e:
        logger.exception("Error generating health report: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate report")


@router.get("/scores")
async def scores(ctx: AccessContext = Depends(view_reports)):
    try:
        return await report_service.score_report(ctx.effective_user_id)
    except Exception as e:
        logger.exception("Error generating score report: %s", e)
        raise HTTPException(status_code=500, detail="Failed to generate report")
