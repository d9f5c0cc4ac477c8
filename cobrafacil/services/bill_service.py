import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional

from cobrafacil.core.exceptions import ConflictError, NotFoundError
from cobrafacil.database.models import Bill
from cobrafacil.helpers.object_id import parse_object_id
from cobrafacil.helpers.response_builder import serialize_document
from cobrafacil.schemas.bill_schema import BillCreateRequest, BillPayRequest, BillStatusEnum, BillUpdateRequest
from cobrafacil.utils.installments import add_months

logger = logging.getLogger(__name__)


def _status(bill) -> str:
    return getattr(bill.status, "value", bill.status)


def effective_bill_status(bill, today: Optional[date] = None) -> BillStatusEnum:
    today = today or date.today()
    if _status(bill) == BillStatusEnum.paid.value:
        return BillStatusEnum.paid
    if bill.due_date < today:
        return BillStatusEnum.overdue
    return BillStatusEnum.pending


def next_recurrence(bill) -> Dict[str, Any]:
    """Fields of the bill that follows a paid recurring one."""
    months = bill.recurrence_months or 1
    anchor = getattr(bill, "recurrence_day", None) or bill.due_date.day
    return {
        "user_id": bill.user_id,
        "description": bill.description,
        "payee_name": bill.payee_name,
        "amount": bill.amount,
        "due_date": add_months(bill.due_date, months, day=anchor),
        "notes": bill.notes,
        "category": bill.category,
        "is_recurring": True,
        "recurrence_months": bill.recurrence_months,
        "recurrence_day": anchor,
        "pix_key": bill.pix_key,
    }


def bills_summary(bills: Iterable[Any], today: Optional[date] = None) -> Dict[str, Any]:
    today = today or date.today()
    summary = {
        "total_pending": 0.0,
        "total_overdue": 0.0,
        "total_paid_this_month": 0.0,
        "due_today": 0,
        "pending_count": 0,
        "overdue_count": 0,
    }
    for bill in bills:
        status = effective_bill_status(bill, today)
        if status == BillStatusEnum.paid:
            if bill.paid_date and bill.paid_date.year == today.year and bill.paid_date.month == today.month:
                summary["total_paid_this_month"] += bill.amount
            continue
        if status == BillStatusEnum.overdue:
            summary["total_overdue"] += bill.amount
            summary["overdue_count"] += 1
        else:
            summary["total_pending"] += bill.amount
            summary["pending_count"] += 1
            if bill.due_date == today:
                summary["due_today"] += 1
    for key in ("total_pending", "total_overdue", "total_paid_this_month"):
        summary[key] = round(summary[key], 2)
    return summary


class BillService:
    """The owner's own payables (rent, suppliers, funding)."""

    async def _get_owned(self, owner_id: str, bill_id: str) -> Bill:
        bill = await Bill.get(parse_object_id(bill_id, "Bill"))
        if bill is None or bill.user_id != owner_id:
            raise NotFoundError("Bill not found")
        return bill

    async def create_bill(self, owner_id: str, data: BillCreateRequest, today: Optional[date] = None) -> Dict[str, Any]:
        bill = Bill(user_id=owner_id, **data.model_dump())
        bill.status = effective_bill_status(bill, today)
        await bill.insert()
        logger.info(f"Bill {bill.id} created for owner {owner_id}")
        return serialize_document(bill)

    async def update_bill(self, owner_id: str, bill_id: str, data: BillUpdateRequest) -> Dict[str, Any]:
        bill = await self._get_owned(owner_id, bill_id)
        for field in data.model_fields_set:
            setattr(bill, field, getattr(data, field))
        if "due_date" in data.model_fields_set:
            bill.recurrence_day = bill.due_date.day
        if _status(bill) != BillStatusEnum.paid.value:
            bill.paid_date = None
        bill.updated_at = datetime.utcnow()
        await bill.save()
        return serialize_document(bill)

    async def delete_bill(self, owner_id: str, bill_id: str) -> None:
        bill = await self._get_owned(owner_id, bill_id)
        await bill.delete()

    # Marks a bill as paid and schedules the next one when it recurs
    async def mark_paid(self, owner_id: str, bill_id: str, data: BillPayRequest) -> Dict[str, Any]:
        bill = await self._get_owned(owner_id, bill_id)
        if _status(bill) == BillStatusEnum.paid.value:
            raise ConflictError("Bill is already paid")

        bill.status = BillStatusEnum.paid
        bill.paid_date = data.paid_date
        bill.updated_at = datetime.utcnow()
        await bill.save()

        next_bill = None
        if bill.is_recurring:
            next_bill = Bill(**next_recurrence(bill))
            await next_bill.insert()
            logger.info(f"Recurring bill {bill_id} paid, next one due {next_bill.due_date}")

        return {
            "bill": serialize_document(bill),
            "next_bill": serialize_document(next_bill) if next_bill else None,
        }

    # Flags pending bills whose due date has passed
    async def refresh_statuses(self, owner_id: Optional[str] = None, today: Optional[date] = None) -> int:
        today = today or date.today()
        query: Dict[str, Any] = {
            "status": BillStatusEnum.pending.value,
            "due_date": {"$lt": datetime.combine(today, datetime.min.time())},
        }
        if owner_id:
            query["user_id"] = owner_id
        result = await Bill.find(query).update({"$set": {"status": BillStatusEnum.overdue.value}})
        return getattr(result, "modified_count", 0) or 0

    async def get_bills(
        self,
        owner_id: str,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        await self.refresh_statuses(owner_id, today)

        query: Dict[str, Any] = {"user_id": owner_id}
        if status and status != "all":
            query["status"] = BillStatusEnum(status).value
        due_query = {}
        if start_date:
            due_query["$gte"] = datetime.combine(start_date, datetime.min.time())
        if end_date:
            due_query["$lte"] = datetime.combine(end_date, datetime.min.time())
        if due_query:
            query["due_date"] = due_query

        bills = await Bill.find(query).sort("due_date").to_list()
        all_bills = await Bill.find({"user_id": owner_id}).to_list()
        return {
            "data": [serialize_document(b) for b in bills],
            "total": len(bills),
            "summary": bills_summary(all_bills, today),
        }


bill_service = BillService()
