"""
Daily WhatsApp reminders: installments due today (to the owner), the next
day's installments (to the client) and the owner's own bills.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from beanie import PydanticObjectId

from cobrafacil.database.models import Bill, Client, Loan, User
from cobrafacil.helpers.message_builder import (
    build_bills_due_message,
    build_due_today_message,
    build_early_reminder_message,
    progress_percent,
)
from cobrafacil.schemas.bill_schema import BillStatusEnum
from cobrafacil.schemas.loan_schema import PaymentStatusEnum
from cobrafacil.schemas.notification_schema import NotificationTypeEnum
from cobrafacil.services.notification_service import notification_service
from cobrafacil.services.whatsapp_service import whatsapp_service
from cobrafacil.utils.calculations import format_currency
from cobrafacil.utils.installments import amount_received, installment_value, next_due_date, paid_installments_count

logger = logging.getLogger(__name__)

EARLY_REMINDER_DAYS = 1


def due_item(loan, client_name: str) -> Dict[str, Any]:
    paid = paid_installments_count(loan)
    total = loan.installments or 1
    return {
        "client_name": client_name,
        "loan_id": str(loan.id),
        "payment_type": loan.payment_type,
        "installment_amount": installment_value(loan),
        "current_installment": min(paid + 1, total),
        "total_installments": total,
        "total_paid": amount_received(loan),
        "remaining_balance": loan.remaining_balance or 0,
        "progress": progress_percent(paid, total),
    }


def _can_message(owner: Optional[User]) -> bool:
    return bool(owner and owner.is_active and owner.phone and owner.whatsapp_instance_token)


class ReminderService:

    async def _owners(self, user_ids) -> Dict[str, User]:
        ids = [PydanticObjectId(u) for u in set(user_ids) if PydanticObjectId.is_valid(u)]
        if not ids:
            return {}
        return {str(u.id): u for u in await User.find({"_id": {"$in": ids}}).to_list()}

    async def _clients(self, client_ids) -> Dict[str, Client]:
        ids = [PydanticObjectId(c) for c in set(client_ids) if PydanticObjectId.is_valid(c)]
        if not ids:
            return {}
        return {str(c.id): c for c in await Client.find({"_id": {"$in": ids}}).to_list()}

    async def check_loan_reminders(self, today: Optional[date] = None) -> Dict[str, int]:
        today = today or date.today()
        early_day = today + timedelta(days=EARLY_REMINDER_DAYS)

        loans = await Loan.find({"status": {"$ne": PaymentStatusEnum.paid.value}, "is_historical": False}).to_list()
        owners = await self._owners(l.user_id for l in loans)
        clients = await self._clients(l.client_id for l in loans)

        due_today: Dict[str, List[Dict[str, Any]]] = {}
        early: List[Any] = []
        for loan in loans:
            upcoming = next_due_date(loan)
            if upcoming == today:
                client = clients.get(loan.client_id)
                due_today.setdefault(loan.user_id, []).append(due_item(loan, client.full_name if client else "Cliente"))
            elif upcoming == early_day:
                early.append(loan)

        sent_count = 0
        for user_id, items in due_today.items():
            owner = owners.get(user_id)
            total = sum(i["installment_amount"] for i in items)
            try:
                await notification_service.create_notification(
                    user_id=user_id,
                    title=f"📅 {len(items)} cobrança{'s' if len(items) > 1 else ''} para hoje",
                    message=f"Total do dia: {format_currency(total)}",
                    type=NotificationTypeEnum.info,
                )
            except Exception:
                logger.exception("Failed to create due-today notification for user %s", user_id)

            if not _can_message(owner):
                logger.info("User %s skipped for due-today summary (inactive/no phone/no token)", user_id)
                continue
            message = build_due_today_message(owner.full_name, items, today)
            if await whatsapp_service.send_text(owner.phone, message, owner.whatsapp_instance_token):
                sent_count += 1

        early_sent = 0
        for loan in early:
            owner = owners.get(loan.user_id)
            client = clients.get(loan.client_id)
            if not _can_message(owner) or client is None or not client.phone:
                continue
            message = build_early_reminder_message(
                client.full_name,
                loan.id,
                early_day,
                installment_value(loan),
                EARLY_REMINDER_DAYS,
                owner.pix_key,
            )
            if await whatsapp_service.send_text(client.phone, message, owner.whatsapp_instance_token):
                early_sent += 1

        result = {
            "checked_loans": len(loans),
            "due_today": sum(len(v) for v in due_today.values()),
            "sent_count": sent_count,
            "early_reminders_sent": early_sent,
        }
        logger.info("Loan reminders finished: %s", result)
        return result

    # Bills due today or already overdue, one message per owner
    async def check_bills_due(self, today: Optional[date] = None) -> Dict[str, int]:
        today = today or date.today()
        bills = await Bill.find({
            "status": {"$ne": BillStatusEnum.paid.value},
            "due_date": {"$lte": datetime.combine(today, datetime.min.time())},
        }).to_list()

        grouped: Dict[str, List[Bill]] = {}
        for bill in bills:
            grouped.setdefault(bill.user_id, []).append(bill)
        owners = await self._owners(grouped.keys())

        sent_count = 0
        for user_id, items in grouped.items():
            items.sort(key=lambda b: b.due_date)
            total = sum(b.amount for b in items)
            try:
                await notification_service.create_notification(
                    user_id=user_id,
                    title=f"💸 {len(items)} conta{'s' if len(items) > 1 else ''} a pagar",
                    message=f"Total: {format_currency(total)}",
                    type=NotificationTypeEnum.warning,
                )
            except Exception:
                logger.exception("Failed to create bills notification for user %s", user_id)

            owner = owners.get(user_id)
            if not _can_message(owner):
                continue
            message = build_bills_due_message(owner.full_name, items, today)
            if await whatsapp_service.send_text(owner.phone, message, owner.whatsapp_instance_token):
                sent_count += 1

        result = {"bills_due": len(bills), "owners": len(grouped), "sent_count": sent_count}
        logger.info("Bills reminder finished: %s", result)
        return result


reminder_service = ReminderService()
