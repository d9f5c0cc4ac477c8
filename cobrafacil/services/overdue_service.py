import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from beanie import PydanticObjectId

from cobrafacil.database.models import Client, Loan, User
from cobrafacil.helpers.message_builder import build_overdue_alert_message
from cobrafacil.schemas.loan_schema import PaymentStatusEnum
from cobrafacil.schemas.notification_schema import NotificationTypeEnum
from cobrafacil.services.notification_service import notification_service
from cobrafacil.services.whatsapp_service import whatsapp_service
from cobrafacil.utils.calculations import calculate_daily_penalty, format_currency
from cobrafacil.utils.installments import (
    PAID_THRESHOLD,
    amount_received,
    installment_value,
    paid_installments_count,
    total_to_receive,
)

logger = logging.getLogger(__name__)

# Days overdue on which a reminder is repeated after the first detection
ALERT_DAYS = (1, 7, 15, 30)


def _status(loan) -> str:
    return getattr(loan.status, "value", loan.status)


def find_overdue_installment(loan, today: Optional[date] = None) -> Optional[Tuple[int, date]]:
    """
    First unpaid installment whose date has passed, as (index, due date).

    An installment is unpaid while less than 99% of its value was received.
    Loans without a passed installment date fall back to `due_date` while a
    balance remains.
    """
    today = today or date.today()
    value = installment_value(loan)
    partial = getattr(loan, "partial_payments", None) or {}
    paid_count = None if partial else paid_installments_count(loan)

    for i, due in enumerate(loan.installment_dates or []):
        if partial:
            is_paid = partial.get(str(i), 0) >= value * PAID_THRESHOLD
        else:
            is_paid = i < paid_count
        if not is_paid and due < today:
            return i, due

    if (loan.remaining_balance or 0) > 0 and loan.due_date and loan.due_date < today:
        return 0, loan.due_date
    return None


def is_loan_overdue(loan, today: Optional[date] = None) -> bool:
    if _status(loan) == PaymentStatusEnum.paid.value:
        return False
    if (loan.remaining_balance or 0) <= 0:
        return False
    return find_overdue_installment(loan, today) is not None


def get_days_overdue(loan, today: Optional[date] = None) -> int:
    today = today or date.today()
    if not is_loan_overdue(loan, today):
        return 0
    _, due = find_overdue_installment(loan, today)
    return (today - due).days


def total_penalties(loan) -> float:
    return sum((getattr(loan, "daily_penalties", None) or {}).values())


def calculate_dynamic_overdue_interest(loan, days_overdue: int) -> float:
    """
    Late fee accrued so far that the daily job has not added to the balance.

    Once a penalty has been materialised (`penalty_last_applied` is set) it
    is already part of `remaining_balance` and nothing is added here.
    """
    config = getattr(loan, "overdue_config", None)
    if config is None or days_overdue <= 0 or getattr(loan, "penalty_last_applied", None) is not None:
        return 0.0
    return calculate_daily_penalty(config, total_to_receive(loan)) * days_overdue


def should_alert(days_overdue: int, first_detection: bool) -> bool:
    return first_detection or days_overdue in ALERT_DAYS


class OverdueService:
    """Daily overdue sweep: statuses, late fees and owner alerts."""

    # Adds the late fee for the days not yet charged; returns the amount added
    def apply_daily_penalty(self, loan, installment_index: int, days_overdue: int, today: date) -> float:
        if loan.overdue_config is None or loan.penalty_last_applied == today:
            return 0.0

        days_to_apply = days_overdue if loan.penalty_last_applied is None else 1
        penalty = calculate_daily_penalty(loan.overdue_config, total_to_receive(loan)) * days_to_apply
        if penalty <= 0:
            return 0.0

        key = str(installment_index)
        penalties = dict(loan.daily_penalties or {})
        penalties[key] = round(penalties.get(key, 0) + penalty, 2)
        loan.daily_penalties = penalties
        loan.penalty_last_applied = today
        loan.remaining_balance = round(loan.remaining_balance + penalty, 2)
        return penalty

    async def check_overdue_loans(self, today: Optional[date] = None) -> Dict[str, int]:
        today = today or date.today()
        loans = await Loan.find({"status": {"$ne": PaymentStatusEnum.paid.value}}).to_list()
        logger.info("Checking %d open loans for overdue installments", len(loans))

        client_ids = list({PydanticObjectId(l.client_id) for l in loans if PydanticObjectId.is_valid(l.client_id)})
        clients = {str(c.id): c for c in await Client.find({"_id": {"$in": client_ids}}).to_list()} if client_ids else {}

        alerts: Dict[str, List[Dict[str, Any]]] = {}
        overdue_count = 0
        penalties_applied = 0

        for loan in loans:
            if loan.is_historical:
                continue

            found = find_overdue_installment(loan, today)
            if found is None or (loan.remaining_balance or 0) <= 0:
                continue

            index, due = found
            days_overdue = (today - due).days
            first_detection = _status(loan) != PaymentStatusEnum.overdue.value
            changed = False

            if first_detection:
                loan.status = PaymentStatusEnum.overdue
                overdue_count += 1
                changed = True

            if self.apply_daily_penalty(loan, index, days_overdue, today) > 0:
                penalties_applied += 1
                changed = True

            if changed:
                loan.updated_at = datetime.utcnow()
                await loan.save()

            if not should_alert(days_overdue, first_detection):
                continue

            client = clients.get(loan.client_id)
            alerts.setdefault(loan.user_id, []).append({
                "loan_id": str(loan.id),
                "client_id": loan.client_id,
                "client_name": client.full_name if client else "Cliente",
                "due_date": due,
                "days_overdue": days_overdue,
                "remaining_balance": loan.remaining_balance,
                "total_penalty": total_penalties(loan),
                "overdue_config": loan.overdue_config,
                "principal_amount": loan.principal_amount,
                "interest_rate": loan.interest_rate,
                "total_to_receive": total_to_receive(loan),
                "total_paid": amount_received(loan),
                "paid_installments": paid_installments_count(loan),
                "total_installments": loan.installments or 1,
            })

        sent_count = await self._send_alerts(alerts)

        result = {
            "checked_loans": len(loans),
            "overdue_loans": overdue_count,
            "penalties_applied": penalties_applied,
            "sent_count": sent_count,
        }
        logger.info("Overdue check finished: %s", result)
        return result

    async def _send_alerts(self, alerts: Dict[str, List[Dict[str, Any]]]) -> int:
        sent_count = 0
        for user_id, items in alerts.items():
            owner = await User.get(PydanticObjectId(user_id)) if PydanticObjectId.is_valid(user_id) else None

            for info in items:
                days = info["days_overdue"]
                try:
                    await notification_service.create_notification(
                        user_id=user_id,
                        title=f"🚨 {days} dia{'s' if days > 1 else ''} em atraso - {info['client_name']}",
                        message=f"Saldo devedor: {format_currency(info['remaining_balance'])}",
                        type=NotificationTypeEnum.warning,
                        loan_id=info["loan_id"],
                        client_id=info["client_id"],
                    )
                except Exception:
                    logger.exception("Failed to create overdue notification for loan %s", info["loan_id"])

            if owner is None or not owner.is_active or not owner.phone or not owner.whatsapp_instance_token:
                logger.info("User %s skipped for WhatsApp alerts (inactive/no phone/no token)", user_id)
                continue

            for info in items:
                message = build_overdue_alert_message(info)
                if await whatsapp_service.send_text(owner.phone, message, owner.whatsapp_instance_token):
                    sent_count += 1

        return sent_count


overdue_service = OverdueService()
