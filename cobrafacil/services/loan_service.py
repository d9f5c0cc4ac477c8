import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from cobrafacil.core.auth_dependencies import AccessContext
from cobrafacil.core.exceptions import ConflictError, NotFoundError
from cobrafacil.core.idempotency import get_idempotency_store, payment_key
from cobrafacil.database.models import Client, Loan, LoanPayment, User
from cobrafacil.helpers.message_builder import (
    build_loan_created_message,
    build_payment_received_message,
    build_renegotiation_message,
)
from cobrafacil.helpers.response_builder import build_loan_response, parse_object_id, serialize_document
from cobrafacil.schemas.loan_schema import (
    ExtraInstallmentsRequest,
    LoanCreateRequest,
    LoanRenegotiateRequest,
    LoanSimulationRequest,
    LoanUpdateRequest,
    PaymentCreateRequest,
    PaymentDateUpdateRequest,
    PaymentStatusEnum,
    PaymentTypeEnum,
)
from cobrafacil.schemas.notification_schema import NotificationTypeEnum
from cobrafacil.services.activity_service import activity_service
from cobrafacil.services.client_score_service import client_score_service
from cobrafacil.services.notification_service import notification_service
from cobrafacil.services.overdue_service import is_loan_overdue
from cobrafacil.services.whatsapp_service import whatsapp_service
from cobrafacil.utils.calculations import calculate_total_interest, format_currency
from cobrafacil.utils.installments import (
    allocate_payment,
    amount_received,
    deallocate_payment,
    generate_extra_daily_dates,
    generate_installment_dates,
    installment_status_list,
    installment_value,
    max_installments,
    next_due_date,
    paid_installments_count,
    shift_date,
    simulate_loan,
)

logger = logging.getLogger(__name__)

# Balances at or below this are treated as settled
SETTLED_TOLERANCE = 0.01


def contract_interest(principal: float, rate: float, installments: int, payment_type, interest_mode) -> float:
    """Interest foreseen by a contract; daily loans charge `rate` as a fixed profit per day."""
    if PaymentTypeEnum(payment_type) == PaymentTypeEnum.daily:
        return rate * installments
    return calculate_total_interest(principal, rate, installments, interest_mode)


def compute_loan_terms(data: LoanCreateRequest, today: Optional[date] = None) -> Dict[str, Any]:
    """Derived fields of a new loan: schedule, totals and initial status."""
    today = today or date.today()
    payment_type = PaymentTypeEnum(data.payment_type)
    n = 1 if payment_type == PaymentTypeEnum.single else data.installments
    if n > max_installments(payment_type):
        raise ValueError(f"{payment_type.value} loans allow at most {max_installments(payment_type)} installments")

    if data.installment_dates:
        dates = sorted(data.installment_dates)
    else:
        dates = generate_installment_dates(
            data.start_date, n, payment_type, data.skip_sundays, data.skip_holidays, data.skip_saturdays
        )

    if data.total_interest is not None:
        total_interest = data.total_interest
    else:
        total_interest = contract_interest(data.principal_amount, data.interest_rate, n, payment_type, data.interest_mode)

    if data.remaining_balance is not None:
        remaining = data.remaining_balance
    else:
        remaining = data.principal_amount + total_interest

    if remaining <= SETTLED_TOLERANCE:
        status = PaymentStatusEnum.paid
    elif not data.is_historical and dates[0] < today:
        status = PaymentStatusEnum.overdue
    else:
        status = PaymentStatusEnum.pending

    return {
        "installments": n,
        "installment_dates": dates,
        "due_date": data.due_date or dates[-1],
        "contract_date": data.contract_date or today,
        "total_interest": round(total_interest, 2),
        "remaining_balance": round(max(0.0, remaining), 2),
        "status": status,
    }


def split_payment(loan, amount: float) -> Tuple[float, float]:
    """Splits a payment into (principal, interest) in the contract's proportion."""
    principal = loan.principal_amount or 0
    total = principal + (loan.total_interest or 0)
    if total <= 0:
        return amount, 0.0
    principal_part = round(amount * principal / total, 2)
    return principal_part, round(amount - principal_part, 2)


def refresh_status(loan, today: Optional[date] = None) -> None:
    if (loan.remaining_balance or 0) <= SETTLED_TOLERANCE:
        loan.remaining_balance = 0.0
        loan.status = PaymentStatusEnum.paid
        return
    loan.status = PaymentStatusEnum.pending
    if not loan.is_historical and is_loan_overdue(loan, today):
        loan.status = PaymentStatusEnum.overdue


def apply_payment(loan, amount: float, today: Optional[date] = None) -> None:
    loan.partial_payments = allocate_payment(loan, amount)
    loan.total_paid = round((loan.total_paid or 0) + amount, 2)
    loan.remaining_balance = round(max(0.0, (loan.remaining_balance or 0) - amount), 2)
    refresh_status(loan, today)


def revert_payment(loan, amount: float, today: Optional[date] = None) -> None:
    loan.partial_payments = deallocate_payment(loan, amount)
    loan.total_paid = round(max(0.0, (loan.total_paid or 0) - amount), 2)
    loan.remaining_balance = round((loan.remaining_balance or 0) + amount, 2)
    refresh_status(loan, today)


# Moves every unpaid installment date by `periods` payment periods
def shift_open_installments(loan, periods: int = 1) -> None:
    dates = list(loan.installment_dates or [])
    first_open = paid_installments_count(loan)
    if dates and first_open < len(dates):
        dates[first_open:] = [shift_date(d, loan.payment_type, periods) for d in dates[first_open:]]
        loan.installment_dates = dates
        loan.due_date = dates[-1]
    elif loan.due_date:
        loan.due_date = shift_date(loan.due_date, loan.payment_type, periods)


def apply_interest_only_payment(loan, amount: float, today: Optional[date] = None) -> None:
    """Interest-only payments leave the balance untouched and push the open installments one period."""
    loan.interest_only_paid = round((getattr(loan, "interest_only_paid", 0) or 0) + amount, 2)
    shift_open_installments(loan, 1)
    refresh_status(loan, today)


def revert_interest_only_payment(loan, amount: float, today: Optional[date] = None) -> None:
    loan.interest_only_paid = round(max(0.0, (getattr(loan, "interest_only_paid", 0) or 0) - amount), 2)
    shift_open_installments(loan, -1)
    refresh_status(loan, today)


def skip_flags(loan) -> Dict[str, bool]:
    return {name: bool(getattr(loan, name, False)) for name in ("skip_saturdays", "skip_sundays", "skip_holidays")}


def renegotiation_terms(loan, data: LoanRenegotiateRequest, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or date.today()
    payment_type = PaymentTypeEnum(loan.payment_type)
    n = data.installments
    if payment_type == PaymentTypeEnum.single and n != 1:
        raise ValueError("single payment loans have exactly one installment")
    if n > max_installments(payment_type):
        raise ValueError(f"{payment_type.value} loans allow at most {max_installments(payment_type)} installments")

    if data.installment_dates:
        if len(data.installment_dates) != n:
            raise ValueError("installment_dates must have one date per installment")
        dates = sorted(data.installment_dates)
    else:
        dates = generate_installment_dates(data.start_date or today, n, payment_type, **skip_flags(loan))

    if data.total_interest is not None:
        total_interest = data.total_interest
    else:
        total_interest = contract_interest(loan.principal_amount, data.interest_rate, n, payment_type, loan.interest_mode)

    if data.remaining_balance is not None:
        remaining = data.remaining_balance
    else:
        remaining = max(0.0, loan.principal_amount + total_interest - (loan.total_paid or 0))

    return {
        "interest_rate": data.interest_rate,
        "installments": n,
        "installment_dates": dates,
        "due_date": data.due_date or dates[-1],
        "total_interest": round(total_interest, 2),
        "remaining_balance": round(remaining, 2),
        "status": PaymentStatusEnum.pending,
        "partial_payments": {},
        "daily_penalties": {},
        "penalty_last_applied": None,
        "paid_before_renegotiation": loan.total_paid or 0,
    }


class LoanService:
    """Loan contracts and their payments, always scoped to the owner account."""

    async def _get_owned_loan(self, owner_id: str, loan_id: str) -> Loan:
        loan = await Loan.get(parse_object_id(loan_id, "Loan"))
        if loan is None or loan.user_id != owner_id:
            raise NotFoundError("Loan not found")
        return loan

    async def _get_owned_client(self, owner_id: str, client_id: str) -> Client:
        client = await Client.get(parse_object_id(client_id, "Client"))
        if client is None or client.user_id != owner_id:
            raise NotFoundError("Client not found")
        return client

    async def _get_owned_payment(self, owner_id: str, payment_id: str) -> LoanPayment:
        payment = await LoanPayment.get(parse_object_id(payment_id, "Payment"))
        if payment is None or payment.user_id != owner_id:
            raise NotFoundError("Payment not found")
        return payment

    async def _client_name(self, client_id: str) -> Optional[str]:
        try:
            client = await Client.get(parse_object_id(client_id, "Client"))
        except NotFoundError:
            return None
        return client.full_name if client else None

    # Sends a WhatsApp message to the account owner; delivery problems are only logged
    async def _notify_owner(self, owner_id: str, message: str) -> bool:
        try:
            owner = await User.get(parse_object_id(owner_id, "User"))
        except NotFoundError:
            return False
        if owner is None or not owner.phone or not owner.whatsapp_instance_token:
            logger.info("Owner %s has no WhatsApp configured, message skipped", owner_id)
            return False
        return await whatsapp_service.send_text(owner.phone, message, owner.whatsapp_instance_token)

    async def _safe_notification(self, **kwargs) -> None:
        try:
            await notification_service.create_notification(**kwargs)
        except Exception:
            logger.exception("Failed to create notification %r", kwargs.get("title"))

    # Creates a loan for one of the owner's clients
    async def create_loan(self, ctx: AccessContext, data: LoanCreateRequest, today: Optional[date] = None) -> Dict[str, Any]:
        owner_id = ctx.effective_user_id
        client = await self._get_owned_client(owner_id, data.client_id)
        terms = compute_loan_terms(data, today)

        loan = Loan(
            user_id=owner_id,
            client_id=data.client_id,
            principal_amount=data.principal_amount,
            interest_rate=data.interest_rate,
            interest_type=data.interest_type,
            interest_mode=data.interest_mode,
            payment_type=data.payment_type,
            start_date=data.start_date,
            notes=data.notes,
            is_historical=data.is_historical,
            is_third_party=data.is_third_party,
            third_party_name=data.third_party_name if data.is_third_party else None,
            overdue_config=data.overdue_config,
            skip_saturdays=data.skip_saturdays,
            skip_sundays=data.skip_sundays,
            skip_holidays=data.skip_holidays,
            created_by=ctx.user_id,
            **terms,
        )
        try:
            await loan.insert()
        except Exception as e:
            logger.error(f"Error creating loan for client {data.client_id}: {e}")
            raise RuntimeError(f"Failed to create loan: {str(e)}")

        logger.info(f"Loan {loan.id} created for client {client.id} ({format_currency(loan.principal_amount)})")

        await client_score_service.refresh_quietly(data.client_id)
        await activity_service.record(ctx, "loan_created", "loan", str(loan.id),
                                      {"client_name": client.full_name, "principal_amount": loan.principal_amount})
        await self._safe_notification(
            user_id=owner_id,
            title="Novo empréstimo",
            message=f"{client.full_name}: {format_currency(loan.principal_amount)} em {loan.installments}x",
            type=NotificationTypeEnum.info,
            loan_id=str(loan.id),
            client_id=data.client_id,
        )

        if data.send_creation_notification:
            message = build_loan_created_message(
                client.full_name,
                loan.id,
                loan.principal_amount,
                loan.total_interest,
                loan.installments,
                installment_value(loan),
                loan.payment_type,
                loan.installment_dates[0] if loan.installment_dates else loan.due_date,
                loan.notes,
            )
            await self._notify_owner(owner_id, message)

        return build_loan_response(loan, client.full_name, today)

    async def update_loan(self, ctx: AccessContext, loan_id: str, data: LoanUpdateRequest, today: Optional[date] = None) -> Dict[str, Any]:
        owner_id = ctx.effective_user_id
        loan = await self._get_owned_loan(owner_id, loan_id)
        previous_client = loan.client_id

        changes = {field: getattr(data, field) for field in data.model_fields_set if field != "send_notification"}
        if "client_id" in changes and changes["client_id"] != loan.client_id:
            await self._get_owned_client(owner_id, changes["client_id"])

        for field, value in changes.items():
            setattr(loan, field, value)

        schedule_changed = "installments" in changes or "payment_type" in changes
        if PaymentTypeEnum(loan.payment_type) == PaymentTypeEnum.single:
            loan.installments = 1
        if loan.installments > max_installments(loan.payment_type):
            raise ValueError(f"At most {max_installments(loan.payment_type)} installments allowed")

        if schedule_changed and "installment_dates" not in changes:
            loan.installment_dates = generate_installment_dates(loan.start_date, loan.installments, loan.payment_type)
        if loan.installment_dates and len(loan.installment_dates) != loan.installments:
            raise ValueError("installment_dates must have one date per installment")
        if loan.installment_dates and "due_date" not in changes:
            loan.due_date = max(loan.installment_dates)

        refresh_status(loan, today)
        loan.updated_at = datetime.utcnow()
        await loan.save()

        await client_score_service.refresh_quietly(loan.client_id)
        if previous_client != loan.client_id:
            await client_score_service.refresh_quietly(previous_client)
        await activity_service.record(ctx, "loan_updated", "loan", loan_id, {"fields": sorted(changes)})

        return build_loan_response(loan, await self._client_name(loan.client_id), today)

    async def renegotiate_loan(self, ctx: AccessContext, loan_id: str, data: LoanRenegotiateRequest,
                               today: Optional[date] = None) -> Dict[str, Any]:
        owner_id = ctx.effective_user_id
        loan = await self._get_owned_loan(owner_id, loan_id)
        if loan.status == PaymentStatusEnum.paid:
            raise ConflictError("Paid loans cannot be renegotiated")

        for field, value in renegotiation_terms(loan, data, today).items():
            setattr(loan, field, value)
        if data.notes is not None:
            loan.notes = data.notes
        loan.renegotiated_at = datetime.utcnow()
        loan.updated_at = loan.renegotiated_at
        await loan.save()

        logger.info(f"Loan {loan_id} renegotiated: {loan.installments} installments at {loan.interest_rate}%")

        client_name = await self._client_name(loan.client_id)
        await client_score_service.refresh_quietly(loan.client_id)
        await activity_service.record(ctx, "loan_renegotiated", "loan", loan_id,
                                      {"interest_rate": loan.interest_rate, "installments": loan.installments,
                                       "remaining_balance": loan.remaining_balance})

        if data.send_notification:
            message = build_renegotiation_message(
                client_name or "Cliente",
                loan.id,
                loan.interest_rate,
                loan.installments,
                loan.remaining_balance,
                next_due_date(loan),
            )
            await self._notify_owner(owner_id, message)

        return build_loan_response(loan, client_name, today)

    # Appends installments to a daily loan, each worth one installment value
    async def add_extra_installments(self, ctx: AccessContext, loan_id: str, data: ExtraInstallmentsRequest,
                                     today: Optional[date] = None) -> Dict[str, Any]:
        loan = await self._get_owned_loan(ctx.effective_user_id, loan_id)
        if PaymentTypeEnum(loan.payment_type) != PaymentTypeEnum.daily:
            raise ValueError("Extra installments are only available for daily loans")
        if loan.installments + data.extra_count > max_installments(PaymentTypeEnum.daily):
            raise ValueError(f"Daily loans allow at most {max_installments(PaymentTypeEnum.daily)} installments")

        if data.new_dates:
            if len(data.new_dates) != data.extra_count:
                raise ValueError("new_dates must have one date per extra installment")
            new_dates = sorted(data.new_dates)
        else:
            new_dates = generate_extra_daily_dates(list(loan.installment_dates or []), data.extra_count, **skip_flags(loan))

        value = installment_value(loan)
        added = round(value * data.extra_count, 2)

        loan.installment_dates = list(loan.installment_dates or []) + new_dates
        loan.installments += data.extra_count
        loan.due_date = loan.installment_dates[-1]
        loan.total_interest = round((loan.total_interest or 0) + added, 2)
        loan.remaining_balance = round((loan.remaining_balance or 0) + added, 2)
        refresh_status(loan, today)
        loan.updated_at = datetime.utcnow()
        await loan.save()

        await activity_service.record(ctx, "loan_extra_installments", "loan", loan_id,
                                      {"extra_count": data.extra_count, "amount": added})
        return build_loan_response(loan, await self._client_name(loan.client_id), today)

    async def delete_loan(self, ctx: AccessContext, loan_id: str) -> None:
        loan = await self._get_owned_loan(ctx.effective_user_id, loan_id)
        client_id = loan.client_id

        await LoanPayment.find({"loan_id": loan_id}).delete()
        await loan.delete()
        logger.info(f"Loan {loan_id} and its payments deleted")

        await client_score_service.refresh_quietly(client_id)
        await activity_service.record(ctx, "loan_deleted", "loan", loan_id, {"client_id": client_id})

    async def register_payment(
        self,
        ctx: AccessContext,
        loan_id: str,
        data: PaymentCreateRequest,
        idempotency_key: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Records a payment and updates the loan's balance, allocation and status.

        With an idempotency key the key is reserved before any work is done:
        a repeated request returns the first result, and a request arriving
        while the first one is still running gets a ConflictError. A failed
        attempt releases the key so the client can retry.
        """
        if not idempotency_key:
            return await self._record_payment(ctx, loan_id, data, today)

        store = get_idempotency_store()
        store_key = payment_key(ctx.effective_user_id, loan_id, idempotency_key)
        reserved, cached = await store.reserve(store_key)
        if not reserved:
            if cached is None:
                raise ConflictError("A payment with this Idempotency-Key is already being processed")
            logger.info(f"Replaying payment for idempotency key {idempotency_key}")
            return cached

        try:
            result = await self._record_payment(ctx, loan_id, data, today)
        except Exception:
            await store.release(store_key)
            raise
        await store.complete(store_key, result)
        return result

    async def _record_payment(self, ctx: AccessContext, loan_id: str, data: PaymentCreateRequest,
                              today: Optional[date] = None) -> Dict[str, Any]:
        owner_id = ctx.effective_user_id
        loan = await self._get_owned_loan(owner_id, loan_id)
        if loan.status == PaymentStatusEnum.paid:
            raise ConflictError("Loan is already paid")

        if data.is_interest_only:
            principal_paid, interest_paid = 0.0, data.amount
        elif data.principal_paid or data.interest_paid:
            principal_paid, interest_paid = data.principal_paid, data.interest_paid
        else:
            principal_paid, interest_paid = split_payment(loan, data.amount)

        payment = LoanPayment(
            loan_id=loan_id,
            user_id=owner_id,
            amount=data.amount,
            principal_paid=principal_paid,
            interest_paid=interest_paid,
            payment_date=data.payment_date,
            notes=data.notes,
            is_interest_only=data.is_interest_only,
            created_by=ctx.user_id,
        )
        await payment.insert()

        if data.is_interest_only:
            apply_interest_only_payment(loan, data.amount, today)
        else:
            apply_payment(loan, data.amount, today)
        loan.updated_at = datetime.utcnow()
        await loan.save()

        logger.info(f"Payment {payment.id} of {format_currency(data.amount)} registered on loan {loan_id}")

        client_name = await self._client_name(loan.client_id) or "Cliente"
        settled = loan.status == PaymentStatusEnum.paid
        await self._safe_notification(
            user_id=owner_id,
            title="Empréstimo quitado" if settled else "Pagamento recebido",
            message=f"{client_name}: {format_currency(data.amount)}",
            type=NotificationTypeEnum.success,
            loan_id=loan_id,
            client_id=loan.client_id,
        )
        await client_score_service.refresh_quietly(loan.client_id)
        await activity_service.record(ctx, "payment_registered", "payment", str(payment.id),
                                      {"loan_id": loan_id, "amount": data.amount,
                                       "is_interest_only": data.is_interest_only})

        if data.send_notification:
            paid_count = paid_installments_count(loan)
            message = build_payment_received_message(
                client_name,
                loan.id,
                data.amount,
                paid_count,
                loan.installments,
                amount_received(loan),
                loan.remaining_balance,
                data.payment_date,
                installment_status_list(loan.installment_dates, paid_count, loan.installments, today, compact=True),
            )
            await self._notify_owner(owner_id, message)

        return {
            "payment": serialize_document(payment),
            "loan": build_loan_response(loan, client_name, today),
        }

    async def delete_payment(self, ctx: AccessContext, payment_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        owner_id = ctx.effective_user_id
        payment = await self._get_owned_payment(owner_id, payment_id)
        loan = await self._get_owned_loan(owner_id, payment.loan_id)

        if payment.is_interest_only:
            revert_interest_only_payment(loan, payment.amount, today)
        else:
            revert_payment(loan, payment.amount, today)
        loan.updated_at = datetime.utcnow()
        await loan.save()
        await payment.delete()

        logger.info(f"Payment {payment_id} removed from loan {loan.id}")
        await client_score_service.refresh_quietly(loan.client_id)
        await activity_service.record(ctx, "payment_deleted", "payment", payment_id,
                                      {"loan_id": payment.loan_id, "amount": payment.amount})
        return build_loan_response(loan, await self._client_name(loan.client_id), today)

    async def update_payment_date(self, ctx: AccessContext, payment_id: str, data: PaymentDateUpdateRequest) -> Dict[str, Any]:
        payment = await self._get_owned_payment(ctx.effective_user_id, payment_id)
        previous = payment.payment_date
        payment.payment_date = data.payment_date
        await payment.save()

        await activity_service.record(ctx, "payment_date_updated", "payment", payment_id,
                                      {"from": previous.isoformat(), "to": data.payment_date.isoformat()})
        return serialize_document(payment)

    async def get_loan_payments(self, owner_id: str, loan_id: str) -> List[Dict[str, Any]]:
        await self._get_owned_loan(owner_id, loan_id)
        payments = await LoanPayment.find({"loan_id": loan_id}).sort("-payment_date").to_list()
        return [serialize_document(p) for p in payments]

    # Lists the owner's loans with filtering, search and pagination
    async def get_loans(
        self,
        owner_id: str,
        status: Optional[str] = None,
        client_id: Optional[str] = None,
        search: Optional[str] = None,
        is_third_party: Optional[bool] = None,
        skip: int = 0,
        limit: int = 100,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {"user_id": owner_id}
        if status and status.lower() != "all":
            query["status"] = PaymentStatusEnum(status.lower()).value
        if client_id:
            query["client_id"] = client_id
        if is_third_party is not None:
            query["is_third_party"] = is_third_party

        if search:
            search_regex = {"$regex": re.escape(search), "$options": "i"}
            matching = await Client.find({"user_id": owner_id, "full_name": search_regex}).to_list()
            query["$or"] = [
                {"client_id": {"$in": [str(c.id) for c in matching]}},
                {"notes": search_regex},
                {"third_party_name": search_regex},
            ]

        total = await Loan.find(query).count()
        loans = await Loan.find(query).sort("-created_at").skip(skip).limit(limit).to_list()

        client_ids = list({parse_object_id(l.client_id, "Client") for l in loans})
        clients = await Client.find({"_id": {"$in": client_ids}}).to_list() if client_ids else []
        names = {str(c.id): c.full_name for c in clients}

        logger.info(f"Found {len(loans)} of {total} loans for owner {owner_id}")
        return {
            "data": [build_loan_response(l, names.get(l.client_id), today) for l in loans],
            "total": total,
            "skip": skip,
            "limit": limit,
        }

    async def get_loan(self, owner_id: str, loan_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        loan = await self._get_owned_loan(owner_id, loan_id)
        return build_loan_response(loan, await self._client_name(loan.client_id), today)

    @staticmethod
    def simulate(data: LoanSimulationRequest) -> Dict[str, Any]:
        return simulate_loan(
            data.principal_amount,
            data.interest_rate,
            data.installments,
            data.payment_type,
            data.interest_mode,
            data.start_date,
        )


loan_service = LoanService()
