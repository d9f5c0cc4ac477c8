import asyncio
from datetime import date
from types import SimpleNamespace

import pytest

from cobrafacil.core.auth_dependencies import AccessContext
from cobrafacil.core.exceptions import ConflictError
from cobrafacil.core.idempotency import IdempotencyStore
from cobrafacil.schemas.loan_schema import PaymentCreateRequest, PaymentStatusEnum
from cobrafacil.services import loan_service as ls

OWNER = AccessContext(user_id="owner-1", effective_user_id="owner-1")
TODAY = date(2024, 1, 5)


async def _nothing(*args, **kwargs):
    return None


@pytest.fixture
def payments(monkeypatch, fake_model, make_loan):
    loan = make_loan(save=_nothing)
    payment_model = fake_model("LoanPayment")
    store = IdempotencyStore(redis_url="")
    service = ls.LoanService()

    async def get_loan(owner_id, loan_id):
        # Yields like a real database read so concurrent requests interleave
        await asyncio.sleep(0)
        return loan

    async def get_payment(owner_id, payment_id):
        return await payment_model.get(payment_id)

    async def client_name(client_id):
        return "Maria"

    monkeypatch.setattr(service, "_get_owned_loan", get_loan)
    monkeypatch.setattr(service, "_get_owned_payment", get_payment)
    monkeypatch.setattr(service, "_client_name", client_name)
    monkeypatch.setattr(service, "_safe_notification", _nothing)
    monkeypatch.setattr(ls, "LoanPayment", payment_model)
    monkeypatch.setattr(ls, "get_idempotency_store", lambda: store)
    monkeypatch.setattr(ls, "serialize_document", lambda doc: {"id": str(doc.id), "amount": doc.amount})
    monkeypatch.setattr(ls, "build_loan_response", lambda l, name, today=None: {
        "remaining_balance": l.remaining_balance,
        "total_paid": l.total_paid,
    })
    monkeypatch.setattr(ls.client_score_service, "refresh_quietly", _nothing)
    monkeypatch.setattr(ls.activity_service, "record", _nothing)
    return SimpleNamespace(service=service, loan=loan, model=payment_model)


def _payment(**overrides):
    fields = {"amount": 100, "payment_date": TODAY}
    fields.update(overrides)
    return PaymentCreateRequest(**fields)


@pytest.mark.asyncio
async def test_concurrent_retries_record_one_payment(payments):
    results = await asyncio.gather(
        payments.service.register_payment(OWNER, "loan-1", _payment(), "retry-1", TODAY),
        payments.service.register_payment(OWNER, "loan-1", _payment(), "retry-1", TODAY),
        return_exceptions=True,
    )

    assert len(payments.model.inserted) == 1
    assert payments.loan.total_paid == 100.0
    assert sum(1 for r in results if isinstance(r, ConflictError)) == 1
    assert sum(1 for r in results if isinstance(r, dict)) == 1


@pytest.mark.asyncio
async def test_repeated_key_replays_first_result(payments):
    first = await payments.service.register_payment(OWNER, "loan-1", _payment(), "key-1", TODAY)
    again = await payments.service.register_payment(OWNER, "loan-1", _payment(), "key-1", TODAY)

    assert again == first
    assert len(payments.model.inserted) == 1
    assert payments.loan.remaining_balance == 200.0


@pytest.mark.asyncio
async def test_distinct_keys_and_no_key_record_separately(payments):
    await payments.service.register_payment(OWNER, "loan-1", _payment(), "key-1", TODAY)
    await payments.service.register_payment(OWNER, "loan-1", _payment(), "key-2", TODAY)
    await payments.service.register_payment(OWNER, "loan-1", _payment(), None, TODAY)

    assert len(payments.model.inserted) == 3
    assert payments.loan.status == PaymentStatusEnum.paid


@pytest.mark.asyncio
async def test_paid_loan_rejects_payment_and_frees_the_key(payments):
    payments.loan.status = PaymentStatusEnum.paid
    with pytest.raises(ConflictError):
        await payments.service.register_payment(OWNER, "loan-1", _payment(), "key-1", TODAY)
    assert payments.model.inserted == []

    payments.loan.status = PaymentStatusEnum.pending
    result = await payments.service.register_payment(OWNER, "loan-1", _payment(), "key-1", TODAY)
    assert result["loan"]["total_paid"] == 100.0
    assert len(payments.model.inserted) == 1


@pytest.mark.asyncio
async def test_interest_only_payment_is_recorded_and_reverted(payments):
    result = await payments.service.register_payment(
        OWNER, "loan-1", _payment(amount=30, is_interest_only=True), None, TODAY,
    )

    loan = payments.loan
    payment = payments.model.inserted[0]
    assert payment.principal_paid == 0.0
    assert payment.interest_paid == 30
    assert loan.interest_only_paid == 30.0
    assert loan.total_paid == 0.0
    assert loan.remaining_balance == 300.0
    assert loan.installment_dates == [date(2024, 2, 10), date(2024, 3, 10), date(2024, 4, 10)]
    assert result["loan"]["remaining_balance"] == 300.0

    await payments.service.delete_payment(OWNER, str(payment.id), TODAY)
    assert loan.interest_only_paid == 0.0
    assert loan.installment_dates == [date(2024, 1, 10), date(2024, 2, 10), date(2024, 3, 10)]
    assert payments.model.docs == []
