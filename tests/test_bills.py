from datetime import date
from types import SimpleNamespace

from cobrafacil.schemas.bill_schema import BillStatusEnum
from cobrafacil.services.bill_service import bills_summary, effective_bill_status, next_recurrence

TODAY = date(2024, 6, 15)


def _bill(status="pending", due=TODAY, amount=100.0, paid_date=None, recurrence_months=None, recurrence_day=None):
    return SimpleNamespace(
        user_id="owner-1",
        description="Aluguel",
        payee_name="Imobiliária",
        amount=amount,
        due_date=due,
        status=status,
        paid_date=paid_date,
        notes=None,
        category="rent",
        is_recurring=recurrence_months is not None,
        recurrence_months=recurrence_months,
        recurrence_day=recurrence_day,
        pix_key=None,
    )


def test_effective_status():
    assert effective_bill_status(_bill("paid", due=date(2024, 1, 1)), TODAY) == BillStatusEnum.paid
    assert effective_bill_status(_bill(due=date(2024, 6, 14)), TODAY) == BillStatusEnum.overdue
    assert effective_bill_status(_bill(due=TODAY), TODAY) == BillStatusEnum.pending


def test_next_recurrence_clamps_to_month_end():
    assert next_recurrence(_bill(due=date(2024, 1, 31)))["due_date"] == date(2024, 2, 29)

    following = next_recurrence(_bill(due=date(2024, 1, 31), recurrence_months=3))
    assert following["due_date"] == date(2024, 4, 30)
    assert following["is_recurring"] is True
    assert following["amount"] == 100.0


def test_recurring_chain_returns_to_original_day():
    bill = _bill(due=date(2024, 1, 31), recurrence_months=1)
    dues = []
    for _ in range(4):
        fields = next_recurrence(bill)
        dues.append(fields["due_date"])
        bill = _bill(due=fields["due_date"], recurrence_months=1, recurrence_day=fields["recurrence_day"])
    assert dues == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30), date(2024, 5, 31)]


def test_next_recurrence_uses_stored_day():
    fields = next_recurrence(_bill(due=date(2024, 2, 28), recurrence_months=1, recurrence_day=30))
    assert fields["due_date"] == date(2024, 3, 30)
    assert fields["recurrence_day"] == 30


def test_bills_summary():
    bills = [
        _bill(due=TODAY, amount=100.0),
        _bill(due=date(2024, 6, 1), amount=50.0),
        _bill("paid", due=date(2024, 6, 5), amount=30.0, paid_date=date(2024, 6, 5)),
        _bill("paid", due=date(2024, 5, 5), amount=20.0, paid_date=date(2024, 5, 5)),
    ]
    summary = bills_summary(bills, TODAY)
    assert summary["total_pending"] == 100.0
    assert summary["pending_count"] == 1
    assert summary["due_today"] == 1
    assert summary["total_overdue"] == 50.0
    assert summary["overdue_count"] == 1
    assert summary["total_paid_this_month"] == 30.0
