from datetime import date

import pytest

from cobrafacil.utils.installments import (
    add_months,
    amount_received,
    allocate_payment,
    deallocate_payment,
    generate_extra_daily_dates,
    generate_installment_dates,
    installment_status_list,
    installment_value,
    next_due_date,
    paid_installments_count,
    schedule_paid,
    shift_date,
    simulate_loan,
)


def test_add_months_clamps_to_month_end():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)


def test_monthly_dates():
    dates = generate_installment_dates(date(2024, 1, 31), 3, "installment")
    assert dates == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


def test_weekly_and_single_dates():
    assert generate_installment_dates(date(2024, 1, 1), 2, "weekly") == [date(2024, 1, 8), date(2024, 1, 15)]
    assert generate_installment_dates(date(2024, 1, 1), 5, "single") == [date(2024, 1, 31)]


def test_daily_dates_skip_sundays():
    # 2024-06-02 is a Sunday
    dates = generate_installment_dates(date(2024, 6, 1), 3, "daily", skip_sundays=True)
    assert dates == [date(2024, 6, 3), date(2024, 6, 4), date(2024, 6, 5)]


def test_daily_dates_skip_holidays():
    # 2024-11-15 is Proclamação da República, 2024-11-17 a Sunday
    assert generate_installment_dates(date(2024, 11, 14), 2, "daily", skip_holidays=True) == [
        date(2024, 11, 16),
        date(2024, 11, 17),
    ]
    assert generate_installment_dates(date(2024, 11, 14), 2, "daily", True, True) == [
        date(2024, 11, 16),
        date(2024, 11, 18),
    ]


def test_extra_daily_dates_continue_schedule():
    assert generate_extra_daily_dates([date(2024, 6, 1)], 2, skip_sundays=True) == [date(2024, 6, 3), date(2024, 6, 4)]
    with pytest.raises(ValueError):
        generate_extra_daily_dates([date(2024, 6, 1)], 0)


def test_shift_date():
    assert shift_date(date(2024, 1, 31), "installment") == date(2024, 2, 29)
    assert shift_date(date(2024, 1, 10), "weekly", -1) == date(2024, 1, 3)
    assert shift_date(date(2024, 1, 10), "biweekly", 2) == date(2024, 2, 9)


def test_installment_value_and_paid_count(make_loan):
    loan = make_loan(remaining_balance=150.0, total_paid=250.0, installments=4)
    assert installment_value(loan) == pytest.approx(100.0)
    assert paid_installments_count(loan) == 2


def test_installment_value_ignores_payments_before_renegotiation(make_loan):
    loan = make_loan(remaining_balance=200.0, total_paid=500.0, paid_before_renegotiation=400.0, installments=3)
    assert schedule_paid(loan) == pytest.approx(100.0)
    assert installment_value(loan) == pytest.approx(100.0)
    assert paid_installments_count(loan) == 1


def test_paid_count_from_partial_payments(make_loan):
    loan = make_loan(remaining_balance=200.0, total_paid=100.0, partial_payments={"0": 100.0, "2": 100.0})
    # installment 1 is still open, so installment 2 does not count
    assert paid_installments_count(loan) == 1
    assert next_due_date(loan) == date(2024, 2, 10)


def test_allocate_fills_earliest_installments(make_loan):
    loan = make_loan(remaining_balance=300.0, total_paid=100.0, installments=4, partial_payments={"0": 100.0})
    assert allocate_payment(loan, 150) == {"0": 100.0, "1": 100.0, "2": 50.0}


def test_allocate_puts_overpayment_on_last_installment(make_loan):
    loan = make_loan(remaining_balance=100.0, total_paid=200.0, partial_payments={"0": 100.0, "1": 100.0})
    assert allocate_payment(loan, 130)["2"] == pytest.approx(130.0)


def test_deallocate_removes_from_latest(make_loan):
    loan = make_loan(partial_payments={"0": 100.0, "1": 100.0, "2": 50.0}, installments=4)
    assert deallocate_payment(loan, 120) == {"0": 100.0, "1": 30.0}


def test_status_list_marks_each_installment():
    dates = [date(2024, 6, 1), date(2024, 6, 10), date(2024, 6, 20)]
    text = installment_status_list(dates, 1, 3, today=date(2024, 6, 15))
    assert "✅" in text and "🔴" in text and "⏳" in text
    assert "Em Atraso" in text


def test_status_list_compact_mentions_hidden():
    dates = [date(2024, 6, d) for d in range(1, 11)]
    text = installment_status_list(dates, 0, 10, today=date(2024, 5, 1), compact=True, max_to_show=6)
    assert "mais 4 parcelas" in text


def test_simulate_installment_loan():
    result = simulate_loan(1000, 10, 3, "installment", "per_installment", date(2024, 1, 10))
    assert result["total_interest"] == pytest.approx(300.0)
    assert result["installment_value"] == pytest.approx(433.33, abs=0.01)
    assert result["effective_rate"] == pytest.approx(30.0)
    assert len(result["schedule"]) == 3
    assert result["schedule"][0]["due_date"] == date(2024, 2, 10)
    assert result["comparison"]["on_total"]["interest"] == pytest.approx(100.0)
    assert result["comparison"]["compound"]["interest"] == pytest.approx(206.34, abs=0.01)


def test_simulate_daily_loan_returns_principal_on_last_day():
    result = simulate_loan(1000, 50, 20, "daily", "on_total", date(2024, 1, 1))
    assert result["total_interest"] == pytest.approx(1000.0)
    assert result["installment_value"] == pytest.approx(50.0)
    assert result["comparison"] is None
    assert result["schedule"][-1]["total"] == pytest.approx(1050.0)
    assert result["schedule"][0]["total"] == pytest.approx(50.0)


def test_simulate_rejects_too_many_installments():
    with pytest.raises(ValueError):
        simulate_loan(1000, 10, 53, "weekly", "per_installment", date(2024, 1, 1))
    with pytest.raises(ValueError):
        simulate_loan(0, 10, 3, "installment", "per_installment", date(2024, 1, 1))


def test_daily_dates_skip_weekends():
    # 2024-06-07 is a Friday
    dates = generate_installment_dates(date(2024, 6, 7), 3, "daily", skip_sundays=True, skip_saturdays=True)
    assert dates == [date(2024, 6, 10), date(2024, 6, 11), date(2024, 6, 12)]

    only_saturdays = generate_installment_dates(date(2024, 6, 7), 3, "daily", skip_saturdays=True)
    assert only_saturdays == [date(2024, 6, 9), date(2024, 6, 10), date(2024, 6, 11)]


def test_extra_daily_dates_skip_saturdays():
    existing = [date(2024, 6, 6), date(2024, 6, 7)]
    assert generate_extra_daily_dates(existing, 2, skip_saturdays=True) == [date(2024, 6, 9), date(2024, 6, 10)]


def test_add_months_keeps_requested_day():
    assert add_months(date(2024, 2, 29), 1, day=31) == date(2024, 3, 31)
    assert add_months(date(2024, 3, 31), 1, day=31) == date(2024, 4, 30)


def test_amount_received_includes_interest_only_payments(make_loan):
    assert amount_received(make_loan(total_paid=100.0, interest_only_paid=30.0)) == 130.0
    assert amount_received(make_loan(total_paid=100.0, interest_only_paid=None)) == 100.0
