from datetime import date

import pytest

from cobrafacil.schemas.loan_schema import InterestModeEnum, InterestTypeEnum, OverdueConfig
from cobrafacil.utils.calculations import (
    calculate_compound_interest,
    calculate_compound_interest_pmt,
    calculate_daily_penalty,
    calculate_interest,
    calculate_overdue_penalty,
    calculate_pmt,
    calculate_rate_from_pmt,
    calculate_simple_interest,
    calculate_total_interest,
    format_currency,
    format_date,
    get_client_type_label,
    get_payment_status_label,
)


def test_simple_interest_uses_daily_rate():
    # 3% a month is 0.1% a day
    assert calculate_simple_interest(1000, 3, 30) == pytest.approx(30.0)


def test_compound_interest_exceeds_simple():
    compound = calculate_compound_interest(1000, 3, 30)
    assert compound == pytest.approx(30.439, abs=0.01)
    assert compound > calculate_simple_interest(1000, 3, 30)


def test_calculate_interest_dispatches_on_type():
    assert calculate_interest(1000, 3, 30, InterestTypeEnum.simple) == pytest.approx(30.0)
    assert calculate_interest(1000, 3, 30, "compound") == pytest.approx(calculate_compound_interest(1000, 3, 30))


def test_pmt_price_table():
    assert calculate_pmt(1000, 10, 2) == pytest.approx(576.19, abs=0.01)
    assert calculate_compound_interest_pmt(1000, 10, 2) == pytest.approx(152.38, abs=0.01)


def test_pmt_zero_rate_splits_principal():
    assert calculate_pmt(900, 0, 3) == pytest.approx(300.0)


def test_pmt_rejects_non_positive_installments():
    with pytest.raises(ValueError):
        calculate_pmt(1000, 5, 0)


def test_rate_from_pmt_recovers_rate():
    pmt = calculate_pmt(1000, 5, 3)
    assert calculate_rate_from_pmt(pmt, 1000, 3) == pytest.approx(5.0, abs=0.01)
    assert calculate_rate_from_pmt(250, 1000, 4) == 0.0


@pytest.mark.parametrize(
    "mode,expected",
    [
        (InterestModeEnum.per_installment, 300.0),
        (InterestModeEnum.on_total, 100.0),
        (InterestModeEnum.compound, 206.34),
    ],
)
def test_total_interest_by_mode(mode, expected):
    assert calculate_total_interest(1000, 10, 3, mode) == pytest.approx(expected, abs=0.01)


def test_overdue_penalty():
    assert calculate_overdue_penalty(1000, 3, date(2024, 1, 1), today=date(2024, 1, 11)) == (10, pytest.approx(10.0))
    assert calculate_overdue_penalty(1000, 3, date(2024, 1, 1), today=date(2024, 1, 1)) == (0, 0.0)


@pytest.mark.parametrize(
    "kind,value,expected",
    [
        ("percentage", 1, 5.0),
        ("percentage_total", 3, 0.5),
        ("fixed", 7, 7.0),
    ],
)
def test_daily_penalty(kind, value, expected):
    config = OverdueConfig(type=kind, value=value)
    assert calculate_daily_penalty(config, 500) == pytest.approx(expected)


def test_format_currency_brazilian():
    assert format_currency(1234.56) == "R$ 1.234,56"
    assert format_currency(1000000) == "R$ 1.000.000,00"
    assert format_currency(-5) == "-R$ 5,00"


def test_format_date():
    assert format_date(date(2024, 3, 5)) == "05/03/2024"


def test_labels():
    assert get_payment_status_label("overdue") == "Atrasado"
    assert get_client_type_label("monthly") == "Mensalidade"
    assert get_payment_status_label("unknown") == "unknown"


@pytest.mark.parametrize("principal,rate,days", [(0, 0, 0), (1000, 3, 30), (250.5, 12.5, 7), (1, 0.1, 365)])
def test_simple_interest_formula(principal, rate, days):
    assert calculate_simple_interest(principal, rate, days) == pytest.approx(principal * (rate / 30 / 100) * days)


@pytest.mark.parametrize("rate", [0.5, 3, 20])
def test_compound_interest_grows_with_days(rate):
    values = [calculate_compound_interest(1000, rate, d) for d in range(0, 120, 10)]
    assert all(a < b for a, b in zip(values, values[1:]))
