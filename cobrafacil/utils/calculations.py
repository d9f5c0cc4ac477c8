"""
Closed-form interest formulas used across loans, reports and the simulator.

Rates are monthly percentages unless stated otherwise. A daily rate is the
monthly rate divided by 30.
"""

import math
from datetime import date
from typing import Optional, Tuple

from cobrafacil.schemas.loan_schema import InterestTypeEnum, InterestModeEnum, OverdueConfig, OverdueConfigTypeEnum

DAYS_PER_MONTH = 30


def _daily_rate(monthly_rate: float) -> float:
    return monthly_rate / DAYS_PER_MONTH / 100


def calculate_simple_interest(principal: float, rate: float, days: float) -> float:
    return principal * _daily_rate(rate) * days


def calculate_compound_interest(principal: float, rate: float, days: float) -> float:
    amount = principal * math.pow(1 + _daily_rate(rate), days)
    return amount - principal


# Dispatches to the simple or compound daily accrual formula
def calculate_interest(principal: float, rate: float, days: float, interest_type: InterestTypeEnum) -> float:
    if InterestTypeEnum(interest_type) == InterestTypeEnum.simple:
        return calculate_simple_interest(principal, rate, days)
    return calculate_compound_interest(principal, rate, days)


def calculate_pmt(principal: float, monthly_rate: float, installments: int) -> float:
    """
    Fixed installment of a Price (French) amortisation:
    PMT = PV * [i * (1 + i)^n] / [(1 + i)^n - 1]
    """
    if installments <= 0:
        raise ValueError("installments must be positive")

    i = monthly_rate / 100
    if i == 0 or not math.isfinite(i):
        return principal / installments

    factor = math.pow(1 + i, installments)
    pmt = principal * (i * factor) / (factor - 1)
    return pmt if math.isfinite(pmt) else principal / installments


def calculate_compound_interest_pmt(principal: float, monthly_rate: float, installments: int) -> float:
    pmt = calculate_pmt(principal, monthly_rate, installments)
    return pmt * installments - principal


def calculate_rate_from_pmt(pmt: float, principal: float, installments: int) -> float:
    """
    Recovers the monthly rate (percent) that yields `pmt` for a Price loan,
    using Newton-Raphson with a numeric derivative.
    """
    if installments <= 0:
        raise ValueError("installments must be positive")

    if abs(pmt - principal / installments) < 0.01:
        return 0.0

    rate = 0.1
    max_iterations = 100
    tolerance = 1e-7
    h = 1e-4

    def _pmt_at(r: float) -> float:
        factor = math.pow(1 + r, installments)
        return principal * (r * factor) / (factor - 1)

    for _ in range(max_iterations):
        calculated = _pmt_at(rate)
        f = calculated - pmt
        df = (_pmt_at(rate + h) - calculated) / h

        if abs(df) < tolerance:
            break

        new_rate = rate - f / df
        if abs(new_rate - rate) < tolerance:
            rate = new_rate
            break

        # keep the rate positive
        rate = max(0.0001, new_rate)

    return rate * 100


# Total contractual interest for a loan according to how the rate is applied
def calculate_total_interest(
    principal: float,
    rate: float,
    installments: int,
    interest_mode: InterestModeEnum,
) -> float:
    n = max(1, installments or 1)
    mode = InterestModeEnum(interest_mode)
    if mode == InterestModeEnum.on_total:
        return principal * (rate / 100)
    if mode == InterestModeEnum.compound:
        return calculate_compound_interest_pmt(principal, rate, n)
    return principal * (rate / 100) * n


def calculate_days_between(start: date, end: date) -> int:
    return abs((end - start).days)


def calculate_accumulated_interest(
    principal: float,
    rate: float,
    start: date,
    interest_type: InterestTypeEnum,
    today: Optional[date] = None,
) -> float:
    days = calculate_days_between(start, today or date.today())
    return calculate_interest(principal, rate, days, interest_type)


def calculate_overdue_penalty(
    remaining_balance: float,
    monthly_rate: float,
    due_date: date,
    today: Optional[date] = None,
) -> Tuple[int, float]:
    today = today or date.today()
    if today <= due_date:
        return 0, 0.0

    days_overdue = (today - due_date).days
    penalty = remaining_balance * _daily_rate(monthly_rate) * days_overdue
    return days_overdue, penalty


# Penalty accrued for a single day of delay under the loan's overdue config
def calculate_daily_penalty(config: OverdueConfig, total_to_receive: float) -> float:
    kind = OverdueConfigTypeEnum(config.type)
    if kind == OverdueConfigTypeEnum.percentage:
        return total_to_receive * (config.value / 100)
    if kind == OverdueConfigTypeEnum.percentage_total:
        return total_to_receive * (config.value / 100) / DAYS_PER_MONTH
    return config.value


def format_currency(value: float) -> str:
    """Formats a value as Brazilian Real, e.g. R$ 1.234,56."""
    sign = "-" if value < 0 else ""
    formatted = f"{abs(value):,.2f}"
    formatted = formatted.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {formatted}"


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def format_percentage(value: float) -> str:
    return f"{value:.2f}%"


PAYMENT_STATUS_LABELS = {
    "paid": "Pago",
    "pending": "Pendente",
    "overdue": "Atrasado",
}

CLIENT_TYPE_LABELS = {
    "loan": "Empréstimo",
    "monthly": "Mensalidade",
    "both": "Ambos",
}


def get_payment_status_label(status: str) -> str:
    status = getattr(status, "value", status)
    return PAYMENT_STATUS_LABELS.get(status, str(status))


def get_client_type_label(client_type: str) -> str:
    client_type = getattr(client_type, "value", client_type)
    return CLIENT_TYPE_LABELS.get(client_type, str(client_type))
