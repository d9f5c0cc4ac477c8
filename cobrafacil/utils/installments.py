"""
Installment schedules: due-date generation, the loan simulator and the
per-installment bookkeeping shared by payments, reminders and overdue checks.

Loan-like arguments only need the attributes of `Loan` that a function
reads, so plain objects work as well as database documents.
"""

import calendar
import math
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from cobrafacil.schemas.loan_schema import InterestModeEnum, PaymentTypeEnum
from cobrafacil.utils.calculations import calculate_total_interest, format_date
from cobrafacil.utils.holidays import is_holiday

# Days between installments for the non-monthly payment types
DATE_INTERVALS = {
    PaymentTypeEnum.daily: 1,
    PaymentTypeEnum.weekly: 7,
    PaymentTypeEnum.biweekly: 15,
    PaymentTypeEnum.single: 30,
}

MAX_INSTALLMENTS = {
    PaymentTypeEnum.single: 1,
    PaymentTypeEnum.daily: 365,
    PaymentTypeEnum.weekly: 52,
    PaymentTypeEnum.biweekly: 26,
    PaymentTypeEnum.installment: 120,
}

# An installment counts as paid once 99% of its value has been received
PAID_THRESHOLD = 0.99

NUMBER_EMOJIS = {1: "1️⃣", 2: "2️⃣", 3: "3️⃣", 4: "4️⃣", 5: "5️⃣", 6: "6️⃣", 7: "7️⃣", 8: "8️⃣", 9: "9️⃣"}


def add_months(value: date, months: int, day: Optional[int] = None) -> date:
    """Same day `months` later, clamped to the month's last day; `day` overrides the day of month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(day or value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def max_installments(payment_type: PaymentTypeEnum) -> int:
    return MAX_INSTALLMENTS.get(PaymentTypeEnum(payment_type), 120)


def _is_skipped(value: date, skip_sundays: bool, skip_holidays: bool, skip_saturdays: bool = False) -> bool:
    if skip_saturdays and value.weekday() == 5:
        return True
    if skip_sundays and value.weekday() == 6:
        return True
    return skip_holidays and is_holiday(value)


def _next_business_days(
    after: date, count: int, skip_sundays: bool, skip_holidays: bool, skip_saturdays: bool = False
) -> List[date]:
    dates: List[date] = []
    current = after
    while len(dates) < count:
        current = current + timedelta(days=1)
        if not _is_skipped(current, skip_sundays, skip_holidays, skip_saturdays):
            dates.append(current)
    return dates


def generate_installment_dates(
    start: date,
    count: int,
    payment_type: PaymentTypeEnum,
    skip_sundays: bool = False,
    skip_holidays: bool = False,
    skip_saturdays: bool = False,
) -> List[date]:
    """
    Due dates for a new loan, counted from `start`.

    Monthly installments fall on the same day of each following month
    (clamped to the month's last day). Daily loans may skip Saturdays,
    Sundays and national holidays.
    """
    payment_type = PaymentTypeEnum(payment_type)
    if payment_type == PaymentTypeEnum.single:
        count = 1
    if count <= 0:
        raise ValueError("count must be positive")

    if payment_type == PaymentTypeEnum.installment:
        return [add_months(start, i + 1) for i in range(count)]

    if payment_type == PaymentTypeEnum.daily and (skip_saturdays or skip_sundays or skip_holidays):
        return _next_business_days(start, count, skip_sundays, skip_holidays, skip_saturdays)

    interval = DATE_INTERVALS[payment_type]
    return [start + timedelta(days=interval * (i + 1)) for i in range(count)]


# Continues a daily schedule one day at a time from its last date
def generate_extra_daily_dates(
    existing: List[date],
    count: int,
    skip_sundays: bool = False,
    skip_holidays: bool = False,
    skip_saturdays: bool = False,
) -> List[date]:
    if count <= 0:
        raise ValueError("count must be positive")
    last = existing[-1] if existing else date.today()
    return _next_business_days(last, count, skip_sundays, skip_holidays, skip_saturdays)


def shift_date(value: date, payment_type: PaymentTypeEnum, periods: int = 1) -> date:
    payment_type = PaymentTypeEnum(payment_type)
    if payment_type == PaymentTypeEnum.installment:
        return add_months(value, periods)
    return value + timedelta(days=DATE_INTERVALS[payment_type] * periods)


def build_schedule(
    principal: float,
    rate: float,
    installments: int,
    payment_type: PaymentTypeEnum,
    interest_mode: InterestModeEnum,
    start: date,
) -> List[Dict[str, Any]]:
    payment_type = PaymentTypeEnum(payment_type)
    n = 1 if payment_type == PaymentTypeEnum.single else installments
    dates = generate_installment_dates(start, n, payment_type)

    if payment_type == PaymentTypeEnum.daily:
        # rate is the daily profit; the principal comes back with the last day
        schedule = []
        for i, due in enumerate(dates):
            is_last = i == n - 1
            schedule.append({
                "number": i + 1,
                "due_date": due,
                "principal": principal if is_last else 0.0,
                "interest": rate,
                "total": rate + principal if is_last else rate,
                "remaining_balance": 0.0 if is_last else principal,
            })
        return schedule

    total_interest = calculate_total_interest(principal, rate, n, interest_mode)
    principal_part = principal / n
    interest_part = total_interest / n
    return [
        {
            "number": i + 1,
            "due_date": due,
            "principal": principal_part,
            "interest": interest_part,
            "total": principal_part + interest_part,
            "remaining_balance": max(0.0, principal - principal_part * (i + 1)),
        }
        for i, due in enumerate(dates)
    ]


def simulate_loan(
    principal: float,
    rate: float,
    installments: int,
    payment_type: PaymentTypeEnum,
    interest_mode: InterestModeEnum,
    start: date,
) -> Dict[str, Any]:
    if principal <= 0:
        raise ValueError("principal must be positive")

    payment_type = PaymentTypeEnum(payment_type)
    interest_mode = InterestModeEnum(interest_mode)
    n = 1 if payment_type == PaymentTypeEnum.single else installments
    if n > max_installments(payment_type):
        raise ValueError(f"{payment_type.value} loans allow at most {max_installments(payment_type)} installments")

    schedule = build_schedule(principal, rate, n, payment_type, interest_mode, start)

    if payment_type == PaymentTypeEnum.daily:
        total_interest = rate * n
        value = rate
        comparison = None
    else:
        total_interest = calculate_total_interest(principal, rate, n, interest_mode)
        value = (principal + total_interest) / n
        comparison = {}
        for mode in InterestModeEnum:
            interest = calculate_total_interest(principal, rate, n, mode)
            comparison[mode.value] = {"interest": interest, "total": principal + interest}

    return {
        "principal_amount": principal,
        "interest_rate": rate,
        "installments": n,
        "payment_type": payment_type,
        "interest_mode": interest_mode,
        "total_interest": total_interest,
        "total_amount": principal + total_interest,
        "installment_value": value,
        "effective_rate": total_interest / principal * 100,
        "schedule": schedule,
        "comparison": comparison,
    }


def total_to_receive(loan) -> float:
    return (loan.remaining_balance or 0) + (loan.total_paid or 0)


# Cash received on a loan, interest-only payments included
def amount_received(loan) -> float:
    return (loan.total_paid or 0) + (getattr(loan, "interest_only_paid", 0) or 0)


def schedule_paid(loan) -> float:
    """Amount paid towards the current schedule (payments made before a renegotiation excluded)."""
    return max(0.0, (loan.total_paid or 0) - (getattr(loan, "paid_before_renegotiation", 0) or 0))


def installment_value(loan) -> float:
    n = max(1, loan.installments or 1)
    return ((loan.remaining_balance or 0) + schedule_paid(loan)) / n


def _partial(loan) -> Dict[str, float]:
    return dict(getattr(loan, "partial_payments", None) or {})


def paid_installments_count(loan) -> int:
    """Number of leading installments that are fully paid."""
    n = max(1, loan.installments or 1)
    value = installment_value(loan)
    if value <= 0:
        return n

    partial = _partial(loan)
    if not partial:
        return min(n, int(math.floor(schedule_paid(loan) / value + 1e-9)))

    count = 0
    for i in range(n):
        if partial.get(str(i), 0) >= value * PAID_THRESHOLD:
            count += 1
        else:
            break
    return count


def next_due_date(loan) -> Optional[date]:
    dates = list(loan.installment_dates or [])
    paid = paid_installments_count(loan)
    if paid < len(dates):
        return dates[paid]
    return loan.due_date


# Spreads a payment over the installments in order, filling the earliest first
def allocate_payment(loan, amount: float) -> Dict[str, float]:
    n = max(1, loan.installments or 1)
    value = installment_value(loan)
    partial = _partial(loan)
    left = amount

    for i in range(n):
        if left <= 0:
            break
        key = str(i)
        paid = partial.get(key, 0)
        room = value - paid
        if room <= 0.005:
            continue
        applied = room if i < n - 1 else left
        applied = min(applied, left)
        partial[key] = round(paid + applied, 2)
        left -= applied

    return partial


# Removes a previously allocated amount starting from the latest installment
def deallocate_payment(loan, amount: float) -> Dict[str, float]:
    n = max(1, loan.installments or 1)
    partial = _partial(loan)
    left = amount

    for i in reversed(range(n)):
        if left <= 0:
            break
        key = str(i)
        paid = partial.get(key, 0)
        if paid <= 0:
            continue
        removed = min(paid, left)
        remaining = round(paid - removed, 2)
        if remaining > 0:
            partial[key] = remaining
        else:
            partial.pop(key, None)
        left -= removed

    return partial


def installment_status_list(
    dates: List[date],
    paid_count: int,
    total: int,
    today: Optional[date] = None,
    compact: bool = False,
    max_to_show: int = 6,
) -> str:
    if not dates or total == 0:
        return ""

    today = today or date.today()
    count = min(len(dates), total)
    limit = max_to_show if compact else count

    lines = ["", "📊 *STATUS DAS PARCELAS:*"]
    shown = 0
    for i in range(count):
        if shown >= limit:
            break
        due = dates[i]
        if i < paid_count:
            emoji, status = "✅", "Paga"
        elif due < today:
            emoji, status = "🔴", "Em Atraso"
        else:
            emoji, status = "⏳", "Em Aberto"
        number = NUMBER_EMOJIS.get(i + 1, f"{i + 1}.")
        lines.append(f"{number} {emoji} {format_date(due)} - {status}")
        shown += 1

    remaining = count - shown
    if remaining > 0:
        suffix = "s" if remaining > 1 else ""
        lines.append(f"   _... e mais {remaining} parcela{suffix}_")

    return "\n".join(lines) + "\n"
