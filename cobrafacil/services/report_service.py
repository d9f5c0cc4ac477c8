from typing import Dict, Any, Iterable, List, Optional
from datetime import date, datetime, timedelta
import logging

from cobrafacil.database.models import Client, Loan, LoanPayment
from cobrafacil.services.client_score_service import score_overview
from cobrafacil.services.overdue_service import calculate_dynamic_overdue_interest, get_days_overdue, is_loan_overdue
from cobrafacil.utils.installments import amount_received, installment_value, next_due_date, total_to_receive

logger = logging.getLogger(__name__)

RECENT_DAYS = 7


def _status(loan) -> str:
    return getattr(loan.status, "value", loan.status)


def _is_open(loan) -> bool:
    return _status(loan) != "paid"


def _sum_by_loan(payments: Iterable[Any], field: str) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for p in payments:
        totals[p.loan_id] = totals.get(p.loan_id, 0.0) + (getattr(p, field, 0) or 0)
    return totals


def _iter_groups(sd: date, ed: date, gb: str):
    # yields formatted group labels between sd and ed inclusive
    if gb == 'day':
        cur = sd
        while cur <= ed:
            yield cur.strftime("%Y-%m-%d")
            cur = cur + timedelta(days=1)
    elif gb == 'month':
        y, m = sd.year, sd.month
        while (y < ed.year) or (y == ed.year and m <= ed.month):
            yield f"{y:04d}-{m:02d}"
            m += 1
            if m > 12:
                m = 1
                y += 1
    else:
        for yy in range(sd.year, ed.year + 1):
            yield f"{yy:04d}"


def _group_label(value: date, gb: str) -> str:
    if gb == 'month':
        return value.strftime("%Y-%m")
    if gb == 'year':
        return value.strftime("%Y")
    return value.strftime("%Y-%m-%d")


def compute_dashboard_stats(loans: List[Any], payments: List[Any], today: Optional[date] = None) -> Dict[str, Any]:
    """Headline numbers of the owner's dashboard; third-party loans are reported separately."""
    today = today or date.today()
    recent_start = today - timedelta(days=RECENT_DAYS - 1)
    loans = [l for l in loans if not l.is_third_party]
    loan_ids = {str(l.id) for l in loans}
    payments = [p for p in payments if p.loan_id in loan_ids]
    principal_received = _sum_by_loan(payments, "principal_paid")

    total_pending = 0.0
    pending_interest = 0.0
    overdue_interest = 0.0
    overdue_count = 0
    overdue_amount = 0.0
    due_today = 0
    due_today_amount = 0.0
    active_clients = set()

    for loan in loans:
        if not _is_open(loan):
            continue
        active_clients.add(loan.client_id)
        outstanding_principal = max(0.0, loan.principal_amount - principal_received.get(str(loan.id), 0.0))
        outstanding_principal = min(outstanding_principal, loan.remaining_balance or 0)
        total_pending += outstanding_principal
        pending_interest += max(0.0, (loan.remaining_balance or 0) - outstanding_principal)

        if is_loan_overdue(loan, today):
            overdue_count += 1
            overdue_amount += loan.remaining_balance or 0
            overdue_interest += calculate_dynamic_overdue_interest(loan, get_days_overdue(loan, today))
        if next_due_date(loan) == today:
            due_today += 1
            due_today_amount += installment_value(loan)

    return {
        "total_loaned": round(sum(l.principal_amount for l in loans), 2),
        "total_received": round(sum(amount_received(l) for l in loans), 2),
        "total_pending": round(total_pending, 2),
        "pending_interest": round(pending_interest, 2),
        "overdue_interest": round(overdue_interest, 2),
        "total_to_receive": round(total_pending + pending_interest + overdue_interest, 2),
        "overdue_count": overdue_count,
        "overdue_amount": round(overdue_amount, 2),
        "due_today": due_today,
        "due_today_amount": round(due_today_amount, 2),
        "active_clients": len(active_clients),
        "active_loans": sum(1 for l in loans if _is_open(l)),
        "contracts_last_7_days": sum(1 for l in loans if l.contract_date and l.contract_date >= recent_start),
        "received_last_7_days": round(sum(p.amount for p in payments if p.payment_date >= recent_start), 2),
    }


def compute_third_party_stats(loans: List[Any], payments: List[Any], today: Optional[date] = None) -> Dict[str, Any]:
    """Money lent on behalf of investors: what is on the street and what it earned."""
    today = today or date.today()
    loans = [l for l in loans if l.is_third_party]
    loan_ids = {str(l.id) for l in loans}
    payments = [p for p in payments if p.loan_id in loan_ids]
    principal_received = _sum_by_loan(payments, "principal_paid")

    active = [l for l in loans if _is_open(l)]
    on_street = sum(max(0.0, l.principal_amount - principal_received.get(str(l.id), 0.0)) for l in active)
    pending = sum(l.remaining_balance or 0 for l in active)
    overdue = [l for l in active if is_loan_overdue(l, today)]

    by_owner: Dict[str, Dict[str, Any]] = {}
    for loan in loans:
        name = loan.third_party_name or "Sem nome"
        entry = by_owner.setdefault(name, {"name": name, "loans": 0, "total_lent": 0.0, "pending": 0.0})
        entry["loans"] += 1
        entry["total_lent"] += loan.principal_amount
        if _is_open(loan):
            entry["pending"] += loan.remaining_balance or 0

    return {
        "active_count": len(active),
        "total_on_street": round(on_street, 2),
        "pending_amount": round(pending, 2),
        "pending_interest": round(max(0.0, pending - on_street), 2),
        "total_received": round(sum(amount_received(l) for l in loans), 2),
        "realized_profit": round(sum(p.interest_paid or 0 for p in payments), 2),
        "overdue_count": len(overdue),
        "overdue_amount": round(sum(l.remaining_balance or 0 for l in overdue), 2),
        "paid_count": len(loans) - len(active),
        "total_lent": round(sum(l.principal_amount for l in loans), 2),
        "by_third_party": sorted(by_owner.values(), key=lambda e: e["total_lent"], reverse=True),
    }


def compute_loans_over_time(loans: List[Any], start: date, end: date, group_by: str = 'day') -> Dict[str, Any]:
    counts: Dict[str, int] = {}
    amounts: Dict[str, float] = {}
    for loan in loans:
        contract = loan.contract_date or loan.start_date
        if contract < start or contract > end:
            continue
        label = _group_label(contract, group_by)
        counts[label] = counts.get(label, 0) + 1
        amounts[label] = amounts.get(label, 0.0) + loan.principal_amount

    labels = []
    series = []
    raw = []
    for label in _iter_groups(start, end, group_by):
        labels.append(label)
        series.append(counts.get(label, 0))
        raw.append({"group": label, "count": counts.get(label, 0), "amount": round(amounts.get(label, 0.0), 2)})

    return {
        "labels": labels,
        "series": series,
        "totals": {"total": sum(counts.values()), "amount": round(sum(amounts.values()), 2)},
        "raw": raw,
    }


def compute_dashboard_health(loans: List[Any], today: Optional[date] = None) -> Dict[str, Any]:
    """
    Portfolio health in 0-100.

    collection_rate compares what was received with what was due up to today;
    overdue_ratio is the share of open loans that are overdue. The score
    weighs them 60/40.
    """
    today = today or date.today()
    due_so_far = 0.0
    received = 0.0
    active = 0
    overdue = 0

    for loan in loans:
        if loan.is_historical:
            continue
        dates = list(loan.installment_dates or []) or [loan.due_date]
        due_count = sum(1 for d in dates if d <= today)
        due_so_far += min(total_to_receive(loan), installment_value(loan) * due_count)
        received += amount_received(loan)
        if _is_open(loan):
            active += 1
            if is_loan_overdue(loan, today):
                overdue += 1

    collection_rate = min(100.0, received / due_so_far * 100) if due_so_far > 0 else 100.0
    overdue_ratio = overdue / active * 100 if active else 0.0
    score = round(max(0.0, min(100.0, 0.6 * collection_rate + 0.4 * (100 - overdue_ratio))))

    if score >= 80:
        label = "Saudável"
    elif score >= 60:
        label = "Atenção"
    else:
        label = "Crítico"

    return {
        "collection_rate": round(collection_rate, 1),
        "overdue_ratio": round(overdue_ratio, 1),
        "active_loans": active,
        "overdue_loans": overdue,
        "health_score": score,
        "health_label": label,
    }


class ReportService:
    """Aggregated figures for the dashboard and the reports page."""

    async def _load(self, owner_id: str):
        loans = await Loan.find({"user_id": owner_id}).to_list()
        payments = await LoanPayment.find({"user_id": owner_id}).to_list()
        return loans, payments

    async def dashboard_stats(self, owner_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        loans, payments = await self._load(owner_id)
        stats = compute_dashboard_stats(loans, payments, today)
        stats["total_clients"] = await Client.find({"user_id": owner_id}).count()
        return stats

    async def third_party_stats(self, owner_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        loans, payments = await self._load(owner_id)
        return compute_third_party_stats(loans, payments, today)

    async def loans_over_time(self, owner_id: str, start: date, end: date, group_by: str = 'day') -> Dict[str, Any]:
        if start > end:
            raise ValueError("start_date must not be after end_date")
        loans = await Loan.find({"user_id": owner_id}).to_list()
        return compute_loans_over_time(loans, start, end, group_by)

    async def payments_report(self, owner_id: str, start: date, end: date) -> Dict[str, Any]:
        if start > end:
            raise ValueError("start_date must not be after end_date")

        payments = await LoanPayment.find({
            "user_id": owner_id,
            "payment_date": {
                "$gte": datetime.combine(start, datetime.min.time()),
                "$lte": datetime.combine(end, datetime.min.time()),
            },
        }).sort("payment_date").to_list()

        loans = {str(l.id): l for l in await Loan.find({"user_id": owner_id}).to_list()}
        clients = {str(c.id): c.full_name for c in await Client.find({"user_id": owner_id}).to_list()}

        rows = []
        for p in payments:
            loan = loans.get(p.loan_id)
            rows.append({
                "payment_id": str(p.id),
                "payment_date": p.payment_date.isoformat(),
                "loan_id": p.loan_id,
                "client_name": clients.get(loan.client_id) if loan else None,
                "amount": round(p.amount, 2),
                "principal_paid": round(p.principal_paid or 0, 2),
                "interest_paid": round(p.interest_paid or 0, 2),
                "is_interest_only": p.is_interest_only,
            })

        return {
            "data": rows,
            "totals": {
                "count": len(rows),
                "amount": round(sum(r["amount"] for r in rows), 2),
                "principal": round(sum(r["principal_paid"] for r in rows), 2),
                "interest": round(sum(r["interest_paid"] for r in rows), 2),
            },
        }

    async def dashboard_health(self, owner_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        loans = await Loan.find({"user_id": owner_id}).to_list()
        return compute_dashboard_health(loans, today)

    async def score_report(self, owner_id: str) -> Dict[str, Any]:
        clients = await Client.find({"user_id": owner_id}).to_list()
        return score_overview(clients)


report_service = ReportService()
