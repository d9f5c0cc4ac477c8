"""
Client reputation score.

The score is derived from the client's loans and recomputed from scratch
after every loan or payment change:

    start at 100
    +3 for every paid loan
    -20 for every overdue loan, and -10 more when it is over 30 days late
    +15 loyalty bonus with 3+ loans and at least 80% of them paid on time
    +1 per 1% of the principal lent recovered as penalty interest (max +10)
    clamped to [0, 150]
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel

from cobrafacil.core.exceptions import NotFoundError
from cobrafacil.database.models import Client, Loan, LoanPayment
from cobrafacil.helpers.response_builder import parse_object_id
from cobrafacil.utils.installments import amount_received

logger = logging.getLogger(__name__)

BASE_SCORE = 100
MIN_SCORE = 0
MAX_SCORE = 150
ON_TIME_POINTS = 3
LATE_PENALTY = 20
CRITICAL_LATE_PENALTY = 10
CRITICAL_LATE_DAYS = 30
LOYALTY_BONUS = 15
LOYALTY_MIN_LOANS = 3
LOYALTY_MIN_RATIO = 0.8
MAX_RECOVERY_BONUS = 10


class ClientScoreData(BaseModel):
    score: int
    total_loans: int
    total_paid: float
    on_time_payments: int
    late_payments: int
    critical_late_payments: int
    recovery_bonus: int
    score_label: str


def score_label(score: int) -> str:
    if score >= 120:
        return "Excelente"
    if score >= 100:
        return "Bom"
    if score >= 70:
        return "Regular"
    if score >= 40:
        return "Ruim"
    return "Crítico"


def score_icon(score: int) -> str:
    if score >= 120:
        return "⭐"
    if score >= 100:
        return "👍"
    if score >= 70:
        return "👌"
    if score >= 40:
        return "⚠️"
    return "🚨"


def clamp_score(score: float) -> int:
    return int(max(MIN_SCORE, min(MAX_SCORE, score)))


def recovery_bonus(loans: Iterable[Any], interest_received: Mapping[str, float]) -> int:
    """Bonus for penalty interest collected beyond what the contracts foresaw."""
    loans = list(loans)
    lent = sum(loan.principal_amount or 0 for loan in loans)
    if lent <= 0:
        return 0

    extra = 0.0
    for loan in loans:
        received = interest_received.get(str(loan.id), 0.0)
        extra += max(0.0, received - (loan.total_interest or 0))

    return min(MAX_RECOVERY_BONUS, int(extra / lent * 100))


def compute_client_score(
    loans: Iterable[Any],
    interest_received: Optional[Mapping[str, float]] = None,
    today: Optional[date] = None,
) -> ClientScoreData:
    loans = list(loans)
    today = today or date.today()

    on_time = 0
    late = 0
    critical = 0
    total_paid = 0.0

    for loan in loans:
        total_paid += amount_received(loan)
        status = getattr(loan.status, "value", loan.status)
        if status == "paid":
            on_time += 1
        elif status == "overdue":
            late += 1
            if (today - loan.due_date).days > CRITICAL_LATE_DAYS:
                critical += 1

    score = BASE_SCORE
    total_payments = on_time + late
    if total_payments > 0:
        score += on_time * ON_TIME_POINTS - late * LATE_PENALTY - critical * CRITICAL_LATE_PENALTY
        if len(loans) >= LOYALTY_MIN_LOANS and on_time / total_payments >= LOYALTY_MIN_RATIO:
            score += LOYALTY_BONUS

    bonus = recovery_bonus(loans, interest_received or {}) if loans else 0
    score = clamp_score(score + bonus)

    return ClientScoreData(
        score=score,
        total_loans=len(loans),
        total_paid=round(total_paid, 2),
        on_time_payments=on_time,
        late_payments=late,
        critical_late_payments=critical,
        recovery_bonus=bonus,
        score_label=score_label(score),
    )


def score_overview(clients: Iterable[Any]) -> Dict[str, Any]:
    """Average score and label distribution over a set of clients."""
    clients = list(clients)
    distribution = {label: 0 for label in ("Excelente", "Bom", "Regular", "Ruim", "Crítico")}
    for client in clients:
        distribution[score_label(client.score)] += 1

    total = len(clients)
    average = round(sum(c.score for c in clients) / total, 1) if total else 0.0
    return {
        "total_clients": total,
        "average_score": average,
        "average_label": score_label(int(average)) if total else None,
        "distribution": distribution,
        "on_time_payments": sum(c.on_time_payments or 0 for c in clients),
        "late_payments": sum(c.late_payments or 0 for c in clients),
    }


class ClientScoreService:

    # Sums interest received per loan from its payments
    async def _interest_received(self, loan_ids: List[str]) -> Dict[str, float]:
        if not loan_ids:
            return {}
        payments = await LoanPayment.find({"loan_id": {"$in": loan_ids}}).to_list()
        totals: Dict[str, float] = {}
        for p in payments:
            totals[p.loan_id] = totals.get(p.loan_id, 0.0) + (p.interest_paid or 0)
        return totals

    async def update_client_score(self, client_id: str, today: Optional[date] = None) -> ClientScoreData:
        client = await Client.get(parse_object_id(client_id, "Client"))
        if client is None:
            raise NotFoundError("Client not found")

        loans = await Loan.find({"client_id": client_id}).to_list()
        interest = await self._interest_received([str(loan.id) for loan in loans])
        data = compute_client_score(loans, interest, today)

        client.score = data.score
        client.total_loans = data.total_loans
        client.total_paid = data.total_paid
        client.on_time_payments = data.on_time_payments
        client.late_payments = data.late_payments
        client.score_updated_at = datetime.utcnow()
        await client.save()

        logger.info("Client %s score updated to %d (%s)", client_id, data.score, data.score_label)
        return data

    # Score refresh after a mutation; failures are logged, never raised
    async def refresh_quietly(self, client_id: str) -> None:
        try:
            await self.update_client_score(client_id)
        except Exception:
            logger.exception("Failed to update score for client %s", client_id)


client_score_service = ClientScoreService()
