from datetime import date
from typing import Any, Dict, Iterable, Optional

from cobrafacil.helpers.message_builder import contract_id
from cobrafacil.helpers.object_id import parse_object_id
from cobrafacil.services.overdue_service import get_days_overdue, is_loan_overdue
from cobrafacil.utils.installments import (
    amount_received,
    installment_value,
    next_due_date,
    paid_installments_count,
    total_to_receive,
)


def serialize_document(doc, exclude: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    excluded = {"revision_id", "id"} | set(exclude or ())
    data = doc.model_dump(mode="json", exclude=excluded)
    data["id"] = str(doc.id) if doc.id is not None else None
    return data


def build_loan_response(loan, client_name: Optional[str] = None, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or date.today()
    data = serialize_document(loan)
    upcoming = next_due_date(loan)
    data.update({
        "contract_id": contract_id(loan.id),
        "client_name": client_name,
        "installment_value": round(installment_value(loan), 2),
        "paid_installments": paid_installments_count(loan),
        "total_to_receive": round(total_to_receive(loan), 2),
        "total_received": round(amount_received(loan), 2),
        "next_due_date": upcoming.isoformat() if upcoming else None,
        "is_overdue": is_loan_overdue(loan, today),
        "days_overdue": get_days_overdue(loan, today),
    })
    return data
