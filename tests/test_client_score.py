from datetime import date
from types import SimpleNamespace

import pytest

from cobrafacil.core.exceptions import NotFoundError
from cobrafacil.services import client_score_service as score_module
from cobrafacil.services.client_score_service import (
    ClientScoreService,
    clamp_score,
    compute_client_score,
    recovery_bonus,
    score_icon,
    score_label,
    score_overview,
)

TODAY = date(2024, 6, 15)


def _loan(status, due=date(2024, 6, 1), principal=1000.0, total_interest=100.0, total_paid=0.0, loan_id="l1"):
    return SimpleNamespace(
        id=loan_id,
        status=status,
        due_date=due,
        principal_amount=principal,
        total_interest=total_interest,
        total_paid=total_paid,
    )


def test_new_client_starts_at_base_score():
    data = compute_client_score([], today=TODAY)
    assert data.score == 100
    assert data.score_label == "Bom"
    assert data.total_loans == 0


def test_paid_loans_earn_points_and_loyalty_bonus():
    loans = [_loan("paid", total_paid=1100, loan_id=f"l{i}") for i in range(3)]
    data = compute_client_score(loans, today=TODAY)
    # 100 + 3 * 3 + 15
    assert data.score == 124
    assert data.on_time_payments == 3
    assert data.total_paid == pytest.approx(3300)
    assert data.score_label == "Excelente"


def test_critical_overdue_costs_extra():
    data = compute_client_score([_loan("overdue", due=date(2024, 5, 1))], today=TODAY)
    assert data.late_payments == 1
    assert data.critical_late_payments == 1
    assert data.score == 70


def test_recent_overdue_is_not_critical():
    data = compute_client_score([_loan("overdue", due=date(2024, 6, 1))], today=TODAY)
    assert data.critical_late_payments == 0
    assert data.score == 80


def test_pending_loans_do_not_move_score():
    data = compute_client_score([_loan("pending")], today=TODAY)
    assert data.score == 100


def test_score_is_clamped():
    late = [_loan("overdue", due=date(2024, 1, 1), loan_id=f"l{i}") for i in range(10)]
    assert compute_client_score(late, today=TODAY).score == 0

    paid = [_loan("paid", loan_id=f"l{i}") for i in range(50)]
    assert compute_client_score(paid, today=TODAY).score == 150


@pytest.mark.parametrize("raw,expected", [(-5, 0), (75.9, 75), (200, 150), (150, 150)])
def test_clamp_score(raw, expected):
    assert clamp_score(raw) == expected


def test_recovery_bonus_counts_interest_beyond_contract():
    loans = [_loan("paid", principal=1000, total_interest=100, loan_id="l1")]
    assert recovery_bonus(loans, {"l1": 150}) == 5
    assert recovery_bonus(loans, {"l1": 500}) == 10
    assert recovery_bonus(loans, {"l1": 80}) == 0


def test_recovery_bonus_adds_to_score():
    data = compute_client_score([_loan("paid", loan_id="l1")], {"l1": 150}, today=TODAY)
    assert data.recovery_bonus == 5
    assert data.score == 108


@pytest.mark.parametrize(
    "score,label,icon",
    [(130, "Excelente", "⭐"), (100, "Bom", "👍"), (70, "Regular", "👌"), (40, "Ruim", "⚠️"), (39, "Crítico", "🚨")],
)
def test_labels_and_icons(score, label, icon):
    assert score_label(score) == label
    assert score_icon(score) == icon


def test_score_overview():
    clients = [
        SimpleNamespace(score=130, on_time_payments=4, late_payments=0),
        SimpleNamespace(score=90, on_time_payments=1, late_payments=1),
        SimpleNamespace(score=20, on_time_payments=0, late_payments=3),
    ]
    overview = score_overview(clients)
    assert overview["total_clients"] == 3
    assert overview["average_score"] == 80.0
    assert overview["average_label"] == "Regular"
    assert overview["distribution"]["Excelente"] == 1
    assert overview["distribution"]["Crítico"] == 1
    assert overview["late_payments"] == 4


def test_score_overview_without_clients():
    overview = score_overview([])
    assert overview["average_score"] == 0.0
    assert overview["average_label"] is None


@pytest.mark.parametrize("on_time", [0, 1, 3, 20, 60])
@pytest.mark.parametrize("late", [0, 1, 4, 12])
def test_score_stays_in_range(on_time, late):
    loans = [_loan("paid", loan_id=f"p{i}") for i in range(on_time)]
    loans += [_loan("overdue", due=date(2024, 1, 1), loan_id=f"o{i}") for i in range(late)]
    assert 0 <= compute_client_score(loans, today=TODAY).score <= 150


@pytest.fixture
def score_db(monkeypatch, fake_model):
    models = SimpleNamespace(
        client=fake_model("Client"),
        loan=fake_model("Loan"),
        payment=fake_model("LoanPayment"),
    )
    monkeypatch.setattr(score_module, "Client", models.client)
    monkeypatch.setattr(score_module, "Loan", models.loan)
    monkeypatch.setattr(score_module, "LoanPayment", models.payment)
    return models


def _stored_loan(models, client, status, total_paid, interest_only_paid=0.0):
    return models.loan.add(
        client_id=str(client.id), status=status, due_date=date(2024, 6, 1),
        principal_amount=1000.0, total_interest=100.0,
        total_paid=total_paid, interest_only_paid=interest_only_paid,
    )


@pytest.mark.asyncio
async def test_update_client_score_persists_fields(score_db):
    client = score_db.client.add(full_name="Maria", score=100, total_loans=0, total_paid=0.0,
                                 on_time_payments=0, late_payments=0, score_updated_at=None)
    _stored_loan(score_db, client, "paid", 1100.0)
    _stored_loan(score_db, client, "paid", 1100.0)
    late = _stored_loan(score_db, client, "overdue", 200.0, interest_only_paid=50.0)
    score_db.payment.add(loan_id=str(late.id), interest_paid=50.0)

    data = await ClientScoreService().update_client_score(str(client.id), today=TODAY)

    assert data.score == 86
    assert client.score == 86
    assert client.total_loans == 3
    assert client.total_paid == 2450.0
    assert client.on_time_payments == 2
    assert client.late_payments == 1
    assert client.score_updated_at is not None
    assert client.saved == 1


@pytest.mark.asyncio
async def test_client_without_loans_is_reset_to_base_score(score_db):
    client = score_db.client.add(full_name="Ana", score=40, total_loans=2, total_paid=500.0,
                                 on_time_payments=0, late_payments=2, score_updated_at=None)

    data = await ClientScoreService().update_client_score(str(client.id), today=TODAY)

    assert data.score == 100
    assert client.score == 100
    assert client.total_loans == 0
    assert client.total_paid == 0.0
    assert client.late_payments == 0
    assert score_db.payment.queries == []


@pytest.mark.asyncio
async def test_unknown_client_score_raises(score_db):
    with pytest.raises(NotFoundError):
        await ClientScoreService().update_client_score("0123456789abcdef01234567")
    with pytest.raises(NotFoundError):
        await ClientScoreService().update_client_score("not-an-id")
