from datetime import date, timedelta
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from cobrafacil.main import app
from cobrafacil.core.auth_dependencies import AccessContext, get_access_context
from cobrafacil.services.report_service import (
    compute_dashboard_health,
    compute_dashboard_stats,
    compute_loans_over_time,
    compute_third_party_stats,
)

TODAY = date(2024, 6, 15)


def _payment(loan_id, amount, principal, interest, paid_on):
    return SimpleNamespace(loan_id=loan_id, amount=amount, principal_paid=principal, interest_paid=interest, payment_date=paid_on)


def test_dashboard_stats_excludes_third_party(make_loan):
    open_loan = make_loan(
        id="l1", principal_amount=1000.0, total_interest=300.0, remaining_balance=1300.0,
        installment_dates=[TODAY + timedelta(days=5), TODAY + timedelta(days=35), TODAY + timedelta(days=65)],
        due_date=TODAY + timedelta(days=65), contract_date=TODAY - timedelta(days=2),
    )
    third_party = make_loan(id="l2", client_id="client-2", principal_amount=500.0, is_third_party=True)
    paid_loan = make_loan(
        id="l3", principal_amount=200.0, total_interest=40.0, remaining_balance=0.0, total_paid=240.0,
        status="paid", contract_date=TODAY - timedelta(days=30),
    )
    payments = [_payment("l3", 240.0, 200.0, 40.0, TODAY - timedelta(days=1))]

    stats = compute_dashboard_stats([open_loan, third_party, paid_loan], payments, TODAY)

    assert stats["total_loaned"] == 1200.0
    assert stats["total_received"] == 240.0
    assert stats["total_pending"] == 1000.0
    assert stats["pending_interest"] == 300.0
    assert stats["total_to_receive"] == 1300.0
    assert stats["active_loans"] == 1
    assert stats["active_clients"] == 1
    assert stats["overdue_count"] == 0
    assert stats["contracts_last_7_days"] == 1
    assert stats["received_last_7_days"] == 240.0


def test_third_party_stats(make_loan):
    future = [TODAY + timedelta(days=10)]
    loans = [
        make_loan(id="t1", principal_amount=1000.0, remaining_balance=1200.0, installments=1,
                  installment_dates=future, due_date=future[0], is_third_party=True, third_party_name="Ana"),
        make_loan(id="t2", principal_amount=500.0, remaining_balance=0.0, total_paid=600.0, installments=1,
                  status="paid", is_third_party=True, third_party_name="Ana"),
        make_loan(id="own", principal_amount=999.0),
    ]
    payments = [_payment("t2", 600.0, 500.0, 100.0, TODAY)]

    stats = compute_third_party_stats(loans, payments, TODAY)

    assert stats["active_count"] == 1
    assert stats["total_on_street"] == 1000.0
    assert stats["pending_amount"] == 1200.0
    assert stats["pending_interest"] == 200.0
    assert stats["realized_profit"] == 100.0
    assert stats["paid_count"] == 1
    assert stats["total_lent"] == 1500.0
    assert stats["by_third_party"][0] == {"name": "Ana", "loans": 2, "total_lent": 1500.0, "pending": 1200.0}


def test_loans_over_time_by_month(make_loan):
    loans = [
        make_loan(contract_date=date(2024, 1, 5), principal_amount=100.0),
        make_loan(contract_date=date(2024, 1, 5), principal_amount=200.0),
        make_loan(contract_date=date(2024, 2, 10), principal_amount=50.0),
        make_loan(contract_date=date(2023, 12, 31), principal_amount=75.0),
    ]
    report = compute_loans_over_time(loans, date(2024, 1, 1), date(2024, 2, 29), group_by="month")
    assert report["labels"] == ["2024-01", "2024-02"]
    assert report["series"] == [2, 1]
    assert report["totals"] == {"total": 3, "amount": 350.0}


def test_loans_over_time_fills_empty_days(make_loan):
    report = compute_loans_over_time([make_loan(contract_date=date(2024, 1, 2))], date(2024, 1, 1), date(2024, 1, 3))
    assert report["series"] == [0, 1, 0]


def test_health_of_portfolio(make_loan):
    late = make_loan(principal_amount=100.0, remaining_balance=100.0, installments=1,
                     installment_dates=[TODAY - timedelta(days=10)], due_date=TODAY - timedelta(days=10))
    paid = make_loan(principal_amount=100.0, remaining_balance=0.0, total_paid=100.0, installments=1, status="paid",
                     installment_dates=[TODAY - timedelta(days=20)], due_date=TODAY - timedelta(days=20))

    health = compute_dashboard_health([late, paid], TODAY)
    assert health["collection_rate"] == 50.0
    assert health["overdue_ratio"] == 100.0
    assert health["health_score"] == 30
    assert health["health_label"] == "Crítico"

    healthy = compute_dashboard_health([paid], TODAY)
    assert healthy["health_score"] == 100
    assert healthy["health_label"] == "Saudável"


def test_payments_export_route(monkeypatch):
    app.dependency_overrides[get_access_context] = lambda: AccessContext(user_id="owner-1", effective_user_id="owner-1")

    import cobrafacil.services.report_service as rs

    async def fake_payments_report(owner_id, start, end):
        assert owner_id == "owner-1"
        return {
            "data": [{
                "payment_id": "p1", "payment_date": "2024-06-10", "loan_id": "l1", "client_name": "Ana",
                "amount": 150.0, "principal_paid": 100.0, "interest_paid": 50.0, "is_interest_only": False,
            }],
            "totals": {"count": 1, "amount": 150.0, "principal": 100.0, "interest": 50.0},
        }

    monkeypatch.setattr(rs.report_service, "payments_report", fake_payments_report)

    try:
        client = TestClient(app)
        resp = client.get("/reports/payments/export?start_date=2024-06-01&end_date=2024-06-30")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        lines = resp.text.strip().splitlines()
        assert lines[0].startswith("payment_date,client")
        assert lines[1] == "2024-06-10,Ana,l1,150.00,100.00,50.00,no"
    finally:
        app.dependency_overrides = {}


def test_reports_require_permission():
    app.dependency_overrides[get_access_context] = lambda: AccessContext(
        user_id="emp-1", effective_user_id="owner-1", is_employee=True, permissions={"view_loans"},
    )
    try:
        client = TestClient(app)
        resp = client.get("/reports/dashboard")
        assert resp.status_code == 403
        assert resp.json()["error"]["status_code"] == 403
    finally:
        app.dependency_overrides = {}


def _report(rows):
    return {
        "data": rows,
        "totals": {
            "count": len(rows),
            "amount": sum(r["amount"] for r in rows),
            "principal": sum(r["principal_paid"] for r in rows),
            "interest": sum(r["interest_paid"] for r in rows),
        },
    }


def test_payments_pdf_export_route(monkeypatch):
    app.dependency_overrides[get_access_context] = lambda: AccessContext(
        user_id="owner-1", effective_user_id="owner-1", full_name="Carla Empréstimos",
    )

    import cobrafacil.services.report_service as rs

    async def fake_payments_report(owner_id, start, end):
        return _report([
            {"payment_id": "p1", "payment_date": "2024-06-10", "loan_id": "65f0aa00bb11cc22dd33ee44",
             "client_name": "Ana Souza", "amount": 150.0, "principal_paid": 100.0, "interest_paid": 50.0,
             "is_interest_only": False},
            {"payment_id": "p2", "payment_date": "2024-06-12", "loan_id": "65f0aa00bb11cc22dd33ee55",
             "client_name": "João (filho) da Silva Pereira Santos", "amount": 30.0, "principal_paid": 0.0,
             "interest_paid": 30.0, "is_interest_only": True},
        ])

    monkeypatch.setattr(rs.report_service, "payments_report", fake_payments_report)

    try:
        resp = TestClient(app).get("/reports/payments/export?format=pdf&start_date=2024-06-01&end_date=2024-06-30")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert 'filename="payments-report-2024-06-01_2024-06-30.pdf"' in resp.headers["content-disposition"]
        assert resp.content.startswith(b"%PDF")
    finally:
        app.dependency_overrides = {}


def test_payments_pdf_without_payments():
    from cobrafacil.helpers.pdf_report import build_payments_report_pdf

    pdf = build_payments_report_pdf(_report([]), date(2024, 6, 1), date(2024, 6, 30))
    assert pdf.startswith(b"%PDF")


def test_export_rejects_unknown_format():
    app.dependency_overrides[get_access_context] = lambda: AccessContext(user_id="owner-1", effective_user_id="owner-1")
    try:
        assert TestClient(app).get("/reports/payments/export?format=xlsx").status_code == 422
    finally:
        app.dependency_overrides = {}


def test_interest_only_cash_counts_as_received(make_loan):
    future = [TODAY + timedelta(days=20)]
    own = make_loan(id="l1", total_paid=100.0, interest_only_paid=30.0, remaining_balance=200.0,
                    installments=1, installment_dates=future, due_date=future[0])
    investor = make_loan(id="l2", total_paid=0.0, interest_only_paid=45.0, is_third_party=True,
                         installments=1, installment_dates=future, due_date=future[0])

    assert compute_dashboard_stats([own, investor], [], TODAY)["total_received"] == 130.0
    assert compute_third_party_stats([own, investor], [], TODAY)["total_received"] == 45.0
