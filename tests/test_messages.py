from datetime import date
from types import SimpleNamespace

import pytest

from cobrafacil.helpers.message_builder import (
    alert_emoji,
    alert_title,
    build_bills_due_message,
    build_due_today_message,
    build_early_reminder_message,
    build_loan_created_message,
    build_overdue_alert_message,
    build_payment_received_message,
    clean_notes,
    contract_id,
    progress_bar,
    progress_percent,
)
from cobrafacil.schemas.loan_schema import OverdueConfig


def test_contract_id():
    assert contract_id("abcdef123") == "EMP-ABCD"


def test_progress():
    assert progress_percent(1, 4) == 25
    assert progress_percent(1, 4, total_paid=50, total_contract=200) == 25
    assert progress_percent(0, 0) == 0
    assert progress_bar(50) == "▓▓▓▓▓░░░░░ 50%"


def test_clean_notes_strips_internal_tags():
    assert clean_notes("[HISTORICAL_CONTRACT] pago  em dia") == "pago em dia"
    assert clean_notes("[RENEGOTIATED:2024-01-01]") == ""
    assert clean_notes(None) == ""


@pytest.mark.parametrize(
    "days,emoji,title",
    [(1, "⚠️", "1 dia de atraso"), (7, "🚨", "1 Semana de Atraso"), (15, "🔴", "15 Dias de Atraso"), (45, "🆘", "30+ Dias de Atraso")],
)
def test_alert_thresholds(days, emoji, title):
    assert alert_emoji(days) == emoji
    assert alert_title(days) == title


def test_payment_received_message():
    text = build_payment_received_message("Maria", "abcd1234", 100, 1, 3, 100, 200, date(2024, 1, 10))
    assert "PAGAMENTO RECEBIDO" in text
    assert "Saldo Restante:* R$ 200,00" in text
    assert "1/3 pagas" in text


def test_settled_payment_message():
    text = build_payment_received_message("Maria", "abcd1234", 100, 3, 3, 300, 0, date(2024, 3, 10))
    assert "QUITADO" in text
    assert "Saldo Restante" not in text
    assert "100%" in text


def test_overdue_alert_with_penalty():
    info = {
        "client_name": "João",
        "loan_id": "ffff0000",
        "due_date": date(2024, 1, 10),
        "days_overdue": 7,
        "remaining_balance": 350.0,
        "total_penalty": 50.0,
        "overdue_config": OverdueConfig(type="fixed", value=10),
        "principal_amount": 300.0,
        "interest_rate": 0,
        "total_to_receive": 350.0,
        "total_paid": 0.0,
        "paid_installments": 0,
        "total_installments": 3,
    }
    text = build_overdue_alert_message(info)
    assert text.startswith("🚨 *1 SEMANA DE ATRASO*")
    assert "Saldo Original:* R$ 300,00" in text
    assert "Multa Aplicada:* +R$ 50,00" in text
    assert "R$ 10,00/dia" in text


def test_due_today_summary():
    items = [
        {"client_name": "Ana", "loan_id": "a1b2c3", "payment_type": "daily", "installment_amount": 50.0,
         "current_installment": 2, "total_installments": 20, "remaining_balance": 950.0, "progress": 5},
        {"client_name": "Bia", "loan_id": "d4e5f6", "payment_type": "installment", "installment_amount": 150.0,
         "current_installment": 1, "total_installments": 4, "remaining_balance": 600.0, "progress": 0},
    ]
    text = build_due_today_message("Carlos", items, date(2024, 6, 15))
    assert "Olá Carlos!" in text
    assert "*2 cobranças*" in text
    assert "TOTAL DO DIA: R$ 200,00" in text
    assert "(Diário)" in text


def test_early_reminder():
    text = build_early_reminder_message("Ana", "a1b2c3", date(2024, 6, 16), 50, 1, pix_key="ana@pix")
    assert "vence amanhã" in text
    assert "Chave PIX:* ana@pix" in text
    assert "Chave PIX" not in build_early_reminder_message("Ana", "a1b2c3", date(2024, 6, 18), 50, 3)


def test_bills_due_message():
    today = date(2024, 6, 15)
    bills = [
        SimpleNamespace(description="Aluguel", amount=1200.0, due_date=today),
        SimpleNamespace(description="Luz", amount=150.5, due_date=date(2024, 6, 10)),
    ]
    text = build_bills_due_message(None, bills, today)
    assert "Vence hoje" in text
    assert "Em atraso" in text
    assert "TOTAL: R$ 1.350,50" in text


def test_loan_created_message():
    text = build_loan_created_message("Ana", "a1b2c3", 1000, 300, 3, 433.33, "installment", date(2024, 2, 10),
                                      notes="[HISTORICAL_CONTRACT] cliente antigo")
    assert "Total a Receber:* R$ 1.300,00" in text
    assert "3x de R$ 433,33" in text
    assert "Obs:* cliente antigo" in text
