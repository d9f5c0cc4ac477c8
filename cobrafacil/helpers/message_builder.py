"""
WhatsApp message templates sent to account owners.

Builders return plain strings using WhatsApp markdown (*bold*, _italic_).
"""

import re
from datetime import date
from typing import Any, Dict, List, Optional

from cobrafacil.utils.calculations import format_currency, format_date

SEPARATOR = "━━━━━━━━━━━━━━━━"
SIGNATURE = "_CobraFácil - Alerta automático_"

PAYMENT_TYPE_LABELS = {
    "single": "Pagamento Único",
    "installment": "Parcelado (Mensal)",
    "daily": "Diário",
    "weekly": "Semanal",
    "biweekly": "Quinzenal",
}

_INTERNAL_TAG = re.compile(r"\[[A-Z_]+(?::[^\]]*)?\]")


def contract_id(loan_id: Any) -> str:
    return f"EMP-{str(loan_id)[:4].upper()}"


def payment_type_label(payment_type: Any) -> str:
    value = getattr(payment_type, "value", payment_type)
    return PAYMENT_TYPE_LABELS.get(value, str(value))


def progress_percent(
    paid_count: int,
    total_installments: int,
    total_paid: Optional[float] = None,
    total_contract: Optional[float] = None,
) -> int:
    if total_contract and total_paid:
        return min(100, round(total_paid / total_contract * 100))
    if total_installments > 0:
        return round(paid_count / total_installments * 100)
    return 0


def progress_bar(percent: int) -> str:
    filled = max(0, min(10, round(percent / 10)))
    return f"{'▓' * filled}{'░' * (10 - filled)} {percent}%"


# Removes bracketed system tags like [HISTORICAL_CONTRACT] from free-text notes
def clean_notes(notes: Optional[str]) -> str:
    if not notes:
        return ""
    cleaned = _INTERNAL_TAG.sub("", notes)
    return re.sub(r"\s+", " ", cleaned).strip()


def alert_emoji(days_overdue: int) -> str:
    if days_overdue < 7:
        return "⚠️"
    if days_overdue < 15:
        return "🚨"
    if days_overdue < 30:
        return "🔴"
    return "🆘"


def alert_title(days_overdue: int) -> str:
    if days_overdue == 1:
        return "1 dia de atraso"
    if days_overdue == 7:
        return "1 Semana de Atraso"
    if days_overdue >= 30:
        return "30+ Dias de Atraso"
    return f"{days_overdue} Dias de Atraso"


def build_payment_received_message(
    client_name: str,
    loan_id: Any,
    amount: float,
    paid_count: int,
    total_installments: int,
    total_paid: float,
    remaining_balance: float,
    payment_date: date,
    installment_list: str = "",
) -> str:
    settled = remaining_balance <= 0.01
    percent = progress_percent(paid_count, total_installments, total_paid, total_paid + max(remaining_balance, 0))

    title = "🎉 *EMPRÉSTIMO QUITADO!*" if settled else "✅ *PAGAMENTO RECEBIDO*"
    lines = [
        title,
        "",
        f"👤 *Cliente:* {client_name}",
        f"📋 *Contrato:* {contract_id(loan_id)}",
        SEPARATOR,
        "",
        f"💵 *Valor Pago:* {format_currency(amount)}",
        f"📅 *Data:* {format_date(payment_date)}",
        f"📊 *Parcelas:* {paid_count}/{total_installments} pagas",
        f"✅ *Total Pago:* {format_currency(total_paid)}",
    ]
    if not settled:
        lines.append(f"💸 *Saldo Restante:* {format_currency(remaining_balance)}")
    lines.append("")
    lines.append(progress_bar(percent))
    if installment_list:
        lines.append(installment_list.rstrip("\n"))
    lines.extend(["", SEPARATOR, SIGNATURE])
    return "\n".join(lines)


def build_renegotiation_message(
    client_name: str,
    loan_id: Any,
    interest_rate: float,
    installments: int,
    remaining_balance: float,
    next_due: Optional[date],
) -> str:
    lines = [
        "🔄 *CONTRATO RENEGOCIADO*",
        "",
        f"👤 *Cliente:* {client_name}",
        f"📋 *Contrato:* {contract_id(loan_id)}",
        SEPARATOR,
        "",
        f"📈 *Nova Taxa:* {interest_rate}%",
        f"📊 *Parcelas:* {installments}",
        f"💵 *Novo Saldo:* {format_currency(remaining_balance)}",
    ]
    if next_due:
        lines.append(f"📅 *Próximo Vencimento:* {format_date(next_due)}")
    lines.extend(["", SEPARATOR, SIGNATURE])
    return "\n".join(lines)


def build_due_today_message(owner_name: Optional[str], items: List[Dict[str, Any]], today: date) -> str:
    """
    One summary per owner listing every installment due today.

    Each item carries client_name, loan_id, payment_type, installment_amount,
    current_installment, total_installments, total_paid, remaining_balance
    and progress.
    """
    greeting = f"Olá {owner_name}! 👋" if owner_name else "Olá! 👋"
    plural = "s" if len(items) > 1 else ""
    lines = [
        "📅 *VENCIMENTOS DE HOJE*",
        "",
        greeting,
        "",
        f"Você tem *{len(items)} cobrança{plural}* para hoje ({format_date(today)}):",
    ]

    total = 0.0
    for item in items:
        total += item["installment_amount"]
        lines.extend([
            "",
            f"👤 *Cliente:* {item['client_name']}",
            f"📋 *Contrato:* {contract_id(item['loan_id'])} ({payment_type_label(item['payment_type'])})",
            f"💵 *Parcela {item['current_installment']}/{item['total_installments']}:* {format_currency(item['installment_amount'])}",
            f"💸 *Saldo Devedor:* {format_currency(item['remaining_balance'])}",
            progress_bar(item["progress"]),
        ])

    lines.extend([
        "",
        SEPARATOR,
        f"💰 *TOTAL DO DIA: {format_currency(total)}*",
        SEPARATOR,
        "",
        SIGNATURE,
    ])
    return "\n".join(lines)


def build_early_reminder_message(
    client_name: str,
    loan_id: Any,
    due_date: date,
    amount: float,
    days_until: int,
    pix_key: Optional[str] = None,
) -> str:
    when = "amanhã" if days_until == 1 else f"em {days_until} dias"
    lines = [
        "⏰ *LEMBRETE DE VENCIMENTO*",
        "",
        f"Olá {client_name}! Sua parcela vence {when}.",
        "",
        f"📋 *Contrato:* {contract_id(loan_id)}",
        f"📅 *Vencimento:* {format_date(due_date)}",
        f"💵 *Valor:* {format_currency(amount)}",
    ]
    if pix_key:
        lines.extend([SEPARATOR, f"💳 *Chave PIX:* {pix_key}"])
    return "\n".join(lines)


def build_overdue_alert_message(info: Dict[str, Any]) -> str:
    """
    Alert sent to the owner for one overdue loan.

    `info` holds client_name, loan_id, due_date, days_overdue,
    remaining_balance, total_penalty, principal_amount, interest_rate,
    total_to_receive, total_paid, paid_installments, total_installments and
    an optional overdue_config.
    """
    days = info["days_overdue"]
    total_penalty = info.get("total_penalty", 0) or 0
    percent = progress_percent(info["paid_installments"], info["total_installments"])

    lines = [
        f"{alert_emoji(days)} *{alert_title(days).upper()}*",
        "",
        f"👤 *Cliente:* {info['client_name']}",
        f"📋 *Contrato:* {contract_id(info['loan_id'])}",
        SEPARATOR,
        "",
        f"📅 *Venceu em:* {format_date(info['due_date'])}",
        f"💸 *Saldo Original:* {format_currency(info['remaining_balance'] - total_penalty)}",
    ]
    if total_penalty > 0:
        lines.append(f"⚠️ *Multa Aplicada:* +{format_currency(total_penalty)}")

    config = info.get("overdue_config")
    if config is not None:
        kind = getattr(config.type, "value", config.type)
        rate_info = f"{config.value}% ao dia" if kind != "fixed" else f"{format_currency(config.value)}/dia"
        lines.append(f"📈 *Taxa por Atraso:* {rate_info}")

    lines.extend([
        f"💵 *TOTAL A RECEBER:* {format_currency(info['remaining_balance'])}",
        "",
        f"💰 *Emprestado:* {format_currency(info['principal_amount'])}",
        f"📈 *Juros:* {info['interest_rate']}%",
        f"💵 *Total Contrato:* {format_currency(info['total_to_receive'])}",
        "",
        f"✅ *Já Pago:* {format_currency(info['total_paid'])} ({percent}%)",
        f"📊 *Parcelas:* {info['paid_installments']}/{info['total_installments']} pagas",
        "",
        SEPARATOR,
        "⚠️ AÇÃO URGENTE NECESSÁRIA",
    ])
    return "\n".join(lines)


def build_bills_due_message(owner_name: Optional[str], bills: List[Any], today: date) -> str:
    due_today = [b for b in bills if b.due_date == today]
    overdue = [b for b in bills if b.due_date < today]

    greeting = f"Olá {owner_name}! 👋" if owner_name else "Olá! 👋"
    lines = ["💸 *CONTAS A PAGAR!*", "", greeting]

    if due_today:
        plural = "s" if len(due_today) > 1 else ""
        lines.extend(["", f"📅 *Vence{'m' if plural else ''} hoje ({format_date(today)}):*"])
        for bill in due_today:
            lines.append(f"• {bill.description}: {format_currency(bill.amount)}")

    if overdue:
        lines.extend(["", "🔴 *Em atraso:*"])
        for bill in overdue:
            lines.append(f"• {bill.description}: {format_currency(bill.amount)} (venceu {format_date(bill.due_date)})")

    total = sum(b.amount for b in bills)
    lines.extend([
        "",
        SEPARATOR,
        f"💰 *TOTAL: {format_currency(total)}*",
        SEPARATOR,
        "",
        "✅ Pague agora e fique em dia!",
        "",
        SIGNATURE,
    ])
    return "\n".join(lines)


def build_loan_created_message(
    client_name: str,
    loan_id: Any,
    principal_amount: float,
    total_interest: float,
    installments: int,
    installment_amount: float,
    payment_type: Any,
    first_due: Optional[date],
    notes: Optional[str] = None,
) -> str:
    lines = [
        "📝 *NOVO EMPRÉSTIMO REGISTRADO*",
        "",
        f"👤 *Cliente:* {client_name}",
        f"📋 *Contrato:* {contract_id(loan_id)}",
        f"🗂️ *Modalidade:* {payment_type_label(payment_type)}",
        SEPARATOR,
        "",
        f"💰 *Emprestado:* {format_currency(principal_amount)}",
        f"📈 *Juros:* {format_currency(total_interest)}",
        f"💵 *Total a Receber:* {format_currency(principal_amount + total_interest)}",
        f"📊 *Parcelas:* {installments}x de {format_currency(installment_amount)}",
    ]
    if first_due:
        lines.append(f"📅 *Primeiro Vencimento:* {format_date(first_due)}")
    cleaned = clean_notes(notes)
    if cleaned:
        lines.append(f"📝 *Obs:* {cleaned}")
    lines.extend(["", SEPARATOR, SIGNATURE])
    return "\n".join(lines)
