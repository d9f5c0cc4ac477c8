"""
PDF rendering of the payments report: summary cards followed by one row
per payment, interest-only payments highlighted.
"""

import io
from datetime import date, datetime
from typing import Any, Dict, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import HRFlowable, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from cobrafacil.utils.calculations import format_currency, format_date

PRIMARY_GREEN = colors.HexColor("#22c55e")
DARK_GREEN = colors.HexColor("#16a34a")
LIGHT_GREEN = colors.HexColor("#dcfce7")
PURPLE = colors.HexColor("#a855f7")
MUTED = colors.HexColor("#646464")

MAX_CLIENT_NAME = 28


def _short_name(name: Optional[str]) -> str:
    name = name or "-"
    return name if len(name) <= MAX_CLIENT_NAME else name[: MAX_CLIENT_NAME - 2] + "…"


def build_payments_report_pdf(
    report: Dict[str, Any],
    start: date,
    end: date,
    company_name: Optional[str] = None,
) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4,
                            leftMargin=1.5 * cm, rightMargin=1.5 * cm, topMargin=1.5 * cm, bottomMargin=1.5 * cm,
                            title="Relatório de Recebimentos")

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("ReportTitle", parent=styles["Title"], fontSize=16,
                                 textColor=DARK_GREEN, fontName="Helvetica-Bold", spaceAfter=4)
    small_style = ParagraphStyle("Small", parent=styles["Normal"], fontSize=8, textColor=MUTED)
    empty_style = ParagraphStyle("Empty", parent=styles["Normal"], fontSize=11, textColor=MUTED, alignment=1)

    story = []
    story.append(Paragraph(f"RELATÓRIO DE RECEBIMENTOS: {format_date(start)} a {format_date(end)}", title_style))
    header = f"Gerado em {datetime.now().strftime('%d/%m/%Y às %H:%M')}"
    if company_name:
        header = f"{company_name} | {header}"
    story.append(Paragraph(header, small_style))
    story.append(HRFlowable(width="100%", thickness=2, color=PRIMARY_GREEN))
    story.append(Spacer(1, 0.4 * cm))

    totals = report["totals"]
    cards = Table(
        [
            ["Total Recebido", "Juros Recebido", "Principal Pago", "Qtd. Pagamentos"],
            [format_currency(totals["amount"]), format_currency(totals["interest"]),
             format_currency(totals["principal"]), str(totals["count"])],
        ],
        colWidths=[4.5 * cm] * 4,
    )
    cards.setStyle(TableStyle([
        ("BOX", (0, 0), (-1, -1), 0.5, PRIMARY_GREEN),
        ("INNERGRID", (0, 0), (-1, -1), 0.5, PRIMARY_GREEN),
        ("TEXTCOLOR", (0, 0), (-1, 0), MUTED),
        ("FONTSIZE", (0, 0), (-1, 0), 7),
        ("TEXTCOLOR", (0, 1), (-1, 1), DARK_GREEN),
        ("FONTNAME", (0, 1), (-1, 1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 1), (-1, 1), 10),
        ("PADDING", (0, 0), (-1, -1), 5),
    ]))
    story.append(cards)
    story.append(Spacer(1, 0.5 * cm))

    rows = report["data"]
    if not rows:
        story.append(Paragraph("Nenhum pagamento registrado neste período.", empty_style))
        doc.build(story)
        return buffer.getvalue()

    data = [["Data", "Cliente", "Contrato", "Tipo", "Valor"]]
    highlighted = []
    for i, row in enumerate(rows, start=1):
        if row["is_interest_only"]:
            highlighted.append(i)
        data.append([
            format_date(date.fromisoformat(row["payment_date"])),
            _short_name(row["client_name"]),
            f"#{row['loan_id'][-6:].upper()}",
            "Só Juros" if row["is_interest_only"] else "Parcela",
            format_currency(row["amount"]),
        ])
    data.append(["", "", "", "Total", format_currency(totals["amount"])])

    style = [
        ("BACKGROUND", (0, 0), (-1, 0), PRIMARY_GREEN),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("ROWBACKGROUNDS", (0, 1), (-1, -2), [colors.HexColor("#f5f5f5"), colors.white]),
        ("ALIGN", (4, 0), (4, -1), "RIGHT"),
        ("TEXTCOLOR", (4, 1), (4, -1), DARK_GREEN),
        ("FONTNAME", (4, 1), (4, -1), "Helvetica-Bold"),
        ("LINEABOVE", (0, -1), (-1, -1), 1, PRIMARY_GREEN),
        ("BACKGROUND", (0, -1), (-1, -1), LIGHT_GREEN),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("PADDING", (0, 0), (-1, -1), 4),
    ]
    for i in highlighted:
        style.append(("TEXTCOLOR", (3, i), (3, i), PURPLE))
        style.append(("FONTNAME", (3, i), (3, i), "Helvetica-Bold"))

    table = Table(data, colWidths=[2.5 * cm, 6 * cm, 2.5 * cm, 2.5 * cm, 4.5 * cm], repeatRows=1)
    table.setStyle(TableStyle(style))
    story.append(table)

    doc.build(story)
    return buffer.getvalue()
