from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import Iterable, List, Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from core.data import ServiceOrder
from core.dispatch import format_ps_number
from core.filters import FilterSpec, describe_filters

REPORT_TITLE = "Relatório de Controle de PS - BFLa"
REPORT_COLUMNS = ["PS #", "OM", "Descrição", "Oficina", "Status", "Valor"]

HEADER_FILL = colors.Color(79 / 255, 70 / 255, 229 / 255)
ALT_ROW_FILL = colors.Color(249 / 255, 250 / 255, 251 / 255)


class EmptyReportError(ValueError):
    """Raised when there is nothing to export."""


def format_currency(value: Optional[float]) -> str:
    """Format as Brazilian real, e.g. ``R$ 1.234,56``."""
    s = f"{float(value or 0):,.2f}"
    return "R$ " + s.replace(",", "_").replace(".", ",").replace("_", ".")


def report_rows(records: Iterable[ServiceOrder]) -> List[List[str]]:
    return [
        [
            format_ps_number(r.ps, r.entry_date),
            r.om,
            r.description,
            r.workshop,
            r.status,
            format_currency(r.budget_value),
        ]
        for r in records
    ]


def report_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"Relatorio_PS_BFLa_{int(now.timestamp() * 1000)}.pdf"


def build_report_pdf(
    records: Sequence[ServiceOrder],
    filters: FilterSpec,
    generated_at: Optional[datetime] = None,
) -> bytes:
    rows = report_rows(records)
    if not rows:
        raise EmptyReportError("Nenhum dado para exportar.")
    generated_at = generated_at or datetime.now()

    styles = getSampleStyleSheet()
    cell_style = styles["BodyText"].clone("cell", fontSize=8, leading=10)
    meta_style = styles["Normal"].clone("meta", fontSize=10, textColor=colors.Color(100 / 255, 100 / 255, 100 / 255))

    # Wrap the free-text columns so long descriptions do not overflow the page.
    body = [[Paragraph(escape(str(c)), cell_style) if i in (1, 2) else c for i, c in enumerate(row)] for row in rows]
    table = Table([REPORT_COLUMNS] + body, repeatRows=1, colWidths=[18 * mm, 28 * mm, 58 * mm, 26 * mm, 24 * mm, 26 * mm])
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_FILL),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, ALT_ROW_FILL]),
                ("TOPPADDING", (0, 0), (-1, -1), 2),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
            ]
        )
    )

    buf = BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=A4, leftMargin=14 * mm, rightMargin=14 * mm, title=REPORT_TITLE)
    story = [
        Paragraph(REPORT_TITLE, styles["Title"]),
        Paragraph(f"Gerado em: {generated_at.strftime('%d/%m/%Y %H:%M:%S')}", meta_style),
        Paragraph(escape(f"Filtros: {describe_filters(filters)}"), meta_style),
        Spacer(1, 6 * mm),
        table,
    ]
    doc.build(story)
    return buf.getvalue()
