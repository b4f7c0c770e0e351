from __future__ import annotations

from typing import Dict, List

GOOGLE_SHEET_CSV_URL = (
    "https://docs.google.com/spreadsheets/d/1nQwuzcJYp3FXLgcyMjAQbwTZSBy5xGHcyQqAlZYuajg/export?format=csv&gid=0"
)

# Column positions in the spreadsheet template.
COL_OM = 0
COL_PS = 1
COL_DESCRIPTION = 2
COL_STATUS = 3
COL_ENTRY_DATE = 4
COL_EXIT_DATE = 5
COL_WORKSHOP = 6
COL_BUDGET = 7
COL_MATERIAL = 8
COL_THIRD_PARTY = 9
COL_TAX_RATE = 10
COL_LABOR_HOURS = 11
COL_SERVICE_TYPE = 12
COL_AMENDMENT = 13
COL_ENTRY_MONTH = 14
COL_LEAD_TIME_DAYS = 15
COL_PENDING_MONTHS = 16

DEFAULT_OM = "N/D"
DEFAULT_DESCRIPTION = "Sem descrição"
DEFAULT_STATUS = "S/S"
DEFAULT_WORKSHOP = "N/A"

STATUS_BUDGET = "ORÇAR"
STATUS_COMPLETED = "CONCLUÍDO"
STATUS_CANCELLED = "CANCELADO"

IN_HOUSE_MARKER = "org"
OUTSOURCED_MARKER = "ter"

WILDCARD_TOKENS = {"", "TODAS", "TODOS"}

STATUS_COLORS: Dict[str, str] = {
    "ORÇAR": "#f59e0b",
    "EXECUTANDO": "#3b82f6",
    "FINALIZADO": "#10b981",
    "CANCELADO": "#ef4444",
    "AGUARDANDO": "#8b5cf6",
    "IND REC": "#64748b",
}
FALLBACK_STATUS_COLOR = "#94a3b8"

MONTHS_ORDER: List[str] = [
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
]

# Key: workshop name exactly as it appears in the sheet.
WORKSHOP_EMAILS: Dict[str, str] = {
    "MECÂNICA": "oficina.mecanica@exemplo.mil.br",
    "CARPINTARIA": "oficina.carpintaria@exemplo.mil.br",
    "ELÉTRICA": "oficina.eletrica@exemplo.mil.br",
    "ESTRUTURA": "oficina.estrutura@exemplo.mil.br",
    "ELETRÔNICA": "oficina.eletronica@exemplo.mil.br",
    "METALURGIA": "oficina.metalurgia@exemplo.mil.br",
}
DEFAULT_EMAIL_PREFIX = "oficina."
DEFAULT_EMAIL_DOMAIN = "marinha.mil.br"

EMAILJS_SEND_URL = "https://api.emailjs.com/api/v1.0/email/send"
