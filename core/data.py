from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import asdict, dataclass
from datetime import date, datetime
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd
import requests

from core.config import Settings, load_settings
from core.constants import (
    COL_AMENDMENT,
    COL_BUDGET,
    COL_DESCRIPTION,
    COL_ENTRY_DATE,
    COL_ENTRY_MONTH,
    COL_EXIT_DATE,
    COL_LABOR_HOURS,
    COL_LEAD_TIME_DAYS,
    COL_MATERIAL,
    COL_OM,
    COL_PENDING_MONTHS,
    COL_PS,
    COL_SERVICE_TYPE,
    COL_STATUS,
    COL_TAX_RATE,
    COL_THIRD_PARTY,
    COL_WORKSHOP,
    DEFAULT_DESCRIPTION,
    DEFAULT_OM,
    DEFAULT_STATUS,
    DEFAULT_WORKSHOP,
    MONTHS_ORDER,
)

logger = logging.getLogger(__name__)

_LINE_SPLIT = re.compile(r"\r?\n")
_FLOAT_PREFIX = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")
_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_BR_DATE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})", re.ASCII)

FRAME_COLUMNS = [
    "om",
    "ps",
    "description",
    "status",
    "entry_date",
    "exit_date",
    "workshop",
    "budget_value",
    "material_value",
    "third_party_value",
    "tax_rate",
    "labor_hours",
    "service_type",
    "amendment",
    "entry_month",
    "lead_time_days",
    "pending_months",
]


@dataclass(frozen=True)
class ServiceOrder:
    om: str
    ps: int
    description: str
    status: str
    entry_date: Optional[date]
    exit_date: Optional[date]
    workshop: str
    budget_value: float = 0.0
    material_value: float = 0.0
    third_party_value: float = 0.0
    tax_rate: float = 0.0
    labor_hours: float = 0.0
    service_type: str = ""
    amendment: str = ""
    entry_month: str = ""
    lead_time_days: int = 0
    pending_months: int = 0

    @property
    def key(self) -> str:
        """Identity used for dispatch tracking: the same PS number repeats across OMs."""
        return f"{self.ps}-{self.om}"

    @property
    def is_amended(self) -> bool:
        return bool(self.amendment.strip())


def split_row(line: str) -> List[str]:
    """Split one CSV line on commas outside double quotes.

    Quotes only toggle the quoted state and are dropped; escaped quotes are not supported.
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    fields.append("".join(current).strip())
    return fields


def parse_localized_date(text: Optional[str]) -> Optional[date]:
    """Parse ``DD/MM/YYYY``; returns None for blanks, bad shapes and impossible dates."""
    if text is None or not str(text).strip():
        return None
    match = _BR_DATE.fullmatch(str(text).strip())
    if not match:
        return None
    day, month, year = (int(p) for p in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_localized_number(text: Optional[str]) -> float:
    """Parse a pt-BR number such as ``1.234,56``. Blank or unparseable input gives 0."""
    if text is None or not str(text).strip():
        return 0.0
    cleaned = str(text).replace(".", "").replace(",", ".", 1)
    cleaned = re.sub(r"[^\d.-]", "", cleaned)
    match = _FLOAT_PREFIX.match(cleaned)
    if not match:
        return 0.0
    value = float(match.group(0))
    if not math.isfinite(value) or value <= 0:
        return 0.0
    return value


def parse_int_prefix(text: Optional[str]) -> int:
    if text is None:
        return 0
    match = _INT_PREFIX.match(str(text))
    if not match:
        return 0
    return int(match.group(1))


def _col(cols: Sequence[str], idx: int) -> str:
    if idx >= len(cols) or cols[idx] is None:
        return ""
    return str(cols[idx])


def _normalize_month(raw: str, entry_date: Optional[date]) -> str:
    month = raw.strip().lower()
    if month in MONTHS_ORDER:
        return month
    if entry_date is not None:
        return MONTHS_ORDER[entry_date.month - 1]
    return ""


def parse_row(cols: Sequence[str]) -> ServiceOrder:
    entry_date = parse_localized_date(_col(cols, COL_ENTRY_DATE))
    return ServiceOrder(
        om=_col(cols, COL_OM) or DEFAULT_OM,
        ps=parse_int_prefix(_col(cols, COL_PS)),
        description=_col(cols, COL_DESCRIPTION) or DEFAULT_DESCRIPTION,
        status=(_col(cols, COL_STATUS) or DEFAULT_STATUS).upper(),
        entry_date=entry_date,
        exit_date=parse_localized_date(_col(cols, COL_EXIT_DATE)),
        workshop=_col(cols, COL_WORKSHOP) or DEFAULT_WORKSHOP,
        budget_value=parse_localized_number(_col(cols, COL_BUDGET)),
        material_value=parse_localized_number(_col(cols, COL_MATERIAL)),
        third_party_value=parse_localized_number(_col(cols, COL_THIRD_PARTY)),
        tax_rate=parse_localized_number(_col(cols, COL_TAX_RATE)),
        labor_hours=parse_localized_number(_col(cols, COL_LABOR_HOURS)),
        service_type=_col(cols, COL_SERVICE_TYPE),
        amendment=_col(cols, COL_AMENDMENT),
        entry_month=_normalize_month(_col(cols, COL_ENTRY_MONTH), entry_date),
        lead_time_days=max(0, parse_int_prefix(_col(cols, COL_LEAD_TIME_DAYS))),
        pending_months=max(0, parse_int_prefix(_col(cols, COL_PENDING_MONTHS))),
    )


def parse_dataset(text: Optional[str]) -> List[ServiceOrder]:
    if not text:
        return []
    lines = [line for line in _LINE_SPLIT.split(text) if line.strip()]
    records = [parse_row(split_row(line)) for line in lines[1:]]
    kept = [r for r in records if r.ps > 0]
    if len(kept) != len(records):
        logger.debug("Dropped %d rows without a valid PS number", len(records) - len(kept))
    return kept


def fetch_sheet_text(url: str, timeout: float = 20.0) -> str:
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    response.encoding = "utf-8"
    return response.text


def load_records(url: str, timeout: float = 20.0) -> List[ServiceOrder]:
    """Fetch and parse the sheet export. Transport failures are logged and give an empty list."""
    try:
        text = fetch_sheet_text(url, timeout=timeout)
    except requests.RequestException:
        logger.exception("Failed to fetch sheet data from %s", url)
        return []
    records = parse_dataset(text)
    logger.info("Loaded %d service orders", len(records))
    return records


def records_to_frame(records: Iterable[ServiceOrder]) -> pd.DataFrame:
    rows = [asdict(r) for r in records]
    if not rows:
        return pd.DataFrame(columns=FRAME_COLUMNS)
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


@lru_cache(maxsize=4)
def _load_dashboard_data_cached(url: str, refresh_bucket: int, timeout: float) -> Dict[str, object]:
    records = load_records(url, timeout=timeout)
    return {"records": tuple(records), "loaded_at": datetime.now(), "source_url": url}


def load_dashboard_data(settings: Optional[Settings] = None) -> Dict[str, object]:
    """Return the current data context.

    The context is rebuilt once per refresh interval; callers holding an older
    context keep a complete, unchanged record tuple.
    """
    settings = settings or load_settings()
    refresh_bucket = int(time.time() // settings.refresh_seconds)
    return _load_dashboard_data_cached(settings.sheet_csv_url, refresh_bucket, settings.fetch_timeout)


def refresh_dashboard_data(settings: Optional[Settings] = None) -> Dict[str, object]:
    _load_dashboard_data_cached.cache_clear()
    return load_dashboard_data(settings)
