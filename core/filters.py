from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from core.constants import WILDCARD_TOKENS


@dataclass(frozen=True)
class FilterSpec:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    om: Optional[str] = None
    status: Optional[str] = None
    workshop: Optional[str] = None

    @property
    def has_date_bounds(self) -> bool:
        return self.start_date is not None or self.end_date is not None


def _as_date(value: object) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def _as_choice(value: object) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    if s.upper() in WILDCARD_TOKENS:
        return None
    return s


def normalize_filters(raw: Optional[dict]) -> FilterSpec:
    raw = raw or {}
    return FilterSpec(
        start_date=_as_date(raw.get("start_date")),
        end_date=_as_date(raw.get("end_date")),
        om=_as_choice(raw.get("om")),
        status=_as_choice(raw.get("status")),
        workshop=_as_choice(raw.get("workshop")),
    )


def describe_filters(spec: FilterSpec) -> str:
    parts = [
        f"OM: {spec.om or 'TODAS'}",
        f"Oficina: {spec.workshop or 'TODAS'}",
        f"Status: {spec.status or 'TODOS'}",
    ]
    if spec.has_date_bounds:
        start = spec.start_date.strftime("%d/%m/%Y") if spec.start_date else "..."
        end = spec.end_date.strftime("%d/%m/%Y") if spec.end_date else "..."
        parts.append(f"Período: {start} a {end}")
    return " | ".join(parts)
