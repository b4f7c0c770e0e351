"""Aggregations over parsed service orders.

Every function here is pure: the input sequence is never mutated and repeated
calls with the same input return equal results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from core.constants import (
    IN_HOUSE_MARKER,
    MONTHS_ORDER,
    OUTSOURCED_MARKER,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
)
from core.data import ServiceOrder
from core.filters import FilterSpec, normalize_filters


@dataclass(frozen=True)
class KPIStats:
    total_count: int = 0
    total_budget: float = 0.0
    completed_count: int = 0
    cancelled_count: int = 0
    pending_count: int = 0
    amended_count: int = 0
    total_labor_hours: float = 0.0
    in_house_count: int = 0
    outsourced_count: int = 0
    avg_lead_time_days: float = 0.0
    avg_pending_months: float = 0.0
    avg_lead_time: float = 0.0
    # Not aggregated from the per-record values; the dashboard has always shown zero here.
    material_value: float = 0.0
    third_party_value: float = 0.0


@dataclass(frozen=True)
class MonthBucket:
    month: str
    label: str
    count: int = 0
    total_value: float = 0.0


def _matches(value: str, wanted: Optional[str]) -> bool:
    return wanted is None or value == wanted


def _in_range(record: ServiceOrder, spec: FilterSpec) -> bool:
    if not spec.has_date_bounds:
        return True
    if record.entry_date is None:
        return False
    if spec.start_date is not None and record.entry_date < spec.start_date:
        return False
    if spec.end_date is not None and record.entry_date > spec.end_date:
        return False
    return True


def apply_filter(records: Iterable[ServiceOrder], spec: FilterSpec) -> List[ServiceOrder]:
    return [
        r
        for r in records
        if _matches(r.om, spec.om)
        and _matches(r.status, spec.status)
        and _matches(r.workshop, spec.workshop)
        and _in_range(r, spec)
    ]


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def compute_kpis(records: Sequence[ServiceOrder]) -> KPIStats:
    total = len(records)
    completed = sum(1 for r in records if r.status == STATUS_COMPLETED)
    cancelled = sum(1 for r in records if r.status == STATUS_CANCELLED)
    avg_lead_time = _mean([r.lead_time_days for r in records])
    return KPIStats(
        total_count=total,
        total_budget=sum(r.budget_value for r in records),
        completed_count=completed,
        cancelled_count=cancelled,
        # Left unclamped: a negative value points at inconsistent status data upstream.
        pending_count=total - completed - cancelled,
        amended_count=sum(1 for r in records if r.is_amended),
        total_labor_hours=sum(r.labor_hours for r in records),
        in_house_count=sum(1 for r in records if IN_HOUSE_MARKER in r.service_type.lower()),
        outsourced_count=sum(1 for r in records if OUTSOURCED_MARKER in r.service_type.lower()),
        avg_lead_time_days=avg_lead_time,
        avg_pending_months=_mean([r.pending_months for r in records]),
        avg_lead_time=avg_lead_time,
    )


def group_by_month(records: Iterable[ServiceOrder]) -> List[MonthBucket]:
    counts = {m: 0 for m in MONTHS_ORDER}
    values = {m: 0.0 for m in MONTHS_ORDER}
    for r in records:
        key = (r.entry_month or "").strip().lower()
        if key in counts:
            counts[key] += 1
            values[key] += r.budget_value
    return [MonthBucket(month=m, label=m.capitalize(), count=counts[m], total_value=values[m]) for m in MONTHS_ORDER]


def group_by_status(records: Iterable[ServiceOrder]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for r in records:
        counts[r.status] = counts.get(r.status, 0) + 1
    return counts


def distinct_options(records: Iterable[ServiceOrder]) -> Dict[str, List[str]]:
    records = list(records)
    return {
        "oms": sorted({r.om for r in records}),
        "statuses": sorted({r.status for r in records}),
        "workshops": sorted({r.workshop for r in records}),
    }


def prepare_context(filters: dict | FilterSpec, data_ctx: Dict[str, Any]) -> Dict[str, Any]:
    records = tuple(data_ctx.get("records", ()) or ())
    filt = filters if isinstance(filters, FilterSpec) else normalize_filters(filters)
    return {
        "filters": filt,
        "records": records,
        "filtered": apply_filter(records, filt),
        "options": distinct_options(records),
        "loaded_at": data_ctx.get("loaded_at"),
    }
