from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

from core.charts import monthly_chart, status_chart, to_vega_spec
from core.data import ServiceOrder
from core.dispatch import format_entry_date, format_ps_number
from core.filters import FilterSpec
from core.metrics import compute_kpis, group_by_month, group_by_status


def _record_row(r: ServiceOrder) -> Dict[str, Any]:
    row = asdict(r)
    row["key"] = r.key
    row["ps_label"] = format_ps_number(r.ps, r.entry_date)
    row["entry_date_label"] = format_entry_date(r.entry_date)
    row["is_amended"] = r.is_amended
    return row


def compute_overview(filters: FilterSpec, ctx: Dict[str, Any]) -> Dict[str, Any]:
    filtered: List[ServiceOrder] = ctx.get("filtered", [])
    monthly = group_by_month(filtered)
    distribution = group_by_status(filtered)
    loaded_at = ctx.get("loaded_at")

    return {
        "filters": asdict(filters),
        "loaded_at": loaded_at.isoformat() if loaded_at is not None else None,
        "kpis": asdict(compute_kpis(filtered)),
        "monthly": [asdict(b) for b in monthly],
        "status_distribution": [{"name": k, "value": v} for k, v in distribution.items()],
        "options": ctx.get("options", {}),
        "records": [_record_row(r) for r in filtered],
        "charts": {
            "monthly_entries": to_vega_spec(monthly_chart(monthly)),
            "status_distribution": to_vega_spec(status_chart(distribution)),
        },
    }
