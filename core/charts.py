from __future__ import annotations

from typing import Any, Dict, Mapping, Sequence

import altair as alt
import pandas as pd

from core.constants import FALLBACK_STATUS_COLOR, STATUS_COLORS

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def status_color(status: str) -> str:
    return STATUS_COLORS.get(status, FALLBACK_STATUS_COLOR)


def monthly_chart(buckets: Sequence[Any]) -> alt.Chart:
    df = pd.DataFrame(
        [{"month": b.label, "total": b.count, "value": b.total_value} for b in buckets]
    )
    return (
        alt.Chart(df)
        .mark_area(line={"color": "#6366f1"}, color="#6366f1", opacity=0.15, interpolate="monotone")
        .encode(
            x=alt.X("month:N", sort=[b.label for b in buckets], title=None, axis=alt.Axis(labelAngle=0, grid=False)),
            y=alt.Y("total:Q", title="Pedidos", axis=alt.Axis(format="d", gridDash=[3, 3], domain=False, ticks=False)),
            tooltip=[
                alt.Tooltip("month:N", title="Mês"),
                alt.Tooltip("total:Q", title="Pedidos"),
                alt.Tooltip("value:Q", title="Orçamento", format=",.2f"),
            ],
        )
        .properties(height=260)
    )


def status_chart(distribution: Mapping[str, int]) -> alt.Chart:
    df = pd.DataFrame([{"status": k, "count": v} for k, v in distribution.items()], columns=["status", "count"])
    statuses = df["status"].tolist()
    scale = alt.Scale(domain=statuses, range=[status_color(s) for s in statuses]) if statuses else alt.Undefined
    return (
        alt.Chart(df)
        .mark_arc(innerRadius=80, outerRadius=110, padAngle=0.05)
        .encode(
            theta=alt.Theta("count:Q"),
            color=alt.Color(
                "status:N",
                scale=scale,
                legend=alt.Legend(orient="bottom", title=None),
            ),
            tooltip=["status", "count"],
        )
        .properties(height=260)
    )
