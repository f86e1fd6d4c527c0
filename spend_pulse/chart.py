"""Cumulative spending chart rendered with plotly.

Series: this month's curve up to today (with a marker on today), last
month's full curve when available, and a flat budget line. Output is a
self-contained HTML file.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

import plotly.graph_objects as go

from .formatting import format_money
from .logging_setup import get_logger
from .months import month_label

_logger = get_logger("spend_pulse.chart")

CURRENT_COLOR = "#2563EB"
LAST_MONTH_COLOR = "rgba(156, 163, 175, 0.7)"
BUDGET_COLOR = "rgba(234, 179, 8, 0.8)"
BACKGROUND = "#FAFBFC"


@dataclass(frozen=True, slots=True)
class ChartData:
    current_curve: Mapping[int, Decimal]
    last_month_curve: Mapping[int, Decimal] | None
    monthly_target: Decimal
    current_day: int
    days_in_month: int
    spent: Decimal
    remaining: Decimal
    month: str


def y_axis_max(data: ChartData) -> int:
    """Headroom over budget, spend, and last month, rounded up to the next $1k."""

    last_max = max((float(v) for v in (data.last_month_curve or {}).values()), default=0.0)
    top = max(
        float(data.monthly_target) * 1.15,
        float(data.spent) * 1.3,
        last_max * 1.08,
    )
    return int(math.ceil(top / 1000) * 1000)


def build_spending_chart(data: ChartData) -> go.Figure:
    days = list(range(1, data.days_in_month + 1))
    current = [
        float(data.current_curve[d]) if d <= data.current_day and d in data.current_curve else None
        for d in days
    ]

    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=days,
            y=current,
            name=month_label(data.month).split(" ")[0],
            mode="lines",
            line=dict(color=CURRENT_COLOR, width=3, shape="spline", smoothing=0.3),
            fill="tozeroy",
            fillcolor="rgba(59, 130, 246, 0.12)",
            connectgaps=True,
        )
    )
    if data.current_day in data.current_curve:
        fig.add_trace(
            go.Scatter(
                x=[data.current_day],
                y=[float(data.current_curve[data.current_day])],
                name="Today",
                mode="markers",
                marker=dict(color=CURRENT_COLOR, size=12, line=dict(color="#fff", width=2.5)),
                showlegend=False,
            )
        )
    if data.last_month_curve:
        fig.add_trace(
            go.Scatter(
                x=days,
                y=[
                    float(data.last_month_curve[d]) if d in data.last_month_curve else None
                    for d in days
                ],
                name="Last Month",
                mode="lines",
                line=dict(color=LAST_MONTH_COLOR, width=2, dash="dot"),
                connectgaps=True,
            )
        )
    fig.add_trace(
        go.Scatter(
            x=days,
            y=[float(data.monthly_target)] * len(days),
            name="Budget",
            mode="lines",
            line=dict(color=BUDGET_COLOR, width=2, dash="dash"),
        )
    )

    left = (
        f"{format_money(data.remaining)} left"
        if data.remaining >= 0
        else f"{format_money(abs(data.remaining))} over"
    )
    fig.update_layout(
        title=f"{month_label(data.month)}: {format_money(data.spent)} spent, {left}",
        width=900,
        height=520,
        plot_bgcolor=BACKGROUND,
        paper_bgcolor=BACKGROUND,
        legend=dict(orientation="h", yanchor="top", y=-0.12, xanchor="center", x=0.5),
        margin=dict(t=60, r=28, b=60, l=12),
    )
    fig.update_xaxes(showgrid=False, dtick=5, range=[1, data.days_in_month])
    fig.update_yaxes(
        range=[0, y_axis_max(data)],
        tickprefix="$",
        tickformat="~s",
        nticks=6,
        gridcolor="rgba(229, 231, 235, 0.6)",
    )
    return fig


def write_chart(fig: go.Figure, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.write_html(path, include_plotlyjs=True, full_html=True)
    _logger.info("chart:written path=%s", path)
    return path


__all__ = ["ChartData", "y_axis_max", "build_spending_chart", "write_chart"]
