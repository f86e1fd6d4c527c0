"""Human-readable renderings of a :class:`~spend_pulse.summary.Summary`."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from .money import round_whole
from .months import month_label
from .summary import Summary, SummaryStatus

_STATUS_TEXT: dict[SummaryStatus, tuple[str, str]] = {
    "on_track": (">", "On track"),
    "watch": ("!", "Watch"),
    "over": ("X", "Over budget"),
}


def format_money(amount: Decimal) -> str:
    """``$3.2k`` for thousands and up (``$8k`` when the tenth is zero), else ``$412``."""

    if amount >= 1000:
        thousands = (amount / 1000).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
        return f"${thousands}k".replace(".0k", "k")
    return f"${round_whole(amount):,}"


def format_setting(value: object) -> str:
    """Plain text for a config value; a stored ``9500.0`` target prints as ``9500``."""

    if isinstance(value, Decimal):
        return f"{value.normalize():f}"
    return str(value)


def format_oneline(summary: Summary) -> str:
    """One status line, e.g. ``Feb: $3.2k of $8k (40%) | $4.8k left | 13 days | > On track``."""

    spending = summary.spending
    icon, text = _STATUS_TEXT[summary.status]
    remaining = format_money(abs(spending.remaining))
    remaining_text = f"{remaining} left" if spending.remaining >= 0 else f"{remaining} over"
    return (
        f"{month_label(summary.period.month, short=True)}: "
        f"{format_money(spending.total)} of {format_money(spending.target)} "
        f"({round_whole(spending.percent_used)}%) | {remaining_text} | "
        f"{summary.period.days_remaining} days | {icon} {text}"
    )


__all__ = ["format_money", "format_setting", "format_oneline"]
