"""Cumulative spend curves built from a monthly ledger."""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal

from .ledger import LedgerRepository
from .models import MonthlyLedger
from .money import ZERO, round_money
from .months import MonthKey, days_in_month, previous_month

type CumulativeCurve = Mapping[int, Decimal]


def build_cumulative_curve(ledger: MonthlyLedger) -> dict[int, Decimal]:
    """Return ``{day: cumulative spend through day}`` for every day of the month.

    Days without transactions carry the previous running total forward. A
    transaction dated past the month's last day is bucketed on the last day so
    the final value always equals the ledger total. Values are rounded to
    cents at each step.
    """

    n = days_in_month(ledger.month)
    by_day: dict[int, Decimal] = {}
    for tx in ledger.transactions:
        day = min(max(tx.date.day, 1), n)
        by_day[day] = by_day.get(day, ZERO) + tx.amount

    curve: dict[int, Decimal] = {}
    running = ZERO
    for day in range(1, n + 1):
        running = round_money(running + by_day.get(day, ZERO))
        curve[day] = running
    return curve


def prior_month_curve(repo: LedgerRepository, month: MonthKey) -> dict[int, Decimal] | None:
    """Curve for the month before ``month``, or ``None`` when it was never stored."""

    prior = repo.load(previous_month(month))
    if prior is None:
        return None
    return build_cumulative_curve(prior)


__all__ = ["CumulativeCurve", "build_cumulative_curve", "prior_month_curve"]
