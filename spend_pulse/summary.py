"""Summary Compiler: reporting snapshot for one monthly ledger.

``compute_summary`` is pure: the clock is passed in as ``now`` and prior
history as an already-built curve. Currency fields are rounded to cents and
percentages to one decimal place; the status threshold is evaluated on the
unrounded values.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict

from .config import Settings
from .curve import CumulativeCurve
from .models import MonthlyLedger, Transaction
from .money import ZERO, Money, Percent, percent_of, round_money, round_percent
from .months import contains, days_in_month, month_bounds
from .pace import PaceResult, compute_pace

SummaryStatus = Literal["on_track", "watch", "over"]

TOP_CATEGORY_LIMIT = 5
RECENT_LIMIT = 5
# Percentage points of budget used beyond calendar progress before "watch".
WATCH_MARGIN = Decimal("10")


class Period(BaseModel):
    model_config = ConfigDict(frozen=True)

    month: str
    start: dt.date
    end: dt.date
    days_in_month: int
    days_elapsed: int
    days_remaining: int


class Spending(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: Money
    target: Money
    remaining: Money
    percent_used: Percent
    daily_average: Money
    projected_total: Money


class CategoryTotal(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    amount: Money


class RecentTransaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    date: dt.date
    merchant: str
    amount: Money
    category: str
    pending: bool = False

    @classmethod
    def from_transaction(cls, tx: Transaction) -> RecentTransaction:
        return cls(
            id=tx.id,
            date=tx.date,
            merchant=tx.merchant,
            amount=tx.amount,
            category=tx.category,
            pending=tx.is_pending,
        )


class Summary(BaseModel):
    """Full snapshot for a month; recomputed from the ledger, never patched."""

    model_config = ConfigDict(frozen=True)

    computed_at: dt.datetime
    period: Period
    spending: Spending
    pace: PaceResult
    status: SummaryStatus
    top_categories: list[CategoryTotal]
    recent_transactions: list[RecentTransaction]
    transaction_count: int


def _days_elapsed(month: str, today: dt.date) -> int:
    # Any month other than the one containing ``today`` counts as fully elapsed.
    if contains(month, today):
        return today.day
    return days_in_month(month)


def classify_status(
    total: Decimal,
    target: Decimal,
    days_elapsed: int,
    days_in_month_: int,
) -> SummaryStatus:
    """Linear budget status: ``over`` past target, ``watch`` when usage leads calendar progress by more than 10 points."""

    if total > target:
        return "over"
    used = percent_of(total, target)
    calendar_progress = Decimal(days_elapsed) / Decimal(days_in_month_) * 100
    if used > calendar_progress + WATCH_MARGIN:
        return "watch"
    return "on_track"


def top_categories(
    transactions: tuple[Transaction, ...] | list[Transaction],
    limit: int = TOP_CATEGORY_LIMIT,
) -> list[CategoryTotal]:
    totals: dict[str, Decimal] = {}
    for tx in transactions:
        totals[tx.category] = totals.get(tx.category, ZERO) + tx.amount
    # ``sorted`` is stable, so equal totals keep first-seen order.
    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    return [CategoryTotal(category=c, amount=round_money(a)) for c, a in ranked[:limit]]


def recent_transactions(
    transactions: tuple[Transaction, ...] | list[Transaction],
    limit: int = RECENT_LIMIT,
) -> list[RecentTransaction]:
    ordered = sorted(transactions, key=lambda t: t.date, reverse=True)
    return [RecentTransaction.from_transaction(t) for t in ordered[:limit]]


def compute_summary(
    ledger: MonthlyLedger,
    settings: Settings,
    prior_curve: CumulativeCurve | None = None,
    *,
    now: dt.datetime,
) -> Summary:
    """Aggregate ``ledger`` into a :class:`Summary` as of ``now``.

    Parameters
    ----------
    ledger:
        The month to summarize. Its ``month`` key must parse.
    settings:
        Supplies ``monthly_target``.
    prior_curve:
        Previous month's cumulative curve for the pace baseline; ``None``
        selects the linear ramp.
    now:
        Clock reading; only its calendar date is used for day arithmetic.
    """

    n = days_in_month(ledger.month)
    start, end = month_bounds(ledger.month)
    elapsed = _days_elapsed(ledger.month, now.date())
    target = settings.monthly_target

    total = ledger.total
    remaining = target - total
    used = percent_of(total, target)
    daily_average = total / Decimal(elapsed)

    pace = compute_pace(total, elapsed, n, prior_curve, target)

    return Summary(
        computed_at=now,
        period=Period(
            month=ledger.month,
            start=start,
            end=end,
            days_in_month=n,
            days_elapsed=elapsed,
            days_remaining=n - elapsed,
        ),
        spending=Spending(
            total=round_money(total),
            target=round_money(target),
            remaining=round_money(remaining),
            percent_used=round_percent(used),
            daily_average=round_money(daily_average),
            projected_total=round_money(daily_average * n),
        ),
        pace=pace,
        status=classify_status(total, target, elapsed, n),
        top_categories=top_categories(ledger.transactions),
        recent_transactions=recent_transactions(ledger.transactions),
        transaction_count=len(ledger.transactions),
    )


__all__ = [
    "SummaryStatus",
    "Period",
    "Spending",
    "CategoryTotal",
    "RecentTransaction",
    "Summary",
    "classify_status",
    "top_categories",
    "recent_transactions",
    "compute_summary",
]
