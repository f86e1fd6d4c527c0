"""Read-only reporting: the current month's summary and recent activity."""

from __future__ import annotations

import datetime as dt

from ..config import AppConfig
from ..curve import prior_month_curve
from ..ledger import LedgerRepository, get_or_create_current_month
from ..models import MonthlyLedger, Transaction
from ..months import month_key, previous_month
from ..summary import RecentTransaction, Summary, compute_summary
from ..vault import Vault
from .state import save_summary


def summarize_month(
    repo: LedgerRepository,
    ledger: MonthlyLedger,
    config: AppConfig,
    *,
    now: dt.datetime,
) -> Summary:
    """Summary for ``ledger`` using the previous stored month as pace baseline."""

    return compute_summary(
        ledger,
        config.settings,
        prior_month_curve(repo, ledger.month),
        now=now,
    )


def run_status(
    repo: LedgerRepository,
    vault: Vault,
    config: AppConfig,
    *,
    now: dt.datetime,
) -> Summary:
    """Compute the current month's summary and refresh the summary cache."""

    ledger = get_or_create_current_month(repo, now=now)
    summary = summarize_month(repo, ledger, config, now=now)
    save_summary(vault, summary)
    return summary


def recent_transactions(
    repo: LedgerRepository,
    *,
    today: dt.date,
    days: int = 5,
    count: int | None = None,
) -> list[RecentTransaction]:
    """Transactions dated on or after ``today - days``, newest first.

    Walks back month by month from ``today`` so windows that cross a month
    boundary read every ledger they touch. ``count`` caps the result.
    """

    if days < 0:
        raise ValueError("days must be >= 0")
    cutoff = today - dt.timedelta(days=days)

    found: list[Transaction] = []
    key = month_key(today)
    stop = month_key(cutoff)
    while True:
        ledger = repo.load(key)
        if ledger is not None:
            found.extend(t for t in ledger.transactions if t.date >= cutoff)
        if key <= stop:
            break
        key = previous_month(key)

    found.sort(key=lambda t: t.date, reverse=True)
    if count is not None:
        found = found[: max(count, 0)]
    return [RecentTransaction.from_transaction(t) for t in found]


__all__ = ["summarize_month", "run_status", "recent_transactions"]
