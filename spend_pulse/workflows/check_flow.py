"""The ``check`` pipeline: summary, alert decision, optional chart."""

from __future__ import annotations

import datetime as dt
from typing import Literal

from pydantic import BaseModel, ConfigDict

from ..alerts import NewItem, evaluate
from ..chart import ChartData, build_spending_chart, write_chart
from ..config import AppConfig
from ..curve import build_cumulative_curve, prior_month_curve
from ..formatting import format_oneline
from ..ledger import LedgerRepository, get_or_create_current_month, mark_checked
from ..logging_setup import get_logger
from ..models import MonthlyLedger, SyncResult
from ..money import Money, round_whole
from ..pace import PaceClassification, PaceSource
from ..summary import compute_summary
from ..vault import Vault
from .state import load_sync_result, save_summary

_logger = get_logger("spend_pulse.workflows.check")

PaceLabel = Literal["under", "on_track", "over"]

_PACE_LABELS: dict[PaceClassification, PaceLabel] = {
    "ahead": "under",
    "on_pace": "on_track",
    "behind": "over",
}


class CheckReport(BaseModel):
    """Structured ``check`` output: the alert decision plus the headline numbers."""

    model_config = ConfigDict(frozen=True)

    should_alert: bool
    reasons: list[str]
    month: str
    budget: Money
    spent: Money
    remaining: Money
    day_of_month: int
    days_in_month: int
    days_remaining: int
    expected_spend: Money
    pace: PaceLabel
    pace_delta: Money
    pace_percent: int
    pace_source: PaceSource
    oneline: str
    new_transactions: int
    last_check: dt.datetime | None = None
    new_items: list[NewItem] | None = None
    chart_path: str | None = None


def _synced_since(sync: SyncResult, last_checked_at: dt.datetime | None) -> bool:
    if last_checked_at is None:
        return True
    # timestamp() compares naive and aware datetimes alike.
    return sync.synced_at.timestamp() > last_checked_at.timestamp()


def _new_items(repo: LedgerRepository, current: MonthlyLedger, sync: SyncResult) -> list[NewItem]:
    """Look up the last sync's new ids in every month it added to, newest first."""

    wanted = set(sync.new_transaction_ids)
    ledgers = [current]
    for key in sync.new_transaction_months:
        if key != current.month and (other := repo.load(key)) is not None:
            ledgers.append(other)
    return [
        NewItem(merchant=t.merchant, amount=t.amount, category=t.category)
        for ledger in ledgers
        for t in ledger.transactions
        if t.id in wanted
    ]


def run_check(
    repo: LedgerRepository,
    vault: Vault,
    config: AppConfig,
    *,
    now: dt.datetime,
    chart: bool = False,
) -> CheckReport:
    """Evaluate the alert rules for the current month and stamp the check time.

    Transactions from the last sync count as new only when that sync finished
    after the previous check, so running ``check`` twice without a sync in
    between reports them once.
    """

    ledger = get_or_create_current_month(repo, now=now)
    prior = prior_month_curve(repo, ledger.month)
    summary = compute_summary(ledger, config.settings, prior, now=now)
    save_summary(vault, summary)

    new_count = 0
    items: list[NewItem] = []
    sync = load_sync_result(vault)
    if sync is not None and _synced_since(sync, ledger.last_checked_at):
        new_count = sync.new
        items = _new_items(repo, ledger, sync)

    decision = evaluate(summary, new_count, items)
    period, spending, pace = summary.period, summary.spending, summary.pace

    chart_path: str | None = None
    if chart:
        fig = build_spending_chart(
            ChartData(
                current_curve=build_cumulative_curve(ledger),
                last_month_curve=prior,
                monthly_target=config.settings.monthly_target,
                current_day=period.days_elapsed,
                days_in_month=period.days_in_month,
                spent=spending.total,
                remaining=spending.remaining,
                month=ledger.month,
            )
        )
        chart_path = str(write_chart(fig, vault.chart_path))

    report = CheckReport(
        should_alert=decision.should_alert,
        reasons=decision.reasons,
        month=ledger.month,
        budget=spending.target,
        spent=spending.total,
        remaining=spending.remaining,
        day_of_month=period.days_elapsed,
        days_in_month=period.days_in_month,
        days_remaining=period.days_remaining,
        expected_spend=pace.expected,
        pace=_PACE_LABELS[pace.classification],
        pace_delta=pace.delta,
        pace_percent=round_whole(pace.percent_delta),
        pace_source=pace.source,
        oneline=format_oneline(summary),
        new_transactions=decision.new_transactions,
        last_check=ledger.last_checked_at,
        new_items=decision.new_items or None,
        chart_path=chart_path,
    )

    repo.save(mark_checked(ledger, now=now))
    _logger.info(
        "check:done month=%s should_alert=%s reasons=%d",
        ledger.month,
        report.should_alert,
        len(report.reasons),
    )
    return report


__all__ = ["PaceLabel", "CheckReport", "run_check"]
