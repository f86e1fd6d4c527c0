"""Alert Evaluator: decide whether the latest state warrants a notification.

Each rule gates independently and appends one human-readable reason; the
decision is positive when any reason was produced. Repeat-alert throttling is
left to the caller.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .money import Money, round_whole
from .summary import Summary

LOW_REMAINING_THRESHOLD = Decimal("500")
OVER_PACE_PERCENT = Decimal("10")
END_OF_MONTH_DAYS = 3


class NewItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    merchant: str
    amount: Money
    category: str


class AlertDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    should_alert: bool
    reasons: list[str] = Field(default_factory=list)
    new_transactions: int = 0
    new_items: list[NewItem] = Field(default_factory=list)


def evaluate(
    summary: Summary,
    new_transaction_count: int,
    new_items: Sequence[NewItem] = (),
) -> AlertDecision:
    """Apply the alert rules to ``summary`` in their fixed order.

    Order: new transactions, budget status (watch or over), over pace by
    more than 10%, less than $500 left, last three days of the month, first
    day of the month.
    """

    reasons: list[str] = []

    if new_transaction_count > 0:
        noun = "transaction" if new_transaction_count == 1 else "transactions"
        reasons.append(f"{new_transaction_count} new {noun}")

    if summary.status == "watch":
        reasons.append("spending pace elevated")
    elif summary.status == "over":
        reasons.append("over budget")

    pace = summary.pace
    if pace.classification == "behind" and pace.percent_delta > OVER_PACE_PERCENT:
        reasons.append(f"{round_whole(pace.percent_delta)}% over pace")

    remaining = summary.spending.remaining
    if 0 < remaining < LOW_REMAINING_THRESHOLD:
        reasons.append(f"only ${round_whole(remaining)} remaining")

    if 0 < summary.period.days_remaining <= END_OF_MONTH_DAYS:
        reasons.append("end of month approaching")

    if summary.period.days_elapsed == 1:
        reasons.append("new month started")

    return AlertDecision(
        should_alert=bool(reasons),
        reasons=reasons,
        new_transactions=max(new_transaction_count, 0),
        new_items=list(new_items),
    )


__all__ = [
    "LOW_REMAINING_THRESHOLD",
    "OVER_PACE_PERCENT",
    "END_OF_MONTH_DAYS",
    "NewItem",
    "AlertDecision",
    "evaluate",
]
