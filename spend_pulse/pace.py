"""Pace Engine: expected spend for a day of the month and its deviation.

The baseline is last month's actual cumulative spend through the same day
when that history exists, otherwise a straight line from zero to the monthly
target.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict

from .curve import CumulativeCurve
from .money import ZERO, Money, Percent, percent_of, round_money, round_percent

PaceSource = Literal["prior_month_curve", "linear_ramp"]
PaceClassification = Literal["ahead", "on_pace", "behind"]

# Deviations within ±5% of the expected value classify as ``on_pace``.
PACE_BAND = Decimal("0.05")


@dataclass(frozen=True, slots=True)
class ExpectedSpend:
    expected: Decimal
    source: PaceSource


class PaceResult(BaseModel):
    """Expected vs actual spend for one day.

    ``classification`` reads from the spender's side: ``ahead`` means spending
    less than expected, ``behind`` means spending more.
    """

    model_config = ConfigDict(frozen=True)

    expected: Money
    actual: Money
    delta: Money
    percent_delta: Percent
    classification: PaceClassification
    source: PaceSource


def _linear_ramp(day_of_month: int, days_in_current_month: int, monthly_target: Decimal) -> Decimal:
    return Decimal(day_of_month) / Decimal(days_in_current_month) * monthly_target


def expected_spend(
    day_of_month: int,
    days_in_current_month: int,
    prior_curve: CumulativeCurve | None,
    monthly_target: Decimal,
) -> ExpectedSpend:
    """Return the baseline spend expected by ``day_of_month``.

    Parameters
    ----------
    day_of_month:
        1-based day in the current month.
    days_in_current_month:
        Length of the current month (28 to 31).
    prior_curve:
        Last month's cumulative curve, or ``None``/empty when there is no
        history.
    monthly_target:
        Budget used by the linear ramp.

    Returns
    -------
    ExpectedSpend
        The exact prior-curve value for the day when present; the prior
        month's final value when the day lies past the prior month's end;
        otherwise the linear ramp ``day / days * target``.
    """

    if day_of_month < 1 or days_in_current_month < 1:
        raise ValueError(
            f"day_of_month and days_in_current_month must be >= 1 "
            f"(got {day_of_month}, {days_in_current_month})"
        )

    if prior_curve:
        if day_of_month in prior_curve:
            return ExpectedSpend(Decimal(prior_curve[day_of_month]), "prior_month_curve")
        prior_length = max(prior_curve)
        if day_of_month > prior_length:
            return ExpectedSpend(Decimal(prior_curve[prior_length]), "prior_month_curve")

    return ExpectedSpend(
        _linear_ramp(day_of_month, days_in_current_month, monthly_target),
        "linear_ramp",
    )


def classify(delta: Decimal, expected: Decimal) -> PaceClassification:
    band = PACE_BAND * expected
    if delta < -band:
        return "ahead"
    if delta > band:
        return "behind"
    return "on_pace"


def compute_pace(
    actual: Decimal,
    day_of_month: int,
    days_in_current_month: int,
    prior_curve: CumulativeCurve | None,
    monthly_target: Decimal,
) -> PaceResult:
    """Compare ``actual`` spend against :func:`expected_spend` for the day."""

    baseline = expected_spend(day_of_month, days_in_current_month, prior_curve, monthly_target)
    expected = baseline.expected
    delta = actual - expected
    percent = percent_of(delta, expected) if expected > 0 else ZERO
    return PaceResult(
        expected=round_money(expected),
        actual=round_money(actual),
        delta=round_money(delta),
        percent_delta=round_percent(percent),
        classification=classify(delta, expected),
        source=baseline.source,
    )


__all__ = [
    "PaceSource",
    "PaceClassification",
    "PACE_BAND",
    "ExpectedSpend",
    "PaceResult",
    "expected_spend",
    "classify",
    "compute_pace",
]
