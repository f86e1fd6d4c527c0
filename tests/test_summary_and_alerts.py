from __future__ import annotations

import datetime as dt
from decimal import Decimal

from spend_pulse.alerts import NewItem, evaluate
from spend_pulse.config import Settings
from spend_pulse.formatting import format_money, format_oneline
from spend_pulse.models import MonthlyLedger, Transaction
from spend_pulse.summary import classify_status, compute_summary, top_categories


def at(date: str) -> dt.datetime:
    return dt.datetime.fromisoformat(date).replace(hour=12, tzinfo=dt.UTC)


def ledger(month: str, *rows: tuple[str, str, str], pending: set[str] = frozenset()) -> MonthlyLedger:
    txs = tuple(
        Transaction.from_flat(
            id=f"t{i}",
            date=date,
            amount=amount,
            merchant=f"Merchant {i}",
            category=category,
            pending=f"t{i}" in pending,
        )
        for i, (date, amount, category) in enumerate(rows)
    )
    txs = tuple(sorted(txs, key=lambda t: t.date, reverse=True))
    return MonthlyLedger(month=month, last_synced_at=at("2026-01-01"), transactions=txs)


# ---- Status --------------------------------------------------------------------


def test_status_on_track_late_in_month():
    assert classify_status(Decimal("6500"), Decimal("8000"), 28, 31) == "on_track"


def test_status_watch_when_usage_leads_calendar():
    # 87.5% used vs 66.7% of the month elapsed.
    assert classify_status(Decimal("7000"), Decimal("8000"), 20, 30) == "watch"


def test_status_threshold_uses_unrounded_values():
    # 20 of 30 days = 66.666..%; 76.7% used sits just above the 10-point margin.
    assert classify_status(Decimal("6136"), Decimal("8000"), 20, 30) == "watch"
    assert classify_status(Decimal("6133"), Decimal("8000"), 20, 30) == "on_track"


def test_status_over_budget():
    assert classify_status(Decimal("8000.01"), Decimal("8000"), 5, 30) == "over"


def test_status_zero_target_with_spend_is_over():
    assert classify_status(Decimal("1"), Decimal("0"), 5, 30) == "over"


# ---- Summary -------------------------------------------------------------------


def test_summary_fields_for_current_month():
    lg = ledger(
        "2026-01",
        ("2026-01-02", "1000", "FOOD_AND_DRINK"),
        ("2026-01-05", "500", "TRAVEL"),
        ("2026-01-10", "1500", "FOOD_AND_DRINK"),
    )
    s = compute_summary(lg, Settings(monthly_target=Decimal("8000")), now=at("2026-01-15"))

    assert s.period.days_in_month == 31
    assert s.period.days_elapsed == 15
    assert s.period.days_remaining == 16
    assert s.period.start == dt.date(2026, 1, 1)
    assert s.period.end == dt.date(2026, 1, 31)
    assert s.spending.total == Decimal("3000.00")
    assert s.spending.remaining == Decimal("5000.00")
    assert s.spending.percent_used == Decimal("37.5")
    assert s.spending.daily_average == Decimal("200.00")
    assert s.spending.projected_total == Decimal("6200.00")
    assert s.status == "on_track"
    assert s.transaction_count == 3
    assert [c.category for c in s.top_categories] == ["FOOD_AND_DRINK", "TRAVEL"]
    assert s.top_categories[0].amount == Decimal("2500.00")
    assert [r.date for r in s.recent_transactions] == [
        dt.date(2026, 1, 10),
        dt.date(2026, 1, 5),
        dt.date(2026, 1, 2),
    ]
    assert s.pace.source == "linear_ramp"


def test_summary_empty_ledger_on_first_day():
    s = compute_summary(ledger("2026-03"), Settings(), now=at("2026-03-01"))

    assert s.spending.total == Decimal("0")
    assert s.spending.daily_average == Decimal("0")
    assert s.spending.remaining == Decimal("8000.00")
    assert s.status == "on_track"
    assert s.top_categories == []
    assert s.recent_transactions == []


def test_summary_past_month_is_fully_elapsed():
    lg = ledger("2026-01", ("2026-01-20", "3100", "SHOPPING"))
    s = compute_summary(lg, Settings(), now=at("2026-02-10"))

    assert s.period.days_elapsed == 31
    assert s.period.days_remaining == 0
    assert s.spending.daily_average == Decimal("100.00")


def test_summary_uses_prior_curve_when_given():
    prior = {d: Decimal(d * 100) for d in range(1, 32)}
    lg = ledger("2026-02", ("2026-02-03", "2000", "SHOPPING"))
    s = compute_summary(lg, Settings(), prior, now=at("2026-02-10"))

    assert s.pace.source == "prior_month_curve"
    assert s.pace.expected == Decimal("1000.00")
    assert s.pace.classification == "behind"


def test_summary_marks_pending_in_recent():
    lg = ledger("2026-01", ("2026-01-03", "5", "FOOD"), pending={"t0"})
    s = compute_summary(lg, Settings(), now=at("2026-01-04"))
    assert s.recent_transactions[0].pending is True


def test_top_categories_ties_keep_first_seen_order_and_limit():
    txs = [
        Transaction.from_flat(id=str(i), date="2026-01-05", amount="10", merchant="m", category=c)
        for i, c in enumerate(["B", "A", "C", "D", "E", "F"])
    ]
    assert [c.category for c in top_categories(txs)] == ["B", "A", "C", "D", "E"]


def test_summary_json_has_plain_numbers():
    s = compute_summary(ledger("2026-01", ("2026-01-02", "12.34", "X")), Settings(), now=at("2026-01-02"))
    dumped = s.model_dump(mode="json")
    assert dumped["spending"]["total"] == 12.34
    assert dumped["period"]["start"] == "2026-01-01"


# ---- Alerts --------------------------------------------------------------------


def test_over_budget_mid_month_gives_exactly_two_reasons():
    lg = ledger("2026-04", ("2026-04-05", "9000", "TRAVEL"))
    s = compute_summary(lg, Settings(), now=at("2026-04-15"))

    decision = evaluate(s, 0)
    assert decision.should_alert is True
    assert decision.reasons == ["over budget", "125% over pace"]


def test_quiet_day_does_not_alert():
    lg = ledger("2026-01", ("2026-01-05", "3500", "TRAVEL"))
    s = compute_summary(lg, Settings(), now=at("2026-01-15"))

    decision = evaluate(s, 0)
    assert decision.should_alert is False
    assert decision.reasons == []


def test_reason_order_and_wording():
    lg = ledger("2026-01", ("2026-01-05", "7600", "TRAVEL"))
    s = compute_summary(lg, Settings(), now=at("2026-01-29"))
    items = [NewItem(merchant="Cafe", amount=Decimal("4.50"), category="FOOD")]

    decision = evaluate(s, 1, items)
    assert decision.reasons == [
        "1 new transaction",
        "only $400 remaining",
        "end of month approaching",
    ]
    assert decision.new_transactions == 1
    assert decision.new_items == items


def test_first_day_of_month_alerts():
    s = compute_summary(ledger("2026-02"), Settings(), now=at("2026-02-01"))
    assert evaluate(s, 2).reasons == ["2 new transactions", "new month started"]


def test_elevated_pace_reason():
    lg = ledger("2026-04", ("2026-04-02", "5000", "TRAVEL"))
    s = compute_summary(lg, Settings(), now=at("2026-04-15"))
    assert evaluate(s, 0).reasons == ["spending pace elevated", "25% over pace"]


# ---- Formatting ----------------------------------------------------------------


def test_format_money():
    assert format_money(Decimal("8000")) == "$8k"
    assert format_money(Decimal("3240")) == "$3.2k"
    assert format_money(Decimal("412.50")) == "$413"
    assert format_money(Decimal("0")) == "$0"


def test_oneline():
    lg = ledger("2026-02", ("2026-02-03", "3200", "SHOPPING"))
    s = compute_summary(lg, Settings(), now=at("2026-02-15"))
    assert format_oneline(s) == "Feb: $3.2k of $8k (40%) | $4.8k left | 13 days | > On track"


def test_oneline_over_budget():
    lg = ledger("2026-02", ("2026-02-03", "8500", "SHOPPING"))
    s = compute_summary(lg, Settings(), now=at("2026-02-15"))
    assert format_oneline(s) == "Feb: $8.5k of $8k (106%) | $500 over | 13 days | X Over budget"
