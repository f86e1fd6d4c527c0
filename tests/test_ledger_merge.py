from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest
from pydantic import ValidationError

from spend_pulse.errors import InvalidMonthError
from spend_pulse.ledger import (
    get_or_create_current_month,
    get_or_create_month,
    mark_checked,
    merge_transactions,
    migrate_legacy_log,
    partition_by_month,
)
from spend_pulse.models import LegacyTransactionLog, MonthlyLedger, Transaction

NOW = dt.datetime(2026, 2, 15, 9, 30, tzinfo=dt.UTC)


def tx(tx_id: str, date: str, amount: str = "10.00", **kw) -> Transaction:
    return Transaction.from_flat(
        id=tx_id,
        date=date,
        amount=amount,
        merchant=kw.pop("merchant", "Store"),
        category=kw.pop("category", "Shopping"),
        **kw,
    )


class MemoryRepo:
    def __init__(self, legacy: LegacyTransactionLog | None = None) -> None:
        self.ledgers: dict[str, MonthlyLedger] = {}
        self.legacy = legacy
        self.saves = 0

    def load(self, month: str) -> MonthlyLedger | None:
        return self.ledgers.get(month)

    def save(self, ledger: MonthlyLedger) -> None:
        self.saves += 1
        self.ledgers[ledger.month] = ledger

    def load_legacy_log(self) -> LegacyTransactionLog | None:
        return self.legacy


def feb() -> MonthlyLedger:
    return MonthlyLedger.empty("2026-02", now=dt.datetime(2026, 2, 1, tzinfo=dt.UTC))


def test_merge_appends_and_sorts_newest_first():
    batch = [tx("a", "2026-02-03"), tx("b", "2026-02-10"), tx("c", "2026-02-05")]
    result = merge_transactions(feb(), batch, now=NOW)

    assert result.added_count == 3
    assert [t.id for t in result.ledger.transactions] == ["b", "c", "a"]
    assert result.added_ids == ("a", "b", "c")
    assert result.ledger.last_synced_at == NOW


def test_merge_is_idempotent():
    batch = [tx("a", "2026-02-03"), tx("b", "2026-02-10")]
    first = merge_transactions(feb(), batch, now=NOW)
    second = merge_transactions(first.ledger, batch, now=NOW)

    assert second.added_count == 0
    assert second.ledger.transactions == first.ledger.transactions


def test_equal_dates_keep_stable_order():
    batch = [tx("x", "2026-02-07"), tx("y", "2026-02-07"), tx("z", "2026-02-07")]
    result = merge_transactions(feb(), batch, now=NOW)
    assert [t.id for t in result.ledger.transactions] == ["x", "y", "z"]


def test_pending_replaced_by_posted_counts_zero():
    pending = merge_transactions(feb(), [tx("p1", "2026-02-10", "42.50", pending=True)], now=NOW)
    assert pending.added_count == 1

    posted = tx("t1", "2026-02-11", "42.50", pending_reference_id="p1")
    result = merge_transactions(pending.ledger, [posted], now=NOW)

    assert result.added_count == 0
    assert result.removed_ids == ("p1",)
    assert result.ledger.ids() == {"t1"}
    assert not result.ledger.transactions[0].is_pending


def test_pending_and_posted_in_same_batch_keeps_only_posted():
    batch = [
        tx("p1", "2026-02-10", pending=True),
        tx("t1", "2026-02-10", pending_reference_id="p1"),
    ]
    result = merge_transactions(feb(), batch, now=NOW)
    assert result.ledger.ids() == {"t1"}
    assert result.added_count == 1


def test_superseded_ids_from_another_month_are_dropped():
    jan = MonthlyLedger(
        month="2026-01",
        last_synced_at=NOW,
        transactions=(tx("p1", "2026-01-31", pending=True), tx("k", "2026-01-20")),
    )
    result = merge_transactions(jan, [], now=NOW, superseded_ids={"p1"})

    assert result.ledger.ids() == {"k"}
    assert result.removed_ids == ("p1",)
    assert result.added_count == -1


def test_pending_record_never_supersedes():
    t = tx("p2", "2026-02-10", pending=True, pending_reference_id="p1")
    assert t.supersedes is None


def test_duplicate_ids_in_batch_are_added_once():
    batch = [tx("a", "2026-02-03", "10.00"), tx("a", "2026-02-03", "99.00")]
    result = merge_transactions(feb(), batch, now=NOW)

    assert result.added_count == 1
    assert result.ledger.transactions[0].amount == Decimal("10.00")


def test_stored_record_wins_over_incoming_with_same_id():
    first = merge_transactions(feb(), [tx("a", "2026-02-03", "10.00")], now=NOW)
    second = merge_transactions(first.ledger, [tx("a", "2026-02-03", "25.00")], now=NOW)

    assert second.added_count == 0
    assert second.ledger.total == Decimal("10.00")


def test_empty_batch_still_updates_sync_time():
    ledger = feb()
    result = merge_transactions(ledger, [], now=NOW)

    assert result.added_count == 0
    assert result.ledger.transactions == ()
    assert result.ledger.last_synced_at == NOW


def test_out_of_month_records_are_skipped(caplog: pytest.LogCaptureFixture):
    batch = [tx("jan", "2026-01-31"), tx("feb", "2026-02-01"), tx("mar", "2026-03-01")]
    with caplog.at_level("WARNING", logger="spend_pulse.ledger"):
        result = merge_transactions(feb(), batch, now=NOW)

    assert result.ledger.ids() == {"feb"}
    assert "merge:skip_out_of_month" in caplog.text


def test_refund_reduces_total():
    batch = [tx("a", "2026-02-03", "100.00"), tx("r", "2026-02-04", "-30.00")]
    result = merge_transactions(feb(), batch, now=NOW)
    assert result.ledger.total == Decimal("70.00")


def test_invalid_month_key_raises():
    with pytest.raises(InvalidMonthError):
        MonthlyLedger.empty("2026-13", now=NOW)


def test_direct_construction_with_bad_month_is_validation_error():
    with pytest.raises(ValidationError):
        MonthlyLedger(month="2026-1", last_synced_at=NOW)


def test_migrate_legacy_log_filters_to_month():
    log = LegacyTransactionLog(
        last_sync=dt.datetime(2026, 2, 14, tzinfo=dt.UTC),
        transactions=(
            tx("old", "2026-01-30"),
            tx("a", "2026-02-02"),
            tx("b", "2026-02-12"),
            tx("a", "2026-02-02"),
        ),
    )
    ledger = migrate_legacy_log(log, "2026-02", now=NOW)

    assert [t.id for t in ledger.transactions] == ["b", "a"]
    assert ledger.last_synced_at == dt.datetime(2026, 2, 14, tzinfo=dt.UTC)


def test_get_or_create_current_month_seeds_from_legacy_once():
    legacy = LegacyTransactionLog(transactions=(tx("a", "2026-02-02"), tx("z", "2026-01-05")))
    repo = MemoryRepo(legacy)

    ledger = get_or_create_current_month(repo, now=NOW)
    assert ledger.month == "2026-02"
    assert ledger.ids() == {"a"}
    assert repo.saves == 1

    repo.legacy = LegacyTransactionLog(transactions=(tx("b", "2026-02-03"),))
    again = get_or_create_current_month(repo, now=NOW)
    assert again.ids() == {"a"}
    assert repo.saves == 1


def test_get_or_create_month_without_legacy_creates_empty():
    repo = MemoryRepo(LegacyTransactionLog(transactions=(tx("a", "2026-01-02"),)))
    ledger = get_or_create_month(repo, "2026-01", now=NOW)

    assert ledger.transactions == ()
    assert repo.ledgers["2026-01"] == ledger


def test_partition_by_month_groups_in_input_order():
    parts = partition_by_month([tx("a", "2026-01-31"), tx("b", "2026-02-01"), tx("c", "2026-01-02")])
    assert {k: [t.id for t in v] for k, v in parts.items()} == {
        "2026-01": ["a", "c"],
        "2026-02": ["b"],
    }


def test_mark_checked_sets_timestamp_only():
    ledger = merge_transactions(feb(), [tx("a", "2026-02-03")], now=NOW).ledger
    checked = mark_checked(ledger, now=NOW + dt.timedelta(hours=1))

    assert checked.last_checked_at == NOW + dt.timedelta(hours=1)
    assert checked.transactions == ledger.transactions
    assert checked.last_synced_at == NOW
