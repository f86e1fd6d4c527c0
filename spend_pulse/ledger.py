"""Ledger Store: monthly transaction collections and their merge rules.

Public surface:
- ``LedgerRepository``: persistence protocol injected by callers (the JSON
  implementation lives in :mod:`spend_pulse.vault`).
- ``merge_transactions``: idempotent merge of an incoming batch into one
  month's ledger, including pending → posted reconciliation.
- ``get_or_create_month`` / ``get_or_create_current_month``: load a ledger or
  create it, seeding the current month from the legacy single-file log when
  one exists.
- ``migrate_legacy_log``: the one-shot legacy adapter.
- ``partition_by_month`` and ``mark_checked``: small helpers used by the sync
  and check workflows.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Collection, Iterable
from dataclasses import dataclass
from typing import Protocol

from .logging_setup import get_logger
from .models import LegacyTransactionLog, MonthlyLedger, Transaction
from .months import MonthKey, month_bounds, month_key

_logger = get_logger("spend_pulse.ledger")


class LedgerRepository(Protocol):
    """Storage handle for monthly ledgers keyed by ``YYYY-MM``."""

    def load(self, month: MonthKey) -> MonthlyLedger | None: ...

    def save(self, ledger: MonthlyLedger) -> None: ...

    def load_legacy_log(self) -> LegacyTransactionLog | None: ...


@dataclass(frozen=True, slots=True)
class MergeResult:
    """Outcome of :func:`merge_transactions`.

    ``added_count`` is net of supersessions: a posted record replacing a
    stored pending one counts as zero. ``added_ids`` and ``removed_ids`` list
    the ids actually appended and dropped, in processing order.
    """

    added_count: int
    ledger: MonthlyLedger
    added_ids: tuple[str, ...] = ()
    removed_ids: tuple[str, ...] = ()


def _sort_newest_first(transactions: Iterable[Transaction]) -> list[Transaction]:
    # ``sorted`` is stable with ``reverse=True``; equal dates keep their order.
    return sorted(transactions, key=lambda t: t.date, reverse=True)


def merge_transactions(
    ledger: MonthlyLedger,
    incoming: Iterable[Transaction],
    *,
    now: dt.datetime,
    superseded_ids: Collection[str] = (),
) -> MergeResult:
    """Merge ``incoming`` into ``ledger`` and return the updated copy.

    Steps
    -----
    1. Posted incoming records with a ``supersedes`` reference name pending
       ids that are now obsolete.
    2. Stored records with those ids are dropped.
    3. Incoming records whose id is already stored (or repeated earlier in
       the batch, or itself superseded) are ignored; stored values win.
    4. The rest are appended and the whole collection is re-sorted newest
       first.
    5. ``added_count`` = appended − dropped.
    6. ``last_synced_at`` is set to ``now``.

    ``superseded_ids`` adds pending ids retired by posted records that live in
    another month's batch (a charge pending on the 31st can post on the 1st).

    Records dated outside the ledger's month are skipped with a warning.
    """

    start, end = month_bounds(ledger.month)
    batch: list[Transaction] = []
    for tx in incoming:
        if not start <= tx.date <= end:
            _logger.warning(
                "merge:skip_out_of_month month=%s id=%s date=%s",
                ledger.month,
                tx.id,
                tx.date.isoformat(),
            )
            continue
        batch.append(tx)

    superseded: set[str] = {ref for tx in batch if (ref := tx.supersedes)}
    superseded.update(superseded_ids)

    kept_existing: list[Transaction] = []
    removed_ids: list[str] = []
    for tx in ledger.transactions:
        if tx.id in superseded:
            removed_ids.append(tx.id)
        else:
            kept_existing.append(tx)

    seen: set[str] = {tx.id for tx in kept_existing}
    added: list[Transaction] = []
    for tx in batch:
        if tx.id in seen or tx.id in superseded:
            continue
        seen.add(tx.id)
        added.append(tx)

    merged = ledger.model_copy(
        update={
            "transactions": tuple(_sort_newest_first([*kept_existing, *added])),
            "last_synced_at": now,
        }
    )
    added_count = len(added) - len(removed_ids)
    _logger.debug(
        "merge:done month=%s incoming=%d added=%d removed=%d net=%d",
        ledger.month,
        len(batch),
        len(added),
        len(removed_ids),
        added_count,
    )
    return MergeResult(
        added_count=added_count,
        ledger=merged,
        added_ids=tuple(t.id for t in added),
        removed_ids=tuple(removed_ids),
    )


def migrate_legacy_log(
    log: LegacyTransactionLog,
    month: MonthKey,
    *,
    now: dt.datetime,
) -> MonthlyLedger:
    """Seed a new ledger for ``month`` from the legacy single-file log.

    Only transactions dated inside the month are carried over; duplicates by
    id keep their first occurrence.
    """

    start, end = month_bounds(month)
    seen: set[str] = set()
    carried: list[Transaction] = []
    for tx in log.transactions:
        if not start <= tx.date <= end or tx.id in seen:
            continue
        seen.add(tx.id)
        carried.append(tx)
    return MonthlyLedger(
        month=month,
        last_synced_at=log.last_sync or now,
        transactions=tuple(_sort_newest_first(carried)),
    )


def get_or_create_month(
    repo: LedgerRepository,
    month: MonthKey,
    *,
    now: dt.datetime,
    migrate_legacy: bool = False,
) -> MonthlyLedger:
    """Return the stored ledger for ``month`` or create and save an empty one.

    With ``migrate_legacy=True`` a missing ledger is seeded from the legacy
    log when the repository has one.
    """

    existing = repo.load(month)
    if existing is not None:
        return existing

    ledger: MonthlyLedger | None = None
    if migrate_legacy:
        legacy = repo.load_legacy_log()
        if legacy is not None:
            ledger = migrate_legacy_log(legacy, month, now=now)
            _logger.info(
                "ledger:migrated_legacy month=%s transactions=%d",
                month,
                len(ledger.transactions),
            )
    if ledger is None:
        ledger = MonthlyLedger.empty(month, now=now)
    repo.save(ledger)
    return ledger


def get_or_create_current_month(repo: LedgerRepository, *, now: dt.datetime) -> MonthlyLedger:
    """Ledger for the calendar month containing ``now``; legacy-seeded on first use."""

    return get_or_create_month(repo, month_key(now.date()), now=now, migrate_legacy=True)


def partition_by_month(transactions: Iterable[Transaction]) -> dict[MonthKey, list[Transaction]]:
    """Group transactions by calendar month, preserving input order within each."""

    out: dict[MonthKey, list[Transaction]] = {}
    for tx in transactions:
        out.setdefault(month_key(tx.date), []).append(tx)
    return out


def mark_checked(ledger: MonthlyLedger, *, now: dt.datetime) -> MonthlyLedger:
    return ledger.model_copy(update={"last_checked_at": now})


__all__ = [
    "LedgerRepository",
    "MergeResult",
    "merge_transactions",
    "migrate_legacy_log",
    "get_or_create_month",
    "get_or_create_current_month",
    "partition_by_month",
    "mark_checked",
]
