"""Data models for ``spend_pulse``.

Transactions and ledgers are immutable pydantic models; merge and migration
helpers return updated copies instead of mutating in place. The on-disk
documents written by :mod:`spend_pulse.vault` are the JSON dumps of these
models.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .money import ZERO, Money, round_money
from .months import MonthKey, parse_month

# ---------------------------------------------------------------------------
# Transaction state: posted (optionally superseding a pending id) or pending
# ---------------------------------------------------------------------------


class Posted(BaseModel):
    """A settled charge.

    ``supersedes`` names the pending transaction this one replaces once the
    bank confirms it (the provider may assign the posted record a new id).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["posted"] = "posted"
    supersedes: str | None = None


class Pending(BaseModel):
    """A provisional charge that may later be replaced by a posted record."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["pending"] = "pending"


TransactionState = Annotated[Posted | Pending, Field(discriminator="kind")]


class Transaction(BaseModel):
    """A single posted or pending charge. Positive ``amount`` is spend."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    id: str
    date: dt.date
    amount: Decimal
    merchant: str
    category: str
    state: TransactionState = Field(default_factory=Posted)

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("id must be non-empty")
        return v

    @field_validator("amount")
    @classmethod
    def _amount_to_cents(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("amount must be a finite number")
        return round_money(v)

    @property
    def is_pending(self) -> bool:
        return isinstance(self.state, Pending)

    @property
    def supersedes(self) -> str | None:
        """Id of the pending transaction this posted record replaces, if any."""

        if isinstance(self.state, Posted):
            return self.state.supersedes
        return None

    @classmethod
    def from_flat(
        cls,
        *,
        id: str,
        date: dt.date | str,
        amount: Decimal | float | int | str,
        merchant: str,
        category: str,
        pending: bool = False,
        pending_reference_id: str | None = None,
    ) -> Transaction:
        """Build from the flat ``pending`` / ``pending_reference_id`` shape.

        A pending record never supersedes anything, so ``pending_reference_id``
        is only honored for posted records.
        """

        state: Posted | Pending
        if pending:
            state = Pending()
        else:
            state = Posted(supersedes=pending_reference_id or None)
        return cls(
            id=id,
            date=date,
            amount=amount,
            merchant=merchant,
            category=category,
            state=state,
        )


# ---------------------------------------------------------------------------
# Ledgers
# ---------------------------------------------------------------------------


class MonthlyLedger(BaseModel):
    """The persisted record for one calendar month.

    ``transactions`` is unique by ``id`` and ordered by ``date`` descending.
    Those invariants are established by
    :func:`spend_pulse.ledger.merge_transactions`; the model itself only
    validates field shapes.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    month: str
    last_synced_at: dt.datetime
    last_checked_at: dt.datetime | None = None
    transactions: tuple[Transaction, ...] = ()

    @field_validator("month")
    @classmethod
    def _month_parses(cls, v: str) -> str:
        parse_month(v)
        return v

    @classmethod
    def empty(cls, month: MonthKey, *, now: dt.datetime) -> MonthlyLedger:
        """An empty ledger for ``month``.

        Raises :class:`~spend_pulse.errors.InvalidMonthError` for a malformed
        key; constructing the model directly raises ``ValidationError``.
        """

        parse_month(month)
        return cls(month=month, last_synced_at=now)

    @property
    def total(self) -> Decimal:
        return sum((t.amount for t in self.transactions), ZERO)

    def ids(self) -> set[str]:
        return {t.id for t in self.transactions}


class Account(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    mask: str = ""

    @property
    def label(self) -> str:
        return f"{self.name} (...{self.mask})" if self.mask else self.name


class LegacyTransactionLog(BaseModel):
    """Single-file transaction log written by releases before monthly ledgers.

    Read once by :func:`spend_pulse.ledger.migrate_legacy_log` to seed the
    current month; never written by this package.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    last_sync: dt.datetime | None = None
    account: Account | None = None
    transactions: tuple[Transaction, ...] = ()


# ---------------------------------------------------------------------------
# Sync bookkeeping
# ---------------------------------------------------------------------------


class SyncResult(BaseModel):
    """Outcome of the most recent sync, read back by ``check``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    synced: int
    new: int
    account: str
    total_this_month: Money
    new_transaction_ids: list[str] = Field(default_factory=list)
    # Months holding those ids, newest first.
    new_transaction_months: list[str] = Field(default_factory=list)
    synced_at: dt.datetime


__all__ = [
    "Posted",
    "Pending",
    "TransactionState",
    "Transaction",
    "MonthlyLedger",
    "Account",
    "LegacyTransactionLog",
    "SyncResult",
]
