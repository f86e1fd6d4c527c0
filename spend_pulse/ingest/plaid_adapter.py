"""Adapter for Plaid ``/transactions/get`` records.

Input: transaction dicts as returned by ``response.to_dict()`` (``date`` may
be a ``datetime.date`` or an ISO string).

Mapping rules:
- ``id``: ``transaction_id``
- ``date``: ``date``
- ``amount``: ``amount`` (Plaid reports debits as positive)
- ``merchant``: ``merchant_name``, else ``name``
- ``category``: ``personal_finance_category.primary``, else ``category[0]``,
  else ``"Uncategorized"``
- state: ``Pending`` when ``pending`` is true; otherwise ``Posted`` with
  ``supersedes = pending_transaction_id``

Records missing an id, date, or numeric amount are skipped with a warning.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from pydantic import ValidationError

from ..logging_setup import get_logger
from ..models import Transaction
from ..money import to_decimal

_logger = get_logger("spend_pulse.ingest.plaid")

UNCATEGORIZED = "Uncategorized"


def _text(value: Any) -> str | None:
    if value is None:
        return None
    s = " ".join(str(value).split())
    return s or None


def _category(raw: Mapping[str, Any]) -> str:
    pfc = raw.get("personal_finance_category")
    if isinstance(pfc, Mapping):
        primary = _text(pfc.get("primary"))
        if primary:
            return primary
    legacy = raw.get("category")
    if isinstance(legacy, list | tuple) and legacy:
        first = _text(legacy[0])
        if first:
            return first
    return UNCATEGORIZED


def _date(value: Any) -> dt.date | None:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        try:
            return dt.date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def to_transaction(raw: Mapping[str, Any]) -> Transaction | None:
    """Map one Plaid record; ``None`` when it cannot be used."""

    tx_id = _text(raw.get("transaction_id"))
    date = _date(raw.get("date"))
    amount = to_decimal(raw.get("amount"))
    if tx_id is None or date is None or amount is None:
        _logger.warning(
            "plaid:skip_malformed id=%s date=%r amount=%r",
            tx_id,
            raw.get("date"),
            raw.get("amount"),
        )
        return None

    merchant = _text(raw.get("merchant_name")) or _text(raw.get("name")) or "Unknown"
    try:
        return Transaction.from_flat(
            id=tx_id,
            date=date,
            amount=amount,
            merchant=merchant,
            category=_category(raw),
            pending=bool(raw.get("pending")),
            pending_reference_id=_text(raw.get("pending_transaction_id")),
        )
    except ValidationError:
        _logger.warning("plaid:skip_invalid id=%s", tx_id, exc_info=True)
        return None


def to_transactions(rows: Iterable[Mapping[str, Any]]) -> Iterator[Transaction]:
    """Convert Plaid records in input order, dropping malformed ones."""

    for raw in rows:
        tx = to_transaction(raw)
        if tx is not None:
            yield tx


__all__ = ["UNCATEGORIZED", "to_transaction", "to_transactions"]
