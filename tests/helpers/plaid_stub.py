"""Test helpers to stub the Plaid client used by the sync and link workflows.

``FakeBankClient`` satisfies :class:`spend_pulse.bank.BankClient`. Tests
queue raw ``/transactions/get`` records per access token (the same dict
shape ``response.to_dict()`` yields) and can make it fail with a Plaid
``error_code`` to exercise error paths.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

from spend_pulse.bank import FetchResult
from spend_pulse.errors import BankClientError
from spend_pulse.models import Account


def plaid_tx(
    tx_id: str,
    date: str,
    amount: float,
    *,
    merchant: str | None = "Store",
    name: str | None = None,
    category: str | None = "FOOD_AND_DRINK",
    pending: bool = False,
    pending_transaction_id: str | None = None,
) -> dict[str, Any]:
    """Build one raw Plaid transaction record."""

    return {
        "transaction_id": tx_id,
        "date": dt.date.fromisoformat(date),
        "amount": amount,
        "merchant_name": merchant,
        "name": name or merchant,
        "personal_finance_category": {"primary": category} if category else None,
        "pending": pending,
        "pending_transaction_id": pending_transaction_id,
    }


class FakeBankClient:
    """In-memory :class:`BankClient`.

    Parameters
    ----------
    transactions:
        Raw records returned for every access token unless ``by_token``
        overrides it.
    by_token:
        Per-access-token records.
    error_code:
        When set, ``fetch_transactions`` raises ``BankClientError`` with it.
    """

    def __init__(
        self,
        transactions: list[dict[str, Any]] | None = None,
        *,
        by_token: dict[str, list[dict[str, Any]]] | None = None,
        accounts: list[Account] | None = None,
        error_code: str | None = None,
    ) -> None:
        self.transactions = list(transactions or [])
        self.by_token = dict(by_token or {})
        self.accounts = accounts if accounts is not None else [Account(name="Sapphire", mask="4242")]
        self.error_code = error_code
        self.calls: list[tuple[str, dt.date, dt.date]] = []
        self.exchanged: list[str] = []
        self._items = 0

    def fetch_transactions(self, access_token: str, start: dt.date, end: dt.date) -> FetchResult:
        self.calls.append((access_token, start, end))
        if self.error_code:
            raise BankClientError(
                f"Plaid transactions/get failed: {self.error_code}", error_code=self.error_code
            )
        rows = self.by_token.get(access_token, self.transactions)
        return FetchResult(accounts=list(self.accounts), transactions=list(rows))

    def get_accounts(self, access_token: str) -> list[Account]:
        return list(self.accounts)

    def create_link_token(self) -> str:
        return "link-sandbox-token"

    def exchange_public_token(self, public_token: str) -> tuple[str, str]:
        self.exchanged.append(public_token)
        self._items += 1
        return f"access-{self._items}", f"item-{self._items}"

    def create_sandbox_public_token(self, institution_id: str = "ins_109508") -> str:
        return f"public-sandbox-{institution_id}"
