"""Plaid client wrapper.

Only this module imports ``plaid``. Workflows depend on the small
:class:`BankClient` protocol so tests can substitute a stub. API failures are
re-raised as :class:`~spend_pulse.errors.BankClientError` carrying Plaid's
``error_code``.
"""

from __future__ import annotations

import datetime as dt
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

import plaid
from plaid.api import plaid_api
from plaid.model.accounts_get_request import AccountsGetRequest
from plaid.model.country_code import CountryCode
from plaid.model.item_public_token_exchange_request import ItemPublicTokenExchangeRequest
from plaid.model.link_token_create_request import LinkTokenCreateRequest
from plaid.model.link_token_create_request_user import LinkTokenCreateRequestUser
from plaid.model.products import Products
from plaid.model.sandbox_public_token_create_request import SandboxPublicTokenCreateRequest
from plaid.model.transactions_get_request import TransactionsGetRequest
from plaid.model.transactions_get_request_options import TransactionsGetRequestOptions

from .config import PlaidMode
from .errors import BankClientError
from .logging_setup import get_logger
from .models import Account

_logger = get_logger("spend_pulse.bank")

PAGE_SIZE = 500
CLIENT_NAME = "Spend Pulse"
CLIENT_USER_ID = "spend-pulse-user"
# "First Platypus Bank", Plaid's default sandbox institution.
SANDBOX_INSTITUTION_ID = "ins_109508"
SANDBOX_INSTITUTION_NAME = "First Platypus Bank"

_T = TypeVar("_T")


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Accounts and raw transaction dicts for one item and date range."""

    accounts: list[Account] = field(default_factory=list)
    transactions: list[dict[str, Any]] = field(default_factory=list)


class BankClient(Protocol):
    def fetch_transactions(
        self, access_token: str, start: dt.date, end: dt.date
    ) -> FetchResult: ...

    def get_accounts(self, access_token: str) -> list[Account]: ...

    def create_link_token(self) -> str: ...

    def exchange_public_token(self, public_token: str) -> tuple[str, str]: ...

    def create_sandbox_public_token(self, institution_id: str = SANDBOX_INSTITUTION_ID) -> str: ...


def _host_for(mode: PlaidMode) -> str:
    # Plaid retired its Development environment; real-bank mode talks to Production.
    if mode == "sandbox":
        return plaid.Environment.Sandbox
    return plaid.Environment.Production


def create_plaid_client(client_id: str, secret: str, mode: PlaidMode) -> plaid_api.PlaidApi:
    configuration = plaid.Configuration(
        host=_host_for(mode),
        api_key={
            "clientId": client_id,
            "secret": secret,
        },
    )
    return plaid_api.PlaidApi(plaid.ApiClient(configuration))


def _to_bank_error(e: plaid.ApiException, action: str) -> BankClientError:
    code: str | None = None
    message = str(e)
    try:
        body = json.loads(e.body or "{}")
    except (TypeError, ValueError):
        body = {}
    if isinstance(body, dict):
        code = body.get("error_code") or None
        message = body.get("error_message") or code or message
    return BankClientError(f"Plaid {action} failed: {message}", error_code=code)


def _account_from(raw: dict[str, Any]) -> Account:
    return Account(name=str(raw.get("name") or "Account"), mask=str(raw.get("mask") or ""))


class PlaidBankClient:
    """:class:`BankClient` backed by ``plaid-python``."""

    def __init__(self, api: plaid_api.PlaidApi, *, page_size: int = PAGE_SIZE) -> None:
        self._api = api
        self._page_size = page_size

    @classmethod
    def from_credentials(cls, client_id: str, secret: str, mode: PlaidMode) -> PlaidBankClient:
        return cls(create_plaid_client(client_id, secret, mode))

    def _call(self, action: str, fn: Callable[[], _T]) -> _T:
        try:
            return fn()
        except plaid.ApiException as e:
            raise _to_bank_error(e, action) from e

    def fetch_transactions(self, access_token: str, start: dt.date, end: dt.date) -> FetchResult:
        """Page through ``/transactions/get`` until every transaction is read."""

        accounts: list[Account] = []
        transactions: list[dict[str, Any]] = []
        offset = 0
        while True:
            request = TransactionsGetRequest(
                access_token=access_token,
                start_date=start,
                end_date=end,
                options=TransactionsGetRequestOptions(
                    count=self._page_size,
                    offset=offset,
                    include_personal_finance_category=True,
                ),
            )
            page = self._call(
                "transactions/get", lambda r=request: self._api.transactions_get(r)
            ).to_dict()
            if not accounts:
                accounts = [_account_from(a) for a in page.get("accounts") or []]
            batch = page.get("transactions") or []
            transactions.extend(batch)
            total = int(page.get("total_transactions") or 0)
            _logger.debug(
                "bank:page offset=%d received=%d total=%d", offset, len(batch), total
            )
            offset += len(batch)
            if not batch or offset >= total:
                break
        return FetchResult(accounts=accounts, transactions=transactions)

    def get_accounts(self, access_token: str) -> list[Account]:
        request = AccountsGetRequest(access_token=access_token)
        resp = self._call("accounts/get", lambda: self._api.accounts_get(request)).to_dict()
        return [_account_from(a) for a in resp.get("accounts") or []]

    def create_link_token(self) -> str:
        request = LinkTokenCreateRequest(
            products=[Products("transactions")],
            client_name=CLIENT_NAME,
            country_codes=[CountryCode("US")],
            language="en",
            user=LinkTokenCreateRequestUser(client_user_id=CLIENT_USER_ID),
        )
        resp = self._call("link/token/create", lambda: self._api.link_token_create(request))
        return resp["link_token"]

    def exchange_public_token(self, public_token: str) -> tuple[str, str]:
        """Return ``(access_token, item_id)`` for a Link public token."""

        request = ItemPublicTokenExchangeRequest(public_token=public_token)
        resp = self._call(
            "item/public_token/exchange", lambda: self._api.item_public_token_exchange(request)
        )
        return resp["access_token"], resp["item_id"]

    def create_sandbox_public_token(self, institution_id: str = SANDBOX_INSTITUTION_ID) -> str:
        request = SandboxPublicTokenCreateRequest(
            institution_id=institution_id,
            initial_products=[Products("transactions")],
        )
        resp = self._call(
            "sandbox/public_token/create", lambda: self._api.sandbox_public_token_create(request)
        )
        return resp["public_token"]


__all__ = [
    "PAGE_SIZE",
    "SANDBOX_INSTITUTION_ID",
    "SANDBOX_INSTITUTION_NAME",
    "FetchResult",
    "BankClient",
    "create_plaid_client",
    "PlaidBankClient",
]
