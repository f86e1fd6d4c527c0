"""Connect, register, and remove Plaid items."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from ..bank import SANDBOX_INSTITUTION_NAME, BankClient
from ..config import AppConfig, PlaidItem
from ..credentials import CredentialStore
from ..errors import ConfigError
from ..link_server import LinkCallback, run_link_server
from ..logging_setup import get_logger

_logger = get_logger("spend_pulse.workflows.link")


@dataclass(frozen=True, slots=True)
class LinkedItem:
    item_id: str
    access_token: str
    institution: str
    accounts: list[str] = field(default_factory=list)


def link_sandbox_item(bank: BankClient) -> LinkedItem:
    """Create a sandbox item directly, without a browser round trip."""

    public_token = bank.create_sandbox_public_token()
    access_token, item_id = bank.exchange_public_token(public_token)
    accounts = [a.label for a in bank.get_accounts(access_token)]
    return LinkedItem(
        item_id=item_id,
        access_token=access_token,
        institution=SANDBOX_INSTITUTION_NAME,
        accounts=accounts,
    )


def link_with_browser(
    bank: BankClient,
    *,
    serve: Callable[..., LinkCallback] = run_link_server,
    on_progress: Callable[[str], None] | None = None,
) -> LinkedItem:
    """Run Plaid Link in the browser and exchange the resulting public token."""

    link_token = bank.create_link_token()
    cb = serve(link_token, on_progress=on_progress)
    if on_progress:
        on_progress("Exchanging token...")
    access_token, item_id = bank.exchange_public_token(cb.public_token)
    accounts = cb.accounts or [a.label for a in bank.get_accounts(access_token)]
    return LinkedItem(
        item_id=item_id,
        access_token=access_token,
        institution=cb.institution,
        accounts=accounts,
    )


def register_item(config: AppConfig, credentials: CredentialStore, linked: LinkedItem) -> AppConfig:
    """Store the item's access token and return ``config`` with the item added."""

    credentials.set_access_token(linked.item_id, linked.access_token)
    _logger.info("link:registered item_id=%s institution=%s", linked.item_id, linked.institution)
    return config.with_item(
        PlaidItem(
            item_id=linked.item_id,
            institution=linked.institution,
            accounts=list(linked.accounts),
        )
    )


def remove_item(config: AppConfig, credentials: CredentialStore, item_id: str) -> AppConfig:
    if config.find_item(item_id) is None:
        raise ConfigError(f'Account with ID "{item_id}" not found.')
    credentials.delete_access_token(item_id)
    _logger.info("link:removed item_id=%s", item_id)
    return config.without_item(item_id)


def clear_items(config: AppConfig, credentials: CredentialStore) -> AppConfig:
    """Forget every linked item (used when switching Plaid environments)."""

    for item in config.plaid.items:
        credentials.delete_access_token(item.item_id)
    return config.model_copy(
        update={"plaid": config.plaid.model_copy(update={"items": []})}
    )


__all__ = [
    "LinkedItem",
    "link_sandbox_item",
    "link_with_browser",
    "register_item",
    "remove_item",
    "clear_items",
]
