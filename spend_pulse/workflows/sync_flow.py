"""Pull transactions from every linked Plaid item into the monthly ledgers."""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable

from ..bank import BankClient
from ..config import AppConfig
from ..credentials import CredentialStore
from ..errors import ConfigError, CredentialsError
from ..ingest.plaid_adapter import to_transactions
from ..ledger import (
    LedgerRepository,
    get_or_create_current_month,
    get_or_create_month,
    merge_transactions,
    partition_by_month,
)
from ..logging_setup import get_logger
from ..models import MonthlyLedger, SyncResult, Transaction
from ..months import month_key, previous_month
from ..vault import Vault
from .state import save_summary, save_sync_result
from .status_flow import summarize_month

_logger = get_logger("spend_pulse.workflows.sync")


def run_sync(
    repo: LedgerRepository,
    vault: Vault,
    bank: BankClient,
    config: AppConfig,
    credentials: CredentialStore,
    *,
    now: dt.datetime,
    days: int | None = None,
    on_progress: Callable[[str], None] | None = None,
) -> SyncResult:
    """Fetch ``[today - days, today]`` for each item and merge by month.

    Parameters
    ----------
    repo / vault:
        Ledger storage and the vault holding the summary and sync caches.
    bank:
        Client used for ``fetch_transactions``.
    config:
        Linked items and settings; ``days`` defaults to ``settings.sync_days``.
    credentials:
        Source of each item's access token.
    on_progress:
        Optional callable receiving short status lines (e.g., ``print``).

    Returns
    -------
    SyncResult
        ``new`` is the net number of transactions added across all months
        (a posted record replacing its pending version counts as zero, including
        when the pending version was stored under the previous month).

    Raises
    ------
    ConfigError
        No Plaid item is linked.
    CredentialsError
        An item has no stored access token.
    BankClientError
        A Plaid request failed; nothing is written in that case.
    """

    items = config.plaid.items
    if not items:
        raise ConfigError('No account connected. Run "spend-pulse setup" first.')

    window = days if days is not None else config.settings.sync_days
    if window <= 0:
        raise ConfigError("Sync days must be a positive number")
    end = now.date()
    start = end - dt.timedelta(days=window)
    if on_progress:
        on_progress(f"Syncing transactions from {start.isoformat()} to {end.isoformat()}...")

    incoming: list[Transaction] = []
    labels: list[str] = []
    synced = 0
    for item in items:
        token = credentials.get_access_token(item.item_id)
        if not token:
            raise CredentialsError(
                f"No access token for {item.institution} ({item.item_id}). "
                'Run "spend-pulse link" to reconnect it.'
            )
        result = bank.fetch_transactions(token, start, end)
        synced += len(result.transactions)
        labels.extend(a.label for a in result.accounts)
        batch = list(to_transactions(result.transactions))
        incoming.extend(batch)
        _logger.info(
            "sync:item item_id=%s received=%d usable=%d",
            item.item_id,
            len(result.transactions),
            len(batch),
        )

    current_key = month_key(end)
    by_month = partition_by_month(incoming)
    by_month.setdefault(current_key, [])
    superseded = {ref for tx in incoming if (ref := tx.supersedes)}

    net_added = 0
    new_ids: list[str] = []
    new_months: list[str] = []
    merged_ledgers: dict[str, MonthlyLedger] = {}
    for key in sorted(by_month):
        if key == current_key:
            ledger = get_or_create_current_month(repo, now=now)
        else:
            ledger = get_or_create_month(repo, key, now=now)
        merged = merge_transactions(ledger, by_month[key], now=now, superseded_ids=superseded)
        repo.save(merged.ledger)
        net_added += merged.added_count
        new_ids.extend(merged.added_ids)
        if merged.added_ids:
            new_months.append(key)
        merged_ledgers[key] = merged.ledger

    # The pending version of a charge can sit in the month before its posted record.
    for key in sorted({previous_month(k) for k in by_month} - by_month.keys()):
        stale = repo.load(key) if superseded else None
        if stale is None or not superseded & stale.ids():
            continue
        merged = merge_transactions(stale, [], now=now, superseded_ids=superseded)
        repo.save(merged.ledger)
        net_added += merged.added_count
        _logger.info(
            "sync:superseded_across_months month=%s removed=%d",
            key,
            len(merged.removed_ids),
        )

    summary = summarize_month(repo, merged_ledgers[current_key], config, now=now)
    save_summary(vault, summary)

    sync_result = SyncResult(
        synced=synced,
        new=max(net_added, 0),
        account=", ".join(labels) or ", ".join(i.institution for i in items),
        total_this_month=summary.spending.total,
        new_transaction_ids=new_ids,
        new_transaction_months=sorted(new_months, reverse=True),
        synced_at=now,
    )
    save_sync_result(vault, sync_result)
    _logger.info(
        "sync:done synced=%d new=%d months=%d", synced, sync_result.new, len(by_month)
    )
    return sync_result


__all__ = ["run_sync"]
