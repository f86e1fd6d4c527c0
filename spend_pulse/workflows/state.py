"""Display caches kept next to the ledgers: last summary and last sync result."""

from __future__ import annotations

from ..models import SyncResult
from ..summary import Summary
from ..vault import Vault, read_document, write_document


def save_summary(vault: Vault, summary: Summary) -> None:
    write_document(vault.summary_path, summary)


def load_summary(vault: Vault) -> Summary | None:
    return read_document(vault.summary_path, Summary)


def save_sync_result(vault: Vault, result: SyncResult) -> None:
    write_document(vault.sync_result_path, result)


def load_sync_result(vault: Vault) -> SyncResult | None:
    return read_document(vault.sync_result_path, SyncResult)


__all__ = ["save_summary", "load_summary", "save_sync_result", "load_sync_result"]
