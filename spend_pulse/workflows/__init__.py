"""Workflow orchestrators behind the CLI commands.

Each workflow composes the ledger store, the summary engine, and (for sync)
a bank client. Dependencies are passed in explicitly; nothing here reads the
clock or locates the vault on its own.
"""

from .check_flow import CheckReport, run_check
from .status_flow import recent_transactions, run_status, summarize_month
from .sync_flow import run_sync

__all__ = [
    "CheckReport",
    "run_check",
    "run_status",
    "summarize_month",
    "recent_transactions",
    "run_sync",
]
