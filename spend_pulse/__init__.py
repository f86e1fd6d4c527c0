"""Public interface for the ``spend_pulse`` package.

Re-exports the pace-tracking engine (ledger merge, curves, pace, summary,
alerts) and its data models. Integration modules (Plaid client, vault,
scheduler, chart, CLI) are imported from their own modules.
"""

from .alerts import AlertDecision, NewItem, evaluate
from .config import AppConfig, Settings
from .curve import CumulativeCurve, build_cumulative_curve
from .errors import (
    BankClientError,
    ConfigError,
    CredentialsError,
    InvalidMonthError,
    SchedulerError,
    SpendPulseError,
    StorageError,
)
from .ledger import (
    LedgerRepository,
    MergeResult,
    get_or_create_current_month,
    get_or_create_month,
    merge_transactions,
    migrate_legacy_log,
)
from .models import MonthlyLedger, Pending, Posted, SyncResult, Transaction
from .pace import ExpectedSpend, PaceResult, classify, compute_pace, expected_spend
from .summary import Summary, compute_summary

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Engine
    "merge_transactions",
    "migrate_legacy_log",
    "get_or_create_month",
    "get_or_create_current_month",
    "build_cumulative_curve",
    "expected_spend",
    "classify",
    "compute_pace",
    "compute_summary",
    "evaluate",
    # Models
    "Transaction",
    "Posted",
    "Pending",
    "MonthlyLedger",
    "SyncResult",
    "LedgerRepository",
    "MergeResult",
    "CumulativeCurve",
    "ExpectedSpend",
    "PaceResult",
    "Summary",
    "AlertDecision",
    "NewItem",
    "Settings",
    "AppConfig",
    # Errors
    "SpendPulseError",
    "InvalidMonthError",
    "ConfigError",
    "CredentialsError",
    "BankClientError",
    "SchedulerError",
    "StorageError",
]
