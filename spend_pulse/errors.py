"""Exception hierarchy for ``spend_pulse``.

Financial edge cases (empty ledgers, zero budgets, missing history) are
handled by policy and never raise. The types below cover programmer errors
and failures at the integration boundary (config, credentials, bank API,
scheduler) so the CLI can report them uniformly.
"""

from __future__ import annotations


class SpendPulseError(Exception):
    """Base class for all package errors."""


class InvalidMonthError(SpendPulseError, ValueError):
    """A month key does not parse as ``YYYY-MM``."""

    def __init__(self, key: object) -> None:
        super().__init__(f"Invalid month key: {key!r} (expected YYYY-MM)")
        self.key = key


class ConfigError(SpendPulseError):
    """Configuration is missing or a value is invalid."""


class CredentialsError(SpendPulseError):
    """Plaid client credentials or an item access token are unavailable."""


class BankClientError(SpendPulseError):
    """A bank-data API call failed.

    ``error_code`` carries the provider error code when one was returned
    (e.g. ``ITEM_LOGIN_REQUIRED``).
    """

    def __init__(self, message: str, *, error_code: str | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code


class SchedulerError(SpendPulseError):
    """Registering or removing the background sync job failed."""


class StorageError(SpendPulseError):
    """A stored document exists but cannot be read or parsed.

    Raised instead of treating the file as missing so a damaged ledger is
    never silently replaced by an empty one.
    """


__all__ = [
    "SpendPulseError",
    "InvalidMonthError",
    "ConfigError",
    "CredentialsError",
    "BankClientError",
    "SchedulerError",
    "StorageError",
]
