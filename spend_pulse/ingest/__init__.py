"""Adapters that turn provider payloads into :class:`spend_pulse.models.Transaction`."""

from .plaid_adapter import to_transaction, to_transactions

__all__ = ["to_transaction", "to_transactions"]
