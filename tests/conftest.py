"""Pytest configuration for test isolation.

The CLI and workflows locate their on-disk state (config, credentials,
monthly ledgers) through ``SPEND_PULSE_HOME``, falling back to
``~/.spend-pulse``. Plaid client credentials set in the process environment
also take precedence over the credentials file. Either would leak state from
the developer's machine into the tests, so an autouse fixture points the
vault at a per-test temporary directory and clears the Plaid variables.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from spend_pulse.vault import Vault


@pytest.fixture(autouse=True)
def _isolate_vault(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Force a per-test vault root so tests don't share on-disk state."""

    root = tmp_path / "vault"
    root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("SPEND_PULSE_HOME", os.fspath(root))
    monkeypatch.delenv("PLAID_CLIENT_ID", raising=False)
    monkeypatch.delenv("PLAID_SECRET", raising=False)
    return root


@pytest.fixture
def vault(_isolate_vault: Path) -> Vault:
    v = Vault(_isolate_vault)
    v.ensure()
    return v
