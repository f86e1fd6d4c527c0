"""Secret storage for Plaid client credentials and per-item access tokens.

Secrets live in a dotenv file inside the vault (``credentials.env``, mode
0600) managed with ``python-dotenv``. ``PLAID_CLIENT_ID`` / ``PLAID_SECRET``
set in the process environment take precedence over the file so CI and
one-off runs need not touch disk.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values, set_key, unset_key

from .logging_setup import get_logger

_logger = get_logger("spend_pulse.credentials")

CLIENT_ID_KEY = "PLAID_CLIENT_ID"
SECRET_KEY = "PLAID_SECRET"
_ACCESS_TOKEN_PREFIX = "PLAID_ACCESS_TOKEN__"

_KEY_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_]")


@dataclass(frozen=True, slots=True)
class PlaidCredentials:
    client_id: str
    secret: str


def access_token_key(item_id: str) -> str:
    """Dotenv key for ``item_id``; non-identifier characters become ``_``."""

    return _ACCESS_TOKEN_PREFIX + _KEY_UNSAFE_RE.sub("_", item_id)


class CredentialStore:
    """Read/write secrets in a single dotenv file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_file(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.touch(exist_ok=True)
        os.chmod(self._path, 0o600)

    def _values(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        return {k: v for k, v in dotenv_values(self._path).items() if v}

    def _set(self, key: str, value: str) -> None:
        self._ensure_file()
        set_key(self._path, key, value, quote_mode="always")
        # set_key rewrites the file through a temp copy.
        os.chmod(self._path, 0o600)

    def _unset(self, key: str) -> bool:
        if key not in self._values():
            return False
        unset_key(self._path, key, quote_mode="always")
        return True

    # ---- Plaid client credentials -----------------------------------------

    def set_plaid_credentials(self, client_id: str, secret: str) -> None:
        self._set(CLIENT_ID_KEY, client_id)
        self._set(SECRET_KEY, secret)
        _logger.info("credentials:plaid_saved path=%s", os.fspath(self._path))

    def get_plaid_credentials(self) -> PlaidCredentials | None:
        """Return client credentials, or ``None`` when either half is missing."""

        stored = self._values()
        client_id = os.getenv(CLIENT_ID_KEY) or stored.get(CLIENT_ID_KEY)
        secret = os.getenv(SECRET_KEY) or stored.get(SECRET_KEY)
        if not client_id or not secret:
            return None
        return PlaidCredentials(client_id=client_id, secret=secret)

    def has_plaid_credentials(self) -> bool:
        return self.get_plaid_credentials() is not None

    # ---- Per-item access tokens ---------------------------------------------

    def set_access_token(self, item_id: str, access_token: str) -> None:
        self._set(access_token_key(item_id), access_token)

    def get_access_token(self, item_id: str) -> str | None:
        return self._values().get(access_token_key(item_id))

    def delete_access_token(self, item_id: str) -> bool:
        return self._unset(access_token_key(item_id))

    def delete_all_credentials(self) -> None:
        """Remove client credentials and every stored access token."""

        for key in list(self._values()):
            if key in (CLIENT_ID_KEY, SECRET_KEY) or key.startswith(_ACCESS_TOKEN_PREFIX):
                self._unset(key)
        _logger.info("credentials:cleared path=%s", os.fspath(self._path))


__all__ = [
    "CLIENT_ID_KEY",
    "SECRET_KEY",
    "PlaidCredentials",
    "access_token_key",
    "CredentialStore",
]
