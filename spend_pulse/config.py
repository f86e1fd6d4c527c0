"""User configuration: budget settings and linked Plaid items.

``config.json`` in the vault holds an :class:`AppConfig`. Secrets are never
stored here; see :mod:`spend_pulse.credentials`. Older releases kept their
config in ``config.yaml``, the earliest with a single ``plaid.client_id`` /
``secret`` / ``access_token`` triple. When ``config.json`` is missing that
file is read once, migrated by :func:`migrate_legacy_config` if needed, and
saved as JSON.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from decimal import Decimal
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .credentials import CredentialStore
from .errors import ConfigError
from .logging_setup import get_logger
from .money import Money, to_decimal
from .vault import Vault, write_document

_logger = get_logger("spend_pulse.config")

PlaidMode = Literal["sandbox", "development"]

DEFAULT_MONTHLY_TARGET = Decimal("8000")
DEFAULT_SYNC_DAYS = 30
DEFAULT_TIMEZONE = "America/Chicago"
LEGACY_ITEM_ID = "legacy"

# CLI key -> Settings field
SETTABLE_KEYS: dict[str, str] = {
    "target": "monthly_target",
    "timezone": "timezone",
    "sync_days": "sync_days",
}


class Settings(BaseModel):
    """Budget settings. ``timezone`` only decides what "today" is."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    monthly_target: Money = DEFAULT_MONTHLY_TARGET
    sync_days: int = DEFAULT_SYNC_DAYS
    timezone: str = DEFAULT_TIMEZONE


class PlaidItem(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    item_id: str
    institution: str = "Unknown Institution"
    accounts: list[str] = Field(default_factory=list)


class PlaidSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    mode: PlaidMode = "sandbox"
    items: list[PlaidItem] = Field(default_factory=list)


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    plaid: PlaidSettings = Field(default_factory=PlaidSettings)
    settings: Settings = Field(default_factory=Settings)

    def find_item(self, item_id: str) -> PlaidItem | None:
        return next((i for i in self.plaid.items if i.item_id == item_id), None)

    def with_item(self, item: PlaidItem) -> AppConfig:
        """Add ``item``, replacing any existing item with the same id."""

        items = [i for i in self.plaid.items if i.item_id != item.item_id] + [item]
        return self.model_copy(update={"plaid": self.plaid.model_copy(update={"items": items})})

    def without_item(self, item_id: str) -> AppConfig:
        items = [i for i in self.plaid.items if i.item_id != item_id]
        return self.model_copy(update={"plaid": self.plaid.model_copy(update={"items": items})})

    def with_mode(self, mode: PlaidMode) -> AppConfig:
        return self.model_copy(update={"plaid": self.plaid.model_copy(update={"mode": mode})})

    def with_settings(self, **changes: Any) -> AppConfig:
        return self.model_copy(update={"settings": self.settings.model_copy(update=changes)})


# ---------------------------------------------------------------------------
# Legacy config
# ---------------------------------------------------------------------------


class LegacyPlaidConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    client_id: str = ""
    secret: str = ""
    access_token: str = ""


class LegacyConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    plaid: LegacyPlaidConfig = Field(default_factory=LegacyPlaidConfig)
    settings: Settings = Field(default_factory=Settings)


def is_legacy_config(raw: Mapping[str, Any]) -> bool:
    """True when ``raw`` has the old flat ``plaid`` block instead of ``items``."""

    plaid = raw.get("plaid")
    if not isinstance(plaid, Mapping):
        return False
    return "items" not in plaid and any(
        k in plaid for k in ("client_id", "secret", "access_token")
    )


def migrate_legacy_config(legacy: LegacyConfig, credentials: CredentialStore) -> AppConfig:
    """Move legacy secrets into ``credentials`` and return the new-shape config.

    A legacy access token becomes a single item with id ``"legacy"``. Legacy
    configs always talked to the sandbox.
    """

    p = legacy.plaid
    if p.client_id and p.secret:
        credentials.set_plaid_credentials(p.client_id, p.secret)
    items: list[PlaidItem] = []
    if p.access_token:
        credentials.set_access_token(LEGACY_ITEM_ID, p.access_token)
        items.append(PlaidItem(item_id=LEGACY_ITEM_ID, institution="Legacy Account"))
    return AppConfig(
        plaid=PlaidSettings(mode="sandbox", items=items),
        settings=legacy.settings,
    )


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def _read_mapping(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
        raw = yaml.safe_load(text) if path.suffix == ".yaml" else json.loads(text)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return raw


def load_config(vault: Vault, credentials: CredentialStore | None = None) -> AppConfig | None:
    """Read ``config.json``, falling back to a legacy ``config.yaml``; ``None`` when neither exists.

    A legacy-shaped or YAML config is migrated, saved as ``config.json``, and
    returned. Raises :class:`ConfigError` when the file exists but is not
    valid.
    """

    path = vault.config_path
    if not path.exists():
        path = vault.legacy_config_path
        if not path.exists():
            return None
    raw = _read_mapping(path)

    try:
        if is_legacy_config(raw):
            store = credentials or CredentialStore(vault.credentials_path)
            config = migrate_legacy_config(LegacyConfig.model_validate(raw), store)
        else:
            config = AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid config in {path}: {e}") from e

    if path != vault.config_path or is_legacy_config(raw):
        save_config(vault, config)
        _logger.info("config:migrated_legacy path=%s", path)
    return config


def save_config(vault: Vault, config: AppConfig) -> None:
    vault.ensure()
    write_document(vault.config_path, config)


def load_or_default(vault: Vault, credentials: CredentialStore | None = None) -> AppConfig:
    """Like :func:`load_config` but writes and returns defaults when missing."""

    config = load_config(vault, credentials)
    if config is None:
        config = AppConfig()
        save_config(vault, config)
    return config


# ---------------------------------------------------------------------------
# CLI-settable keys
# ---------------------------------------------------------------------------


def validate_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown timezone: {name}") from e
    return name


def get_setting(config: AppConfig, key: str) -> Any:
    field = SETTABLE_KEYS.get(key)
    if field is None:
        raise ConfigError(f"Unknown config key: {key} (available: {', '.join(SETTABLE_KEYS)})")
    return getattr(config.settings, field)


def set_setting(config: AppConfig, key: str, value: str) -> AppConfig:
    """Return ``config`` with ``key`` set from its CLI string ``value``.

    Raises
    ------
    ConfigError
        Unknown key, or a value that is not a positive number / positive
        integer / known IANA timezone as the key requires.
    """

    field = SETTABLE_KEYS.get(key)
    if field is None:
        raise ConfigError(f"Unknown config key: {key} (available: {', '.join(SETTABLE_KEYS)})")

    if key == "target":
        target = to_decimal(value)
        if target is None or target <= 0:
            raise ConfigError("Target must be a positive number")
        return config.with_settings(monthly_target=target)
    if key == "sync_days":
        try:
            days = int(value)
        except ValueError:
            days = 0
        if days <= 0:
            raise ConfigError("Sync days must be a positive number")
        return config.with_settings(sync_days=days)
    return config.with_settings(timezone=validate_timezone(value.strip()))


__all__ = [
    "PlaidMode",
    "DEFAULT_MONTHLY_TARGET",
    "DEFAULT_SYNC_DAYS",
    "DEFAULT_TIMEZONE",
    "LEGACY_ITEM_ID",
    "SETTABLE_KEYS",
    "Settings",
    "PlaidItem",
    "PlaidSettings",
    "AppConfig",
    "LegacyPlaidConfig",
    "LegacyConfig",
    "is_legacy_config",
    "migrate_legacy_config",
    "load_config",
    "save_config",
    "load_or_default",
    "validate_timezone",
    "get_setting",
    "set_setting",
]
