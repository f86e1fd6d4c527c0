from __future__ import annotations

import datetime as dt
import json
import stat
from decimal import Decimal

import pytest

from spend_pulse.config import (
    AppConfig,
    PlaidItem,
    get_setting,
    is_legacy_config,
    load_config,
    load_or_default,
    save_config,
    set_setting,
)
from spend_pulse.credentials import CredentialStore, access_token_key
from spend_pulse.errors import ConfigError, InvalidMonthError, StorageError
from spend_pulse.formatting import format_setting
from spend_pulse.ledger import get_or_create_current_month
from spend_pulse.models import MonthlyLedger, Transaction
from spend_pulse.vault import JsonLedgerRepository, Vault, default_root

NOW = dt.datetime(2026, 2, 15, 9, 0, tzinfo=dt.UTC)


def test_default_root_follows_env(vault: Vault):
    assert default_root() == vault.root.resolve()


def test_ledger_round_trip(vault: Vault):
    repo = JsonLedgerRepository(vault)
    tx = Transaction.from_flat(
        id="t1", date="2026-02-03", amount="12.345", merchant="Cafe", category="FOOD", pending=True
    )
    ledger = MonthlyLedger(month="2026-02", last_synced_at=NOW, transactions=(tx,))
    repo.save(ledger)

    loaded = repo.load("2026-02")
    assert loaded == ledger
    assert loaded.transactions[0].amount == Decimal("12.35")
    assert loaded.transactions[0].is_pending
    assert not vault.month_path("2026-02").with_suffix(".json.tmp").exists()


def test_missing_ledger_is_none(vault: Vault):
    assert JsonLedgerRepository(vault).load("2026-02") is None


def test_corrupt_ledger_raises_storage_error(vault: Vault):
    vault.month_path("2026-02").write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        JsonLedgerRepository(vault).load("2026-02")


def test_month_path_rejects_bad_keys(vault: Vault):
    with pytest.raises(InvalidMonthError):
        vault.month_path("../etc")


def test_months_lists_newest_first(vault: Vault):
    repo = JsonLedgerRepository(vault)
    for key in ("2025-12", "2026-02", "2026-01"):
        repo.save(MonthlyLedger.empty(key, now=NOW))
    vault.summary_path.write_text("{}", encoding="utf-8")
    assert repo.months() == ["2026-02", "2026-01", "2025-12"]


def test_unreadable_legacy_log_reads_as_missing(vault: Vault):
    vault.legacy_log_path.write_text("[]", encoding="utf-8")
    assert JsonLedgerRepository(vault).load_legacy_log() is None


LEGACY_LOG_YAML = """
last_sync: "2026-02-10T08:00:00.000Z"
account:
  name: Sapphire
  mask: "4242"
transactions:
  - id: a
    date: "2026-02-02"
    amount: 20.5
    merchant: Cafe
    category: FOOD_AND_DRINK
  - id: old
    date: "2026-01-30"
    amount: 12
    merchant: Grocer
    category: GROCERIES
"""


def test_legacy_log_parses_old_shape(vault: Vault):
    vault.legacy_log_path.write_text(LEGACY_LOG_YAML, encoding="utf-8")
    log = JsonLedgerRepository(vault).load_legacy_log()
    assert log is not None
    assert log.account.label == "Sapphire (...4242)"
    assert log.last_sync == dt.datetime(2026, 2, 10, 8, 0, tzinfo=dt.UTC)
    assert log.transactions[0].amount == Decimal("20.50")


def test_current_month_is_seeded_from_legacy_yaml_log(vault: Vault):
    vault.legacy_log_path.write_text(LEGACY_LOG_YAML, encoding="utf-8")
    repo = JsonLedgerRepository(vault)

    ledger = get_or_create_current_month(repo, now=NOW)

    assert ledger.ids() == {"a"}
    assert repo.load("2026-02").ids() == {"a"}


# ---- Credentials -----------------------------------------------------------------


def test_credentials_round_trip_and_permissions(vault: Vault):
    store = CredentialStore(vault.credentials_path)
    assert store.get_plaid_credentials() is None

    store.set_plaid_credentials("client-1", "secret-1")
    store.set_access_token("item-abc", "access-xyz")

    creds = store.get_plaid_credentials()
    assert (creds.client_id, creds.secret) == ("client-1", "secret-1")
    assert store.get_access_token("item-abc") == "access-xyz"
    assert stat.S_IMODE(vault.credentials_path.stat().st_mode) == 0o600

    assert store.delete_access_token("item-abc") is True
    assert store.delete_access_token("item-abc") is False
    assert store.get_access_token("item-abc") is None


def test_environment_overrides_credentials_file(vault: Vault, monkeypatch: pytest.MonkeyPatch):
    store = CredentialStore(vault.credentials_path)
    store.set_plaid_credentials("file-id", "file-secret")
    monkeypatch.setenv("PLAID_CLIENT_ID", "env-id")

    creds = store.get_plaid_credentials()
    assert (creds.client_id, creds.secret) == ("env-id", "file-secret")


def test_delete_all_credentials(vault: Vault):
    store = CredentialStore(vault.credentials_path)
    store.set_plaid_credentials("c", "s")
    store.set_access_token("i1", "a1")
    store.delete_all_credentials()

    assert not store.has_plaid_credentials()
    assert store.get_access_token("i1") is None


def test_access_token_key_sanitizes_item_id():
    assert access_token_key("abc-DEF.1") == "PLAID_ACCESS_TOKEN__abc_DEF_1"


# ---- Config ----------------------------------------------------------------------


def test_load_or_default_writes_defaults(vault: Vault):
    config = load_or_default(vault)
    assert config.settings.monthly_target == Decimal("8000")
    assert config.settings.sync_days == 30
    assert config.settings.timezone == "America/Chicago"
    assert config.plaid.mode == "sandbox"
    assert vault.config_path.exists()


def test_config_round_trip(vault: Vault):
    config = AppConfig().with_item(PlaidItem(item_id="i1", institution="Chase", accounts=["Card (...1)"]))
    save_config(vault, config)
    assert load_config(vault) == config


def test_with_item_replaces_same_id():
    config = AppConfig().with_item(PlaidItem(item_id="i1", institution="Old"))
    config = config.with_item(PlaidItem(item_id="i1", institution="New"))
    assert [i.institution for i in config.plaid.items] == ["New"]


def test_invalid_config_raises(vault: Vault):
    vault.config_path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(vault)


def test_legacy_config_is_migrated(vault: Vault):
    vault.legacy_config_path.write_text(
        "plaid:\n"
        "  client_id: cid\n"
        "  secret: sec\n"
        "  access_token: access-old\n"
        "settings:\n"
        "  monthly_target: 6000\n"
        "  sync_days: 14\n"
        "  timezone: UTC\n",
        encoding="utf-8",
    )
    store = CredentialStore(vault.credentials_path)

    config = load_config(vault, store)

    assert config.plaid.mode == "sandbox"
    assert [i.item_id for i in config.plaid.items] == ["legacy"]
    assert config.settings.monthly_target == Decimal("6000")
    assert store.get_access_token("legacy") == "access-old"
    assert store.get_plaid_credentials().client_id == "cid"
    rewritten = json.loads(vault.config_path.read_text(encoding="utf-8"))
    assert not is_legacy_config(rewritten)
    assert "secret" not in json.dumps(rewritten)
    assert load_config(vault, store) == config


def test_yaml_config_with_items_is_imported(vault: Vault):
    vault.legacy_config_path.write_text(
        "plaid:\n"
        "  mode: development\n"
        "  items:\n"
        "    - item_id: item-9\n"
        "      institution: Chase\n"
        "settings:\n"
        "  monthly_target: 7000\n",
        encoding="utf-8",
    )

    config = load_config(vault)

    assert config.plaid.mode == "development"
    assert config.find_item("item-9").institution == "Chase"
    assert vault.config_path.exists()


def test_legacy_config_dict_is_detected():
    assert is_legacy_config({"plaid": {"client_id": "cid", "secret": "sec"}})
    assert not is_legacy_config({"plaid": {"items": [], "client_id": "cid"}})


def test_set_setting_values():
    config = AppConfig()
    config = set_setting(config, "target", "9500")
    config = set_setting(config, "sync_days", "7")
    config = set_setting(config, "timezone", "Europe/Berlin")

    assert get_setting(config, "target") == Decimal("9500")
    assert get_setting(config, "sync_days") == 7
    assert get_setting(config, "timezone") == "Europe/Berlin"


def test_reloaded_target_prints_without_trailing_zero(vault: Vault):
    save_config(vault, set_setting(AppConfig(), "target", "9500"))
    reloaded = load_config(vault)

    assert format_setting(get_setting(reloaded, "target")) == "9500"
    assert format_setting(Decimal("8250.50")) == "8250.5"
    assert format_setting(14) == "14"


@pytest.mark.parametrize(
    ("key", "value", "message"),
    [
        ("target", "-5", "Target must be a positive number"),
        ("target", "abc", "Target must be a positive number"),
        ("sync_days", "0", "Sync days must be a positive number"),
        ("timezone", "Mars/Olympus", "Unknown timezone: Mars/Olympus"),
        ("colour", "blue", "Unknown config key: colour"),
    ],
)
def test_set_setting_rejects_bad_values(key, value, message):
    with pytest.raises(ConfigError, match=message.replace("(", r"\(")):
        set_setting(AppConfig(), key, value)
