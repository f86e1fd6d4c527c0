"""On-disk layout and JSON document I/O for ``spend_pulse``.

Vault layout (root default: ``~/.spend-pulse``; override with
``SPEND_PULSE_HOME``):

- ``config.json``: :class:`spend_pulse.config.AppConfig`
- ``config.yaml``: config written by older releases (read-only, imported once)
- ``credentials.env``: secrets, see :mod:`spend_pulse.credentials`
- ``data/<YYYY-MM>.json``: one :class:`~spend_pulse.models.MonthlyLedger` per month
- ``data/transactions.yaml``: legacy single-file log (read-only)
- ``data/summary.json``: last computed summary (display cache)
- ``data/sync_result.json``: outcome of the last sync
- ``chart.html``: last rendered spending chart

Atomicity: writes target ``.tmp`` first and then ``os.replace`` into place,
so a reader sees either the previous document or the new one.
"""

from __future__ import annotations

import contextlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from .errors import StorageError
from .logging_setup import get_logger
from .models import LegacyTransactionLog, MonthlyLedger
from .months import MonthKey, parse_month

_logger = get_logger("spend_pulse.vault")

DocT = TypeVar("DocT", bound=BaseModel)


def default_root() -> Path:
    """Return the vault root from ``SPEND_PULSE_HOME`` or ``~/.spend-pulse``."""

    root = os.getenv("SPEND_PULSE_HOME")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return Path.home() / ".spend-pulse"


@dataclass(frozen=True, slots=True)
class Vault:
    root: Path

    @classmethod
    def default(cls) -> Vault:
        return cls(default_root())

    @property
    def data_dir(self) -> Path:
        return self.root / "data"

    @property
    def config_path(self) -> Path:
        return self.root / "config.json"

    @property
    def credentials_path(self) -> Path:
        return self.root / "credentials.env"

    @property
    def legacy_config_path(self) -> Path:
        return self.root / "config.yaml"

    @property
    def legacy_log_path(self) -> Path:
        return self.data_dir / "transactions.yaml"

    @property
    def summary_path(self) -> Path:
        return self.data_dir / "summary.json"

    @property
    def sync_result_path(self) -> Path:
        return self.data_dir / "sync_result.json"

    @property
    def chart_path(self) -> Path:
        return self.root / "chart.html"

    def month_path(self, month: MonthKey) -> Path:
        parse_month(month)  # reject anything that is not YYYY-MM before touching disk
        return self.data_dir / f"{month}.json"

    def ensure(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)


def write_document(path: Path, doc: BaseModel) -> None:
    """Serialize ``doc`` as indented JSON and atomically replace ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(doc.model_dump_json(indent=2) + "\n", encoding="utf-8")
        os.replace(tmp, path)
    except Exception:
        with contextlib.suppress(FileNotFoundError):
            tmp.unlink()
        raise


def read_document(path: Path, model: type[DocT], *, strict: bool = False) -> DocT | None:
    """Load ``path`` into ``model``; ``None`` when the file does not exist.

    Unreadable or invalid files are logged and treated as missing, unless
    ``strict`` is set, in which case :class:`StorageError` is raised.
    """

    if not path.exists():
        return None
    try:
        return model.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, ValidationError) as e:
        if strict:
            raise StorageError(f"cannot read {path}: {e}") from e
        _logger.debug("vault:read_failed path=%s", os.fspath(path), exc_info=True)
        return None


def read_yaml_document(path: Path, model: type[DocT]) -> DocT | None:
    """Load a YAML file written by an older release into ``model``.

    Missing, unparsable or mismatched files read as ``None``.
    """

    if not path.exists():
        return None
    try:
        return model.model_validate(yaml.safe_load(path.read_text(encoding="utf-8")))
    except (OSError, UnicodeDecodeError, yaml.YAMLError, ValidationError):
        _logger.debug("vault:read_failed path=%s", os.fspath(path), exc_info=True)
        return None


class JsonLedgerRepository:
    """``LedgerRepository`` backed by one JSON document per month.

    A damaged ledger file raises :class:`StorageError` rather than reading as
    missing; the legacy log is best effort.
    """

    def __init__(self, vault: Vault) -> None:
        self._vault = vault

    @property
    def vault(self) -> Vault:
        return self._vault

    def load(self, month: MonthKey) -> MonthlyLedger | None:
        return read_document(self._vault.month_path(month), MonthlyLedger, strict=True)

    def save(self, ledger: MonthlyLedger) -> None:
        write_document(self._vault.month_path(ledger.month), ledger)
        _logger.debug(
            "vault:ledger_saved month=%s transactions=%d",
            ledger.month,
            len(ledger.transactions),
        )

    def load_legacy_log(self) -> LegacyTransactionLog | None:
        return read_yaml_document(self._vault.legacy_log_path, LegacyTransactionLog)

    def months(self) -> list[MonthKey]:
        """Stored month keys, newest first."""

        if not self._vault.data_dir.exists():
            return []
        keys: list[MonthKey] = []
        for p in self._vault.data_dir.glob("*.json"):
            with contextlib.suppress(ValueError):
                parse_month(p.stem)
                keys.append(p.stem)
        return sorted(keys, reverse=True)


__all__ = [
    "default_root",
    "Vault",
    "write_document",
    "read_document",
    "read_yaml_document",
    "JsonLedgerRepository",
]
