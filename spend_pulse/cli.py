"""CLI for the ``spend_pulse`` package.

This module exposes callable command handlers (``cmd_sync``, ``cmd_check``,
...) and a Typer-based console interface. Each handler returns a process exit
code; library errors are reported as ``Error: ...`` on stderr with exit code
1. Structured output (sync results, check reports, summaries) is JSON on
stdout; progress lines go to stderr so the JSON stays machine-readable.
"""

from __future__ import annotations

import datetime as dt
import json
import sys
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import typer
from dotenv import load_dotenv
from prompt_toolkit import PromptSession

from . import __version__
from .bank import BankClient, PlaidBankClient
from .config import (
    AppConfig,
    PlaidMode,
    Settings,
    get_setting,
    load_config,
    load_or_default,
    save_config,
    set_setting,
)
from .credentials import CredentialStore
from .errors import BankClientError, ConfigError, CredentialsError, SpendPulseError
from .formatting import format_oneline, format_setting
from .logging_setup import configure_logging, get_logger
from .scheduler import install_schedule, schedule_status, uninstall_schedule
from .term_ui import choose, confirm, prompt_budget, prompt_secret, prompt_text
from .vault import JsonLedgerRepository, Vault
from .workflows import recent_transactions, run_check, run_status, run_sync
from .workflows.link_flow import (
    LinkedItem,
    clear_items,
    link_sandbox_item,
    link_with_browser,
    register_item,
    remove_item,
)

_logger = get_logger("spend_pulse.cli")

KEYS_URL = "https://dashboard.plaid.com/developers/keys"

_MODE_CHOICES: list[tuple[str, str]] = [
    ("sandbox", "test with fake data (free, instant)"),
    ("development", "real bank connection (requires Plaid approval)"),
]


# ---- Small module-level helpers used by CLI commands -------------------------


@dataclass(frozen=True, slots=True)
class _Context:
    vault: Vault
    repo: JsonLedgerRepository
    credentials: CredentialStore


def _context() -> _Context:
    vault = Vault.default()
    vault.ensure()
    return _Context(
        vault=vault,
        repo=JsonLedgerRepository(vault),
        credentials=CredentialStore(vault.credentials_path),
    )


def current_time(settings: Settings) -> dt.datetime:
    """Now in the configured timezone; local time when the zone is unknown."""

    try:
        tz = ZoneInfo(settings.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        _logger.warning("cli:unknown_timezone tz=%s; using local time", settings.timezone)
        return dt.datetime.now().astimezone()
    return dt.datetime.now(tz)


def make_bank_client(config: AppConfig, credentials: CredentialStore) -> BankClient:
    creds = credentials.get_plaid_credentials()
    if creds is None:
        raise CredentialsError('Plaid credentials not found. Run "spend-pulse setup" first.')
    return PlaidBankClient.from_credentials(creds.client_id, creds.secret, config.plaid.mode)


def _progress(line: str) -> None:
    print(line, file=sys.stderr)


def _error(e: Exception) -> int:
    print(f"Error: {e}", file=sys.stderr)
    if isinstance(e, BankClientError) and e.error_code == "ITEM_LOGIN_REQUIRED":
        print(
            'Your bank connection needs to be refreshed. Run "spend-pulse link" again.',
            file=sys.stderr,
        )
    return 1


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _link(bank: BankClient, mode: PlaidMode) -> LinkedItem:
    if mode == "sandbox":
        _progress("Creating a sandbox connection...")
        return link_sandbox_item(bank)
    _progress("Opening browser for Plaid Link...")
    return link_with_browser(bank, on_progress=_progress)


# ---- Command handlers --------------------------------------------------------


def cmd_setup(
    *,
    client_id: str | None = None,
    secret: str | None = None,
    mode: PlaidMode | None = None,
    budget: Decimal | None = None,
    upgrade: bool = False,
    session: PromptSession | None = None,
) -> int:
    """Interactive wizard: credentials, environment, budget, first linked card.

    Any value passed as an option skips its prompt. When setup already exists
    (and no credentials were passed) the user may add another card, start
    fresh, or cancel.
    """

    try:
        ctx = _context()
        existing = load_config(ctx.vault, ctx.credentials)
        if upgrade:
            return _cmd_upgrade(ctx, existing, session=session)

        stored = ctx.credentials.get_plaid_credentials()
        if existing and existing.plaid.items and stored and not (client_id or secret):
            action = choose(
                "Spend Pulse is already configured. What would you like to do? ",
                [
                    ("add", "Add another card"),
                    ("fresh", "Start fresh (reconfigure)"),
                    ("cancel", "Cancel"),
                ],
                default="add",
                session=session,
            )
            if action == "cancel":
                print("Setup cancelled.")
                return 0
            if action == "add":
                bank = make_bank_client(existing, ctx.credentials)
                linked = _link(bank, existing.plaid.mode)
                config = register_item(existing, ctx.credentials, linked)
                save_config(ctx.vault, config)
                print(f"Card added: {linked.institution} ({', '.join(linked.accounts)})")
                return 0

        # Step 1: Plaid credentials
        if not (client_id and secret):
            if stored and not client_id and confirm(
                "Found existing Plaid credentials. Use them?", default=True, session=session
            ):
                client_id, secret = stored.client_id, stored.secret
            else:
                print(f"Get your Plaid API keys at: {KEYS_URL}")
                client_id = client_id or prompt_text(
                    "Plaid Client ID: ", label="Client ID", session=session
                )
                secret = secret or prompt_secret(
                    "Plaid Secret: ", label="Secret", session=session
                )
        ctx.credentials.set_plaid_credentials(client_id, secret)

        # Step 2: environment
        if mode is None:
            mode = choose(
                "Which Plaid environment? ", _MODE_CHOICES, default="sandbox", session=session
            )  # type: ignore[assignment]

        # Step 3: budget
        if budget is None:
            budget = prompt_budget(session=session)
        if budget <= 0:
            raise ConfigError("Budget must be a positive number")

        config = AppConfig().with_mode(mode).with_settings(monthly_target=budget)
        if existing is not None:
            clear_items(existing, ctx.credentials)
            config = config.with_settings(
                sync_days=existing.settings.sync_days, timezone=existing.settings.timezone
            )
        save_config(ctx.vault, config)

        # Step 4: connect
        bank = make_bank_client(config, ctx.credentials)
        linked = _link(bank, mode)
        config = register_item(config, ctx.credentials, linked)
        save_config(ctx.vault, config)
    except SpendPulseError as e:
        return _error(e)
    except (EOFError, KeyboardInterrupt):
        print("Setup cancelled.", file=sys.stderr)
        return 1

    print("Setup complete!")
    print(f"  Institution: {linked.institution}")
    print(f"  Accounts: {', '.join(linked.accounts)}")
    print(f"  Budget: ${budget:,.2f}/month")
    print(f"  Mode: {mode}")
    print("Next steps:")
    print("  spend-pulse sync     # Pull transactions")
    print("  spend-pulse status   # View spending summary")
    print("  spend-pulse check    # Check if alert needed")
    if mode == "sandbox":
        print("To use real bank data later: spend-pulse setup --upgrade")
    return 0


def _cmd_upgrade(
    ctx: _Context, existing: AppConfig | None, *, session: PromptSession | None
) -> int:
    if existing is None:
        raise ConfigError('Not configured. Run "spend-pulse setup" first.')
    if existing.plaid.mode == "development":
        print("Already in Development mode.")
        return 0
    if not confirm(
        "Switch to Development mode and clear Sandbox accounts?", default=True, session=session
    ):
        print("Upgrade cancelled.")
        return 0

    stored = ctx.credentials.get_plaid_credentials()
    client_id = prompt_text(
        "Plaid Client ID: ",
        label="Client ID",
        default=stored.client_id if stored else "",
        session=session,
    )
    secret = prompt_secret("Plaid Development Secret: ", label="Secret", session=session)
    ctx.credentials.set_plaid_credentials(client_id, secret)

    config = clear_items(existing, ctx.credentials).with_mode("development")
    save_config(ctx.vault, config)
    print("Sandbox data cleared. Now connect your real bank account.")

    bank = make_bank_client(config, ctx.credentials)
    linked = _link(bank, "development")
    save_config(ctx.vault, register_item(config, ctx.credentials, linked))
    print(f"Upgrade complete: {linked.institution} ({', '.join(linked.accounts)})")
    print('Run "spend-pulse sync" to pull real transactions.')
    return 0


def cmd_sync(*, days: int | None = None) -> int:
    try:
        ctx = _context()
        config = load_config(ctx.vault, ctx.credentials)
        if config is None:
            raise ConfigError('Not configured. Run "spend-pulse setup" first.')
        bank = make_bank_client(config, ctx.credentials)
        result = run_sync(
            ctx.repo,
            ctx.vault,
            bank,
            config,
            ctx.credentials,
            now=current_time(config.settings),
            days=days,
            on_progress=_progress,
        )
    except SpendPulseError as e:
        return _error(e)
    print(result.model_dump_json(indent=2))
    return 0


def cmd_schedule(*, install: bool = False, remove: bool = False) -> int:
    """Install, remove, or report the daily background sync."""

    try:
        ctx = _context()
        if install:
            path = install_schedule(log_dir=ctx.vault.root)
            _progress(f"Daily sync scheduled ({path})")
        elif remove:
            if uninstall_schedule():
                _progress("Daily sync removed.")
            else:
                _progress("No schedule installed.")
        status = schedule_status()
    except SpendPulseError as e:
        return _error(e)
    _print_json(
        {"installed": status.installed, "loaded": status.loaded, "next_run": status.next_run}
    )
    return 0


def cmd_check(*, chart: bool = False) -> int:
    try:
        ctx = _context()
        config = load_or_default(ctx.vault, ctx.credentials)
        report = run_check(
            ctx.repo, ctx.vault, config, now=current_time(config.settings), chart=chart
        )
    except SpendPulseError as e:
        return _error(e)
    print(report.model_dump_json(indent=2, exclude_none=True))
    return 0


def cmd_status(*, oneline: bool = False) -> int:
    try:
        ctx = _context()
        config = load_or_default(ctx.vault, ctx.credentials)
        summary = run_status(ctx.repo, ctx.vault, config, now=current_time(config.settings))
    except SpendPulseError as e:
        return _error(e)
    if oneline:
        print(format_oneline(summary))
    else:
        print(summary.model_dump_json(indent=2))
    return 0


def cmd_recent(*, days: int = 5, count: int | None = None) -> int:
    try:
        ctx = _context()
        config = load_or_default(ctx.vault, ctx.credentials)
        rows = recent_transactions(
            ctx.repo,
            today=current_time(config.settings).date(),
            days=days,
            count=count,
        )
    except (SpendPulseError, ValueError) as e:
        return _error(e)
    _print_json({"transactions": [r.model_dump(mode="json") for r in rows]})
    return 0


def cmd_config(key: str | None = None, value: str | None = None) -> int:
    try:
        ctx = _context()
        config = load_or_default(ctx.vault, ctx.credentials)
        if key is None:
            print(config.model_dump_json(indent=2))
            return 0
        if value is None:
            print(format_setting(get_setting(config, key)))
            return 0
        config = set_setting(config, key, value)
        save_config(ctx.vault, config)
    except SpendPulseError as e:
        return _error(e)

    settings = config.settings
    if key == "target":
        print(f"Monthly target set to ${settings.monthly_target:,.2f}")
    elif key == "sync_days":
        print(f"Sync days set to {settings.sync_days}")
    else:
        print(f"Timezone set to {settings.timezone}")
    return 0


def cmd_link(
    *,
    status: bool = False,
    remove: str | None = None,
    yes: bool = False,
    session: PromptSession | None = None,
) -> int:
    """Show, remove, or add linked accounts (default: add another)."""

    try:
        ctx = _context()
        config = load_config(ctx.vault, ctx.credentials)
        if config is None:
            raise ConfigError('Not configured. Run "spend-pulse setup" first.')

        if status:
            _print_json(
                {
                    "mode": config.plaid.mode,
                    "items": [i.model_dump() for i in config.plaid.items],
                    "total": len(config.plaid.items),
                }
            )
            return 0

        if remove is not None:
            item = config.find_item(remove)
            if item is None:
                raise ConfigError(f'Account with ID "{remove}" not found.')
            if not yes and not confirm(f"Remove {item.institution}?", session=session):
                print("Cancelled.")
                return 0
            config = remove_item(config, ctx.credentials, remove)
            save_config(ctx.vault, config)
            print(f"Removed {item.institution}.")
            if not config.plaid.items:
                print('No accounts remaining. Run "spend-pulse setup" to link a new account.')
            return 0

        bank = make_bank_client(config, ctx.credentials)
        linked = _link(bank, config.plaid.mode)
        config = register_item(config, ctx.credentials, linked)
        save_config(ctx.vault, config)
    except SpendPulseError as e:
        return _error(e)
    except (EOFError, KeyboardInterrupt):
        print("Cancelled.", file=sys.stderr)
        return 1

    print(f"Account linked: {linked.institution} ({', '.join(linked.accounts)})")
    print(f"Total linked accounts: {len(config.plaid.items)}")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Proactive spending alerts via Plaid.",
)


@app.command("setup")
def setup_cmd(
    *,
    client_id: str | None = typer.Option(None, help="Plaid client ID (skip prompt)."),
    secret: str | None = typer.Option(None, help="Plaid secret (skip prompt)."),
    mode: str | None = typer.Option(None, help="Plaid mode: sandbox or development."),
    budget: float | None = typer.Option(None, help="Monthly budget in dollars (skip prompt)."),
    upgrade: bool = typer.Option(False, help="Upgrade from Sandbox to Development mode."),
) -> None:
    """Connect your credit card via Plaid."""

    if mode is not None and mode not in ("sandbox", "development"):
        print("Error: --mode must be sandbox or development", file=sys.stderr)
        raise typer.Exit(1)
    code = cmd_setup(
        client_id=client_id,
        secret=secret,
        mode=mode,  # type: ignore[arg-type]
        budget=Decimal(str(budget)) if budget is not None else None,
        upgrade=upgrade,
    )
    raise typer.Exit(code)


@app.command("sync")
def sync_cmd(
    *,
    days: int | None = typer.Option(None, min=1, help="Number of days to sync."),
    schedule: bool = typer.Option(False, "--schedule", help="Install the daily 9:00 sync."),
    unschedule: bool = typer.Option(False, "--unschedule", help="Remove the daily sync."),
    status: bool = typer.Option(False, "--status", help="Show the daily sync status."),
) -> None:
    """Sync transactions from Plaid."""

    if schedule or unschedule or status:
        raise typer.Exit(cmd_schedule(install=schedule, remove=unschedule))
    raise typer.Exit(cmd_sync(days=days))


@app.command("check")
def check_cmd(
    *,
    chart: bool = typer.Option(False, "--chart", help="Also write a spending chart (HTML)."),
) -> None:
    """Check if a spending alert should be sent."""

    raise typer.Exit(cmd_check(chart=chart))


@app.command("status")
def status_cmd(
    *,
    oneline: bool = typer.Option(
        False, "--oneline", help="Output a single-line human-readable summary."
    ),
) -> None:
    """Show spending summary."""

    raise typer.Exit(cmd_status(oneline=oneline))


@app.command("recent")
def recent_cmd(
    *,
    days: int = typer.Option(5, min=0, help="Number of days to show."),
    count: int | None = typer.Option(None, min=1, help="Number of transactions to show."),
) -> None:
    """Show recent transactions."""

    raise typer.Exit(cmd_recent(days=days, count=count))


@app.command("config")
def config_cmd(
    key: str | None = typer.Argument(None, help="Configuration key (target, timezone, sync_days)."),
    value: str | None = typer.Argument(None, help="Value to set."),
) -> None:
    """View or modify configuration."""

    raise typer.Exit(cmd_config(key, value))


@app.command("link")
def link_cmd(
    *,
    status: bool = typer.Option(False, "--status", help="Show currently linked accounts."),
    remove: str | None = typer.Option(None, "--remove", help="Remove a linked account by item id."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Manage linked bank accounts."""

    raise typer.Exit(cmd_link(status=status, remove=remove, yes=yes))


def _version_callback(value: bool) -> None:
    if value:
        print(__version__)
        raise typer.Exit(0)


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
