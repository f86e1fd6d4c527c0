"""Daily background sync via a macOS launchd agent.

The agent runs ``<program> sync`` once a day (09:00 by default) and appends
its output to ``sync.log`` / ``sync.error.log`` in the vault.
"""

from __future__ import annotations

import plistlib
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import SchedulerError
from .logging_setup import get_logger

_logger = get_logger("spend_pulse.scheduler")

LABEL = "com.spend-pulse.sync"
PLIST_NAME = f"{LABEL}.plist"
DEFAULT_HOUR = 9
DEFAULT_MINUTE = 0
AGENT_PATH_ENV = "/usr/local/bin:/usr/bin:/bin:/opt/homebrew/bin"


@dataclass(frozen=True, slots=True)
class ScheduleStatus:
    installed: bool
    loaded: bool
    next_run: str | None = None


def launch_agents_dir() -> Path:
    return Path.home() / "Library" / "LaunchAgents"


def plist_path(agents_dir: Path | None = None) -> Path:
    return (agents_dir or launch_agents_dir()) / PLIST_NAME


def resolve_program() -> str:
    """Absolute path of the ``spend-pulse`` executable, or the bare name."""

    return shutil.which("spend-pulse") or "spend-pulse"


def generate_plist(
    program: str,
    *,
    log_dir: Path,
    hour: int = DEFAULT_HOUR,
    minute: int = DEFAULT_MINUTE,
) -> dict[str, Any]:
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise SchedulerError(f"invalid schedule time {hour:02d}:{minute:02d}")
    return {
        "Label": LABEL,
        "ProgramArguments": [program, "sync"],
        "StartCalendarInterval": {"Hour": hour, "Minute": minute},
        "StandardOutPath": str(log_dir / "sync.log"),
        "StandardErrorPath": str(log_dir / "sync.error.log"),
        "RunAtLoad": False,
        "EnvironmentVariables": {"PATH": AGENT_PATH_ENV},
    }


def _launchctl(*args: str) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            ["launchctl", *args], capture_output=True, text=True, check=False
        )
    except FileNotFoundError as e:
        raise SchedulerError("launchctl not found; scheduling requires macOS") from e


def install_schedule(
    *,
    log_dir: Path,
    program: str | None = None,
    hour: int = DEFAULT_HOUR,
    minute: int = DEFAULT_MINUTE,
    agents_dir: Path | None = None,
) -> Path:
    """Write the agent plist (replacing any previous one) and load it."""

    path = plist_path(agents_dir)
    payload = generate_plist(program or resolve_program(), log_dir=log_dir, hour=hour, minute=minute)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        _launchctl("unload", str(path))
    with path.open("wb") as f:
        plistlib.dump(payload, f)
    result = _launchctl("load", str(path))
    if result.returncode != 0:
        raise SchedulerError(f"launchctl load failed: {result.stderr.strip() or result.returncode}")
    _logger.info("scheduler:installed path=%s at=%02d:%02d", path, hour, minute)
    return path


def uninstall_schedule(*, agents_dir: Path | None = None) -> bool:
    """Unload and delete the agent; ``False`` when it was not installed."""

    path = plist_path(agents_dir)
    if not path.exists():
        return False
    _launchctl("unload", str(path))
    path.unlink()
    _logger.info("scheduler:removed path=%s", path)
    return True


def schedule_status(*, agents_dir: Path | None = None) -> ScheduleStatus:
    path = plist_path(agents_dir)
    if not path.exists():
        return ScheduleStatus(installed=False, loaded=False)

    try:
        loaded = LABEL in _launchctl("list").stdout
    except SchedulerError:
        loaded = False

    next_run: str | None = None
    try:
        with path.open("rb") as f:
            interval = plistlib.load(f).get("StartCalendarInterval") or {}
        next_run = f"{int(interval['Hour']):02d}:{int(interval['Minute']):02d} daily"
    except (OSError, plistlib.InvalidFileException, KeyError, TypeError, ValueError):
        _logger.debug("scheduler:plist_unreadable path=%s", path, exc_info=True)
    return ScheduleStatus(installed=True, loaded=loaded, next_run=next_run)


__all__ = [
    "LABEL",
    "PLIST_NAME",
    "ScheduleStatus",
    "launch_agents_dir",
    "plist_path",
    "resolve_program",
    "generate_plist",
    "install_schedule",
    "uninstall_schedule",
    "schedule_status",
]
