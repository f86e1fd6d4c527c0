"""Tiny terminal UI helpers (prompt_toolkit-based) for the setup wizard.

Every helper accepts an optional ``session`` whose ``input``/``output`` are
reused, which lets tests drive the prompts through a pipe.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.validation import ValidationError, Validator

from .money import to_decimal


def _session(session: PromptSession | None, **kwargs) -> PromptSession:
    if session is None:
        return PromptSession(**kwargs)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        **kwargs,
    )


class _NonEmpty(Validator):
    def __init__(self, label: str) -> None:
        self._label = label

    def validate(self, document) -> None:
        if not document.text.strip():
            raise ValidationError(message=f"{self._label} is required", cursor_position=0)


class _PositiveAmount(Validator):
    def validate(self, document) -> None:
        text = document.text.strip().replace(",", "").lstrip("$")
        value = to_decimal(text)
        if value is None or value <= 0:
            raise ValidationError(
                message="Budget must be a positive number",
                cursor_position=len(document.text),
            )


class _OneOf(Validator):
    def __init__(self, accepted: dict[str, str]) -> None:
        self._accepted = accepted

    def validate(self, document) -> None:
        if document.text.strip().lower() not in self._accepted:
            raise ValidationError(
                message="Pick one of the listed options",
                cursor_position=len(document.text),
            )


def prompt_text(
    message: str,
    *,
    label: str,
    default: str = "",
    session: PromptSession | None = None,
) -> str:
    """Prompt for a required single-line value."""

    sess = _session(session, validator=_NonEmpty(label), validate_while_typing=False)
    return sess.prompt(message, default=default).strip()


def prompt_secret(
    message: str,
    *,
    label: str,
    session: PromptSession | None = None,
) -> str:
    sess = _session(session, validator=_NonEmpty(label), validate_while_typing=False)
    return sess.prompt(message, is_password=True).strip()


def prompt_budget(
    message: str = "Monthly spending budget ($): ",
    *,
    default: Decimal = Decimal("8000"),
    session: PromptSession | None = None,
) -> Decimal:
    """Prompt for a positive amount; accepts ``$`` and thousands separators."""

    sess = _session(session, validator=_PositiveAmount(), validate_while_typing=False)
    text = sess.prompt(message, default=str(default))
    value = to_decimal(text.strip().replace(",", "").lstrip("$"))
    if value is None:
        raise ValueError(f"not a number: {text!r}")
    return value


def choose(
    message: str,
    choices: Sequence[tuple[str, str]],
    *,
    default: str,
    session: PromptSession | None = None,
) -> str:
    """Pick one of ``choices`` (``(value, description)`` pairs) by value or number.

    The options are printed as a numbered list before the prompt; Tab
    completes values.
    """

    accepted: dict[str, str] = {}
    for n, (value, _desc) in enumerate(choices, start=1):
        accepted[value.lower()] = value
        accepted[str(n)] = value

    sess = _session(
        session,
        validator=_OneOf(accepted),
        validate_while_typing=False,
        completer=WordCompleter([v for v, _ in choices], ignore_case=True),
    )
    listing = "\n".join(f"  {n}. {value}: {desc}" for n, (value, desc) in enumerate(choices, 1))
    sess.output.write(listing + "\n")
    sess.output.flush()
    answer = sess.prompt(message, default=default)
    return accepted[answer.strip().lower()]


def confirm(
    message: str,
    *,
    default: bool = False,
    session: PromptSession | None = None,
) -> bool:
    """Yes/no prompt; empty input returns ``default``."""

    sess = _session(session)
    suffix = " [Y/n] " if default else " [y/N] "
    answer = sess.prompt(message + suffix).strip().lower()
    if not answer:
        return default
    return answer in {"y", "yes"}


__all__ = ["prompt_text", "prompt_secret", "prompt_budget", "choose", "confirm"]
