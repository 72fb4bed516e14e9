"""Interactive prompt helpers built on InquirerPy."""

from __future__ import annotations

import sys
from typing import Callable, Sequence

from InquirerPy import inquirer

from .exceptions import UserAbort, ValidationError

LineReader = Callable[[str], str]
InvalidChoiceHandler = Callable[[str, Sequence[str]], None]


def _ensure_tty() -> None:
    if not sys.stdin.isatty():
        raise ValidationError(
            "Interactive confirmation requires a TTY. Re-run from a terminal to answer the prompt."
        )


def prompt_line(question: str) -> str:
    """Default line reader: one free-text answer from the terminal."""

    _ensure_tty()
    try:
        return inquirer.text(message=question, qmark="›").execute() or ""
    except KeyboardInterrupt as exc:  # pragma: no cover - user cancel
        raise UserAbort("User cancelled the prompt.") from exc


def prompt_for_choice(
    question: str,
    choices: Sequence[str],
    default: str,
    *,
    reader: LineReader = prompt_line,
    on_invalid: InvalidChoiceHandler | None = None,
) -> str:
    """Ask until the answer is one of `choices`; an empty answer means `default`.

    The answer is returned lowercased. `reader` supplies raw lines so the loop
    can be driven without a terminal.
    """

    valid = {choice.lower() for choice in choices}
    if default.lower() not in valid:
        raise ValueError(f"Default choice {default!r} is not one of {list(choices)}")
    while True:
        answer = reader(question).strip().lower()
        resolved = answer or default.lower()
        if resolved in valid:
            return resolved
        if on_invalid is not None:
            on_invalid(answer, choices)


def confirm(
    question: str,
    *,
    default: bool = False,
    reader: LineReader = prompt_line,
    on_invalid: InvalidChoiceHandler | None = None,
) -> bool:
    answer = prompt_for_choice(
        question,
        ["y", "yes", "n", "no"],
        "y" if default else "n",
        reader=reader,
        on_invalid=on_invalid,
    )
    return answer in {"y", "yes"}


__all__ = [
    "LineReader",
    "prompt_line",
    "prompt_for_choice",
    "confirm",
]
