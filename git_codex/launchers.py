"""Editor and clipboard launchers."""

from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import Sequence

from .exceptions import ClipboardUnavailableError, GitCodexError, MissingExecutableError

logger = logging.getLogger(__name__)

DEFAULT_EDITOR = "code"
EDITOR_MISSING_HINT = (
    "VS Code CLI `code` was not found in PATH. Install it from the VS Code command palette: "
    "'Shell Command: Install code command in PATH'."
)
LINUX_CLIPBOARD_CANDIDATES: tuple[tuple[str, ...], ...] = (
    ("wl-copy",),
    ("xclip", "-selection", "clipboard"),
    ("xsel", "--clipboard", "--input"),
)


def open_in_editor(path: Path, executable: str = DEFAULT_EDITOR) -> None:
    """Open `path` in a new editor window."""

    command = [executable, "-n", str(path)]
    logger.debug("Running: %s", " ".join(command))
    try:
        subprocess.run(
            command,
            check=True,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except FileNotFoundError as exc:
        raise MissingExecutableError(executable, EDITOR_MISSING_HINT) from exc
    except subprocess.CalledProcessError as exc:
        raise GitCodexError(f"{executable} exited with status {exc.returncode} while opening {path}") from exc


def clipboard_candidates(platform: str | None = None) -> tuple[tuple[str, ...], ...]:
    platform = platform or sys.platform
    if platform.startswith("win"):
        return (("clip",),)
    if platform == "darwin":
        return (("pbcopy",),)
    return LINUX_CLIPBOARD_CANDIDATES


def copy_to_clipboard(text: str, *, platform: str | None = None) -> str:
    """Copy `text` with the first clipboard utility that is installed.

    Returns the executable used.
    """

    candidates = clipboard_candidates(platform)
    for command in candidates:
        try:
            _run_clipboard_command(command, text)
        except FileNotFoundError:
            logger.debug("Clipboard utility %s not found, trying next", command[0])
            continue
        return command[0]
    raise ClipboardUnavailableError([command[0] for command in candidates])


def _run_clipboard_command(command: Sequence[str], text: str) -> None:
    logger.debug("Running: %s", " ".join(command))
    try:
        subprocess.run(list(command), input=text, text=True, check=True, capture_output=True)
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or "").strip()
        raise GitCodexError(f"{command[0]} exited with status {exc.returncode}: {detail}".rstrip(": ")) from exc


__all__ = [
    "DEFAULT_EDITOR",
    "EDITOR_MISSING_HINT",
    "open_in_editor",
    "clipboard_candidates",
    "copy_to_clipboard",
]
