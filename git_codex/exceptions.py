"""Custom error hierarchy for git-codex."""

from __future__ import annotations

from typing import Sequence


class GitCodexError(RuntimeError):
    """Base error for the CLI."""


class ValidationError(GitCodexError):
    """Raised when user input fails validation before any I/O."""


class ConfigError(GitCodexError):
    """Raised when a configuration layer is malformed or has the wrong types."""


class PathConflictError(GitCodexError):
    """Raised when the target worktree path is already occupied."""


class ReuseConflictError(GitCodexError):
    """Raised when --reuse targets a path that cannot be reused."""


class GitInvocationError(GitCodexError):
    """Raised when an underlying git command fails."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        *,
        stdout: str | None = None,
        stderr: str | None = None,
    ):
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        message = f"git command failed (exit {returncode}): {' '.join(self.command)}"
        if self.output:
            message = f"{message}\n{self.output}"
        super().__init__(message)

    @property
    def output(self) -> str:
        """Combined stderr and stdout, stderr first."""
        return "\n".join(
            section
            for section in (self.stderr.strip(), self.stdout.strip())
            if section
        )


class MissingExecutableError(GitCodexError):
    """Raised when an external program (editor, clipboard tool) is not installed."""

    def __init__(self, executable: str, message: str | None = None):
        self.executable = executable
        super().__init__(message or f"Executable not found in PATH: {executable}")


class ClipboardUnavailableError(MissingExecutableError):
    """Raised when none of the clipboard utilities could be run."""

    def __init__(self, candidates: Sequence[str]):
        self.candidates = list(candidates)
        super().__init__(
            ", ".join(self.candidates),
            "No clipboard utility found. Install "
            f"{_join_alternatives(self.candidates)} to use --copy.",
        )


class UserAbort(GitCodexError):
    """Raised when the user cancels an interactive flow."""


def _join_alternatives(items: Sequence[str]) -> str:
    if len(items) <= 1:
        return "".join(items)
    return f"{', '.join(items[:-1])}, or {items[-1]}"


__all__ = [
    "GitCodexError",
    "ValidationError",
    "ConfigError",
    "PathConflictError",
    "ReuseConflictError",
    "GitInvocationError",
    "MissingExecutableError",
    "ClipboardUnavailableError",
    "UserAbort",
]
