"""Human-readable and JSON-lines output, plus logging setup."""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table


class Output:
    """Route messages and events to stdout/stderr.

    Text mode prints plain lines; warnings and errors go to stderr and quiet
    suppresses everything except errors. JSON mode emits one object per line
    (`{"level", "message", ...}` or `{"event", ...}`) and ignores quiet, since
    automation depends on receiving every event.
    """

    def __init__(
        self,
        *,
        json_mode: bool = False,
        quiet: bool = False,
        console: Console | None = None,
        err_console: Console | None = None,
    ) -> None:
        self.json = json_mode
        self.quiet = False if json_mode else quiet
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.err_console = err_console or Console(stderr=True, highlight=False, soft_wrap=True)

    def info(self, message: str, **fields: Any) -> None:
        if self.quiet:
            return
        if self.json:
            self._write_json(self.console, {"level": "info", "message": message, **fields})
            return
        self.console.out(message, highlight=False)

    def warn(self, message: str, **fields: Any) -> None:
        if self.quiet:
            return
        if self.json:
            self._write_json(self.console, {"level": "warn", "message": message, **fields})
            return
        self.err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str, **fields: Any) -> None:
        if self.json:
            self._write_json(self.err_console, {"level": "error", "message": message, **fields})
            return
        self.err_console.print(f"[red]Error:[/red] {escape(message)}")

    def print(self, message: str) -> None:
        if self.quiet:
            return
        if self.json:
            self._write_json(self.console, {"level": "info", "message": message})
            return
        self.console.out(message, highlight=False)

    def event(self, name: str, **fields: Any) -> None:
        if self.quiet:
            return
        if self.json:
            self._write_json(self.console, {"event": name, **fields})
            return
        if fields:
            self.console.out(f"{name}: {json.dumps(fields, default=str)}", highlight=False)
        else:
            self.console.out(name, highlight=False)

    def table(self, columns: Sequence[str], rows: Sequence[Sequence[str]], *, title: str | None = None) -> None:
        if self.quiet:
            return
        table = Table(title=title, show_lines=False, header_style="bold")
        for column in columns:
            table.add_column(column, no_wrap=True)
        for row in rows:
            table.add_row(*(escape(cell) for cell in row))
        self.console.print(table)

    @staticmethod
    def _write_json(console: Console, payload: dict[str, Any]) -> None:
        console.out(json.dumps(payload, default=str), highlight=False)


def setup_logging(verbose: bool = False, *, console: Console | None = None) -> None:
    """Send library logging through Rich on stderr; DEBUG when verbose."""

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=False,
        show_level=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger = logging.getLogger("git_codex")
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.propagate = False


__all__ = ["Output", "setup_logging"]
