"""Tests for the task prompt text and the text/JSON output sink."""

from __future__ import annotations

import io
import json
import unittest
from pathlib import Path

from rich.console import Console

from git_codex.models import TaskIdentity
from git_codex.output import Output
from git_codex.prompt import build_task_prompt

IDENTITY = TaskIdentity(
    task="Fix Login",
    slug="fix-login",
    branch="codex/fix-login",
    path=Path("/work/app-fix-login"),
)


class BuildTaskPromptTests(unittest.TestCase):
    def test_renders_header_and_message(self) -> None:
        self.assertEqual(
            build_task_prompt(IDENTITY, "  Make the redirect work.  "),
            "Task: Fix Login\n"
            "Task Slug: fix-login\n"
            "Branch: codex/fix-login\n"
            "Worktree: /work/app-fix-login\n"
            "\n"
            "Prompt:\n"
            "Make the redirect work.",
        )

    def test_blank_message(self) -> None:
        self.assertTrue(build_task_prompt(IDENTITY, "   ").endswith("Prompt:\n(no message)"))


class OutputTests(unittest.TestCase):
    def _output(self, **kwargs: bool) -> tuple[Output, io.StringIO, io.StringIO]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        output = Output(
            console=Console(file=stdout, width=200, color_system=None),
            err_console=Console(file=stderr, width=200, color_system=None),
            **kwargs,
        )
        return output, stdout, stderr

    def test_text_mode_routes_streams(self) -> None:
        output, stdout, stderr = self._output()
        output.info("hello")
        output.warn("careful")
        output.error("broken")
        output.event("worktree.opened", path="/x", opened=False)

        self.assertEqual(
            stdout.getvalue().splitlines(),
            ["hello", 'worktree.opened: {"path": "/x", "opened": false}'],
        )
        self.assertEqual(stderr.getvalue().splitlines(), ["Warning: careful", "Error: broken"])

    def test_quiet_text_mode_only_emits_errors(self) -> None:
        output, stdout, stderr = self._output(quiet=True)
        output.info("hello")
        output.warn("careful")
        output.print("text")
        output.event("worktree.created")
        output.error("broken")

        self.assertEqual(stdout.getvalue(), "")
        self.assertEqual(stderr.getvalue().strip(), "Error: broken")

    def test_json_mode_emits_one_object_per_line_and_ignores_quiet(self) -> None:
        output, stdout, stderr = self._output(json_mode=True, quiet=True)
        output.info("hello", path="/x")
        output.warn("careful")
        output.event("worktree.removed", removedMapping=True)
        output.error("broken")

        lines = [json.loads(line) for line in stdout.getvalue().splitlines()]
        self.assertEqual(
            lines,
            [
                {"level": "info", "message": "hello", "path": "/x"},
                {"level": "warn", "message": "careful"},
                {"event": "worktree.removed", "removedMapping": True},
            ],
        )
        self.assertEqual(json.loads(stderr.getvalue()), {"level": "error", "message": "broken"})

    def test_messages_are_not_treated_as_markup(self) -> None:
        output, stdout, stderr = self._output()
        output.info("[bold]literal[/bold]")
        output.error("bad [ref]")
        self.assertEqual(stdout.getvalue().strip(), "[bold]literal[/bold]")
        self.assertEqual(stderr.getvalue().strip(), "Error: bad [ref]")

    def test_table_renders_rows(self) -> None:
        output, stdout, _ = self._output()
        output.table(["Path", "Branch", "HEAD"], [["/work/app-x", "codex/x", "abc1234"]])
        rendered = stdout.getvalue()
        self.assertIn("codex/x", rendered)
        self.assertIn("abc1234", rendered)


if __name__ == "__main__":
    unittest.main()
