"""Tests for the interactive choice loop."""

from __future__ import annotations

import unittest
from unittest import mock

from git_codex import interactive
from git_codex.exceptions import ValidationError
from git_codex.interactive import confirm, prompt_for_choice


def _reader(*answers: str):
    remaining = list(answers)
    questions: list[str] = []

    def read(question: str) -> str:
        questions.append(question)
        return remaining.pop(0)

    read.questions = questions  # type: ignore[attr-defined]
    return read


class PromptForChoiceTests(unittest.TestCase):
    def test_empty_answer_selects_default(self) -> None:
        self.assertEqual(prompt_for_choice("Go?", ["y", "n"], "n", reader=_reader("  ")), "n")

    def test_answer_is_lowercased(self) -> None:
        self.assertEqual(prompt_for_choice("Go?", ["c", "continue", "a", "abort"], "a", reader=_reader("Continue")), "continue")

    def test_invalid_answers_are_asked_again(self) -> None:
        invalid: list[str] = []
        reader = _reader("maybe", "later", "y")
        answer = prompt_for_choice(
            "Go?",
            ["y", "n"],
            "n",
            reader=reader,
            on_invalid=lambda value, _choices: invalid.append(value),
        )
        self.assertEqual(answer, "y")
        self.assertEqual(invalid, ["maybe", "later"])
        self.assertEqual(reader.questions, ["Go?", "Go?", "Go?"])

    def test_default_must_be_a_choice(self) -> None:
        with self.assertRaises(ValueError):
            prompt_for_choice("Go?", ["y", "n"], "x", reader=_reader("y"))

    def test_confirm(self) -> None:
        self.assertTrue(confirm("Go?", reader=_reader("YES")))
        self.assertFalse(confirm("Go?", reader=_reader("")))
        self.assertTrue(confirm("Go?", default=True, reader=_reader("")))

    def test_confirm_reports_invalid_answers(self) -> None:
        invalid: list[str] = []
        answer = confirm(
            "Go?",
            reader=_reader("perhaps", "no"),
            on_invalid=lambda value, choices: invalid.append(value),
        )
        self.assertFalse(answer)
        self.assertEqual(invalid, ["perhaps"])


class PromptLineTests(unittest.TestCase):
    def test_requires_tty(self) -> None:
        with mock.patch.object(interactive, "sys") as fake_sys:
            fake_sys.stdin.isatty.return_value = False
            with self.assertRaisesRegex(ValidationError, "requires a TTY"):
                interactive.prompt_line("Continue?")


if __name__ == "__main__":
    unittest.main()
