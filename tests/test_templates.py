"""Tests for task template rendering and writing."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from git_codex.exceptions import ConfigError, ValidationError
from git_codex.templates import (
    TemplateType,
    TemplateVariables,
    load_template_source,
    normalize_template_type,
    render_task_template,
    write_task_template,
)

VARIABLES = TemplateVariables(
    task="Fix Login",
    task_slug="fix-login",
    branch="codex/fix-login",
    worktree_path="/work/app-fix-login",
)


class RenderTests(unittest.TestCase):
    def test_builtin_templates_have_their_sections(self) -> None:
        expected = {
            TemplateType.DEFAULT: ["## Goals", "## Notes"],
            TemplateType.BUGFIX: ["## Reproduction", "## Root Cause", "## Fix Plan", "## Validation"],
            TemplateType.FEATURE: ["## Feature Scope", "## Implementation Plan", "## Validation", "## Rollout Notes"],
        }
        for kind, headings in expected.items():
            with self.subTest(kind=kind):
                rendered = render_task_template(VARIABLES, template_type=kind)
                self.assertIn("Task: Fix Login", rendered)
                self.assertIn("Branch: codex/fix-login", rendered)
                self.assertIn("Worktree: /work/app-fix-login", rendered)
                for heading in headings:
                    self.assertIn(heading, rendered)
                self.assertNotIn("{{", rendered)

    def test_custom_source_with_whitespace_and_unknown_placeholders(self) -> None:
        rendered = render_task_template(VARIABLES, "{{ taskSlug }} on {{branch}} {{owner}}")
        self.assertEqual(rendered, "fix-login on codex/fix-login {{owner}}")

    def test_normalize_template_type(self) -> None:
        self.assertIs(normalize_template_type(None), TemplateType.DEFAULT)
        self.assertIs(normalize_template_type(" Feature "), TemplateType.FEATURE)
        with self.assertRaisesRegex(ValidationError, "Invalid template type"):
            normalize_template_type("chore")


class WriteTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = Path(tmp.name)

    def test_writes_then_skips_then_overwrites(self) -> None:
        first = write_task_template(self.root, VARIABLES, template_type="bugfix")
        target = self.root / ".codex" / "INSTRUCTIONS.md"
        self.assertEqual(first.path, target)
        self.assertTrue(first.created)
        self.assertFalse(first.overwritten)
        self.assertIn("## Root Cause", target.read_text(encoding="utf-8"))

        target.write_text("edited", encoding="utf-8")
        second = write_task_template(self.root, VARIABLES)
        self.assertFalse(second.created)
        self.assertFalse(second.overwritten)
        self.assertEqual(target.read_text(encoding="utf-8"), "edited")

        third = write_task_template(self.root, VARIABLES, template_source="{{task}}", overwrite=True)
        self.assertTrue(third.created)
        self.assertTrue(third.overwritten)
        self.assertEqual(target.read_text(encoding="utf-8"), "Fix Login")

    def test_load_template_source_relative_to_repo(self) -> None:
        (self.root / "docs").mkdir()
        (self.root / "docs" / "task.md").write_text("# {{task}}", encoding="utf-8")
        self.assertEqual(load_template_source(self.root, "docs/task.md"), "# {{task}}")
        self.assertIsNone(load_template_source(self.root, None))

    def test_missing_template_file_raises(self) -> None:
        with self.assertRaisesRegex(ConfigError, "Unable to read template file"):
            load_template_source(self.root, "missing.md")


if __name__ == "__main__":
    unittest.main()
