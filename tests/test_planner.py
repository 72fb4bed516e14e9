"""Tests for the `git worktree add` decision table."""

from __future__ import annotations

import unittest
from pathlib import Path

from git_codex.planner import plan_add


class PlanAddTests(unittest.TestCase):
    path = Path("/work/app-task")

    def test_local_branch_is_attached_and_base_ignored(self) -> None:
        for remote_exists in (True, False):
            with self.subTest(remote_exists=remote_exists):
                self.assertEqual(
                    plan_add("codex/task", self.path, "main", True, remote_exists),
                    ["worktree", "add", "/work/app-task", "codex/task"],
                )

    def test_remote_only_branch_starts_from_remote(self) -> None:
        self.assertEqual(
            plan_add("codex/task", self.path, "main", False, True),
            ["worktree", "add", "-b", "codex/task", "/work/app-task", "origin/codex/task"],
        )

    def test_remote_name_is_honoured(self) -> None:
        plan = plan_add("codex/task", self.path, "upstream/main", False, True, "upstream")
        self.assertEqual(plan[-1], "upstream/codex/task")

    def test_new_branch_starts_from_base(self) -> None:
        self.assertEqual(
            plan_add("codex/task", self.path, "develop", False, False),
            ["worktree", "add", "-b", "codex/task", "/work/app-task", "develop"],
        )


if __name__ == "__main__":
    unittest.main()
