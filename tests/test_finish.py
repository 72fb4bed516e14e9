"""Tests for merging a task branch back and cleaning up."""

from __future__ import annotations

import io
from dataclasses import replace

from rich.console import Console

from git_codex.config import ADD_DEFAULTS, FinishConfig
from git_codex.exceptions import GitCodexError, UserAbort
from git_codex.finish import finish_task
from git_codex.output import Output
from git_codex.tasks import build_task_identity
from git_codex.worktrees import add_task_worktree

from git_sandbox import GitSandboxTestCase

FINISH_DEFAULTS = FinishConfig(
    dir=None,
    branch_prefix="codex/",
    force_delete=True,
    cleanup=True,
    delete_branch=True,
)


class FinishTaskTests(GitSandboxTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()
        self.output = Output(
            console=Console(file=self.stdout, width=200, soft_wrap=True, color_system=None),
            err_console=Console(file=self.stderr, width=200, soft_wrap=True, color_system=None),
        )
        self.identity = build_task_identity(self.repo, "Fix Login", "codex/")
        add_task_worktree(
            self.repo,
            self.identity,
            replace(ADD_DEFAULTS, base="main", open=False, fetch=False),
            output=self.output,
        )
        self.worktree = self.identity.path

    def _reader(self, *answers: str, before_each=None):
        remaining = list(answers)
        self.questions: list[str] = []

        def read(question: str) -> str:
            self.questions.append(question)
            if before_each is not None:
                before_each(len(self.questions))
            return remaining.pop(0)

        return read

    def _finish(self, config: FinishConfig = FINISH_DEFAULTS, reader=None):
        return finish_task(
            self.repo,
            self.identity,
            config,
            output=self.output,
            reader=reader or self._reader(),
        )

    def test_merges_and_cleans_up(self) -> None:
        self.commit_file("feature.txt", "done\n", "Add feature", cwd=self.worktree)

        result = self._finish()

        self.assertEqual(result.merged_into, "main")
        self.assertTrue(result.worktree_removed)
        self.assertTrue(result.branch_deleted)
        self.assertFalse(self.worktree.exists())
        self.assertFalse(self.branch_exists("codex/fix-login"))
        self.assertEqual((self.repo_root / "feature.txt").read_text(encoding="utf-8"), "done\n")
        self.assertEqual(self.git("log", "-1", "--format=%P").count(" "), 1)
        self.assertEqual(
            result.to_event(),
            {
                "task": "Fix Login",
                "taskSlug": "fix-login",
                "taskBranch": "codex/fix-login",
                "mergedInto": "main",
                "cleanup": True,
                "forceDelete": True,
                "worktreeRemoved": True,
                "branchDeleted": True,
            },
        )

    def test_no_cleanup_keeps_worktree_and_branch(self) -> None:
        self.commit_file("feature.txt", "done\n", "Add feature", cwd=self.worktree)

        result = self._finish(replace(FINISH_DEFAULTS, cleanup=False, delete_branch=False))

        self.assertFalse(result.worktree_removed)
        self.assertFalse(result.branch_deleted)
        self.assertTrue(self.worktree.exists())
        self.assertTrue(self.branch_exists("codex/fix-login"))
        self.assertIn("Skipped worktree cleanup", self.stdout.getvalue())

    def test_refuses_on_task_branch(self) -> None:
        self.git("worktree", "remove", "--force", str(self.worktree))
        self.git("checkout", "codex/fix-login")
        with self.assertRaisesRegex(GitCodexError, "while on task branch"):
            self._finish()

    def test_refuses_with_missing_branch(self) -> None:
        other = build_task_identity(self.repo, "Never Started", "codex/")
        with self.assertRaisesRegex(GitCodexError, "does not exist locally"):
            finish_task(self.repo, other, FINISH_DEFAULTS, output=self.output, reader=self._reader())
        self.assertIn("Task worktree path is missing", self.stderr.getvalue())

    def test_refuses_with_dirty_main_worktree(self) -> None:
        (self.repo_root / "README.md").write_text("changed\n", encoding="utf-8")
        with self.assertRaisesRegex(GitCodexError, "Current worktree has uncommitted changes"):
            self._finish()

    def test_dirty_task_worktree_declined(self) -> None:
        (self.worktree / "scratch.txt").write_text("wip", encoding="utf-8")
        with self.assertRaises(UserAbort):
            self._finish(reader=self._reader(""))
        self.assertTrue(self.branch_exists("codex/fix-login"))
        self.assertIn("force-delete this worktree", self.stderr.getvalue())

    def test_dirty_task_worktree_confirmed(self) -> None:
        self.commit_file("feature.txt", "done\n", "Add feature", cwd=self.worktree)
        (self.worktree / "scratch.txt").write_text("wip", encoding="utf-8")

        result = self._finish(reader=self._reader("perhaps", "y"))

        self.assertTrue(result.worktree_removed)
        self.assertEqual(len(self.questions), 2)
        self.assertIn('Invalid choice: "perhaps"', self.stderr.getvalue())

    def test_conflict_resolved_then_continue(self) -> None:
        self.commit_file("shared.txt", "task\n", "Task change", cwd=self.worktree)
        self.commit_file("shared.txt", "main\n", "Main change")

        def resolve(attempt: int) -> None:
            if attempt == 2:
                (self.repo_root / "shared.txt").write_text("merged\n", encoding="utf-8")
                self.git("add", "shared.txt")
                self.git("commit", "--no-edit")

        result = self._finish(reader=self._reader("c", "c", before_each=resolve))

        self.assertEqual(len(self.questions), 2)
        self.assertIn("Merge is still in progress", self.stderr.getvalue())
        self.assertTrue(result.branch_deleted)
        self.assertEqual((self.repo_root / "shared.txt").read_text(encoding="utf-8"), "merged\n")

    def test_conflict_abort_skips_cleanup(self) -> None:
        self.commit_file("shared.txt", "task\n", "Task change", cwd=self.worktree)
        self.commit_file("shared.txt", "main\n", "Main change")

        with self.assertRaisesRegex(UserAbort, "Cleanup was skipped"):
            self._finish(reader=self._reader("a"))

        self.assertTrue(self.worktree.exists())
        self.assertTrue(self.branch_exists("codex/fix-login"))
