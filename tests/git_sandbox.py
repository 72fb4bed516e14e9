"""Throwaway repositories with a bare `origin` for tests that drive real git."""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from git_codex.models import RepoContext

GIT_AVAILABLE = shutil.which("git") is not None


class GitSandboxTestCase(unittest.TestCase):
    """Each test gets `<tmp>/origin.git`, a clone-like repo at `<tmp>/app` and an isolated HOME."""

    def setUp(self) -> None:
        if not GIT_AVAILABLE:
            self.skipTest("git is not installed")
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.sandbox = Path(tmp.name).resolve()
        home = self.sandbox / "home"
        home.mkdir()

        patcher = mock.patch.dict(
            os.environ,
            {
                "GIT_CEILING_DIRECTORIES": str(self.sandbox),
                "HOME": str(home),
                "XDG_CONFIG_HOME": str(home / ".config"),
                "GIT_CONFIG_NOSYSTEM": "1",
                "GIT_AUTHOR_NAME": "Test User",
                "GIT_AUTHOR_EMAIL": "test@example.com",
                "GIT_COMMITTER_NAME": "Test User",
                "GIT_COMMITTER_EMAIL": "test@example.com",
                "GIT_TERMINAL_PROMPT": "0",
            },
        )
        patcher.start()
        self.addCleanup(patcher.stop)
        for key in ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE"):
            os.environ.pop(key, None)

        self.origin = self.sandbox / "origin.git"
        self.git("init", "--bare", str(self.origin), cwd=self.sandbox)
        self.repo_root = self.sandbox / "app"
        self.repo_root.mkdir()
        self.git("init")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")
        (self.repo_root / ".gitignore").write_text(".env\n.env.*\n", encoding="utf-8")
        self.commit_file("README.md", "# app\n", "Initial commit")
        self.git("remote", "add", "origin", str(self.origin))
        self.git("push", "-u", "origin", "main")
        self.repo = RepoContext(repo_root=self.repo_root, repo_name="app")

    def git(self, *args: str, cwd: Path | None = None) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=str(cwd or self.repo_root),
            text=True,
            capture_output=True,
            check=True,
        )
        return result.stdout.strip()

    def commit_file(self, name: str, content: str, message: str, *, cwd: Path | None = None) -> None:
        root = cwd or self.repo_root
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        self.git("add", "-A", cwd=root)
        self.git("commit", "-m", message, cwd=root)

    def branch_exists(self, branch: str) -> bool:
        result = subprocess.run(
            ["git", "show-ref", "--verify", "--quiet", f"refs/heads/{branch}"],
            cwd=str(self.repo_root),
            capture_output=True,
        )
        return result.returncode == 0
