"""Thin wrappers around git CLI commands."""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import Literal, Sequence

from .exceptions import GitInvocationError
from .models import BranchState

logger = logging.getLogger(__name__)

_BENIGN_ABSENCE_RE = re.compile(
    r"is not a working tree|is not registered|no such file|does not exist",
    re.IGNORECASE,
)
_BENIGN_MISSING_BRANCH_RE = re.compile(
    r"not found|unknown branch|not a valid branch",
    re.IGNORECASE,
)


def run_git(
    args: Sequence[str],
    *,
    cwd: Path,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Execute a git command and optionally raise on failure."""

    command = ["git", *args]
    logger.debug("Running: %s (cwd=%s)", " ".join(command), cwd)
    result = subprocess.run(
        command,
        cwd=str(cwd),
        text=True,
        capture_output=True,
        check=False,
    )
    if result.returncode != 0:
        logger.debug("git exited %s: %s", result.returncode, result.stderr.strip())
    if check and result.returncode != 0:
        raise GitInvocationError(
            command,
            result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return result


def combined_output(result: subprocess.CompletedProcess[str]) -> str:
    return "\n".join(part for part in (result.stderr, result.stdout) if part).strip()


def is_benign_absence(output: str) -> bool:
    """True when git failed only because the worktree was already gone."""
    return bool(_BENIGN_ABSENCE_RE.search(output))


def is_benign_missing_branch(output: str) -> bool:
    """True when a branch delete failed only because the branch was already gone."""
    return bool(_BENIGN_MISSING_BRANCH_RE.search(output))


def show_toplevel(cwd: Path) -> Path:
    result = run_git(["rev-parse", "--show-toplevel"], cwd=cwd)
    return Path(result.stdout.strip())


def current_branch(repo_root: Path) -> str | None:
    """Return the checked-out branch name, or None when HEAD is detached."""
    result = run_git(["branch", "--show-current"], cwd=repo_root)
    return result.stdout.strip() or None


def list_remotes(repo_root: Path) -> list[str]:
    result = run_git(["remote"], cwd=repo_root)
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def _ref_exists(repo_root: Path, ref: str) -> bool:
    args = ["show-ref", "--verify", "--quiet", ref]
    result = run_git(args, cwd=repo_root, check=False)
    if result.returncode == 0:
        return True
    if result.returncode == 1:
        return False
    raise GitInvocationError(
        ["git", *args],
        result.returncode,
        stdout=result.stdout,
        stderr=result.stderr,
    )


def local_branch_exists(repo_root: Path, branch: str) -> bool:
    return _ref_exists(repo_root, f"refs/heads/{branch}")


def remote_tracking_ref_exists(repo_root: Path, branch: str, remote: str = "origin") -> bool:
    return _ref_exists(repo_root, f"refs/remotes/{remote}/{branch}")


def remote_branch_listed(repo_root: Path, branch: str, remote: str = "origin") -> bool:
    """Ask the remote itself whether the branch exists (no fetch needed)."""
    args = ["ls-remote", "--exit-code", "--heads", remote, f"refs/heads/{branch}"]
    result = run_git(args, cwd=repo_root, check=False)
    if result.returncode == 0:
        return bool(result.stdout.strip())
    if result.returncode == 2:
        return False
    raise GitInvocationError(
        ["git", *args],
        result.returncode,
        stdout=result.stdout,
        stderr=result.stderr,
    )


def remote_branch_state(repo_root: Path, branch: str, remote: str = "origin") -> BranchState:
    """Probe local and remote existence of `branch`.

    The remote-tracking ref is consulted first. When it is missing the remote
    is queried live with ls-remote, so branches pushed from another clone are
    found without a prior fetch. A tracking ref that exists is trusted even if
    the branch has since been deleted on the remote. The live query is skipped
    when the branch exists locally, since the local branch wins regardless.
    """

    local = local_branch_exists(repo_root, branch)
    tracking = remote_tracking_ref_exists(repo_root, branch, remote)
    if tracking:
        remote_exists = True
    elif not local and remote in list_remotes(repo_root):
        remote_exists = remote_branch_listed(repo_root, branch, remote)
    else:
        remote_exists = False
    return BranchState(
        local_exists=local,
        remote_exists=remote_exists,
        remote_tracking_ref_exists=tracking,
    )


def fetch_all(repo_root: Path) -> None:
    run_git(["fetch", "--all", "--prune"], cwd=repo_root)


def fetch_remote_branch(repo_root: Path, branch: str, remote: str = "origin") -> None:
    """Fetch exactly one branch into its remote-tracking ref."""
    refspec = f"+refs/heads/{branch}:refs/remotes/{remote}/{branch}"
    run_git(["fetch", remote, refspec], cwd=repo_root)


def worktree_list_porcelain(repo_root: Path) -> str:
    return run_git(["worktree", "list", "--porcelain"], cwd=repo_root).stdout


def worktree_list_text(repo_root: Path) -> str:
    return run_git(["worktree", "list"], cwd=repo_root).stdout.rstrip()


def worktree_prune(repo_root: Path) -> None:
    run_git(["worktree", "prune"], cwd=repo_root)


def status_porcelain(path: Path) -> str:
    return run_git(["status", "--porcelain"], cwd=path).stdout


def is_merge_in_progress(repo_root: Path) -> bool:
    result = run_git(["rev-parse", "-q", "--verify", "MERGE_HEAD"], cwd=repo_root, check=False)
    return result.returncode == 0


def is_ancestor_of_head(repo_root: Path, ref: str) -> bool:
    result = run_git(["merge-base", "--is-ancestor", ref, "HEAD"], cwd=repo_root, check=False)
    return result.returncode == 0


def read_config_namespace(
    repo_root: Path,
    scope: Literal["global", "local"],
    namespace: str = "codex",
) -> dict[str, str | None]:
    """Read every `<namespace>.*` key from git config, keys lowercased.

    A nonzero exit (no config file, no matching keys) yields an empty map. A
    key written without `=` maps to None.
    """

    args = ["config"]
    if scope == "global":
        args.append("--global")
    else:
        args.append("--local")
    args.extend(["--get-regexp", rf"^{re.escape(namespace)}\."])
    result = run_git(args, cwd=repo_root, check=False)
    if result.returncode != 0:
        return {}
    entries: dict[str, str | None] = {}
    for raw in result.stdout.splitlines():
        if not raw.strip():
            continue
        key, separator, value = raw.partition(" ")
        if not key:
            continue
        entries[key.strip().lower()] = value.strip() if separator else None
    return entries


__all__ = [
    "run_git",
    "combined_output",
    "is_benign_absence",
    "is_benign_missing_branch",
    "show_toplevel",
    "current_branch",
    "list_remotes",
    "local_branch_exists",
    "remote_tracking_ref_exists",
    "remote_branch_listed",
    "remote_branch_state",
    "fetch_all",
    "fetch_remote_branch",
    "worktree_list_porcelain",
    "worktree_list_text",
    "worktree_prune",
    "status_porcelain",
    "is_merge_in_progress",
    "is_ancestor_of_head",
    "read_config_namespace",
]
