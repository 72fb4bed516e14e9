"""Decide which `git worktree add` invocation creates a task worktree."""

from __future__ import annotations

from pathlib import Path

DEFAULT_REMOTE = "origin"


def plan_add(
    branch: str,
    worktree_path: str | Path,
    base_ref: str,
    local_exists: bool,
    remote_exists: bool,
    remote_name: str | None = None,
) -> list[str]:
    """Return the git argument vector (without the leading `git`).

    An existing local branch is attached as-is and the base ref is ignored.
    Otherwise a new branch is created from `<remote>/<branch>` when the branch
    exists on the remote, falling back to the configured base ref.
    """

    path = str(worktree_path)
    if local_exists:
        return ["worktree", "add", path, branch]
    if remote_exists:
        start_point = f"{remote_name or DEFAULT_REMOTE}/{branch}"
    else:
        start_point = base_ref
    return ["worktree", "add", "-b", branch, path, start_point]


__all__ = ["DEFAULT_REMOTE", "plan_add"]
