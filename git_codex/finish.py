"""Merge a finished task branch back and clean up after it."""

from __future__ import annotations

import logging
from typing import Sequence

from . import git
from .config import FinishConfig
from .exceptions import GitCodexError, UserAbort
from .interactive import LineReader, confirm, prompt_for_choice, prompt_line
from .models import FinishResult, RepoContext, TaskIdentity
from .output import Output
from .worktrees import remove_task_worktree, report_removal

logger = logging.getLogger(__name__)

DIRTY_WORKTREE_QUESTION = "Continue finish? Type 'y' to continue or 'n' to abort [n]: "
CONFLICT_QUESTION = (
    "Merge conflict in progress. Type 'c' after resolving and committing, or 'a' to abort [a]: "
)


def finish_task(
    repo: RepoContext,
    identity: TaskIdentity,
    config: FinishConfig,
    *,
    output: Output,
    reader: LineReader = prompt_line,
) -> FinishResult:
    """Merge the task branch into the current branch, then remove its worktree and branch.

    Nothing is cleaned up unless the merge commit exists, so an aborted or
    failed merge always leaves the task worktree and branch in place.
    """

    repo_root = repo.repo_root
    _confirm_task_worktree_state(identity, config, output, reader)

    current = git.current_branch(repo_root)
    if not current:
        raise GitCodexError("Cannot finish task while HEAD is detached. Checkout a target branch first.")
    if current == identity.branch:
        raise GitCodexError(
            f"Cannot finish task while on task branch {identity.branch}. Checkout a target branch first."
        )
    if not git.local_branch_exists(repo_root, identity.branch):
        raise GitCodexError(f"Task branch does not exist locally: {identity.branch}")
    if git.status_porcelain(repo_root).strip():
        raise GitCodexError(
            "Current worktree has uncommitted changes.\nCommit or stash changes before running finish."
        )

    output.info(f"Merging {identity.branch} into {current}...")
    merge = git.run_git(["merge", "--no-ff", "--no-edit", identity.branch], cwd=repo_root, check=False)
    if merge.returncode != 0:
        if not git.is_merge_in_progress(repo_root):
            raise GitCodexError(
                f"Failed to merge {identity.branch} into {current}.\n"
                f"{git.combined_output(merge) or 'Unknown git merge error'}\n"
                "Resolve the merge issue and retry. Cleanup was skipped."
            )
        output.warn(
            f"Merge conflict detected while merging {identity.branch} into {current}.\n"
            "Resolve conflicts and create the merge commit in this repository, then continue."
        )
        _wait_for_conflict_resolution(repo, identity.branch, current, output, reader)
    output.info(f"Merged {identity.branch} into {current}.")

    worktree_removed = False
    if config.cleanup:
        removal = remove_task_worktree(repo_root, identity.path, force_delete=config.force_delete)
        report_removal(output, removal, force_delete=config.force_delete)
        worktree_removed = not identity.path.exists()
    else:
        output.info("Skipped worktree cleanup (--no-cleanup).")

    branch_deleted = False
    if config.delete_branch:
        branch_deleted = _delete_branch(repo, identity.branch, output)
    else:
        output.info("Skipped branch delete (--keep-branch or --no-cleanup).")

    return FinishResult(
        identity=identity,
        merged_into=current,
        cleanup=config.cleanup,
        force_delete=config.force_delete,
        worktree_removed=worktree_removed,
        branch_deleted=branch_deleted,
    )


def _confirm_task_worktree_state(
    identity: TaskIdentity,
    config: FinishConfig,
    output: Output,
    reader: LineReader,
) -> None:
    path = identity.path
    if not path.exists():
        output.warn(
            f"Task worktree path is missing ({path}). Skipping uncommitted-change check for task worktree."
        )
        return

    status = git.run_git(["status", "--porcelain"], cwd=path, check=False)
    if status.returncode != 0:
        raise GitCodexError(
            f"Failed to inspect task worktree state at {path}.\n"
            f"{git.combined_output(status) or 'Unknown git status error'}"
        )
    if not status.stdout.strip():
        return

    if config.cleanup and config.force_delete:
        note = "Cleanup is configured to force-delete this worktree, so these uncommitted files will be removed."
    else:
        note = "Continue only if you understand uncommitted task-worktree files may require manual follow-up."
    output.warn(f"Task worktree has uncommitted changes: {path}\n{note}")

    if confirm(DIRTY_WORKTREE_QUESTION, reader=reader, on_invalid=_invalid_choice_warner(output)):
        output.warn("Continuing finish with dirty task worktree by user confirmation.")
        return
    raise UserAbort("Aborted finish.\nTask worktree contains uncommitted changes.")


def _wait_for_conflict_resolution(
    repo: RepoContext,
    branch: str,
    current: str,
    output: Output,
    reader: LineReader,
) -> None:
    while True:
        action = prompt_for_choice(
            CONFLICT_QUESTION,
            ["c", "continue", "a", "abort"],
            "a",
            reader=reader,
            on_invalid=_invalid_choice_warner(output),
        )
        if action in {"a", "abort"}:
            raise UserAbort("Aborted finish while merge conflict is unresolved.\nCleanup was skipped.")
        if git.is_merge_in_progress(repo.repo_root):
            output.warn(
                "Merge is still in progress. Resolve conflicts and create the merge commit before continuing."
            )
            continue
        if not git.is_ancestor_of_head(repo.repo_root, branch):
            output.warn(
                f"Branch {branch} is not merged into {current} yet.\n"
                "Complete the merge (or abort) before continuing."
            )
            continue
        output.info(f"Merge conflict resolved; continuing finish for {branch}.")
        return


def _delete_branch(repo: RepoContext, branch: str, output: Output) -> bool:
    result = git.run_git(["branch", "-D", branch], cwd=repo.repo_root, check=False)
    if result.returncode == 0:
        output.info(f"Deleted branch {branch}.")
        return True
    detail = git.combined_output(result)
    if git.is_benign_missing_branch(detail):
        output.info(f"Branch {branch} is already missing.")
        return False
    raise GitCodexError(
        f"Failed to delete merged task branch {branch}.\n{detail or 'Unknown git branch delete error'}"
    )


def _invalid_choice_warner(output: Output):
    def warn(answer: str, choices: Sequence[str]) -> None:
        output.warn(f'Invalid choice: "{answer}". Expected one of: {", ".join(choices)}')

    return warn


__all__ = ["finish_task"]
