"""Core business logic for task worktree operations."""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path
from typing import Callable

from . import git
from .config import EffectiveConfig, resolve_remote_name
from .envfiles import copy_env_files
from .exceptions import (
    GitCodexError,
    GitInvocationError,
    MissingExecutableError,
    PathConflictError,
    ReuseConflictError,
    ValidationError,
)
from .launchers import open_in_editor
from .models import (
    AddResult,
    EnvCopyResult,
    RemoveResult,
    RepoContext,
    TaskIdentity,
    TemplateWriteResult,
    WorktreeEntry,
)
from .output import Output
from .planner import plan_add
from .templates import TemplateVariables, load_template_source, write_task_template

logger = logging.getLogger(__name__)

DELETE_RETRIES = 5
DELETE_RETRY_DELAY = 0.15

EditorOpener = Callable[[Path], None]


def resolve_repo_context(cwd: Path | None = None) -> RepoContext:
    repo_root = git.show_toplevel((cwd or Path.cwd()).expanduser()).resolve()
    return RepoContext(repo_root=repo_root, repo_name=repo_root.name)


def check_add_mode(reuse: bool, rm_first: bool) -> None:
    if reuse and rm_first:
        raise ValidationError("Cannot use --reuse and --rm-first together.")


def parse_worktree_porcelain(text: str) -> list[WorktreeEntry]:
    """Parse `git worktree list --porcelain` output.

    A `worktree` line always opens a new entry, so a missing blank line before
    it (or after the final entry) is tolerated. Unknown keys are ignored.
    """

    entries: list[WorktreeEntry] = []
    current: WorktreeEntry | None = None
    for line in text.splitlines():
        if not line.strip():
            if current is not None:
                entries.append(current)
                current = None
            continue
        key, _, value = line.partition(" ")
        if key == "worktree":
            if current is not None:
                entries.append(current)
            current = WorktreeEntry(path=Path(value))
            continue
        if current is None:
            continue
        if key == "HEAD":
            current.head = value
        elif key == "branch":
            current.branch = value
        elif key == "detached":
            current.detached = True
        elif key == "bare":
            current.bare = True
        elif key == "locked":
            current.locked = True
        elif key == "prunable":
            current.prunable = value
    if current is not None:
        entries.append(current)
    return entries


def strip_heads_ref(ref: str) -> str:
    prefix = "refs/heads/"
    return ref[len(prefix) :] if ref.startswith(prefix) else ref


def list_worktrees(repo_root: Path) -> list[WorktreeEntry]:
    return parse_worktree_porcelain(git.worktree_list_porcelain(repo_root))


def find_worktree(repo_root: Path, path: Path) -> WorktreeEntry | None:
    target = _resolved(path)
    for entry in list_worktrees(repo_root):
        if _resolved(entry.path) == target:
            return entry
    return None


def add_task_worktree(
    repo: RepoContext,
    identity: TaskIdentity,
    config: EffectiveConfig,
    *,
    output: Output,
    reuse: bool = False,
    rm_first: bool = False,
    opener: EditorOpener = open_in_editor,
) -> AddResult:
    """Create (or reuse, or recreate) the worktree for one task.

    No rollback happens on failure: a partially created worktree is left in
    place and `git worktree prune` is always safe to run afterwards.
    """

    check_add_mode(reuse, rm_first)

    repo_root = repo.repo_root
    path = identity.path
    result = AddResult(identity=identity, base=config.base, reused=False)

    if path.exists():
        if reuse:
            _validate_reusable(repo_root, identity)
            output.info(f"Reusing existing worktree at {path}")
            result.reused = True
        elif rm_first:
            output.info(f"Removing existing worktree at {path}")
            remove_existing_worktree(repo_root, path)
        else:
            raise PathConflictError(
                f"Worktree path already exists: {path}\n"
                "Pass --reuse to keep using it or --rm-first to remove and recreate it."
            )

    if not result.reused:
        if config.fetch:
            output.info("Fetching latest refs...")
            git.fetch_all(repo_root)
        remote = resolve_remote_name(repo_root, config.base)
        state = git.remote_branch_state(repo_root, identity.branch, remote)
        if not state.local_exists and state.remote_exists and not state.remote_tracking_ref_exists:
            output.info(f"Fetching {remote}/{identity.branch}...")
            git.fetch_remote_branch(repo_root, identity.branch, remote)
        plan = plan_add(
            identity.branch,
            path,
            config.base,
            state.local_exists,
            state.remote_exists,
            remote,
        )
        logger.debug("Worktree plan: git %s", " ".join(plan))
        path.parent.mkdir(parents=True, exist_ok=True)
        git.run_git(plan, cwd=repo_root)
        result.plan = plan
        result.branch_state = state

    result.env_copy = _copy_env(repo, identity, config, output)
    result.template = _write_template(repo, identity, config, output)
    result.opened = launch_editor(path, output, opener) if config.open else False
    return result


def remove_existing_worktree(repo_root: Path, path: Path) -> None:
    """Drop the registration and the directory so the path can be recreated."""

    args = ["worktree", "remove", "--force", str(path)]
    removal = git.run_git(args, cwd=repo_root, check=False)
    if removal.returncode != 0 and not git.is_benign_absence(git.combined_output(removal)):
        raise GitInvocationError(
            ["git", *args],
            removal.returncode,
            stdout=removal.stdout,
            stderr=removal.stderr,
        )
    if path.exists():
        delete_directory(path)
    git.worktree_prune(repo_root)


def remove_task_worktree(repo_root: Path, path: Path, *, force_delete: bool = False) -> RemoveResult:
    removed_mapping = False
    first = git.run_git(["worktree", "remove", str(path)], cwd=repo_root, check=False)
    if first.returncode == 0:
        removed_mapping = True
    else:
        first_error = git.combined_output(first)
        mapping_missing = git.is_benign_absence(first_error)
        if not mapping_missing and force_delete:
            forced_args = ["worktree", "remove", "--force", str(path)]
            forced = git.run_git(forced_args, cwd=repo_root, check=False)
            if forced.returncode == 0:
                removed_mapping = True
            elif not git.is_benign_absence(git.combined_output(forced)):
                raise GitInvocationError(
                    ["git", *forced_args],
                    forced.returncode,
                    stdout=forced.stdout,
                    stderr=forced.stderr,
                )
        elif not mapping_missing:
            raise GitInvocationError(
                ["git", "worktree", "remove", str(path)],
                first.returncode,
                stdout=first.stdout,
                stderr=(
                    f"{first.stderr.rstrip()}\n\n"
                    "Likely causes: the editor is still open, a watcher process is still running, "
                    "or a terminal is in that folder. Close those and retry, or use --force-delete."
                ),
            )

    if force_delete and path.exists():
        delete_directory(path)
    git.worktree_prune(repo_root)
    return RemoveResult(
        path=path,
        removed_mapping=removed_mapping,
        directory_removed=not path.exists(),
    )


def report_removal(output: Output, removal: RemoveResult, *, force_delete: bool) -> None:
    if not force_delete and removal.path.exists():
        output.info(f"Removed worktree mapping for {removal.path}")
        output.info("Directory still exists on disk. Use --force-delete to remove it as well.")
    elif removal.removed_mapping:
        output.info(f"Removed worktree {removal.path}")
    else:
        output.info(f"No existing worktree mapping found for {removal.path}")


def delete_directory(
    path: Path,
    *,
    retries: int = DELETE_RETRIES,
    delay: float = DELETE_RETRY_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Recursively delete `path`, retrying while editors or watchers hold locks."""

    attempt = 0
    while True:
        try:
            shutil.rmtree(path)
            return
        except FileNotFoundError:
            return
        except OSError as exc:
            attempt += 1
            if attempt > retries:
                raise GitCodexError(
                    f"Worktree mapping may be removed, but directory delete failed: {path} "
                    f"({exc.strerror or exc}). Close the editor and any watchers or terminals "
                    "using this folder, then retry."
                ) from exc
            logger.debug("Delete of %s failed (%s); retry %s/%s", path, exc, attempt, retries)
            sleep(delay)


def _validate_reusable(repo_root: Path, identity: TaskIdentity) -> None:
    entry = find_worktree(repo_root, identity.path)
    if entry is None:
        raise ReuseConflictError(
            f"Cannot reuse {identity.path}: it exists but is not a registered git worktree."
        )
    actual = entry.short_branch
    if actual != identity.branch:
        raise ReuseConflictError(
            f"Cannot reuse {identity.path}: expected branch {identity.branch} "
            f"but the worktree has {actual or '(detached HEAD)'} checked out."
        )


def _copy_env(
    repo: RepoContext,
    identity: TaskIdentity,
    config: EffectiveConfig,
    output: Output,
) -> EnvCopyResult | None:
    if not config.copy_env:
        return None
    copy_result = copy_env_files(
        repo.repo_root,
        identity.path,
        config.env_globs,
        config.env_scope,
        overwrite=config.overwrite_env,
    )
    if not copy_result.matched:
        output.info("No env-like files matched copy patterns.")
    for copied in copy_result.copied:
        output.info(f"Copied {copied}")
    for skipped in copy_result.skipped:
        output.info(f"Skipped {skipped} (already exists)")
    return copy_result


def _write_template(
    repo: RepoContext,
    identity: TaskIdentity,
    config: EffectiveConfig,
    output: Output,
) -> TemplateWriteResult | None:
    if not config.template:
        return None
    variables = TemplateVariables(
        task=identity.task,
        task_slug=identity.slug,
        branch=identity.branch,
        worktree_path=str(identity.path),
    )
    written = write_task_template(
        identity.path,
        variables,
        template_source=load_template_source(repo.repo_root, config.template_file),
        template_type=config.template_type,
        overwrite=config.overwrite_template,
    )
    if written.created:
        verb = "Overwrote" if written.overwritten else "Wrote"
        output.info(f"{verb} task template at {written.path}")
    else:
        output.info(f"Task template already exists at {written.path} (use --overwrite-template to replace it)")
    output.event(
        "template.generated",
        path=str(written.path),
        templateType=config.template_type.value,
        created=written.created,
        overwritten=written.overwritten,
    )
    return written


def launch_editor(path: Path, output: Output, opener: EditorOpener = open_in_editor) -> bool:
    """Open `path` in the editor; a missing editor is a warning, not a failure."""

    try:
        opener(path)
    except MissingExecutableError as exc:
        output.warn(str(exc))
        return False
    output.info(f"Opened editor at {path}")
    return True


def _resolved(path: Path) -> Path:
    try:
        return path.expanduser().resolve()
    except OSError:
        return path.expanduser().absolute()


__all__ = [
    "resolve_repo_context",
    "check_add_mode",
    "parse_worktree_porcelain",
    "strip_heads_ref",
    "list_worktrees",
    "find_worktree",
    "add_task_worktree",
    "remove_existing_worktree",
    "remove_task_worktree",
    "report_removal",
    "launch_editor",
    "delete_directory",
]
