"""Typer CLI entrypoint for git-codex."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional, TypeVar

import typer

from . import __version__, git
from .config import (
    PartialConfig,
    resolve_add_config,
    resolve_finish_config,
    resolve_list_config,
    resolve_open_config,
    resolve_prompt_config,
    resolve_rm_config,
)
from .envfiles import parse_env_globs, parse_env_scope
from .exceptions import GitCodexError
from .finish import finish_task
from .launchers import copy_to_clipboard
from .models import RepoContext
from .output import Output, setup_logging
from .prompt import build_task_prompt
from .tasks import build_task_identity, resolve_worktree_path, to_task_slug
from .templates import normalize_template_type
from .worktrees import (
    add_task_worktree,
    check_add_mode,
    launch_editor,
    list_worktrees,
    remove_task_worktree,
    report_removal,
    resolve_repo_context,
    strip_heads_ref,
)

T = TypeVar("T")

app = typer.Typer(add_completion=False, no_args_is_help=True, rich_markup_mode="rich")


@dataclass(slots=True)
class AppState:
    output: Output
    repo_path: Optional[Path] = None
    verbose: bool = False


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"git-codex {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    repo: Optional[Path] = typer.Option(
        None,
        "--repo",
        "-r",
        help="Path inside the repository to operate on (defaults to current working directory).",
        dir_okay=True,
        file_okay=False,
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress informational output."),
    json_: bool = typer.Option(False, "--json", help="Emit JSON lines instead of text."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the git-codex version and exit.",
    ),
) -> None:
    """Manage one git worktree per task."""

    _ = version  # handled via callback
    setup_logging(verbose)
    ctx.obj = AppState(output=Output(json_mode=json_, quiet=quiet), repo_path=repo, verbose=verbose)


def _require_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):  # pragma: no cover
        raise typer.Exit(1)
    return state


@contextmanager
def _reporting_errors(state: AppState) -> Iterator[None]:
    try:
        yield
    except GitCodexError as exc:
        state.output.error(str(exc))
        raise typer.Exit(1) from exc


def _repo(state: AppState) -> RepoContext:
    return resolve_repo_context(state.repo_path)


def _parsed(value: Optional[str], parser: Callable[[str], T]) -> Optional[T]:
    # Flags left off the command line stay undefined so configured values apply.
    return None if value is None else parser(value)


@app.command()
def add(
    ctx: typer.Context,
    task: str = typer.Argument(..., help="Task label; slugified into the branch and directory names."),
    base: Optional[str] = typer.Option(None, "--base", help="Start point for a new branch (defaults to the current branch)."),
    branch_prefix: Optional[str] = typer.Option(None, "--branch-prefix", help="Prefix for the task branch (default codex/)."),
    dir_: Optional[str] = typer.Option(None, "--dir", help="Parent directory for task worktrees."),
    env_globs: Optional[str] = typer.Option(None, "--env-globs", help="Comma-separated env file patterns."),
    env_scope: Optional[str] = typer.Option(None, "--env-scope", help="Where to look for env files: root, all or packages."),
    overwrite_env: bool = typer.Option(False, "--overwrite-env", help="Replace env files already in the worktree."),
    copy_env: Optional[bool] = typer.Option(None, "--copy-env/--no-copy-env", help="Copy env files into the worktree."),
    template: Optional[bool] = typer.Option(None, "--template/--no-template", help="Write .codex/INSTRUCTIONS.md."),
    template_type: Optional[str] = typer.Option(None, "--template-type", help="Built-in template: default, bugfix or feature."),
    template_file: Optional[str] = typer.Option(None, "--template-file", help="Custom template file, relative to the repo root."),
    overwrite_template: bool = typer.Option(False, "--overwrite-template", help="Replace an existing task template."),
    fetch: Optional[bool] = typer.Option(None, "--fetch/--no-fetch", help="Fetch all remotes first."),
    open_: Optional[bool] = typer.Option(None, "--open/--no-open", help="Open the worktree in VS Code."),
    reuse: bool = typer.Option(False, "--reuse", help="Reuse the worktree if it already exists."),
    rm_first: bool = typer.Option(False, "--rm-first", help="Remove an existing worktree at the path before creating it."),
) -> None:
    state = _require_state(ctx)
    output = state.output
    with _reporting_errors(state):
        check_add_mode(reuse, rm_first)
        overrides = PartialConfig(
            base=base,
            branch_prefix=branch_prefix,
            dir=dir_,
            copy_env=copy_env,
            env_globs=_parsed(env_globs, lambda raw: tuple(parse_env_globs(raw)) or None),
            env_scope=_parsed(env_scope, parse_env_scope),
            overwrite_env=overwrite_env or None,
            template=template,
            template_file=template_file,
            template_type=_parsed(template_type, normalize_template_type),
            overwrite_template=overwrite_template or None,
            fetch=fetch,
            open=open_,
        )
        repo = _repo(state)
        config = resolve_add_config(repo.repo_root, overrides)
        identity = build_task_identity(repo, task, config.branch_prefix, config.dir)
        result = add_task_worktree(repo, identity, config, output=output, reuse=reuse, rm_first=rm_first)

    output.info(f"Worktree ready at {identity.path}")
    output.info(f"Branch: {identity.branch}")
    output.event("worktree.reused" if result.reused else "worktree.created", **result.to_event())


@app.command()
def rm(
    ctx: typer.Context,
    task: str = typer.Argument(..., help="Task label of the worktree to remove."),
    dir_: Optional[str] = typer.Option(None, "--dir", help="Parent directory for task worktrees."),
    force_delete: bool = typer.Option(
        False,
        "--force-delete",
        help="Force the removal and delete the directory from disk.",
    ),
) -> None:
    state = _require_state(ctx)
    with _reporting_errors(state):
        repo = _repo(state)
        config = resolve_rm_config(repo.repo_root, dir=dir_, force_delete=force_delete or None)
        slug = to_task_slug(task)
        path = resolve_worktree_path(repo.repo_root, repo.repo_name, slug, config.dir)
        removal = remove_task_worktree(repo.repo_root, path, force_delete=config.force_delete)

    report_removal(state.output, removal, force_delete=config.force_delete)
    state.output.event(
        "worktree.removed",
        task=task,
        taskSlug=slug,
        path=str(path),
        removedMapping=removal.removed_mapping,
        directoryRemoved=removal.directory_removed,
    )


@app.command("list")
def list_(
    ctx: typer.Context,
    pretty: bool = typer.Option(False, "--pretty", help="Show only task worktrees, as a table."),
    branch_prefix: Optional[str] = typer.Option(None, "--branch-prefix", help="Branch prefix that marks task worktrees."),
) -> None:
    state = _require_state(ctx)
    output = state.output
    with _reporting_errors(state):
        repo = _repo(state)
        config = resolve_list_config(repo.repo_root, branch_prefix=branch_prefix, pretty=pretty or None)
        if not config.pretty and not output.json:
            output.print(git.worktree_list_text(repo.repo_root))
            return
        entries = list_worktrees(repo.repo_root)

    target_ref_prefix = f"refs/heads/{config.branch_prefix}"
    matching = [entry for entry in entries if entry.branch and entry.branch.startswith(target_ref_prefix)]

    if output.json:
        selected = matching if config.pretty else entries
        output.event(
            "worktree.list",
            pretty=config.pretty,
            branchPrefix=config.branch_prefix,
            entries=[
                {
                    "path": str(entry.path),
                    "branch": strip_heads_ref(entry.branch) if entry.branch else None,
                    "head": entry.head,
                }
                for entry in selected
            ],
        )
        return

    if not matching:
        output.info(f'No worktrees found for branch prefix "{config.branch_prefix}".')
        return
    output.table(
        ["Path", "Branch", "HEAD"],
        [
            [str(entry.path), strip_heads_ref(entry.branch or "(detached)"), (entry.head or "")[:7]]
            for entry in matching
        ],
    )


@app.command("open")
def open_(
    ctx: typer.Context,
    task: str = typer.Argument(..., help="Task label of the worktree to open."),
    dir_: Optional[str] = typer.Option(None, "--dir", help="Parent directory for task worktrees."),
    branch_prefix: Optional[str] = typer.Option(None, "--branch-prefix", help="Prefix for the task branch."),
    open_editor: Optional[bool] = typer.Option(None, "--open/--no-open", help="Launch VS Code."),
) -> None:
    state = _require_state(ctx)
    output = state.output
    with _reporting_errors(state):
        repo = _repo(state)
        config = resolve_open_config(repo.repo_root, dir=dir_, branch_prefix=branch_prefix, open=open_editor)
        identity = build_task_identity(repo, task, config.branch_prefix, config.dir)
        if not identity.path.exists():
            raise GitCodexError(f"Worktree does not exist: {identity.path}")
        opened = launch_editor(identity.path, output) if config.open else False

    output.info(f"Worktree path: {identity.path}")
    output.info(f"Expected branch: {identity.branch}")
    output.event("worktree.opened", path=str(identity.path), branch=identity.branch, opened=opened)


@app.command()
def prompt(
    ctx: typer.Context,
    task: str = typer.Argument(..., help="Task label."),
    message: str = typer.Argument(..., help="Instructions for the agent."),
    dir_: Optional[str] = typer.Option(None, "--dir", help="Parent directory for task worktrees."),
    branch_prefix: Optional[str] = typer.Option(None, "--branch-prefix", help="Prefix for the task branch."),
    copy: bool = typer.Option(False, "--copy", help="Copy the prompt to the clipboard."),
) -> None:
    state = _require_state(ctx)
    output = state.output
    with _reporting_errors(state):
        repo = _repo(state)
        config = resolve_prompt_config(repo.repo_root, dir=dir_, branch_prefix=branch_prefix)
        identity = build_task_identity(repo, task, config.branch_prefix, config.dir)
        text = build_task_prompt(identity, message)
        if copy:
            copy_to_clipboard(text)

    if output.json:
        output.event(
            "prompt.generated",
            task=task,
            taskSlug=identity.slug,
            branch=identity.branch,
            worktreePath=str(identity.path),
            copied=copy,
            prompt=text,
        )
        return
    output.print(text)
    if copy:
        output.info("Prompt copied to clipboard.")


@app.command()
def finish(
    ctx: typer.Context,
    task: str = typer.Argument(..., help="Task label to merge and clean up."),
    dir_: Optional[str] = typer.Option(None, "--dir", help="Parent directory for task worktrees."),
    branch_prefix: Optional[str] = typer.Option(None, "--branch-prefix", help="Prefix for the task branch."),
    force_delete: Optional[bool] = typer.Option(
        None,
        "--force-delete/--keep-dir",
        help="Delete the worktree directory during cleanup (default) or keep it on disk.",
    ),
    cleanup: Optional[bool] = typer.Option(None, "--cleanup/--no-cleanup", help="Remove the task worktree after merging."),
    delete_branch: Optional[bool] = typer.Option(
        None,
        "--delete-branch/--keep-branch",
        help="Delete the task branch after merging (follows --cleanup by default).",
    ),
) -> None:
    state = _require_state(ctx)
    with _reporting_errors(state):
        repo = _repo(state)
        config = resolve_finish_config(
            repo.repo_root,
            dir=dir_,
            branch_prefix=branch_prefix,
            force_delete=force_delete,
            cleanup=cleanup,
            delete_branch=delete_branch,
        )
        identity = build_task_identity(repo, task, config.branch_prefix, config.dir)
        result = finish_task(repo, identity, config, output=state.output)

    state.output.event("task.finished", **result.to_event())


__all__ = ["app"]
