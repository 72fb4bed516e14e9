"""Task label normalization and the branch/path names derived from it."""

from __future__ import annotations

import os
import re
from pathlib import Path

from .exceptions import ValidationError
from .models import RepoContext, TaskIdentity

_UNSAFE_TASK_CHARACTERS = re.compile(r"[^a-z0-9._-]+")
_REPEATED_HYPHENS = re.compile(r"-+")
_EDGE_PUNCTUATION = re.compile(r"^[.-]+|[.-]+$")


def to_task_slug(task: str) -> str:
    """Produce a branch- and filesystem-safe slug from a free-text task label."""

    slug = task.strip().lower()
    slug = _UNSAFE_TASK_CHARACTERS.sub("-", slug)
    slug = _REPEATED_HYPHENS.sub("-", slug)
    slug = _EDGE_PUNCTUATION.sub("", slug)
    if not slug:
        raise ValidationError("Task cannot be empty")
    return slug


def normalize_branch_prefix(prefix: str) -> str:
    trimmed = prefix.strip()
    if not trimmed:
        return ""
    return trimmed if trimmed.endswith("/") else f"{trimmed}/"


def build_branch_name(prefix: str, task_slug: str) -> str:
    return f"{normalize_branch_prefix(prefix)}{task_slug}"


def resolve_worktree_parent_dir(repo_root: Path, dir_override: str | None = None) -> Path:
    if not dir_override:
        return repo_root.parent
    candidate = Path(dir_override).expanduser()
    if candidate.is_absolute():
        return Path(_normalize(candidate))
    return Path(_normalize(repo_root / candidate))


def resolve_worktree_path(
    repo_root: Path,
    repo_name: str,
    task_slug: str,
    dir_override: str | None = None,
) -> Path:
    parent = resolve_worktree_parent_dir(repo_root, dir_override)
    return parent / f"{repo_name}-{task_slug}"


def build_task_identity(
    repo: RepoContext,
    task: str,
    branch_prefix: str,
    dir_override: str | None = None,
) -> TaskIdentity:
    slug = to_task_slug(task)
    return TaskIdentity(
        task=task,
        slug=slug,
        branch=build_branch_name(branch_prefix, slug),
        path=resolve_worktree_path(repo.repo_root, repo.repo_name, slug, dir_override),
    )


def _normalize(path: Path) -> str:
    # Collapse `..` segments without touching the filesystem.
    return os.path.normpath(str(path))


__all__ = [
    "to_task_slug",
    "normalize_branch_prefix",
    "build_branch_name",
    "resolve_worktree_parent_dir",
    "resolve_worktree_path",
    "build_task_identity",
]
