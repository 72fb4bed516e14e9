"""Shared dataclasses used throughout the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True, frozen=True)
class RepoContext:
    repo_root: Path
    repo_name: str


@dataclass(slots=True, frozen=True)
class TaskIdentity:
    """A task label together with everything derived from it."""

    task: str
    slug: str
    branch: str
    path: Path


@dataclass(slots=True, frozen=True)
class BranchState:
    local_exists: bool
    remote_exists: bool
    remote_tracking_ref_exists: bool


@dataclass(slots=True)
class WorktreeEntry:
    path: Path
    head: str | None = None
    branch: str | None = None
    detached: bool = False
    bare: bool = False
    locked: bool = False
    prunable: str | None = None

    @property
    def short_branch(self) -> str | None:
        if self.branch is None:
            return None
        prefix = "refs/heads/"
        if self.branch.startswith(prefix):
            return self.branch[len(prefix) :]
        return self.branch

    @property
    def status(self) -> str:
        if self.locked:
            return "locked"
        if self.prunable is not None:
            return "prunable"
        return "active"


@dataclass(slots=True)
class EnvCopyResult:
    scope: str
    matched: list[str] = field(default_factory=list)
    copied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "scope": self.scope,
            "matched": list(self.matched),
            "copied": list(self.copied),
            "skipped": list(self.skipped),
        }


@dataclass(slots=True, frozen=True)
class TemplateWriteResult:
    path: Path
    created: bool
    overwritten: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "path": str(self.path),
            "created": self.created,
            "overwritten": self.overwritten,
        }


@dataclass(slots=True)
class AddResult:
    """Outcome of an `add` run, reported as the created/reused event."""

    identity: TaskIdentity
    base: str
    reused: bool
    plan: list[str] | None = None
    branch_state: BranchState | None = None
    env_copy: EnvCopyResult | None = None
    template: TemplateWriteResult | None = None
    opened: bool = False

    def to_event(self) -> dict[str, object]:
        return {
            "task": self.identity.task,
            "taskSlug": self.identity.slug,
            "branch": self.identity.branch,
            "path": str(self.identity.path),
            "base": self.base,
            "reused": self.reused,
            "plan": self.plan,
            "envCopy": self.env_copy.to_dict() if self.env_copy else None,
            "template": self.template.to_dict() if self.template else None,
            "opened": self.opened,
        }


@dataclass(slots=True, frozen=True)
class RemoveResult:
    path: Path
    removed_mapping: bool
    directory_removed: bool


@dataclass(slots=True, frozen=True)
class FinishResult:
    identity: TaskIdentity
    merged_into: str
    cleanup: bool
    force_delete: bool
    worktree_removed: bool
    branch_deleted: bool

    def to_event(self) -> dict[str, object]:
        return {
            "task": self.identity.task,
            "taskSlug": self.identity.slug,
            "taskBranch": self.identity.branch,
            "mergedInto": self.merged_into,
            "cleanup": self.cleanup,
            "forceDelete": self.force_delete,
            "worktreeRemoved": self.worktree_removed,
            "branchDeleted": self.branch_deleted,
        }


__all__ = [
    "RepoContext",
    "TaskIdentity",
    "BranchState",
    "WorktreeEntry",
    "EnvCopyResult",
    "TemplateWriteResult",
    "AddResult",
    "RemoveResult",
    "FinishResult",
]
