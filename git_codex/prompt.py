"""Build the initial prompt handed to an agent working in a task worktree."""

from __future__ import annotations

from .models import TaskIdentity


def build_task_prompt(identity: TaskIdentity, message: str) -> str:
    body = message.strip() or "(no message)"
    return "\n".join(
        [
            f"Task: {identity.task}",
            f"Task Slug: {identity.slug}",
            f"Branch: {identity.branch}",
            f"Worktree: {identity.path}",
            "",
            "Prompt:",
            body,
        ]
    )


__all__ = ["build_task_prompt"]
