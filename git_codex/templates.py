"""Per-task instruction templates written to `<worktree>/.codex/INSTRUCTIONS.md`."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .exceptions import ConfigError, ValidationError
from .models import TemplateWriteResult

TEMPLATE_DIR = ".codex"
TEMPLATE_FILENAME = "INSTRUCTIONS.md"

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(task|taskSlug|branch|worktreePath)\s*\}\}")


class TemplateType(str, Enum):
    DEFAULT = "default"
    BUGFIX = "bugfix"
    FEATURE = "feature"


@dataclass(slots=True, frozen=True)
class TemplateVariables:
    task: str
    task_slug: str
    branch: str
    worktree_path: str

    def as_placeholders(self) -> dict[str, str]:
        return {
            "task": self.task,
            "taskSlug": self.task_slug,
            "branch": self.branch,
            "worktreePath": self.worktree_path,
        }


_HEADER = """Task: {{task}}
Task Slug: {{taskSlug}}
Branch: {{branch}}
Worktree: {{worktreePath}}
"""

BUILTIN_TEMPLATES: dict[TemplateType, str] = {
    TemplateType.DEFAULT: f"""# Codex Task Instructions

{_HEADER}
## Goals
- Clarify scope and assumptions before coding.
- Implement the smallest safe change first.
- Validate with focused tests before completion.

## Notes
- Capture key decisions and tradeoffs here as you work.
""",
    TemplateType.BUGFIX: f"""# Codex Bugfix Instructions

{_HEADER}
## Reproduction
- Steps to reproduce the bug.
- Expected vs. actual behavior.

## Root Cause
- What is actually broken and why.

## Fix Plan
- The smallest change that fixes the root cause.
- Add a regression test that fails before the fix.

## Validation
- Tests and manual checks run before completion.
""",
    TemplateType.FEATURE: f"""# Codex Feature Instructions

{_HEADER}
## Feature Scope
- What is in scope and what is explicitly out.

## Implementation Plan
- Break the work into small, reviewable steps.

## Validation
- Tests covering the new behavior and its edge cases.

## Rollout Notes
- Flags, migrations, or docs that ship with the feature.
""",
}


def normalize_template_type(value: str | TemplateType | None) -> TemplateType:
    if value is None:
        return TemplateType.DEFAULT
    if isinstance(value, TemplateType):
        return value
    normalized = value.strip().lower()
    try:
        return TemplateType(normalized)
    except ValueError as exc:
        allowed = ", ".join(kind.value for kind in TemplateType)
        raise ValidationError(
            f'Invalid template type: "{value}". Expected one of: {allowed}.'
        ) from exc


def render_task_template(
    variables: TemplateVariables,
    template_source: str | None = None,
    template_type: str | TemplateType | None = None,
) -> str:
    kind = normalize_template_type(template_type)
    source = template_source if template_source is not None else BUILTIN_TEMPLATES[kind]
    replacements = variables.as_placeholders()
    return _PLACEHOLDER_RE.sub(lambda match: replacements.get(match.group(1)) or "", source)


def load_template_source(repo_root: Path, template_file: str | None) -> str | None:
    if not template_file:
        return None
    path = Path(template_file).expanduser()
    if not path.is_absolute():
        path = repo_root / path
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read template file {path}: {exc.strerror or exc}") from exc


def write_task_template(
    worktree_path: Path,
    variables: TemplateVariables,
    *,
    template_source: str | None = None,
    template_type: str | TemplateType | None = None,
    overwrite: bool = False,
) -> TemplateWriteResult:
    """Render and write the template unless it already exists.

    `created` is False when an existing file was left untouched; `overwritten`
    is True only when an existing file was replaced.
    """

    kind = normalize_template_type(template_type)
    template_path = worktree_path / TEMPLATE_DIR / TEMPLATE_FILENAME
    exists = template_path.exists()
    if exists and not overwrite:
        return TemplateWriteResult(path=template_path, created=False, overwritten=False)
    template_path.parent.mkdir(parents=True, exist_ok=True)
    rendered = render_task_template(variables, template_source, kind)
    template_path.write_text(rendered, encoding="utf-8")
    return TemplateWriteResult(path=template_path, created=True, overwritten=exists)


__all__ = [
    "TemplateType",
    "TemplateVariables",
    "BUILTIN_TEMPLATES",
    "normalize_template_type",
    "render_task_template",
    "load_template_source",
    "write_task_template",
]
